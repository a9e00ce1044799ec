"""
Cluster Kernel — Invariant Checks

Hard-fail validation. Every check raises InvariantViolationError on failure.
Used when restoring a snapshot and by the test-suite after every mutation.
"""

from __future__ import annotations

from typing import List

from .constants import MAX_HOSTS_PER_CLUSTER
from .domain_types import ClusteredSchool, DeviceRecord, FlatSchool, StateTree


class InvariantViolationError(Exception):
    """Raised when a registry invariant is violated."""

    def __init__(self, rule: str, detail: str) -> None:
        self.rule = rule
        self.detail = detail
        super().__init__(f"[INVARIANT:{rule}] {detail}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_invariants(state: StateTree) -> None:
    """Run every check for every school. Raises on the first failure."""
    for code, school in state.schools.items():
        if state.is_clustered:
            if not isinstance(school, ClusteredSchool):
                raise InvariantViolationError(
                    "school_type",
                    f"School {code!r} is not clustered in clustered mode",
                )
            _check_clustered_school(code, school)
        else:
            if not isinstance(school, FlatSchool):
                raise InvariantViolationError(
                    "school_type",
                    f"School {code!r} is not flat in flat mode",
                )
            _check_unique_devices(code, school.devices)
            _check_host_prefix(code, school.devices, school.hosts)


# ---------------------------------------------------------------------------
# Individual checks (private)
# ---------------------------------------------------------------------------

def _check_clustered_school(code: str, school: ClusteredSchool) -> None:
    if set(school.cluster_order) != set(school.clusters) or len(
        school.cluster_order
    ) != len(school.clusters):
        raise InvariantViolationError(
            "cluster_order",
            f"School {code!r}: cluster order does not match cluster lookup",
        )

    total = 0
    for name, cluster in school.ordered_clusters():
        if cluster.cluster_number > school.last_cluster_number:
            raise InvariantViolationError(
                "cluster_number",
                f"Cluster {name!r} number {cluster.cluster_number} exceeds "
                f"lastClusterNumber {school.last_cluster_number}",
            )
        if name != f"{code}_{cluster.cluster_number}":
            raise InvariantViolationError(
                "cluster_name",
                f"Cluster {name!r} does not match number {cluster.cluster_number}",
            )
        _check_unique_devices(name, cluster.devices)
        _check_host_prefix(name, cluster.devices, cluster.hosts)
        total += len(cluster.devices)

    if total != school.total_devices:
        raise InvariantViolationError(
            "total_devices",
            f"School {code!r}: totalDevices={school.total_devices} but "
            f"clusters hold {total}",
        )


def _check_unique_devices(owner: str, devices: List[DeviceRecord]) -> None:
    seen: set = set()
    for d in devices:
        if d.device_id in seen:
            raise InvariantViolationError(
                "unique_devices",
                f"{owner!r}: duplicate deviceId {d.device_id!r}",
            )
        seen.add(d.device_id)


def _check_host_prefix(
    owner: str, devices: List[DeviceRecord], hosts: List[str],
) -> None:
    """Hosts are exactly the first min(3, len(devices)) device ids."""
    expected = [d.device_id for d in devices[:MAX_HOSTS_PER_CLUSTER]]
    if list(hosts) != expected:
        raise InvariantViolationError(
            "host_prefix",
            f"{owner!r}: hosts {hosts!r} != first devices {expected!r}",
        )
