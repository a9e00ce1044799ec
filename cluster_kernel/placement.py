"""
Cluster Kernel — Placement Resolver

Finds or creates the grouping for a (school_code, device_id) pair and
derives the device's role from its position.

Rules:
  - A device keeps its first placement forever (until a reset).
  - Hosts are the first three devices of a cluster / flat school,
    in arrival order.
  - Clusters are searched in creation order, never by name.
  - A full cluster is never reused; a new one is opened instead.

Mutates the StateTree in place. Persisting is the caller's job.
"""

from __future__ import annotations

import random
from typing import Callable, List, Optional, Tuple

from .constants import (
    FREQUENCY_CHANNELS,
    MAX_DEVICES_PER_CLUSTER,
    MAX_HOSTS_PER_CLUSTER,
    ROLE_CLIENT,
    ROLE_HOST1,
    ROLE_HOST2,
    ROLE_HOST3,
)
from .domain_types import (
    Cluster,
    ClusteredSchool,
    ClusterPlacement,
    DeviceRecord,
    FlatPlacement,
    FlatSchool,
    Placement,
    RolePosition,
    StateTree,
    cluster_name_for,
    utc_now_iso,
)

Clock = Callable[[], str]

_system_rng = random.SystemRandom()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def place_device(
    state: StateTree,
    school_code: str,
    device_id: str,
    rng: Optional[random.Random] = None,
    clock: Clock = utc_now_iso,
) -> Placement:
    """Place a device according to the state's mode."""
    if state.is_clustered:
        return place_device_clustered(state, school_code, device_id, rng, clock)
    return place_device_flat(state, school_code, device_id, clock)


def place_device_flat(
    state: StateTree,
    school_code: str,
    device_id: str,
    clock: Clock = utc_now_iso,
) -> FlatPlacement:
    """Register device_id in the school's single list. Idempotent."""
    school = state.get_or_create_school(school_code)
    if not isinstance(school, FlatSchool):
        raise TypeError(f"School {school_code!r} is not a flat school")

    is_existing = school.index_of(device_id) != -1
    if not is_existing:
        _append_device(school.devices, school.hosts, device_id, clock)

    index = school.index_of(device_id)
    return FlatPlacement(
        school_code=school_code,
        device_id=device_id,
        school=school,
        role=derive_role(index, device_id, school.hosts),
        is_existing=is_existing,
    )


def place_device_clustered(
    state: StateTree,
    school_code: str,
    device_id: str,
    rng: Optional[random.Random] = None,
    clock: Clock = utc_now_iso,
) -> ClusterPlacement:
    """Register device_id in the first matching or free cluster."""
    school = state.get_or_create_school(school_code)
    if not isinstance(school, ClusteredSchool):
        raise TypeError(f"School {school_code!r} is not a clustered school")

    name, cluster, is_existing = find_or_create_cluster(
        school, school_code, device_id, rng, clock,
    )
    if not is_existing:
        _append_device(cluster.devices, cluster.hosts, device_id, clock)
        school.total_devices += 1

    index = cluster.index_of(device_id)
    return ClusterPlacement(
        school_code=school_code,
        device_id=device_id,
        school=school,
        cluster_name=name,
        cluster=cluster,
        role=derive_role(index, device_id, cluster.hosts),
        is_existing=is_existing,
    )


def find_or_create_cluster(
    school: ClusteredSchool,
    school_code: str,
    device_id: str,
    rng: Optional[random.Random] = None,
    clock: Clock = utc_now_iso,
) -> Tuple[str, Cluster, bool]:
    """
    Resolve the cluster for device_id.

    Returns (cluster_name, cluster, is_existing). is_existing is True only
    when the device is already a member. A newly opened cluster is
    attached to the school but holds no devices yet.
    """
    ordered = school.ordered_clusters()

    for name, cluster in ordered:
        if cluster.index_of(device_id) != -1:
            return name, cluster, True

    for name, cluster in ordered:
        if cluster.device_count < MAX_DEVICES_PER_CLUSTER:
            return name, cluster, False

    school.last_cluster_number += 1
    number = school.last_cluster_number
    name = cluster_name_for(school_code, number)
    cluster = Cluster(
        cluster_number=number,
        frequency=pick_frequency(rng),
        created_at=clock(),
    )
    school.add_cluster(name, cluster)
    return name, cluster, False


def derive_role(index: int, device_id: str, hosts: List[str]) -> RolePosition:
    """
    Map a 0-based index to a role and the host slots the device sees.

    Slots that are not yet filled come back as None.
    """
    if index < 0:
        raise ValueError(f"Device {device_id!r} is not placed")

    def slot(i: int) -> Optional[str]:
        return hosts[i] if i < len(hosts) else None

    if index == 0:
        return RolePosition(index, ROLE_HOST1, device_id, None, None)
    if index == 1:
        return RolePosition(index, ROLE_HOST2, slot(0), device_id, None)
    if index == 2:
        return RolePosition(index, ROLE_HOST3, slot(0), slot(1), device_id)
    return RolePosition(index, ROLE_CLIENT, slot(0), slot(1), slot(2))


def pick_frequency(rng: Optional[random.Random] = None) -> int:
    """Uniform pick from the channel list. Cosmetic only."""
    return (rng or _system_rng).choice(FREQUENCY_CHANNELS)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _append_device(
    devices: List[DeviceRecord],
    hosts: List[str],
    device_id: str,
    clock: Clock,
) -> None:
    devices.append(DeviceRecord(device_id=device_id, registered_at=clock()))
    if len(hosts) < MAX_HOSTS_PER_CLUSTER:
        hosts.append(device_id)
