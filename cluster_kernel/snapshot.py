"""
Cluster Kernel — Snapshot Encoder / Decoder

JSON serialization of the whole StateTree.

Rules:
  - Top level is the school mapping itself: {schoolCode: school}.
  - Schools, clusters and devices keep insertion order.
  - Pretty-printed (indent=2) so the file stays diff-able by hand.
  - Decoding is strict: exact field sets, type checks, invariants.
"""

from __future__ import annotations

import json
import os
import pathlib
import tempfile
from typing import Any, Dict, List

from .domain_types import (
    Cluster,
    ClusteredSchool,
    DeviceRecord,
    FlatSchool,
    StateTree,
)
from .invariants import InvariantViolationError, validate_invariants


# ══════════════════════════════════════════════════════════════
# Exception Hierarchy
# ══════════════════════════════════════════════════════════════

class SnapshotError(Exception):
    """Base exception for all snapshot operations."""


class SerializationError(SnapshotError):
    """Raised when encoding a StateTree to JSON fails."""


class DeserializationError(SnapshotError):
    """Raised when decoding JSON to a StateTree fails."""


# ══════════════════════════════════════════════════════════════
# Encoder
# ══════════════════════════════════════════════════════════════

def encode_state(state: StateTree) -> str:
    """Serialize a StateTree into a pretty-printed JSON document."""
    try:
        return json.dumps(state_to_dict(state), ensure_ascii=False, indent=2)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Failed to encode snapshot: {exc}") from exc


def state_to_dict(state: StateTree) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for code, school in state.schools.items():
        if isinstance(school, ClusteredSchool):
            out[code] = {
                "clusters": {
                    name: _cluster_to_dict(cluster)
                    for name, cluster in school.ordered_clusters()
                },
                "totalDevices": school.total_devices,
                "lastClusterNumber": school.last_cluster_number,
            }
        else:
            out[code] = {
                "devices": _devices_to_list(school.devices),
                "hosts": list(school.hosts),
            }
    return out


def _cluster_to_dict(cluster: Cluster) -> Dict[str, Any]:
    return {
        "clusterNumber": cluster.cluster_number,
        "devices": _devices_to_list(cluster.devices),
        "hosts": list(cluster.hosts),
        "frequency": cluster.frequency,
        "createdAt": cluster.created_at,
    }


def _devices_to_list(devices: List[DeviceRecord]) -> List[Dict[str, str]]:
    return [
        {"deviceId": d.device_id, "registeredAt": d.registered_at}
        for d in devices
    ]


# ══════════════════════════════════════════════════════════════
# Decoder
# ══════════════════════════════════════════════════════════════

# -- Field whitelists (exact sets, no extras, no omissions) --

_FLAT_SCHOOL_FIELDS = frozenset({"devices", "hosts"})

_CLUSTERED_SCHOOL_FIELDS = frozenset({
    "clusters", "totalDevices", "lastClusterNumber",
})

_CLUSTER_FIELDS = frozenset({
    "clusterNumber", "devices", "hosts", "frequency", "createdAt",
})

_DEVICE_FIELDS = frozenset({"deviceId", "registeredAt"})


def decode_state(json_str: str, mode: str) -> StateTree:
    """
    Strict deserialization of a snapshot document for the given mode.

    Fails on: invalid JSON, missing or unknown fields, wrong types,
    invariant violations (host prefix, device counts).
    """
    try:
        raw = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise DeserializationError(f"Invalid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise DeserializationError(
            f"Top-level JSON must be object, got {type(raw).__name__}"
        )

    state = StateTree(mode=mode)
    for code, sdata in raw.items():
        if not isinstance(sdata, dict):
            raise DeserializationError(f"School {code!r} must be a JSON object")
        if state.is_clustered:
            state.schools[code] = _decode_clustered_school(code, sdata)
        else:
            state.schools[code] = _decode_flat_school(code, sdata)

    try:
        validate_invariants(state)
    except InvariantViolationError as exc:
        raise DeserializationError(
            f"Invariant violation in snapshot: {exc}"
        ) from exc
    return state


def _decode_flat_school(code: str, data: dict) -> FlatSchool:
    _check_fields(data, _FLAT_SCHOOL_FIELDS, f"school {code!r}")
    return FlatSchool(
        devices=_decode_devices(data["devices"], f"school {code!r}"),
        hosts=_decode_str_list(data["hosts"], f"school {code!r} hosts"),
    )


def _decode_clustered_school(code: str, data: dict) -> ClusteredSchool:
    context = f"school {code!r}"
    _check_fields(data, _CLUSTERED_SCHOOL_FIELDS, context)
    raw_clusters = data["clusters"]
    if not isinstance(raw_clusters, dict):
        raise DeserializationError(f"'clusters' of {context} must be a JSON object")

    school = ClusteredSchool(
        total_devices=_require_int(data["totalDevices"], "totalDevices"),
        last_cluster_number=_require_int(
            data["lastClusterNumber"], "lastClusterNumber",
        ),
    )
    for name, cdata in raw_clusters.items():
        if not isinstance(cdata, dict):
            raise DeserializationError(f"Cluster {name!r} must be a JSON object")
        _check_fields(cdata, _CLUSTER_FIELDS, f"cluster {name!r}")
        school.add_cluster(name, Cluster(
            cluster_number=_require_int(cdata["clusterNumber"], "clusterNumber"),
            frequency=_require_int(cdata["frequency"], "frequency"),
            created_at=_require_str(cdata["createdAt"], "createdAt"),
            devices=_decode_devices(cdata["devices"], f"cluster {name!r}"),
            hosts=_decode_str_list(cdata["hosts"], f"cluster {name!r} hosts"),
        ))
    return school


def _decode_devices(raw: Any, context: str) -> List[DeviceRecord]:
    if not isinstance(raw, list):
        raise DeserializationError(f"'devices' of {context} must be a JSON array")
    devices: List[DeviceRecord] = []
    for i, ddata in enumerate(raw):
        if not isinstance(ddata, dict):
            raise DeserializationError(
                f"Device [{i}] of {context} must be a JSON object"
            )
        _check_fields(ddata, _DEVICE_FIELDS, f"device [{i}] of {context}")
        devices.append(DeviceRecord(
            device_id=_require_str(ddata["deviceId"], "deviceId"),
            registered_at=_require_str(ddata["registeredAt"], "registeredAt"),
        ))
    return devices


# ══════════════════════════════════════════════════════════════
# File I/O
# ══════════════════════════════════════════════════════════════

def export_state_to_file(state: StateTree, path: pathlib.Path) -> None:
    """
    Write the snapshot document to path. UTF-8 only.

    The document goes to a sibling temp file that is then renamed over
    path, so readers see either the old or the new snapshot, never a
    partial one. Missing parent directories are created.
    """
    document = encode_state(state)
    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(directory),
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(document)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def import_state_from_file(path: pathlib.Path, mode: str) -> StateTree:
    """
    Read and strictly decode a snapshot file.

    Fails if unreadable or malformed. No fallback. No silent repair.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DeserializationError(
            f"Failed to read snapshot file {path}: {exc}"
        ) from exc
    return decode_state(text, mode)


# ══════════════════════════════════════════════════════════════
# Internal Validation Helpers
# ══════════════════════════════════════════════════════════════

def _check_fields(
    data: dict, expected: frozenset, context: str,
) -> None:
    """Fail if data has missing or unknown fields vs expected set."""
    actual = set(data.keys())
    missing = expected - actual
    unknown = actual - expected
    if missing:
        raise DeserializationError(
            f"Missing fields in {context}: {sorted(missing)}"
        )
    if unknown:
        raise DeserializationError(
            f"Unknown fields in {context}: {sorted(unknown)}"
        )


def _require_int(value: Any, name: str) -> int:
    # bool is an int subclass in Python; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise DeserializationError(
            f"Field '{name}' must be int, got {type(value).__name__}"
        )
    return value


def _require_str(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise DeserializationError(
            f"Field '{name}' must be string, got {type(value).__name__}"
        )
    return value


def _decode_str_list(raw: Any, context: str) -> List[str]:
    if not isinstance(raw, list) or not all(isinstance(x, str) for x in raw):
        raise DeserializationError(f"{context} must be a JSON array of strings")
    return list(raw)
