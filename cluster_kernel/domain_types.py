"""
Cluster Kernel — Core Domain Types

Pure data. No placement logic.

────────────────────────────────────────────────
DOMAIN GLOSSARY
────────────────────────────────────────────────

School:
    All devices registered under one caller-supplied school code.

Cluster:
    A bounded group of devices inside a school, with its own hosts.

Host:
    One of the first three devices of a cluster (or flat school).
    Hosts are the endpoints every other device connects to.

Client:
    Any device after the first three.

────────────────────────────────────────────────
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from .constants import MAX_DEVICES_PER_CLUSTER, MODE_CLUSTERED, MODE_FLAT


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with a trailing Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def cluster_name_for(school_code: str, cluster_number: Union[int, str]) -> str:
    return f"{school_code}_{cluster_number}"


@dataclass
class DeviceRecord:
    """A device seen at least once. Never mutated after creation."""

    device_id: str
    registered_at: str


@dataclass
class Cluster:
    """A bounded device group with up to three hosts."""

    cluster_number: int
    frequency: int
    created_at: str
    devices: List[DeviceRecord] = field(default_factory=list)
    hosts: List[str] = field(default_factory=list)

    @property
    def device_count(self) -> int:
        return len(self.devices)

    @property
    def is_full(self) -> bool:
        return len(self.devices) >= MAX_DEVICES_PER_CLUSTER

    def device_ids(self) -> List[str]:
        return [d.device_id for d in self.devices]

    def index_of(self, device_id: str) -> int:
        """0-based position of device_id, or -1."""
        for i, d in enumerate(self.devices):
            if d.device_id == device_id:
                return i
        return -1


@dataclass
class ClusteredSchool:
    """
    A school split into clusters.

    Creation order lives in `cluster_order`; `clusters` is the name-keyed
    lookup. Both are only changed through add_cluster / remove_cluster.
    """

    clusters: Dict[str, Cluster] = field(default_factory=dict)
    cluster_order: List[str] = field(default_factory=list)
    total_devices: int = 0
    last_cluster_number: int = 0

    def add_cluster(self, name: str, cluster: Cluster) -> None:
        if name in self.clusters:
            raise ValueError(f"Cluster {name!r} already exists")
        self.clusters[name] = cluster
        self.cluster_order.append(name)

    def remove_cluster(self, name: str) -> Cluster:
        cluster = self.clusters.pop(name)
        self.cluster_order.remove(name)
        return cluster

    def ordered_clusters(self) -> List[tuple]:
        """(name, cluster) pairs in creation order."""
        return [(name, self.clusters[name]) for name in self.cluster_order]


@dataclass
class FlatSchool:
    """A school with one unbounded device list."""

    devices: List[DeviceRecord] = field(default_factory=list)
    hosts: List[str] = field(default_factory=list)

    def device_ids(self) -> List[str]:
        return [d.device_id for d in self.devices]

    def index_of(self, device_id: str) -> int:
        for i, d in enumerate(self.devices):
            if d.device_id == device_id:
                return i
        return -1


School = Union[FlatSchool, ClusteredSchool]


@dataclass
class StateTree:
    """Complete registry state for one variant."""

    mode: str = MODE_CLUSTERED
    schools: Dict[str, School] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.mode not in (MODE_FLAT, MODE_CLUSTERED):
            raise ValueError(f"Unknown mode {self.mode!r}")

    @property
    def is_clustered(self) -> bool:
        return self.mode == MODE_CLUSTERED

    def get_school(self, school_code: str) -> Optional[School]:
        return self.schools.get(school_code)

    def get_or_create_school(self, school_code: str) -> School:
        school = self.schools.get(school_code)
        if school is None:
            school = ClusteredSchool() if self.is_clustered else FlatSchool()
            self.schools[school_code] = school
        return school


@dataclass(frozen=True)
class RolePosition:
    """Role and visible host slots derived from a device's index."""

    index: int
    role: str
    host_device_id: Optional[str]
    host2_device_id: Optional[str]
    host3_device_id: Optional[str]

    @property
    def position(self) -> int:
        return self.index + 1


@dataclass(frozen=True)
class FlatPlacement:
    school_code: str
    device_id: str
    school: FlatSchool
    role: RolePosition
    is_existing: bool


@dataclass(frozen=True)
class ClusterPlacement:
    school_code: str
    device_id: str
    school: ClusteredSchool
    cluster_name: str
    cluster: Cluster
    role: RolePosition
    is_existing: bool


Placement = Union[FlatPlacement, ClusterPlacement]
