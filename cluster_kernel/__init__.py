"""
Cluster Kernel
Deterministic, in-memory device-to-cluster placement for schools.
"""

from .constants import (
    FREQUENCY_CHANNELS,
    MAX_DEVICES_PER_CLUSTER,
    MAX_HOSTS_PER_CLUSTER,
    MODE_CLUSTERED,
    MODE_FLAT,
    MODES,
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
    RolePosition,
    StateTree,
    cluster_name_for,
)
from .errors import (
    ClusterNotFoundError,
    NotFoundError,
    RegistryError,
    SchoolNotFoundError,
    ValidationError,
)
from .invariants import InvariantViolationError, validate_invariants
from .placement import (
    derive_role,
    find_or_create_cluster,
    place_device,
    place_device_clustered,
    place_device_flat,
)
from .composer import (
    compose_cluster_detail,
    compose_clustered_summary,
    compose_flat_summary,
    compose_registration,
)
from .snapshot import (
    DeserializationError,
    SerializationError,
    SnapshotError,
    decode_state,
    encode_state,
    export_state_to_file,
    import_state_from_file,
)
from .state import create_initial_state

__all__ = [
    "FREQUENCY_CHANNELS",
    "MAX_DEVICES_PER_CLUSTER",
    "MAX_HOSTS_PER_CLUSTER",
    "MODE_CLUSTERED",
    "MODE_FLAT",
    "MODES",
    "ROLE_CLIENT",
    "ROLE_HOST1",
    "ROLE_HOST2",
    "ROLE_HOST3",
    "Cluster",
    "ClusteredSchool",
    "ClusterPlacement",
    "DeviceRecord",
    "FlatPlacement",
    "FlatSchool",
    "RolePosition",
    "StateTree",
    "cluster_name_for",
    "ClusterNotFoundError",
    "NotFoundError",
    "RegistryError",
    "SchoolNotFoundError",
    "ValidationError",
    "InvariantViolationError",
    "validate_invariants",
    "derive_role",
    "find_or_create_cluster",
    "place_device",
    "place_device_clustered",
    "place_device_flat",
    "compose_cluster_detail",
    "compose_clustered_summary",
    "compose_flat_summary",
    "compose_registration",
    "DeserializationError",
    "SerializationError",
    "SnapshotError",
    "decode_state",
    "encode_state",
    "export_state_to_file",
    "import_state_from_file",
    "create_initial_state",
]
