"""
Cluster Runtime — Persistence Layer

Snapshot persistence and locking around the Cluster Kernel.
"""

from .observability import PersistenceMetrics, SaveResult
from .snapshot_repository import JsonSnapshotRepository
from .session import RegistrySession

__all__ = [
    "PersistenceMetrics",
    "SaveResult",
    "JsonSnapshotRepository",
    "RegistrySession",
]
