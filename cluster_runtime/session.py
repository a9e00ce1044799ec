"""
Registry Session — orchestrates placement + persistence.

Apply-before-persist order:
  1. mutate the in-memory StateTree      — placement / reset
  2. repository.save(state)              — only if step 1 succeeded
  3. compose the response payload

All operations run under one session lock. FastAPI executes sync
endpoints on a thread pool, and the placement read-then-write sequence
(scan, else find space, else create, then append) must not interleave.
The snapshot encoder also walks the whole tree, so saves hold the same
lock.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Any, Dict, Optional, Union

from cluster_kernel.composer import (
    compose_cluster_detail,
    compose_clustered_summary,
    compose_flat_summary,
    compose_registration,
)
from cluster_kernel.domain_types import (
    ClusteredSchool,
    StateTree,
    cluster_name_for,
    utc_now_iso,
)
from cluster_kernel.errors import ClusterNotFoundError, SchoolNotFoundError
from cluster_kernel.placement import Clock, place_device

from .observability import SaveResult
from .snapshot_repository import JsonSnapshotRepository

logger = logging.getLogger(__name__)

ClusterNumber = Union[int, str]


class RegistrySession:
    """
    Owns the StateTree for the lifetime of the process.

    Query methods raise NotFoundError subclasses; mutations persist the
    full snapshot on success and keep the SaveResult in `last_save`.
    """

    def __init__(
        self,
        state: StateTree,
        repository: JsonSnapshotRepository,
        rng: Optional[random.Random] = None,
        clock: Clock = utc_now_iso,
    ) -> None:
        self._state = state
        self._repo = repository
        self._rng = rng
        self._clock = clock
        self._lock = threading.RLock()
        self.last_save: Optional[SaveResult] = None

    @classmethod
    def from_repository(
        cls,
        repository: JsonSnapshotRepository,
        rng: Optional[random.Random] = None,
        clock: Clock = utc_now_iso,
    ) -> "RegistrySession":
        """Load the persisted snapshot and wrap it in a session."""
        return cls(repository.load(), repository, rng=rng, clock=clock)

    # -- State access -------------------------------------------------------

    @property
    def state(self) -> StateTree:
        return self._state

    @property
    def mode(self) -> str:
        return self._state.mode

    @property
    def repository(self) -> JsonSnapshotRepository:
        return self._repo

    # -- Registration ---------------------------------------------------------

    def register(self, school_code: str, device_id: str) -> Dict[str, Any]:
        """Place a device and return its registration payload."""
        with self._lock:
            placement = place_device(
                self._state, school_code, device_id,
                rng=self._rng, clock=self._clock,
            )
            if not placement.is_existing:
                self._persist()
            response = compose_registration(placement)

        logger.info(
            "Registered device %s in school %s: role=%s position=%d%s",
            device_id, school_code, response["role"], response["position"],
            f" cluster={response['clusterName']}" if "clusterName" in response else "",
        )
        return response

    # -- Queries --------------------------------------------------------------

    def school_summary(self, school_code: str) -> Dict[str, Any]:
        with self._lock:
            school = self._require_school(school_code)
            if isinstance(school, ClusteredSchool):
                return compose_clustered_summary(school_code, school)
            return compose_flat_summary(school_code, school)

    def cluster_detail(
        self, school_code: str, cluster_number: ClusterNumber,
    ) -> Dict[str, Any]:
        with self._lock:
            school = self._require_clustered_school(school_code)
            name = cluster_name_for(school_code, cluster_number)
            cluster = school.clusters.get(name)
            if cluster is None:
                raise ClusterNotFoundError(name)
            return compose_cluster_detail(school_code, name, cluster)

    # -- Resets ---------------------------------------------------------------

    def reset_school(self, school_code: str) -> Dict[str, Any]:
        with self._lock:
            self._require_school(school_code)
            del self._state.schools[school_code]
            self._persist()

        logger.info("School %s data reset", school_code)
        return {
            "success": True,
            "message": f"School {school_code} data reset successfully",
        }

    def reset_cluster(
        self, school_code: str, cluster_number: ClusterNumber,
    ) -> Dict[str, Any]:
        with self._lock:
            school = self._require_clustered_school(school_code)
            name = cluster_name_for(school_code, cluster_number)
            cluster = school.clusters.get(name)
            if cluster is None:
                raise ClusterNotFoundError(name)
            school.total_devices -= cluster.device_count
            school.remove_cluster(name)
            self._persist()

        logger.info("Cluster %s reset (%d device(s) removed)", name, cluster.device_count)
        return {
            "success": True,
            "message": f"Cluster {name} reset successfully",
            "schoolCode": school_code,
            "clusterName": name,
            "remainingDevices": school.total_devices,
        }

    # -- Internal helpers -----------------------------------------------------

    def _require_school(self, school_code: str):
        school = self._state.get_school(school_code)
        if school is None:
            raise SchoolNotFoundError(school_code)
        return school

    def _require_clustered_school(self, school_code: str) -> ClusteredSchool:
        school = self._require_school(school_code)
        if not isinstance(school, ClusteredSchool):
            raise SchoolNotFoundError(school_code)
        return school

    def _persist(self) -> SaveResult:
        self.last_save = self._repo.save(self._state)
        return self.last_save
