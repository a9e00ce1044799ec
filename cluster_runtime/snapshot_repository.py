"""
Snapshot Repository — single JSON file holding the whole StateTree.

The file is rewritten in full after every successful mutation.
Writes go to a sibling temp file that is then renamed over the target,
so a crash mid-write leaves the previous snapshot in place.

load() and save() never raise:
  - load() falls back to an empty tree when the file is missing or bad.
  - save() reports failures through SaveResult and PersistenceMetrics.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from cluster_kernel.domain_types import StateTree, utc_now_iso
from cluster_kernel.snapshot import (
    DeserializationError,
    SnapshotError,
    export_state_to_file,
    import_state_from_file,
)
from cluster_kernel.state import create_initial_state

from .observability import PersistenceMetrics, SaveResult

logger = logging.getLogger(__name__)


class JsonSnapshotRepository:
    """Best-effort snapshot store backed by one pretty-printed JSON file."""

    def __init__(
        self,
        path: str | Path,
        mode: str,
        metrics: Optional[PersistenceMetrics] = None,
    ) -> None:
        self._path = Path(path)
        self._mode = mode
        self._metrics = metrics or PersistenceMetrics()
        self._write_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def metrics(self) -> PersistenceMetrics:
        return self._metrics

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load(self) -> StateTree:
        """Load the snapshot, or an empty tree if there is none usable."""
        if not self._path.exists():
            logger.info(
                "No existing data file found at %s. Starting with empty data.",
                self._path,
            )
            return create_initial_state(self._mode)

        try:
            state = import_state_from_file(self._path, self._mode)
        except DeserializationError as exc:
            logger.error(
                "Error loading data from %s, starting with empty data: %s",
                self._path, exc,
            )
            return create_initial_state(self._mode)

        self._metrics.loaded_from_snapshot = True
        logger.info(
            "Data loaded from %s: %d school(s)", self._path, len(state.schools),
        )
        return state

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, state: StateTree) -> SaveResult:
        """Overwrite the snapshot with the full state."""
        with self._write_lock:
            try:
                export_state_to_file(state, self._path)
                result = SaveResult(ok=True, path=str(self._path))
                logger.debug("Data saved to %s", self._path)
            except (SnapshotError, OSError) as exc:
                result = SaveResult(ok=False, path=str(self._path), error=str(exc))
                logger.error("Error saving data to %s: %s", self._path, exc)
            self._metrics.record_save(result, utc_now_iso())
        return result
