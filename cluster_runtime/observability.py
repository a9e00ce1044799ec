"""
Observability — In-process persistence metrics.

No external dependencies. The snapshot repository records every save
outcome here so durability failures are visible to /health and tests.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a single snapshot write."""

    ok: bool
    path: str
    error: Optional[str] = None


@dataclass
class PersistenceMetrics:
    """Running counters for snapshot loads and saves."""

    save_count: int = 0
    save_failures: int = 0
    last_error: Optional[str] = None
    last_saved_at: Optional[str] = None
    loaded_from_snapshot: bool = False
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False,
    )

    def record_save(self, result: SaveResult, at: str) -> None:
        with self._lock:
            self.save_count += 1
            if result.ok:
                self.last_saved_at = at
            else:
                self.save_failures += 1
                self.last_error = result.error

    def as_dict(self) -> dict:
        with self._lock:
            return {
                "saveCount": self.save_count,
                "saveFailures": self.save_failures,
                "lastError": self.last_error,
                "lastSavedAt": self.last_saved_at,
                "loadedFromSnapshot": self.loaded_from_snapshot,
            }
