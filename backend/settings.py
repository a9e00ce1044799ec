"""
Backend configuration.

Environment variables, optionally pre-loaded from backend/.env:

  CLUSTER_MODE   flat | clustered           (default: clustered)
  PORT           listening port             (default: 3000 clustered / 3333 flat)
  HOST           bind address               (default: 0.0.0.0)
  DATA_FILE      snapshot file path         (default depends on mode)
  FRONTEND_URL   extra CORS origin          (default: http://localhost:3000)
  LOG_LEVEL      logging level name         (default: INFO)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from cluster_kernel.constants import MODE_CLUSTERED, MODE_FLAT, MODES

env_path = os.path.join(os.path.dirname(__file__), ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)

DEFAULT_PORTS = {
    MODE_FLAT: 3333,
    MODE_CLUSTERED: 3000,
}

DEFAULT_DATA_FILES = {
    MODE_FLAT: "school_devices.json",
    MODE_CLUSTERED: "school_clusters.json",
}

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    mode: str = MODE_CLUSTERED
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORTS[MODE_CLUSTERED]
    data_file: str = DEFAULT_DATA_FILES[MODE_CLUSTERED]
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment. Raises ValueError on bad values."""
    env = os.environ if environ is None else environ

    mode = env.get("CLUSTER_MODE", MODE_CLUSTERED).strip().lower()
    if mode not in MODES:
        raise ValueError(
            f"Invalid CLUSTER_MODE {mode!r}. Valid modes: {sorted(MODES)}"
        )

    raw_port = env.get("PORT", "")
    try:
        port = int(raw_port) if raw_port else DEFAULT_PORTS[mode]
    except ValueError:
        raise ValueError(f"Invalid PORT {raw_port!r}: must be an integer") from None

    return Settings(
        mode=mode,
        host=env.get("HOST", "0.0.0.0"),
        port=port,
        data_file=env.get("DATA_FILE", DEFAULT_DATA_FILES[mode]),
        frontend_url=env.get("FRONTEND_URL", "http://localhost:3000"),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
