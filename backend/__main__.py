"""
Process entry point.

Run:  python -m backend
"""

from __future__ import annotations

import logging

import uvicorn

from backend.main import create_app
from backend.settings import configure_logging, load_settings

logger = logging.getLogger(__name__)


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    app = create_app(settings)

    logger.info("Server is running in %s mode on port %d", settings.mode, settings.port)
    logger.info("Health check: http://localhost:%d/health", settings.port)
    logger.info("Main API: POST http://localhost:%d/api/get-hosts", settings.port)

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
