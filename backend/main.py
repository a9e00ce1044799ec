# file: backend/main.py
"""
FastAPI Backend — School Device Cluster Registry.

State lives in memory for the life of the process and is written back
to a JSON snapshot after every successful mutation.

Endpoints:
  POST   /api/get-hosts                                  — register device, return hosts
  GET    /api/school/{schoolCode}                        — school summary
  GET    /api/school/{schoolCode}/cluster/{clusterNumber}    (clustered only)
  DELETE /api/school/{schoolCode}                        — reset school
  DELETE /api/school/{schoolCode}/cluster/{clusterNumber}    (clustered only)
  GET    /health, /ping
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from cluster_kernel.constants import (
    MAX_DEVICES_PER_CLUSTER,
    MAX_HOSTS_PER_CLUSTER,
    MODE_CLUSTERED,
)
from cluster_kernel.domain_types import utc_now_iso
from cluster_kernel.errors import RegistryError, ValidationError
from cluster_runtime.session import RegistrySession
from cluster_runtime.snapshot_repository import JsonSnapshotRepository

from backend.settings import Settings, load_settings

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "School code and device ID are required"

# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------


class GetHostsRequest(BaseModel):
    schoolCode: Optional[str] = None
    deviceId: Optional[str] = None


# ---------------------------------------------------------------------------
# Core helpers
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
    )


def _get_session(request: Request) -> RegistrySession:
    return request.app.state.session


def _build_session(settings: Settings) -> RegistrySession:
    repo = JsonSnapshotRepository(settings.data_file, settings.mode)
    return RegistrySession.from_repository(repo)


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    session: Optional[RegistrySession] = None,
) -> FastAPI:
    """
    Build the FastAPI app for one variant.

    If no session is given, the snapshot at settings.data_file is loaded.
    Cluster routes are only mounted in clustered mode.
    """
    settings = settings or load_settings()
    if session is None:
        session = _build_session(settings)
    if session.mode != settings.mode:
        raise ValueError(
            f"Session mode {session.mode!r} does not match settings mode "
            f"{settings.mode!r}"
        )
    clustered = settings.mode == MODE_CLUSTERED

    app = FastAPI(
        title="School Cluster Registry API",
        version="1.0.0",
        description="Assigns school devices to host/client roles in bounded clusters",
    )
    app.state.settings = settings
    app.state.session = session

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            settings.frontend_url,
            "http://localhost:3000",
            "http://localhost:3001",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    # -- Error mapping -------------------------------------------------------

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.info("Rejected request body on %s: %s", request.url.path, exc.errors())
        return _error(400, MISSING_FIELDS_MESSAGE)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # a known path with an unhandled method is still an unmatched route
        if exc.status_code in (404, 405):
            return _error(404, "Route not found")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")

    # -- Endpoints -----------------------------------------------------------

    @app.post("/api/get-hosts")
    def get_hosts(request: Request, req: Optional[GetHostsRequest] = None):
        """Register (or look up) a device and return the hosts it should use."""
        if req is None or not req.schoolCode or not req.deviceId:
            raise ValidationError(MISSING_FIELDS_MESSAGE)
        return _get_session(request).register(req.schoolCode, req.deviceId)

    @app.get("/api/school/{school_code}")
    def get_school(request: Request, school_code: str):
        return _get_session(request).school_summary(school_code)

    @app.delete("/api/school/{school_code}")
    def reset_school(request: Request, school_code: str):
        return _get_session(request).reset_school(school_code)

    if clustered:
        @app.get("/api/school/{school_code}/cluster/{cluster_number}")
        def get_cluster(request: Request, school_code: str, cluster_number: str):
            return _get_session(request).cluster_detail(school_code, cluster_number)

        @app.delete("/api/school/{school_code}/cluster/{cluster_number}")
        def reset_cluster(request: Request, school_code: str, cluster_number: str):
            return _get_session(request).reset_cluster(school_code, cluster_number)

    @app.get("/health")
    def health(request: Request):
        body = {
            "success": True,
            "message": "Server is running",
            "timestamp": utc_now_iso(),
            "mode": settings.mode,
            "persistence": _get_session(request).repository.metrics.as_dict(),
        }
        if clustered:
            body["maxDevicesPerCluster"] = MAX_DEVICES_PER_CLUSTER
            body["maxHostsPerCluster"] = MAX_HOSTS_PER_CLUSTER
        return body

    @app.get("/ping")
    def ping():
        return {"success": True, "message": "Pong", "timestamp": utc_now_iso()}

    return app
