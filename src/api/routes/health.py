"""
Health check endpoints.

Health checks are essential for:
- Load balancers to know if the service is alive
- Deployment systems to verify rollouts
- Debugging storage problems in production

We provide:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve traffic?)
- /health/storage/head?key=...: Does a given object exist? Useful when
  the storefront shows a broken image.
"""

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ... import __version__
from ...core.storage.errors import StorageError
from ..dependencies import SettingsDep, StorageDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


class ObjectHeadResponse(BaseModel):
    ok: bool
    exists: bool
    meta: Optional[dict[str, Any]] = None


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not call external services.",
)
async def health_check(request: Request, settings: SettingsDep) -> HealthResponse:
    """
    Liveness check - is the process alive?

    Reports the bucket in use without probing it.
    """
    storage = getattr(request.app.state, "storage", None)
    details: dict[str, Any] = {"mock_mode": settings.storage_mock_mode}
    if storage is not None:
        snapshot = storage.describe()
        details["bucket"] = snapshot.bucket_name
        details["project_id"] = snapshot.project_id
        details["storage_ready"] = snapshot.initialized

    return HealthResponse(status="ok", version=__version__, details=details)


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic, 503 otherwise.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(request: Request, settings: SettingsDep) -> JSONResponse:
    """
    Readiness check - can we serve traffic?

    Checks that configuration is valid and storage finished initializing.
    Returns 503 if any check fails, which tells load balancers not to
    route traffic here.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Invalid settings: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    storage = getattr(request.app.state, "storage", None)
    if storage is not None and storage.ready:
        checks.append(ReadinessCheck(name="storage", status="ok"))
    else:
        checks.append(ReadinessCheck(
            name="storage",
            status="error",
            error="storage not initialized"
        ))

    all_ok = all(c.status == "ok" for c in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )

    if not all_ok:
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(),
    )


@router.get(
    "/storage/head",
    response_model=ObjectHeadResponse,
    summary="Check whether an object exists",
    responses={
        400: {"description": "Missing key"},
        404: {"description": "Object does not exist", "model": ObjectHeadResponse},
    },
)
async def head_object(
    storage: StorageDep,
    key: Annotated[Optional[str], Query(description="Object key, e.g. foods/1700000000000-jollof.jpg")] = None,
) -> JSONResponse:
    if not key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="missing ?key=")

    try:
        stored = await storage.stat(key)
    except StorageError as e:
        logger.error("Object head failed", extra={"key": key, "error": str(e)})
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed")

    if stored is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ObjectHeadResponse(ok=False, exists=False).model_dump(),
        )

    return JSONResponse(
        content=ObjectHeadResponse(ok=True, exists=True, meta=stored.metadata.to_dict()).model_dump(),
    )
