from __future__ import annotations

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from deeptransfer.core.observability.metrics import inc_named

router = APIRouter()


@router.get("/health")
def health_check():
    return {"status": "healthy"}


@router.get("/api/v1/health/live")
def liveness():
    inc_named("health_live")
    return {"status": "alive"}


@router.get("/api/v1/health/ready")
def readiness(request: Request):
    """
    Readiness reflects ability to serve traffic: a catalog with at least one
    entity and a store must be attached to the app.
    """
    inc_named("health_ready")

    problems: list[str] = []
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        problems.append("catalog_missing")
    elif len(catalog) == 0:
        problems.append("catalog_empty")
    if getattr(request.app.state, "store", None) is None:
        problems.append("store_missing")

    if problems:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "problems": problems},
        )

    return {"status": "ready", "entities": len(catalog)}
