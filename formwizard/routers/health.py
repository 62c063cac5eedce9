"""Health check endpoints for load balancers and monitoring."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from formwizard.config import settings
from formwizard.stores import SessionStore, get_session_store

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check():
    """Lightweight liveness check (does not touch the session store)."""
    return {
        "status": "ok",
        "service": "formwizard",
        "timestamp": _now(),
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(store: SessionStore = Depends(get_session_store)):
    """Readiness check: 200 only if the session store answers."""
    store_ok = await store.ping()
    checks = {
        "service": "ok",
        "session_store": "ok" if store_ok else "error",
        "session_backend": settings.session_backend,
    }

    return JSONResponse(
        status_code=status.HTTP_200_OK if store_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if store_ok else "unhealthy",
            "service": "formwizard",
            "checks": checks,
            "timestamp": _now(),
        },
    )
