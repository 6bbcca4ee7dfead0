"""Health & Readiness Probes: liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the cache store is unreachable (readiness)
"""

import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from subrecap.api.dependencies import get_store_factory

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "subrecap-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(store_factory=Depends(get_store_factory)):
    """Readiness probe: includes cache store connectivity."""
    try:
        cache_ok = await store_factory.health_check()
    except Exception as e:
        logger.error(f"Cache health check failed: {e}")
        cache_ok = False
    if not cache_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "cache_unavailable",
            },
        )
    return {"status": "ready", "checks": {"cache": "healthy"}}
