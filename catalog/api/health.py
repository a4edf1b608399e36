from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from catalog.database import get_db
from catalog.utils.cache import cache_service

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "",
    summary="Health check",
    description="Basic health check endpoint."
)
def health_check():
    """Simple health check."""
    return {"status": "healthy"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if all services (DB, Redis) are ready."
)
def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check for all dependencies.

    Returns status of:
    - Database connection
    - Redis connection (reported as disabled when caching is off)
    """
    checks = {
        "database": False,
        "redis": False
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        checks["database_error"] = str(e)

    # Check Redis
    if not cache_service.enabled:
        checks["redis"] = "disabled"
    else:
        try:
            cache_service.ping()
            checks["redis"] = True
        except Exception as e:
            checks["redis_error"] = str(e)

    # Determine overall status
    all_healthy = all([checks["database"], checks["redis"]])

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks
    }
