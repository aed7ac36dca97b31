import logging

import redis
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from app.database import Database, get_database
from app.utils.cache import CacheService, get_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "/",
    summary="Health check",
    description="Basic health check endpoint."
)
def health_check():
    """Simple health check."""
    return {"status": "healthy", "message": "Sweet Shop API is running"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if all services (DB, Redis) are ready."
)
def readiness_check(
    database: Database = Depends(get_database),
    cache: CacheService = Depends(get_cache),
):
    """
    Readiness check for all dependencies.

    Returns status of:
    - Database connection
    - Redis connection
    """
    checks = {
        "database": False,
        "redis": False
    }

    # Check database
    try:
        checks["database"] = database.ping()
    except SQLAlchemyError as e:
        logger.warning(f"Database readiness check failed: {e}")
        checks["database_error"] = str(e)

    # Check Redis
    try:
        checks["redis"] = cache.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis readiness check failed: {e}")
        checks["redis_error"] = str(e)

    # Determine overall status
    all_healthy = all([checks["database"], checks["redis"]])

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks
    }
