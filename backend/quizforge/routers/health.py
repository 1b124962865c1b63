"""
Health Check Endpoints

Provides health check endpoints for monitoring and orchestration.

Endpoints:
- GET /api/health - Basic health check
- GET /api/health/detailed - Health with dependency checks
"""

import redis.asyncio as redis
from fastapi import APIRouter
from sqlalchemy import text

from quizforge import __version__
from quizforge.config import settings

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    """
    Basic health check.

    Returns a simple status response indicating the API is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": __version__,
    }


@router.get("/detailed")
async def detailed_health_check():
    """
    Detailed health check with dependency status.

    Checks connectivity to:
    - PostgreSQL (only when it backs the job store)
    - Redis (Celery broker)
    """
    health = {
        "status": "healthy",
        "service": settings.APP_NAME,
        "job_store": settings.JOB_STORE_BACKEND,
        "dependencies": {},
    }

    if settings.JOB_STORE_BACKEND == "postgres":
        from quizforge.db.base import async_session_maker

        try:
            async with async_session_maker() as session:
                await session.execute(text("SELECT 1"))
            health["dependencies"]["postgres"] = {"status": "healthy"}
        except Exception as e:
            health["dependencies"]["postgres"] = {"status": "unhealthy", "error": str(e)}
            health["status"] = "degraded"

    try:
        client = redis.from_url(settings.REDIS_URL)
        try:
            await client.ping()
        finally:
            await client.aclose()
        health["dependencies"]["redis"] = {"status": "healthy"}
    except Exception as e:
        health["dependencies"]["redis"] = {"status": "unhealthy", "error": str(e)}
        health["status"] = "degraded"

    return health
