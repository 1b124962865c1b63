"""API Routers package."""

from quizforge.routers import content as content_router
from quizforge.routers import health as health_router
from quizforge.routers import jobs as jobs_router
from quizforge.routers import topics as topics_router

__all__ = ["content_router", "health_router", "jobs_router", "topics_router"]
