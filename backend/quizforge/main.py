"""
Quizforge API

FastAPI application exposing the content generation job pipeline.

Run:
    uvicorn quizforge.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quizforge import __version__
from quizforge.config import settings
from quizforge.middleware import setup_error_handling
from quizforge.routers import content_router, health_router, jobs_router, topics_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"Starting {settings.APP_NAME} {__version__} (job store: {settings.JOB_STORE_BACKEND})"
    )
    yield
    if settings.JOB_STORE_BACKEND == "postgres":
        from quizforge.db.base import engine

        await engine.dispose()


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title=settings.APP_NAME, version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)

    app.include_router(health_router.router)
    app.include_router(jobs_router.router)
    app.include_router(topics_router.router)
    app.include_router(content_router.router)
    return app


app = create_app()
