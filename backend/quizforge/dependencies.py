"""
FastAPI Dependencies

Builds the GenerationJobService for routes, Celery tasks and scripts from
the configured job store backend.

Backends (Settings.JOB_STORE_BACKEND):
- postgres: SQLJobStore / SQLContentStore on the shared async engine
- memory: process-wide in-memory stores (local runs and tests)
"""

from functools import lru_cache
from typing import Optional

from quizforge.config import settings
from quizforge.services.content_store import (
    ContentStore,
    InMemoryContentStore,
    SQLContentStore,
)
from quizforge.services.generation.workers import GenerationWorkers
from quizforge.services.job_store import InMemoryJobStore, JobStore, SQLJobStore
from quizforge.services.llm import get_llm_client
from quizforge.services.pipeline.service import GenerationJobService


@lru_cache()
def get_memory_stores() -> tuple[InMemoryJobStore, InMemoryContentStore]:
    """Process-wide in-memory stores, shared by every service instance."""
    return InMemoryJobStore(), InMemoryContentStore()


def build_stores(task_context: bool = False) -> tuple[JobStore, ContentStore]:
    """
    Create the job and content stores for the configured backend.

    Args:
        task_context: Use the NullPool session maker (safe for Celery tasks
            that run under asyncio.run)
    """
    if settings.JOB_STORE_BACKEND == "memory":
        return get_memory_stores()

    from quizforge.db.base import async_session_maker, task_session_maker

    session_maker = task_session_maker if task_context else async_session_maker
    return SQLJobStore(session_maker), SQLContentStore(session_maker)


def build_job_service(
    task_context: bool = False,
    workers: Optional[GenerationWorkers] = None,
) -> GenerationJobService:
    """Create a GenerationJobService with LLM-backed workers unless given others."""
    job_store, content_store = build_stores(task_context=task_context)
    if workers is None:
        workers = GenerationWorkers.from_llm_client(get_llm_client())
    return GenerationJobService(job_store, content_store, workers)


def get_job_service() -> GenerationJobService:
    """
    Dependency providing the job service to route handlers.

    Usage:
        @router.get("/{job_id}")
        async def get_job(job_id: str, service: GenerationJobService = Depends(get_job_service)):
            ...
    """
    return build_job_service()
