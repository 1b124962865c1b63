"""
Celery Task Definitions

Thin wrappers that run one GenerationJobService operation per task under
asyncio.run. Job-level failures are already recorded on the job by the
service, so tasks report them in their result dict rather than raising
(a Celery retry would replay an operation the state machine has moved
past).

Usage:
    from quizforge.services.tasks import plan_content, execute_generation

    plan_content.delay(job_id)
    execute_generation.delay(job_id, mcq_count=20, flashcard_count=10)
"""

import asyncio
import logging
from typing import Any, Optional

from quizforge.dependencies import build_job_service
from quizforge.middleware.error_handling import ServiceError
from quizforge.services.queue import celery_app

logger = logging.getLogger(__name__)


def _run(job_id: str, operation: str, coro) -> dict[str, Any]:
    """Run ``coro`` to completion and turn ServiceErrors into a failed result."""
    try:
        result = asyncio.run(coro)
    except ServiceError as e:
        logger.error(f"Task {operation} failed for job {job_id}: {e.message}")
        return {
            "success": False,
            "job_id": job_id,
            "error": e.error_code,
            "message": e.message,
        }
    return {"success": True, "job_id": job_id, **result}


@celery_app.task(name="quizforge.services.tasks.plan_content")
def plan_content(job_id: str) -> dict[str, Any]:
    """Plan counts for a general job."""

    async def run() -> dict[str, Any]:
        service = build_job_service(task_context=True)
        plan = await service.plan_content_generation(job_id)
        return {"plan": plan.model_dump()}

    return _run(job_id, "plan_content", run())


@celery_app.task(name="quizforge.services.tasks.execute_generation")
def execute_generation(
    job_id: str,
    mcq_count: int,
    flashcard_count: int,
    batch_size: Optional[int] = None,
) -> dict[str, Any]:
    """Generate every batch of a general job and wait for all reports."""

    async def run() -> dict[str, Any]:
        service = build_job_service(task_context=True)
        result = await service.execute_content_generation(
            job_id, mcq_count, flashcard_count, batch_size
        )
        return {
            "status": result.job.status.value,
            "message": result.message,
            "completed_batches": result.job.completed_batches,
            "failed_batches": result.job.failed_batches,
        }

    return _run(job_id, "execute_generation", run())


@celery_app.task(name="quizforge.services.tasks.suggest_assignment")
def suggest_assignment(job_id: str, scope_to_topic_name: Optional[str] = None) -> dict[str, Any]:
    """Append a new assignment suggestion batch."""

    async def run() -> dict[str, Any]:
        service = build_job_service(task_context=True)
        suggestions = await service.suggest_assignment(
            job_id, scope_to_topic_name=scope_to_topic_name
        )
        return {"suggestions": [s.model_dump() for s in suggestions]}

    return _run(job_id, "suggest_assignment", run())


@celery_app.task(name="quizforge.services.tasks.extract_marrow")
def extract_marrow(job_id: str) -> dict[str, Any]:
    """Extract MCQs and orphan explanations from a marrow job."""

    async def run() -> dict[str, Any]:
        service = build_job_service(task_context=True)
        job = await service.extract_marrow_content(job_id)
        return {"status": job.status.value, "suggested_new_mcq_count": job.suggested_new_mcq_count}

    return _run(job_id, "extract_marrow", run())


@celery_app.task(name="quizforge.services.tasks.generate_marrow")
def generate_marrow(job_id: str, count: int) -> dict[str, Any]:
    """Generate MCQs from orphan explanations and analyze key topics."""

    async def run() -> dict[str, Any]:
        service = build_job_service(task_context=True)
        job = await service.generate_and_analyze_marrow_content(job_id, count)
        return {"status": job.status.value, "key_topics": job.suggested_key_topics}

    return _run(job_id, "generate_marrow", run())
