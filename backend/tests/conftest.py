"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across unit and integration tests.
Unit tests run against the in-memory stores with scripted AI workers, so
they need neither PostgreSQL nor an LLM provider.
"""

import os
import sys
from pathlib import Path
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root so POSTGRES_TEST_* variables are available
_project_root = Path(__file__).parent.parent.parent
if (_project_root / ".env").exists():
    load_dotenv(_project_root / ".env")

# Settings are read at import time, so the backend has to be chosen before
# any quizforge module is imported.
os.environ["JOB_STORE_BACKEND"] = "memory"
os.environ["DEBUG"] = "false"

from quizforge.config.generation import GenerationSettings  # noqa: E402
from quizforge.enums.content import ContentSource, TopicSource  # noqa: E402
from quizforge.enums.job import JobStatus, PipelineType  # noqa: E402
from quizforge.models.job import (  # noqa: E402
    AwaitingReviewData,
    BatchOutput,
    ContentPlan,
    Job,
    KeyTopicAnalysis,
    MarrowExtraction,
)
from quizforge.services.content_store import InMemoryContentStore  # noqa: E402
from quizforge.services.generation.workers import GenerationWorkers  # noqa: E402
from quizforge.services.job_store import InMemoryJobStore  # noqa: E402
from quizforge.services.pipeline.controller import PipelineController  # noqa: E402
from quizforge.services.pipeline.service import GenerationJobService  # noqa: E402
from tests.factories import (  # noqa: E402
    SAMPLE_TEXT,
    make_batch_output,
    make_flashcard,
    make_mcq,
)


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_TEXT


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture
def test_generation_settings() -> GenerationSettings:
    """Generation settings with short timeouts for fast failure tests."""
    return GenerationSettings(
        WORKER_TIMEOUT_SECONDS=0.5,
        BATCH_TIMEOUT_SECONDS=0.5,
        MAX_CONCURRENT_BATCHES=4,
        MAX_CONFLICT_RETRIES=5,
        DEFAULT_BATCH_SIZE=10,
    )


# ============================================================================
# Stores and pipeline components
# ============================================================================


@pytest.fixture
def job_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def controller(job_store: InMemoryJobStore) -> PipelineController:
    return PipelineController(job_store, max_conflict_retries=5)


@pytest.fixture
def workers() -> GenerationWorkers:
    """
    Scripted AI workers.

    Each worker is an AsyncMock; tests override return_value/side_effect
    as needed. Batch generation echoes its targets by default.
    """

    async def echo_batch(
        text_chunk: str,
        batch_number: int,
        mcq_count: int,
        flashcard_count: int,
        job_id: Optional[str] = None,
    ) -> BatchOutput:
        return make_batch_output(mcq_count, flashcard_count, offset=batch_number * 100)

    return GenerationWorkers(
        planner=AsyncMock(
            return_value=ContentPlan(
                mcq_count=20,
                flashcard_count=10,
                suggested_topic="Neonatology",
                suggested_chapter="Neonatal Jaundice",
            )
        ),
        batch_generator=AsyncMock(side_effect=echo_batch),
        marrow_extractor=AsyncMock(
            return_value=MarrowExtraction(
                mcqs=[make_mcq(1, source=ContentSource.MARROW_EXTRACTED)],
                orphan_explanations=["Orphan one", "Orphan two", "Orphan three"],
            )
        ),
        explanation_generator=AsyncMock(
            side_effect=lambda explanations, count, job_id=None: [
                make_mcq(50 + i, source=ContentSource.MARROW_AI_GENERATED) for i in range(count)
            ]
        ),
        key_topic_analyzer=AsyncMock(
            return_value=KeyTopicAnalysis(
                suggested_topic="Neonatology",
                suggested_chapter="Neonatal Jaundice",
                key_topics=["bilirubin", "phototherapy"],
            )
        ),
        assignment_suggester=AsyncMock(return_value=[]),
    )


@pytest.fixture
def service(
    job_store: InMemoryJobStore,
    content_store: InMemoryContentStore,
    workers: GenerationWorkers,
    test_generation_settings: GenerationSettings,
) -> GenerationJobService:
    return GenerationJobService(job_store, content_store, workers, test_generation_settings)


# ============================================================================
# Jobs
# ============================================================================


@pytest.fixture
def create_job(job_store: InMemoryJobStore) -> Callable:
    """Factory storing a job directly in a given status."""

    async def _create(
        status: JobStatus = JobStatus.PENDING_PLANNING,
        pipeline: PipelineType = PipelineType.GENERAL,
        source_text: Optional[str] = SAMPLE_TEXT,
        **fields: Any,
    ) -> Job:
        job = Job(
            user_id="user-1",
            title="Neonatology notes",
            pipeline=pipeline,
            source_text=source_text,
            extracted_text=source_text,
            status=status,
            **fields,
        )
        await job_store.create(job)
        return await job_store.get(job.id)

    return _create


@pytest.fixture
def create_staged_job(create_job: Callable) -> Callable:
    """Factory for a pending_assignment job with staged MCQs and flashcards."""

    async def _create(mcq_count: int = 2, flashcard_count: int = 0, **fields: Any) -> Job:
        staged = AwaitingReviewData(
            mcqs=[make_mcq(i) for i in range(mcq_count)],
            flashcards=[make_flashcard(i) for i in range(flashcard_count)],
        )
        return await create_job(
            status=JobStatus.PENDING_ASSIGNMENT,
            final_awaiting_review_data=staged,
            **fields,
        )

    return _create


@pytest_asyncio.fixture
async def neonatology_taxonomy(content_store: InMemoryContentStore) -> InMemoryContentStore:
    """Existing topic "Neonatology" with one chapter, "Neonatal Sepsis"."""
    await content_store.upsert_topic("neonatology", "Neonatology", TopicSource.GENERAL)
    await content_store.upsert_chapter(
        "neonatology", "neonatal_sepsis", "Neonatal Sepsis", TopicSource.GENERAL
    )
    await content_store.recount("neonatology", "neonatal_sepsis")
    return content_store
