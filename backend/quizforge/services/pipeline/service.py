"""
Generation Job Service

Facade over the pipeline components exposing the job operations used by
the API, the Celery tasks and the CLI. It owns the AI worker calls: each is
bounded by a timeout, and its failure is recorded on the job before the
error is surfaced.

Worker failure policy:
- Timeout: error appended, status unchanged, WorkerTimeoutError raised
- Planning / marrow failure: error appended, job moved to error, LLMError raised
- Assignment suggestion failure: error appended, status unchanged, LLMError raised
- Batch failure: recorded per batch by the dispatcher, never raised

Usage:
    from quizforge.services.pipeline.service import GenerationJobService

    service = GenerationJobService(job_store, content_store, workers)
    job = await service.create_job("Neonatology notes", text, user_id="u1")
    plan = await service.plan_content_generation(job.id)
    result = await service.execute_content_generation(job.id, plan.mcq_count, plan.flashcard_count)
"""

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Optional, TypeVar

from quizforge.config.generation import GenerationSettings, generation_settings
from quizforge.enums.content import ContentKind
from quizforge.enums.job import JobStatus, PipelineType
from quizforge.middleware.error_handling import (
    InvalidTransitionError,
    LLMError,
    ValidationError,
    WorkerTimeoutError,
)
from quizforge.models.content import Topic
from quizforge.models.job import AssignmentSuggestion, ContentPlan, Job, SuggestedPlan
from quizforge.models.job_api import ApprovalRequest, MarrowApprovalRequest
from quizforge.services.content_store import ContentStore
from quizforge.services.generation.workers import GenerationWorkers
from quizforge.services.job_store import JobStore
from quizforge.services.pipeline.controller import PipelineController
from quizforge.services.pipeline.dispatcher import BatchDispatcher
from quizforge.services.pipeline.marrow import MarrowWorkflow
from quizforge.services.pipeline.merger import ApprovalMerger, MergeResult
from quizforge.services.pipeline.resolver import AssignmentResolver
from quizforge.services.pipeline.state_machine import validate_transition
from quizforge.utils.text_utils import clean_text

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class OperationResult:
    """{success, message} outcome of a job operation, with the resulting job."""

    job: Job
    message: str
    success: bool = True


def _generation_message(job: Job) -> str:
    if job.status == JobStatus.PENDING_ASSIGNMENT:
        staged = job.staged
        return (
            f"Generated {len(staged.mcqs)} MCQs and {len(staged.flashcards)} flashcards "
            f"in {job.total_batches} batches"
        )
    if job.status == JobStatus.GENERATION_FAILED_PARTIALLY:
        return (
            f"{len(job.failed_batches)} of {job.total_batches} batches failed "
            f"(batches {job.failed_batches}); retry or reset the job"
        )
    if job.status == JobStatus.ERROR:
        if job.failed_batches:
            return f"All {job.total_batches} batches failed"
        return job.errors[-1] if job.errors else "Generation failed"
    return f"Generation ended with job in '{job.status.value}'"


class GenerationJobService:
    """Job operations for the content generation pipeline."""

    def __init__(
        self,
        job_store: JobStore,
        content_store: ContentStore,
        workers: GenerationWorkers,
        settings: Optional[GenerationSettings] = None,
    ):
        self.job_store = job_store
        self.content_store = content_store
        self.workers = workers
        self.settings = settings or generation_settings

        self.controller = PipelineController(job_store, self.settings.MAX_CONFLICT_RETRIES)
        self.dispatcher = BatchDispatcher(
            self.controller,
            workers.batch_generator,
            max_concurrency=self.settings.MAX_CONCURRENT_BATCHES,
            batch_timeout=self.settings.BATCH_TIMEOUT_SECONDS,
        )
        self.resolver = AssignmentResolver(self.controller)
        self.merger = ApprovalMerger(self.controller, content_store)
        self.marrow = MarrowWorkflow(self.controller, self.merger)

    # =========================================================================
    # Worker calls
    # =========================================================================

    async def _call_worker(
        self,
        job_id: str,
        stage: str,
        call: Awaitable[T],
        fail_job: bool = True,
    ) -> T:
        """
        Await a worker call under the configured timeout.

        Args:
            job_id: Job the call is made for
            stage: Human-readable stage name used in error messages
            call: The worker coroutine
            fail_job: Move the job to error on failure (timeouts never do)
        """
        timeout = self.settings.WORKER_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError as e:
            message = f"{stage} timed out after {timeout:g}s"
            await self.controller.append_error(job_id, message)
            raise WorkerTimeoutError(message) from e
        except Exception as e:
            message = e.message if isinstance(e, LLMError) else f"{stage} failed: {e}"
            if fail_job:
                await self.controller.fail(job_id, message)
            else:
                await self.controller.append_error(job_id, message)
            raise LLMError(message) from e

    # =========================================================================
    # Jobs
    # =========================================================================

    async def create_job(
        self,
        title: str,
        raw_text: str,
        user_id: str,
        pipeline: PipelineType = PipelineType.GENERAL,
        file_name: Optional[str] = None,
    ) -> Job:
        """Create a job from manually entered (or already OCR'd) text."""
        source_text = clean_text(raw_text)
        if not source_text:
            raise ValidationError("Source text is empty")

        job = Job(
            user_id=user_id,
            title=title,
            pipeline=pipeline,
            file_name=file_name,
            extracted_text=raw_text,
            source_text=source_text,
            status=JobStatus.PENDING_PLANNING,
        )
        await self.job_store.create(job)
        logger.info(f"Created {pipeline.value} job {job.id} ({title}, {len(source_text)} chars)")
        return job

    async def get_job(self, job_id: str) -> Job:
        return await self.job_store.get(job_id)

    async def list_jobs(self, statuses: Optional[Iterable[JobStatus]] = None) -> list[Job]:
        return await self.job_store.list_by_status(statuses)

    async def list_topics(self) -> list[Topic]:
        return await self.content_store.list_topics()

    async def archive_content_item(self, kind: ContentKind, item_id: str) -> Topic:
        """Archive an approved MCQ or flashcard and return its recounted topic."""
        topic = await self.content_store.archive_item(kind, item_id)
        logger.info(f"Archived {kind.value} {item_id} from topic {topic.id}")
        return topic

    # =========================================================================
    # General pipeline
    # =========================================================================

    async def plan_content_generation(self, job_id: str) -> ContentPlan:
        """Ask the planner for counts and a topic guess; pending_planning -> pending_generation."""
        job = await self.job_store.get(job_id)
        if job.pipeline != PipelineType.GENERAL:
            raise InvalidTransitionError(f"Job {job_id} is a marrow job; use marrow extraction")
        validate_transition(job.status, JobStatus.PENDING_GENERATION)
        if not job.source_text:
            raise ValidationError(f"Job {job_id} has no source text")

        plan = await self._call_worker(
            job_id, "Planning", self.workers.planner(job.source_text, job_id=job_id)
        )
        await self.controller.transition(
            job,
            JobStatus.PENDING_GENERATION,
            {
                "suggested_plan": SuggestedPlan(
                    mcq_count=plan.mcq_count, flashcard_count=plan.flashcard_count
                ),
                "suggested_topic": plan.suggested_topic,
                "suggested_chapter": plan.suggested_chapter,
            },
        )
        logger.info(
            f"Job {job_id}: planned {plan.mcq_count} MCQs, {plan.flashcard_count} flashcards"
        )
        return plan

    async def start_content_generation(
        self,
        job_id: str,
        mcq_count: int,
        flashcard_count: int,
        batch_size: Optional[int] = None,
    ) -> tuple[Job, list[int]]:
        """Validate and record the generation run; batches are not yet dispatched."""
        return await self.controller.begin_generation(
            job_id, mcq_count, flashcard_count, batch_size or self.settings.DEFAULT_BATCH_SIZE
        )

    async def run_batches(self, job: Job, batch_numbers: list[int]) -> Job:
        """Dispatch the given batches and return the job after the last report."""
        latest = await self.dispatcher.dispatch(job, batch_numbers)
        return latest or await self.job_store.get(job.id)

    async def execute_content_generation(
        self,
        job_id: str,
        mcq_count: int,
        flashcard_count: int,
        batch_size: Optional[int] = None,
    ) -> OperationResult:
        """Start generation and wait for every dispatched batch to report."""
        job, batch_numbers = await self.start_content_generation(
            job_id, mcq_count, flashcard_count, batch_size
        )
        job = await self.run_batches(job, batch_numbers)
        return OperationResult(
            job=job,
            message=_generation_message(job),
            success=job.status == JobStatus.PENDING_ASSIGNMENT,
        )

    async def suggest_assignment(
        self,
        job_id: str,
        existing_topics: Optional[list[Topic]] = None,
        scope_to_topic_name: Optional[str] = None,
    ) -> list[AssignmentSuggestion]:
        """
        Suggest (topic, chapter) groups for the job's staged content.

        Returns:
            The newly appended suggestion batch
        """
        job = await self.job_store.get(job_id)
        self.resolver.check_can_suggest(job)
        taxonomy = (
            existing_topics if existing_topics is not None else await self.content_store.list_topics()
        )

        raw_groups = await self._call_worker(
            job_id,
            "Assignment suggestion",
            self.workers.assignment_suggester(
                job.staged, taxonomy, scope_to_topic_name, job_id=job_id
            ),
            fail_job=False,
        )
        updated = await self.resolver.record(job, raw_groups, taxonomy, scope_to_topic_name)
        batch = max(s.batch for s in updated.assignment_suggestions)
        return [s for s in updated.assignment_suggestions if s.batch == batch]

    async def approve_generated_content(
        self,
        job_id: str,
        request: ApprovalRequest,
        creator_id: Optional[str] = None,
    ) -> MergeResult:
        return await self.merger.approve(job_id, request, creator_id=creator_id)

    # =========================================================================
    # Operator actions
    # =========================================================================

    async def reset_upload(self, job_id: str) -> OperationResult:
        job = await self.controller.reset(job_id)
        return OperationResult(job=job, message="Job reset to pending planning")

    async def archive_upload(self, job_id: str) -> OperationResult:
        job = await self.controller.archive(job_id)
        return OperationResult(job=job, message="Job archived")

    async def unarchive_upload(self, job_id: str) -> OperationResult:
        job = await self.controller.unarchive(job_id)
        return OperationResult(job=job, message=f"Job restored to {job.status.value}")

    async def regenerate_content(self, job_id: str) -> OperationResult:
        job = await self.controller.regenerate(job_id)
        plan = job.suggested_plan
        return OperationResult(
            job=job,
            message=(
                f"Generated content discarded; ready to generate {plan.mcq_count} MCQs "
                f"and {plan.flashcard_count} flashcards again"
            ),
        )

    async def retry_generation(self, job_id: str) -> OperationResult:
        job = await self.controller.retry_generation(job_id)
        return OperationResult(
            job=job, message=f"Batches {job.failed_batches} will be re-generated"
        )

    async def reassign_content(self, job_id: str) -> OperationResult:
        job = await self.controller.reassign(job_id)
        return OperationResult(job=job, message="Unapproved suggestions cleared")

    # =========================================================================
    # Marrow pipeline
    # =========================================================================

    async def extract_marrow_content(self, job_id: str) -> Job:
        """Extract MCQs and orphan explanations; pending_planning -> pending_generation_decision."""
        job = await self.job_store.get(job_id)
        self.marrow.check_can_extract(job)
        extraction = await self._call_worker(
            job_id,
            "Marrow extraction",
            self.workers.marrow_extractor(job.source_text, job_id=job_id),
        )
        return await self.marrow.stage_extraction(job, extraction)

    async def generate_and_analyze_marrow_content(self, job_id: str, count: int) -> Job:
        """
        Generate ``count`` MCQs from orphan explanations, analyze key topics
        over all staged MCQs, and move the job to pending_assignment.
        """
        job = await self.job_store.get(job_id)
        orphans = self.marrow.orphans_for(job, count)

        generated = []
        if count:
            generated = await self._call_worker(
                job_id,
                "Marrow generation",
                self.workers.explanation_generator(orphans, count, job_id=job_id),
            )
        combined = [*job.staged_content.extracted_mcqs, *generated]
        analysis = await self._call_worker(
            job_id, "Key topic analysis", self.workers.key_topic_analyzer(combined, job_id=job_id)
        )
        return await self.marrow.stage_generated(job, count, generated, analysis)

    async def approve_marrow_content(
        self,
        job_id: str,
        request: MarrowApprovalRequest,
        creator_id: Optional[str] = None,
    ) -> MergeResult:
        return await self.marrow.approve(job_id, request, creator_id=creator_id)
