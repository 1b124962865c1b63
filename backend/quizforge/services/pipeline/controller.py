"""
Pipeline Controller

Drives generation jobs through the state machine. Every status change is
validated against ALLOWED_TRANSITIONS and written with a conditional
update on the (status, version) the controller read, so concurrent actors
can never both win.

Two kinds of writers go through here:

- Operator actions (reset, archive, retry, ...) and stage completions:
  a lost race surfaces as ConflictError to the caller.
- Batch reports and error appends: these are commutative, so the
  controller re-reads the job and re-decides until its write lands.

Batch convention:
    completed_batches counts successful batches, failed_batches holds the
    batch numbers whose last report failed. A dispatch round is finished
    when completed_batches + len(failed_batches) == total_batches.
    Every fresh run bumps generation_run and never resets it, so a report
    tagged with an older run is stale and gets discarded.

Usage:
    from quizforge.services.pipeline.controller import PipelineController

    controller = PipelineController(job_store)
    job, batches = await controller.begin_generation(job_id, 20, 10, batch_size=10)
    await controller.record_batch_success(job_id, 1, output, run=job.generation_run)
"""

import logging
from collections.abc import Callable
from typing import Any, Optional

from quizforge.config.generation import generation_settings
from quizforge.enums.job import JobStatus, PipelineType
from quizforge.middleware.error_handling import (
    ConflictError,
    InvalidTransitionError,
    InvariantViolationError,
    ValidationError,
)
from quizforge.models.job import (
    AwaitingReviewData,
    BatchOutput,
    BatchTarget,
    GeneratedBatch,
    Job,
)
from quizforge.services.job_store import JobStore
from quizforge.services.pipeline.state_machine import (
    can_archive,
    can_regenerate,
    can_reset,
    can_transition,
    can_unarchive,
    validate_transition,
)
from quizforge.utils.text_utils import split_into_batches

logger = logging.getLogger(__name__)


# Fields cleared by an operator reset
RESET_FIELDS: dict[str, Any] = {
    "suggested_plan": None,
    "suggested_topic": None,
    "suggested_chapter": None,
    "batch_size": None,
    "total_batches": 0,
    "completed_batches": 0,
    "failed_batches": [],
    "batch_plan": [],
    "text_chunks": [],
    "generated_content": [],
    "final_awaiting_review_data": None,
    "staged_content": None,
    "suggested_new_mcq_count": None,
    "suggested_key_topics": [],
    "assignment_suggestions": [],
    "approved_topic": None,
    "approved_chapter": None,
    "merged_mcq_indexes": [],
    "merged_flashcard_indexes": [],
    "errors": [],
    "archived_from_status": None,
}

EMPTY_GENERATION_ERROR = "Generation produced no items"

# Batch tracking cleared when an abandoned generation run is restored.
# generation_run only ever grows, so it is not cleared here or by reset.
BATCH_TRACKING_FIELDS: dict[str, Any] = {
    "total_batches": 0,
    "completed_batches": 0,
    "failed_batches": [],
    "batch_plan": [],
    "text_chunks": [],
    "generated_content": [],
}


def distribute_counts(mcq_count: int, flashcard_count: int, batch_count: int) -> list[BatchTarget]:
    """
    Spread MCQ and flashcard targets over ``batch_count`` batches.

    Earlier batches receive the remainder, so targets differ by at most one
    between batches and sum exactly to the requested totals.
    """
    mcq_base, mcq_extra = divmod(mcq_count, batch_count)
    fc_base, fc_extra = divmod(flashcard_count, batch_count)
    return [
        BatchTarget(
            batch_number=n,
            mcq_count=mcq_base + (1 if n <= mcq_extra else 0),
            flashcard_count=fc_base + (1 if n <= fc_extra else 0),
        )
        for n in range(1, batch_count + 1)
    ]


def flatten_batches(batches: list[GeneratedBatch]) -> AwaitingReviewData:
    """Concatenate batch outputs in batch-number order into staged review data."""
    ordered = sorted(batches, key=lambda b: b.batch_number)
    return AwaitingReviewData(
        mcqs=[m for b in ordered for m in b.mcqs],
        flashcards=[f for b in ordered for f in b.flashcards],
    )


class PipelineController:
    """State machine driver for generation jobs."""

    def __init__(self, job_store: JobStore, max_conflict_retries: Optional[int] = None):
        self.job_store = job_store
        self.max_conflict_retries = max_conflict_retries or generation_settings.MAX_CONFLICT_RETRIES

    # =========================================================================
    # Reads and primitive writes
    # =========================================================================

    async def get_job(self, job_id: str) -> Job:
        return await self.job_store.get(job_id)

    async def transition(
        self,
        job: Job,
        target: JobStatus,
        fields: Optional[dict[str, Any]] = None,
    ) -> Job:
        """
        Move ``job`` to ``target`` and apply ``fields`` in the same write.

        The write is conditional on the status and version of ``job`` as
        read by the caller.

        Raises:
            InvalidTransitionError: If the move is not legal
            ConflictError: If the job changed since it was read
        """
        validate_transition(job.status, target)
        updated = await self.job_store.update(
            job.id,
            {**(fields or {}), "status": target},
            expected_status=job.status,
            expected_version=job.version,
        )
        if job.status != target:
            logger.info(f"Job {job.id}: {job.status.value} -> {target.value}")
        return updated

    async def update_with_retry(
        self,
        job_id: str,
        decide: Callable[[Job], Optional[dict[str, Any]]],
    ) -> Optional[Job]:
        """
        Read-decide-write loop for commutative updates.

        ``decide`` returns the fields to write for the job it is given, or
        None to write nothing (the current job is then returned as-is).
        """
        for attempt in range(1, self.max_conflict_retries + 1):
            job = await self.job_store.get(job_id)
            fields = decide(job)
            if fields is None:
                return job
            try:
                return await self.job_store.update(
                    job_id,
                    fields,
                    expected_status=job.status,
                    expected_version=job.version,
                )
            except ConflictError:
                logger.warning(f"Job {job_id}: write conflict, re-reading (attempt {attempt})")
        raise ConflictError(
            f"Job {job_id}: gave up after {self.max_conflict_retries} conflicting writes"
        )

    async def append_error(self, job_id: str, message: str) -> Job:
        """Append to the job's error log without changing its status."""
        logger.warning(f"Job {job_id}: {message}")
        return await self.update_with_retry(
            job_id, lambda job: {"errors": [*job.errors, message]}
        )

    async def fail(self, job_id: str, message: str) -> Job:
        """Append an error and move the job to ERROR when that is legal from its status."""
        logger.error(f"Job {job_id}: {message}")

        def decide(job: Job) -> dict[str, Any]:
            fields: dict[str, Any] = {"errors": [*job.errors, message]}
            if job.status != JobStatus.ERROR and can_transition(job.status, JobStatus.ERROR):
                fields["status"] = JobStatus.ERROR
            return fields

        return await self.update_with_retry(job_id, decide)

    # =========================================================================
    # Batch generation
    # =========================================================================

    async def begin_generation(
        self,
        job_id: str,
        mcq_count: int,
        flashcard_count: int,
        batch_size: Optional[int] = None,
    ) -> tuple[Job, list[int]]:
        """
        Move a general job from pending_generation to generating_content.

        A fresh run splits the source text into ceil(total / batch_size)
        chunks with per-batch targets and starts a new generation_run. A run
        following retry_generation keeps the existing plan and run and
        re-dispatches only the failed batches; the counts passed in are then
        ignored.

        Returns:
            Tuple of (updated job, batch numbers to dispatch)

        Raises:
            InvalidTransitionError: Wrong pipeline or status
            ValidationError: Zero total count, non-positive batch size or no source text
            ConflictError: The job changed concurrently
        """
        job = await self.job_store.get(job_id)
        if job.pipeline != PipelineType.GENERAL:
            raise InvalidTransitionError(
                f"Job {job_id} is a {job.pipeline.value} job; batch generation is general-only"
            )
        validate_transition(job.status, JobStatus.GENERATING_CONTENT)

        if job.failed_batches and job.batch_plan:
            pending = sorted(job.failed_batches)
            logger.info(f"Job {job_id}: retrying failed batches {pending}")
            job = await self.transition(job, JobStatus.GENERATING_CONTENT, {"failed_batches": []})
            return job, pending

        if mcq_count < 0 or flashcard_count < 0:
            raise ValidationError("Counts must not be negative")
        total = mcq_count + flashcard_count
        if total == 0:
            raise ValidationError("Must request at least one MCQ or flashcard to generate")
        batch_size = batch_size if batch_size is not None else generation_settings.DEFAULT_BATCH_SIZE
        if batch_size <= 0:
            raise ValidationError("Batch size must be positive")
        if not job.source_text or not job.source_text.strip():
            raise ValidationError(f"Job {job_id} has no source text")

        total_batches = -(-total // batch_size)
        chunks = split_into_batches(job.source_text, total_batches)

        job = await self.transition(
            job,
            JobStatus.GENERATING_CONTENT,
            {
                "generation_run": job.generation_run + 1,
                "batch_size": batch_size,
                "total_batches": total_batches,
                "completed_batches": 0,
                "failed_batches": [],
                "batch_plan": distribute_counts(mcq_count, flashcard_count, total_batches),
                "text_chunks": chunks,
                "generated_content": [],
                "final_awaiting_review_data": None,
            },
        )
        logger.info(
            f"Job {job_id}: dispatching {total_batches} batches "
            f"({mcq_count} MCQs, {flashcard_count} flashcards, batch size {batch_size})"
        )
        return job, list(range(1, total_batches + 1))

    async def record_batch_success(
        self, job_id: str, batch_number: int, output: BatchOutput, *, run: int
    ) -> Optional[Job]:
        """Record a successful batch of generation run ``run``. See _record_batch_result."""
        return await self._record_batch_result(job_id, run, batch_number, output=output)

    async def record_batch_failure(
        self, job_id: str, batch_number: int, message: str, *, run: int
    ) -> Optional[Job]:
        """Record a failed batch of generation run ``run``. See _record_batch_result."""
        return await self._record_batch_result(job_id, run, batch_number, error=message)

    async def _record_batch_result(
        self,
        job_id: str,
        run: int,
        batch_number: int,
        output: Optional[BatchOutput] = None,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        """
        Fold one batch report into the job.

        Reports arriving after the job left generating_content (archived,
        reset), or dispatched for an earlier generation_run, are discarded
        and None is returned. Repeated reports for a batch that already
        reported in this round are ignored. The report that completes the
        round also moves the job on:

        - all succeeded -> pending_assignment (staged data flattened)
        - all succeeded but nothing was generated -> error
        - some failed -> generation_failed_partially
        - all failed -> error

        Raises:
            InvariantViolationError: batch_number outside the job's plan
        """
        discarded = False

        def decide(job: Job) -> Optional[dict[str, Any]]:
            nonlocal discarded
            discarded = False
            if job.status != JobStatus.GENERATING_CONTENT or job.generation_run != run:
                discarded = True
                return None
            if not 1 <= batch_number <= job.total_batches:
                raise InvariantViolationError(
                    f"Job {job.id}: batch {batch_number} outside 1..{job.total_batches}"
                )

            succeeded = {b.batch_number for b in job.generated_content}
            if batch_number in succeeded or batch_number in job.failed_batches:
                logger.warning(f"Job {job.id}: ignoring repeated report for batch {batch_number}")
                return None

            fields: dict[str, Any] = {}
            generated = job.generated_content
            failed = job.failed_batches
            completed = job.completed_batches

            if error is None:
                batch = GeneratedBatch(batch_number=batch_number, **output.model_dump())
                generated = [*generated, batch]
                completed += 1
                fields.update(generated_content=generated, completed_batches=completed)
            else:
                failed = sorted([*failed, batch_number])
                fields.update(failed_batches=failed, errors=[*job.errors, error])

            if completed + len(failed) == job.total_batches:
                staged = flatten_batches(generated)
                if not failed and staged.is_empty():
                    fields["status"] = JobStatus.ERROR
                    fields["errors"] = [*job.errors, EMPTY_GENERATION_ERROR]
                elif not failed:
                    fields["status"] = JobStatus.PENDING_ASSIGNMENT
                    fields["final_awaiting_review_data"] = staged
                elif completed > 0:
                    fields["status"] = JobStatus.GENERATION_FAILED_PARTIALLY
                else:
                    fields["status"] = JobStatus.ERROR
            return fields

        job = await self.update_with_retry(job_id, decide)
        if discarded:
            logger.warning(
                f"Job {job_id}: discarding batch {batch_number} result of run {run}, "
                f"job is '{job.status.value}' on run {job.generation_run}"
            )
            return None

        if job.status != JobStatus.GENERATING_CONTENT:
            logger.info(
                f"Job {job_id}: generation finished -> {job.status.value} "
                f"({job.completed_batches}/{job.total_batches} batches succeeded)"
            )
        return job

    # =========================================================================
    # Operator actions
    # =========================================================================

    async def reset(self, job_id: str) -> Job:
        """
        Clear everything downstream of the source text and return to pending_planning.

        Raises:
            InvalidTransitionError: Job is completed, archived, or already has
                approved content in canonical storage
        """
        job = await self.job_store.get(job_id)
        if not can_reset(job.status):
            raise InvalidTransitionError(f"Cannot reset a job in '{job.status.value}'")
        if job.merged_mcq_indexes or job.merged_flashcard_indexes:
            raise InvalidTransitionError(
                f"Job {job_id} already has approved content; reset would orphan it"
            )

        updated = await self.job_store.update(
            job_id,
            {**RESET_FIELDS, "status": JobStatus.PENDING_PLANNING},
            expected_status=job.status,
            expected_version=job.version,
        )
        logger.info(f"Job {job_id}: reset from {job.status.value} to pending_planning")
        return updated

    async def archive(self, job_id: str) -> Job:
        """Soft-hide a job; nothing is deleted and the prior status is remembered."""
        job = await self.job_store.get(job_id)
        if not can_archive(job.status):
            raise InvalidTransitionError(f"Cannot archive a job in '{job.status.value}'")
        return await self.transition(
            job, JobStatus.ARCHIVED, {"archived_from_status": job.status}
        )

    async def unarchive(self, job_id: str) -> Job:
        """
        Restore an archived job to the status it was archived from.

        A job archived mid-generation comes back as pending_generation with
        batch tracking cleared. Its next run gets a new generation_run, so
        batches of the abandoned run that report later are still discarded.
        """
        job = await self.job_store.get(job_id)
        if not can_unarchive(job.status, job.archived_from_status):
            raise InvalidTransitionError(f"Job {job_id} cannot be un-archived")

        restore_to = job.archived_from_status
        fields: dict[str, Any] = {"status": restore_to, "archived_from_status": None}
        if restore_to == JobStatus.GENERATING_CONTENT:
            restore_to = JobStatus.PENDING_GENERATION
            fields.update(BATCH_TRACKING_FIELDS, status=restore_to)

        updated = await self.job_store.update(
            job_id, fields, expected_status=job.status, expected_version=job.version
        )
        logger.info(f"Job {job_id}: archived -> {restore_to.value}")
        return updated

    async def retry_generation(self, job_id: str) -> Job:
        """generation_failed_partially -> pending_generation, keeping the failed batch list."""
        job = await self.job_store.get(job_id)
        if job.status != JobStatus.GENERATION_FAILED_PARTIALLY:
            raise InvalidTransitionError(
                f"Only partially failed jobs can be retried (job is '{job.status.value}')"
            )
        return await self.transition(job, JobStatus.PENDING_GENERATION)

    async def regenerate(self, job_id: str) -> Job:
        """
        Discard generated content but keep the plan, ready for a fresh run.

        The job is reset to pending_planning with its suggested plan and
        topic guess preserved (errors are kept too), then moved on to
        pending_generation. The next begin_generation starts a new run.

        Raises:
            InvalidTransitionError: Marrow job, no plan to re-run, wrong
                status, or approved content already merged
            ConflictError: If the job changed between the two writes
        """
        job = await self.job_store.get(job_id)
        if job.pipeline != PipelineType.GENERAL or job.suggested_plan is None:
            raise InvalidTransitionError(f"Job {job_id} has no generation plan to re-run")
        if not can_regenerate(job.status):
            raise InvalidTransitionError(f"Cannot regenerate a job in '{job.status.value}'")
        if job.merged_mcq_indexes or job.merged_flashcard_indexes:
            raise InvalidTransitionError(
                f"Job {job_id} already has approved content; regenerating would orphan it"
            )

        cleared = await self.job_store.update(
            job_id,
            {
                **RESET_FIELDS,
                "suggested_plan": job.suggested_plan,
                "suggested_topic": job.suggested_topic,
                "suggested_chapter": job.suggested_chapter,
                "errors": job.errors,
                "status": JobStatus.PENDING_PLANNING,
            },
            expected_status=job.status,
            expected_version=job.version,
        )
        logger.info(f"Job {job_id}: generated content discarded from {job.status.value}")
        return await self.transition(cleared, JobStatus.PENDING_GENERATION)

    async def reassign(self, job_id: str) -> Job:
        """Drop unapproved suggestions so assignment can be suggested afresh."""
        job = await self.job_store.get(job_id)
        if job.status != JobStatus.PENDING_ASSIGNMENT:
            raise InvalidTransitionError(
                f"Only jobs pending assignment can be reassigned (job is '{job.status.value}')"
            )
        kept = [s for s in job.assignment_suggestions if s.approved]
        return await self.transition(
            job, JobStatus.PENDING_ASSIGNMENT, {"assignment_suggestions": kept}
        )
