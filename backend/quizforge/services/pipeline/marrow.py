"""
Marrow Workflow

State handling for the marrow pipeline, which starts from question-bank
material instead of free text:

    pending_planning
        -> (extract) pending_generation_decision
        -> (generate from orphan explanations + key topic analysis) pending_assignment
        -> (approve everything into one chapter) completed

The AI calls themselves are made by the service layer; this module
validates preconditions and stages their results on the job.
"""

import logging
from typing import Optional

from quizforge.config.generation import generation_settings
from quizforge.enums.job import JobStatus, PipelineType
from quizforge.middleware.error_handling import (
    InvalidTransitionError,
    ValidationError,
)
from quizforge.models.content import StagedMCQ
from quizforge.models.job import (
    AwaitingReviewData,
    Job,
    KeyTopicAnalysis,
    MarrowExtraction,
    StagedContent,
)
from quizforge.models.job_api import ApprovalRequest, MarrowApprovalRequest
from quizforge.services.pipeline.controller import PipelineController
from quizforge.services.pipeline.merger import ApprovalMerger, MergeResult

logger = logging.getLogger(__name__)


def _require_marrow(job: Job, status: JobStatus, action: str) -> None:
    if job.pipeline != PipelineType.MARROW:
        raise InvalidTransitionError(f"Job {job.id} is not a marrow job; cannot {action}")
    if job.status != status:
        raise InvalidTransitionError(
            f"Cannot {action} a job in '{job.status.value}' (needs '{status.value}')"
        )


class MarrowWorkflow:
    """Marrow pipeline steps on top of the controller and merger."""

    def __init__(self, controller: PipelineController, merger: ApprovalMerger):
        self.controller = controller
        self.merger = merger

    def check_can_extract(self, job: Job) -> None:
        _require_marrow(job, JobStatus.PENDING_PLANNING, "extract marrow content from")
        if not job.source_text or not job.source_text.strip():
            raise ValidationError(f"Job {job.id} has no source text")

    async def stage_extraction(self, job: Job, extraction: MarrowExtraction) -> Job:
        """Stage extracted MCQs and orphan explanations; await the generation decision."""
        self.check_can_extract(job)
        staged = StagedContent(
            extracted_mcqs=extraction.mcqs,
            orphan_explanations=extraction.orphan_explanations,
        )
        logger.info(
            f"Job {job.id}: extracted {len(extraction.mcqs)} MCQs, "
            f"{len(extraction.orphan_explanations)} orphan explanations"
        )
        return await self.controller.transition(
            job,
            JobStatus.PENDING_GENERATION_DECISION,
            {
                "staged_content": staged,
                "suggested_new_mcq_count": len(extraction.orphan_explanations),
            },
        )

    def orphans_for(self, job: Job, count: int) -> list[str]:
        """
        Orphan explanations that ``count`` new MCQs will be generated from.

        Raises:
            InvalidTransitionError: Wrong pipeline or status
            ValidationError: Negative count, more than available, or nothing to stage
        """
        _require_marrow(job, JobStatus.PENDING_GENERATION_DECISION, "generate marrow content for")
        staged = job.staged_content or StagedContent()
        if count < 0:
            raise ValidationError("Count must not be negative")
        if count > len(staged.orphan_explanations):
            raise ValidationError(
                f"Requested {count} MCQs but only {len(staged.orphan_explanations)} "
                "orphan explanations are available",
                details={"requested": count, "available": len(staged.orphan_explanations)},
            )
        if count == 0 and not staged.extracted_mcqs:
            raise ValidationError(f"Job {job.id} has nothing to stage for review")
        return staged.orphan_explanations[:count]

    async def stage_generated(
        self,
        job: Job,
        count: int,
        generated: list[StagedMCQ],
        analysis: KeyTopicAnalysis,
    ) -> Job:
        """
        Stage extracted + generated MCQs for assignment.

        The ``count`` orphan explanations used for generation are consumed.
        """
        self.orphans_for(job, count)
        staged = job.staged_content or StagedContent()
        combined = [*staged.extracted_mcqs, *generated]

        updated_staging = staged.model_copy(
            update={
                "generated_mcqs": [*staged.generated_mcqs, *generated],
                "orphan_explanations": staged.orphan_explanations[count:],
            }
        )
        return await self.controller.transition(
            job,
            JobStatus.PENDING_ASSIGNMENT,
            {
                "staged_content": updated_staging,
                "final_awaiting_review_data": AwaitingReviewData(mcqs=combined),
                "suggested_key_topics": analysis.key_topics,
                "suggested_topic": analysis.suggested_topic
                or generation_settings.FALLBACK_TOPIC_NAME,
                "suggested_chapter": analysis.suggested_chapter
                or generation_settings.FALLBACK_CHAPTER_NAME,
            },
        )

    async def approve(
        self,
        job_id: str,
        request: MarrowApprovalRequest,
        creator_id: Optional[str] = None,
    ) -> MergeResult:
        """Merge every staged marrow MCQ into one chapter, tagged with the key topics."""
        job = await self.controller.get_job(job_id)
        if job.pipeline != PipelineType.MARROW:
            raise InvalidTransitionError(f"Job {job_id} is not a marrow job")
        if job.staged.is_empty():
            raise ValidationError(f"Job {job_id} has no staged content to approve")

        key_topics = request.key_topics if request.key_topics is not None else job.suggested_key_topics
        approval = ApprovalRequest(
            topic_id=request.topic_id,
            topic_name=request.topic_name,
            chapter_id=request.chapter_id,
            chapter_name=request.chapter_name,
            is_new_chapter=True,
            mcq_indexes=list(range(len(job.staged.mcqs))),
            flashcard_indexes=list(range(len(job.staged.flashcards))),
            tags=key_topics,
        )
        return await self.merger.approve(job_id, approval, creator_id=creator_id)
