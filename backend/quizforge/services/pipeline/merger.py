"""
Approval Merger

Copies one approved group of staged items into canonical storage and
records the merge on the job.

Steps per approval:
1. Validate indexes against the staged arrays and ids against the names
2. Upsert topic and chapter (only when the chapter is new)
3. Insert-if-absent each item under id "{job_id}_{mcq|fc}_{index}"
4. Recount the chapter and roll the topic totals up
5. Union the merged indexes into the job, mark the suggestion approved
   and complete the job once every staged item is merged

Every step is idempotent, so a retried approval converges on the same
canonical state.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from quizforge.enums.content import TopicSource
from quizforge.enums.job import JobStatus, PipelineType
from quizforge.middleware.error_handling import (
    InvalidTransitionError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from quizforge.models.content import MCQ, Flashcard, StagedFlashcard, StagedMCQ
from quizforge.models.job import AssignmentSuggestion, Job
from quizforge.models.job_api import ApprovalRequest
from quizforge.services.content_store import ContentStore
from quizforge.services.pipeline.controller import PipelineController
from quizforge.utils.text_utils import normalize_id

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Outcome of one approval."""

    job: Job
    topic_name: str
    chapter_name: str
    mcqs_inserted: int = 0
    flashcards_inserted: int = 0
    already_merged: bool = False

    @property
    def message(self) -> str:
        if self.already_merged:
            return f"Content already merged into {self.topic_name} / {self.chapter_name}"
        return (
            f"Merged {self.mcqs_inserted} MCQs and {self.flashcards_inserted} flashcards "
            f"into {self.topic_name} / {self.chapter_name}"
        )


def _merge_tags(*tag_lists: list[str]) -> list[str]:
    merged: list[str] = []
    for tags in tag_lists:
        for tag in tags:
            tag = tag.strip().lower()
            if tag and tag not in merged:
                merged.append(tag)
    return merged


def _check_indexes(indexes: list[int], size: int, kind: str, job_id: str) -> None:
    if len(set(indexes)) != len(indexes):
        raise ValidationError(f"Duplicate {kind} indexes in approval for job {job_id}")
    out_of_range = [i for i in indexes if not 0 <= i < size]
    if out_of_range:
        raise InvariantViolationError(
            f"Job {job_id}: {kind} indexes {out_of_range} outside staged range 0..{size - 1}",
            details={"indexes": out_of_range, "staged_count": size},
        )


def _resolve_id(name: str, supplied: Optional[str], kind: str) -> str:
    derived = normalize_id(name)
    if not derived:
        raise ValidationError(f"{kind} name {name!r} has no usable characters")
    if supplied is not None and supplied != derived:
        raise ValidationError(
            f"{kind} id {supplied!r} does not match name {name!r} (expected {derived!r})",
            details={"supplied": supplied, "expected": derived},
        )
    return derived


class ApprovalMerger:
    """Merges approved staged content into the canonical taxonomy."""

    def __init__(self, controller: PipelineController, content_store: ContentStore):
        self.controller = controller
        self.content_store = content_store

    async def approve(
        self,
        job_id: str,
        request: ApprovalRequest,
        creator_id: Optional[str] = None,
    ) -> MergeResult:
        """
        Merge one group of a pending_assignment job.

        Raises:
            InvalidTransitionError: Job is not pending_assignment
            ValidationError: Bad ids, duplicate indexes or nothing staged
            InvariantViolationError: Index outside the staged arrays
            NotFoundError: Existing chapter expected but missing
        """
        job = await self.controller.get_job(job_id)

        if job.status == JobStatus.COMPLETED and set(request.mcq_indexes) <= set(
            job.merged_mcq_indexes
        ) and set(request.flashcard_indexes) <= set(job.merged_flashcard_indexes):
            logger.info(f"Job {job_id}: approval repeated after completion, nothing to do")
            return MergeResult(
                job=job,
                topic_name=job.approved_topic or request.topic_name,
                chapter_name=job.approved_chapter or request.chapter_name,
                already_merged=True,
            )
        if job.status != JobStatus.PENDING_ASSIGNMENT:
            raise InvalidTransitionError(
                f"Only jobs pending assignment can be approved (job is '{job.status.value}')"
            )

        staged = job.staged
        if staged.is_empty():
            raise ValidationError(f"Job {job_id} has no staged content")
        _check_indexes(request.mcq_indexes, len(staged.mcqs), "MCQ", job_id)
        _check_indexes(request.flashcard_indexes, len(staged.flashcards), "flashcard", job_id)

        topic_id = _resolve_id(request.topic_name, request.topic_id, "Topic")
        chapter_id = _resolve_id(request.chapter_name, request.chapter_id, "Chapter")

        topic_name, chapter_name = await self._ensure_taxonomy(job, request, topic_id, chapter_id)

        def canonical_fields(index: int, kind: str, body: StagedMCQ | StagedFlashcard) -> dict:
            return {
                "id": f"{job_id}_{kind}_{index}",
                "topic_id": topic_id,
                "chapter_id": chapter_id,
                "topic_name": topic_name,
                "chapter_name": chapter_name,
                "upload_id": job_id,
                "creator_id": creator_id or job.user_id,
                "tags": _merge_tags(body.tags, request.tags),
            }

        mcqs_inserted = 0
        for position, index in enumerate(request.mcq_indexes):
            body = request.edited_mcqs[position] if request.edited_mcqs else staged.mcqs[index]
            mcq = MCQ(
                **body.model_dump(exclude={"tags"}),
                **canonical_fields(index, "mcq", body),
            )
            if await self.content_store.insert_mcq_if_absent(mcq):
                mcqs_inserted += 1

        flashcards_inserted = 0
        for position, index in enumerate(request.flashcard_indexes):
            body = (
                request.edited_flashcards[position]
                if request.edited_flashcards
                else staged.flashcards[index]
            )
            flashcard = Flashcard(
                **body.model_dump(exclude={"tags"}),
                **canonical_fields(index, "fc", body),
            )
            if await self.content_store.insert_flashcard_if_absent(flashcard):
                flashcards_inserted += 1

        await self.content_store.recount(topic_id, chapter_id)

        job = await self._record_merge(job_id, request, topic_name, chapter_name)
        logger.info(
            f"Job {job_id}: merged {mcqs_inserted} MCQs and {flashcards_inserted} flashcards "
            f"into {topic_id}/{chapter_id}"
        )
        return MergeResult(
            job=job,
            topic_name=topic_name,
            chapter_name=chapter_name,
            mcqs_inserted=mcqs_inserted,
            flashcards_inserted=flashcards_inserted,
        )

    async def _ensure_taxonomy(
        self,
        job: Job,
        request: ApprovalRequest,
        topic_id: str,
        chapter_id: str,
    ) -> tuple[str, str]:
        """Create or verify the target topic and chapter; return their display names."""
        source = TopicSource.MARROW if job.pipeline == PipelineType.MARROW else TopicSource.GENERAL

        topic = await self.content_store.get_topic(topic_id)
        chapter = await self.content_store.get_chapter(topic_id, chapter_id)
        if chapter is None and not request.is_new_chapter:
            raise NotFoundError(
                f"Chapter {request.chapter_name!r} not found in topic {request.topic_name!r}; "
                "approve with is_new_chapter to create it"
            )

        if topic is None:
            topic = await self.content_store.upsert_topic(topic_id, request.topic_name, source)
        chapter = await self.content_store.upsert_chapter(
            topic_id, chapter_id, request.chapter_name, source, upload_id=job.id
        )
        return topic.name, chapter.name

    async def _record_merge(
        self,
        job_id: str,
        request: ApprovalRequest,
        topic_name: str,
        chapter_name: str,
    ) -> Job:
        """Fold the merge into the job; completes it once everything is merged."""

        def decide(job: Job) -> Optional[dict[str, Any]]:
            if job.status == JobStatus.COMPLETED:
                return None
            if job.status != JobStatus.PENDING_ASSIGNMENT:
                raise InvalidTransitionError(
                    f"Job {job_id} left pending_assignment during approval ('{job.status.value}')"
                )

            merged_mcqs = set(job.merged_mcq_indexes) | set(request.mcq_indexes)
            merged_fcs = set(job.merged_flashcard_indexes) | set(request.flashcard_indexes)

            suggestions: list[AssignmentSuggestion] = []
            for position, suggestion in enumerate(job.assignment_suggestions):
                covered = set(suggestion.mcq_indexes) <= merged_mcqs and set(
                    suggestion.flashcard_indexes
                ) <= merged_fcs
                if position == request.suggestion_index or covered:
                    suggestion = suggestion.model_copy(update={"approved": True})
                suggestions.append(suggestion)

            fields: dict[str, Any] = {
                "merged_mcq_indexes": sorted(merged_mcqs),
                "merged_flashcard_indexes": sorted(merged_fcs),
                "assignment_suggestions": suggestions,
                "approved_topic": topic_name,
                "approved_chapter": chapter_name,
            }
            merged = job.model_copy(
                update={"merged_mcq_indexes": merged_mcqs, "merged_flashcard_indexes": merged_fcs}
            )
            if merged.all_items_merged():
                fields["status"] = JobStatus.COMPLETED
            return fields

        job = await self.controller.update_with_retry(job_id, decide)
        if job.status == JobStatus.COMPLETED:
            logger.info(f"Job {job_id}: every staged item merged, job completed")
        return job
