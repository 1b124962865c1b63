"""
Generation Job Data Models (Pydantic)

The Job is the aggregate root of the pipeline: one per upload, carrying the
source text, batch tracking, staged AI output, assignment suggestions and
the error log through every state of the lifecycle.

ARCHITECTURE NOTE:
    Job stores persist and return these models. Writes go through
    JobStore.update(), which applies a partial field dict and bumps
    `version` and `updated_at` (see apply_job_update).

Models:
- ContentPlan: planner output (counts plus topic/chapter guess)
- BatchTarget: per-batch MCQ/flashcard targets
- GeneratedBatch: one successful batch's output
- AwaitingReviewData: flattened staged items, addressed by index
- StagedContent: marrow pipeline staging
- MarrowExtraction / KeyTopicAnalysis: marrow worker outputs
- RawAssignmentGroup: suggester output before sanitizing
- AssignmentSuggestion: one (topic, chapter, indexes) group
- Job: the aggregate
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from quizforge.enums.job import JobStatus, PipelineType
from quizforge.models.content import StagedFlashcard, StagedMCQ


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# Fields the store owns; callers may not write them through update()
PROTECTED_JOB_FIELDS = frozenset({"id", "version", "created_at", "updated_at"})


class SuggestedPlan(BaseModel):
    """Counts of MCQs and flashcards to generate."""

    mcq_count: int = Field(default=0, ge=0)
    flashcard_count: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.mcq_count + self.flashcard_count


class ContentPlan(BaseModel):
    """
    Planner output for a general-pipeline job.

    Attributes:
        mcq_count: Suggested number of MCQs
        flashcard_count: Suggested number of flashcards
        suggested_topic: Topic display name guessed from the text
        suggested_chapter: Chapter display name guessed from the text
    """

    mcq_count: int = Field(default=0, ge=0)
    flashcard_count: int = Field(default=0, ge=0)
    suggested_topic: Optional[str] = None
    suggested_chapter: Optional[str] = None


class BatchTarget(BaseModel):
    """Generation targets for a single batch (1-based batch_number)."""

    batch_number: int = Field(..., ge=1)
    mcq_count: int = Field(default=0, ge=0)
    flashcard_count: int = Field(default=0, ge=0)


class BatchOutput(BaseModel):
    """Items returned by the batch generation worker for one chunk."""

    mcqs: list[StagedMCQ] = Field(default_factory=list)
    flashcards: list[StagedFlashcard] = Field(default_factory=list)


class GeneratedBatch(BatchOutput):
    """A successfully completed batch, as recorded on the job."""

    batch_number: int = Field(..., ge=1)


class AwaitingReviewData(BaseModel):
    """
    Staged items awaiting assignment and approval.

    Indexes into `mcqs` and `flashcards` are the only handles suggestions
    and approvals use, so the order is fixed once the data is staged.
    """

    mcqs: list[StagedMCQ] = Field(default_factory=list)
    flashcards: list[StagedFlashcard] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.mcqs and not self.flashcards


class StagedContent(BaseModel):
    """
    Marrow pipeline staging.

    Attributes:
        extracted_mcqs: Questions found verbatim in the source
        orphan_explanations: Explanations with no accompanying question
        generated_mcqs: Questions generated from orphan explanations
    """

    extracted_mcqs: list[StagedMCQ] = Field(default_factory=list)
    orphan_explanations: list[str] = Field(default_factory=list)
    generated_mcqs: list[StagedMCQ] = Field(default_factory=list)


class MarrowExtraction(BaseModel):
    """Marrow extractor output."""

    mcqs: list[StagedMCQ] = Field(default_factory=list)
    orphan_explanations: list[str] = Field(default_factory=list)


class KeyTopicAnalysis(BaseModel):
    """Key-topic analyzer output for the combined marrow MCQs."""

    suggested_topic: Optional[str] = None
    suggested_chapter: Optional[str] = None
    key_topics: list[str] = Field(default_factory=list)


class RawAssignmentGroup(BaseModel):
    """
    Unsanitized assignment group as proposed by the suggester.

    Indexes may be out of range, duplicated or overlapping with other
    groups; AssignmentResolver cleans them up.
    """

    topic_name: str = ""
    chapter_name: str = ""
    is_new_chapter: bool = False
    mcq_indexes: list[int] = Field(default_factory=list)
    flashcard_indexes: list[int] = Field(default_factory=list)


class AssignmentSuggestion(BaseModel):
    """
    One suggested (topic, chapter) group of staged item indexes.

    Attributes:
        topic_name / chapter_name: Display names (canonical when matched)
        topic_id / chapter_id: normalize_id of the names
        is_new_chapter: Chapter does not exist in the taxonomy snapshot
        mcq_indexes / flashcard_indexes: Positions in the staged arrays
        batch: Resolver invocation that produced the group (1-based)
        approved: Group has been merged into canonical storage
    """

    topic_name: str
    chapter_name: str
    topic_id: str = ""
    chapter_id: str = ""
    is_new_chapter: bool = False
    mcq_indexes: list[int] = Field(default_factory=list)
    flashcard_indexes: list[int] = Field(default_factory=list)
    batch: int = 1
    approved: bool = False


class Job(BaseModel):
    """
    Content generation job.

    Invariants:
        - exactly one status at a time
        - 0 <= completed_batches <= total_batches
        - assignment_suggestions is non-empty only when
          final_awaiting_review_data is non-empty
        - every suggestion index is a valid position in the staged arrays
    """

    # Identity
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    pipeline: PipelineType = PipelineType.GENERAL

    # Lineage
    title: str
    file_name: Optional[str] = None
    extracted_text: Optional[str] = None
    source_text: Optional[str] = None
    text_chunks: list[str] = Field(default_factory=list)

    status: JobStatus = JobStatus.PENDING_PLANNING

    # Planning
    suggested_plan: Optional[SuggestedPlan] = None
    suggested_topic: Optional[str] = None
    suggested_chapter: Optional[str] = None

    # Batch tracking. generation_run identifies the current dispatch run;
    # batch reports carry the run they were dispatched for.
    batch_size: Optional[int] = None
    generation_run: int = 0
    total_batches: int = 0
    completed_batches: int = 0
    failed_batches: list[int] = Field(default_factory=list)
    batch_plan: list[BatchTarget] = Field(default_factory=list)

    # Generation output
    generated_content: list[GeneratedBatch] = Field(default_factory=list)
    final_awaiting_review_data: Optional[AwaitingReviewData] = None

    # Marrow
    staged_content: Optional[StagedContent] = None
    suggested_new_mcq_count: Optional[int] = None
    suggested_key_topics: list[str] = Field(default_factory=list)

    # Assignment
    assignment_suggestions: list[AssignmentSuggestion] = Field(default_factory=list)
    approved_topic: Optional[str] = None
    approved_chapter: Optional[str] = None
    merged_mcq_indexes: list[int] = Field(default_factory=list)
    merged_flashcard_indexes: list[int] = Field(default_factory=list)

    # Diagnostics
    errors: list[str] = Field(default_factory=list)

    # Concurrency
    version: int = 0
    archived_from_status: Optional[JobStatus] = None

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @property
    def staged(self) -> AwaitingReviewData:
        """Staged review data, empty when nothing has been staged yet."""
        return self.final_awaiting_review_data or AwaitingReviewData()

    def all_items_merged(self) -> bool:
        """True when every staged MCQ and flashcard has been merged."""
        staged = self.staged
        if staged.is_empty():
            return False
        return set(range(len(staged.mcqs))) <= set(self.merged_mcq_indexes) and set(
            range(len(staged.flashcards))
        ) <= set(self.merged_flashcard_indexes)


def apply_job_update(job: Job, fields: dict[str, Any]) -> Job:
    """
    Return a validated copy of ``job`` with ``fields`` applied.

    Bumps ``version`` and ``updated_at``. Shared by every JobStore
    implementation so both apply writes identically.

    Raises:
        ValueError: For unknown or store-owned field names
    """
    unknown = set(fields) - set(Job.model_fields)
    if unknown:
        raise ValueError(f"Unknown job fields: {sorted(unknown)}")
    protected = set(fields) & PROTECTED_JOB_FIELDS
    if protected:
        raise ValueError(f"Job fields are managed by the store: {sorted(protected)}")

    data = job.model_dump()
    data.update(fields)
    data["version"] = job.version + 1
    data["updated_at"] = _utc_now()
    return Job.model_validate(data)
