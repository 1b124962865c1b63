"""
Generation Job API Request/Response Models

DTOs for the /api/jobs and /api/topics endpoints, separate from the domain
models in job.py and content.py.

Usage:
    from quizforge.models.job_api import (
        CreateJobRequest,
        GenerateContentRequest,
        ApprovalRequest,
        JobSummary,
    )
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from quizforge.enums.job import JobStatus, PipelineType
from quizforge.models.base import StrictRequest, StrictResponse
from quizforge.models.content import StagedFlashcard, StagedMCQ
from quizforge.models.job import ContentPlan, Job


# =============================================================================
# Job Creation
# =============================================================================


class CreateJobRequest(StrictRequest):
    """
    Request body for creating a job from manually entered or OCR'd text.

    Note: Uses StrictRequest - unknown fields will be rejected with 422.
    """

    title: str = Field(..., min_length=1, max_length=500)
    raw_text: str = Field(..., min_length=1)
    pipeline: PipelineType = PipelineType.GENERAL
    user_id: str = Field(..., min_length=1)
    file_name: Optional[str] = None


# =============================================================================
# Generation
# =============================================================================


class GenerateContentRequest(StrictRequest):
    """Operator-chosen counts for batch generation."""

    mcq_count: int = Field(default=0, ge=0)
    flashcard_count: int = Field(default=0, ge=0)
    batch_size: Optional[int] = Field(default=None, ge=1)


class PlanResponse(BaseModel):
    """Response for plan_content_generation."""

    job_id: str
    plan: ContentPlan


class OperationResponse(BaseModel):
    """Uniform {success, message} result of a job operation."""

    success: bool = True
    message: str
    job_id: str
    status: JobStatus


# =============================================================================
# Assignment and Approval
# =============================================================================


class SuggestAssignmentRequest(StrictRequest):
    """Optional scope for assignment suggestion."""

    scope_to_topic_name: Optional[str] = None


class ApprovalRequest(StrictRequest):
    """
    One group of staged items to merge into canonical storage.

    Ids are optional; when given they must equal normalize_id of the
    matching name. Edited bodies, when given, replace the staged item at
    the same position of the index list.

    Note: Uses StrictRequest - unknown fields will be rejected with 422.
    """

    topic_id: Optional[str] = None
    topic_name: str = Field(..., min_length=1)
    chapter_id: Optional[str] = None
    chapter_name: str = Field(..., min_length=1)
    is_new_chapter: bool = False
    mcq_indexes: list[int] = Field(default_factory=list)
    flashcard_indexes: list[int] = Field(default_factory=list)
    edited_mcqs: Optional[list[StagedMCQ]] = None
    edited_flashcards: Optional[list[StagedFlashcard]] = None
    tags: list[str] = Field(default_factory=list)
    suggestion_index: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_edits_align(self) -> "ApprovalRequest":
        if not self.mcq_indexes and not self.flashcard_indexes:
            raise ValueError("At least one MCQ or flashcard index is required")
        if self.edited_mcqs is not None and len(self.edited_mcqs) != len(self.mcq_indexes):
            raise ValueError("edited_mcqs must align with mcq_indexes")
        if self.edited_flashcards is not None and len(self.edited_flashcards) != len(
            self.flashcard_indexes
        ):
            raise ValueError("edited_flashcards must align with flashcard_indexes")
        return self


class MarrowGenerateRequest(StrictRequest):
    """Number of MCQs to generate from orphan explanations."""

    count: int = Field(..., ge=0)


class MarrowApprovalRequest(StrictRequest):
    """Single destination for every staged marrow item."""

    topic_id: Optional[str] = None
    topic_name: str = Field(..., min_length=1)
    chapter_id: Optional[str] = None
    chapter_name: str = Field(..., min_length=1)
    key_topics: Optional[list[str]] = None


# =============================================================================
# Listings
# =============================================================================


class JobSummary(StrictResponse):
    """Queue listing entry."""

    id: str
    title: str
    user_id: str
    pipeline: PipelineType
    status: JobStatus
    total_batches: int = 0
    completed_batches: int = 0
    failed_batches: list[int] = Field(default_factory=list)
    error_count: int = 0
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: Job) -> "JobSummary":
        return cls(**job.model_dump(), error_count=len(job.errors))


class JobListResponse(BaseModel):
    """Response for GET /api/jobs."""

    jobs: list[JobSummary]
    total: int
