"""
Generation Jobs API Router

Exposes the content generation job lifecycle.

Endpoints:
- POST /api/jobs - Create a job from text
- GET /api/jobs - List jobs (non-archived by default)
- GET /api/jobs/{job_id} - Get a job
- POST /api/jobs/{job_id}/plan - Suggest MCQ/flashcard counts
- POST /api/jobs/{job_id}/generate - Start batch generation (runs in background)
- POST /api/jobs/{job_id}/suggest-assignment - Suggest topic/chapter groups
- POST /api/jobs/{job_id}/approve - Merge one group into canonical content
- POST /api/jobs/{job_id}/reset | archive | unarchive | retry | regenerate | reassign
- POST /api/jobs/{job_id}/marrow/extract | generate | approve

Usage:
    POST /api/jobs
    {"title": "Neonatology notes", "raw_text": "...", "user_id": "u1"}

    POST /api/jobs/{job_id}/generate
    {"mcq_count": 20, "flashcard_count": 10, "batch_size": 10}
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from quizforge.dependencies import get_job_service
from quizforge.enums.job import JobStatus
from quizforge.models.job import AssignmentSuggestion, Job
from quizforge.models.job_api import (
    ApprovalRequest,
    CreateJobRequest,
    GenerateContentRequest,
    JobListResponse,
    JobSummary,
    MarrowApprovalRequest,
    MarrowGenerateRequest,
    OperationResponse,
    PlanResponse,
    SuggestAssignmentRequest,
)
from quizforge.services.pipeline.merger import MergeResult
from quizforge.services.pipeline.service import GenerationJobService, OperationResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


def _to_response(result: OperationResult | MergeResult) -> OperationResponse:
    success = getattr(result, "success", True)
    return OperationResponse(
        success=success,
        message=result.message,
        job_id=result.job.id,
        status=result.job.status,
    )


# =============================================================================
# Jobs
# =============================================================================


@router.post("", response_model=Job, status_code=status.HTTP_201_CREATED)
async def create_job(
    request: CreateJobRequest,
    service: GenerationJobService = Depends(get_job_service),
):
    """Create a job in pending_planning from manually entered text."""
    return await service.create_job(
        title=request.title,
        raw_text=request.raw_text,
        user_id=request.user_id,
        pipeline=request.pipeline,
        file_name=request.file_name,
    )


@router.get("", response_model=JobListResponse)
async def list_jobs(
    statuses: Optional[list[JobStatus]] = Query(None, alias="status"),
    service: GenerationJobService = Depends(get_job_service),
):
    """List jobs, newest first. Without a status filter archived jobs are hidden."""
    jobs = await service.list_jobs(statuses)
    return JobListResponse(jobs=[JobSummary.from_job(j) for j in jobs], total=len(jobs))


@router.get("/{job_id}", response_model=Job)
async def get_job(job_id: str, service: GenerationJobService = Depends(get_job_service)):
    return await service.get_job(job_id)


# =============================================================================
# General pipeline
# =============================================================================


@router.post("/{job_id}/plan", response_model=PlanResponse)
async def plan_job(job_id: str, service: GenerationJobService = Depends(get_job_service)):
    """Ask the planner for counts; the job moves to pending_generation."""
    plan = await service.plan_content_generation(job_id)
    return PlanResponse(job_id=job_id, plan=plan)


@router.post(
    "/{job_id}/generate",
    response_model=OperationResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def generate_content(
    job_id: str,
    request: GenerateContentRequest,
    background_tasks: BackgroundTasks,
    service: GenerationJobService = Depends(get_job_service),
):
    """
    Start batch generation.

    The job moves to generating_content before the response is sent;
    batches run in the background and the job's status reports progress.
    """
    job, batch_numbers = await service.start_content_generation(
        job_id, request.mcq_count, request.flashcard_count, request.batch_size
    )
    background_tasks.add_task(service.run_batches, job, batch_numbers)
    return OperationResponse(
        message=f"Dispatched {len(batch_numbers)} of {job.total_batches} batches",
        job_id=job.id,
        status=job.status,
    )


@router.post("/{job_id}/suggest-assignment", response_model=list[AssignmentSuggestion])
async def suggest_assignment(
    job_id: str,
    request: Optional[SuggestAssignmentRequest] = None,
    service: GenerationJobService = Depends(get_job_service),
):
    """Append a new batch of topic/chapter suggestions and return it."""
    scope = request.scope_to_topic_name if request else None
    return await service.suggest_assignment(job_id, scope_to_topic_name=scope)


@router.post("/{job_id}/approve", response_model=OperationResponse)
async def approve_content(
    job_id: str,
    request: ApprovalRequest,
    service: GenerationJobService = Depends(get_job_service),
):
    """Merge one group of staged items into canonical content."""
    return _to_response(await service.approve_generated_content(job_id, request))


# =============================================================================
# Operator actions
# =============================================================================


@router.post("/{job_id}/reset", response_model=OperationResponse)
async def reset_job(job_id: str, service: GenerationJobService = Depends(get_job_service)):
    return _to_response(await service.reset_upload(job_id))


@router.post("/{job_id}/archive", response_model=OperationResponse)
async def archive_job(job_id: str, service: GenerationJobService = Depends(get_job_service)):
    return _to_response(await service.archive_upload(job_id))


@router.post("/{job_id}/unarchive", response_model=OperationResponse)
async def unarchive_job(job_id: str, service: GenerationJobService = Depends(get_job_service)):
    return _to_response(await service.unarchive_upload(job_id))


@router.post("/{job_id}/retry", response_model=OperationResponse)
async def retry_job(job_id: str, service: GenerationJobService = Depends(get_job_service)):
    return _to_response(await service.retry_generation(job_id))


@router.post("/{job_id}/regenerate", response_model=OperationResponse)
async def regenerate_job(job_id: str, service: GenerationJobService = Depends(get_job_service)):
    return _to_response(await service.regenerate_content(job_id))


@router.post("/{job_id}/reassign", response_model=OperationResponse)
async def reassign_job(job_id: str, service: GenerationJobService = Depends(get_job_service)):
    return _to_response(await service.reassign_content(job_id))


# =============================================================================
# Marrow pipeline
# =============================================================================


@router.post("/{job_id}/marrow/extract", response_model=Job)
async def extract_marrow(job_id: str, service: GenerationJobService = Depends(get_job_service)):
    """Extract MCQs and orphan explanations; the job awaits a generation decision."""
    return await service.extract_marrow_content(job_id)


@router.post("/{job_id}/marrow/generate", response_model=Job)
async def generate_marrow(
    job_id: str,
    request: MarrowGenerateRequest,
    service: GenerationJobService = Depends(get_job_service),
):
    """Generate MCQs from orphan explanations and stage everything for assignment."""
    return await service.generate_and_analyze_marrow_content(job_id, request.count)


@router.post("/{job_id}/marrow/approve", response_model=OperationResponse)
async def approve_marrow(
    job_id: str,
    request: MarrowApprovalRequest,
    service: GenerationJobService = Depends(get_job_service),
):
    """Merge every staged marrow MCQ into one chapter."""
    return _to_response(await service.approve_marrow_content(job_id, request))
