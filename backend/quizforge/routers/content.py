"""
Canonical Content API Router

Moderation of merged MCQs and flashcards.

Endpoints:
- POST /api/content/{kind}/{item_id}/archive - Archive an approved item (kind: mcq | fc)
"""

from fastapi import APIRouter, Depends

from quizforge.dependencies import get_job_service
from quizforge.enums.content import ContentKind
from quizforge.models.content import Topic
from quizforge.services.pipeline.service import GenerationJobService

router = APIRouter(prefix="/api/content", tags=["content"])


@router.post("/{kind}/{item_id}/archive", response_model=Topic)
async def archive_item(
    kind: ContentKind,
    item_id: str,
    service: GenerationJobService = Depends(get_job_service),
):
    """Archive an item; the response is its topic with the refreshed counts."""
    return await service.archive_content_item(kind, item_id)
