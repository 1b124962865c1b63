"""
Taxonomy API Router

Read-only view of the canonical topic/chapter taxonomy.

Endpoints:
- GET /api/topics - All topics with chapters and counts
- GET /api/topics/{topic_id} - One topic
"""

from fastapi import APIRouter, Depends

from quizforge.dependencies import get_job_service
from quizforge.middleware.error_handling import NotFoundError
from quizforge.models.content import Topic
from quizforge.services.pipeline.service import GenerationJobService

router = APIRouter(prefix="/api/topics", tags=["topics"])


@router.get("", response_model=list[Topic])
async def list_topics(service: GenerationJobService = Depends(get_job_service)):
    return await service.list_topics()


@router.get("/{topic_id}", response_model=Topic)
async def get_topic(topic_id: str, service: GenerationJobService = Depends(get_job_service)):
    topic = await service.content_store.get_topic(topic_id)
    if topic is None:
        raise NotFoundError(f"Topic {topic_id} not found")
    return topic
