"""
Enums package.

Centralizes the string enums shared by models, services and routers.
"""

from quizforge.enums.content import (
    ContentKind,
    ContentSource,
    ContentStatus,
    TopicSource,
)
from quizforge.enums.job import JobStatus, PipelineType
from quizforge.enums.pipeline import PipelineOperation

__all__ = [
    # Job enums
    "JobStatus",
    "PipelineType",
    # Content enums
    "ContentKind",
    "ContentSource",
    "ContentStatus",
    "TopicSource",
    # Pipeline enums
    "PipelineOperation",
]
