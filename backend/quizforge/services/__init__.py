"""Services package: job and content stores, LLM workers, the generation pipeline and background tasks."""

from quizforge.services.content_store import (
    ContentStore,
    InMemoryContentStore,
    SQLContentStore,
)
from quizforge.services.job_store import InMemoryJobStore, JobStore, SQLJobStore

__all__ = [
    "ContentStore",
    "InMemoryContentStore",
    "InMemoryJobStore",
    "JobStore",
    "SQLContentStore",
    "SQLJobStore",
]
