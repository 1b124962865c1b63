"""Pydantic models for the application."""

from quizforge.models.content import (
    MCQ,
    Chapter,
    Flashcard,
    StagedFlashcard,
    StagedMCQ,
    Topic,
)
from quizforge.models.job import (
    AssignmentSuggestion,
    AwaitingReviewData,
    ContentPlan,
    Job,
)

__all__ = [
    "AssignmentSuggestion",
    "AwaitingReviewData",
    "Chapter",
    "ContentPlan",
    "Flashcard",
    "Job",
    "MCQ",
    "StagedFlashcard",
    "StagedMCQ",
    "Topic",
]
