"""
Quiz Content Data Models (Pydantic)

Pydantic models for staged and canonical quiz items and the topic/chapter
taxonomy.

ARCHITECTURE NOTE:
    Staged items live inside a generation job and have no identity beyond
    their position in the job's staging arrays. Canonical items are created
    only by the approval merger and carry a deterministic id derived from
    the job id and the staged index.

    The corresponding SQLAlchemy models live in quizforge/db/models.py.

Models:
- StagedMCQ / StagedFlashcard: AI output awaiting review
- MCQ / Flashcard: canonical, approved content
- Chapter / Topic: taxonomy entities keyed by normalized name
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from quizforge.enums.content import ContentSource, ContentStatus, TopicSource


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# Staged items
# =============================================================================


class StagedMCQ(BaseModel):
    """
    Multiple-choice question awaiting review.

    Attributes:
        question: Question stem
        options: Answer options in display order
        answer: Correct option (letter or option text, as produced)
        explanation: Why the answer is correct
        difficulty: easy, medium or hard
        tags: Lowercase topical tags
        source: Which generation path produced the item
    """

    question: str
    options: list[str] = Field(default_factory=list)
    answer: str = ""
    explanation: Optional[str] = None
    difficulty: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    source: ContentSource = ContentSource.AI_GENERATED


class StagedFlashcard(BaseModel):
    """Flashcard awaiting review."""

    front: str
    back: str
    mnemonic: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    source: ContentSource = ContentSource.AI_GENERATED


# =============================================================================
# Canonical items
# =============================================================================


class CanonicalItem(BaseModel):
    """
    Fields shared by canonical MCQs and flashcards.

    Attributes:
        id: Deterministic id "{job_id}_{mcq|fc}_{index}"
        topic_id / chapter_id: Normalized taxonomy keys
        topic_name / chapter_name: Display names at approval time
        status: Lifecycle status (created as approved)
        upload_id: Job the item was staged in
        creator_id: User who approved the item
    """

    id: str
    topic_id: str
    chapter_id: str
    topic_name: str
    chapter_name: str
    status: ContentStatus = ContentStatus.APPROVED
    upload_id: str
    source: ContentSource = ContentSource.AI_GENERATED
    tags: list[str] = Field(default_factory=list)
    creator_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utc_now)


class MCQ(CanonicalItem):
    """Canonical multiple-choice question."""

    question: str
    options: list[str] = Field(default_factory=list)
    answer: str = ""
    explanation: Optional[str] = None
    difficulty: Optional[str] = None


class Flashcard(CanonicalItem):
    """Canonical flashcard."""

    front: str
    back: str
    mnemonic: Optional[str] = None


# =============================================================================
# Taxonomy
# =============================================================================


class Chapter(BaseModel):
    """
    Chapter within a topic.

    Identity is (topic_id, id) where id = normalize_id(name). Counts reflect
    approved canonical items only and are recomputed after every merge.
    """

    id: str
    topic_id: str
    name: str
    source: TopicSource = TopicSource.GENERAL
    mcq_count: int = 0
    flashcard_count: int = 0
    source_upload_ids: list[str] = Field(default_factory=list)


class Topic(BaseModel):
    """Top-level taxonomy entry with its chapters and rolled-up counts."""

    id: str
    name: str
    source: TopicSource = TopicSource.GENERAL
    chapter_count: int = 0
    total_mcq_count: int = 0
    total_flashcard_count: int = 0
    chapters: list[Chapter] = Field(default_factory=list)

    def find_chapter(self, chapter_id: str) -> Optional[Chapter]:
        """Return the chapter with the given normalized id, if present."""
        for chapter in self.chapters:
            if chapter.id == chapter_id:
                return chapter
        return None
