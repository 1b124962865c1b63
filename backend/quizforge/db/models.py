"""
SQLAlchemy Database Models

These models define the PostgreSQL schema for quiz content generation.

Tables:
- generation_jobs: One row per upload, the pipeline's aggregate root
- topics: Taxonomy topics keyed by normalized name
- chapters: Chapters keyed by (topic_id, normalized name)
- mcqs: Canonical multiple-choice questions
- flashcards: Canonical flashcards

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    The corresponding Pydantic models are in quizforge/models/job.py and
    quizforge/models/content.py.

    generation_jobs column names match the Job model's field names, so
    rows convert to and from Job without a mapping table. Nested job
    structures (staged items, suggestions, batch output) are JSONB.

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database
"""

from datetime import datetime, timezone
from typing import Optional


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


from sqlalchemy import (
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from quizforge.db.base import Base


# ===========================================
# Generation Jobs
# ===========================================


class GenerationJob(Base):
    """
    Content generation job.

    Attributes:
        id: UUID string primary key.
        status: Current JobStatus value. Every write is conditional on
            `version` (and optionally on `status`), see SQLJobStore.update.
        version: Incremented on every write; used for compare-and-set.
        generation_run: Bumped by every fresh generation run; reports from
            older runs are discarded.
        text_chunks: One source-text chunk per batch.
        generated_content: Append-only list of successful batch outputs.
        final_awaiting_review_data: Flattened staged items {mcqs, flashcards}.
        assignment_suggestions: Ordered suggestion groups.
        errors: Append-only human-readable error strings.
    """

    __tablename__ = "generation_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    pipeline: Mapped[str] = mapped_column(String(20))

    # Lineage
    title: Mapped[str] = mapped_column(String(500))
    file_name: Mapped[Optional[str]] = mapped_column(String(500))
    extracted_text: Mapped[Optional[str]] = mapped_column(Text)
    source_text: Mapped[Optional[str]] = mapped_column(Text)
    text_chunks: Mapped[list] = mapped_column(JSONB, default=list)

    status: Mapped[str] = mapped_column(String(40), index=True)

    # Planning
    suggested_plan: Mapped[Optional[dict]] = mapped_column(JSONB)
    suggested_topic: Mapped[Optional[str]] = mapped_column(String(500))
    suggested_chapter: Mapped[Optional[str]] = mapped_column(String(500))

    # Batch tracking
    batch_size: Mapped[Optional[int]] = mapped_column(Integer)
    generation_run: Mapped[int] = mapped_column(Integer, default=0)
    total_batches: Mapped[int] = mapped_column(Integer, default=0)
    completed_batches: Mapped[int] = mapped_column(Integer, default=0)
    failed_batches: Mapped[list] = mapped_column(JSONB, default=list)
    batch_plan: Mapped[list] = mapped_column(JSONB, default=list)

    # Generation output
    generated_content: Mapped[list] = mapped_column(JSONB, default=list)
    final_awaiting_review_data: Mapped[Optional[dict]] = mapped_column(JSONB)

    # Marrow
    staged_content: Mapped[Optional[dict]] = mapped_column(JSONB)
    suggested_new_mcq_count: Mapped[Optional[int]] = mapped_column(Integer)
    suggested_key_topics: Mapped[list] = mapped_column(JSONB, default=list)

    # Assignment
    assignment_suggestions: Mapped[list] = mapped_column(JSONB, default=list)
    approved_topic: Mapped[Optional[str]] = mapped_column(String(500))
    approved_chapter: Mapped[Optional[str]] = mapped_column(String(500))
    merged_mcq_indexes: Mapped[list] = mapped_column(JSONB, default=list)
    merged_flashcard_indexes: Mapped[list] = mapped_column(JSONB, default=list)

    errors: Mapped[list] = mapped_column(JSONB, default=list)

    # Concurrency
    version: Mapped[int] = mapped_column(Integer, default=0)
    archived_from_status: Mapped[Optional[str]] = mapped_column(String(40))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


# ===========================================
# Taxonomy
# ===========================================


class TopicRecord(Base):
    """
    Taxonomy topic.

    Attributes:
        id: normalize_id(name). Upserts key on this column.
        chapter_count / total_*_count: Recomputed from approved items after
            every merge, never incremented blindly.
    """

    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    name: Mapped[str] = mapped_column(String(500))
    source: Mapped[str] = mapped_column(String(20))
    chapter_count: Mapped[int] = mapped_column(Integer, default=0)
    total_mcq_count: Mapped[int] = mapped_column(Integer, default=0)
    total_flashcard_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


class ChapterRecord(Base):
    """Chapter scoped to a topic; composite key (topic_id, id)."""

    __tablename__ = "chapters"

    topic_id: Mapped[str] = mapped_column(
        String(200), ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
    )
    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    name: Mapped[str] = mapped_column(String(500))
    source: Mapped[str] = mapped_column(String(20))
    mcq_count: Mapped[int] = mapped_column(Integer, default=0)
    flashcard_count: Mapped[int] = mapped_column(Integer, default=0)
    source_upload_ids: Mapped[list] = mapped_column(ARRAY(String), default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


# ===========================================
# Canonical Content
# ===========================================


class MCQRecord(Base):
    """
    Canonical multiple-choice question.

    The id is "{job_id}_mcq_{index}", so re-running an approval inserts
    nothing new (INSERT ... ON CONFLICT DO NOTHING).
    """

    __tablename__ = "mcqs"
    __table_args__ = (
        ForeignKeyConstraint(
            ["topic_id", "chapter_id"], ["chapters.topic_id", "chapters.id"]
        ),
        Index("ix_mcqs_topic_chapter_status", "topic_id", "chapter_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    question: Mapped[str] = mapped_column(Text)
    options: Mapped[list] = mapped_column(JSONB, default=list)
    answer: Mapped[str] = mapped_column(Text, default="")
    explanation: Mapped[Optional[str]] = mapped_column(Text)
    difficulty: Mapped[Optional[str]] = mapped_column(String(20))

    topic_id: Mapped[str] = mapped_column(String(200))
    chapter_id: Mapped[str] = mapped_column(String(200))
    topic_name: Mapped[str] = mapped_column(String(500))
    chapter_name: Mapped[str] = mapped_column(String(500))
    status: Mapped[str] = mapped_column(String(20))
    upload_id: Mapped[str] = mapped_column(String(36), index=True)
    source: Mapped[str] = mapped_column(String(40))
    tags: Mapped[list] = mapped_column(ARRAY(String), default=list)
    creator_id: Mapped[Optional[str]] = mapped_column(String(128))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class FlashcardRecord(Base):
    """Canonical flashcard, id "{job_id}_fc_{index}"."""

    __tablename__ = "flashcards"
    __table_args__ = (
        ForeignKeyConstraint(
            ["topic_id", "chapter_id"], ["chapters.topic_id", "chapters.id"]
        ),
        Index("ix_flashcards_topic_chapter_status", "topic_id", "chapter_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    front: Mapped[str] = mapped_column(Text)
    back: Mapped[str] = mapped_column(Text)
    mnemonic: Mapped[Optional[str]] = mapped_column(Text)

    topic_id: Mapped[str] = mapped_column(String(200))
    chapter_id: Mapped[str] = mapped_column(String(200))
    topic_name: Mapped[str] = mapped_column(String(500))
    chapter_name: Mapped[str] = mapped_column(String(500))
    status: Mapped[str] = mapped_column(String(20))
    upload_id: Mapped[str] = mapped_column(String(36), index=True)
    source: Mapped[str] = mapped_column(String(40))
    tags: Mapped[list] = mapped_column(ARRAY(String), default=list)
    creator_id: Mapped[Optional[str]] = mapped_column(String(128))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
