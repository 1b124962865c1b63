"""Initial content generation schema

Revision ID: 001_generation
Revises:
Create Date: 2026-10-19

Creates the following tables:
- generation_jobs: One row per upload; status + version drive the
  conditional writes of the job pipeline
- topics / chapters: Taxonomy keyed by normalized names
- mcqs / flashcards: Canonical approved content with deterministic ids
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001_generation"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, with_updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        )
    ]
    if with_updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            )
        )
    return columns


def _canonical_columns() -> list[sa.Column]:
    return [
        sa.Column("topic_id", sa.String(200), nullable=False),
        sa.Column("chapter_id", sa.String(200), nullable=False),
        sa.Column("topic_name", sa.String(500), nullable=False),
        sa.Column("chapter_name", sa.String(500), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("upload_id", sa.String(36), nullable=False),
        sa.Column("source", sa.String(40), nullable=False),
        sa.Column("tags", postgresql.ARRAY(sa.String()), nullable=True),
        sa.Column("creator_id", sa.String(128), nullable=True),
    ]


def upgrade() -> None:
    # Jobs
    op.create_table(
        "generation_jobs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("pipeline", sa.String(20), nullable=False),
        # Lineage
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("file_name", sa.String(500), nullable=True),
        sa.Column("extracted_text", sa.Text(), nullable=True),
        sa.Column("source_text", sa.Text(), nullable=True),
        sa.Column("text_chunks", postgresql.JSONB(), nullable=True),
        sa.Column("status", sa.String(40), nullable=False),
        # Planning
        sa.Column("suggested_plan", postgresql.JSONB(), nullable=True),
        sa.Column("suggested_topic", sa.String(500), nullable=True),
        sa.Column("suggested_chapter", sa.String(500), nullable=True),
        # Batch tracking
        sa.Column("batch_size", sa.Integer(), nullable=True),
        sa.Column("generation_run", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_batches", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_batches", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_batches", postgresql.JSONB(), nullable=True),
        sa.Column("batch_plan", postgresql.JSONB(), nullable=True),
        # Generation output
        sa.Column("generated_content", postgresql.JSONB(), nullable=True),
        sa.Column("final_awaiting_review_data", postgresql.JSONB(), nullable=True),
        # Marrow
        sa.Column("staged_content", postgresql.JSONB(), nullable=True),
        sa.Column("suggested_new_mcq_count", sa.Integer(), nullable=True),
        sa.Column("suggested_key_topics", postgresql.JSONB(), nullable=True),
        # Assignment
        sa.Column("assignment_suggestions", postgresql.JSONB(), nullable=True),
        sa.Column("approved_topic", sa.String(500), nullable=True),
        sa.Column("approved_chapter", sa.String(500), nullable=True),
        sa.Column("merged_mcq_indexes", postgresql.JSONB(), nullable=True),
        sa.Column("merged_flashcard_indexes", postgresql.JSONB(), nullable=True),
        sa.Column("errors", postgresql.JSONB(), nullable=True),
        # Concurrency
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("archived_from_status", sa.String(40), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_generation_jobs_user_id", "generation_jobs", ["user_id"])
    op.create_index("ix_generation_jobs_status", "generation_jobs", ["status"])

    # Taxonomy
    op.create_table(
        "topics",
        sa.Column("id", sa.String(200), nullable=False),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("chapter_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_mcq_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_flashcard_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "chapters",
        sa.Column("topic_id", sa.String(200), nullable=False),
        sa.Column("id", sa.String(200), nullable=False),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("mcq_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("flashcard_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("source_upload_ids", postgresql.ARRAY(sa.String()), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("topic_id", "id"),
        sa.ForeignKeyConstraint(["topic_id"], ["topics.id"], ondelete="CASCADE"),
    )

    # Canonical content
    op.create_table(
        "mcqs",
        sa.Column("id", sa.String(100), nullable=False),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("options", postgresql.JSONB(), nullable=True),
        sa.Column("answer", sa.Text(), nullable=True),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("difficulty", sa.String(20), nullable=True),
        *_canonical_columns(),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["topic_id", "chapter_id"], ["chapters.topic_id", "chapters.id"]
        ),
    )
    op.create_index("ix_mcqs_upload_id", "mcqs", ["upload_id"])
    op.create_index("ix_mcqs_topic_chapter_status", "mcqs", ["topic_id", "chapter_id", "status"])

    op.create_table(
        "flashcards",
        sa.Column("id", sa.String(100), nullable=False),
        sa.Column("front", sa.Text(), nullable=False),
        sa.Column("back", sa.Text(), nullable=False),
        sa.Column("mnemonic", sa.Text(), nullable=True),
        *_canonical_columns(),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["topic_id", "chapter_id"], ["chapters.topic_id", "chapters.id"]
        ),
    )
    op.create_index("ix_flashcards_upload_id", "flashcards", ["upload_id"])
    op.create_index(
        "ix_flashcards_topic_chapter_status", "flashcards", ["topic_id", "chapter_id", "status"]
    )


def downgrade() -> None:
    op.drop_index("ix_flashcards_topic_chapter_status", table_name="flashcards")
    op.drop_index("ix_flashcards_upload_id", table_name="flashcards")
    op.drop_table("flashcards")
    op.drop_index("ix_mcqs_topic_chapter_status", table_name="mcqs")
    op.drop_index("ix_mcqs_upload_id", table_name="mcqs")
    op.drop_table("mcqs")
    op.drop_table("chapters")
    op.drop_table("topics")
    op.drop_index("ix_generation_jobs_status", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_user_id", table_name="generation_jobs")
    op.drop_table("generation_jobs")
