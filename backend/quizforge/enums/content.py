"""
Content-related enums.

Defines enums for canonical quiz items and the topic/chapter taxonomy.
"""

from enum import Enum


class ContentStatus(str, Enum):
    """
    Status of a canonical MCQ or flashcard.

    Items written by the approval merger start as APPROVED. The only
    later move is APPROVED -> ARCHIVED.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class ContentSource(str, Enum):
    """Where a quiz item came from."""

    AI_GENERATED = "AI_Generated"
    MARROW_EXTRACTED = "Marrow_Extracted"
    MARROW_AI_GENERATED = "Marrow_AI_Generated"


class TopicSource(str, Enum):
    """Which pipeline created a topic or chapter."""

    GENERAL = "General"
    MARROW = "Marrow"


class ContentKind(str, Enum):
    """Kind of staged or canonical quiz item."""

    MCQ = "mcq"
    FLASHCARD = "fc"
