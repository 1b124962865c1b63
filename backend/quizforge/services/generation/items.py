"""
Staged Item Parsing

Converts raw LLM JSON objects into staged MCQs and flashcards. Malformed
entries (no question, no front/back) are dropped with a warning rather
than failing the whole batch.

Usage:
    from quizforge.services.generation.items import parse_mcqs, parse_flashcards

    mcqs = parse_mcqs(data.get("mcqs", []), ContentSource.AI_GENERATED)
"""

import logging
from typing import Any, Optional

from quizforge.enums.content import ContentSource
from quizforge.models.content import StagedFlashcard, StagedMCQ

logger = logging.getLogger(__name__)

VALID_DIFFICULTIES = {"easy", "medium", "hard"}
DEFAULT_DIFFICULTY = "medium"


def _normalize_tags(tags: Any) -> list[str]:
    """Lowercase, strip and de-duplicate tags, preserving order."""
    if not isinstance(tags, list):
        return []
    seen: list[str] = []
    for tag in tags:
        if isinstance(tag, str):
            tag = tag.strip().lower()
            if tag and tag not in seen:
                seen.append(tag)
    return seen


def _normalize_difficulty(difficulty: Any) -> str:
    if isinstance(difficulty, str) and difficulty.strip().lower() in VALID_DIFFICULTIES:
        return difficulty.strip().lower()
    return DEFAULT_DIFFICULTY


def parse_mcq(raw: Any, source: ContentSource) -> Optional[StagedMCQ]:
    """Build a StagedMCQ from one raw LLM object, or None if unusable."""
    if not isinstance(raw, dict) or not str(raw.get("question") or "").strip():
        return None
    options = raw.get("options") or []
    return StagedMCQ(
        question=str(raw["question"]).strip(),
        options=[str(o) for o in options] if isinstance(options, list) else [],
        answer=str(raw.get("answer") or "").strip(),
        explanation=raw.get("explanation") or None,
        difficulty=_normalize_difficulty(raw.get("difficulty")),
        tags=_normalize_tags(raw.get("tags")),
        source=source,
    )


def parse_flashcard(raw: Any, source: ContentSource) -> Optional[StagedFlashcard]:
    """Build a StagedFlashcard from one raw LLM object, or None if unusable."""
    if not isinstance(raw, dict):
        return None
    front = str(raw.get("front") or "").strip()
    back = str(raw.get("back") or "").strip()
    if not front or not back:
        return None
    return StagedFlashcard(
        front=front,
        back=back,
        mnemonic=raw.get("mnemonic") or None,
        tags=_normalize_tags(raw.get("tags")),
        source=source,
    )


def parse_mcqs(raw_items: Any, source: ContentSource) -> list[StagedMCQ]:
    """Parse a list of raw MCQ objects, dropping malformed entries."""
    if not isinstance(raw_items, list):
        return []
    mcqs = [m for m in (parse_mcq(raw, source) for raw in raw_items) if m is not None]
    if len(mcqs) < len(raw_items):
        logger.warning(f"Dropped {len(raw_items) - len(mcqs)} malformed MCQs from model output")
    return mcqs


def parse_flashcards(raw_items: Any, source: ContentSource) -> list[StagedFlashcard]:
    """Parse a list of raw flashcard objects, dropping malformed entries."""
    if not isinstance(raw_items, list):
        return []
    cards = [f for f in (parse_flashcard(raw, source) for raw in raw_items) if f is not None]
    if len(cards) < len(raw_items):
        logger.warning(f"Dropped {len(raw_items) - len(cards)} malformed flashcards from model output")
    return cards
