"""
Text Processing Utilities

Provides functions for identifier normalization, text cleaning, JSON
extraction and batch splitting used across the generation pipeline.

Usage:
    from quizforge.utils.text_utils import (
        normalize_id,
        clean_text,
        extract_json_from_response,
        normalize_llm_json_response,
        split_into_batches,
    )

    chapter_id = normalize_id("Neonatal Jaundice")  # "neonatal_jaundice"
    text = clean_text(raw_text)
    data = extract_json_from_response(response_text)
    data = normalize_llm_json_response(data, "mcqs")  # Ensure dict structure
    chunks = split_into_batches(text, batch_count=3)
"""

import json
import re
from typing import Any, Optional

from langchain_text_splitters import RecursiveCharacterTextSplitter

_WHITESPACE_RUN = re.compile(r"\s+")
_NON_ID_CHARS = re.compile(r"[^a-z0-9_]")


def normalize_id(name: str) -> str:
    """
    Derive the storage identity of a topic or chapter from its display name.

    Whitespace runs become a single underscore, the result is lowercased and
    every character outside [a-z0-9_] is stripped. Every writer of taxonomy
    entities must go through this function so that two names differing only
    in case, spacing or punctuation land on the same record.

    Examples:
        normalize_id("Neonatal Jaundice")          # "neonatal_jaundice"
        normalize_id("pediatric   cardiology!!")   # "pediatric_cardiology"

    Args:
        name: Display name

    Returns:
        Normalized identifier (idempotent: normalize_id(normalize_id(x)) == normalize_id(x))
    """
    if not name:
        return ""
    return _NON_ID_CHARS.sub("", _WHITESPACE_RUN.sub("_", name).lower())


def normalize_llm_json_response(data: Any, expected_key: str) -> dict:
    """
    Normalize an LLM JSON response to ensure it's a dict with expected structure.

    Use this for responses that should have a list under a specific key,
    like {"mcqs": [...]} or {"groups": [...]}.

    Sometimes LLMs return a list directly instead of a dict with the expected key.
    This function handles that case by wrapping the list in a dict.

    Args:
        data: Parsed JSON from LLM (could be dict or list)
        expected_key: The key that should contain the list (e.g., "mcqs", "groups")

    Returns:
        Normalized dict with the expected key
    """
    if isinstance(data, dict):
        return data
    elif isinstance(data, list):
        return {expected_key: data}
    else:
        return {}


def unwrap_llm_single_object_response(data: Any) -> dict:
    """
    Unwrap an LLM JSON response that should be a single object.

    Sometimes LLMs wrap the object in a list: [{"mcq_count": 10, ...}]
    This function handles that case by extracting the first item.

    Args:
        data: Parsed JSON from LLM (could be dict or list with one dict)

    Returns:
        The dict object (unwrapped from list if necessary)
    """
    if isinstance(data, dict):
        return data
    elif isinstance(data, list) and len(data) > 0 and isinstance(data[0], dict):
        return data[0]
    else:
        return {}


def clean_text(text: str) -> str:
    """
    Clean and normalize text content.

    - Removes excessive whitespace
    - Normalizes line endings
    - Removes null characters
    - Strips leading/trailing whitespace

    Args:
        text: Raw text to clean

    Returns:
        Cleaned text
    """
    if not text:
        return ""

    text = text.replace("\x00", "")
    text = text.replace("\r\n", "\n").replace("\r", "\n")

    # Collapse more than 2 consecutive blank lines
    text = re.sub(r"\n{3,}", "\n\n", text)

    # Multiple spaces to single space (but preserve newlines)
    text = re.sub(r"[^\S\n]+", " ", text)

    lines = [line.strip() for line in text.split("\n")]
    text = "\n".join(lines)

    return text.strip()


def extract_json_from_response(response_text: str) -> Optional[Any]:
    """
    Extract JSON from an LLM response that may contain markdown code blocks.

    Handles raw JSON, ```json ... ``` blocks and bare ``` ... ``` blocks.
    Only the first JSON block found is extracted.

    Args:
        response_text: LLM response text

    Returns:
        Parsed JSON object, or None if parsing fails
    """
    if not response_text:
        return None

    text = response_text.strip()

    patterns = [
        r"```json\s*([\s\S]*?)\s*```",
        r"```\s*([\s\S]*?)\s*```",
    ]

    for pattern in patterns:
        match = re.search(pattern, text)
        if match:
            text = match.group(1).strip()
            break

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        json_patterns = [
            r"(\{[\s\S]*\})",
            r"(\[[\s\S]*\])",
        ]

        for pattern in json_patterns:
            match = re.search(pattern, text)
            if match:
                try:
                    return json.loads(match.group(1))
                except json.JSONDecodeError:
                    continue

    return None


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate text to a maximum length, adding suffix if truncated.

    Tries to break at word boundaries when possible.

    Args:
        text: Text to truncate
        max_length: Maximum length (including suffix)
        suffix: String to append if truncated

    Returns:
        Truncated text
    """
    if not text or len(text) <= max_length:
        return text

    target_length = max_length - len(suffix)

    if target_length <= 0:
        return suffix[:max_length]

    truncated = text[:target_length]

    last_space = truncated.rfind(" ")
    if last_space > target_length * 0.7:  # Only break at word if not too far back
        truncated = truncated[:last_space]

    return truncated + suffix


def split_into_chunks(
    text: str,
    chunk_size: int = 4000,
    chunk_overlap: int = 200,
    separators: Optional[list[str]] = None,
) -> list[str]:
    """
    Split text into overlapping chunks using LangChain's RecursiveCharacterTextSplitter.

    This splitter tries to split on natural boundaries (paragraphs, sentences, words)
    in order of preference, preserving semantic coherence.

    Args:
        text: Text to split
        chunk_size: Target size of each chunk (in characters)
        chunk_overlap: Number of characters to overlap between chunks
        separators: Custom separators to use (defaults to paragraphs, newlines, sentences, words)

    Returns:
        List of text chunks
    """
    if not text:
        return []

    if len(text) <= chunk_size:
        return [text]

    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        separators=separators or ["\n\n", "\n", ". ", "! ", "? ", "; ", ", ", " ", ""],
        length_function=len,
    )

    return splitter.split_text(text)


def split_into_batches(text: str, batch_count: int) -> list[str]:
    """
    Split source text into exactly ``batch_count`` contiguous chunks.

    Natural-boundary pieces are produced with split_into_chunks (no overlap)
    and then packed in order into batch_count groups of roughly equal size.
    When the text yields fewer pieces than batches (very short material),
    pieces are reused round-robin so every batch still has source text.

    Args:
        text: Source text of the job
        batch_count: Number of batches to produce (>= 1)

    Returns:
        List of exactly batch_count non-empty strings (empty list for empty text)

    Raises:
        ValueError: If batch_count < 1
    """
    if batch_count < 1:
        raise ValueError(f"batch_count must be positive, got {batch_count}")

    text = text.strip() if text else ""
    if not text:
        return []

    if batch_count == 1:
        return [text]

    chunk_size = max(1, -(-len(text) // batch_count))
    pieces = [p.strip() for p in split_into_chunks(text, chunk_size=chunk_size, chunk_overlap=0)]
    pieces = [p for p in pieces if p]

    if len(pieces) < batch_count:
        return [pieces[i % len(pieces)] for i in range(batch_count)]

    groups: list[list[str]] = [[] for _ in range(batch_count)]
    for index, piece in enumerate(pieces):
        groups[index * batch_count // len(pieces)].append(piece)

    return [" ".join(group) for group in groups]
