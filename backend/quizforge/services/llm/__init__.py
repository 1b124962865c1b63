"""
LLM client package.

Usage:
    from quizforge.services.llm import get_llm_client, build_messages
"""

from quizforge.services.llm.client import (
    LLMClient,
    build_messages,
    get_llm_client,
    reset_llm_client,
)

__all__ = [
    "LLMClient",
    "build_messages",
    "get_llm_client",
    "reset_llm_client",
]
