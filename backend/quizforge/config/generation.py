"""
Content Generation Configuration

Settings for the content generation job pipeline: model selection per
stage, batching, worker timeouts and assignment fallbacks.

All settings can be overridden via environment variables with GENERATION_ prefix.

Usage:
    from quizforge.config.generation import generation_settings

    batch_size = generation_settings.DEFAULT_BATCH_SIZE
    timeout = generation_settings.BATCH_TIMEOUT_SECONDS
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class GenerationSettings(BaseSettings):
    """
    Generation pipeline configuration.

    Attributes are grouped by category:
    - LLM model configuration
    - Planning limits
    - Batch generation
    - Marrow pipeline
    - Assignment suggestions
    - Worker timeouts and concurrency
    """

    # =========================================================================
    # LLM MODEL CONFIGURATION
    # =========================================================================
    # Model identifiers use LiteLLM format: provider/model-name

    MODEL_PLANNING: str = "gemini/gemini-3-flash-preview"
    MODEL_GENERATION: str = "gemini/gemini-3-flash-preview"
    MODEL_EXTRACTION: str = "gemini/gemini-3-flash-preview"
    MODEL_ASSIGNMENT: str = "gemini/gemini-3-flash-preview"

    # =========================================================================
    # PLANNING
    # =========================================================================

    # Characters of source text sent to the planner
    PLANNING_TRUNCATE: int = 30000
    PLANNING_TEMPERATURE: float = 0.2
    PLANNING_MAX_TOKENS: int = 800

    # Upper bounds applied to planner suggestions
    MAX_PLANNED_MCQS: int = 50
    MAX_PLANNED_FLASHCARDS: int = 50

    # =========================================================================
    # BATCH GENERATION
    # =========================================================================

    # Items (MCQs + flashcards) per batch when the caller does not choose one
    DEFAULT_BATCH_SIZE: int = 10
    GENERATION_TEMPERATURE: float = 0.5
    GENERATION_MAX_TOKENS: int = 8000

    # =========================================================================
    # MARROW PIPELINE
    # =========================================================================

    EXTRACTION_TRUNCATE: int = 60000
    EXTRACTION_TEMPERATURE: float = 0.1
    EXTRACTION_MAX_TOKENS: int = 12000
    KEY_TOPICS_MAX: int = 10

    # =========================================================================
    # ASSIGNMENT SUGGESTIONS
    # =========================================================================

    ASSIGNMENT_TEMPERATURE: float = 0.2
    ASSIGNMENT_MAX_TOKENS: int = 4000
    # Max chars of each staged item shown to the assignment model
    ASSIGNMENT_ITEM_TRUNCATE: int = 200

    # Names used for indexes the assignment model left out
    FALLBACK_TOPIC_NAME: str = "Unassigned"
    FALLBACK_CHAPTER_NAME: str = "General"

    # =========================================================================
    # WORKER TIMEOUTS AND CONCURRENCY
    # =========================================================================

    # Planning, marrow extraction/generation and assignment calls
    WORKER_TIMEOUT_SECONDS: float = 120.0
    # Per-batch generation call
    BATCH_TIMEOUT_SECONDS: float = 180.0
    # Batches in flight at once for a single job
    MAX_CONCURRENT_BATCHES: int = 4
    # Re-read attempts when a commutative job write loses a race
    MAX_CONFLICT_RETRIES: int = 5

    class Config:
        env_prefix = "GENERATION_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_generation_settings() -> GenerationSettings:
    """Get cached generation settings instance."""
    return GenerationSettings()


generation_settings = get_generation_settings()
