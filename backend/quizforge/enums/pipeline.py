"""
Pipeline-related enums.

Defines enums for LLM operations used by the generation workers.
"""

from enum import Enum


class PipelineOperation(str, Enum):
    """
    Operation types for LLM calls.

    Used for both:
    1. Model selection: LLMClient uses this to pick the model for each task
    2. Logging: usage lines are tagged with the operation for cost analysis
    """

    # General pipeline
    CONTENT_PLANNING = "CONTENT_PLANNING"
    BATCH_GENERATION = "BATCH_GENERATION"
    ASSIGNMENT_SUGGESTION = "ASSIGNMENT_SUGGESTION"

    # Marrow pipeline
    MARROW_EXTRACTION = "MARROW_EXTRACTION"
    MARROW_GENERATION = "MARROW_GENERATION"
    KEY_TOPIC_ANALYSIS = "KEY_TOPIC_ANALYSIS"
