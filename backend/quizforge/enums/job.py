"""
Job-related enums.

Defines the closed set of generation job states and pipeline variants.
"""

from enum import Enum


class JobStatus(str, Enum):
    """
    Lifecycle state of a content generation job.

    A job holds exactly one status at a time. Legal moves between states are
    declared in services/pipeline/state_machine.py.
    """

    PENDING_UPLOAD = "pending_upload"
    PROCESSING_OCR = "processing_ocr"
    PENDING_PLANNING = "pending_planning"
    PENDING_GENERATION = "pending_generation"
    GENERATING_CONTENT = "generating_content"
    GENERATION_FAILED_PARTIALLY = "generation_failed_partially"
    PENDING_GENERATION_DECISION = "pending_generation_decision"
    PENDING_ASSIGNMENT = "pending_assignment"
    COMPLETED = "completed"
    ERROR = "error"
    ARCHIVED = "archived"


class PipelineType(str, Enum):
    """Pipeline variant a job runs through."""

    # plan -> batched generation -> assignment -> approval
    GENERAL = "general"
    # extract existing questions -> generate from orphan explanations -> approval
    MARROW = "marrow"
