"""
Generation job pipeline: state machine, controller, batch dispatch,
assignment resolution, approval merge and the service facade.
"""

from quizforge.services.pipeline.controller import PipelineController
from quizforge.services.pipeline.dispatcher import BatchDispatcher
from quizforge.services.pipeline.marrow import MarrowWorkflow
from quizforge.services.pipeline.merger import ApprovalMerger, MergeResult
from quizforge.services.pipeline.resolver import AssignmentResolver
from quizforge.services.pipeline.service import GenerationJobService, OperationResult

__all__ = [
    "ApprovalMerger",
    "AssignmentResolver",
    "BatchDispatcher",
    "GenerationJobService",
    "MarrowWorkflow",
    "MergeResult",
    "OperationResult",
    "PipelineController",
]
