"""
Generation Workers

The pipeline talks to AI only through the async callables bundled in
GenerationWorkers. Each has a narrow contract, so tests and alternative
backends can swap any of them for a plain coroutine function.

Contracts (every worker also takes a keyword-only job_id used to attribute
LLM usage to the job):
    planner(text) -> ContentPlan
    batch_generator(text_chunk, batch_number, mcq_count, flashcard_count) -> BatchOutput
    marrow_extractor(text) -> MarrowExtraction
    explanation_generator(explanations, count) -> list[StagedMCQ]
    key_topic_analyzer(mcqs) -> KeyTopicAnalysis
    assignment_suggester(staged, taxonomy, scope_to_topic_name) -> list[RawAssignmentGroup]

Usage:
    from quizforge.services.generation.workers import GenerationWorkers

    workers = GenerationWorkers.from_llm_client(get_llm_client())
    plan = await workers.planner(job.source_text, job_id=job.id)
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional

from quizforge.models.content import StagedMCQ, Topic
from quizforge.models.job import (
    AwaitingReviewData,
    BatchOutput,
    ContentPlan,
    KeyTopicAnalysis,
    MarrowExtraction,
    RawAssignmentGroup,
)
from quizforge.models.llm_usage import LLMUsage
from quizforge.services.generation.assignment import suggest_assignment_groups
from quizforge.services.generation.batch_generation import generate_batch
from quizforge.services.generation.marrow import (
    analyze_key_topics,
    extract_marrow_content,
    generate_from_explanations,
)
from quizforge.services.generation.planning import plan_content
from quizforge.services.llm.client import LLMClient

logger = logging.getLogger(__name__)

# Positional arguments as listed in the module docstring, plus job_id=
Planner = Callable[..., Awaitable[ContentPlan]]
BatchGenerator = Callable[..., Awaitable[BatchOutput]]
MarrowExtractor = Callable[..., Awaitable[MarrowExtraction]]
ExplanationGenerator = Callable[..., Awaitable[list[StagedMCQ]]]
KeyTopicAnalyzer = Callable[..., Awaitable[KeyTopicAnalysis]]
AssignmentSuggester = Callable[..., Awaitable[list[RawAssignmentGroup]]]


def _log_usage(stage: str, usages: list[LLMUsage]) -> None:
    cost = sum(u.total_cost for u in usages)
    tokens = sum(u.total_tokens or 0 for u in usages)
    logger.info(f"{stage}: {len(usages)} LLM calls, {tokens} tokens, ${cost:.4f}")


@dataclass
class GenerationWorkers:
    """Async AI workers used by the generation pipeline."""

    planner: Planner
    batch_generator: BatchGenerator
    marrow_extractor: MarrowExtractor
    explanation_generator: ExplanationGenerator
    key_topic_analyzer: KeyTopicAnalyzer
    assignment_suggester: AssignmentSuggester

    @classmethod
    def from_llm_client(cls, llm_client: LLMClient) -> "GenerationWorkers":
        """Build the default LLM-backed workers around one client."""

        async def planner(text: str, *, job_id: Optional[str] = None) -> ContentPlan:
            plan, usages = await plan_content(text, llm_client, job_id=job_id)
            _log_usage("Planning", usages)
            return plan

        async def batch_generator(
            text_chunk: str,
            batch_number: int,
            mcq_count: int,
            flashcard_count: int,
            *,
            job_id: Optional[str] = None,
        ) -> BatchOutput:
            output, usages = await generate_batch(
                text_chunk, batch_number, mcq_count, flashcard_count, llm_client, job_id=job_id
            )
            _log_usage(f"Batch {batch_number}", usages)
            return output

        async def marrow_extractor(text: str, *, job_id: Optional[str] = None) -> MarrowExtraction:
            extraction, usages = await extract_marrow_content(text, llm_client, job_id=job_id)
            _log_usage("Marrow extraction", usages)
            return extraction

        async def explanation_generator(
            explanations: list[str], count: int, *, job_id: Optional[str] = None
        ) -> list[StagedMCQ]:
            mcqs, usages = await generate_from_explanations(
                explanations, count, llm_client, job_id=job_id
            )
            _log_usage("Marrow generation", usages)
            return mcqs

        async def key_topic_analyzer(
            mcqs: list[StagedMCQ], *, job_id: Optional[str] = None
        ) -> KeyTopicAnalysis:
            analysis, usages = await analyze_key_topics(mcqs, llm_client, job_id=job_id)
            _log_usage("Key topic analysis", usages)
            return analysis

        async def assignment_suggester(
            staged: AwaitingReviewData,
            taxonomy: list[Topic],
            scope_to_topic_name: Optional[str] = None,
            *,
            job_id: Optional[str] = None,
        ) -> list[RawAssignmentGroup]:
            groups, usages = await suggest_assignment_groups(
                staged,
                taxonomy,
                llm_client,
                scope_to_topic_name=scope_to_topic_name,
                job_id=job_id,
            )
            _log_usage("Assignment suggestion", usages)
            return groups

        return cls(
            planner=planner,
            batch_generator=batch_generator,
            marrow_extractor=marrow_extractor,
            explanation_generator=explanation_generator,
            key_topic_analyzer=key_topic_analyzer,
            assignment_suggester=assignment_suggester,
        )
