"""
Content Planning Stage

Estimates how many MCQs and flashcards a general-pipeline upload can
support, and guesses a topic/chapter for it.

Usage:
    from quizforge.services.generation.planning import plan_content

    plan, usages = await plan_content(job.source_text, llm_client, job_id=job.id)
    print(plan.mcq_count, plan.flashcard_count)
"""

import logging
from typing import Optional

from quizforge.config.generation import generation_settings
from quizforge.enums.pipeline import PipelineOperation
from quizforge.middleware.error_handling import LLMError
from quizforge.models.job import ContentPlan
from quizforge.models.llm_usage import LLMUsage
from quizforge.services.llm.client import LLMClient
from quizforge.utils.text_utils import unwrap_llm_single_object_response

logger = logging.getLogger(__name__)


PLANNING_PROMPT = """You are a curriculum planning assistant for medical education.

Analyze the text below and estimate how many high-quality multiple-choice
questions (MCQs) and flashcards could be generated from it. Focus on key
definitions, clinical pathways, diagnostic criteria and treatment options
relevant for postgraduate students. Avoid statistical trivia, historical
anecdotes and overly specific dosages unless they are central to the topic.

Also suggest the broad topic and the specific chapter the text belongs to.

Limits: at most {max_mcqs} MCQs and at most {max_flashcards} flashcards.

Return as JSON:
{{
  "mcq_count": 20,
  "flashcard_count": 15,
  "suggested_topic": "Topic name",
  "suggested_chapter": "Chapter name"
}}

TEXT TO ANALYZE:
\"\"\"{text}\"\"\"
"""


def _clamp_count(value, upper: int) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(0, min(count, upper))


async def plan_content(
    text: str,
    llm_client: LLMClient,
    job_id: Optional[str] = None,
) -> tuple[ContentPlan, list[LLMUsage]]:
    """
    Produce a generation plan for a block of source text.

    Args:
        text: Source text of the job
        llm_client: LLM client for completion
        job_id: Job ID for usage attribution

    Returns:
        Tuple of (ContentPlan, list of LLMUsage)

    Raises:
        LLMError: If the model call fails or returns no usable plan
    """
    prompt = PLANNING_PROMPT.format(
        max_mcqs=generation_settings.MAX_PLANNED_MCQS,
        max_flashcards=generation_settings.MAX_PLANNED_FLASHCARDS,
        text=text[: generation_settings.PLANNING_TRUNCATE],
    )

    try:
        data, usage = await llm_client.complete(
            operation=PipelineOperation.CONTENT_PLANNING,
            messages=[{"role": "user", "content": prompt}],
            temperature=generation_settings.PLANNING_TEMPERATURE,
            max_tokens=generation_settings.PLANNING_MAX_TOKENS,
            json_mode=True,
            job_id=job_id,
        )
    except Exception as e:
        logger.error(f"Content planning failed: {e}")
        raise LLMError(f"Planning failed: {e}") from e

    data = unwrap_llm_single_object_response(data)
    if not data:
        raise LLMError("Planning failed: model returned no plan")

    plan = ContentPlan(
        mcq_count=_clamp_count(data.get("mcq_count"), generation_settings.MAX_PLANNED_MCQS),
        flashcard_count=_clamp_count(
            data.get("flashcard_count"), generation_settings.MAX_PLANNED_FLASHCARDS
        ),
        suggested_topic=(data.get("suggested_topic") or None),
        suggested_chapter=(data.get("suggested_chapter") or None),
    )
    logger.debug(f"Planned {plan.mcq_count} MCQs and {plan.flashcard_count} flashcards")
    return plan, [usage]
