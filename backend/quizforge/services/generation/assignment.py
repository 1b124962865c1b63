"""
Assignment Suggestion Stage

Asks the model to group staged items into (topic, chapter) buckets drawn
from the existing taxonomy. The output is raw: AssignmentResolver is
responsible for making it a clean partition of the staged indexes.

Usage:
    from quizforge.services.generation.assignment import suggest_assignment_groups

    groups, usages = await suggest_assignment_groups(
        staged, taxonomy, llm_client, scope_to_topic_name="Pediatrics"
    )
"""

import json
import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from quizforge.config.generation import generation_settings
from quizforge.enums.pipeline import PipelineOperation
from quizforge.middleware.error_handling import LLMError
from quizforge.models.content import Topic
from quizforge.models.job import AwaitingReviewData, RawAssignmentGroup
from quizforge.models.llm_usage import LLMUsage
from quizforge.services.llm.client import LLMClient
from quizforge.utils.text_utils import normalize_llm_json_response, truncate_text

logger = logging.getLogger(__name__)


ASSIGNMENT_PROMPT = """You are a curriculum architect. Categorize new study content
(MCQs and flashcards) into the existing topic and chapter structure.

Existing topics and chapters:
{taxonomy}

New content to assign (each item has an "index"):
{content}
{scope}
Instructions:
- Assign every item to the most appropriate existing topic and chapter.
- If no suitable chapter exists within a topic, you MAY propose a new chapter
  name within that topic and set "is_new_chapter" to true.
- Use topic and chapter names exactly as listed when they already exist.
- Every index must appear in exactly one group.

Return as JSON:
{{
  "groups": [
    {{"topic_name": "Cardiology", "chapter_name": "Heart Failure", "is_new_chapter": false, "mcq_indexes": [0, 2], "flashcard_indexes": []}}
  ]
}}
"""


def _format_taxonomy(taxonomy: list[Topic]) -> str:
    if not taxonomy:
        return "(none yet; propose topics and chapters)"
    return json.dumps(
        [{"name": t.name, "chapters": [c.name for c in t.chapters]} for t in taxonomy],
        ensure_ascii=False,
        indent=1,
    )


def _format_content(staged: AwaitingReviewData) -> str:
    limit = generation_settings.ASSIGNMENT_ITEM_TRUNCATE
    return json.dumps(
        {
            "mcqs": [
                {"index": i, "question": truncate_text(m.question, limit)}
                for i, m in enumerate(staged.mcqs)
            ],
            "flashcards": [
                {"index": i, "front": truncate_text(f.front, limit)}
                for i, f in enumerate(staged.flashcards)
            ],
        },
        ensure_ascii=False,
        indent=1,
    )


async def suggest_assignment_groups(
    staged: AwaitingReviewData,
    taxonomy: list[Topic],
    llm_client: LLMClient,
    scope_to_topic_name: Optional[str] = None,
    job_id: Optional[str] = None,
) -> tuple[list[RawAssignmentGroup], list[LLMUsage]]:
    """
    Propose (topic, chapter) groups for staged items.

    Args:
        staged: Staged MCQs and flashcards, addressed by index
        taxonomy: Current topic/chapter snapshot
        llm_client: LLM client for completion
        scope_to_topic_name: Restrict suggestions to this topic
        job_id: Job ID for usage attribution

    Returns:
        Tuple of (raw groups, list of LLMUsage)

    Raises:
        LLMError: If the model call fails
    """
    scope = (
        f'\nOnly assign to the topic "{scope_to_topic_name}".\n' if scope_to_topic_name else ""
    )
    prompt = ASSIGNMENT_PROMPT.format(
        taxonomy=_format_taxonomy(taxonomy),
        content=_format_content(staged),
        scope=scope,
    )

    try:
        data, usage = await llm_client.complete(
            operation=PipelineOperation.ASSIGNMENT_SUGGESTION,
            messages=[{"role": "user", "content": prompt}],
            temperature=generation_settings.ASSIGNMENT_TEMPERATURE,
            max_tokens=generation_settings.ASSIGNMENT_MAX_TOKENS,
            json_mode=True,
            job_id=job_id,
        )
    except Exception as e:
        logger.error(f"Assignment suggestion failed: {e}")
        raise LLMError(f"AI assignment failed: {e}") from e

    data = normalize_llm_json_response(data, "groups")
    groups = []
    for raw in data.get("groups") or []:
        try:
            groups.append(RawAssignmentGroup.model_validate(raw))
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed assignment group {raw!r}: {e.error_count()} errors")

    logger.debug(f"Assignment model proposed {len(groups)} groups")
    return groups, [usage]
