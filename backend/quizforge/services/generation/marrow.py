"""
Marrow Pipeline Stages

Three LLM stages for marrow uploads (material that already contains
questions):

- extract_marrow_content: split the text into complete MCQs already present
  and standalone "orphan" explanation paragraphs
- generate_from_explanations: write new MCQs from orphan explanations
- analyze_key_topics: suggest a topic/chapter and key topics for the
  combined question set

Usage:
    from quizforge.services.generation.marrow import extract_marrow_content

    extraction, usages = await extract_marrow_content(job.source_text, llm_client)
"""

import json
import logging
from typing import Optional

from quizforge.config.generation import generation_settings
from quizforge.enums.content import ContentSource
from quizforge.enums.pipeline import PipelineOperation
from quizforge.middleware.error_handling import LLMError
from quizforge.models.content import StagedMCQ
from quizforge.models.job import KeyTopicAnalysis, MarrowExtraction
from quizforge.models.llm_usage import LLMUsage
from quizforge.services.generation.items import parse_mcqs
from quizforge.services.llm.client import LLMClient
from quizforge.utils.text_utils import (
    normalize_llm_json_response,
    unwrap_llm_single_object_response,
)

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """From the following study material, extract:

1. Every distinct multiple-choice question (MCQ) already present. For each,
   identify the question, its options in order, the single correct answer
   letter and the explanation if one is given.
2. Every distinct standalone explanation paragraph that is NOT attached to
   an MCQ. Each paragraph must be complete and self-contained.

Do not invent questions. Copy wording faithfully.

Return as JSON:
{{
  "mcqs": [
    {{"question": "...", "options": ["A. ...", "B. ...", "C. ...", "D. ..."], "answer": "A", "explanation": "..."}}
  ],
  "orphan_explanations": ["Paragraph of text explaining a concept."]
}}

Content:
\"\"\"{text}\"\"\"
"""


GENERATION_PROMPT = """Generate exactly {count} high-quality multiple-choice questions
from the explanations below. For each MCQ provide a clear question, 4 distinct
options (A, B, C, D), the single correct answer letter, a detailed
explanation, 3-5 specific lowercase tags and a difficulty (easy, medium, hard).
Make them challenging but fair, with plausible distractors.

Return as JSON:
{{
  "mcqs": [
    {{"question": "...", "options": ["...", "...", "...", "..."], "answer": "A", "explanation": "...", "tags": ["..."], "difficulty": "medium"}}
  ]
}}

Explanations:
{explanations}
"""


KEY_TOPICS_PROMPT = """Analyze the main themes of the questions below.

Suggest the single most suitable topic name (e.g. "General Medicine",
"Pediatrics") and a specific chapter name within it (e.g. "Cardiology").
Also list up to {max_topics} lowercase key topics covering the whole set.

Return as JSON:
{{"suggested_topic": "Topic Name", "suggested_chapter": "Chapter Name", "key_topics": ["tag1", "tag2"]}}

Questions:
{questions}
"""


async def extract_marrow_content(
    text: str,
    llm_client: LLMClient,
    job_id: Optional[str] = None,
) -> tuple[MarrowExtraction, list[LLMUsage]]:
    """
    Extract existing MCQs and orphan explanations from marrow material.

    Raises:
        LLMError: If the model call fails
    """
    prompt = EXTRACTION_PROMPT.format(text=text[: generation_settings.EXTRACTION_TRUNCATE])

    try:
        data, usage = await llm_client.complete(
            operation=PipelineOperation.MARROW_EXTRACTION,
            messages=[{"role": "user", "content": prompt}],
            temperature=generation_settings.EXTRACTION_TEMPERATURE,
            max_tokens=generation_settings.EXTRACTION_MAX_TOKENS,
            json_mode=True,
            pipeline="marrow",
            job_id=job_id,
        )
    except Exception as e:
        logger.error(f"Marrow extraction failed: {e}")
        raise LLMError(f"Marrow extraction failed: {e}") from e

    data = normalize_llm_json_response(data, "mcqs")
    orphans = data.get("orphan_explanations") or []
    extraction = MarrowExtraction(
        mcqs=parse_mcqs(data.get("mcqs", []), ContentSource.MARROW_EXTRACTED),
        orphan_explanations=[o.strip() for o in orphans if isinstance(o, str) and o.strip()],
    )
    logger.debug(
        f"Extracted {len(extraction.mcqs)} MCQs and "
        f"{len(extraction.orphan_explanations)} orphan explanations"
    )
    return extraction, [usage]


async def generate_from_explanations(
    explanations: list[str],
    count: int,
    llm_client: LLMClient,
    job_id: Optional[str] = None,
) -> tuple[list[StagedMCQ], list[LLMUsage]]:
    """
    Generate ``count`` new MCQs from orphan explanations.

    Raises:
        LLMError: If the model call fails
    """
    if count <= 0 or not explanations:
        return [], []

    prompt = GENERATION_PROMPT.format(count=count, explanations="\n\n".join(explanations))

    try:
        data, usage = await llm_client.complete(
            operation=PipelineOperation.MARROW_GENERATION,
            messages=[{"role": "user", "content": prompt}],
            temperature=generation_settings.GENERATION_TEMPERATURE,
            max_tokens=generation_settings.GENERATION_MAX_TOKENS,
            json_mode=True,
            pipeline="marrow",
            job_id=job_id,
        )
    except Exception as e:
        logger.error(f"Marrow MCQ generation failed: {e}")
        raise LLMError(f"Marrow generation failed: {e}") from e

    data = normalize_llm_json_response(data, "mcqs")
    mcqs = parse_mcqs(data.get("mcqs", []), ContentSource.MARROW_AI_GENERATED)[:count]
    logger.debug(f"Generated {len(mcqs)}/{count} MCQs from orphan explanations")
    return mcqs, [usage]


async def analyze_key_topics(
    mcqs: list[StagedMCQ],
    llm_client: LLMClient,
    job_id: Optional[str] = None,
) -> tuple[KeyTopicAnalysis, list[LLMUsage]]:
    """
    Suggest a topic/chapter and key topics for a set of marrow MCQs.

    Only question stems are sent to keep the prompt small.

    Raises:
        LLMError: If the model call fails
    """
    if not mcqs:
        return KeyTopicAnalysis(), []

    prompt = KEY_TOPICS_PROMPT.format(
        max_topics=generation_settings.KEY_TOPICS_MAX,
        questions=json.dumps([m.question for m in mcqs], ensure_ascii=False, indent=1),
    )

    try:
        data, usage = await llm_client.complete(
            operation=PipelineOperation.KEY_TOPIC_ANALYSIS,
            messages=[{"role": "user", "content": prompt}],
            temperature=generation_settings.EXTRACTION_TEMPERATURE,
            max_tokens=generation_settings.PLANNING_MAX_TOKENS,
            json_mode=True,
            pipeline="marrow",
            job_id=job_id,
        )
    except Exception as e:
        logger.error(f"Key topic analysis failed: {e}")
        raise LLMError(f"Key topic analysis failed: {e}") from e

    data = unwrap_llm_single_object_response(data)
    key_topics = []
    for topic in data.get("key_topics") or []:
        if isinstance(topic, str) and topic.strip() and topic.strip().lower() not in key_topics:
            key_topics.append(topic.strip().lower())

    analysis = KeyTopicAnalysis(
        suggested_topic=data.get("suggested_topic") or None,
        suggested_chapter=data.get("suggested_chapter") or None,
        key_topics=key_topics[: generation_settings.KEY_TOPICS_MAX],
    )
    return analysis, [usage]
