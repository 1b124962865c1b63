"""
Batch Generation Stage

Generates MCQs and flashcards for one chunk of source text. The pipeline
runs one call per batch; each call sees only its own chunk and targets.

Usage:
    from quizforge.services.generation.batch_generation import generate_batch

    output, usages = await generate_batch(chunk, 1, 7, 3, llm_client, job_id=job.id)
"""

import logging
from typing import Optional

from quizforge.config.generation import generation_settings
from quizforge.enums.content import ContentSource
from quizforge.enums.pipeline import PipelineOperation
from quizforge.middleware.error_handling import LLMError
from quizforge.models.job import BatchOutput
from quizforge.models.llm_usage import LLMUsage
from quizforge.services.generation.items import parse_flashcards, parse_mcqs
from quizforge.services.llm.client import LLMClient
from quizforge.utils.text_utils import normalize_llm_json_response

logger = logging.getLogger(__name__)


BATCH_GENERATION_PROMPT = """Generate exactly {mcq_count} high-quality multiple-choice
questions and {flashcard_count} informative flashcards from the text chunk below.

MCQ requirements:
- A clear question stem
- 4 distinct options (A, B, C, D) with plausible distractors
- A single correct answer letter
- A detailed explanation focusing on clinical relevance and key concepts
- 3-5 specific lowercase tags (e.g. "anatomy", "pathology", "management")
- A difficulty of easy, medium or hard

Flashcard requirements:
- A concise front and a complete back
- An optional mnemonic when one genuinely helps recall
- 3-5 specific lowercase tags

Return as JSON:
{{
  "mcqs": [
    {{"question": "...", "options": ["...", "...", "...", "..."], "answer": "A", "explanation": "...", "tags": ["..."], "difficulty": "medium"}}
  ],
  "flashcards": [
    {{"front": "...", "back": "...", "mnemonic": "...", "tags": ["..."]}}
  ]
}}

This is batch {batch_number}. Source text chunk:
\"\"\"{chunk}\"\"\"
"""


async def generate_batch(
    text_chunk: str,
    batch_number: int,
    mcq_count: int,
    flashcard_count: int,
    llm_client: LLMClient,
    job_id: Optional[str] = None,
) -> tuple[BatchOutput, list[LLMUsage]]:
    """
    Generate staged items for a single batch.

    Args:
        text_chunk: The batch's slice of source text
        batch_number: 1-based batch number
        mcq_count: Target number of MCQs
        flashcard_count: Target number of flashcards
        llm_client: LLM client for completion
        job_id: Job ID for usage attribution

    Returns:
        Tuple of (BatchOutput, list of LLMUsage)

    Raises:
        LLMError: If the model call fails
    """
    if mcq_count == 0 and flashcard_count == 0:
        return BatchOutput(), []

    prompt = BATCH_GENERATION_PROMPT.format(
        mcq_count=mcq_count,
        flashcard_count=flashcard_count,
        batch_number=batch_number,
        chunk=text_chunk,
    )

    try:
        data, usage = await llm_client.complete(
            operation=PipelineOperation.BATCH_GENERATION,
            messages=[{"role": "user", "content": prompt}],
            temperature=generation_settings.GENERATION_TEMPERATURE,
            max_tokens=generation_settings.GENERATION_MAX_TOKENS,
            json_mode=True,
            job_id=job_id,
        )
    except Exception as e:
        logger.error(f"Batch {batch_number} generation failed: {e}")
        raise LLMError(f"Model call failed: {e}") from e

    data = normalize_llm_json_response(data, "mcqs")
    output = BatchOutput(
        mcqs=parse_mcqs(data.get("mcqs", []), ContentSource.AI_GENERATED)[:mcq_count],
        flashcards=parse_flashcards(data.get("flashcards", []), ContentSource.AI_GENERATED)[
            :flashcard_count
        ],
    )

    logger.debug(
        f"Batch {batch_number}: generated {len(output.mcqs)}/{mcq_count} MCQs, "
        f"{len(output.flashcards)}/{flashcard_count} flashcards"
    )
    return output, [usage]
