"""
Unified LLM Client supporting multiple providers via LiteLLM.

LiteLLM provides a unified interface to 100+ LLM providers using
the format "provider/model-name". Key features:
- Operation-based model selection via PipelineOperation enum
- Usage tracking via LLMUsage
- Automatic retries with exponential backoff
- Native async support

See: https://docs.litellm.ai/

Usage:
    from quizforge.enums import PipelineOperation
    from quizforge.services.llm import get_llm_client

    client = get_llm_client()

    data, usage = await client.complete(
        operation=PipelineOperation.BATCH_GENERATION,
        messages=[{"role": "user", "content": "Generate..."}],
        json_mode=True,
        job_id="uuid-here",
    )
    print(f"Cost: ${usage.total_cost:.4f}")
"""

import json
import logging
import os
import time
from typing import Any, Optional, Union

import litellm
from litellm import acompletion
from tenacity import before_sleep_log, retry, stop_after_attempt, wait_exponential

from quizforge.config.generation import generation_settings
from quizforge.config.settings import settings
from quizforge.enums.pipeline import PipelineOperation
from quizforge.models.llm_usage import (
    LLMUsage,
    create_error_usage,
    extract_usage_from_response,
)

logger = logging.getLogger(__name__)

# Drop unsupported params instead of erroring
litellm.drop_params = True
if settings.DEBUG:
    os.environ["LITELLM_LOG"] = "DEBUG"


def build_messages(
    prompt: str,
    system_prompt: Optional[str] = None,
) -> list[dict[str, str]]:
    """
    Build messages list from prompt and optional system prompt.

    Args:
        prompt: User prompt text
        system_prompt: Optional system prompt

    Returns:
        List of message dicts for LLM API
    """
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


def _adjust_temperature_for_model(model: str, temperature: float) -> float:
    """
    Adjust temperature based on model requirements.

    Gemini 3 models require temperature=1.0 to avoid degraded reasoning.
    """
    if "gemini-3" in model.lower():
        return 1.0
    return temperature


class LLMClient:
    """
    LLM client with operation-based model selection and usage tracking.

    Attributes:
        MODELS: Operation -> model mapping from generation settings
    """

    MODELS = {
        PipelineOperation.CONTENT_PLANNING: generation_settings.MODEL_PLANNING,
        PipelineOperation.BATCH_GENERATION: generation_settings.MODEL_GENERATION,
        PipelineOperation.MARROW_EXTRACTION: generation_settings.MODEL_EXTRACTION,
        PipelineOperation.MARROW_GENERATION: generation_settings.MODEL_GENERATION,
        PipelineOperation.KEY_TOPIC_ANALYSIS: generation_settings.MODEL_EXTRACTION,
        PipelineOperation.ASSIGNMENT_SUGGESTION: generation_settings.MODEL_ASSIGNMENT,
    }

    def __init__(self):
        self._validate_api_keys()

    def _validate_api_keys(self):
        """Warn when no provider API key is configured."""
        available_keys = []

        if os.getenv("OPENAI_API_KEY") or settings.OPENAI_API_KEY:
            available_keys.append("OpenAI")
        if os.getenv("ANTHROPIC_API_KEY") or settings.ANTHROPIC_API_KEY:
            available_keys.append("Anthropic")
        if os.getenv("GEMINI_API_KEY") or settings.GEMINI_API_KEY:
            available_keys.append("Google/Gemini")

        if not available_keys:
            logger.warning(
                "No LLM API keys configured. Set at least one of: "
                "OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY"
            )
        else:
            logger.info(f"LLM client initialized with providers: {available_keys}")

    def get_model_for_operation(self, operation: Union[PipelineOperation, str]) -> str:
        """
        Get the configured model for a specific operation.

        Args:
            operation: PipelineOperation enum value

        Returns:
            Model identifier in LiteLLM format (provider/model-name)
        """
        if isinstance(operation, str):
            try:
                operation = PipelineOperation(operation)
            except ValueError:
                logger.warning(f"Unknown operation type: {operation}, using default model")
                return settings.TEXT_MODEL
        return self.MODELS.get(operation, settings.TEXT_MODEL)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def complete(
        self,
        operation: Union[PipelineOperation, str],
        messages: list[dict],
        temperature: float = 0.3,
        max_tokens: int = 4096,
        json_mode: bool = False,
        pipeline: Optional[str] = None,
        job_id: Optional[str] = None,
        model: Optional[str] = None,
    ) -> tuple[Union[str, Any], LLMUsage]:
        """
        Generate a completion using the appropriate model for the operation.

        Args:
            operation: PipelineOperation enum specifying the operation type.
                Used for both model selection and usage attribution.
            messages: Chat messages in OpenAI format
            temperature: Sampling temperature (0-1, lower = more deterministic)
            max_tokens: Maximum tokens in response
            json_mode: Request structured JSON output and parse response as JSON.
                Returns parsed dict/list. JSONDecodeError triggers retry.
            pipeline: Pipeline variant for attribution
            job_id: Generation job ID for attribution
            model: Optional model override (bypasses operation-based selection)

        Returns:
            Tuple of (response_text or parsed JSON if json_mode, LLMUsage)

        Raises:
            json.JSONDecodeError: If json_mode=True and response is not valid JSON
                after all retries
            Exception: If completion fails after retries
        """
        model = model or self.get_model_for_operation(operation)
        adjusted_temp = _adjust_temperature_for_model(model, temperature)
        operation_name = operation.value if isinstance(operation, PipelineOperation) else operation

        kwargs = {
            "model": model,
            "messages": messages,
            "temperature": adjusted_temp,
            "max_tokens": max_tokens,
        }

        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start_time = time.perf_counter()

        try:
            response = await acompletion(**kwargs)
            latency_ms = int((time.perf_counter() - start_time) * 1000)

            usage = extract_usage_from_response(
                response=response,
                model=model,
                latency_ms=latency_ms,
                pipeline=pipeline,
                job_id=job_id,
                operation=operation_name,
            )

            if usage.cost_usd:
                logger.debug(
                    f"LLM completion [{model}] {operation_name} - Cost: ${usage.cost_usd:.4f}, "
                    f"Tokens: {usage.total_tokens}, Latency: {latency_ms}ms"
                )

            content = response.choices[0].message.content

            if json_mode:
                # JSONDecodeError will trigger @retry
                content = json.loads(content)

            return content, usage

        except json.JSONDecodeError:
            logger.warning(f"JSON decode error, will retry (model={model})")
            raise
        except Exception as e:
            latency_ms = int((time.perf_counter() - start_time) * 1000)
            error_usage = create_error_usage(
                model=model,
                latency_ms=latency_ms,
                error_message=str(e),
                pipeline=pipeline,
                job_id=job_id,
                operation=operation_name,
            )
            logger.error(f"LLM completion failed: {e} ({error_usage})")
            raise


# Singleton instance
_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """
    Get or create singleton LLM client.

    Returns:
        Shared LLMClient instance
    """
    global _client
    if _client is None:
        _client = LLMClient()
    return _client


def reset_llm_client():
    """Reset the singleton client (useful for testing)."""
    global _client
    _client = None
