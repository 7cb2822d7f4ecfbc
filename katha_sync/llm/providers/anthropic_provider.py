"""Anthropic LLM provider with structured output via forced tool use."""

import asyncio
import time
from collections.abc import Callable
from typing import Any

import structlog
from anthropic import (
    APIConnectionError,
    APITimeoutError,
    AsyncAnthropic,
    AuthenticationError,
    RateLimitError,
)
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from katha_sync.llm.base_provider import GenerationOptions, LLMProvider
from katha_sync.utils.config import get_required_env
from katha_sync.utils.exceptions import LLMProviderError

logger = structlog.get_logger(__name__)


class AnthropicProvider(LLMProvider):
    """Anthropic LLM provider with structured output support.

    The response schema is offered as the only tool and the model is forced
    to call it; the tool input is then validated with Pydantic.
    """

    DEFAULT_MODEL = "claude-sonnet-4-5"
    TOOL_NAME = "record_transliterations"

    # Seconds to wait before each retry; five attempts in total
    RETRY_WAIT_TIMES = [1, 2, 4, 8, 16]

    def __init__(self, client: AsyncAnthropic | None = None) -> None:
        """Initialize Anthropic provider.

        Args:
            client: Preconfigured client; built from ANTHROPIC_API_KEY when omitted
        """
        self.client = client or AsyncAnthropic(api_key=get_required_env("ANTHROPIC_API_KEY"))

        logger.info("anthropic_provider_initialized", default_model=self.DEFAULT_MODEL)

    def get_provider_name(self) -> str:
        """Get provider identifier."""
        return "anthropic"

    async def generate_structured(
        self,
        prompt: str,
        options: GenerationOptions,
        response_schema: type[BaseModel],
    ) -> BaseModel:
        """Generate structured JSON response with Pydantic validation.

        Raises:
            LLMProviderError: If generation fails or no tool call is returned
            RateLimitError: If rate limit exceeded after retries
            AuthenticationError: If API key invalid
            ValidationError: If LLM returned invalid JSON schema
        """
        start_time = time.time()
        model = options.model or self.DEFAULT_MODEL

        tool_definition = {
            "name": self.TOOL_NAME,
            "description": "Record the transliteration of every requested item",
            "input_schema": response_schema.model_json_schema(),
        }

        try:
            response = await self._retry_with_backoff(
                self.client.messages.create,
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                tools=[tool_definition],
                tool_choice={"type": "tool", "name": self.TOOL_NAME},
            )
        except (RateLimitError, AuthenticationError):
            raise
        except Exception as e:
            logger.error("anthropic_structured_generation_failed", error=str(e), exc_info=True)
            raise LLMProviderError(f"Anthropic structured generation failed: {e}") from e

        tool_use = next(
            (block for block in response.content if block.type == "tool_use"),
            None,
        )
        if not tool_use:
            raise LLMProviderError("No tool use in Anthropic response")

        try:
            validated = response_schema.model_validate(tool_use.input)
        except PydanticValidationError:
            logger.error("anthropic_validation_failed", validation_type="client_side")
            raise

        logger.info(
            "anthropic_structured_generation_success",
            validation_type="client_side",
            model=model,
            latency_ms=int((time.time() - start_time) * 1000),
        )
        return validated

    async def _retry_with_backoff(
        self,
        func: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Retry with exponential backoff.

        Retries on: RateLimitError, APIConnectionError, APITimeoutError
        No retry on: AuthenticationError, ValidationError

        Raises:
            Exception: Last exception if all retries exhausted
        """
        for attempt, wait in enumerate(self.RETRY_WAIT_TIMES, start=1):
            try:
                return await func(*args, **kwargs)
            except (RateLimitError, APIConnectionError, APITimeoutError) as e:
                if attempt == len(self.RETRY_WAIT_TIMES):
                    logger.error("anthropic_retry_exhausted", attempts=attempt, error=str(e))
                    raise

                logger.warning(
                    "anthropic_retrying",
                    attempt=attempt,
                    wait_seconds=wait,
                    error=str(e),
                )
                await asyncio.sleep(wait)

        raise LLMProviderError("Anthropic retry loop exited without a result")
