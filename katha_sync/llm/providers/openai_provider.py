"""OpenAI LLM provider with structured output support."""

import asyncio
import json
import time
from collections.abc import Callable
from typing import Any

import structlog
from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    RateLimitError,
)
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from katha_sync.llm.base_provider import GenerationOptions, LLMProvider
from katha_sync.utils.config import get_required_env
from katha_sync.utils.exceptions import LLMProviderError

logger = structlog.get_logger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider with structured output support.

    Supports:
    - GPT-4.1 (default)
    - Structured output via chat.completions.parse()
    - Fallback to JSON schema response format + client-side validation
    - Retry logic with exponential backoff
    """

    DEFAULT_MODEL = "gpt-4.1"

    # Seconds to wait before each retry; five attempts in total
    RETRY_WAIT_TIMES = [1, 2, 4, 8, 16]

    def __init__(self, client: AsyncOpenAI | None = None) -> None:
        """Initialize OpenAI provider.

        Args:
            client: Preconfigured client; built from OPENAI_API_KEY when omitted
        """
        self.client = client or AsyncOpenAI(api_key=get_required_env("OPENAI_API_KEY"))

        logger.info("openai_provider_initialized", default_model=self.DEFAULT_MODEL)

    def get_provider_name(self) -> str:
        """Get provider identifier."""
        return "openai"

    async def generate_structured(
        self,
        prompt: str,
        options: GenerationOptions,
        response_schema: type[BaseModel],
    ) -> BaseModel:
        """Generate structured JSON response with Pydantic validation.

        Uses chat.completions.parse() for server-side validation, falling back
        to a JSON schema response format if the parse helper is unavailable.

        Raises:
            LLMProviderError: If generation fails
            RateLimitError: If rate limit exceeded after retries
            AuthenticationError: If API key invalid
            ValidationError: If LLM returned invalid JSON schema
        """
        start_time = time.time()
        model = options.model or self.DEFAULT_MODEL
        messages = [{"role": "user", "content": prompt}]

        try:
            completion = await self._retry_with_backoff(
                self.client.chat.completions.parse,
                model=model,
                messages=messages,
                response_format=response_schema,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
            )

            parsed = completion.choices[0].message.parsed
            if parsed is None:
                raise LLMProviderError("OpenAI returned no parsed content")

            logger.info(
                "openai_structured_generation_success",
                validation_type="server_side",
                model=model,
                latency_ms=int((time.time() - start_time) * 1000),
            )
            return parsed  # type: ignore[no-any-return]

        except AttributeError:
            logger.warning("openai_parse_api_unavailable", fallback="client_side_validation")
            return await self._generate_structured_fallback(
                options, response_schema, messages, start_time
            )

        except (RateLimitError, AuthenticationError, LLMProviderError):
            raise
        except PydanticValidationError:
            logger.error("openai_validation_failed", validation_type="server_side")
            raise
        except Exception as e:
            logger.error("openai_structured_generation_failed", error=str(e), exc_info=True)
            raise LLMProviderError(f"OpenAI structured generation failed: {e}") from e

    async def _generate_structured_fallback(
        self,
        options: GenerationOptions,
        response_schema: type[BaseModel],
        messages: list[dict[str, str]],
        start_time: float,
    ) -> BaseModel:
        """Request a JSON schema response and validate it client-side.

        Raises:
            ValidationError: If LLM returned invalid JSON schema
            LLMProviderError: If the response is not JSON
        """
        model = options.model or self.DEFAULT_MODEL

        completion = await self._retry_with_backoff(
            self.client.chat.completions.create,
            model=model,
            messages=messages,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": response_schema.model_json_schema()},
            },
            temperature=options.temperature,
            max_tokens=options.max_tokens,
        )

        try:
            json_response = json.loads(completion.choices[0].message.content or "{}")
            validated = response_schema.model_validate(json_response)
        except json.JSONDecodeError as e:
            raise LLMProviderError(f"OpenAI returned invalid JSON: {e}") from e
        except PydanticValidationError:
            logger.error("openai_validation_failed", validation_type="client_side")
            raise

        logger.info(
            "openai_structured_generation_success",
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

        Returns:
            Result from successful function call

        Raises:
            Exception: Last exception if all retries exhausted
        """
        for attempt, wait in enumerate(self.RETRY_WAIT_TIMES, start=1):
            try:
                return await func(*args, **kwargs)
            except (RateLimitError, APIConnectionError, APITimeoutError) as e:
                if attempt == len(self.RETRY_WAIT_TIMES):
                    logger.error("openai_retry_exhausted", attempts=attempt, error=str(e))
                    raise

                logger.warning(
                    "openai_retrying",
                    attempt=attempt,
                    wait_seconds=wait,
                    error=str(e),
                )
                await asyncio.sleep(wait)

        raise LLMProviderError("OpenAI retry loop exited without a result")
