"""Base provider and options for LLM integration."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from pydantic import BaseModel


@dataclass
class GenerationOptions:
    """Options for structured LLM generation.

    Args:
        model: Model identifier (e.g., "gpt-4.1", "claude-sonnet-4-5")
        temperature: Sampling temperature; kept low so spellings are stable across runs
        max_tokens: Maximum tokens to generate (a 50-item batch fits comfortably)
    """

    model: str
    temperature: float = 0.1
    max_tokens: int = 8192


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Providers only need structured output: the transliteration oracle always
    asks for a validated JSON document.
    """

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        options: GenerationOptions,
        response_schema: type[BaseModel],
    ) -> BaseModel:
        """Generate structured JSON response with Pydantic validation.

        Args:
            prompt: User prompt to generate response for
            options: Generation configuration options
            response_schema: Pydantic model class for response validation

        Returns:
            Validated instance of response_schema

        Raises:
            LLMProviderError: If generation fails
            RateLimitError: If rate limit exceeded after retries
            AuthenticationError: If API key invalid
            ValidationError: If LLM returned invalid JSON schema
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get provider identifier.

        Returns:
            Provider name (e.g., "openai", "anthropic")
        """
        pass
