"""Multi-LLM router for provider selection and request routing."""

import structlog
from pydantic import BaseModel

from katha_sync.llm.base_provider import GenerationOptions, LLMProvider
from katha_sync.utils.exceptions import LLMProviderError

logger = structlog.get_logger(__name__)


class MultiLLMRouter:
    """Multi-LLM router with model-based provider selection.

    Providers are created on first use, so only the API key of the provider
    actually selected has to be configured. No fallback between providers.

    Model-to-provider mapping:
    - claude-* → AnthropicProvider
    - gpt-* → OpenAIProvider
    """

    DEFAULT_MODEL = "gpt-4.1"

    def __init__(
        self,
        default_model: str | None = None,
        providers: dict[str, LLMProvider] | None = None,
    ) -> None:
        """Initialize router.

        Args:
            default_model: Model used when options do not name one
            providers: Pre-registered providers (name -> provider), mainly for tests

        Raises:
            LLMProviderError: If the default model prefix is not recognized
        """
        self.default_model = default_model or self.DEFAULT_MODEL
        self.providers: dict[str, LLMProvider] = dict(providers or {})

        # Validate default model at initialization (fail fast)
        self._provider_name_for_model(self.default_model)

        logger.info(
            "llm_router_initialized",
            providers=list(self.providers.keys()),
            default_model=self.default_model,
        )

    def _provider_name_for_model(self, model: str) -> str:
        """Map a model name to its provider name.

        Raises:
            LLMProviderError: If model prefix not recognized
        """
        if model.startswith("claude-"):
            return "anthropic"
        if model.startswith("gpt-"):
            return "openai"
        raise LLMProviderError(
            f"Unknown model: {model}. Model name must start with 'claude-' or 'gpt-'"
        )

    def _get_provider_for_model(self, model: str) -> LLMProvider:
        """Return the provider for a model, creating it on first use."""
        name = self._provider_name_for_model(model)
        if name not in self.providers:
            if name == "anthropic":
                from katha_sync.llm.providers.anthropic_provider import AnthropicProvider

                self.providers[name] = AnthropicProvider()
            else:
                from katha_sync.llm.providers.openai_provider import OpenAIProvider

                self.providers[name] = OpenAIProvider()
            logger.debug("provider_registered", provider_name=name)
        return self.providers[name]

    async def generate_structured(
        self,
        prompt: str,
        response_schema: type[BaseModel],
        options: GenerationOptions | None = None,
    ) -> BaseModel:
        """Generate structured JSON response with Pydantic validation.

        Args:
            prompt: User prompt to generate response for
            response_schema: Pydantic model class for the response
            options: Optional generation options (uses defaults if not specified)

        Returns:
            Validated response_schema instance

        Raises:
            LLMProviderError: If generation fails or model not recognized
        """
        if options is None:
            options = GenerationOptions(model=self.default_model)

        model = options.model or self.default_model
        selected_provider = self._get_provider_for_model(model)

        logger.info(
            "routing_structured_generation_request",
            provider=selected_provider.get_provider_name(),
            model=model,
            prompt_length=len(prompt),
            response_schema=response_schema.__name__,
        )

        return await selected_provider.generate_structured(prompt, options, response_schema)
