"""Transliteration oracles: text-in / text-out services behind one contract."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

import structlog
from pydantic import ValidationError as PydanticValidationError

from katha_sync.ingestion.models import TransliterationItem
from katha_sync.llm.base_provider import GenerationOptions
from katha_sync.llm.llm_router import MultiLLMRouter
from katha_sync.llm.prompt_builder import PromptBuilder
from katha_sync.llm.structured_output import TransliterationBatchResponse
from katha_sync.utils.exceptions import LLMProviderError, TransliterationBatchError

logger = structlog.get_logger(__name__)


class TransliterationOracle(ABC):
    """Opaque service converting vernacular strings to Latin script."""

    @abstractmethod
    async def batch_transliterate(self, items: Sequence[TransliterationItem]) -> dict[str, str]:
        """Transliterate a batch of distinct strings.

        Args:
            items: Strings to transliterate; texts are unique within one call

        Returns:
            Mapping from original text to raw transliteration. Implementations
            must not pad or guess: a missing entry is reported by leaving it out.

        Raises:
            LLMProviderError: If the service call fails
            TransliterationBatchError: If the response cannot be matched to the request
        """
        pass


class LLMTransliterationOracle(TransliterationOracle):
    """Oracle backed by an LLM with structured JSON output."""

    def __init__(
        self,
        router: MultiLLMRouter | None = None,
        prompt_builder: PromptBuilder | None = None,
        model: str | None = None,
    ) -> None:
        """Initialize oracle.

        Args:
            router: LLM router (created from the model name if omitted)
            prompt_builder: Template renderer
            model: Model identifier, e.g. "gpt-4.1" or "claude-sonnet-4-5"
        """
        self.router = router or MultiLLMRouter(default_model=model)
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.model = model or self.router.default_model
        self.logger = logger.bind(component="llm_transliteration_oracle")

    async def batch_transliterate(self, items: Sequence[TransliterationItem]) -> dict[str, str]:
        """Transliterate items with one structured LLM request.

        Entries are matched back to requests by index, never by echoed text,
        so Unicode normalization differences in the response cannot misalign
        results.
        """
        prompt = self.prompt_builder.build_transliteration_prompt(items)

        try:
            response = await self.router.generate_structured(
                prompt,
                TransliterationBatchResponse,
                GenerationOptions(model=self.model),
            )
        except PydanticValidationError as e:
            raise LLMProviderError(f"Transliteration response failed validation: {e}") from e

        if not isinstance(response, TransliterationBatchResponse):
            raise LLMProviderError(f"Unexpected response type {type(response).__name__}")

        results: dict[str, str] = {}
        for entry in response.items:
            if entry.index >= len(items) or items[entry.index].text in results:
                raise TransliterationBatchError(
                    f"Transliteration response has an unexpected entry at index {entry.index}"
                )
            results[items[entry.index].text] = entry.transliterated

        self.logger.info(
            "transliteration_response_received",
            requested=len(items),
            returned=len(response.items),
            matched=len(results),
        )
        return results
