"""LLM module backing the transliteration oracle."""

from katha_sync.llm.base_provider import GenerationOptions, LLMProvider
from katha_sync.llm.llm_router import MultiLLMRouter
from katha_sync.llm.prompt_builder import PromptBuilder
from katha_sync.llm.structured_output import TransliterationBatchResponse, TransliterationEntry

__all__ = [
    "GenerationOptions",
    "LLMProvider",
    "MultiLLMRouter",
    "PromptBuilder",
    "TransliterationBatchResponse",
    "TransliterationEntry",
]
