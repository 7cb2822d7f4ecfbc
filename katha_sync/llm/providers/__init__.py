"""LLM provider implementations."""

from katha_sync.llm.providers.anthropic_provider import AnthropicProvider
from katha_sync.llm.providers.openai_provider import OpenAIProvider

__all__ = ["AnthropicProvider", "OpenAIProvider"]
