"""Structured output models for LLM responses using Pydantic validation."""

from pydantic import BaseModel, Field


class TransliterationEntry(BaseModel):
    """One transliterated string, addressed by its request index."""

    index: int = Field(ge=0)
    original: str
    transliterated: str
    type: str


class TransliterationBatchResponse(BaseModel):
    """Structured response for a batch transliteration request.

    The model must return exactly one entry per requested index; the
    gateway rejects the whole batch otherwise.
    """

    items: list[TransliterationEntry]
