"""Transliteration of vernacular strings into canonical Latin spellings."""

from katha_sync.transliteration.gateway import TransliterationGateway, clean_transliteration
from katha_sync.transliteration.mappings import CuratedMappings
from katha_sync.transliteration.oracle import LLMTransliterationOracle, TransliterationOracle

__all__ = [
    "CuratedMappings",
    "LLMTransliterationOracle",
    "TransliterationGateway",
    "TransliterationOracle",
    "clean_transliteration",
]
