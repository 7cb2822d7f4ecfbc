"""Batched, validated access to the transliteration oracle."""

import re
from collections.abc import Iterable

import structlog

from katha_sync.ingestion.models import TransliterationItem
from katha_sync.transliteration.oracle import TransliterationOracle
from katha_sync.utils.exceptions import TransliterationBatchError

logger = structlog.get_logger(__name__)

# Anything outside Latin letters, digits, whitespace, hyphen and apostrophe
_NON_LATIN_RESIDUE = re.compile(r"[^0-9a-z\u00c0-\u024f\s'\-]")
_LATIN_LIMIT = 0x250


def clean_transliteration(text: str) -> str:
    """Normalize a raw transliteration.

    Lowercases, replaces non-Latin residue with spaces and collapses whitespace.

    Example:
        >>> clean_transliteration("  Poos  Ki रात ")
        'poos ki'
    """
    lowered = text.lower()
    stripped = _NON_LATIN_RESIDUE.sub(" ", lowered)
    return " ".join(stripped.split())


def is_latin_script(text: str) -> bool:
    """Whether every letter of the text is Latin (ASCII or Latin extended)."""
    return all(ord(char) < _LATIN_LIMIT for char in text if char.isalpha())


class TransliterationGateway:
    """Proposes canonical Latin spellings for vernacular strings.

    Collects a whole batch of strings, de-duplicates them by (text, language),
    sends the ones that are not already Latin script to the oracle in chunks,
    and validates the answer. Any problem fails the entire batch: slugs depend
    on every spelling, so there is no safe partial result.

    Results are memoized for the lifetime of the gateway; create one gateway
    per ingestion batch.
    """

    DEFAULT_CHUNK_SIZE = 50

    def __init__(self, oracle: TransliterationOracle, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize gateway.

        Args:
            oracle: Text-in / text-out transliteration service
            chunk_size: Maximum number of strings per oracle request
        """
        self.oracle = oracle
        self.chunk_size = chunk_size
        self._cache: dict[tuple[str, str], str] = {}
        self.oracle_requests = 0
        self.logger = logger.bind(component="transliteration_gateway")

    async def transliterate(self, items: Iterable[TransliterationItem]) -> dict[tuple[str, str], str]:
        """Transliterate every distinct (text, language) pair of a batch.

        Args:
            items: Strings to transliterate; duplicates are allowed

        Returns:
            Mapping (text, language) -> cleaned canonical spelling, covering every input

        Raises:
            TransliterationBatchError: On oracle failure, count mismatch, or an
                empty result after cleaning
        """
        pending: dict[tuple[str, str], TransliterationItem] = {}
        local: dict[tuple[str, str], str] = {}

        for item in items:
            key = (item.text, item.language)
            if key in self._cache or key in pending or key in local:
                continue
            if is_latin_script(item.text):
                local[key] = self._require_clean(item, item.text)
            else:
                pending[key] = item

        fetched: dict[tuple[str, str], str] = {}
        pending_items = list(pending.values())
        for language in sorted({item.language for item in pending_items}):
            language_items = [item for item in pending_items if item.language == language]
            for start in range(0, len(language_items), self.chunk_size):
                chunk = language_items[start : start + self.chunk_size]
                fetched.update(await self._request(chunk))

        # Nothing is memoized unless the whole batch succeeded
        self._cache.update(local)
        self._cache.update(fetched)

        if pending_items or local:
            self.logger.info(
                "transliteration_batch_complete",
                local=len(local),
                transliterated=len(fetched),
                oracle_requests=self.oracle_requests,
            )

        return dict(self._cache)

    def lookup(self, text: str, language: str) -> str:
        """Return a memoized spelling.

        Raises:
            KeyError: If the pair was never transliterated by this gateway
        """
        return self._cache[(text, language)]

    async def _request(self, chunk: list[TransliterationItem]) -> dict[tuple[str, str], str]:
        """Send one chunk to the oracle and validate the answer."""
        self.oracle_requests += 1

        try:
            raw = await self.oracle.batch_transliterate(chunk)
        except TransliterationBatchError:
            raise
        except Exception as e:
            self.logger.error("transliteration_oracle_failed", error=str(e), size=len(chunk))
            raise TransliterationBatchError(
                f"Transliteration oracle failed: {e}", is_retryable=True
            ) from e

        if len(raw) != len(chunk):
            self.logger.error(
                "transliteration_count_mismatch",
                requested=len(chunk),
                returned=len(raw),
            )
            raise TransliterationBatchError(
                f"Transliteration returned {len(raw)} results for {len(chunk)} requested strings"
            )

        results: dict[tuple[str, str], str] = {}
        for item in chunk:
            if item.text not in raw:
                raise TransliterationBatchError(f"Transliteration missing for '{item.text}'")
            results[(item.text, item.language)] = self._require_clean(item, raw[item.text])
        return results

    def _require_clean(self, item: TransliterationItem, raw: str) -> str:
        cleaned = clean_transliteration(raw or "")
        if not cleaned:
            self.logger.error(
                "transliteration_empty_result",
                text=item.text,
                role=item.role.value,
                language=item.language,
            )
            raise TransliterationBatchError(
                f"Transliteration of {item.role.value} '{item.text}' is empty after cleaning"
            )
        return cleaned
