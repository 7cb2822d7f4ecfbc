"""Unit tests for the transliteration gateway."""

from collections.abc import Sequence
from unittest.mock import AsyncMock

import pytest

from katha_sync.ingestion.models import TransliterationItem, TransliterationRole
from katha_sync.transliteration.gateway import (
    TransliterationGateway,
    clean_transliteration,
    is_latin_script,
)
from katha_sync.transliteration.oracle import TransliterationOracle
from katha_sync.utils.exceptions import LLMProviderError, TransliterationBatchError


def item(text: str, role: TransliterationRole = TransliterationRole.TAG, language: str = "hi"):
    return TransliterationItem(text=text, role=role, language=language)


class TestCleaning:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("  Poos  Ki Raat ", "poos ki raat"),
            ("Dadi Maa!", "dadi maa"),
            ("Poos Ki रात", "poos ki"),
            ("o'henry - tales", "o'henry - tales"),
            ("Śakuntalā", "śakuntalā"),
        ],
    )
    def test_clean_transliteration(self, raw: str, expected: str) -> None:
        assert clean_transliteration(raw) == expected

    def test_is_latin_script(self) -> None:
        assert is_latin_script("Premchand 2")
        assert is_latin_script("Śakuntalā")
        assert not is_latin_script("प्रेमचंद")


class TestTransliterate:
    async def test_batch_results_are_cleaned(self, gateway: TransliterationGateway) -> None:
        """Every distinct pair gets a lowercase, whitespace-collapsed spelling."""
        results = await gateway.transliterate(
            [item("प्रेमचंद", TransliterationRole.AUTHOR), item("दादी माँ", TransliterationRole.AUTHOR)]
        )

        assert results[("प्रेमचंद", "hi")] == "premchand"
        assert results[("दादी माँ", "hi")] == "dadi maa"
        assert gateway.lookup("प्रेमचंद", "hi") == "premchand"

    async def test_duplicates_sent_once(self, fake_oracle, gateway: TransliterationGateway) -> None:
        await gateway.transliterate([item("गाँव"), item("गाँव"), item("कहानी")])

        assert fake_oracle.requests == [["गाँव", "कहानी"]]

    async def test_latin_text_skips_oracle(self, fake_oracle, gateway: TransliterationGateway) -> None:
        results = await gateway.transliterate([item("Moral  Story")])

        assert results[("Moral  Story", "hi")] == "moral story"
        assert fake_oracle.requests == []
        assert gateway.oracle_requests == 0

    async def test_results_are_memoized(self, fake_oracle, gateway: TransliterationGateway) -> None:
        await gateway.transliterate([item("गाँव")])
        await gateway.transliterate([item("गाँव"), item("कहानी")])

        assert fake_oracle.requests == [["गाँव"], ["कहानी"]]

    async def test_same_text_in_two_languages(self, fake_oracle) -> None:
        """The same string in different languages is transliterated separately."""
        gateway = TransliterationGateway(fake_oracle)

        results = await gateway.transliterate([item("गाँव", language="hi"), item("गाँव", language="mr")])

        assert set(results) == {("गाँव", "hi"), ("गाँव", "mr")}
        assert len(fake_oracle.requests) == 2

    async def test_chunking(self, oracle_factory) -> None:
        oracle = oracle_factory()
        gateway = TransliterationGateway(oracle, chunk_size=2)

        await gateway.transliterate([item("गाँव"), item("कहानी"), item("लोक कथा")])

        assert [len(request) for request in oracle.requests] == [2, 1]
        assert gateway.oracle_requests == 2


class TestBatchFailures:
    async def test_count_mismatch_fails_batch(self, oracle_factory) -> None:
        """Three results for four strings fails the whole batch."""
        gateway = TransliterationGateway(oracle_factory(drop=1))
        items = [item("गाँव"), item("कहानी"), item("लोक कथा"), item("नैतिक कहानी")]

        with pytest.raises(TransliterationBatchError, match="3 results for 4"):
            await gateway.transliterate(items)

        with pytest.raises(KeyError):
            gateway.lookup("गाँव", "hi")

    async def test_empty_result_fails_batch(self, oracle_factory) -> None:
        gateway = TransliterationGateway(oracle_factory(table={"गाँव": "गाँव"}))

        with pytest.raises(TransliterationBatchError, match="empty after cleaning"):
            await gateway.transliterate([item("गाँव")])

    async def test_oracle_error_is_retryable_batch_error(self) -> None:
        oracle = AsyncMock(spec=TransliterationOracle)
        oracle.batch_transliterate.side_effect = LLMProviderError("rate limited")
        gateway = TransliterationGateway(oracle)

        with pytest.raises(TransliterationBatchError) as exc_info:
            await gateway.transliterate([item("गाँव")])

        assert exc_info.value.is_retryable is True
        assert "rate limited" in str(exc_info.value)

    async def test_unmatched_text_fails_batch(self) -> None:
        class WrongKeys(TransliterationOracle):
            async def batch_transliterate(self, items: Sequence[TransliterationItem]) -> dict[str, str]:
                return {"something else": "x" for _ in items}

        gateway = TransliterationGateway(WrongKeys())

        with pytest.raises(TransliterationBatchError, match="missing"):
            await gateway.transliterate([item("गाँव")])
