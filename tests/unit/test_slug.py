"""Tests for slug generation."""

import pytest

from katha_sync.utils.slug import article_slug, slugify, tag_slug


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Poos Ki Raat", "poos-ki-raat"),
        ("  grandmother's   tales ", "grandmothers-tales"),
        ("Śakuntalā", "sakuntala"),
        ("moral-story", "moral-story"),
        ("a -- b", "a-b"),
        ("पूस", ""),
    ],
)
def test_slugify(text: str, expected: str) -> None:
    """Test slug fragments are lowercase, hyphenated and ASCII only."""
    assert slugify(text) == expected


def test_article_slug_joins_title_and_author() -> None:
    """Test the title_by_author format."""
    assert article_slug("poos ki raat", "premchand") == "poos-ki-raat_by_premchand"


def test_article_slug_placeholders_for_empty_fragments() -> None:
    """Test fallbacks when a fragment slugifies to nothing."""
    assert article_slug("", "???") == "untitled_by_unknown"


def test_tag_slug_falls_back_to_hash() -> None:
    """Test tags without Latin characters still get a stable slug."""
    slug = tag_slug("গল্প")

    assert slug.startswith("tag-")
    assert slug == tag_slug("গল্প")
    assert tag_slug("moral story") == "moral-story"
