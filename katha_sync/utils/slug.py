"""URL-safe identity strings for articles and tags."""

import hashlib
import re
import unicodedata

_DISALLOWED = re.compile(r"[^a-z0-9-]")
_REPEATED_HYPHENS = re.compile(r"-{2,}")


def slugify(text: str) -> str:
    """Lowercase, hyphenate and strip everything outside [a-z0-9-].

    Args:
        text: Latin-script text (already transliterated)

    Returns:
        Slug fragment, possibly empty
    """
    # Fold accented Latin letters (ā, ś) to their ASCII base
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = "-".join(ascii_text.lower().split())
    slug = _DISALLOWED.sub("", slug)
    slug = _REPEATED_HYPHENS.sub("-", slug)
    return slug.strip("-")


def article_slug(title: str, author: str) -> str:
    """Build the slug identifying an article or series.

    Format: {title}_by_{author}, with "untitled"/"unknown" standing in for
    fragments that slugify to nothing.

    Example:
        >>> article_slug("poos ki raat", "premchand")
        'poos-ki-raat_by_premchand'
    """
    return f"{slugify(title) or 'untitled'}_by_{slugify(author) or 'unknown'}"


def tag_slug(name: str) -> str:
    """Build the secondary unique key of a tag."""
    return slugify(name) or "tag-" + hashlib.sha1(name.encode("utf-8")).hexdigest()[:8]
