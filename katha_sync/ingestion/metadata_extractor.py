"""Body-derived metadata: short description and word count."""

import re

from katha_sync.common.constants import SHORT_DESCRIPTION_LENGTH

_HEADING_MARKER = re.compile(r"^#+\s+", re.MULTILINE)
_BOLD = re.compile(r"\*\*(.*?)\*\*")
_ITALIC = re.compile(r"\*(.*?)\*")


class MetadataExtractor:
    """Derives display metadata from a markdown body."""

    def __init__(self, description_length: int = SHORT_DESCRIPTION_LENGTH) -> None:
        self.description_length = description_length

    def extract_short_description(self, body: str) -> str | None:
        """Return the first non-empty line with markdown emphasis removed.

        Lines longer than the description length are truncated with "...".

        Args:
            body: Markdown body text

        Returns:
            Short description, or None for an empty body
        """
        text = _HEADING_MARKER.sub("", body)
        text = _BOLD.sub(r"\1", text)
        text = _ITALIC.sub(r"\1", text)

        first_line = next((line.strip() for line in text.split("\n") if line.strip()), "")
        if not first_line:
            return None
        if len(first_line) <= self.description_length:
            return first_line
        return first_line[: self.description_length - 3] + "..."

    def count_words(self, body: str) -> int:
        """Count whitespace-separated words in the body."""
        return len(body.split())
