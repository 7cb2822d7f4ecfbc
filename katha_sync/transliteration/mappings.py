"""Curated vernacular -> canonical name tables, one JSON file per kind and language."""

import json
from pathlib import Path

import structlog

from katha_sync.utils.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

_QUOTES = "\"'“”‘’"


class CuratedMappings:
    """Lazily loaded curated name tables.

    Files are named `{kind}-mappings.{lang}.json` (kind with hyphens, e.g.
    `sub-category-mappings.hi.json`) and contain either a flat object, or an
    object with a `mappings` / `{kind}_mappings` member:

        {
          "language": "Hindi",
          "language_code": "hi",
          "script": "Devanagari",
          "author_mappings": {"प्रेमचंद": "Premchand"}
        }

    Each file is read at most once per instance.
    """

    def __init__(self, mappings_dir: str | Path | None = None) -> None:
        """Initialize mappings.

        Args:
            mappings_dir: Directory holding the JSON files; None disables lookups
        """
        self.mappings_dir = Path(mappings_dir) if mappings_dir else None
        self._tables: dict[tuple[str, str], dict[str, str]] = {}
        self.logger = logger.bind(component="curated_mappings")

    def lookup(self, kind: str, language: str, text: str) -> str | None:
        """Find the curated canonical name for a vernacular string.

        Tries the exact text first, then the text with quote characters removed.

        Args:
            kind: Reference kind (author, category, sub_category, tag)
            language: Language code of the text
            text: Vernacular string

        Returns:
            Canonical name, or None if not curated
        """
        table = self._table(kind, language)
        if not table:
            return None

        if text in table:
            return table[text]

        unquoted = text.translate(str.maketrans("", "", _QUOTES)).strip()
        return table.get(unquoted)

    def _table(self, kind: str, language: str) -> dict[str, str]:
        key = (kind, language)
        if key not in self._tables:
            self._tables[key] = self._load(kind, language)
        return self._tables[key]

    def _load(self, kind: str, language: str) -> dict[str, str]:
        """Read one mapping file.

        Raises:
            ConfigurationError: If the file exists but is not a valid mapping document
        """
        if self.mappings_dir is None:
            return {}

        path = self.mappings_dir / f"{kind.replace('_', '-')}-mappings.{language}.json"
        if not path.exists():
            self.logger.debug("mapping_file_absent", path=str(path))
            return {}

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Invalid mapping file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Invalid mapping file {path}: expected a JSON object")

        table = data.get(f"{kind}_mappings", data.get("mappings", data))
        if not isinstance(table, dict):
            raise ConfigurationError(f"Invalid mapping file {path}: mappings must be an object")

        mappings = {
            str(source): str(target).strip()
            for source, target in table.items()
            if isinstance(target, str) and target.strip()
        }
        self.logger.info("mapping_file_loaded", path=str(path), entries=len(mappings))
        return mappings
