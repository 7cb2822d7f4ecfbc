"""Prompt template loading and rendering for LLM interactions."""

from collections.abc import Sequence
from pathlib import Path

import structlog

from katha_sync.common.constants import LANGUAGE_NAMES
from katha_sync.ingestion.models import TransliterationItem
from katha_sync.utils.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

# Templates ship inside the package
DEFAULT_PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


class PromptBuilder:
    """Load and render prompt templates for LLM interactions.

    Templates are loaded from the prompts/ directory and support
    placeholder substitution using {placeholder} syntax.
    """

    TRANSLITERATION_TEMPLATE = "transliteration.md"

    def __init__(self, prompts_dir: Path | None = None) -> None:
        """Initialize PromptBuilder with template directory.

        Args:
            prompts_dir: Directory containing prompt templates.
                        Defaults to katha_sync/prompts/

        Raises:
            ConfigurationError: If the directory does not exist
        """
        self.prompts_dir = prompts_dir or DEFAULT_PROMPTS_DIR

        if not self.prompts_dir.exists():
            raise ConfigurationError(f"Prompts directory not found: {self.prompts_dir}")

        # Cache loaded templates
        self._template_cache: dict[str, str] = {}

    def _load_template(self, template_name: str) -> str:
        """Load a template file from the prompts directory.

        Raises:
            ConfigurationError: If template file not found
        """
        if template_name in self._template_cache:
            return self._template_cache[template_name]

        template_path = self.prompts_dir / template_name

        if not template_path.exists():
            raise ConfigurationError(f"Template file not found: {template_path}")

        content = template_path.read_text(encoding="utf-8")
        self._template_cache[template_name] = content

        logger.debug("template_loaded", template=template_name)
        return content

    def build_transliteration_prompt(self, items: Sequence[TransliterationItem]) -> str:
        """Build the batch transliteration prompt.

        Items keep their position in `items` as their index and are grouped
        by language so the model sees one script at a time.

        Args:
            items: Strings to transliterate, in request order

        Returns:
            Rendered prompt
        """
        by_language: dict[str, list[str]] = {}
        for index, item in enumerate(items):
            line = f'{index}. {item.role.value.upper()}: "{item.text}"'
            by_language.setdefault(item.language, []).append(line)

        sections = []
        for language, lines in by_language.items():
            name = LANGUAGE_NAMES.get(language, language.upper())
            sections.append(f"LANGUAGE: {name} ({language})\n" + "\n".join(lines))

        template = self._load_template(self.TRANSLITERATION_TEMPLATE)
        return template.format(count=len(items), items="\n\n".join(sections))

    def clear_cache(self) -> None:
        """Clear the template cache to force reload on next access."""
        self._template_cache.clear()
        logger.debug("template_cache_cleared")
