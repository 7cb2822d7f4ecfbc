"""Markdown file loader for the ingestion pipeline.

Reads content files with a YAML front-matter block and turns them into
Document objects for normalization.
"""

from pathlib import Path
from typing import Any

import structlog
import yaml

from katha_sync.ingestion.models import Document
from katha_sync.utils.exceptions import FrontmatterParseError

logger = structlog.get_logger(__name__)


class MarkdownLoader:
    """Load markdown documents relative to a repository root.

    Example:
        >>> loader = MarkdownLoader("/srv/stories")
        >>> document = loader.load_file("content/hi/poos-ki-raat.md")
        >>> document.frontmatter["title"]
        'Poos Ki Raat'
    """

    def __init__(self, root_path: str | Path | None = None) -> None:
        """Initialize loader.

        Args:
            root_path: Directory that change-source paths are relative to.
                       Defaults to the current working directory.
        """
        self.root_path = Path(root_path) if root_path else Path(".")
        self.logger = logger.bind(component="markdown_loader")
        self.files_loaded = 0
        self.files_failed = 0

    def load_file(self, file_path: str | Path) -> Document:
        """Load a single markdown file.

        Args:
            file_path: Path relative to the root (absolute paths are used as-is)

        Returns:
            Parsed Document

        Raises:
            FrontmatterParseError: If the file cannot be read or has no valid metadata block
        """
        relative = str(file_path)
        path = self.root_path / file_path

        try:
            content = path.read_text(encoding="utf-8")
            frontmatter, body = self.parse(content)
        except (OSError, UnicodeDecodeError, yaml.YAMLError, ValueError) as e:
            self.files_failed += 1
            self.logger.error(
                "file_load_error",
                file_path=relative,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise FrontmatterParseError(
                f"Cannot parse {relative}: {e}", file_path=relative
            ) from e

        self.files_loaded += 1
        return Document(file_path=relative, frontmatter=frontmatter, body=body)

    def parse(self, content: str) -> tuple[dict[str, Any], str]:
        """Split YAML front-matter from markdown content.

        Args:
            content: Full file content including front-matter

        Returns:
            Tuple of (frontmatter_dict, body)

        Raises:
            ValueError: If front-matter is missing or not a mapping
        """
        # Tolerate a UTF-8 BOM and CRLF line endings
        lines = content.lstrip("\ufeff").split("\n")

        if not lines or lines[0].rstrip("\r").strip() != "---":
            raise ValueError("Missing front-matter (file must start with '---')")

        closing_index = None
        for i in range(1, len(lines)):
            if lines[i].rstrip("\r").strip() == "---":
                closing_index = i
                break

        if closing_index is None:
            raise ValueError("Invalid front-matter (missing closing '---')")

        frontmatter_str = "\n".join(line.rstrip("\r") for line in lines[1:closing_index])
        frontmatter = yaml.safe_load(frontmatter_str) or {}

        if not isinstance(frontmatter, dict):
            raise ValueError("Front-matter must be a key/value mapping")

        body = "\n".join(line.rstrip("\r") for line in lines[closing_index + 1 :]).strip()

        # YAML keys may be non-strings (e.g. `1: x`); normalize them for alias lookup
        return {str(key): value for key, value in frontmatter.items()}, body

    def get_statistics(self) -> dict[str, int]:
        """Get loader statistics.

        Returns:
            Dictionary with files_loaded, files_failed counts
        """
        return {
            "files_loaded": self.files_loaded,
            "files_failed": self.files_failed,
        }
