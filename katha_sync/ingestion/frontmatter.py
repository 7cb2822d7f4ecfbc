"""Front-matter normalization, validation and content-type classification."""

import datetime as dt
import re
from typing import Any
from urllib.parse import urlparse

import structlog

from katha_sync.common.constants import (
    ARTICLE_TYPES,
    BASE_TYPES,
    BOOLEAN_FIELDS,
    FIELD_ALIASES,
    REQUIRED_FIELDS,
    TAG_SEPARATORS,
    URL_FIELDS,
)
from katha_sync.ingestion.models import Document, NormalizedDocument, NormalizedFrontmatter
from katha_sync.models.article import ContentType
from katha_sync.utils.exceptions import FormatError, MissingFieldError, SeriesRuleError

logger = structlog.get_logger(__name__)

_LANGUAGE_CODE = re.compile(r"^[a-z]{2,3}(-[a-z0-9]+)?$")
_DURATION_CLOCK = re.compile(r"^(\d+):(\d{1,2})(?::(\d{1,2}))?$")


def is_blank(value: Any) -> bool:
    """Whether a front-matter value counts as absent."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, list | tuple):
        return len(value) == 0
    return False


def split_tags(raw: Any) -> list[str]:
    """Turn a tag list or a separated tag string into clean, unique tags.

    Args:
        raw: List of tags, or a single string separated by , ; or |

    Returns:
        Tags in first-seen order with blanks and duplicates removed

    Raises:
        ValueError: If tags are neither a string nor a list
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        candidates = re.split(TAG_SEPARATORS, raw)
    elif isinstance(raw, list | tuple):
        candidates = [str(tag) for tag in raw if tag is not None]
    else:
        raise ValueError(f"tags must be a list or a string, got {type(raw).__name__}")

    tags: list[str] = []
    for candidate in candidates:
        tag = " ".join(candidate.split())
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def parse_duration(raw: Any) -> int:
    """Parse a duration given as seconds or as mm:ss / hh:mm:ss.

    Raises:
        ValueError: If the value cannot be read as a duration
    """
    if isinstance(raw, bool):
        raise ValueError("duration must be a number of seconds or mm:ss")
    if isinstance(raw, int):
        if raw < 0:
            raise ValueError("duration must not be negative")
        return raw

    text = str(raw).strip()
    match = _DURATION_CLOCK.match(text)
    if match:
        first, second, third = match.groups()
        if third is None:
            return int(first) * 60 + int(second)
        return int(first) * 3600 + int(second) * 60 + int(third)
    if text.isdigit():
        return int(text)
    raise ValueError(f"duration '{text}' is not seconds or mm:ss")


class FrontmatterNormalizer:
    """Resolve field aliases, validate values and classify a document.

    Each logical field has a fixed, priority-ordered list of accepted keys
    (e.g. `local_title` before `localTitle`). When several keys are present
    and disagree, the highest-priority key wins and the conflict is logged.

    Validation happens in three passes, each reporting every problem it finds:
    required fields (MissingFieldError), value formats (FormatError) and
    series exclusivity rules (SeriesRuleError).

    Example:
        >>> normalizer = FrontmatterNormalizer()
        >>> normalized = normalizer.normalize(document)
        >>> normalized.content_type
        <ContentType.EPISODE: 'episode'>
    """

    def __init__(self, aliases: dict[str, tuple[str, ...]] | None = None) -> None:
        """Initialize normalizer.

        Args:
            aliases: Logical field -> accepted keys, highest priority first
        """
        self.aliases = aliases or FIELD_ALIASES
        self.logger = logger.bind(component="frontmatter_normalizer")

    def normalize(self, document: Document) -> NormalizedDocument:
        """Normalize and validate one document.

        Args:
            document: Parsed document

        Returns:
            NormalizedDocument with canonical fields and content type

        Raises:
            MissingFieldError: If required fields are absent (all of them are listed)
            FormatError: If field values have the wrong type or shape
            SeriesRuleError: If series-cover / episode rules are violated
        """
        resolved = self.resolve_aliases(document)

        missing = [name for name in REQUIRED_FIELDS if is_blank(resolved.get(name))]
        if missing:
            raise MissingFieldError(missing, file_path=document.file_path)

        frontmatter = self._build(resolved, document.file_path)

        rules = self._check_series_rules(frontmatter)
        if rules:
            raise SeriesRuleError(rules, file_path=document.file_path)

        content_type = self.classify(frontmatter)
        self.logger.debug(
            "document_normalized",
            file_path=document.file_path,
            content_type=content_type.value,
        )
        return NormalizedDocument(
            document=document,
            frontmatter=frontmatter,
            content_type=content_type,
        )

    def resolve_aliases(self, document: Document) -> dict[str, Any]:
        """Collapse aliased keys into one value per logical field.

        Args:
            document: Parsed document

        Returns:
            Logical field name -> raw value of the winning key
        """
        raw = document.frontmatter
        resolved: dict[str, Any] = {}

        for name, keys in self.aliases.items():
            candidates = [(key, raw[key]) for key in keys if key in raw and raw[key] is not None]
            if not candidates:
                continue

            winner_key, winner_value = candidates[0]
            resolved[name] = winner_value

            for key, value in candidates[1:]:
                if value != winner_value:
                    self.logger.warning(
                        "frontmatter_alias_conflict",
                        file_path=document.file_path,
                        field=name,
                        used_key=winner_key,
                        ignored_key=key,
                    )

        known_keys = {key for keys in self.aliases.values() for key in keys}
        unknown = sorted(set(raw) - known_keys)
        if unknown:
            self.logger.debug(
                "unknown_frontmatter_keys", file_path=document.file_path, keys=unknown
            )

        return resolved

    def classify(self, frontmatter: NormalizedFrontmatter) -> ContentType:
        """Classify as series cover, episode or standalone article."""
        if frontmatter.base_type == ContentType.SERIES.value:
            return ContentType.SERIES
        if frontmatter.series_title:
            return ContentType.EPISODE
        return ContentType.ARTICLE

    def _build(self, resolved: dict[str, Any], file_path: str) -> NormalizedFrontmatter:  # noqa: PLR0912
        """Validate optional fields and build the normalized record.

        Raises:
            FormatError: Listing every malformed field
        """
        problems: list[str] = []

        title = self._required_text(resolved, "title", problems)
        local_title = self._required_text(resolved, "local_title", problems)
        author = self._required_text(resolved, "author", problems)
        category = self._required_text(resolved, "category", problems)

        lang = str(resolved["lang"]).strip().lower()
        if not _LANGUAGE_CODE.match(lang):
            problems.append(f"lang: '{lang}' is not a language code")

        sub_category = self._optional_text(resolved, "sub_category", problems)
        series_title = self._optional_text(resolved, "series_title", problems)

        try:
            tags = split_tags(resolved.get("tags"))
        except ValueError as e:
            problems.append(f"tags: {e}")
            tags = []

        base_type = self._optional_choice(resolved, "base_type", BASE_TYPES, problems)
        article_type = self._optional_choice(resolved, "article_type", ARTICLE_TYPES, problems)

        episode = self._optional_int(resolved, "episode", problems, minimum=1)
        words = self._optional_int(resolved, "words", problems, minimum=0)

        flags: dict[str, bool | None] = {}
        for name in BOOLEAN_FIELDS:
            value = resolved.get(name)
            if value is not None and not isinstance(value, bool):
                problems.append(f"{name}: must be true or false, got '{value}'")
                value = None
            flags[name] = value

        urls: dict[str, str | None] = {}
        for name in URL_FIELDS:
            value = resolved.get(name)
            if value is None:
                urls[name] = None
                continue
            parsed = urlparse(str(value).strip())
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                problems.append(f"{name}: '{value}' is not an http(s) URL")
                urls[name] = None
            else:
                urls[name] = str(value).strip()

        duration = None
        if resolved.get("duration") is not None:
            try:
                duration = parse_duration(resolved["duration"])
            except ValueError as e:
                problems.append(f"duration: {e}")

        date = resolved.get("date")
        if isinstance(date, dt.date):
            date = date.isoformat()

        if problems:
            raise FormatError(problems, file_path=file_path)

        return NormalizedFrontmatter(
            title=title,
            local_title=local_title,
            author=author,
            category=category,
            lang=lang,
            sub_category=sub_category,
            tags=tags,
            base_type=base_type,
            series_title=series_title,
            episode=episode,
            article_type=article_type,
            completed=flags["completed"],
            published=flags["published"],
            featured=flags["featured"],
            thumbnail=urls["thumbnail"],
            audio=urls["audio"],
            words=words,
            date=str(date) if date is not None else None,
            duration=duration,
        )

    def _required_text(self, resolved: dict[str, Any], name: str, problems: list[str]) -> str:
        """Scalar value with whitespace collapsed; lists and mappings are format problems."""
        value = resolved[name]
        if isinstance(value, list | tuple | dict):
            problems.append(f"{name}: must be a non-empty string, got a {type(value).__name__}")
            return ""
        return " ".join(str(value).split())

    def _optional_text(self, resolved: dict[str, Any], name: str, problems: list[str]) -> str | None:
        value = resolved.get(name)
        if value is None:
            return None
        if isinstance(value, list | dict) or is_blank(value):
            problems.append(f"{name}: must be a non-empty string")
            return None
        return " ".join(str(value).split())

    def _optional_choice(
        self,
        resolved: dict[str, Any],
        name: str,
        choices: frozenset[str],
        problems: list[str],
    ) -> str | None:
        value = resolved.get(name)
        if value is None:
            return None
        normalized = str(value).strip().lower()
        if normalized not in choices:
            problems.append(f"{name}: '{value}' is not one of {', '.join(sorted(choices))}")
            return None
        return normalized

    def _optional_int(
        self,
        resolved: dict[str, Any],
        name: str,
        problems: list[str],
        minimum: int,
    ) -> int | None:
        value = resolved.get(name)
        if value is None:
            return None

        number: int | None = None
        if isinstance(value, bool):
            number = None
        elif isinstance(value, int):
            number = value
        elif isinstance(value, float) and value.is_integer():
            number = int(value)
        elif isinstance(value, str) and value.strip().isdigit():
            number = int(value.strip())

        if number is None or number < minimum:
            qualifier = "a positive integer" if minimum > 0 else "a non-negative integer"
            problems.append(f"{name}: must be {qualifier}, got '{value}'")
            return None
        return number

    def _check_series_rules(self, frontmatter: NormalizedFrontmatter) -> list[str]:
        """List every violated series-cover / episode rule."""
        rules: list[str] = []

        if frontmatter.base_type == ContentType.SERIES.value:
            if frontmatter.series_title:
                rules.append("series cover must not carry series_title")
            if frontmatter.episode is not None:
                rules.append("series cover must not carry episode")
            if frontmatter.article_type:
                rules.append("series cover must not carry article_type")
            return rules

        if frontmatter.series_title:
            if frontmatter.completed is not None:
                rules.append("episode must not carry completed")
        elif frontmatter.episode is not None:
            rules.append("episode number requires series_title")

        return rules
