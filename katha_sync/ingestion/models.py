"""Data models passed between ingestion stages."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from katha_sync.models.article import ContentType


class FileStatus(str, Enum):
    """Change status reported by a change source."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class DocumentState(str, Enum):
    """Progress of one document through the pipeline."""

    PARSED = "parsed"
    NORMALIZED = "normalized"
    TRANSLITERATED = "transliterated"
    REFERENCES_RESOLVED = "references_resolved"
    PERSISTED = "persisted"
    REJECTED = "rejected"


class TransliterationRole(str, Enum):
    """What a vernacular string names; used as a hint for the oracle."""

    TITLE = "title"
    AUTHOR = "author"
    CATEGORY = "category"
    SUB_CATEGORY = "sub_category"
    TAG = "tag"


@dataclass(frozen=True)
class ChangedFile:
    """A file reported by a change source.

    Attributes:
        path: File path relative to the repository root
        status: added, modified or removed
    """

    path: str
    status: FileStatus


@dataclass
class Document:
    """A parsed source file: raw front-matter plus body text.

    Attributes:
        file_path: Source path, for diagnostics and removal tracking
        frontmatter: Raw key/value map exactly as parsed
        body: Markdown body after the metadata block
    """

    file_path: str
    frontmatter: dict[str, Any]
    body: str


@dataclass
class NormalizedFrontmatter:
    """Canonical field set after alias resolution and validation."""

    title: str
    local_title: str
    author: str
    category: str
    lang: str
    sub_category: str | None = None
    tags: list[str] = field(default_factory=list)
    base_type: str | None = None
    series_title: str | None = None
    episode: int | None = None
    article_type: str | None = None
    completed: bool | None = None
    published: bool | None = None
    featured: bool | None = None
    thumbnail: str | None = None
    audio: str | None = None
    words: int | None = None
    date: str | None = None
    duration: int | None = None


@dataclass
class NormalizedDocument:
    """Output of the normalizer for one document."""

    document: Document
    frontmatter: NormalizedFrontmatter
    content_type: ContentType

    @property
    def file_path(self) -> str:
        return self.document.file_path


@dataclass(frozen=True)
class TransliterationItem:
    """One vernacular string to transliterate.

    Attributes:
        text: Vernacular text exactly as written in the front-matter
        role: What the text names (title, author, ...)
        language: Source language code
    """

    text: str
    role: TransliterationRole
    language: str


@dataclass
class ProcessedMetadata:
    """Everything the upsert engine needs to persist one document.

    Attributes:
        normalized: Normalized document
        slug: Generated identity slug
        author_id / category_id / sub_category_id / language_id: Resolved reference ids
        tag_ids: Resolved tag ids in front-matter order
        short_description: Summary derived from the body
        word_count: Declared word count, or counted from the body
    """

    normalized: NormalizedDocument
    slug: str
    language_id: str
    author_id: str
    category_id: str
    sub_category_id: str | None = None
    tag_ids: list[str] = field(default_factory=list)
    short_description: str | None = None
    word_count: int | None = None

    @property
    def frontmatter(self) -> NormalizedFrontmatter:
        return self.normalized.frontmatter

    @property
    def content_type(self) -> ContentType:
        return self.normalized.content_type

    @property
    def file_path(self) -> str:
        return self.normalized.file_path


@dataclass
class DocumentOutcome:
    """Per-document result recorded in the batch summary."""

    file_path: str
    state: DocumentState
    slug: str | None = None
    action: str | None = None
    reasons: list[str] = field(default_factory=list)
    error_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert outcome to dictionary for JSON serialization."""
        return {
            "file_path": self.file_path,
            "state": self.state.value,
            "slug": self.slug,
            "action": self.action,
            "reasons": self.reasons,
            "error_type": self.error_type,
        }
