"""Custom exception hierarchy for the application."""

from dataclasses import dataclass


class KathaSyncError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, is_retryable: bool = False) -> None:
        """Initialize exception.

        Args:
            message: Error message
            is_retryable: Whether the operation can be retried
        """
        super().__init__(message)
        self.message = message
        self.is_retryable = is_retryable


class ConfigurationError(KathaSyncError):
    """Configuration or environment setup error."""

    pass


class DatabaseError(KathaSyncError):
    """Database operation error."""

    pass


class LLMProviderError(KathaSyncError):
    """LLM provider API error."""

    pass


class IngestionError(KathaSyncError):
    """Batch-level ingestion failure.

    Aborts the whole batch; nothing from the batch is committed.
    """

    pass


class TransliterationBatchError(IngestionError):
    """The transliteration oracle returned an unusable batch result."""

    pass


class DocumentRejectedError(KathaSyncError):
    """Document-level failure that rejects a single document.

    The batch continues with the remaining documents.
    """

    def __init__(self, message: str, file_path: str | None = None, reasons: list[str] | None = None) -> None:
        """Initialize rejection.

        Args:
            message: Error message
            file_path: Source file of the rejected document
            reasons: Individual problems that caused the rejection
        """
        super().__init__(message)
        self.file_path = file_path
        self.reasons = reasons or [message]


class FrontmatterParseError(DocumentRejectedError):
    """Metadata block is missing or is not a valid key/value map."""

    pass


class MissingFieldError(DocumentRejectedError):
    """One or more required front-matter fields are absent."""

    def __init__(self, fields: list[str], file_path: str | None = None) -> None:
        super().__init__(
            f"Missing required fields: {', '.join(fields)}",
            file_path=file_path,
            reasons=[f"missing field '{field}'" for field in fields],
        )
        self.fields = fields


class FormatError(DocumentRejectedError):
    """One or more optional fields have the wrong type or shape."""

    def __init__(self, problems: list[str], file_path: str | None = None) -> None:
        super().__init__(
            f"Invalid field format: {'; '.join(problems)}",
            file_path=file_path,
            reasons=problems,
        )
        self.problems = problems


class SeriesRuleError(DocumentRejectedError):
    """Series-cover or episode exclusivity rules were violated."""

    def __init__(self, rules: list[str], file_path: str | None = None) -> None:
        super().__init__(
            f"Series rule violations: {'; '.join(rules)}",
            file_path=file_path,
            reasons=rules,
        )
        self.rules = rules


class DanglingSeriesReferenceError(DocumentRejectedError):
    """Episode references a series that is neither in the batch nor persisted."""

    def __init__(self, series_title: str, file_path: str | None = None) -> None:
        super().__init__(f"Unknown series '{series_title}'", file_path=file_path)
        self.series_title = series_title


class DuplicateSlugError(DocumentRejectedError):
    """Two different documents of one batch derive the same slug."""

    def __init__(self, slug: str, file_path: str | None = None, other_path: str | None = None) -> None:
        message = f"Slug '{slug}' already claimed"
        if other_path:
            message += f" by {other_path}"
        super().__init__(message, file_path=file_path)
        self.slug = slug
        self.other_path = other_path


class EpisodeNumberConflictError(DocumentRejectedError):
    """Episode number is already taken by another active episode of the series."""

    def __init__(self, series_slug: str, episode_number: int, file_path: str | None = None) -> None:
        super().__init__(
            f"Episode {episode_number} already exists in series '{series_slug}'",
            file_path=file_path,
        )
        self.series_slug = series_slug
        self.episode_number = episode_number


@dataclass
class IntegrityWarning:
    """A consistency problem found in persisted state.

    Reported in summaries, never raised.

    Attributes:
        kind: Warning category (episode_count_drift, orphaned_reference, duplicate_slug, ...)
        subject: Slug or identifier of the affected row
        detail: Human readable description
    """

    kind: str
    subject: str
    detail: str

    def to_dict(self) -> dict[str, str]:
        """Convert warning to dictionary for JSON serialization."""
        return {"kind": self.kind, "subject": self.subject, "detail": self.detail}
