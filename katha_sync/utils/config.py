"""Configuration management for environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from katha_sync.utils.exceptions import ConfigurationError


def get_required_env(key: str) -> str:
    """Get required environment variable or raise error.

    Args:
        key: Environment variable name

    Returns:
        Environment variable value

    Raises:
        ConfigurationError: If variable is not set
    """
    value = os.getenv(key)
    if not value:
        raise ConfigurationError(f"{key} environment variable is not set")
    return value


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Load configuration from .env file and environment."""
        # Load .env file if it exists
        env_path = Path(".env")
        if env_path.exists():
            load_dotenv(env_path)

        # Required configuration
        self.database_url = self._get_required("DATABASE_URL")

        # Optional configuration with defaults
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.transliteration_model = os.getenv("TRANSLITERATION_MODEL", "gpt-4.1")
        self.transliteration_batch_size = self._get_int("TRANSLITERATION_BATCH_SIZE", 50)
        self.mappings_dir = Path(os.getenv("MAPPINGS_DIR", "data/mappings"))
        self.content_dir = Path(os.getenv("CONTENT_DIR", "content"))
        self.summary_path = Path(os.getenv("SUMMARY_PATH", "logs/sync-summary.json"))

    def _get_required(self, key: str) -> str:
        """Get required environment variable or raise error."""
        return get_required_env(key)

    def _get_int(self, key: str, default: int) -> int:
        """Get a positive integer environment variable.

        Raises:
            ConfigurationError: If the value is not a positive integer
        """
        raw = os.getenv(key)
        if raw is None or raw == "":
            return default
        try:
            value = int(raw)
        except ValueError as e:
            raise ConfigurationError(f"{key} must be an integer, got '{raw}'") from e
        if value <= 0:
            raise ConfigurationError(f"{key} must be positive, got {value}")
        return value

    @staticmethod
    def get_optional(key: str, default: str | None = None) -> str | None:
        """Get optional environment variable with default value.

        Args:
            key: Environment variable name
            default: Default value if not set

        Returns:
            Environment variable value or default
        """
        return os.getenv(key, default)


@dataclass(frozen=True)
class EditorIdentity:
    """Person an ingestion run is attributed to.

    Attributes:
        name: Display name (required)
        email: E-mail address
        github_username: GitHub login
    """

    name: str
    email: str | None = None
    github_username: str | None = None

    @classmethod
    def from_environment(cls) -> "EditorIdentity":
        """Read EDITOR_NAME, EDITOR_EMAIL and EDITOR_GITHUB_USERNAME.

        Raises:
            ConfigurationError: If EDITOR_NAME is not set
        """
        return cls(
            name=get_required_env("EDITOR_NAME"),
            email=os.getenv("EDITOR_EMAIL") or None,
            github_username=os.getenv("EDITOR_GITHUB_USERNAME") or None,
        )

    @classmethod
    def from_commit(cls) -> "EditorIdentity":
        """Read the commit author exported by CI (COMMIT_AUTHOR_*).

        Raises:
            ConfigurationError: If COMMIT_AUTHOR_NAME is not set
        """
        return cls(
            name=get_required_env("COMMIT_AUTHOR_NAME"),
            email=os.getenv("COMMIT_AUTHOR_EMAIL") or None,
            github_username=os.getenv("COMMIT_AUTHOR_USERNAME") or None,
        )
