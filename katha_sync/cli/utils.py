"""Shared utilities for CLI commands."""

from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from katha_sync.ingestion.change_sources import git_diff, load_push_payload, scan_directory
from katha_sync.ingestion.models import ChangedFile
from katha_sync.utils.config import EditorIdentity


def create_session_factory(database_url: str) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an async engine and a session factory bound to it.

    Args:
        database_url: SQLAlchemy URL with an async driver (e.g. sqlite+aiosqlite:///content.db)

    Returns:
        Tuple of (engine, session factory); the caller disposes the engine
    """
    engine = create_async_engine(database_url, echo=False)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def collect_changes(  # noqa: PLR0913
    root_path: Path,
    content_dir: str,
    all_files: bool = False,
    changed: bool = False,
    since: str | None = None,
    payload: Path | None = None,
) -> tuple[str, list[ChangedFile]]:
    """Ask the selected change source for the batch's files.

    Without an explicit source, the last commit is diffed (HEAD~1..HEAD).

    Args:
        root_path: Repository root
        content_dir: Content directory relative to the root
        all_files: Scan the whole content directory
        changed: Diff the working tree against HEAD
        since: Diff a revision against HEAD
        payload: Read a push webhook payload

    Returns:
        Tuple of (source name, changes)

    Raises:
        ValueError: If more than one source is selected
    """
    selected = sum([all_files, changed, since is not None, payload is not None])
    if selected > 1:
        raise ValueError("Choose only one of --all, --changed, --since and --payload")

    if all_files:
        return "scan", scan_directory(root_path, content_dir)
    if changed:
        return "git-working-tree", git_diff(root_path, None, content_dir)
    if payload is not None:
        return "push-payload", load_push_payload(payload, content_dir)
    return "git-diff", git_diff(root_path, since or "HEAD~1", content_dir)


def load_editor_identity(source: str) -> EditorIdentity:
    """Read the run's editor from the environment or from the commit author.

    Raises:
        ConfigurationError: If the required variables are not set
    """
    if source == "git-commit":
        return EditorIdentity.from_commit()
    return EditorIdentity.from_environment()
