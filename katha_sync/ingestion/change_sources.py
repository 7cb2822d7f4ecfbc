"""Change detection: turn a directory scan, a git diff or a push payload into ChangedFile lists.

Every source yields paths relative to the repository root, restricted to
markdown files under the content directory, each with an added/modified/removed
status.
"""

import json
import subprocess
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from katha_sync.common.constants import MARKDOWN_EXTENSIONS
from katha_sync.ingestion.models import ChangedFile, FileStatus
from katha_sync.utils.exceptions import IngestionError

logger = structlog.get_logger(__name__)

GIT_STATUS_CODES = {
    "A": FileStatus.ADDED,
    "M": FileStatus.MODIFIED,
    "T": FileStatus.MODIFIED,
    "D": FileStatus.REMOVED,
}


def is_content_file(path: str, content_dir: str = "content") -> bool:
    """Check that a repository-relative path is a markdown file under the content directory."""
    prefix = content_dir.strip("/") + "/"
    normalized = path.replace("\\", "/")
    return normalized.startswith(prefix) and normalized.lower().endswith(MARKDOWN_EXTENSIONS)


def fold_changes(changes: Iterable[ChangedFile]) -> list[ChangedFile]:
    """Collapse repeated paths into one change per path, in first-seen order.

    The last status wins, except that a file added and then modified is still
    reported as added.
    """
    folded: dict[str, FileStatus] = {}
    for change in changes:
        previous = folded.get(change.path)
        if previous == FileStatus.ADDED and change.status == FileStatus.MODIFIED:
            continue
        folded[change.path] = change.status
    return [ChangedFile(path, status) for path, status in folded.items()]


def scan_directory(root_path: str | Path, content_dir: str = "content") -> list[ChangedFile]:
    """List every markdown file under the content directory as modified.

    Args:
        root_path: Repository root
        content_dir: Content directory relative to the root

    Returns:
        Sorted list of changes

    Raises:
        FileNotFoundError: If the content directory does not exist
    """
    root = Path(root_path)
    base = root / content_dir
    if not base.is_dir():
        raise FileNotFoundError(f"Content directory not found: {base}")

    changes = [
        ChangedFile(path.relative_to(root).as_posix(), FileStatus.MODIFIED)
        for path in sorted(base.rglob("*"))
        if path.is_file() and path.suffix.lower() in MARKDOWN_EXTENSIONS
    ]
    logger.info("directory_scanned", content_dir=str(base), files=len(changes))
    return changes


def parse_name_status(output: str, content_dir: str = "content") -> list[ChangedFile]:
    """Parse `git diff --name-status` output.

    Renames become a removal of the old path plus an addition of the new one;
    copies add the new path.
    """
    changes: list[ChangedFile] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        code = parts[0][:1]

        if code == "R" and len(parts) == 3:
            changes.append(ChangedFile(parts[1], FileStatus.REMOVED))
            changes.append(ChangedFile(parts[2], FileStatus.ADDED))
        elif code == "C" and len(parts) == 3:
            changes.append(ChangedFile(parts[2], FileStatus.ADDED))
        elif code in GIT_STATUS_CODES and len(parts) == 2:
            changes.append(ChangedFile(parts[1], GIT_STATUS_CODES[code]))
        else:
            logger.debug("git_status_line_skipped", line=line)

    return [change for change in fold_changes(changes) if is_content_file(change.path, content_dir)]


def git_diff(
    root_path: str | Path,
    since: str | None = None,
    content_dir: str = "content",
) -> list[ChangedFile]:
    """Changes reported by git.

    Args:
        root_path: Repository root
        since: Revision to diff against HEAD; None diffs the working tree against HEAD
        content_dir: Content directory relative to the root

    Returns:
        Changes under the content directory

    Raises:
        IngestionError: If git is missing or the command fails
    """
    command = ["git", "diff", "--name-status", "--no-renames" if since is None else "-M"]
    command.extend([since, "HEAD"] if since else ["HEAD"])

    try:
        result = subprocess.run(
            command,
            cwd=str(root_path),
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise IngestionError("git executable not found") from e
    except subprocess.CalledProcessError as e:
        raise IngestionError(f"git diff failed: {e.stderr.strip() or e}") from e

    changes = parse_name_status(result.stdout, content_dir)
    logger.info("git_changes_detected", since=since, files=len(changes))
    return changes


def parse_push_payload(payload: dict[str, Any], content_dir: str = "content") -> list[ChangedFile]:
    """Extract changes from a GitHub push webhook payload.

    Per-commit added/modified/removed lists are folded in commit order.

    Raises:
        IngestionError: If the payload has no commits list
    """
    commits = payload.get("commits")
    if not isinstance(commits, list):
        raise IngestionError("Push payload has no commits list")

    changes: list[ChangedFile] = []
    for commit in commits:
        for key, status in (
            ("added", FileStatus.ADDED),
            ("modified", FileStatus.MODIFIED),
            ("removed", FileStatus.REMOVED),
        ):
            changes.extend(ChangedFile(path, status) for path in commit.get(key) or [])

    relevant = [change for change in fold_changes(changes) if is_content_file(change.path, content_dir)]
    logger.info(
        "push_payload_parsed",
        commits=len(commits),
        files=len(relevant),
        ref=payload.get("ref"),
    )
    return relevant


def load_push_payload(payload_path: str | Path, content_dir: str = "content") -> list[ChangedFile]:
    """Read a push payload JSON file and extract its changes.

    Raises:
        IngestionError: If the file cannot be read or is not valid JSON
    """
    try:
        with Path(payload_path).open(encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise IngestionError(f"Cannot read push payload {payload_path}: {e}") from e

    if not isinstance(payload, dict):
        raise IngestionError("Push payload must be a JSON object")
    return parse_push_payload(payload, content_dir)
