"""CLI command for syncing changed content files into the database."""

import asyncio
from pathlib import Path

import click
import structlog
from dotenv import load_dotenv

from katha_sync.cli.utils import collect_changes, create_session_factory, load_editor_identity
from katha_sync.ingestion.models import ChangedFile
from katha_sync.ingestion.pipeline import BatchSummary, IngestionPipeline
from katha_sync.llm.llm_router import MultiLLMRouter
from katha_sync.transliteration.gateway import TransliterationGateway
from katha_sync.transliteration.mappings import CuratedMappings
from katha_sync.transliteration.oracle import LLMTransliterationOracle
from katha_sync.utils.config import Config, EditorIdentity
from katha_sync.utils.exceptions import ConfigurationError, IngestionError, KathaSyncError
from katha_sync.utils.logger import bind_batch_context, configure_logging

# Load environment variables from .env file
load_dotenv()

logger = structlog.get_logger(__name__)


def _display_summary(summary: BatchSummary, summary_path: Path) -> None:
    """Display batch summary."""
    click.echo()
    click.echo("=" * 80)
    click.echo("Sync Complete!" if not summary.dry_run else "Dry Run Complete (rolled back)")
    click.echo("=" * 80)
    click.echo(f"  Files Seen: {summary.files_seen}")
    click.echo(f"  Parsed: {summary.parsed}")
    click.echo(f"  Normalized: {summary.normalized}")
    click.echo(f"  Transliterated: {summary.transliterated}")
    click.echo(f"  References Resolved: {summary.resolved}")
    click.echo(
        f"  Persisted: {summary.persisted} "
        f"(created {summary.created}, updated {summary.updated}, revived {summary.revived})"
    )
    click.echo(f"  Removed: {summary.removed}")
    click.echo(f"  Rejected: {summary.rejected}")
    click.echo(f"  Warnings: {len(summary.warnings)}")
    click.echo(f"  Duration: {summary.duration_seconds:.1f}s")

    rejections = summary.rejections()
    if rejections:
        click.echo()
        click.echo("Rejected documents:")
        for outcome in rejections:
            click.echo(f"  {outcome.file_path} [{outcome.error_type}]")
            for reason in outcome.reasons:
                click.echo(f"    - {reason}")

    if summary.warnings:
        click.echo()
        click.echo("Integrity warnings:")
        for warning in summary.warnings:
            click.echo(f"  {warning.kind}: {warning.subject} ({warning.detail})")

    click.echo()
    click.echo(f"Summary report saved to: {summary_path}")
    click.echo()


async def run_sync(
    config: Config,
    changes: list[ChangedFile],
    editor: EditorIdentity,
    root_path: Path,
    dry_run: bool,
) -> BatchSummary:
    """Build the pipeline from configuration and run one batch."""
    engine, session_factory = create_session_factory(config.database_url)
    try:
        oracle = LLMTransliterationOracle(
            router=MultiLLMRouter(default_model=config.transliteration_model),
            model=config.transliteration_model,
        )
        gateway = TransliterationGateway(oracle, chunk_size=config.transliteration_batch_size)

        async with session_factory() as session:
            pipeline = IngestionPipeline(
                session,
                gateway,
                root_path=root_path,
                mappings=CuratedMappings(root_path / config.mappings_dir),
                summary_path=config.summary_path,
            )
            return await pipeline.run(changes, editor, dry_run=dry_run)
    finally:
        await engine.dispose()


@click.command()
@click.option("--all", "all_files", is_flag=True, help="Process every file in the content directory")
@click.option("--changed", is_flag=True, help="Process files changed in the working tree")
@click.option("--since", type=str, default=None, help="Process files changed since a git revision")
@click.option(
    "--payload",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Process files listed in a GitHub push webhook payload (JSON)",
)
@click.option(
    "--root",
    "root_path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Repository root that content paths are relative to (default: .)",
)
@click.option("--dry-run", is_flag=True, help="Run every stage, then roll back")
@click.option(
    "--editor-source",
    type=click.Choice(["environment", "git-commit"]),
    default="environment",
    help="Where the editor identity comes from (default: environment)",
)
@click.option("--verbose", is_flag=True, help="Debug logging in human readable format")
def sync(  # noqa: PLR0913
    all_files: bool,
    changed: bool,
    since: str | None,
    payload: Path | None,
    root_path: Path,
    dry_run: bool,
    editor_source: str,
    verbose: bool,
) -> None:
    """Sync markdown content into the database.

    Changed files are parsed, normalized, transliterated, resolved to
    reference entities and upserted. Invalid documents are rejected and
    listed; a batch-level failure exits non-zero and writes nothing.

    Examples:

        \b
        # Changes of the last commit
        katha-sync sync

        \b
        # Full corpus scan, without committing
        katha-sync sync --all --dry-run

        \b
        # Webhook delivery in CI, attributed to the commit author
        katha-sync sync --payload event.json --editor-source git-commit
    """
    try:
        config = Config()
    except ConfigurationError as e:
        click.echo(f"  Configuration error: {e}", err=True)
        raise SystemExit(1) from e

    configure_logging("DEBUG" if verbose else config.log_level, json_output=not verbose)

    click.echo("=" * 80)
    click.echo("Katha Sync - Content Ingestion")
    click.echo("=" * 80)

    try:
        editor = load_editor_identity(editor_source)
        source, changes = collect_changes(
            root_path, str(config.content_dir), all_files, changed, since, payload
        )
    except (ConfigurationError, IngestionError, FileNotFoundError, ValueError) as e:
        click.echo(f"  {e}", err=True)
        raise SystemExit(1) from e

    click.echo(f"Source: {source}")
    click.echo(f"Files: {len(changes)}")
    click.echo(f"Editor: {editor.name}")
    click.echo(f"Dry Run: {dry_run}")

    if not changes:
        click.echo()
        click.echo("No content changes to process.")
        return

    bind_batch_context(source)

    try:
        summary = asyncio.run(run_sync(config, changes, editor, root_path, dry_run))
    except KeyboardInterrupt:
        click.echo()
        click.echo("  Sync interrupted by user", err=True)
        raise SystemExit(1) from None
    except KathaSyncError as e:
        click.echo()
        click.echo(f"  Sync failed: {e}", err=True)
        logger.error("sync_failed", error=str(e), error_type=type(e).__name__)
        raise SystemExit(1) from e

    _display_summary(summary, config.summary_path)


if __name__ == "__main__":
    sync()
