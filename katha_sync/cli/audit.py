"""CLI command for auditing persisted content integrity."""

import asyncio
from collections import Counter

import click
import structlog
from dotenv import load_dotenv

from katha_sync.cli.utils import create_session_factory
from katha_sync.ingestion.integrity_auditor import IntegrityAuditor
from katha_sync.utils.config import Config
from katha_sync.utils.exceptions import ConfigurationError, IntegrityWarning
from katha_sync.utils.logger import configure_logging

load_dotenv()
logger = structlog.get_logger(__name__)


async def run_audit(database_url: str) -> list[IntegrityWarning]:
    """Run every integrity check against the configured database."""
    engine, session_factory = create_session_factory(database_url)
    try:
        async with session_factory() as session:
            return await IntegrityAuditor(session).run()
    finally:
        await engine.dispose()


@click.command()
@click.option("--strict", is_flag=True, help="Exit with status 1 when any warning is found")
def audit(strict: bool) -> None:
    """Check persisted content for orphaned references, duplicates and episode drift."""
    try:
        config = Config()
    except ConfigurationError as e:
        click.echo(f"  Configuration error: {e}", err=True)
        raise SystemExit(1) from e

    configure_logging(config.log_level)

    click.echo("=" * 80)
    click.echo("Katha Sync - Integrity Audit")
    click.echo("=" * 80)

    try:
        warnings = asyncio.run(run_audit(config.database_url))
    except Exception as e:
        click.echo(f"  Audit failed: {e}", err=True)
        logger.error("audit_failed", error=str(e))
        raise SystemExit(1) from e

    if not warnings:
        click.echo("  Status: OK")
        click.echo("  No integrity warnings found")
        return

    counts = Counter(warning.kind for warning in warnings)
    click.echo(f"  Status: {len(warnings)} warning(s)")
    for kind, count in sorted(counts.items()):
        click.echo(f"    {kind}: {count}")
    click.echo()
    for warning in warnings:
        click.echo(f"  [{warning.kind}] {warning.subject}: {warning.detail}")

    if strict:
        raise SystemExit(1)


if __name__ == "__main__":
    audit()
