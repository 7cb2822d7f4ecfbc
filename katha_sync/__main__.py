"""Main entry point for the Katha Sync command line."""

import click

from katha_sync.cli.audit import audit
from katha_sync.cli.sync import sync


@click.group()
@click.version_option("0.1.0", prog_name="katha-sync")
def cli() -> None:
    """Content ingestion and normalization for multilingual story archives."""


cli.add_command(sync)
cli.add_command(audit)


if __name__ == "__main__":
    cli()
