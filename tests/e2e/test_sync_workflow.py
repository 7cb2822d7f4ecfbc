"""End-to-end tests for the sync and audit commands.

Run with: pytest -m e2e

The commands run against a migrated SQLite database in a temporary
directory; only the transliteration oracle is replaced.
"""

from pathlib import Path
from unittest.mock import patch

import pytest
from alembic import command
from alembic.config import Config
from click.testing import CliRunner

from katha_sync.__main__ import cli

PROJECT_ROOT = Path(__file__).parent.parent.parent

COVER = {
    "title": "Grandmother's Tales",
    "local_title": "दादी माँ की कहानियाँ",
    "author": "दादी माँ",
    "category": "बाल कथाएँ",
    "lang": "hi",
    "base_type": "series",
}

EPISODE = {
    "title": "Poos Ki Raat",
    "local_title": "पूस की रात",
    "author": "दादी माँ",
    "category": "बाल कथाएँ",
    "lang": "hi",
    "series_title": "Grandmother's Tales",
    "tags": ["गाँव"],
}


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Migrate a fresh database file and return its async URL."""
    db_path = tmp_path / "content.db"
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "katha_sync" / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    command.upgrade(alembic_cfg, "head")
    return f"sqlite+aiosqlite:///{db_path}"


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, database_url: str):
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("EDITOR_NAME", "Asha Verma")
    monkeypatch.setenv("SUMMARY_PATH", str(tmp_path / "logs" / "summary.json"))
    monkeypatch.delenv("CONTENT_DIR", raising=False)
    monkeypatch.delenv("MAPPINGS_DIR", raising=False)
    monkeypatch.delenv("TRANSLITERATION_MODEL", raising=False)
    with patch("katha_sync.utils.config.load_dotenv"):
        yield


@pytest.mark.e2e
class TestSyncWorkflowE2E:
    """Sync a small series into a real database, then audit it."""

    def test_sync_then_audit(
        self, env, content_root: Path, write_document, oracle_factory, tmp_path: Path
    ) -> None:
        write_document("content/hi/dadi/poos.md", EPISODE)
        write_document("content/hi/dadi/cover.md", COVER)
        runner = CliRunner()

        with patch("katha_sync.cli.sync.LLMTransliterationOracle", return_value=oracle_factory()):
            result = runner.invoke(cli, ["sync", "--all", "--root", str(content_root)])

        assert result.exit_code == 0, result.output
        assert "Persisted: 2 (created 2, updated 0, revived 0)" in result.output
        assert "Rejected: 0" in result.output
        assert (tmp_path / "logs" / "summary.json").exists()

        result = runner.invoke(cli, ["audit", "--strict"])

        assert result.exit_code == 0, result.output
        assert "Status: OK" in result.output

    def test_rerun_updates_in_place(
        self, env, content_root: Path, write_document, oracle_factory
    ) -> None:
        write_document("content/hi/dadi/cover.md", COVER)
        runner = CliRunner()

        with patch(
            "katha_sync.cli.sync.LLMTransliterationOracle", side_effect=lambda **_: oracle_factory()
        ):
            first = runner.invoke(cli, ["sync", "--all", "--root", str(content_root)])
            second = runner.invoke(cli, ["sync", "--all", "--root", str(content_root)])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        assert "(created 0, updated 1, revived 0)" in second.output

    def test_failed_batch_exits_non_zero(
        self, env, content_root: Path, write_document, oracle_factory
    ) -> None:
        write_document("content/hi/dadi/cover.md", COVER)
        runner = CliRunner()

        with patch("katha_sync.cli.sync.LLMTransliterationOracle", return_value=oracle_factory(drop=1)):
            result = runner.invoke(cli, ["sync", "--all", "--root", str(content_root)])

        assert result.exit_code == 1
        assert "Sync failed" in result.output
