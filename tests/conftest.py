"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
import yaml
from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from katha_sync.ingestion.models import TransliterationItem
from katha_sync.models.base import Base
from katha_sync.models.reference import Author, Category, Editor, Language
from katha_sync.transliteration.gateway import TransliterationGateway
from katha_sync.transliteration.oracle import TransliterationOracle
from katha_sync.utils.config import EditorIdentity

PROJECT_ROOT = Path(__file__).parent.parent

# Vernacular -> Latin spellings used by the fake oracle
TRANSLITERATIONS = {
    "प्रेमचंद": "Premchand",
    "मुंशी प्रेमचंद": "Premchand",
    "दादी माँ": "Dadi Maa",
    "कहानी": "story",
    "बाल कथाएँ": "children stories",
    "लोक कथा": "folk tale",
    "नैतिक कहानी": "moral story",
    "गाँव": "village",
    "पूस की रात": "poos ki raat",
    "রবীন্দ্রনাথ ঠাকুর": "Rabindranath Thakur",
    "গল্প": "golpo",
}


class FakeOracle(TransliterationOracle):
    """Deterministic oracle double that records every request.

    Attributes:
        table: Vernacular -> transliteration answers
        drop: Number of results to leave out of every response
        requests: Texts of every request received
    """

    def __init__(self, table: dict[str, str] | None = None, drop: int = 0) -> None:
        self.table = dict(TRANSLITERATIONS if table is None else table)
        self.drop = drop
        self.requests: list[list[str]] = []

    async def batch_transliterate(self, items: Sequence[TransliterationItem]) -> dict[str, str]:
        self.requests.append([item.text for item in items])
        results = {item.text: self.table.get(item.text, "") for item in items}
        if self.drop:
            for text in list(results)[-self.drop :]:
                del results[text]
        return results


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Return path to temporary test database."""
    return tmp_path / "test.db"


@pytest.fixture
async def async_engine(temp_db_path: Path):
    """Create async engine for testing and run migrations."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{temp_db_path}", echo=False)

    # Run Alembic migrations to create tables with all indexes
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "katha_sync" / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", f"sqlite:///{temp_db_path}")
    command.upgrade(alembic_cfg, "head")

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async session for testing."""
    async_session_maker = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def fake_oracle() -> FakeOracle:
    """Oracle double answering from TRANSLITERATIONS."""
    return FakeOracle()


@pytest.fixture
def gateway(fake_oracle: FakeOracle) -> TransliterationGateway:
    """Gateway over the fake oracle."""
    return TransliterationGateway(fake_oracle)


@pytest.fixture
def oracle_factory() -> Callable[..., FakeOracle]:
    """Build oracle doubles with custom answers or dropped results."""
    return FakeOracle


@pytest.fixture
def editor() -> EditorIdentity:
    """Editor identity attributed with test writes."""
    return EditorIdentity(name="Asha Verma", email="asha@example.org", github_username="ashav")


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    """Repository root with an empty content directory."""
    (tmp_path / "content").mkdir()
    return tmp_path


@pytest.fixture
def write_document(content_root: Path) -> Callable[..., str]:
    """Write a markdown document with YAML front-matter; returns its relative path."""

    def _write(relative_path: str, frontmatter: dict[str, Any], body: str = "Once upon a time.") -> str:
        path = content_root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        header = yaml.safe_dump(frontmatter, allow_unicode=True, sort_keys=False)
        path.write_text(f"---\n{header}---\n\n{body}\n", encoding="utf-8")
        return relative_path

    return _write


@pytest.fixture
async def reference_rows(async_session: AsyncSession) -> dict[str, str]:
    """Persisted language, author, category and editor; returns their ids."""
    language = Language(code="hi", name="Hindi", local_name="हिन्दी")
    author = Author(name="premchand", local_name="प्रेमचंद")
    category = Category(name="story", local_name="कहानी")
    editor_row = Editor(name="Asha Verma", email="asha@example.org", github_user_name="ashav")
    async_session.add_all([language, author, category, editor_row])
    await async_session.flush()
    return {
        "language_id": language.id,
        "author_id": author.id,
        "category_id": category.id,
        "editor_id": editor_row.id,
    }
