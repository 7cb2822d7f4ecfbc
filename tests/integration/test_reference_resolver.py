"""Integration tests for reference resolution against a migrated SQLite database."""

import json
from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from katha_sync.ingestion.models import TransliterationItem, TransliterationRole
from katha_sync.ingestion.reference_resolver import (
    ReferenceResolver,
    canonical_name,
    format_local_name,
)
from katha_sync.models.reference import (
    Author,
    AuthorTranslation,
    Editor,
    Language,
    LanguageTranslation,
    SubCategory,
    Tag,
)
from katha_sync.transliteration.gateway import TransliterationGateway
from katha_sync.transliteration.mappings import CuratedMappings
from katha_sync.utils.config import EditorIdentity


async def count(session: AsyncSession, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


def test_canonical_name() -> None:
    assert canonical_name("  Munshi   PREMCHAND ") == "munshi premchand"


def test_format_local_name() -> None:
    assert format_local_name("folk  tale", "en") == "Folk Tale"
    assert format_local_name("लोक  कथा", "hi") == "लोक कथा"


@pytest.mark.integration
class TestResolve:
    async def test_same_name_resolves_to_one_row(self, async_session: AsyncSession) -> None:
        """Every document of a batch observes the same id for the same canonical name."""
        resolver = ReferenceResolver(async_session)

        first = await resolver.resolve("author", "Premchand", editor_id=None, local_name="प्रेमचंद")
        second = await resolver.resolve("author", " premchand ", editor_id=None)

        assert first == second
        assert resolver.created["author"] == 1
        assert await count(async_session, Author) == 1

    async def test_read_your_writes_across_resolvers(self, async_session: AsyncSession) -> None:
        """A later batch finds the row an earlier one created, without creating another."""
        first = await ReferenceResolver(async_session).resolve(
            "category", "story", editor_id=None, local_name="कहानी"
        )

        resolver = ReferenceResolver(async_session)
        second = await resolver.resolve("category", "Story", editor_id=None, local_name="कहानी")

        assert first == second
        assert resolver.created["category"] == 0

    async def test_existing_entity_untouched_translation_updated(
        self, async_session: AsyncSession
    ) -> None:
        """Re-resolving keeps the entity's local_name but refreshes its translation."""
        first = ReferenceResolver(async_session)
        language_id = await first.resolve_language("hi", editor_id=None)
        author_id = await first.resolve(
            "author",
            "premchand",
            editor_id=None,
            local_name="प्रेमचंद",
            language_id=language_id,
            language_code="hi",
        )

        second = ReferenceResolver(async_session)
        await second.resolve(
            "author",
            "premchand",
            editor_id=None,
            local_name="मुंशी प्रेमचंद",
            language_id=language_id,
            language_code="hi",
        )

        author = await async_session.get(Author, author_id)
        assert author.local_name == "प्रेमचंद"

        result = await async_session.execute(
            select(AuthorTranslation.local_name).where(AuthorTranslation.author_id == author_id)
        )
        assert result.scalars().all() == ["मुंशी प्रेमचंद"]

    async def test_sub_categories_scoped_to_parent(self, async_session: AsyncSession) -> None:
        resolver = ReferenceResolver(async_session)
        story = await resolver.resolve("category", "story", editor_id=None)
        poem = await resolver.resolve("category", "poem", editor_id=None)

        rural_story = await resolver.resolve("sub_category", "rural", editor_id=None, parent_id=story)
        rural_poem = await resolver.resolve("sub_category", "rural", editor_id=None, parent_id=poem)

        assert rural_story != rural_poem
        assert await count(async_session, SubCategory) == 2

    async def test_sub_category_requires_parent(self, async_session: AsyncSession) -> None:
        with pytest.raises(ValueError, match="parent"):
            await ReferenceResolver(async_session).resolve("sub_category", "rural", editor_id=None)

    async def test_unknown_kind(self, async_session: AsyncSession) -> None:
        with pytest.raises(ValueError, match="Unknown reference kind"):
            await ReferenceResolver(async_session).resolve("publisher", "x", editor_id=None)

    async def test_tag_slug_collision_reuses_tag(self, async_session: AsyncSession) -> None:
        """Tags whose names differ but slugify identically share one row."""
        resolver = ReferenceResolver(async_session)

        first = await resolver.resolve("tag", "moral story", editor_id=None)
        second = await resolver.resolve("tag", "moral-story", editor_id=None)

        assert first == second
        tag = await async_session.get(Tag, first)
        assert tag.slug == "moral-story"

    async def test_soft_deleted_entity_is_revived(self, async_session: AsyncSession) -> None:
        resolver = ReferenceResolver(async_session)
        author_id = await resolver.resolve("author", "premchand", editor_id=None)
        author = await async_session.get(Author, author_id)
        author.deleted_at = author.created_at
        await async_session.flush()

        revived_id = await ReferenceResolver(async_session).resolve(
            "author", "premchand", editor_id="editor-1"
        )

        assert revived_id == author_id
        assert author.deleted_at is None
        assert author.updated_by == "editor-1"


@pytest.mark.integration
class TestLanguagesAndEditors:
    async def test_language_created_once_with_native_name(self, async_session: AsyncSession) -> None:
        resolver = ReferenceResolver(async_session)

        language_id = await resolver.resolve_language("HI", editor_id=None)
        again = await ReferenceResolver(async_session).resolve_language("hi", editor_id=None)

        assert language_id == again
        language = await async_session.get(Language, language_id)
        assert (language.code, language.name, language.local_name) == ("hi", "Hindi", "हिन्दी")
        assert await count(async_session, LanguageTranslation) == 1

    async def test_unknown_language_code(self, async_session: AsyncSession) -> None:
        language_id = await ReferenceResolver(async_session).resolve_language("mni", editor_id=None)

        language = await async_session.get(Language, language_id)
        assert language.name == "MNI"
        assert language.local_name is None

    async def test_editor_found_by_username(
        self, async_session: AsyncSession, editor: EditorIdentity
    ) -> None:
        first = await ReferenceResolver(async_session).resolve_editor(editor)
        renamed = EditorIdentity(name="A. Verma", github_username="ashav")

        second = await ReferenceResolver(async_session).resolve_editor(renamed)

        assert first == second
        assert await count(async_session, Editor) == 1

    async def test_editor_found_by_email_then_name(self, async_session: AsyncSession) -> None:
        created = await ReferenceResolver(async_session).resolve_editor(
            EditorIdentity(name="Ravi Kumar", email="ravi@example.org")
        )

        by_email = await ReferenceResolver(async_session).resolve_editor(
            EditorIdentity(name="R. Kumar", email="ravi@example.org")
        )
        by_name = await ReferenceResolver(async_session).resolve_editor(EditorIdentity(name="Ravi Kumar"))

        assert created == by_email == by_name


@pytest.mark.integration
class TestProposeNames:
    async def test_curated_mappings_win(
        self, async_session: AsyncSession, fake_oracle, tmp_path: Path
    ) -> None:
        """Curated names bypass the oracle; titles are always transliterated."""
        (tmp_path / "author-mappings.hi.json").write_text(
            json.dumps({"author_mappings": {"प्रेमचंद": "Munshi Premchand"}}, ensure_ascii=False),
            encoding="utf-8",
        )
        resolver = ReferenceResolver(async_session, CuratedMappings(tmp_path))
        author = TransliterationItem("प्रेमचंद", TransliterationRole.AUTHOR, "hi")
        title = TransliterationItem("पूस की रात", TransliterationRole.TITLE, "hi")

        names = await resolver.propose_names([author, title, author], TransliterationGateway(fake_oracle))

        assert names == {author: "munshi premchand", title: "poos ki raat"}
        assert fake_oracle.requests == [["पूस की रात"]]
