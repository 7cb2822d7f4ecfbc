"""Integration tests for slug-keyed article, series and episode upserts."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from katha_sync.ingestion.article_upserter import ArticleUpserter
from katha_sync.ingestion.models import (
    Document,
    NormalizedDocument,
    NormalizedFrontmatter,
    ProcessedMetadata,
)
from katha_sync.models.article import Article, ContentType
from katha_sync.models.reference import Tag
from katha_sync.repositories.article_repository import ArticleRepository
from katha_sync.utils.exceptions import DanglingSeriesReferenceError, EpisodeNumberConflictError

SERIES_TITLE = "Grandmother's Tales"


def make_metadata(
    refs: dict[str, str],
    slug: str,
    file_path: str,
    content_type: ContentType = ContentType.ARTICLE,
    tag_ids: list[str] | None = None,
    **fields,
) -> ProcessedMetadata:
    frontmatter = NormalizedFrontmatter(
        title=fields.pop("title", slug.split("_by_")[0].replace("-", " ").title()),
        local_title=fields.pop("local_title", "पूस की रात"),
        author="प्रेमचंद",
        category="कहानी",
        lang="hi",
        **fields,
    )
    normalized = NormalizedDocument(
        document=Document(file_path=file_path, frontmatter={}, body="Halku came in."),
        frontmatter=frontmatter,
        content_type=content_type,
    )
    return ProcessedMetadata(
        normalized=normalized,
        slug=slug,
        language_id=refs["language_id"],
        author_id=refs["author_id"],
        category_id=refs["category_id"],
        tag_ids=tag_ids or [],
        short_description="Halku came in.",
        word_count=3,
    )


def cover(refs: dict[str, str]) -> ProcessedMetadata:
    return make_metadata(
        refs,
        "grandmothers-tales_by_premchand",
        "content/hi/tales/cover.md",
        ContentType.SERIES,
        title=SERIES_TITLE,
        base_type="series",
        completed=True,
    )


def episode(refs: dict[str, str], slug: str, number: int | None = None, **fields) -> ProcessedMetadata:
    return make_metadata(
        refs,
        slug,
        fields.pop("file_path", f"content/hi/tales/{slug}.md"),
        ContentType.EPISODE,
        series_title=fields.pop("series_title", SERIES_TITLE),
        episode=number,
        **fields,
    )


async def active_count(session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(Article).where(Article.deleted_at.is_(None))
    )
    return result.scalar_one()


@pytest.mark.integration
class TestArticleUpserts:
    async def test_create_then_update(self, async_session: AsyncSession, reference_rows) -> None:
        """Re-ingesting an unchanged document updates the same row."""
        upserter = ArticleUpserter(async_session)
        editor_id = reference_rows["editor_id"]
        metadata = make_metadata(
            reference_rows, "poos-ki-raat_by_premchand", "content/hi/poos.md", published=True
        )

        created = await upserter.upsert(metadata, editor_id)
        updated = await upserter.upsert(metadata, editor_id)

        assert created.action == "created"
        assert updated.action == "updated"
        assert created.article_id == updated.article_id
        assert await active_count(async_session) == 1

        article = await async_session.get(Article, created.article_id)
        assert article.title == "Poos Ki Raat"
        assert article.content_type == "article"
        assert article.is_published is True
        assert article.word_count == 3
        assert article.source_path == "content/hi/poos.md"
        assert article.editor_id == editor_id
        assert article.created_by == editor_id

    async def test_tags_are_replaced(self, async_session: AsyncSession, reference_rows) -> None:
        village = Tag(name="village", slug="village")
        moral = Tag(name="moral story", slug="moral-story")
        async_session.add_all([village, moral])
        await async_session.flush()
        upserter = ArticleUpserter(async_session)
        slug, path = "poos-ki-raat_by_premchand", "content/hi/poos.md"

        result = await upserter.upsert(
            make_metadata(reference_rows, slug, path, tag_ids=[village.id, moral.id]), None
        )
        await upserter.upsert(make_metadata(reference_rows, slug, path, tag_ids=[moral.id]), None)

        tag_ids = await ArticleRepository(async_session).get_tag_ids(result.article_id)
        assert tag_ids == [moral.id]

    async def test_removed_row_is_revived(self, async_session: AsyncSession, reference_rows) -> None:
        upserter = ArticleUpserter(async_session)
        metadata = make_metadata(reference_rows, "poos-ki-raat_by_premchand", "content/hi/poos.md")
        created = await upserter.upsert(metadata, None)

        removed = await upserter.remove("content/hi/poos.md", "editor-2")
        assert [row.slug for row in removed] == ["poos-ki-raat_by_premchand"]
        assert removed[0].deleted_by == "editor-2"
        assert await active_count(async_session) == 0

        revived = await upserter.upsert(metadata, None)

        assert revived.action == "revived"
        assert revived.article_id == created.article_id
        article = await async_session.get(Article, created.article_id)
        assert article.deleted_at is None
        assert article.deleted_by is None

    async def test_slug_change_supersedes_old_row(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        """Editing a title retires the row stored under the old slug."""
        upserter = ArticleUpserter(async_session)
        old = await upserter.upsert(
            make_metadata(reference_rows, "poos-ki-raat_by_premchand", "content/hi/poos.md"), None
        )

        new = await upserter.upsert(
            make_metadata(reference_rows, "poos-ki-thand_by_premchand", "content/hi/poos.md"), None
        )

        assert new.action == "created"
        old_row = await async_session.get(Article, old.article_id)
        assert old_row.deleted_at is not None
        assert await active_count(async_session) == 1

    async def test_slug_from_another_file_is_reported(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        upserter = ArticleUpserter(async_session)
        slug = "poos-ki-raat_by_premchand"
        await upserter.upsert(make_metadata(reference_rows, slug, "content/hi/poos.md"), None)

        result = await upserter.upsert(
            make_metadata(reference_rows, slug, "content/hi/copies/poos.md"), None
        )

        [warning] = result.warnings
        assert result.action == "updated"
        assert warning.kind == "slug_source_changed"
        assert warning.detail == (
            "previously ingested from content/hi/poos.md, now from content/hi/copies/poos.md"
        )

    async def test_same_file_reingest_has_no_warning(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        upserter = ArticleUpserter(async_session)
        metadata = make_metadata(reference_rows, "poos-ki-raat_by_premchand", "content/hi/poos.md")
        await upserter.upsert(metadata, None)

        result = await upserter.upsert(metadata, None)

        assert result.warnings == []

    async def test_soft_delete_slug(self, async_session: AsyncSession, reference_rows) -> None:
        upserter = ArticleUpserter(async_session)
        await upserter.upsert(
            make_metadata(reference_rows, "poos-ki-raat_by_premchand", "content/hi/poos.md"), None
        )

        assert await upserter.soft_delete_slug("poos-ki-raat_by_premchand", None) is not None
        assert await upserter.soft_delete_slug("poos-ki-raat_by_premchand", None) is None
        assert await upserter.soft_delete_slug("missing_by_nobody", None) is None


@pytest.mark.integration
class TestSeriesAndEpisodes:
    async def test_episode_linked_and_numbered(self, async_session: AsyncSession, reference_rows) -> None:
        upserter = ArticleUpserter(async_session)
        series = await upserter.upsert(cover(reference_rows), None)

        first = await upserter.upsert(episode(reference_rows, "first_by_premchand"), None)
        second = await upserter.upsert(episode(reference_rows, "second_by_premchand"), None)

        assert first.series_id == series.article_id
        assert first.affected_series == {series.article_id}
        rows = [await async_session.get(Article, r.article_id) for r in (first, second)]
        assert [row.episode_number for row in rows] == [1, 2]

        assert await upserter.recompute_episode_count(series.article_id, None) is None
        series_row = await async_session.get(Article, series.article_id)
        assert series_row.total_episodes == 2
        assert series_row.is_complete is True

    async def test_series_title_matches_case_insensitively(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        upserter = ArticleUpserter(async_session)
        series = await upserter.upsert(cover(reference_rows), None)

        result = await upserter.upsert(
            episode(reference_rows, "first_by_premchand", series_title="grandmother's   TALES"), None
        )

        assert result.series_id == series.article_id

    async def test_series_title_case_folding_covers_non_ascii(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        upserter = ArticleUpserter(async_session)
        series = await upserter.upsert(
            make_metadata(
                reference_rows,
                "etoiles-du-village_by_premchand",
                "content/hi/etoiles/cover.md",
                ContentType.SERIES,
                title="Étoiles du Village",
                base_type="series",
            ),
            None,
        )

        result = await upserter.upsert(
            episode(reference_rows, "first_by_premchand", series_title="ÉTOILES DU VILLAGE"), None
        )

        row = await async_session.get(Article, series.article_id)
        assert row.title_key == "étoiles du village"
        assert result.series_id == series.article_id

    async def test_swapped_numbers_after_release(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        upserter = ArticleUpserter(async_session)
        await upserter.upsert(cover(reference_rows), None)
        await upserter.upsert(episode(reference_rows, "first_by_premchand", 1), None)
        await upserter.upsert(episode(reference_rows, "second_by_premchand", 2), None)

        batch = [
            episode(reference_rows, "first_by_premchand", 2),
            episode(reference_rows, "second_by_premchand", 1),
        ]
        assert await upserter.release_episode_numbers(batch) == 2
        first = await upserter.upsert(batch[0], None)
        second = await upserter.upsert(batch[1], None)

        assert await upserter.restore_episode_numbers() == []
        assert (await async_session.get(Article, first.article_id)).episode_number == 2
        assert (await async_session.get(Article, second.article_id)).episode_number == 1

    async def test_released_number_restored_when_not_upserted(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        upserter = ArticleUpserter(async_session)
        await upserter.upsert(cover(reference_rows), None)
        first = await upserter.upsert(episode(reference_rows, "first_by_premchand", 3), None)

        await upserter.release_episode_numbers([episode(reference_rows, "first_by_premchand")])
        row = await async_session.get(Article, first.article_id)
        assert row.episode_number is None

        assert await upserter.restore_episode_numbers() == []
        assert row.episode_number == 3

    async def test_taken_number_is_renumbered_with_warning(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        upserter = ArticleUpserter(async_session)
        await upserter.upsert(cover(reference_rows), None)
        first = await upserter.upsert(episode(reference_rows, "first_by_premchand", 1), None)
        await upserter.upsert(episode(reference_rows, "second_by_premchand", 2), None)

        await upserter.release_episode_numbers(
            [
                episode(reference_rows, "first_by_premchand"),
                episode(reference_rows, "second_by_premchand", 1),
            ]
        )
        await upserter.upsert(episode(reference_rows, "second_by_premchand", 1), None)
        [warning] = await upserter.restore_episode_numbers()

        assert warning.kind == "episode_renumbered"
        assert warning.subject == "first_by_premchand"
        assert "renumbered to 2" in warning.detail
        assert (await async_session.get(Article, first.article_id)).episode_number == 2

    async def test_existing_episode_keeps_number(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        upserter = ArticleUpserter(async_session)
        await upserter.upsert(cover(reference_rows), None)
        first = await upserter.upsert(episode(reference_rows, "first_by_premchand", 4), None)

        again = await upserter.upsert(episode(reference_rows, "first_by_premchand"), None)

        row = await async_session.get(Article, again.article_id)
        assert again.article_id == first.article_id
        assert row.episode_number == 4

    async def test_unknown_series_is_dangling(self, async_session: AsyncSession, reference_rows) -> None:
        upserter = ArticleUpserter(async_session)

        with pytest.raises(DanglingSeriesReferenceError) as exc_info:
            await upserter.upsert(episode(reference_rows, "first_by_premchand"), None)

        assert exc_info.value.series_title == SERIES_TITLE
        assert await active_count(async_session) == 0

    async def test_episode_number_conflict(self, async_session: AsyncSession, reference_rows) -> None:
        upserter = ArticleUpserter(async_session)
        await upserter.upsert(cover(reference_rows), None)
        await upserter.upsert(episode(reference_rows, "first_by_premchand", 1), None)

        with pytest.raises(EpisodeNumberConflictError) as exc_info:
            await upserter.upsert(episode(reference_rows, "other_by_premchand", 1), None)

        assert exc_info.value.episode_number == 1
        assert await active_count(async_session) == 2

    async def test_renamed_episode_keeps_its_number(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        """A retitled episode from the same file does not conflict with its old row."""
        upserter = ArticleUpserter(async_session)
        series = await upserter.upsert(cover(reference_rows), None)
        path = "content/hi/tales/one.md"
        await upserter.upsert(episode(reference_rows, "first_by_premchand", 1, file_path=path), None)

        renamed = await upserter.upsert(
            episode(reference_rows, "opening_by_premchand", 1, file_path=path), None
        )

        assert renamed.action == "created"
        assert await ArticleRepository(async_session).count_active_episodes(series.article_id) == 1

    async def test_moving_episode_touches_both_series(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        upserter = ArticleUpserter(async_session)
        old_series = await upserter.upsert(cover(reference_rows), None)
        new_series = await upserter.upsert(
            make_metadata(
                reference_rows,
                "village-tales_by_premchand",
                "content/hi/village/cover.md",
                ContentType.SERIES,
                title="Village Tales",
                base_type="series",
            ),
            None,
        )
        await upserter.upsert(episode(reference_rows, "first_by_premchand"), None)

        moved = await upserter.upsert(
            episode(reference_rows, "first_by_premchand", series_title="Village Tales"), None
        )

        assert moved.affected_series == {old_series.article_id, new_series.article_id}

    async def test_episode_count_drift_warning(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        """Numbering gaps are reported when the count is recomputed."""
        upserter = ArticleUpserter(async_session)
        series = await upserter.upsert(cover(reference_rows), None)
        await upserter.upsert(episode(reference_rows, "first_by_premchand", 1), None)
        await upserter.upsert(episode(reference_rows, "third_by_premchand", 3), None)

        warning = await upserter.recompute_episode_count(series.article_id, None)

        assert warning is not None
        assert warning.kind == "episode_count_drift"
        assert warning.subject == "grandmothers-tales_by_premchand"
        series_row = await async_session.get(Article, series.article_id)
        assert series_row.total_episodes == 2

    async def test_removed_episode_lowers_count(
        self, async_session: AsyncSession, reference_rows
    ) -> None:
        upserter = ArticleUpserter(async_session)
        series = await upserter.upsert(cover(reference_rows), None)
        await upserter.upsert(episode(reference_rows, "first_by_premchand"), None)
        await upserter.recompute_episode_count(series.article_id, None)

        await upserter.remove("content/hi/tales/first_by_premchand.md", None)
        await upserter.recompute_episode_count(series.article_id, None)

        series_row = await async_session.get(Article, series.article_id)
        assert series_row.total_episodes == 0
