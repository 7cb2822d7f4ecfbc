"""Slug-keyed upserts of articles, series covers and episodes."""

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from katha_sync.ingestion.models import ProcessedMetadata
from katha_sync.models.article import Article, ContentType, title_key
from katha_sync.repositories.article_repository import ArticleRepository
from katha_sync.utils.exceptions import (
    DanglingSeriesReferenceError,
    EpisodeNumberConflictError,
    IntegrityWarning,
)

logger = structlog.get_logger(__name__)


@dataclass
class UpsertResult:
    """Outcome of persisting one document.

    Attributes:
        article_id: Row id
        slug: Row slug
        action: "created", "updated" or "revived"
        series_id: Cover id for episodes
        affected_series: Series whose episode count may have changed
        warnings: Problems worth reporting that did not reject the document
    """

    article_id: str
    slug: str
    action: str
    series_id: str | None = None
    affected_series: set[str] = field(default_factory=set)
    warnings: list[IntegrityWarning] = field(default_factory=list)


class ArticleUpserter:
    """Persists processed documents keyed by slug.

    Lookups by slug include soft-deleted rows: an existing row is overwritten
    in place and its soft-delete marker cleared, otherwise a new row is
    inserted. Every check that can reject a document runs before the first
    write, so a rejected document never leaves a partial row behind.

    Episodes are linked to the active series cover whose English title
    matches `series_title`. Callers must upsert all series covers of a batch
    before its episodes; an episode whose series is still unknown is rejected
    with DanglingSeriesReferenceError.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize upserter.

        Args:
            session: SQLAlchemy async session for the batch
        """
        self.repository = ArticleRepository(session)
        self.logger = logger.bind(component="article_upserter")
        # Row id -> (series id, episode number, source path) freed for this batch
        self._released: dict[str, tuple[str, int, str | None]] = {}

    async def upsert(self, metadata: ProcessedMetadata, editor_id: str | None) -> UpsertResult:
        """Insert or update the row for one document.

        Args:
            metadata: Normalized front-matter, resolved references and slug
            editor_id: Acting editor

        Returns:
            UpsertResult describing the write

        Raises:
            DanglingSeriesReferenceError: If an episode's series is unknown
            EpisodeNumberConflictError: If the episode number is taken in the series
        """
        existing = await self.repository.get_by_slug(metadata.slug)
        previous_series_id = existing.series_id if existing is not None else None
        warnings = self._check_source_change(metadata, existing)

        series_id = None
        episode_number = None
        if metadata.content_type == ContentType.EPISODE:
            series = await self.find_series(metadata)
            series_id = series.id
            episode_number = await self._episode_number(metadata, series, existing)

        superseded = await self._retire_superseded(metadata, editor_id)
        for row in (existing, *superseded):
            if row is not None:
                self._released.pop(row.id, None)

        if existing is None:
            article = Article(slug=metadata.slug, created_by=editor_id)
            action = "created"
        else:
            article = existing
            action = "revived" if existing.deleted_at is not None else "updated"

        self._apply(article, metadata, editor_id)
        article.series_id = series_id
        article.episode_number = episode_number
        article.deleted_at = None
        article.deleted_by = None

        if existing is None:
            await self.repository.add(article)
        await self.repository.replace_tags(article.id, metadata.tag_ids)

        affected = {sid for sid in (series_id, previous_series_id) if sid}
        affected.update(row.series_id for row in superseded if row.series_id)

        self.logger.info(
            "article_upserted",
            slug=metadata.slug,
            action=action,
            content_type=metadata.content_type.value,
            episode_number=episode_number,
            superseded=[row.slug for row in superseded] or None,
        )
        return UpsertResult(
            article_id=article.id,
            slug=article.slug,
            action=action,
            series_id=series_id,
            affected_series=affected,
            warnings=warnings,
        )

    async def find_series(self, metadata: ProcessedMetadata) -> Article:
        """Resolve an episode's series_title to an active series cover.

        When several active covers share the title, the one by the same author wins.

        Raises:
            DanglingSeriesReferenceError: If no active cover has that title
        """
        series_title = metadata.frontmatter.series_title or ""
        candidates = await self.repository.find_series_by_title(series_title)
        if not candidates:
            raise DanglingSeriesReferenceError(series_title, file_path=metadata.file_path)

        for candidate in candidates:
            if candidate.author_id == metadata.author_id:
                return candidate

        if len(candidates) > 1:
            self.logger.warning(
                "ambiguous_series_title",
                series_title=series_title,
                candidates=[candidate.slug for candidate in candidates],
            )
        return candidates[0]

    async def remove(self, source_path: str, editor_id: str | None) -> list[Article]:
        """Soft-delete every active row ingested from a source file.

        Args:
            source_path: Path of the removed file
            editor_id: Acting editor

        Returns:
            Rows that were soft-deleted
        """
        rows = await self.repository.get_active_by_source_path(source_path)
        for row in rows:
            await self.repository.soft_delete(row, editor_id)
            self.logger.info("article_soft_deleted", slug=row.slug, source_path=source_path)
        return rows

    async def release_episode_numbers(self, batch: Iterable[ProcessedMetadata]) -> int:
        """Free the numbers of active episodes that the batch is about to re-ingest.

        Conflicts are then checked against what the batch leaves behind, so
        episodes of one series can swap or shift numbers in a single batch.
        Numbers of rows that are not upserted again are put back by
        restore_episode_numbers().

        Returns:
            Number of rows whose episode number was released
        """
        for metadata in batch:
            if metadata.content_type != ContentType.EPISODE:
                continue
            rows = await self.repository.get_active_by_source_path(metadata.file_path)
            by_slug = await self.repository.get_by_slug(metadata.slug)
            if by_slug is not None and by_slug.deleted_at is None:
                rows.append(by_slug)

            for row in rows:
                if row.id in self._released or row.series_id is None or row.episode_number is None:
                    continue
                self._released[row.id] = (row.series_id, row.episode_number, row.source_path)
                row.episode_number = None

        if self._released:
            await self.repository.flush()
            self.logger.debug("episode_numbers_released", count=len(self._released))
        return len(self._released)

    async def restore_episode_numbers(self) -> list[IntegrityWarning]:
        """Give released numbers back to rows the batch did not upsert again.

        A row whose old number was taken by the batch is appended after the
        highest number of its series instead.

        Returns:
            A warning for every renumbered row
        """
        taken: list[tuple[Article, str, int]] = []
        for row_id, (series_id, number, _) in sorted(self._released.items()):
            row = await self.repository.get_by_id(row_id)
            if row is None or row.deleted_at is not None:
                continue
            if await self.repository.get_episode(series_id, number) is None:
                row.episode_number = number
                await self.repository.flush()
            else:
                taken.append((row, series_id, number))
        self._released.clear()

        warnings: list[IntegrityWarning] = []
        for row, series_id, number in taken:
            row.episode_number = await self.repository.max_episode_number(series_id) + 1
            await self.repository.flush()
            self.logger.warning(
                "episode_renumbered",
                slug=row.slug,
                old_episode_number=number,
                episode_number=row.episode_number,
            )
            warnings.append(
                IntegrityWarning(
                    kind="episode_renumbered",
                    subject=row.slug,
                    detail=(
                        f"episode {number} was taken in this batch; "
                        f"renumbered to {row.episode_number}"
                    ),
                )
            )
        return warnings

    async def soft_delete_slug(self, slug: str, editor_id: str | None) -> Article | None:
        """Soft-delete one row by slug; already deleted rows are left as they are."""
        row = await self.repository.get_by_slug(slug)
        if row is None or row.deleted_at is not None:
            return None
        await self.repository.soft_delete(row, editor_id)
        self.logger.info("article_soft_deleted", slug=slug)
        return row

    async def recompute_episode_count(
        self,
        series_id: str,
        editor_id: str | None,
    ) -> IntegrityWarning | None:
        """Store the active episode count on a series cover.

        The count is always derived from persisted rows; front-matter episode
        numbers are display hints only.

        Returns:
            A warning when the highest episode number disagrees with the count
            (gaps or duplicates in numbering), otherwise None
        """
        series = await self.repository.get_by_id(series_id)
        if series is None:
            return None

        count = await self.repository.count_active_episodes(series_id)
        highest = await self.repository.max_episode_number(series_id)

        if series.total_episodes != count:
            series.total_episodes = count
            series.updated_by = editor_id

        if highest != count:
            self.logger.warning(
                "episode_count_drift",
                series=series.slug,
                active_episodes=count,
                highest_episode=highest,
            )
            return IntegrityWarning(
                kind="episode_count_drift",
                subject=series.slug,
                detail=f"{count} active episodes but highest episode number is {highest}",
            )
        return None

    def _apply(self, article: Article, metadata: ProcessedMetadata, editor_id: str | None) -> None:
        """Copy all mutable fields onto a row."""
        frontmatter = metadata.frontmatter
        article.title = frontmatter.title
        article.title_key = title_key(frontmatter.title)
        article.local_title = frontmatter.local_title
        article.short_description = metadata.short_description
        article.markdown_content = metadata.normalized.document.body
        article.content_type = metadata.content_type.value
        article.article_type = frontmatter.article_type
        article.thumbnail_url = frontmatter.thumbnail
        article.audio_url = frontmatter.audio
        article.word_count = metadata.word_count
        article.duration = frontmatter.duration
        article.published_date = frontmatter.date
        article.is_published = bool(frontmatter.published)
        article.is_featured = bool(frontmatter.featured)
        article.is_complete = bool(frontmatter.completed)
        article.source_path = metadata.file_path
        article.language_id = metadata.language_id
        article.author_id = metadata.author_id
        article.category_id = metadata.category_id
        article.sub_category_id = metadata.sub_category_id
        article.editor_id = editor_id
        article.updated_by = editor_id

    async def _episode_number(
        self,
        metadata: ProcessedMetadata,
        series: Article,
        existing: Article | None,
    ) -> int:
        """Pick the episode number and make sure no other active episode holds it.

        Declared numbers are used as given. Without one, an episode keeps its
        current number in the same series, or is appended after the highest.

        Raises:
            EpisodeNumberConflictError: If another active episode holds the number
        """
        declared = metadata.frontmatter.episode
        current = self._current_number(metadata, series, existing)
        if declared is not None:
            number = declared
        elif current is not None:
            number = current
        else:
            number = await self._next_episode_number(series.id)

        holder = await self.repository.get_episode(series.id, number)
        # A holder from the same file is about to be superseded by this document
        if (
            holder is not None
            and holder.slug != metadata.slug
            and holder.source_path != metadata.file_path
        ):
            raise EpisodeNumberConflictError(series.slug, number, file_path=metadata.file_path)
        return number

    def _current_number(
        self,
        metadata: ProcessedMetadata,
        series: Article,
        existing: Article | None,
    ) -> int | None:
        """Number the document's episode holds now, released numbers included."""
        if existing is not None and existing.deleted_at is None and existing.series_id == series.id:
            if existing.id in self._released:
                return self._released[existing.id][1]
            if existing.episode_number:
                return existing.episode_number

        # A retitled file keeps the number of the row it supersedes
        for series_id, number, source_path in self._released.values():
            if series_id == series.id and source_path == metadata.file_path:
                return number
        return None

    async def _next_episode_number(self, series_id: str) -> int:
        """One past the highest number in use, counting numbers released for this batch."""
        highest = await self.repository.max_episode_number(series_id)
        released = [number for sid, number, _ in self._released.values() if sid == series_id]
        return max([highest, *released]) + 1

    def _check_source_change(
        self, metadata: ProcessedMetadata, existing: Article | None
    ) -> list[IntegrityWarning]:
        """Warn when an active row is taken over by a different source file.

        Rows of files removed earlier in the batch are already soft-deleted,
        so a move or rename does not trigger this.
        """
        if (
            existing is None
            or existing.deleted_at is not None
            or existing.source_path is None
            or existing.source_path == metadata.file_path
        ):
            return []

        self.logger.warning(
            "slug_source_changed",
            slug=metadata.slug,
            old_source_path=existing.source_path,
            source_path=metadata.file_path,
        )
        return [
            IntegrityWarning(
                kind="slug_source_changed",
                subject=metadata.slug,
                detail=(
                    f"previously ingested from {existing.source_path}, "
                    f"now from {metadata.file_path}"
                ),
            )
        ]

    async def _retire_superseded(
        self, metadata: ProcessedMetadata, editor_id: str | None
    ) -> list[Article]:
        """Soft-delete rows from the same file that were stored under another slug.

        Editing a title or author changes the slug; the row under the old slug
        would otherwise stay active next to the new one.
        """
        retired = []
        for row in await self.repository.get_active_by_source_path(metadata.file_path):
            if row.slug != metadata.slug:
                await self.repository.soft_delete(row, editor_id)
                retired.append(row)
        return retired
