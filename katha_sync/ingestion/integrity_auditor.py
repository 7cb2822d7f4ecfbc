"""Offline consistency checks over persisted articles."""

from collections import defaultdict
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from katha_sync.models.article import Article, ContentType
from katha_sync.models.reference import Author, Category, Editor, Language, SubCategory
from katha_sync.utils.exceptions import IntegrityWarning

logger = structlog.get_logger(__name__)

# Article foreign key column -> referenced model
REFERENCE_COLUMNS: dict[str, Any] = {
    "language_id": Language,
    "author_id": Author,
    "category_id": Category,
    "sub_category_id": SubCategory,
    "editor_id": Editor,
}

REQUIRED_REFERENCES = ("language_id", "author_id", "category_id")


class IntegrityAuditor:
    """Scans persisted state for problems ingestion only warns about.

    Runs independently of any batch and never writes. Reports:
    - orphaned references: an active article pointing to a missing or
      soft-deleted language, author, category, sub-category, editor or series
    - duplicate active slugs and duplicate active (title, author, language)
    - episode-count drift between a cover's stored count and its active episodes
    - gaps in a series' episode numbering
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize auditor.

        Args:
            session: SQLAlchemy async session (read-only use)
        """
        self.session = session
        self.logger = logger.bind(component="integrity_auditor")

    async def run(self) -> list[IntegrityWarning]:
        """Run every check.

        Returns:
            All warnings found, grouped by check
        """
        warnings: list[IntegrityWarning] = []
        warnings.extend(await self.find_orphaned_references())
        warnings.extend(await self.find_duplicate_slugs())
        warnings.extend(await self.find_duplicate_titles())
        warnings.extend(await self.find_episode_count_drift())
        warnings.extend(await self.find_numbering_gaps())

        for warning in warnings:
            self.logger.warning(
                "integrity_warning",
                kind=warning.kind,
                subject=warning.subject,
                detail=warning.detail,
            )
        self.logger.info("integrity_audit_completed", warnings=len(warnings))
        return warnings

    async def find_orphaned_references(self) -> list[IntegrityWarning]:
        """Active articles whose references are unset, missing or soft-deleted."""
        warnings = []
        for column_name, model in REFERENCE_COLUMNS.items():
            column = getattr(Article, column_name)
            stmt = (
                select(Article.slug, column, model.id, model.deleted_at)
                .outerjoin(model, model.id == column)
                .where(Article.deleted_at.is_(None))
                .order_by(Article.slug)
            )
            result = await self.session.execute(stmt)
            for slug, ref_id, found_id, deleted_at in result.all():
                if ref_id is None:
                    if column_name in REQUIRED_REFERENCES:
                        warnings.append(
                            IntegrityWarning("orphaned_reference", slug, f"{column_name} is not set")
                        )
                    continue
                if found_id is None:
                    warnings.append(
                        IntegrityWarning(
                            "orphaned_reference", slug, f"{column_name} {ref_id} does not exist"
                        )
                    )
                elif deleted_at is not None:
                    warnings.append(
                        IntegrityWarning(
                            "orphaned_reference", slug, f"{column_name} {ref_id} is soft-deleted"
                        )
                    )

        series = aliased(Article)
        stmt = (
            select(Article.slug, Article.series_id, series.id, series.deleted_at, series.content_type)
            .outerjoin(series, series.id == Article.series_id)
            .where(Article.deleted_at.is_(None), Article.series_id.is_not(None))
            .order_by(Article.slug)
        )
        result = await self.session.execute(stmt)
        for slug, series_id, found_id, deleted_at, content_type in result.all():
            if found_id is None:
                detail = f"series {series_id} does not exist"
            elif deleted_at is not None:
                detail = f"series {series_id} is soft-deleted"
            elif content_type != ContentType.SERIES.value:
                detail = f"series_id {series_id} points to a {content_type}"
            else:
                continue
            warnings.append(IntegrityWarning("orphaned_reference", slug, detail))
        return warnings

    async def find_duplicate_slugs(self) -> list[IntegrityWarning]:
        """Slugs held by more than one active row, compared case-insensitively."""
        slug_key = func.lower(Article.slug)
        stmt = (
            select(slug_key, func.count())
            .where(Article.deleted_at.is_(None))
            .group_by(slug_key)
            .having(func.count() > 1)
            .order_by(slug_key)
        )
        result = await self.session.execute(stmt)
        return [
            IntegrityWarning("duplicate_slug", slug, f"{count} active rows share this slug")
            for slug, count in result.all()
        ]

    async def find_duplicate_titles(self) -> list[IntegrityWarning]:
        """Active rows of the same title, author and language stored under different slugs."""
        groups: dict[tuple[str, str | None, str | None], list[str]] = defaultdict(list)
        stmt = (
            select(Article.title, Article.author_id, Article.language_id, Article.slug)
            .where(Article.deleted_at.is_(None))
            .order_by(Article.slug)
        )
        result = await self.session.execute(stmt)
        for title, author_id, language_id, slug in result.all():
            groups[(" ".join(title.split()).lower(), author_id, language_id)].append(slug)

        return [
            IntegrityWarning("duplicate_article", slugs[0], f"same title as {', '.join(slugs[1:])}")
            for slugs in groups.values()
            if len(slugs) > 1
        ]

    async def find_episode_count_drift(self) -> list[IntegrityWarning]:
        """Series covers whose stored total_episodes differs from their active episodes."""
        episodes = aliased(Article)
        active_count = (
            select(func.count())
            .select_from(episodes)
            .where(episodes.series_id == Article.id, episodes.deleted_at.is_(None))
            .scalar_subquery()
        )
        stmt = (
            select(Article.slug, Article.total_episodes, active_count)
            .where(
                Article.content_type == ContentType.SERIES.value,
                Article.deleted_at.is_(None),
            )
            .order_by(Article.slug)
        )
        result = await self.session.execute(stmt)
        return [
            IntegrityWarning(
                "episode_count_drift",
                slug,
                f"total_episodes is {stored} but {actual} active episodes reference it",
            )
            for slug, stored, actual in result.all()
            if stored != actual
        ]

    async def find_numbering_gaps(self) -> list[IntegrityWarning]:
        """Series whose active episode numbers are not exactly 1..n."""
        series = aliased(Article)
        stmt = (
            select(series.slug, Article.episode_number)
            .join(series, series.id == Article.series_id)
            .where(Article.deleted_at.is_(None), series.deleted_at.is_(None))
            .order_by(series.slug, Article.episode_number)
        )
        result = await self.session.execute(stmt)

        numbers: dict[str, list[int]] = defaultdict(list)
        for slug, number in result.all():
            numbers[slug].append(number or 0)

        warnings = []
        for slug, found in numbers.items():
            missing = sorted(set(range(1, max(found) + 1)) - set(found))
            if missing:
                warnings.append(
                    IntegrityWarning(
                        "episode_numbering_gap",
                        slug,
                        f"missing episode numbers: {', '.join(str(n) for n in missing)}",
                    )
                )
        return warnings
