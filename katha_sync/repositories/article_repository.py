"""Repository for article, series and episode rows."""

from datetime import UTC, datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from katha_sync.models.article import Article, ArticleTag, ContentType, title_key


class ArticleRepository:
    """Queries and writes over the articles table.

    Lookups by slug include soft-deleted rows, because a slug stays reserved
    after deletion and an edit may resurrect it. Everything else only sees
    active rows.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def get_by_slug(self, slug: str) -> Article | None:
        """Get a row by slug, soft-deleted rows included."""
        result = await self.session.execute(select(Article).where(Article.slug == slug))
        return result.scalar_one_or_none()

    async def get_by_id(self, article_id: str) -> Article | None:
        """Get a row by primary key."""
        return await self.session.get(Article, article_id)

    async def get_active_by_source_path(self, source_path: str) -> list[Article]:
        """Get active rows ingested from a source file."""
        stmt = (
            select(Article)
            .where(Article.source_path == source_path, Article.deleted_at.is_(None))
            .order_by(Article.slug)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_series_by_title(self, title: str) -> list[Article]:
        """Find active series covers whose English title matches, ignoring case and spacing."""
        stmt = (
            select(Article)
            .where(
                Article.content_type == ContentType.SERIES.value,
                Article.deleted_at.is_(None),
                Article.title_key == title_key(title),
            )
            .order_by(Article.updated_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_episode(self, series_id: str, episode_number: int) -> Article | None:
        """Get the active episode holding a number within a series."""
        stmt = select(Article).where(
            Article.series_id == series_id,
            Article.episode_number == episode_number,
            Article.deleted_at.is_(None),
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def max_episode_number(self, series_id: str) -> int:
        """Highest active episode number of a series (0 when it has none)."""
        stmt = select(func.max(Article.episode_number)).where(
            Article.series_id == series_id,
            Article.deleted_at.is_(None),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() or 0

    async def count_active_episodes(self, series_id: str) -> int:
        """Number of active episodes referencing a series."""
        stmt = select(func.count()).select_from(Article).where(
            Article.series_id == series_id,
            Article.deleted_at.is_(None),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def flush(self) -> None:
        """Flush pending changes so later queries and constraints see them."""
        await self.session.flush()

    async def add(self, article: Article) -> Article:
        """Add a new row and flush so its id is assigned."""
        self.session.add(article)
        await self.session.flush()
        return article

    async def replace_tags(self, article_id: str, tag_ids: list[str]) -> None:
        """Replace the tag links of an article."""
        await self.session.execute(delete(ArticleTag).where(ArticleTag.article_id == article_id))
        for tag_id in dict.fromkeys(tag_ids):
            self.session.add(ArticleTag(article_id=article_id, tag_id=tag_id))
        await self.session.flush()

    async def get_tag_ids(self, article_id: str) -> list[str]:
        """Tag ids linked to an article."""
        stmt = select(ArticleTag.tag_id).where(ArticleTag.article_id == article_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def soft_delete(self, article: Article, editor_id: str | None) -> None:
        """Mark a row inactive, recording the acting editor."""
        article.deleted_at = datetime.now(UTC)
        article.deleted_by = editor_id
        article.updated_by = editor_id
        await self.session.flush()
