"""Article rows: standalone articles, series covers and episodes."""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from katha_sync.models.base import AuditMixin, Base, new_id, utcnow


class ContentType(str, Enum):
    """Kind of document an article row represents."""

    ARTICLE = "article"
    SERIES = "series"
    EPISODE = "episode"


def title_key(title: str) -> str:
    """Comparison form of a title: whitespace collapsed, case folded (Unicode aware)."""
    return " ".join(title.split()).casefold()


class Article(AuditMixin, Base):
    """A persisted document, keyed by its slug.

    Series covers and episodes live in the same table: an episode points to
    its cover through `series_id`. Covers carry the computed `total_episodes`.

    Attributes:
        slug: Derived identity key, stable across re-ingestion
        title: English / transliteration-source title
        title_key: Case-folded title used to match episodes to their series
        local_title: Vernacular title
        content_type: article, series or episode
        series_id: Cover row id (episodes only)
        episode_number: Position within the series (episodes only)
        total_episodes: Count of active episodes (covers only)
        source_path: Repository path of the source file
    """

    __tablename__ = "articles"
    __table_args__ = (
        Index(
            "uq_articles_series_episode_active",
            "series_id",
            "episode_number",
            unique=True,
            sqlite_where=text("deleted_at IS NULL AND series_id IS NOT NULL"),
            postgresql_where=text("deleted_at IS NULL AND series_id IS NOT NULL"),
        ),
    )

    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    title_key: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    local_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    short_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    markdown_content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    content_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContentType.ARTICLE.value, index=True
    )
    article_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    thumbnail_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    audio_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    word_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    published_date: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    series_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("articles.id"), nullable=True, index=True
    )
    episode_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_episodes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    source_path: Mapped[str | None] = mapped_column(String(1000), nullable=True, index=True)

    language_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("languages.id"), nullable=True, index=True
    )
    author_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("authors.id"), nullable=True, index=True
    )
    category_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("categories.id"), nullable=True, index=True
    )
    sub_category_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("sub_categories.id"), nullable=True
    )
    editor_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("editors.id"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Article(slug='{self.slug}', content_type='{self.content_type}')>"


class ArticleTag(Base):
    """Junction between articles and tags; replaced wholesale on every upsert."""

    __tablename__ = "article_tags"
    __table_args__ = (UniqueConstraint("article_id", "tag_id", name="uq_article_tags"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    article_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("articles.id"), nullable=False, index=True
    )
    tag_id: Mapped[str] = mapped_column(String(36), ForeignKey("tags.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
