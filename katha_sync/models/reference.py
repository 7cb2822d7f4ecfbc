"""Reference entities resolved during ingestion and their per-language translations."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from katha_sync.models.base import AuditMixin, Base


class Language(AuditMixin, Base):
    """Content language, identified by its code.

    Attributes:
        code: Lowercase language code (e.g., "hi", "bn")
        name: English language name (e.g., "Hindi")
        local_name: Name of the language in its own script
    """

    __tablename__ = "languages"

    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    local_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Language(code='{self.code}', name='{self.name}')>"


class Author(AuditMixin, Base):
    """Story author. `name` is the canonical transliterated name."""

    __tablename__ = "authors"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    local_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Author(name='{self.name}')>"


class Category(AuditMixin, Base):
    """Top-level content category."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    local_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Category(name='{self.name}')>"


class SubCategory(AuditMixin, Base):
    """Category child; names are unique only within their parent category."""

    __tablename__ = "sub_categories"
    __table_args__ = (UniqueConstraint("category_id", "name", name="uq_sub_categories_category_name"),)

    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("categories.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    local_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<SubCategory(name='{self.name}', category_id='{self.category_id}')>"


class Tag(AuditMixin, Base):
    """Free-form tag with a URL-safe slug as secondary unique key."""

    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    local_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Tag(name='{self.name}', slug='{self.slug}')>"


class Editor(AuditMixin, Base):
    """Person attributed with the writes of an ingestion run."""

    __tablename__ = "editors"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    github_user_name: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Editor(name='{self.name}')>"


class TranslationMixin:
    """Localized display name of an entity for one language."""

    language_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("languages.id"), nullable=False, index=True
    )
    local_name: Mapped[str] = mapped_column(String(255), nullable=False)


class AuthorTranslation(TranslationMixin, AuditMixin, Base):
    __tablename__ = "author_translations"
    __table_args__ = (UniqueConstraint("author_id", "language_id", name="uq_author_translations"),)

    entity_column = "author_id"

    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("authors.id"), nullable=False)


class CategoryTranslation(TranslationMixin, AuditMixin, Base):
    __tablename__ = "category_translations"
    __table_args__ = (
        UniqueConstraint("category_id", "language_id", name="uq_category_translations"),
    )

    entity_column = "category_id"

    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("categories.id"), nullable=False
    )


class SubCategoryTranslation(TranslationMixin, AuditMixin, Base):
    __tablename__ = "sub_category_translations"
    __table_args__ = (
        UniqueConstraint("sub_category_id", "language_id", name="uq_sub_category_translations"),
    )

    entity_column = "sub_category_id"

    sub_category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sub_categories.id"), nullable=False
    )


class TagTranslation(TranslationMixin, AuditMixin, Base):
    __tablename__ = "tag_translations"
    __table_args__ = (UniqueConstraint("tag_id", "language_id", name="uq_tag_translations"),)

    entity_column = "tag_id"

    tag_id: Mapped[str] = mapped_column(String(36), ForeignKey("tags.id"), nullable=False)


class LanguageTranslation(TranslationMixin, AuditMixin, Base):
    """Name of a content language as displayed in another language."""

    __tablename__ = "language_translations"
    __table_args__ = (
        UniqueConstraint("target_language_id", "language_id", name="uq_language_translations"),
    )

    entity_column = "target_language_id"

    target_language_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("languages.id"), nullable=False
    )
