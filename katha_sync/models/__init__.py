"""Domain models for the application."""

from katha_sync.models.article import Article, ArticleTag, ContentType
from katha_sync.models.base import Base
from katha_sync.models.reference import (
    Author,
    AuthorTranslation,
    Category,
    CategoryTranslation,
    Editor,
    Language,
    LanguageTranslation,
    SubCategory,
    SubCategoryTranslation,
    Tag,
    TagTranslation,
)

__all__ = [
    "Article",
    "ArticleTag",
    "Author",
    "AuthorTranslation",
    "Base",
    "Category",
    "CategoryTranslation",
    "ContentType",
    "Editor",
    "Language",
    "LanguageTranslation",
    "SubCategory",
    "SubCategoryTranslation",
    "Tag",
    "TagTranslation",
]
