"""create_content_schema

Revision ID: 3b1f6c2d9a40
Revises:
Create Date: 2026-01-12 09:30:14.518204

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1f6c2d9a40"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TRANSLATION_TABLES = (
    ("author_translations", "author_id", "authors"),
    ("category_translations", "category_id", "categories"),
    ("sub_category_translations", "sub_category_id", "sub_categories"),
    ("tag_translations", "tag_id", "tags"),
    ("language_translations", "target_language_id", "languages"),
)


def audit_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("updated_by", sa.String(36), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.String(36), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "languages",
        *audit_columns(),
        sa.Column("code", sa.String(10), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("local_name", sa.String(255), nullable=True),
    )
    op.create_table(
        "authors",
        *audit_columns(),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("local_name", sa.String(255), nullable=True),
    )
    op.create_table(
        "categories",
        *audit_columns(),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("local_name", sa.String(255), nullable=True),
    )
    op.create_table(
        "sub_categories",
        *audit_columns(),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("local_name", sa.String(255), nullable=True),
        sa.UniqueConstraint("category_id", "name", name="uq_sub_categories_category_name"),
    )
    op.create_index("ix_sub_categories_category_id", "sub_categories", ["category_id"])
    op.create_table(
        "tags",
        *audit_columns(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("local_name", sa.String(100), nullable=True),
    )
    op.create_table(
        "editors",
        *audit_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("github_user_name", sa.String(255), nullable=True),
    )
    op.create_index("ix_editors_email", "editors", ["email"])
    op.create_index("ix_editors_github_user_name", "editors", ["github_user_name"])

    for table, entity_column, entity_table in TRANSLATION_TABLES:
        op.create_table(
            table,
            *audit_columns(),
            sa.Column(
                entity_column, sa.String(36), sa.ForeignKey(f"{entity_table}.id"), nullable=False
            ),
            sa.Column("language_id", sa.String(36), sa.ForeignKey("languages.id"), nullable=False),
            sa.Column("local_name", sa.String(255), nullable=False),
            sa.UniqueConstraint(entity_column, "language_id", name=f"uq_{table}"),
        )
        op.create_index(f"ix_{table}_language_id", table, ["language_id"])

    op.create_table(
        "articles",
        *audit_columns(),
        sa.Column("slug", sa.String(255), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("local_title", sa.String(255), nullable=True),
        sa.Column("short_description", sa.Text, nullable=True),
        sa.Column("markdown_content", sa.Text, nullable=False),
        sa.Column("content_type", sa.String(20), nullable=False),
        sa.Column("article_type", sa.String(20), nullable=True),
        sa.Column("thumbnail_url", sa.String(500), nullable=True),
        sa.Column("audio_url", sa.String(500), nullable=True),
        sa.Column("word_count", sa.Integer, nullable=True),
        sa.Column("duration", sa.Integer, nullable=True),
        sa.Column("published_date", sa.String(50), nullable=True),
        sa.Column("is_published", sa.Boolean, nullable=False),
        sa.Column("is_featured", sa.Boolean, nullable=False),
        sa.Column("is_complete", sa.Boolean, nullable=False),
        sa.Column("series_id", sa.String(36), sa.ForeignKey("articles.id"), nullable=True),
        sa.Column("episode_number", sa.Integer, nullable=True),
        sa.Column("total_episodes", sa.Integer, nullable=False),
        sa.Column("source_path", sa.String(1000), nullable=True),
        sa.Column("language_id", sa.String(36), sa.ForeignKey("languages.id"), nullable=True),
        sa.Column("author_id", sa.String(36), sa.ForeignKey("authors.id"), nullable=True),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column(
            "sub_category_id", sa.String(36), sa.ForeignKey("sub_categories.id"), nullable=True
        ),
        sa.Column("editor_id", sa.String(36), sa.ForeignKey("editors.id"), nullable=True),
    )
    op.create_index("ix_articles_content_type", "articles", ["content_type"])
    op.create_index("ix_articles_series_id", "articles", ["series_id"])
    op.create_index("ix_articles_source_path", "articles", ["source_path"])
    op.create_index("ix_articles_language_id", "articles", ["language_id"])
    op.create_index("ix_articles_author_id", "articles", ["author_id"])
    op.create_index("ix_articles_category_id", "articles", ["category_id"])
    # Episode numbers are unique per series among active rows only
    op.create_index(
        "uq_articles_series_episode_active",
        "articles",
        ["series_id", "episode_number"],
        unique=True,
        sqlite_where=sa.text("deleted_at IS NULL AND series_id IS NOT NULL"),
        postgresql_where=sa.text("deleted_at IS NULL AND series_id IS NOT NULL"),
    )

    op.create_table(
        "article_tags",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("article_id", sa.String(36), sa.ForeignKey("articles.id"), nullable=False),
        sa.Column("tag_id", sa.String(36), sa.ForeignKey("tags.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("article_id", "tag_id", name="uq_article_tags"),
    )
    op.create_index("ix_article_tags_article_id", "article_tags", ["article_id"])


def downgrade() -> None:
    op.drop_index("ix_article_tags_article_id", table_name="article_tags")
    op.drop_table("article_tags")

    op.drop_index("uq_articles_series_episode_active", table_name="articles")
    for index in (
        "ix_articles_category_id",
        "ix_articles_author_id",
        "ix_articles_language_id",
        "ix_articles_source_path",
        "ix_articles_series_id",
        "ix_articles_content_type",
    ):
        op.drop_index(index, table_name="articles")
    op.drop_table("articles")

    for table, _, _ in reversed(TRANSLATION_TABLES):
        op.drop_index(f"ix_{table}_language_id", table_name=table)
        op.drop_table(table)

    op.drop_index("ix_editors_github_user_name", table_name="editors")
    op.drop_index("ix_editors_email", table_name="editors")
    op.drop_table("editors")
    op.drop_table("tags")
    op.drop_index("ix_sub_categories_category_id", table_name="sub_categories")
    op.drop_table("sub_categories")
    op.drop_table("categories")
    op.drop_table("authors")
    op.drop_table("languages")
