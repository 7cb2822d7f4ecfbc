"""add_article_title_key

Revision ID: 8e4a7d0c5f21
Revises: 3b1f6c2d9a40
Create Date: 2026-02-03 14:15:42.907113

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8e4a7d0c5f21"
down_revision: str | None = "3b1f6c2d9a40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Case-folded title for series lookups; SQL lower() only folds ASCII in SQLite
    op.add_column("articles", sa.Column("title_key", sa.String(255), nullable=True))
    op.create_index("ix_articles_title_key", "articles", ["title_key"])

    bind = op.get_bind()
    articles = sa.table(
        "articles",
        sa.column("id", sa.String),
        sa.column("title", sa.String),
        sa.column("title_key", sa.String),
    )
    rows = bind.execute(sa.select(articles.c.id, articles.c.title)).all()
    for article_id, title in rows:
        bind.execute(
            articles.update()
            .where(articles.c.id == article_id)
            .values(title_key=" ".join(title.split()).casefold())
        )


def downgrade() -> None:
    op.drop_index("ix_articles_title_key", table_name="articles")
    op.drop_column("articles", "title_key")
