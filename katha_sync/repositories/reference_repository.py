"""Repository for reference entities and their translations."""

from datetime import UTC, datetime
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from katha_sync.models.base import Base, new_id
from katha_sync.models.reference import Editor
from katha_sync.utils.exceptions import DatabaseError

ModelT = TypeVar("ModelT", bound=Base)


class ReferenceRepository:
    """Atomic find-or-create primitives over the reference tables.

    Creation always goes through `INSERT ... ON CONFLICT DO NOTHING` followed
    by a select on the unique key, so two callers racing to create the same
    entity both end up with the single surviving row.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    def _insert(self, model: type[Base]) -> Any:
        """Return the dialect-specific INSERT construct supporting ON CONFLICT.

        Raises:
            DatabaseError: If the database dialect has no upsert support
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        elif dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            raise DatabaseError(f"Unsupported database dialect for upserts: {dialect}")
        return insert(model)

    async def insert_ignore(self, model: type[Base], values: dict[str, Any]) -> None:
        """Insert a row unless it violates a unique constraint.

        Args:
            model: Mapped class
            values: Column values (an id is generated when absent)
        """
        row = {"id": new_id(), **values}
        stmt = self._insert(model).values(**row).on_conflict_do_nothing()
        await self.session.execute(stmt)

    async def find_one(self, model: type[ModelT], **criteria: Any) -> ModelT | None:
        """Find a row by exact column values, soft-deleted rows included.

        Args:
            model: Mapped class
            **criteria: Column name -> value

        Returns:
            Matching row or None
        """
        stmt = select(model).filter_by(**criteria).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        model: type[ModelT],
        key: dict[str, Any],
        values: dict[str, Any],
    ) -> tuple[ModelT, bool]:
        """Atomically find a row by its unique key or create it.

        Args:
            model: Mapped class
            key: Unique key columns and values
            values: Additional column values used only when creating

        Returns:
            Tuple of (row, created)

        Raises:
            DatabaseError: If the row is missing after the insert (a different
                unique constraint rejected it)
        """
        existing = await self.find_one(model, **key)
        if existing is not None:
            return existing, False

        await self.insert_ignore(model, {**key, **values})
        row = await self.find_one(model, **key)
        if row is None:
            raise DatabaseError(f"Could not create {model.__name__} with key {key}")
        return row, True

    async def revive(self, row: Base, editor_id: str | None) -> None:
        """Clear the soft-delete marker of a row."""
        row.deleted_at = None  # type: ignore[attr-defined]
        row.deleted_by = None  # type: ignore[attr-defined]
        row.updated_by = editor_id  # type: ignore[attr-defined]
        await self.session.flush()

    async def upsert_translation(
        self,
        model: type[Base],
        entity_id: str,
        language_id: str,
        local_name: str,
        editor_id: str | None,
    ) -> None:
        """Insert or update the localized name of an entity for one language.

        Args:
            model: Translation class (exposes `entity_column`)
            entity_id: Translated entity id
            language_id: Language of the display name
            local_name: Display name in that language
            editor_id: Acting editor
        """
        entity_column: str = model.entity_column  # type: ignore[attr-defined]
        now = datetime.now(UTC)

        stmt = self._insert(model).values(
            id=new_id(),
            **{entity_column: entity_id},
            language_id=language_id,
            local_name=local_name,
            created_by=editor_id,
            updated_by=editor_id,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[entity_column, "language_id"],
            set_={
                "local_name": stmt.excluded.local_name,
                "updated_by": stmt.excluded.updated_by,
                "updated_at": stmt.excluded.updated_at,
                "deleted_at": None,
                "deleted_by": None,
            },
        )
        await self.session.execute(stmt)

    async def find_editor(
        self,
        github_username: str | None,
        email: str | None,
        name: str,
    ) -> Editor | None:
        """Find an active editor by GitHub username, then e-mail, then name."""
        candidates = (
            (Editor.github_user_name, github_username),
            (Editor.email, email),
            (Editor.name, name),
        )
        for column, value in candidates:
            if not value:
                continue
            stmt = (
                select(Editor)
                .where(column == value, Editor.deleted_at.is_(None))
                .order_by(Editor.created_at)
                .limit(1)
            )
            result = await self.session.execute(stmt)
            editor = result.scalar_one_or_none()
            if editor is not None:
                return editor
        return None

    async def create_editor(
        self,
        name: str,
        email: str | None,
        github_username: str | None,
    ) -> Editor:
        """Create a new editor row."""
        editor = Editor(name=name, email=email, github_user_name=github_username)
        self.session.add(editor)
        await self.session.flush()
        return editor
