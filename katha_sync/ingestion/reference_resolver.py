"""Idempotent find-or-create resolution of reference entities."""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from katha_sync.common.constants import (
    LANGUAGE_NAMES,
    LANGUAGE_NATIVE_NAMES,
    ROMAN_SCRIPT_LANGUAGES,
)
from katha_sync.ingestion.models import (
    NormalizedDocument,
    TransliterationItem,
    TransliterationRole,
)
from katha_sync.models.base import Base
from katha_sync.models.reference import (
    Author,
    AuthorTranslation,
    Category,
    CategoryTranslation,
    Language,
    LanguageTranslation,
    SubCategory,
    SubCategoryTranslation,
    Tag,
    TagTranslation,
)
from katha_sync.repositories.reference_repository import ReferenceRepository
from katha_sync.transliteration.gateway import TransliterationGateway
from katha_sync.transliteration.mappings import CuratedMappings
from katha_sync.utils.config import EditorIdentity
from katha_sync.utils.exceptions import DatabaseError
from katha_sync.utils.slug import tag_slug

logger = structlog.get_logger(__name__)

ENTITY_MODELS: dict[str, type[Base]] = {
    "author": Author,
    "category": Category,
    "sub_category": SubCategory,
    "tag": Tag,
}

TRANSLATION_MODELS: dict[str, type[Base]] = {
    "author": AuthorTranslation,
    "category": CategoryTranslation,
    "sub_category": SubCategoryTranslation,
    "tag": TagTranslation,
    "language": LanguageTranslation,
}


def canonical_name(name: str) -> str:
    """Case-normalize a canonical name: lowercase with single spaces."""
    return " ".join(name.split()).lower()


def format_local_name(local_name: str, language: str) -> str:
    """Title-case local names of Roman-script languages; keep other scripts verbatim."""
    cleaned = " ".join(local_name.split())
    if language in ROMAN_SCRIPT_LANGUAGES:
        return cleaned.title()
    return cleaned


def document_items(normalized: NormalizedDocument) -> list[TransliterationItem]:
    """Vernacular strings of a document that need a canonical spelling."""
    frontmatter = normalized.frontmatter
    lang = frontmatter.lang
    items = [
        TransliterationItem(frontmatter.title, TransliterationRole.TITLE, lang),
        TransliterationItem(frontmatter.author, TransliterationRole.AUTHOR, lang),
        TransliterationItem(frontmatter.category, TransliterationRole.CATEGORY, lang),
    ]
    if frontmatter.sub_category:
        items.append(
            TransliterationItem(frontmatter.sub_category, TransliterationRole.SUB_CATEGORY, lang)
        )
    items.extend(TransliterationItem(tag, TransliterationRole.TAG, lang) for tag in frontmatter.tags)
    return items


@dataclass
class ResolvedReferences:
    """Entity ids resolved for one document."""

    language_id: str
    author_id: str
    category_id: str
    sub_category_id: str | None = None
    tag_ids: list[str] = field(default_factory=list)


class ReferenceResolver:
    """Maps vernacular reference values to stable entity ids.

    Identity is the case-normalized canonical name (languages: the code;
    sub-categories: parent category plus name). Existing rows are returned
    untouched; new rows take the canonical name as `name` and the vernacular
    string as `local_name`. Every (entity, language) pair seen also upserts a
    translation row holding the display name for that language.

    A resolver is scoped to one batch: its memo table guarantees that every
    document of the batch observes the same id for the same canonical name,
    and creates go through an insert-ignore-then-select primitive so a
    concurrent writer cannot produce a duplicate.
    """

    def __init__(self, session: AsyncSession, mappings: CuratedMappings | None = None) -> None:
        """Initialize resolver.

        Args:
            session: SQLAlchemy async session for the batch
            mappings: Curated vernacular -> canonical tables, consulted before transliteration
        """
        self.repository = ReferenceRepository(session)
        self.mappings = mappings or CuratedMappings()
        self._ids: dict[tuple[str, str | None, str], str] = {}
        self._translations: set[tuple[str, str, str]] = set()
        self.created: Counter[str] = Counter()
        self.logger = logger.bind(component="reference_resolver")

    async def propose_names(
        self,
        items: Iterable[TransliterationItem],
        gateway: TransliterationGateway,
    ) -> dict[TransliterationItem, str]:
        """Find a canonical spelling for every item.

        Curated mappings win over transliteration; titles are never curated.

        Args:
            items: Strings collected from the batch
            gateway: Transliteration gateway for strings without a curated entry

        Returns:
            Item -> canonical name

        Raises:
            TransliterationBatchError: If the gateway rejects the batch
        """
        names: dict[TransliterationItem, str] = {}
        unmapped: list[TransliterationItem] = []

        for item in dict.fromkeys(items):
            curated = None
            if item.role != TransliterationRole.TITLE:
                curated = self.mappings.lookup(item.role.value, item.language, item.text)
            if curated:
                names[item] = canonical_name(curated)
            else:
                unmapped.append(item)

        spellings = await gateway.transliterate(unmapped)
        for item in unmapped:
            names[item] = spellings[(item.text, item.language)]

        self.logger.info(
            "canonical_names_proposed",
            curated=len(names) - len(unmapped),
            transliterated=len(unmapped),
        )
        return names

    async def resolve(
        self,
        kind: str,
        name: str,
        *,
        editor_id: str | None,
        local_name: str | None = None,
        language_id: str | None = None,
        language_code: str | None = None,
        parent_id: str | None = None,
    ) -> str:
        """Resolve one reference value to an entity id, creating it on first sight.

        Args:
            kind: author, category, sub_category or tag
            name: Canonical (transliterated or curated) name
            editor_id: Acting editor recorded on created rows and translations
            local_name: Vernacular string as written in the document
            language_id: Language of local_name; a translation row is upserted when given
            language_code: Code of that language, used for display formatting
            parent_id: Category id (sub-categories only)

        Returns:
            Entity id

        Raises:
            ValueError: If kind is unknown or a sub-category has no parent
            DatabaseError: If the entity cannot be created
        """
        if kind not in ENTITY_MODELS:
            raise ValueError(f"Unknown reference kind: {kind}")
        if kind == "sub_category" and parent_id is None:
            raise ValueError("Sub-categories require a parent category id")

        key_name = canonical_name(name)
        memo_key = (kind, parent_id, key_name)

        entity_id = self._ids.get(memo_key)
        if entity_id is None:
            entity_id = await self._find_or_create(kind, key_name, local_name, parent_id, editor_id)
            self._ids[memo_key] = entity_id

        if language_id and local_name:
            display = format_local_name(local_name, language_code or "")
            await self._translate(kind, entity_id, language_id, display, editor_id)

        return entity_id

    async def resolve_language(self, code: str, *, editor_id: str | None) -> str:
        """Resolve a language code to a language id, creating it on first sight."""
        code = code.strip().lower()
        memo_key = ("language", None, code)
        if memo_key in self._ids:
            return self._ids[memo_key]

        native_name = LANGUAGE_NATIVE_NAMES.get(code)
        row, created = await self.repository.get_or_create(
            Language,
            {"code": code},
            {
                "name": LANGUAGE_NAMES.get(code, code.upper()),
                "local_name": native_name,
                "created_by": editor_id,
                "updated_by": editor_id,
            },
        )
        if created:
            self.created["language"] += 1
            self.logger.info("reference_created", kind="language", name=row.name, code=code)
        elif row.deleted_at is not None:
            await self.repository.revive(row, editor_id)
            self.logger.info("reference_revived", kind="language", code=code)

        self._ids[memo_key] = row.id
        if native_name:
            await self._translate("language", row.id, row.id, native_name, editor_id)
        return row.id

    async def resolve_editor(self, identity: EditorIdentity) -> str:
        """Find the run's editor by GitHub username, e-mail or name, or create it."""
        editor = await self.repository.find_editor(
            identity.github_username, identity.email, identity.name
        )
        if editor is None:
            editor = await self.repository.create_editor(
                identity.name, identity.email, identity.github_username
            )
            self.created["editor"] += 1
            self.logger.info("reference_created", kind="editor", name=identity.name)
        return editor.id

    async def resolve_document(
        self,
        normalized: NormalizedDocument,
        names: dict[TransliterationItem, str],
        editor_id: str | None,
    ) -> ResolvedReferences:
        """Resolve every reference of one document.

        Args:
            normalized: Normalized document
            names: Canonical names proposed for the batch
            editor_id: Acting editor

        Returns:
            ResolvedReferences with all entity ids
        """
        frontmatter = normalized.frontmatter
        lang = frontmatter.lang
        language_id = await self.resolve_language(lang, editor_id=editor_id)

        def name_of(text: str, role: TransliterationRole) -> str:
            return names[TransliterationItem(text, role, lang)]

        common = {"editor_id": editor_id, "language_id": language_id, "language_code": lang}

        author_id = await self.resolve(
            "author",
            name_of(frontmatter.author, TransliterationRole.AUTHOR),
            local_name=frontmatter.author,
            **common,
        )
        category_id = await self.resolve(
            "category",
            name_of(frontmatter.category, TransliterationRole.CATEGORY),
            local_name=frontmatter.category,
            **common,
        )

        sub_category_id = None
        if frontmatter.sub_category:
            sub_category_id = await self.resolve(
                "sub_category",
                name_of(frontmatter.sub_category, TransliterationRole.SUB_CATEGORY),
                local_name=frontmatter.sub_category,
                parent_id=category_id,
                **common,
            )

        tag_ids: list[str] = []
        for tag in frontmatter.tags:
            tag_id = await self.resolve(
                "tag",
                name_of(tag, TransliterationRole.TAG),
                local_name=tag,
                **common,
            )
            if tag_id not in tag_ids:
                tag_ids.append(tag_id)

        return ResolvedReferences(
            language_id=language_id,
            author_id=author_id,
            category_id=category_id,
            sub_category_id=sub_category_id,
            tag_ids=tag_ids,
        )

    async def _find_or_create(
        self,
        kind: str,
        key_name: str,
        local_name: str | None,
        parent_id: str | None,
        editor_id: str | None,
    ) -> str:
        model = ENTITY_MODELS[kind]
        key: dict[str, str | None] = {"name": key_name}
        if kind == "sub_category":
            key["category_id"] = parent_id

        values: dict[str, str | None] = {
            "local_name": local_name,
            "created_by": editor_id,
            "updated_by": editor_id,
        }
        if kind == "tag":
            values["slug"] = tag_slug(key_name)

        try:
            row, created = await self.repository.get_or_create(model, key, values)
        except DatabaseError:
            if kind != "tag":
                raise
            # Another tag already owns the slug (e.g. "moral story" vs "moral-story")
            row = await self.repository.find_one(Tag, slug=values["slug"])
            if row is None:
                raise
            created = False
            self.logger.warning(
                "tag_slug_collision", name=key_name, existing=row.name, slug=row.slug
            )

        if created:
            self.created[kind] += 1
            self.logger.info("reference_created", kind=kind, name=key_name)
        elif row.deleted_at is not None:
            await self.repository.revive(row, editor_id)
            self.logger.info("reference_revived", kind=kind, name=key_name)

        return row.id

    async def _translate(
        self,
        kind: str,
        entity_id: str,
        language_id: str,
        local_name: str,
        editor_id: str | None,
    ) -> None:
        if (kind, entity_id, language_id) in self._translations:
            return
        await self.repository.upsert_translation(
            TRANSLATION_MODELS[kind], entity_id, language_id, local_name, editor_id
        )
        self._translations.add((kind, entity_id, language_id))
