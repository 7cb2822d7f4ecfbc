"""Batch orchestration: parse, normalize, transliterate, resolve and persist changed files."""

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tqdm import tqdm

from katha_sync.ingestion.article_upserter import ArticleUpserter
from katha_sync.ingestion.frontmatter import FrontmatterNormalizer
from katha_sync.ingestion.markdown_loader import MarkdownLoader
from katha_sync.ingestion.metadata_extractor import MetadataExtractor
from katha_sync.ingestion.models import (
    ChangedFile,
    DocumentOutcome,
    DocumentState,
    FileStatus,
    NormalizedDocument,
    ProcessedMetadata,
    TransliterationItem,
    TransliterationRole,
)
from katha_sync.ingestion.reference_resolver import ReferenceResolver, document_items
from katha_sync.models.article import ContentType
from katha_sync.transliteration.gateway import TransliterationGateway
from katha_sync.transliteration.mappings import CuratedMappings
from katha_sync.utils.config import EditorIdentity
from katha_sync.utils.exceptions import (
    DatabaseError,
    DocumentRejectedError,
    DuplicateSlugError,
    IngestionError,
    IntegrityWarning,
    KathaSyncError,
)
from katha_sync.utils.slug import article_slug

logger = structlog.get_logger(__name__)

# Series covers must exist before the episodes that reference them
UPSERT_ORDER = {ContentType.SERIES: 0, ContentType.EPISODE: 1, ContentType.ARTICLE: 2}


@dataclass
class BatchSummary:
    """Per-batch accounting, printed by the CLI and saved as JSON.

    Attributes:
        files_seen: Changes handed to the pipeline
        parsed: Documents whose front-matter block was read
        normalized: Documents that passed validation
        transliterated: Documents whose strings all received a canonical spelling
        resolved: Documents whose references were all resolved
        created / updated / revived: Article rows written, by kind of write
        removed: Article rows soft-deleted for removed files
        rejected: Documents excluded from the batch
        warnings: Integrity warnings raised while persisting
        outcomes: Final state of every document
        references_created: New reference rows by kind
        oracle_requests: Transliteration requests sent
        dry_run: Whether the transaction was rolled back
    """

    files_seen: int = 0
    parsed: int = 0
    normalized: int = 0
    transliterated: int = 0
    resolved: int = 0
    created: int = 0
    updated: int = 0
    revived: int = 0
    removed: int = 0
    rejected: int = 0
    warnings: list[IntegrityWarning] = field(default_factory=list)
    outcomes: list[DocumentOutcome] = field(default_factory=list)
    references_created: dict[str, int] = field(default_factory=dict)
    oracle_requests: int = 0
    dry_run: bool = False
    start_time: float = 0.0
    end_time: float = 0.0
    duration_seconds: float = 0.0

    @property
    def persisted(self) -> int:
        return self.created + self.updated + self.revived

    def rejections(self) -> list[DocumentOutcome]:
        """Outcomes of rejected documents."""
        return [outcome for outcome in self.outcomes if outcome.state == DocumentState.REJECTED]

    def to_dict(self) -> dict[str, Any]:
        """Convert summary to dictionary for JSON serialization."""
        return {
            "files_seen": self.files_seen,
            "parsed": self.parsed,
            "normalized": self.normalized,
            "transliterated": self.transliterated,
            "resolved": self.resolved,
            "persisted": self.persisted,
            "created": self.created,
            "updated": self.updated,
            "revived": self.revived,
            "removed": self.removed,
            "rejected": self.rejected,
            "warnings": [warning.to_dict() for warning in self.warnings],
            "references_created": self.references_created,
            "oracle_requests": self.oracle_requests,
            "dry_run": self.dry_run,
            "duration_seconds": round(self.duration_seconds, 2),
            "start_time": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.start_time)),
            "end_time": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.end_time)),
            "documents": [outcome.to_dict() for outcome in self.outcomes],
        }


class IngestionPipeline:
    """Runs one batch of changed files through the ingestion stages.

    Stages, per batch:
    1. Load and normalize every added/modified file (rejections are per document)
    2. Transliterate all vernacular strings of the batch in one gateway call
    3. Derive slugs; reject later duplicates of a slug within the batch
    4. Soft-delete rows of removed files
    5. Resolve every reference of every document
    6. Upsert series covers, then episodes, then standalone articles
    7. Recompute episode counts of every touched series
    8. Commit, or roll back on dry runs

    Document-level errors never leave the batch; anything else rolls the
    transaction back and propagates, so a failed batch writes nothing.
    """

    def __init__(
        self,
        session: AsyncSession,
        gateway: TransliterationGateway,
        root_path: str | Path | None = None,
        mappings: CuratedMappings | None = None,
        summary_path: str | Path | None = None,
        show_progress: bool = True,
    ) -> None:
        """Initialize pipeline components.

        Args:
            session: SQLAlchemy async session; the pipeline owns its transaction
            gateway: Transliteration gateway for this batch
            root_path: Repository root that change paths are relative to
            mappings: Curated vernacular -> canonical tables
            summary_path: Where to write the JSON summary (None disables it)
            show_progress: Display a tqdm progress bar while persisting
        """
        self.session = session
        self.gateway = gateway
        self.root_path = Path(root_path) if root_path else Path(".")
        self.summary_path = Path(summary_path) if summary_path else None
        self.show_progress = show_progress

        self.loader = MarkdownLoader(self.root_path)
        self.normalizer = FrontmatterNormalizer()
        self.metadata_extractor = MetadataExtractor()
        self.resolver = ReferenceResolver(session, mappings)
        self.upserter = ArticleUpserter(session)

        self.summary = BatchSummary()
        self._outcomes: dict[str, DocumentOutcome] = {}
        self.logger = logger.bind(component="ingestion_pipeline")

    async def run(
        self,
        changes: list[ChangedFile],
        editor: EditorIdentity,
        dry_run: bool = False,
    ) -> BatchSummary:
        """Process one batch.

        Args:
            changes: Files reported by a change source
            editor: Identity every write of the batch is attributed to
            dry_run: Run every stage, then roll back instead of committing

        Returns:
            BatchSummary with per-document outcomes

        Raises:
            TransliterationBatchError: If transliteration fails for the batch
            DatabaseError: If storage fails
            IngestionError: On any other batch-level failure
        """
        self.summary = BatchSummary(files_seen=len(changes), dry_run=dry_run)
        self.summary.start_time = time.time()
        self._outcomes = {}

        self.logger.info(
            "pipeline_run_started",
            files=len(changes),
            editor=editor.name,
            dry_run=dry_run,
        )

        try:
            await self._process(changes, editor)

            if dry_run:
                await self.session.rollback()
                self.logger.info("dry_run_rolled_back")
            else:
                await self.session.commit()

        except Exception as e:
            await self.session.rollback()
            self._finish()
            self.logger.error(
                "pipeline_run_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            self._save_summary_report(error=e)
            if isinstance(e, KathaSyncError):
                raise
            if isinstance(e, SQLAlchemyError):
                raise DatabaseError(f"Database error during ingestion: {e}") from e
            raise IngestionError(f"Pipeline execution failed: {e}") from e

        self._finish()
        self._save_summary_report()
        self.logger.info(
            "pipeline_run_completed",
            files_seen=self.summary.files_seen,
            created=self.summary.created,
            updated=self.summary.updated,
            revived=self.summary.revived,
            removed=self.summary.removed,
            rejected=self.summary.rejected,
            warnings=len(self.summary.warnings),
            duration_seconds=round(self.summary.duration_seconds, 2),
        )
        return self.summary

    async def _process(self, changes: list[ChangedFile], editor: EditorIdentity) -> None:
        removals = [change for change in changes if change.status == FileStatus.REMOVED]
        updates = [change for change in changes if change.status != FileStatus.REMOVED]

        documents = self._normalize_all(updates)

        names = await self.resolver.propose_names(
            [item for document in documents for item in document_items(document)],
            self.gateway,
        )
        self.summary.oracle_requests = self.gateway.oracle_requests
        self.summary.transliterated = len(documents)
        for document in documents:
            self._advance(document.file_path, DocumentState.TRANSLITERATED)

        slugged = self._assign_slugs(documents, names)

        editor_id = await self.resolver.resolve_editor(editor)
        touched_series: set[str] = set()

        for change in removals:
            for row in await self.upserter.remove(change.path, editor_id):
                self.summary.removed += 1
                if row.series_id:
                    touched_series.add(row.series_id)
            self._outcomes[change.path] = DocumentOutcome(
                change.path, DocumentState.PERSISTED, action="removed"
            )

        processed: list[ProcessedMetadata] = []
        for document, slug in slugged:
            references = await self.resolver.resolve_document(document, names, editor_id)
            body = document.document.body
            processed.append(
                ProcessedMetadata(
                    normalized=document,
                    slug=slug,
                    language_id=references.language_id,
                    author_id=references.author_id,
                    category_id=references.category_id,
                    sub_category_id=references.sub_category_id,
                    tag_ids=references.tag_ids,
                    short_description=self.metadata_extractor.extract_short_description(body),
                    word_count=(
                        document.frontmatter.words
                        if document.frontmatter.words is not None
                        else self.metadata_extractor.count_words(body)
                    ),
                )
            )
            self.summary.resolved += 1
            self._advance(document.file_path, DocumentState.REFERENCES_RESOLVED)

        processed.sort(key=lambda metadata: UPSERT_ORDER[metadata.content_type])
        await self.upserter.release_episode_numbers(processed)
        with tqdm(
            total=len(processed),
            desc="Persisting documents",
            unit="doc",
            disable=not self.show_progress,
        ) as pbar:
            for metadata in processed:
                await self._persist(metadata, editor_id, touched_series)
                pbar.update(1)

        self.summary.warnings.extend(await self.upserter.restore_episode_numbers())

        for series_id in sorted(touched_series):
            warning = await self.upserter.recompute_episode_count(series_id, editor_id)
            if warning is not None:
                self.summary.warnings.append(warning)

        self.summary.references_created = dict(self.resolver.created)

    def _normalize_all(self, updates: list[ChangedFile]) -> list[NormalizedDocument]:
        """Load and normalize every added or modified file, rejecting bad ones."""
        documents: list[NormalizedDocument] = []
        for change in updates:
            self._outcomes[change.path] = DocumentOutcome(change.path, DocumentState.PARSED)
            try:
                document = self.loader.load_file(change.path)
                self.summary.parsed += 1
                normalized = self.normalizer.normalize(document)
            except DocumentRejectedError as e:
                self._reject(change.path, e)
                continue

            self.summary.normalized += 1
            self._advance(change.path, DocumentState.NORMALIZED)
            documents.append(normalized)
        return documents

    def _assign_slugs(
        self,
        documents: list[NormalizedDocument],
        names: dict[TransliterationItem, str],
    ) -> list[tuple[NormalizedDocument, str]]:
        """Derive each document's slug; the first file claiming a slug keeps it."""
        owners: dict[str, str] = {}
        slugged: list[tuple[NormalizedDocument, str]] = []

        for document in documents:
            frontmatter = document.frontmatter
            title = names[TransliterationItem(frontmatter.title, TransliterationRole.TITLE, frontmatter.lang)]
            author = names[
                TransliterationItem(frontmatter.author, TransliterationRole.AUTHOR, frontmatter.lang)
            ]
            slug = article_slug(title, author)
            self._outcomes[document.file_path].slug = slug

            if slug in owners:
                self._reject(
                    document.file_path,
                    DuplicateSlugError(slug, file_path=document.file_path, other_path=owners[slug]),
                )
                continue

            owners[slug] = document.file_path
            slugged.append((document, slug))
        return slugged

    async def _persist(
        self,
        metadata: ProcessedMetadata,
        editor_id: str,
        touched_series: set[str],
    ) -> None:
        try:
            result = await self.upserter.upsert(metadata, editor_id)
        except DocumentRejectedError as e:
            self._reject(metadata.file_path, e)
            return

        if result.action == "created":
            self.summary.created += 1
        elif result.action == "revived":
            self.summary.revived += 1
        else:
            self.summary.updated += 1

        self.summary.warnings.extend(result.warnings)
        touched_series.update(result.affected_series)
        if metadata.content_type == ContentType.SERIES:
            touched_series.add(result.article_id)

        outcome = self._outcomes[metadata.file_path]
        outcome.state = DocumentState.PERSISTED
        outcome.action = result.action

    def _advance(self, file_path: str, state: DocumentState) -> None:
        self._outcomes[file_path].state = state

    def _reject(self, file_path: str, error: DocumentRejectedError) -> None:
        outcome = self._outcomes.setdefault(file_path, DocumentOutcome(file_path, DocumentState.PARSED))
        outcome.state = DocumentState.REJECTED
        outcome.reasons = list(error.reasons) or [error.message]
        outcome.error_type = type(error).__name__
        self.summary.rejected += 1

        self.logger.warning(
            "document_rejected",
            file_path=file_path,
            error_type=outcome.error_type,
            reasons=outcome.reasons,
        )

    def _finish(self) -> None:
        self.summary.outcomes = list(self._outcomes.values())
        self.summary.end_time = time.time()
        self.summary.duration_seconds = self.summary.end_time - self.summary.start_time

    def _save_summary_report(self, error: Exception | None = None) -> None:
        """Save batch summary report to JSON file."""
        if self.summary_path is None:
            return

        report = {
            "status": "failed" if error else "completed",
            "error": str(error) if error else None,
            **self.summary.to_dict(),
        }

        try:
            self.summary_path.parent.mkdir(parents=True, exist_ok=True)
            with self.summary_path.open("w", encoding="utf-8") as f:
                json.dump(report, f, indent=2, ensure_ascii=False)

            self.logger.info("summary_report_saved", path=str(self.summary_path))
        except OSError as e:
            self.logger.error(
                "summary_report_save_failed",
                error=str(e),
            )
