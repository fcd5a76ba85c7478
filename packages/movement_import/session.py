"""``ImportSession``: the explicit per-import state passed through every stage.

The session owns the organization/project/creator context, the parsed file,
the column mapping, the reference catalog and the manual overrides. Stage
methods mutate only the session they are called on; nothing is global.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from .catalog import ReferenceCatalog, create_concept, load_catalog_from_db
from .logging_setup import ImportLogAdapter, import_logger
from .mapping import ColumnMapping
from .models import ImportContext, ParsedFile, RecordDraft
from .normalizer import ManualOverrides, ValueNormalizer
from .persistence import BatchWriter
from .records import build_record_drafts
from .resolver import ConceptCreator, IncompatibilityResolver, collect_incompatible
from .submit import Invalidator, SubmitResult, submit_batch
from .views import invalidate_views


def db_concept_creator(
    organization_id: uuid.UUID, *, database_url: str | None = None
) -> ConceptCreator:
    """Return a creator that persists concepts in their own short transaction."""

    from db.client import session_scope  # local import

    def _create(name: str, parent_id: str, description: str | None) -> str:
        with session_scope(database_url=database_url) as s:
            concept_id, _created = create_concept(
                s,
                organization_id=organization_id,
                name=name,
                parent_id=parent_id,
                description=description,
            )
        return concept_id

    return _create


@dataclass(slots=True)
class ImportSession:
    context: ImportContext
    parsed: ParsedFile
    catalog: ReferenceCatalog
    mapping: ColumnMapping = field(init=False)
    overrides: ManualOverrides = field(default_factory=ManualOverrides)
    concept_creator: ConceptCreator | None = None
    allow_create: bool = True

    def __post_init__(self) -> None:
        self.mapping = ColumnMapping(len(self.parsed.headers))
        self.mapping.auto_assign(self.parsed.headers)

    @classmethod
    def from_database(
        cls,
        context: ImportContext,
        parsed: ParsedFile,
        *,
        database_url: str | None = None,
        allow_create: bool = True,
    ) -> ImportSession:
        """Load the organization's catalog and wire a DB-backed concept creator."""

        from db.client import session_scope  # local import

        with session_scope(database_url=database_url) as s:
            catalog = load_catalog_from_db(s, context.organization_id)
        creator = (
            db_concept_creator(context.organization_id, database_url=database_url)
            if allow_create
            else None
        )
        return cls(
            context=context,
            parsed=parsed,
            catalog=catalog,
            concept_creator=creator,
            allow_create=allow_create,
        )

    @property
    def log(self) -> ImportLogAdapter:
        return import_logger(
            "movement_import.session",
            organization_id=self.context.organization_id,
            file_name=self.parsed.file_name,
        )

    @property
    def normalizer(self) -> ValueNormalizer:
        return ValueNormalizer(self.catalog, self.overrides)

    def resolver(self) -> IncompatibilityResolver:
        """Validate the mapping and return a resolver over the current pending values."""

        self.mapping.validate()
        pending = collect_incompatible(
            self.parsed,
            self.mapping,
            self.normalizer,
            allow_create=self.allow_create and self.concept_creator is not None,
        )
        self.log.info("review pending=%d", len(pending))
        return IncompatibilityResolver(
            self.catalog,
            self.overrides,
            pending,
            concept_creator=self.concept_creator if self.allow_create else None,
        )

    def drafts(
        self, *, rows: Iterable[int] | None = None, today: date | None = None
    ) -> list[RecordDraft]:
        self.mapping.validate()
        return build_record_drafts(
            self.parsed, self.mapping, self.normalizer, rows=rows, today=today
        )

    def submit(
        self,
        writer: BatchWriter,
        *,
        rows: Iterable[int] | None = None,
        invalidate: Invalidator | None = invalidate_views,
    ) -> SubmitResult:
        drafts = self.drafts(rows=rows)
        result = submit_batch(drafts, self.context, writer, invalidate=invalidate)
        self.log.info("submit inserted=%d", result.inserted)
        return result


__all__ = ["ImportSession", "db_concept_creator"]
