"""Batch submission: integrity pass, record validation, single write, cache invalidation."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from pydantic import ValidationError

from .errors import IntegrityViolationError
from .logging_setup import get_logger
from .models import ImportContext, ImportRecord, RecordDraft
from .persistence import BatchWriter
from .records import check_integrity
from .views import IMPORT_INVALIDATED_VIEWS, invalidate_views

_logger = get_logger("movement_import.submit")

type Invalidator = Callable[[uuid.UUID, Iterable[str]], object]


@dataclass(frozen=True, slots=True)
class SubmitResult:
    inserted: int
    invalidated_views: tuple[str, ...] = ()


def submit_batch(
    drafts: Sequence[RecordDraft],
    context: ImportContext,
    writer: BatchWriter,
    *,
    invalidate: Invalidator | None = invalidate_views,
) -> SubmitResult:
    """Write ``drafts`` as one all-or-nothing batch.

    Raises
    ------
    IntegrityViolationError
        When any draft carries a non-UUID identifier value; nothing is written.
    BatchWriteError
        Propagated from ``writer`` with the storage message verbatim.
    """

    check_integrity(drafts)
    if not drafts:
        _logger.warning("submit skipped: no rows with data")
        return SubmitResult(inserted=0)

    records: list[ImportRecord] = []
    failures = 0
    for d in drafts:
        try:
            records.append(ImportRecord.from_draft(d, context))
        except ValidationError as e:
            failures += 1
            _logger.warning("record validation failed row=%d: %s", d.row_index, e)
    if failures:
        raise IntegrityViolationError(failures)

    inserted = writer.insert(records)

    invalidated: tuple[str, ...] = ()
    if invalidate is not None:
        try:
            invalidate(context.organization_id, IMPORT_INVALIDATED_VIEWS)
        except OSError as e:
            # The batch is committed; stale views must not turn it into a failure.
            _logger.error(
                "view invalidation failed organization_id=%s: %s", context.organization_id, e
            )
        else:
            invalidated = IMPORT_INVALIDATED_VIEWS
    _logger.info(
        "import submitted organization_id=%s inserted=%d", context.organization_id, inserted
    )
    return SubmitResult(inserted=inserted, invalidated_views=invalidated)


__all__ = ["Invalidator", "SubmitResult", "submit_batch"]
