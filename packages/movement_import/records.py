"""Parsed rows → :class:`RecordDraft` list, plus the final integrity pass.

A row becomes a draft only when at least one mapped field was populated from
its cells (a parsed date or amount, non-blank text, or a resolved
identifier). Unpopulated scalars then take defaults: description
``"Movimiento importado"``, amount ``0`` and today's date.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from typing import Any

from .errors import IntegrityViolationError
from .logging_setup import get_logger
from .mapping import ColumnMapping
from .models import FieldKind, ParsedFile, RecordDraft, TargetField, kind_of
from .normalizer import ValueNormalizer, is_valid_uuid
from .normalizers import parse_amount, parse_date

_logger = get_logger("movement_import.records")

DEFAULT_DESCRIPTION = "Movimiento importado"


def _convert(field: TargetField, cell: Any, normalizer: ValueNormalizer) -> Any:
    kind = kind_of(field)
    if kind is FieldKind.DATE:
        return parse_date(cell)
    if kind is FieldKind.AMOUNT:
        return parse_amount(cell)
    if kind is FieldKind.TEXT:
        if cell is None:
            return None
        text = " ".join(str(cell).split())
        return text or None
    return normalizer.resolve(field, cell)


def row_values(
    parsed: ParsedFile, mapping: ColumnMapping, normalizer: ValueNormalizer, row_index: int
) -> dict[TargetField, Any]:
    """Populated field values of one row (first mapped column wins per field)."""

    values: dict[TargetField, Any] = {}
    for column, field in mapping:
        if field in values:
            continue
        converted = _convert(field, parsed.cell(row_index, column), normalizer)
        if converted is not None:
            values[field] = converted
    return values


def build_record_drafts(
    parsed: ParsedFile,
    mapping: ColumnMapping,
    normalizer: ValueNormalizer,
    *,
    rows: Iterable[int] | None = None,
    today: date | None = None,
) -> list[RecordDraft]:
    """Convert the selected rows (all by default) into drafts.

    Parameters
    ----------
    parsed, mapping, normalizer:
        Session state from the earlier stages.
    rows:
        Optional subset of 0-based data-row indices; order is preserved and
        duplicates are ignored.
    today:
        Date used for rows without a parsable date (defaults to ``date.today()``).

    Raises
    ------
    IndexError
        When a selected row index is out of range.
    """

    today = today or date.today()
    if rows is None:
        selected: Sequence[int] = range(len(parsed.rows))
    else:
        selected = list(dict.fromkeys(rows))
        for r in selected:
            if not 0 <= r < len(parsed.rows):
                raise IndexError(f"row {r} out of range (0..{len(parsed.rows) - 1})")

    drafts: list[RecordDraft] = []
    dropped = 0
    for r in selected:
        values = row_values(parsed, mapping, normalizer, r)
        if not values:
            dropped += 1
            continue
        drafts.append(
            RecordDraft(
                row_index=r,
                movement_date=values.get(TargetField.MOVEMENT_DATE, today),
                description=values.get(TargetField.DESCRIPTION, DEFAULT_DESCRIPTION),
                amount=values.get(TargetField.AMOUNT, 0.0),
                exchange_rate=values.get(TargetField.EXCHANGE_RATE),
                currency_id=values.get(TargetField.CURRENCY_ID),
                wallet_id=values.get(TargetField.WALLET_ID),
                type_id=values.get(TargetField.TYPE_ID),
                category_id=values.get(TargetField.CATEGORY_ID),
                subcategory_id=values.get(TargetField.SUBCATEGORY_ID),
            )
        )
    _logger.info("drafts built=%d dropped_empty=%d", len(drafts), dropped)
    return drafts


def find_integrity_violations(drafts: Iterable[RecordDraft]) -> list[RecordDraft]:
    """Drafts carrying a non-UUID value in any identifier field."""

    return [
        d
        for d in drafts
        if any(v is not None and not is_valid_uuid(v) for v in d.identifier_values().values())
    ]


def check_integrity(drafts: Sequence[RecordDraft]) -> None:
    """Reject the whole batch when any draft fails :func:`find_integrity_violations`."""

    bad = find_integrity_violations(drafts)
    if bad:
        _logger.warning(
            "integrity check failed offending=%d rows=%s",
            len(bad),
            ",".join(str(d.row_index) for d in bad[:20]),
        )
        raise IntegrityViolationError(len(bad))


__all__ = [
    "DEFAULT_DESCRIPTION",
    "build_record_drafts",
    "check_integrity",
    "find_integrity_violations",
    "row_values",
]
