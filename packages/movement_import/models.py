"""Data models and type aliases for ``movement_import``.

Field identity and field kind live here so every stage (mapper, normalizer,
resolver, submitter) agrees on which target fields exist and how each one is
parsed. ``ImportRecord`` is the validated, write-ready shape; identifier
fields are typed as ``uuid.UUID`` so free text can never reach storage.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TargetField(StrEnum):
    MOVEMENT_DATE = "movement_date"
    DESCRIPTION = "description"
    AMOUNT = "amount"
    CURRENCY_ID = "currency_id"
    WALLET_ID = "wallet_id"
    TYPE_ID = "type_id"
    CATEGORY_ID = "category_id"
    SUBCATEGORY_ID = "subcategory_id"
    EXCHANGE_RATE = "exchange_rate"


class FieldKind(StrEnum):
    """How a cell destined for a field is interpreted."""

    DATE = "date"
    AMOUNT = "amount"
    TEXT = "text"
    IDENTIFIER = "identifier"


FIELD_KINDS: dict[TargetField, FieldKind] = {
    TargetField.MOVEMENT_DATE: FieldKind.DATE,
    TargetField.DESCRIPTION: FieldKind.TEXT,
    TargetField.AMOUNT: FieldKind.AMOUNT,
    TargetField.EXCHANGE_RATE: FieldKind.AMOUNT,
    TargetField.CURRENCY_ID: FieldKind.IDENTIFIER,
    TargetField.WALLET_ID: FieldKind.IDENTIFIER,
    TargetField.TYPE_ID: FieldKind.IDENTIFIER,
    TargetField.CATEGORY_ID: FieldKind.IDENTIFIER,
    TargetField.SUBCATEGORY_ID: FieldKind.IDENTIFIER,
}

IDENTIFIER_FIELDS: tuple[TargetField, ...] = tuple(
    f for f, kind in FIELD_KINDS.items() if kind is FieldKind.IDENTIFIER
)

# Operator-facing labels (Spanish, as shown in the import dialog).
FIELD_LABELS: dict[TargetField, str] = {
    TargetField.MOVEMENT_DATE: "Fecha",
    TargetField.DESCRIPTION: "Descripción",
    TargetField.AMOUNT: "Cantidad",
    TargetField.CURRENCY_ID: "Moneda",
    TargetField.WALLET_ID: "Billetera",
    TargetField.TYPE_ID: "Tipo",
    TargetField.CATEGORY_ID: "Categoría",
    TargetField.SUBCATEGORY_ID: "Subcategoría",
    TargetField.EXCHANGE_RATE: "Cotización",
}


def kind_of(field: TargetField) -> FieldKind:
    return FIELD_KINDS[field]


# ---------------------------------------------------------------------------
# Parsed input
# ---------------------------------------------------------------------------


type Cell = Any
"""A raw cell: ``str``, ``int``/``float``, ``datetime``/``date`` or ``None``."""


@dataclass(frozen=True, slots=True)
class ParsedFile:
    """Rectangular view of an uploaded file.

    ``headers`` holds the trimmed, non-empty header texts. Each row in
    ``rows`` keeps the raw cells of those same columns, so ``row[i]`` sits
    under ``headers[i]``.
    """

    file_name: str
    headers: tuple[str, ...]
    rows: tuple[tuple[Cell, ...], ...]

    def cell(self, row_index: int, column_index: int) -> Cell:
        row = self.rows[row_index]
        return row[column_index] if column_index < len(row) else None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class RecordDraft:
    """A row converted to field values but not yet validated for writing.

    Identifier fields hold whatever the normalizer produced (expected to be a
    UUID string or ``None``); the submitter's integrity pass checks them.
    """

    row_index: int
    movement_date: date
    description: str
    amount: float
    exchange_rate: float | None = None
    currency_id: str | None = None
    wallet_id: str | None = None
    type_id: str | None = None
    category_id: str | None = None
    subcategory_id: str | None = None

    def identifier_values(self) -> dict[TargetField, str | None]:
        return {f: getattr(self, f.value) for f in IDENTIFIER_FIELDS}


class ImportContext(BaseModel):
    """Organization/project/creator scope stamped on every imported record."""

    model_config = ConfigDict(frozen=True)

    organization_id: uuid.UUID
    project_id: uuid.UUID | None = None
    created_by: uuid.UUID


class ImportRecord(BaseModel):
    """Write-ready movement row."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    organization_id: uuid.UUID
    project_id: uuid.UUID | None = None
    created_by: uuid.UUID
    movement_date: date
    description: str = Field(min_length=1)
    amount: float
    exchange_rate: float | None = None
    currency_id: uuid.UUID | None = None
    wallet_id: uuid.UUID | None = None
    type_id: uuid.UUID | None = None
    category_id: uuid.UUID | None = None
    subcategory_id: uuid.UUID | None = None
    is_favorite: bool = False

    @classmethod
    def from_draft(cls, draft: RecordDraft, context: ImportContext) -> ImportRecord:
        return cls(
            organization_id=context.organization_id,
            project_id=context.project_id,
            created_by=context.created_by,
            movement_date=draft.movement_date,
            description=draft.description,
            amount=draft.amount,
            exchange_rate=draft.exchange_rate,
            currency_id=draft.currency_id,
            wallet_id=draft.wallet_id,
            type_id=draft.type_id,
            category_id=draft.category_id,
            subcategory_id=draft.subcategory_id,
        )


__all__ = [
    "Cell",
    "FIELD_KINDS",
    "FIELD_LABELS",
    "FieldKind",
    "IDENTIFIER_FIELDS",
    "ImportContext",
    "ImportRecord",
    "ParsedFile",
    "RecordDraft",
    "TargetField",
    "kind_of",
]
