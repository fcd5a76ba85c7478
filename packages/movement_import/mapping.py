"""Column → target-field assignment.

``ColumnMapping`` starts empty; :meth:`ColumnMapping.auto_assign` fills it from
header synonyms exactly once (it is a no-op when anything is already mapped),
and the operator then edits individual columns. Duplicate assignments are
allowed while editing and rejected by :meth:`ColumnMapping.validate`.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator, Sequence

from .errors import MappingValidationError
from .logging_setup import get_logger
from .models import FIELD_LABELS, TargetField
from .normalizers import normalize_text

_logger = get_logger("movement_import.mapping")

# Normalized header text → field. Keys are already in ``normalize_text`` form,
# so "Descripción" and "descripcion" both hit "descripcion".
HEADER_SYNONYMS: dict[str, TargetField] = {
    "descripcion": TargetField.DESCRIPTION,
    "concepto": TargetField.DESCRIPTION,
    "detalle": TargetField.DESCRIPTION,
    "description": TargetField.DESCRIPTION,
    "cantidad": TargetField.AMOUNT,
    "monto": TargetField.AMOUNT,
    "importe": TargetField.AMOUNT,
    "total": TargetField.AMOUNT,
    "valor": TargetField.AMOUNT,
    "amount": TargetField.AMOUNT,
    "fecha": TargetField.MOVEMENT_DATE,
    "date": TargetField.MOVEMENT_DATE,
    "tipo": TargetField.TYPE_ID,
    "type": TargetField.TYPE_ID,
    "categoria": TargetField.CATEGORY_ID,
    "category": TargetField.CATEGORY_ID,
    "subcategoria": TargetField.SUBCATEGORY_ID,
    "subcategory": TargetField.SUBCATEGORY_ID,
    "moneda": TargetField.CURRENCY_ID,
    "currency": TargetField.CURRENCY_ID,
    "fiat": TargetField.CURRENCY_ID,
    "billetera": TargetField.WALLET_ID,
    "wallet": TargetField.WALLET_ID,
    "cuenta": TargetField.WALLET_ID,
    "cotizacion": TargetField.EXCHANGE_RATE,
    "tasa": TargetField.EXCHANGE_RATE,
    "rate": TargetField.EXCHANGE_RATE,
}


def suggest_field(header: str) -> TargetField | None:
    """Return the synonym match for ``header`` (exact on the normalized text)."""

    return HEADER_SYNONYMS.get(normalize_text(header))


class ColumnMapping:
    """Mutable column-index → :class:`TargetField` assignment for one session."""

    __slots__ = ("_assigned", "_column_count")

    def __init__(self, column_count: int) -> None:
        self._column_count = column_count
        self._assigned: dict[int, TargetField] = {}

    # ---- inspection -------------------------------------------------------

    def __len__(self) -> int:
        return len(self._assigned)

    def __iter__(self) -> Iterator[tuple[int, TargetField]]:
        return iter(sorted(self._assigned.items()))

    def get(self, column: int) -> TargetField | None:
        return self._assigned.get(column)

    def column_for(self, field: TargetField) -> int | None:
        """Return the lowest column index mapped to ``field`` (``None`` if unmapped)."""

        cols = [c for c, f in sorted(self._assigned.items()) if f is field]
        return cols[0] if cols else None

    def as_dict(self) -> dict[int, TargetField]:
        return dict(self._assigned)

    # ---- editing ----------------------------------------------------------

    def _check_column(self, column: int) -> None:
        if not 0 <= column < self._column_count:
            raise IndexError(f"column {column} out of range (0..{self._column_count - 1})")

    def set(self, column: int, field: TargetField | str | None) -> None:
        """Assign ``field`` to ``column``; ``None`` means "do not map"."""

        self._check_column(column)
        if field is None:
            self._assigned.pop(column, None)
            return
        self._assigned[column] = TargetField(field)

    def clear(self, column: int) -> None:
        self.set(column, None)

    def auto_assign(self, headers: Sequence[str]) -> int:
        """Fill the mapping from header synonyms when it is still empty.

        Returns the number of columns assigned by this call (``0`` when the
        mapping already had entries).
        """

        if self._assigned:
            return 0
        assigned = 0
        for idx, header in enumerate(headers[: self._column_count]):
            field = suggest_field(header)
            if field is not None:
                self._assigned[idx] = field
                assigned += 1
        _logger.debug("auto_assign mapped=%d of %d headers", assigned, len(headers))
        return assigned

    # ---- validation -------------------------------------------------------

    def problems(self) -> list[str]:
        out: list[str] = []
        if not self._assigned:
            out.append("at least one column must be mapped")
        counts = Counter(self._assigned.values())
        for field, n in sorted(counts.items(), key=lambda kv: kv[0].value):
            if n > 1:
                cols = [c for c, f in sorted(self._assigned.items()) if f is field]
                out.append(
                    f"field {FIELD_LABELS[field]!r} ({field.value}) is mapped by "
                    f"{n} columns: {', '.join(str(c) for c in cols)}"
                )
        return out

    def validate(self) -> None:
        """Raise :class:`MappingValidationError` listing every problem at once."""

        problems = self.problems()
        if problems:
            raise MappingValidationError(problems)


__all__ = ["ColumnMapping", "HEADER_SYNONYMS", "suggest_field"]
