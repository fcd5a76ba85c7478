"""Free-text cell → catalog identifier.

Resolution order for an identifier field (first hit wins):

1. explicit null placeholders (``None``, ``""``, ``"Sin asignar"``,
   ``"empty-placeholder"``) → ``None``;
2. a manual override recorded for ``(field, trimmed text)``;
3. the matching strategies (exact, substring, similarity) against the field
   index;
4. the raw text itself when it already is a known identifier of the field.

Whatever comes out of 2–4 must be a syntactically valid UUID; anything else is
discarded (``None``) so raw text never reaches a record.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from typing import Any, Final

from .catalog import ReferenceCatalog
from .logging_setup import get_logger
from .matching import DEFAULT_STRATEGIES, MatchStrategy
from .models import TargetField
from .normalizers import normalize_text

_logger = get_logger("movement_import.normalizer")

NULL_PLACEHOLDERS: Final[frozenset[str]] = frozenset({"", "Sin asignar", "empty-placeholder"})

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def is_valid_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def is_null_placeholder(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and value.strip() in NULL_PLACEHOLDERS


def override_key(value: Any) -> str:
    """Trimmed text of a cell, the key under which overrides are stored."""

    return str(value).strip()


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "UNSET"


# Sentinel: the operator chose to leave a value without identifier.
UNSET: Final = _Unset()

type Resolution = str | _Unset


class ManualOverrides:
    """Operator decisions keyed by ``(field, trimmed original text)``."""

    __slots__ = ("_data",)

    def __init__(self) -> None:
        self._data: dict[tuple[TargetField, str], Resolution] = {}

    def __contains__(self, key: tuple[TargetField, Any]) -> bool:
        field, raw = key
        return (field, override_key(raw)) in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[tuple[tuple[TargetField, str], Resolution]]:
        return iter(self._data.items())

    def get(self, field: TargetField, raw: Any) -> Resolution | None:
        return self._data.get((field, override_key(raw)))

    def bind(self, field: TargetField, raw: Any, identifier: str) -> None:
        self._data[(field, override_key(raw))] = identifier

    def leave_unset(self, field: TargetField, raw: Any) -> None:
        self._data[(field, override_key(raw))] = UNSET


class ValueNormalizer:
    """Resolve identifier-field cells against a :class:`ReferenceCatalog`."""

    def __init__(
        self,
        catalog: ReferenceCatalog,
        overrides: ManualOverrides | None = None,
        *,
        strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
    ) -> None:
        self.catalog = catalog
        self.overrides = overrides if overrides is not None else ManualOverrides()
        self.strategies = tuple(strategies)

    def _match(self, field: TargetField, text: str) -> str | None:
        key = normalize_text(text)
        index = self.catalog.index(field)
        for strategy in self.strategies:
            hit = strategy.match(key, index)
            if hit is not None:
                _logger.debug(
                    "match field=%s strategy=%s value=%r -> %s",
                    field.value,
                    strategy.name,
                    text,
                    hit,
                )
                return hit
        if text in self.catalog.ids(field):
            return text
        return None

    def resolve(self, field: TargetField, value: Any) -> str | None:
        """Return the identifier for ``value`` in ``field`` or ``None``."""

        if is_null_placeholder(value):
            return None
        text = override_key(value)

        manual = self.overrides.get(field, text)
        if manual is not None:
            resolved: Resolution | None = manual
        else:
            resolved = self._match(field, text)

        if resolved is None or isinstance(resolved, _Unset):
            return None
        if not is_valid_uuid(resolved):
            _logger.warning(
                "discarding non-identifier resolution field=%s value=%r resolved=%r",
                field.value,
                text,
                resolved,
            )
            return None
        return resolved

    def is_unresolved(self, field: TargetField, value: Any) -> bool:
        """True when ``value`` needs operator attention (not a placeholder, no override, no match)."""

        if is_null_placeholder(value) or (field, value) in self.overrides:
            return False
        return self.resolve(field, value) is None


__all__ = [
    "ManualOverrides",
    "NULL_PLACEHOLDERS",
    "Resolution",
    "UNSET",
    "ValueNormalizer",
    "is_null_placeholder",
    "is_valid_uuid",
    "override_key",
]
