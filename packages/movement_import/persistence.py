# ruff: noqa: I001
"""Persistence integration for movement_import.

Writes imported movements to the shared database owned by ``libs/db`` using
the ORM models in ``db.models.movements`` and sessions from ``db.client``.

Scope:
- Insert a batch of :class:`ImportRecord` rows into ``movements`` in one
  statement inside one transaction (all-or-nothing).
- Surface storage failures as :class:`BatchWriteError` carrying the driver's
  message verbatim. Amounts too large for the numeric columns fail the
  same way, before anything reaches the database.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Any, Protocol

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.client import session_scope
from db.models.movements import Movement
from .errors import BatchWriteError
from .logging_setup import get_logger
from .models import ImportRecord

_logger = get_logger("movement_import.persistence")

# Numeric(18, s) columns: quantize raises InvalidOperation past 18 digits.
_COLUMN_CONTEXT = Context(prec=18)


class BatchWriter(Protocol):
    def insert(self, records: Sequence[ImportRecord]) -> int: ...


def _to_decimal(value: float | None, places: str) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(
        Decimal(places), rounding=ROUND_HALF_UP, context=_COLUMN_CONTEXT
    )


def _payload(record: ImportRecord) -> dict[str, Any]:
    data = record.model_dump()
    data["amount"] = _to_decimal(record.amount, "0.01")
    data["exchange_rate"] = _to_decimal(record.exchange_rate, "0.000001")
    return data


def insert_movements(session: Session, records: Sequence[ImportRecord]) -> int:
    """Insert ``records`` with a single executemany; caller owns the transaction."""

    if not records:
        return 0
    payloads = [{"id": uuid.uuid4(), **_payload(r)} for r in records]
    session.execute(insert(Movement), payloads)
    return len(payloads)


def _storage_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class MovementWriter:
    """SQLAlchemy-backed :class:`BatchWriter` bound to a database URL."""

    def __init__(self, *, database_url: str | None = None) -> None:
        self.database_url = database_url

    def insert(self, records: Sequence[ImportRecord]) -> int:
        try:
            with session_scope(database_url=self.database_url) as session:
                count = insert_movements(session, records)
        except InvalidOperation as e:
            message = "amount or exchange rate does not fit the movements numeric columns"
            _logger.error("batch insert failed records=%d error=%s", len(records), message)
            raise BatchWriteError(message) from e
        except SQLAlchemyError as e:
            message = _storage_message(e)
            _logger.error("batch insert failed records=%d error=%s", len(records), message)
            raise BatchWriteError(message) from e
        _logger.info("batch insert ok inserted=%d", count)
        return count


__all__ = ["BatchWriter", "MovementWriter", "insert_movements"]
