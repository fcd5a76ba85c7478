"""Derived views over ``movements`` and their on-disk cache.

Views
-----
- ``movements``: movement count and the most recent movements.
- ``wallet-currency-balances``: balance per (wallet, currency).
- ``wallet-balances``: per wallet, balances keyed by currency code.
- ``financial-summary``: per movement type, totals keyed by currency code.

Amounts of types whose name contains "egreso" count negatively in balances.

Cache layout (relative to the cache root, default ``./.cache/views``)::

    <cache_root>/<organization_id>/<view>.json

Writes go to ``.tmp`` first and are ``os.replace``-d into place. A successful
import calls :func:`invalidate_views` so the next read recomputes.
"""

from __future__ import annotations

import contextlib
import json
import os
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased

from .logging_setup import get_logger
from .normalizers import normalize_text

SCHEMA_VERSION: int = 1

MOVEMENTS_VIEW = "movements"
WALLET_CURRENCY_BALANCES_VIEW = "wallet-currency-balances"
WALLET_BALANCES_VIEW = "wallet-balances"
FINANCIAL_SUMMARY_VIEW = "financial-summary"

# Views invalidated after a successful import.
IMPORT_INVALIDATED_VIEWS: tuple[str, ...] = (
    MOVEMENTS_VIEW,
    WALLET_CURRENCY_BALANCES_VIEW,
    WALLET_BALANCES_VIEW,
    FINANCIAL_SUMMARY_VIEW,
)

_logger = get_logger("movement_import.views")


class ViewCacheFile(BaseModel):
    schema_version: int
    organization_id: str
    view: str
    computed_at: datetime
    rows: list[dict[str, Any]]


# ----------------------------------------------------------------------------
# Cache root and paths
# ----------------------------------------------------------------------------


def _get_cache_root() -> Path:
    """Return the view-cache root (``MI_CACHE_DIR`` or ``./.cache/views``)."""

    root = os.getenv("MI_CACHE_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".cache" / "views").resolve()


def _view_path(organization_id: uuid.UUID | str, view: str) -> Path:
    # Parsing as UUID rejects path traversal through the organization id.
    org = str(uuid.UUID(str(organization_id)))
    if view not in IMPORT_INVALIDATED_VIEWS:
        raise ValueError(f"unknown view: {view!r}")
    return _get_cache_root() / org / f"{view}.json"


def read_view(organization_id: uuid.UUID | str, view: str) -> list[dict[str, Any]] | None:
    """Return cached rows or ``None`` on a miss (absent, unreadable or stale schema)."""

    path = _view_path(organization_id, view)
    if not path.exists():
        return None
    try:
        parsed = ViewCacheFile.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValidationError):
        _logger.debug("view_cache:read_failed path=%s", os.fspath(path), exc_info=True)
        return None
    if parsed.schema_version != SCHEMA_VERSION or parsed.view != view:
        return None
    return parsed.rows


def write_view(organization_id: uuid.UUID | str, view: str, rows: list[dict[str, Any]]) -> None:
    path = _view_path(organization_id, view)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    payload = ViewCacheFile(
        schema_version=SCHEMA_VERSION,
        organization_id=str(organization_id),
        view=view,
        computed_at=datetime.now(UTC),
        rows=rows,
    )
    try:
        tmp.write_text(
            json.dumps(payload.model_dump(mode="json"), ensure_ascii=False, separators=(",", ":")),
            encoding="utf-8",
        )
        os.replace(tmp, path)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise


def invalidate_views(organization_id: uuid.UUID | str, views: Iterable[str]) -> list[str]:
    """Delete cached snapshots; returns the names that were actually present."""

    removed: list[str] = []
    for view in views:
        path = _view_path(organization_id, view)
        try:
            path.unlink()
            removed.append(view)
        except FileNotFoundError:
            continue
    _logger.info("views invalidated organization_id=%s removed=%s", organization_id, removed)
    return removed


# ----------------------------------------------------------------------------
# Computation
# ----------------------------------------------------------------------------


def _sign(type_name: str | None) -> int:
    return -1 if type_name and "egreso" in normalize_text(type_name) else 1


def _movement_rows(session: Session, organization_id: uuid.UUID) -> list[Any]:
    from db.models.movements import (  # local import
        Currency,
        Movement,
        MovementConcept,
        OrganizationCurrency,
        OrganizationWallet,
        Wallet,
    )

    type_concept = aliased(MovementConcept)
    stmt = (
        select(
            Movement.id,
            Movement.movement_date,
            Movement.description,
            Movement.amount,
            Movement.type_id,
            type_concept.name.label("type_name"),
            Movement.wallet_id,
            Wallet.name.label("wallet_name"),
            Movement.currency_id,
            Currency.code.label("currency_code"),
        )
        .outerjoin(type_concept, type_concept.id == Movement.type_id)
        .outerjoin(OrganizationWallet, OrganizationWallet.id == Movement.wallet_id)
        .outerjoin(Wallet, Wallet.id == OrganizationWallet.wallet_id)
        .outerjoin(OrganizationCurrency, OrganizationCurrency.id == Movement.currency_id)
        .outerjoin(Currency, Currency.id == OrganizationCurrency.currency_id)
        .where(Movement.organization_id == organization_id)
        .order_by(Movement.movement_date.desc(), Movement.created_at.desc())
    )
    return list(session.execute(stmt).all())


def _id(v: Any) -> str | None:
    return str(v) if v is not None else None


def compute_movements(session: Session, organization_id: uuid.UUID, *, recent: int = 50):
    from db.models.movements import Movement  # local import

    total = session.execute(
        select(func.count()).select_from(Movement).where(Movement.organization_id == organization_id)
    ).scalar_one()
    rows = _movement_rows(session, organization_id)[:recent]
    return [
        {
            "total": int(total),
            "recent": [
                {
                    "id": str(r.id),
                    "movement_date": r.movement_date.isoformat(),
                    "description": r.description,
                    "amount": float(r.amount),
                    "type": r.type_name,
                    "wallet": r.wallet_name,
                    "currency": r.currency_code,
                }
                for r in rows
            ],
        }
    ]


def compute_wallet_currency_balances(session: Session, organization_id: uuid.UUID):
    acc: dict[tuple[str | None, str | None], dict[str, Any]] = {}
    for r in _movement_rows(session, organization_id):
        key = (_id(r.wallet_id), _id(r.currency_id))
        row = acc.setdefault(
            key,
            {
                "wallet_id": key[0],
                "wallet": r.wallet_name,
                "currency_id": key[1],
                "currency": r.currency_code,
                "balance": 0.0,
            },
        )
        row["balance"] += _sign(r.type_name) * float(r.amount)
    return sorted(acc.values(), key=lambda x: (x["wallet"] or "", x["currency"] or ""))


def compute_wallet_balances(session: Session, organization_id: uuid.UUID):
    acc: dict[str | None, dict[str, Any]] = {}
    for r in _movement_rows(session, organization_id):
        wid = _id(r.wallet_id)
        row = acc.setdefault(
            wid, {"wallet_id": wid, "wallet": r.wallet_name, "movements": 0, "balances": {}}
        )
        code = r.currency_code or "?"
        row["movements"] += 1
        row["balances"][code] = row["balances"].get(code, 0.0) + _sign(r.type_name) * float(
            r.amount
        )
    return sorted(acc.values(), key=lambda x: x["wallet"] or "")


def compute_financial_summary(session: Session, organization_id: uuid.UUID):
    acc: dict[str | None, dict[str, Any]] = {}
    for r in _movement_rows(session, organization_id):
        tid = _id(r.type_id)
        row = acc.setdefault(
            tid, {"type_id": tid, "type": r.type_name, "movements": 0, "totals": {}}
        )
        code = r.currency_code or "?"
        row["movements"] += 1
        row["totals"][code] = row["totals"].get(code, 0.0) + float(r.amount)
    return sorted(acc.values(), key=lambda x: x["type"] or "")


_COMPUTE: dict[str, Callable[[Session, uuid.UUID], list[dict[str, Any]]]] = {
    MOVEMENTS_VIEW: compute_movements,
    WALLET_CURRENCY_BALANCES_VIEW: compute_wallet_currency_balances,
    WALLET_BALANCES_VIEW: compute_wallet_balances,
    FINANCIAL_SUMMARY_VIEW: compute_financial_summary,
}


def get_view(
    view: str, organization_id: uuid.UUID, *, database_url: str | None = None
) -> list[dict[str, Any]]:
    """Return the cached view, computing and caching it on a miss."""

    cached = read_view(organization_id, view)
    if cached is not None:
        return cached
    if view not in _COMPUTE:
        raise ValueError(f"unknown view: {view!r}")

    from db.client import session_scope  # local import

    with session_scope(database_url=database_url) as session:
        rows = _COMPUTE[view](session, organization_id)
    write_view(organization_id, view, rows)
    _logger.debug("view computed organization_id=%s view=%s rows=%d", organization_id, view, len(rows))
    return rows


__all__ = [
    "FINANCIAL_SUMMARY_VIEW",
    "IMPORT_INVALIDATED_VIEWS",
    "MOVEMENTS_VIEW",
    "WALLET_BALANCES_VIEW",
    "WALLET_CURRENCY_BALANCES_VIEW",
    "get_view",
    "invalidate_views",
    "read_view",
    "write_view",
]
