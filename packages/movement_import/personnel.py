"""Personnel pay lookups: effective rates, pending payments and the batch fan-out.

``fetch_personnel_batch`` validates that every requested person belongs to the
organization and project, then runs the per-person lookups concurrently on a
bounded thread pool. Each lookup opens its own session and writes to its own
key; a failing lookup is logged and replaced by a safe default (``None`` for a
rate, an empty breakdown for pending payments) without affecting the others.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, TypedDict, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import PersonnelScopeError
from .logging_setup import get_logger

_logger = get_logger("movement_import.personnel")

DEFAULT_CURRENCY = "ARS"
HOURS_PER_DAY = 8
HOURS_PER_MONTH = 160  # 20 days x 8 hours

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class EffectiveRate:
    id: str
    source: str  # "personnel" or "labor_type"
    pay_type: str
    rate_hour: float | None
    rate_day: float | None
    rate_month: float | None
    currency_code: str | None
    valid_from: date
    valid_to: date | None

    @property
    def rate_value(self) -> float:
        return getattr(self, f"rate_{self.pay_type}", None) or 0.0

    def amount_for_hours(self, hours: float) -> float:
        if self.pay_type == "hour":
            return hours * self.rate_value
        if self.pay_type == "day":
            return hours / HOURS_PER_DAY * self.rate_value
        if self.pay_type == "month":
            return hours / HOURS_PER_MONTH * self.rate_value
        return 0.0

    def as_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["valid_from"] = self.valid_from.isoformat()
        d["valid_to"] = self.valid_to.isoformat() if self.valid_to else None
        return d


class PendingPayments(TypedDict):
    total_owed_by_currency: dict[str, float]
    total_paid_by_currency: dict[str, float]
    pending_by_currency: dict[str, float]
    details: list[dict[str, Any]]


def empty_pending() -> PendingPayments:
    return {
        "total_owed_by_currency": {},
        "total_paid_by_currency": {},
        "pending_by_currency": {},
        "details": [],
    }


def _f(v: Decimal | float | None) -> float | None:
    return float(v) if v is not None else None


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


# ----------------------------------------------------------------------------
# Single-person lookups
# ----------------------------------------------------------------------------


def get_effective_rate(
    session: Session,
    personnel_id: uuid.UUID | str,
    on_date: date,
    organization_id: uuid.UUID | str,
) -> EffectiveRate | None:
    """Return the rate active on ``on_date``.

    A personnel-specific rate wins; otherwise the labor-type rate (a row with
    no ``personnel_id``) of the person's labor type. Among candidates the one
    with the latest ``valid_from`` is used.
    """

    from db.models.movements import Currency, PersonnelRate, ProjectPersonnel  # local import

    pid = _as_uuid(personnel_id)
    org = _as_uuid(organization_id)
    active_on = (
        (PersonnelRate.organization_id == org)
        & PersonnelRate.is_active.is_(True)
        & (PersonnelRate.valid_from <= on_date)
        & (PersonnelRate.valid_to.is_(None) | (PersonnelRate.valid_to >= on_date))
    )
    base = (
        select(PersonnelRate, Currency.code)
        .outerjoin(Currency, Currency.id == PersonnelRate.currency_id)
        .order_by(PersonnelRate.valid_from.desc())
        .limit(1)
    )

    hit = session.execute(base.where(active_on, PersonnelRate.personnel_id == pid)).first()
    source = "personnel"
    if hit is None:
        labor_type_id = session.execute(
            select(ProjectPersonnel.labor_type_id).where(ProjectPersonnel.id == pid)
        ).scalar_one_or_none()
        if labor_type_id is None:
            return None
        hit = session.execute(
            base.where(
                active_on,
                PersonnelRate.personnel_id.is_(None),
                PersonnelRate.labor_type_id == labor_type_id,
            )
        ).first()
        source = "labor_type"
        if hit is None:
            return None

    rate, currency_code = hit
    return EffectiveRate(
        id=str(rate.id),
        source=source,
        pay_type=rate.pay_type,
        rate_hour=_f(rate.rate_hour),
        rate_day=_f(rate.rate_day),
        rate_month=_f(rate.rate_month),
        currency_code=currency_code,
        valid_from=rate.valid_from,
        valid_to=rate.valid_to,
    )


def calculate_pending_payments(
    session: Session,
    project_id: uuid.UUID | str,
    personnel_id: uuid.UUID | str,
    organization_id: uuid.UUID | str,
) -> PendingPayments:
    """Owed (attendance hours x rate active that day) minus paid, per currency."""

    from db.models.movements import PersonnelAttendance, PersonnelPayment  # local import

    pid, proj, org = _as_uuid(personnel_id), _as_uuid(project_id), _as_uuid(organization_id)
    scope = (
        lambda model: (model.personnel_id == pid)
        & (model.project_id == proj)
        & (model.organization_id == org)
    )

    attendances = (
        session.execute(
            select(PersonnelAttendance)
            .where(scope(PersonnelAttendance))
            .order_by(PersonnelAttendance.created_at)
        )
        .scalars()
        .all()
    )

    result = empty_pending()
    owed = result["total_owed_by_currency"]
    for att in attendances:
        att_date = att.attendance_date or att.created_at.date()
        rate = get_effective_rate(session, pid, att_date, org)
        if rate is None:
            continue
        hours = float(att.hours_worked or 0)
        amount = rate.amount_for_hours(hours)
        code = rate.currency_code or DEFAULT_CURRENCY
        owed[code] = owed.get(code, 0.0) + amount
        result["details"].append(
            {
                "attendance_id": str(att.id),
                "date": att_date.isoformat(),
                "hours_worked": hours,
                "rate_used": {
                    "pay_type": rate.pay_type,
                    "rate_value": rate.rate_value,
                    "currency": code,
                },
                "amount_owed": amount,
            }
        )

    paid = result["total_paid_by_currency"]
    for amount, code in session.execute(
        select(PersonnelPayment.amount, PersonnelPayment.currency_code).where(
            scope(PersonnelPayment)
        )
    ).all():
        key = code or DEFAULT_CURRENCY
        paid[key] = paid.get(key, 0.0) + float(amount or 0)

    for code in dict.fromkeys([*owed, *paid]):
        result["pending_by_currency"][code] = owed.get(code, 0.0) - paid.get(code, 0.0)
    return result


def create_personnel_rate(
    session: Session,
    *,
    organization_id: uuid.UUID | str,
    pay_type: str,
    rate_value: float,
    valid_from: date,
    personnel_id: uuid.UUID | str | None = None,
    labor_type_id: uuid.UUID | str | None = None,
    currency_id: uuid.UUID | str | None = None,
    valid_to: date | None = None,
) -> str:
    """Create a rate, closing the currently open rate of the same person.

    The open rate (``valid_to`` NULL) gets ``valid_to = valid_from - 1 day``.
    """

    from db.models.movements import PersonnelRate  # local import

    if pay_type not in ("hour", "day", "month"):
        raise ValueError(f"invalid pay_type: {pay_type!r}")
    if valid_to is not None and valid_from > valid_to:
        raise ValueError("valid_from must be less than or equal to valid_to")
    if personnel_id is None and labor_type_id is None:
        raise ValueError("a rate needs a personnel_id or a labor_type_id")

    org = _as_uuid(organization_id)
    pid = _as_uuid(personnel_id) if personnel_id is not None else None
    if pid is not None:
        open_rates = (
            session.execute(
                select(PersonnelRate).where(
                    PersonnelRate.personnel_id == pid,
                    PersonnelRate.organization_id == org,
                    PersonnelRate.is_active.is_(True),
                    PersonnelRate.valid_to.is_(None),
                )
            )
            .scalars()
            .all()
        )
        for r in open_rates:
            r.valid_to = max(r.valid_from, valid_from - timedelta(days=1))

    row = PersonnelRate(
        organization_id=org,
        personnel_id=pid,
        labor_type_id=_as_uuid(labor_type_id) if labor_type_id is not None else None,
        pay_type=pay_type,
        currency_id=_as_uuid(currency_id) if currency_id is not None else None,
        valid_from=valid_from,
        valid_to=valid_to,
        **{f"rate_{pay_type}": Decimal(str(rate_value))},
    )
    session.add(row)
    session.flush()
    return str(row.id)


# ----------------------------------------------------------------------------
# Batch fan-out
# ----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PersonnelBatch:
    rates: dict[str, dict[str, Any] | None]
    pending: dict[str, PendingPayments]

    def as_dict(self) -> dict[str, Any]:
        return {"rates": self.rates, "pending": self.pending}


def resolve_max_workers(n_items: int, requested: int | None = None) -> int:
    """Worker count: explicit value, else ``MI_PERSONNEL_MAX_WORKERS``, else min(8, n).

    Always capped to ``n_items`` and 32, and at least 1.
    """

    import os  # defer import to keep module import surface minimal

    if requested is None:
        env_workers = os.getenv("MI_PERSONNEL_MAX_WORKERS")
        try:
            requested = int(env_workers) if env_workers else None
        except ValueError:
            requested = None
    if requested is not None and requested > 0:
        return max(1, min(requested, n_items, 32))
    return max(1, min(8, n_items))


def _fan_out(
    keys: Sequence[str],
    lookup: Callable[[str], T],
    *,
    default: Callable[[], T],
    concurrency: int,
    label: str,
) -> dict[str, T]:
    """Run ``lookup`` per key concurrently; failures become ``default()`` for that key."""

    out: dict[str, T] = {}
    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        futures = {pool.submit(lookup, k): k for k in keys}
        for fut in as_completed(futures):
            key = futures[fut]
            try:
                out[key] = fut.result()
            except Exception:
                _logger.error("%s lookup failed personnel_id=%s", label, key, exc_info=True)
                out[key] = default()
    # Input order for deterministic output
    return {k: out[k] for k in keys}


def validate_personnel_scope(
    session: Session,
    personnel_ids: Sequence[uuid.UUID],
    *,
    organization_id: uuid.UUID,
    project_id: uuid.UUID,
) -> None:
    from db.models.movements import ProjectPersonnel  # local import

    rows = session.execute(
        select(
            ProjectPersonnel.id, ProjectPersonnel.organization_id, ProjectPersonnel.project_id
        ).where(ProjectPersonnel.id.in_(personnel_ids))
    ).all()
    invalid = [
        str(pid) for pid, org, proj in rows if org != organization_id or proj != project_id
    ]
    if invalid:
        raise PersonnelScopeError(sorted(invalid))


def fetch_personnel_batch(
    personnel_ids: Sequence[uuid.UUID | str],
    *,
    organization_id: uuid.UUID | str,
    project_id: uuid.UUID | str,
    on_date: date | None = None,
    database_url: str | None = None,
    max_workers: int | None = None,
) -> PersonnelBatch:
    """Active rates and pending payments for many personnel at once.

    Raises
    ------
    PersonnelScopeError
        When any known id belongs to another organization or project.
    ValueError
        When an id is not a UUID.
    """

    from db.client import session_scope  # local import

    ids = [_as_uuid(p) for p in dict.fromkeys(personnel_ids)]
    if not ids:
        return PersonnelBatch(rates={}, pending={})
    org, proj = _as_uuid(organization_id), _as_uuid(project_id)
    effective_date = on_date or date.today()

    with session_scope(database_url=database_url) as s:
        validate_personnel_scope(s, ids, organization_id=org, project_id=proj)

    def _rate(key: str) -> dict[str, Any] | None:
        with session_scope(database_url=database_url) as s:
            rate = get_effective_rate(s, key, effective_date, org)
        return rate.as_dict() if rate is not None else None

    def _pending(key: str) -> PendingPayments:
        with session_scope(database_url=database_url) as s:
            return calculate_pending_payments(s, proj, key, org)

    keys = [str(i) for i in ids]
    workers = resolve_max_workers(len(keys), max_workers)
    rates = _fan_out(keys, _rate, default=lambda: None, concurrency=workers, label="rate")
    pending = _fan_out(
        keys, _pending, default=empty_pending, concurrency=workers, label="pending"
    )
    _logger.info(
        "personnel batch organization_id=%s project_id=%s n=%d workers=%d",
        org,
        proj,
        len(keys),
        workers,
    )
    return PersonnelBatch(rates=rates, pending=pending)


__all__ = [
    "EffectiveRate",
    "PendingPayments",
    "PersonnelBatch",
    "calculate_pending_payments",
    "create_personnel_rate",
    "empty_pending",
    "fetch_personnel_batch",
    "get_effective_rate",
    "resolve_max_workers",
    "validate_personnel_scope",
]
