import uuid
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from db.client import session_scope
from db.models.movements import (
    Currency,
    LaborType,
    PersonnelAttendance,
    PersonnelPayment,
    PersonnelRate,
    ProjectPersonnel,
)
from movement_import import personnel
from movement_import.errors import PersonnelScopeError
from movement_import.personnel import (
    calculate_pending_payments,
    create_personnel_rate,
    fetch_personnel_batch,
    get_effective_rate,
    resolve_max_workers,
)
from tests.helpers.db import bootstrap_sqlite_db

ORG = uuid.uuid4()
PROJECT = uuid.uuid4()


@pytest.fixture
def staff(tmp_path: Path):
    """Two people on the project plus one on another project.

    - ``hourly``: own hourly rates (800 in 2023, 1000 from 2024), 12h worked, 5000 ARS paid.
    - ``daily``: no own rate; labor-type day rate 16000 without currency, 4h worked, 100 USD paid.
    """

    url = bootstrap_sqlite_db(tmp_path / "personnel.sqlite")
    with session_scope(database_url=url) as s:
        ars = Currency(code="ARS", name="Peso Argentino")
        labor = LaborType(name="Oficial")
        s.add_all([ars, labor])
        s.flush()
        hourly = ProjectPersonnel(
            organization_id=ORG, project_id=PROJECT, full_name="Ana", labor_type_id=labor.id
        )
        daily = ProjectPersonnel(
            organization_id=ORG, project_id=PROJECT, full_name="Beto", labor_type_id=labor.id
        )
        other = ProjectPersonnel(
            organization_id=ORG, project_id=uuid.uuid4(), full_name="Ceci", labor_type_id=labor.id
        )
        s.add_all([hourly, daily, other])
        s.flush()
        s.add_all(
            [
                PersonnelRate(
                    organization_id=ORG,
                    personnel_id=hourly.id,
                    pay_type="hour",
                    rate_hour=Decimal("800"),
                    currency_id=ars.id,
                    valid_from=date(2023, 1, 1),
                    valid_to=date(2023, 12, 31),
                ),
                PersonnelRate(
                    organization_id=ORG,
                    personnel_id=hourly.id,
                    pay_type="hour",
                    rate_hour=Decimal("1000"),
                    currency_id=ars.id,
                    valid_from=date(2024, 1, 1),
                ),
                PersonnelRate(
                    organization_id=ORG,
                    personnel_id=None,
                    labor_type_id=labor.id,
                    pay_type="day",
                    rate_day=Decimal("16000"),
                    valid_from=date(2020, 1, 1),
                ),
                PersonnelAttendance(
                    organization_id=ORG,
                    project_id=PROJECT,
                    personnel_id=hourly.id,
                    attendance_date=date(2023, 6, 1),
                    hours_worked=Decimal("4"),
                ),
                PersonnelAttendance(
                    organization_id=ORG,
                    project_id=PROJECT,
                    personnel_id=hourly.id,
                    attendance_date=date(2024, 2, 1),
                    hours_worked=Decimal("8"),
                ),
                PersonnelAttendance(
                    organization_id=ORG,
                    project_id=PROJECT,
                    personnel_id=daily.id,
                    attendance_date=date(2024, 2, 1),
                    hours_worked=Decimal("4"),
                ),
                PersonnelPayment(
                    organization_id=ORG,
                    project_id=PROJECT,
                    personnel_id=hourly.id,
                    amount=Decimal("5000"),
                    currency_code="ARS",
                    paid_at=date(2024, 2, 10),
                ),
                PersonnelPayment(
                    organization_id=ORG,
                    project_id=PROJECT,
                    personnel_id=daily.id,
                    amount=Decimal("100"),
                    currency_code="USD",
                    paid_at=date(2024, 2, 10),
                ),
            ]
        )
        ids = {"hourly": str(hourly.id), "daily": str(daily.id), "other": str(other.id)}
    return url, ids


def test_effective_rate_prefers_personnel_rate_then_labor_type(staff):
    url, ids = staff
    with session_scope(database_url=url) as s:
        own = get_effective_rate(s, ids["hourly"], date(2024, 3, 1), ORG)
        old = get_effective_rate(s, ids["hourly"], date(2023, 3, 1), ORG)
        fallback = get_effective_rate(s, ids["daily"], date(2024, 3, 1), ORG)
        none = get_effective_rate(s, uuid.uuid4(), date(2024, 3, 1), ORG)
        before = get_effective_rate(s, ids["hourly"], date(2019, 1, 1), ORG)
    assert (own.source, own.pay_type, own.rate_value, own.currency_code) == (
        "personnel",
        "hour",
        1000.0,
        "ARS",
    )
    assert old.rate_value == 800.0
    assert (fallback.source, fallback.pay_type) == ("labor_type", "day")
    assert fallback.rate_value == 16000.0
    assert fallback.currency_code is None
    assert none is None
    # Nothing applies before the earliest rate starts
    assert before is None


def test_pending_payments_by_currency(staff):
    url, ids = staff
    with session_scope(database_url=url) as s:
        hourly = calculate_pending_payments(s, PROJECT, ids["hourly"], ORG)
        daily = calculate_pending_payments(s, PROJECT, ids["daily"], ORG)

    assert hourly["total_owed_by_currency"] == {"ARS": 11200.0}
    assert hourly["total_paid_by_currency"] == {"ARS": 5000.0}
    assert hourly["pending_by_currency"] == {"ARS": 6200.0}
    details = sorted(hourly["details"], key=lambda d: d["date"])
    assert [d["amount_owed"] for d in details] == [3200.0, 8000.0]
    assert details[0]["rate_used"] == {
        "pay_type": "hour",
        "rate_value": 800.0,
        "currency": "ARS",
    }

    # Day rate: 4h / 8h per day * 16000; a rate without currency counts as ARS
    assert daily["total_owed_by_currency"] == {"ARS": 8000.0}
    assert daily["pending_by_currency"] == {"ARS": 8000.0, "USD": -100.0}


def test_batch_returns_rates_and_pending_keyed_by_id(staff):
    url, ids = staff
    unknown = str(uuid.uuid4())
    batch = fetch_personnel_batch(
        [ids["hourly"], ids["daily"], unknown, ids["hourly"]],
        organization_id=ORG,
        project_id=PROJECT,
        on_date=date(2024, 3, 1),
        database_url=url,
        max_workers=3,
    )
    assert list(batch.rates) == [ids["hourly"], ids["daily"], unknown]
    assert batch.rates[ids["hourly"]]["rate_hour"] == 1000.0
    assert batch.rates[ids["hourly"]]["valid_from"] == "2024-01-01"
    assert batch.rates[ids["daily"]]["source"] == "labor_type"
    assert batch.rates[unknown] is None
    assert batch.pending[ids["hourly"]]["pending_by_currency"] == {"ARS": 6200.0}
    assert batch.pending[unknown]["details"] == []
    assert set(batch.as_dict()) == {"rates", "pending"}


def test_batch_rejects_personnel_outside_the_project(staff):
    url, ids = staff
    with pytest.raises(PersonnelScopeError) as exc:
        fetch_personnel_batch(
            [ids["hourly"], ids["other"]],
            organization_id=ORG,
            project_id=PROJECT,
            database_url=url,
        )
    assert exc.value.personnel_ids == (ids["other"],)


def test_batch_failure_in_one_lookup_uses_safe_default(staff, monkeypatch):
    url, ids = staff
    real = personnel.calculate_pending_payments

    def flaky(session, project_id, personnel_id, organization_id):
        if str(personnel_id) == ids["hourly"]:
            raise RuntimeError("boom")
        return real(session, project_id, personnel_id, organization_id)

    monkeypatch.setattr(personnel, "calculate_pending_payments", flaky)
    batch = fetch_personnel_batch(
        [ids["hourly"], ids["daily"]],
        organization_id=ORG,
        project_id=PROJECT,
        on_date=date(2024, 3, 1),
        database_url=url,
    )
    assert batch.pending[ids["hourly"]] == personnel.empty_pending()
    assert batch.pending[ids["daily"]]["pending_by_currency"]["ARS"] == 8000.0
    assert batch.rates[ids["hourly"]] is not None


def test_batch_with_no_ids_and_invalid_ids():
    assert fetch_personnel_batch([], organization_id=ORG, project_id=PROJECT).rates == {}
    with pytest.raises(ValueError):
        fetch_personnel_batch(["nope"], organization_id=ORG, project_id=PROJECT)


def test_create_rate_closes_the_open_rate(staff):
    url, ids = staff
    with session_scope(database_url=url) as s:
        new_id = create_personnel_rate(
            s,
            organization_id=ORG,
            personnel_id=ids["hourly"],
            pay_type="day",
            rate_value=9000,
            valid_from=date(2024, 6, 1),
        )
    with session_scope(database_url=url) as s:
        closed = get_effective_rate(s, ids["hourly"], date(2024, 5, 31), ORG)
        current = get_effective_rate(s, ids["hourly"], date(2024, 6, 1), ORG)
        assert s.get(PersonnelRate, uuid.UUID(new_id)).rate_hour is None
    assert closed.valid_to == date(2024, 5, 31)
    assert closed.rate_value == 1000.0
    assert (current.id, current.pay_type, current.rate_value) == (new_id, "day", 9000.0)


def test_create_rate_validates_input(staff):
    url, _ = staff
    with session_scope(database_url=url) as s:
        with pytest.raises(ValueError, match="pay_type"):
            create_personnel_rate(
                s, organization_id=ORG, pay_type="week", rate_value=1, valid_from=date(2024, 1, 1)
            )
        with pytest.raises(ValueError, match="valid_from"):
            create_personnel_rate(
                s,
                organization_id=ORG,
                labor_type_id=uuid.uuid4(),
                pay_type="hour",
                rate_value=1,
                valid_from=date(2024, 2, 1),
                valid_to=date(2024, 1, 1),
            )


@pytest.mark.parametrize(
    ("n", "requested", "env", "expected"),
    [
        (3, None, None, 3),
        (20, None, None, 8),
        (20, 50, None, 20),
        (100, 50, None, 32),
        (10, None, "4", 4),
        (10, None, "junk", 8),
        (0, None, None, 1),
    ],
)
def test_resolve_max_workers(monkeypatch, n, requested, env, expected):
    if env is not None:
        monkeypatch.setenv("MI_PERSONNEL_MAX_WORKERS", env)
    assert resolve_max_workers(n, requested) == expected
