import json
import uuid
from pathlib import Path

import pytest
from sqlalchemy import func, select
from typer.testing import CliRunner

from db.client import session_scope
from db.models.movements import Movement
from movement_import.cli import (
    _parse_column_overrides,
    _parse_rows,
    app,
    cmd_balances,
    cmd_import,
    cmd_personnel_batch,
    cmd_preview,
)
from tests.helpers.db import bootstrap_sqlite_db, seed_reference_catalog

CSV = """Fecha,Descripción,Monto,Moneda,Billetera,Tipo,Notas
2024-03-01,Anticipo,1000,ARS,Banco Galicia,Ingresos,x
2024-03-02,Cemento,300,ARS,Efectivo,Egresos,
"""


@pytest.fixture
def csv_file(tmp_path: Path) -> Path:
    p = tmp_path / "movs.csv"
    p.write_text(CSV, encoding="utf-8")
    return p


@pytest.fixture
def seeded(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "cli.sqlite")
    return url, seed_reference_catalog(database_url=url)


def _count(url: str) -> int:
    with session_scope(database_url=url) as s:
        return s.execute(select(func.count()).select_from(Movement)).scalar_one()


def test_parse_column_overrides():
    assert _parse_column_overrides(["0=amount", " 3 = ", "2=description"]) == {
        0: "amount",
        3: None,
        2: "description",
    }
    with pytest.raises(ValueError, match="COL=FIELD"):
        _parse_column_overrides(["amount"])
    with pytest.raises(ValueError, match="integer"):
        _parse_column_overrides(["x=amount"])


def test_parse_rows():
    assert _parse_rows(None) is None
    assert _parse_rows(" ") is None
    assert _parse_rows("0, 2,") == [0, 2]


def test_preview_prints_detected_mapping(csv_file, capsys):
    assert cmd_preview(str(csv_file), limit=1) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "movs.csv: 2 row(s), 7 column(s)"
    assert out[1].startswith("0\tFecha\tmovement_date (")
    assert out[3].startswith("2\tMonto\tamount (")
    assert out[7] == "6\tNotas\t-"
    assert out[-1].startswith("2024-03-01\tAnticipo\t1000")


def test_preview_missing_file_returns_error(tmp_path, capsys):
    assert cmd_preview(str(tmp_path / "missing.csv")) == 1
    assert capsys.readouterr().err.startswith("Error:")


def test_import_non_interactive_writes_movements(seeded, csv_file, capsys):
    url, cat = seeded
    code = cmd_import(
        str(csv_file),
        organization_id=str(cat.organization_id),
        created_by=str(uuid.uuid4()),
        database_url=url,
        interactive=False,
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "Read 2 row(s) from movs.csv." in out
    assert "Imported 2 movement(s)." in out
    assert "Refreshed views: " in out
    assert _count(url) == 2


def test_import_rejects_duplicate_column_mapping(seeded, csv_file, capsys):
    url, cat = seeded
    code = cmd_import(
        str(csv_file),
        organization_id=str(cat.organization_id),
        created_by=str(uuid.uuid4()),
        column_overrides=["6=amount"],
        database_url=url,
        interactive=False,
    )
    assert code == 1
    err = capsys.readouterr().err
    assert "the column mapping is not valid" in err
    assert "mapped by 2 columns: 2, 6" in err
    assert _count(url) == 0


def test_import_bad_arguments_return_error(seeded, csv_file, capsys):
    url, cat = seeded
    assert (
        cmd_import(str(csv_file), organization_id="nope", created_by=str(uuid.uuid4()))
        == 1
    )
    assert "organization id is not a valid UUID" in capsys.readouterr().err
    assert (
        cmd_import(
            str(csv_file),
            organization_id=str(cat.organization_id),
            created_by=str(uuid.uuid4()),
            rows="5",
            database_url=url,
            interactive=False,
        )
        == 1
    )
    assert capsys.readouterr().err.startswith("Error:")
    assert _count(url) == 0


def test_balances_after_import(seeded, csv_file, capsys):
    url, cat = seeded
    org = str(cat.organization_id)
    assert cmd_balances(organization_id=org, database_url=url) == 0
    assert capsys.readouterr().out.strip() == "No movements."

    cmd_import(
        str(csv_file),
        organization_id=org,
        created_by=str(uuid.uuid4()),
        database_url=url,
        interactive=False,
    )
    capsys.readouterr()
    assert cmd_balances(organization_id=org, database_url=url) == 0
    lines = capsys.readouterr().out.splitlines()
    assert "Banco Galicia\tARS 1,000.00" in lines
    assert "Efectivo\tARS -300.00" in lines


def test_personnel_batch_prints_json(seeded, capsys):
    url, cat = seeded
    unknown = str(uuid.uuid4())
    code = cmd_personnel_batch(
        [unknown],
        organization_id=str(cat.organization_id),
        project_id=str(uuid.uuid4()),
        on_date="2024-03-01",
        database_url=url,
    )
    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["rates"] == {unknown: None}
    assert payload["pending"][unknown]["details"] == []


def test_personnel_batch_invalid_date(capsys):
    code = cmd_personnel_batch(
        [str(uuid.uuid4())],
        organization_id=str(uuid.uuid4()),
        project_id=str(uuid.uuid4()),
        on_date="03/01/2024",
    )
    assert code == 1
    assert capsys.readouterr().err.startswith("Error:")


def test_typer_preview_command(csv_file):
    result = CliRunner().invoke(app, ["preview", "--file", str(csv_file)])
    assert result.exit_code == 0
    assert "movs.csv: 2 row(s), 7 column(s)" in result.output


def test_database_url_falls_back_to_environment(seeded, monkeypatch, capsys):
    url, cat = seeded
    monkeypatch.setenv("DATABASE_URL", url)
    assert cmd_balances(organization_id=str(cat.organization_id)) == 0
    assert capsys.readouterr().out.strip() == "No movements."


def test_seed_catalog_default_file_works_outside_the_repo(tmp_path, monkeypatch):
    url = bootstrap_sqlite_db(tmp_path / "seed.sqlite")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)
    result = CliRunner().invoke(
        app,
        ["seed-catalog", "--organization-id", str(uuid.uuid4()), "--database-url", url],
    )
    assert result.exit_code == 0, result.output
    assert "currencies=3, wallets=3, concepts=20" in result.output
