"""DB helpers for tests: bootstrap a temporary SQLite DB and seed a catalog."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from db import Base
from db.client import get_engine, session_scope
from db.models.movements import (
    Currency,
    MovementConcept,
    OrganizationCurrency,
    OrganizationWallet,
    Wallet,
)
from movement_import.ingest.seed_catalog import seed_catalog
from sqlalchemy import select

# Small catalog used across tests: two types, a few categories/subcategories,
# two currencies and two wallets.
DEFAULT_SEED: dict[str, Any] = {
    "currencies": [
        {"code": "ARS", "name": "Peso Argentino", "symbol": "$", "is_default": True},
        {"code": "USD", "name": "Dólar Estadounidense", "symbol": "US$"},
    ],
    "wallets": [{"name": "Efectivo"}, {"name": "Banco Galicia"}],
    "concepts": [
        {
            "name": "Ingresos",
            "children": [{"name": "Cobros de Clientes", "children": [{"name": "Anticipos"}]}],
        },
        {
            "name": "Egresos",
            "children": [
                {"name": "Mano de Obra", "children": [{"name": "Jornales"}]},
                {"name": "Materiales", "children": [{"name": "Hormigón"}]},
            ],
        },
    ],
}


@dataclass
class SeededCatalog:
    organization_id: uuid.UUID
    concepts: dict[str, str] = field(default_factory=dict)
    currencies: dict[str, str] = field(default_factory=dict)  # code -> organization_currencies.id
    wallets: dict[str, str] = field(default_factory=dict)  # name -> organization_wallets.id


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default), which the
    concurrent personnel lookups rely on.
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    # The shared engine enables SQLite foreign keys on every connection
    Base.metadata.create_all(bind=get_engine(database_url=url))
    return url


def seed_reference_catalog(
    *,
    database_url: str,
    organization_id: uuid.UUID | None = None,
    data: dict[str, Any] | None = None,
) -> SeededCatalog:
    """Seed ``data`` (default :data:`DEFAULT_SEED`) and return ids by name."""

    org = organization_id or uuid.uuid4()
    with session_scope(database_url=database_url) as session:
        seed_catalog(session, organization_id=org, data=data or DEFAULT_SEED)

    out = SeededCatalog(organization_id=org)
    with session_scope(database_url=database_url) as session:
        for cid, name in session.execute(select(MovementConcept.id, MovementConcept.name)):
            out.concepts[name] = str(cid)
        for oc_id, code in session.execute(
            select(OrganizationCurrency.id, Currency.code)
            .join(Currency, Currency.id == OrganizationCurrency.currency_id)
            .where(OrganizationCurrency.organization_id == org)
        ):
            out.currencies[code] = str(oc_id)
        for ow_id, name in session.execute(
            select(OrganizationWallet.id, Wallet.name)
            .join(Wallet, Wallet.id == OrganizationWallet.wallet_id)
            .where(OrganizationWallet.organization_id == org)
        ):
            out.wallets[name] = str(ow_id)
    return out
