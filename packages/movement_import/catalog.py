"""Reference catalog: valid identifiers per identifier field, plus lookup keys.

The catalog is built once per import session from the organization's movement
concepts (type → category → subcategory), enabled currencies and enabled
wallets. Each entry is indexed under its normalized name and a handful of
spelling variants so that the normalizer's exact step catches the common
spreadsheet spellings ("ManodeObra", "MANO DE OBRA", "Mano Obra").

Index precedence
----------------
Primary (normalized) names overwrite earlier keys; variants and synonyms never
displace an existing key. Iteration order of an index is insertion order, which
the substring matcher relies on.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypedDict

from sqlalchemy import select
from sqlalchemy.orm import Session

from .logging_setup import get_logger
from .models import IDENTIFIER_FIELDS, TargetField
from .normalizers import normalize_text

_logger = get_logger("movement_import.catalog")

_STOPWORDS = frozenset({"de", "del", "la", "las", "el", "los", "y", "e"})
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_MIN_VARIANT_LENGTH = 3

# Substring of a normalized type name → extra lookup keys for that type.
TYPE_SYNONYMS: dict[str, tuple[str, ...]] = {
    "ingreso": ("ingreso", "ingresos", "entrada", "cobro"),
    "egreso": ("egreso", "egresos", "salida", "gasto", "pago"),
    "conversion": ("conversion", "cambio", "intercambio"),
    "transferencia": ("transferencia", "transfer", "traslado"),
}


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    id: str
    name: str
    parent_id: str | None = None


def name_variants(name: str) -> list[str]:
    """Return normalized spelling variants of ``name`` (excluding the name itself)."""

    normalized = normalize_text(name)
    words = normalized.split(" ")
    candidates = [
        normalized.replace(" ", ""),
        _NON_ALNUM_RE.sub("", normalized),
        "".join(w for w in words if w not in _STOPWORDS),
        " ".join(w for w in words if w not in _STOPWORDS),
    ]
    out: list[str] = []
    for v in candidates:
        if v != normalized and len(v) >= _MIN_VARIANT_LENGTH and v not in out:
            out.append(v)
    return out


@dataclass(slots=True)
class ReferenceCatalog:
    """Per-field lookup index (normalized text → id) plus operator-facing entries."""

    _index: dict[TargetField, dict[str, str]] = field(
        default_factory=lambda: {f: {} for f in IDENTIFIER_FIELDS}
    )
    _entries: dict[TargetField, list[CatalogEntry]] = field(
        default_factory=lambda: {f: [] for f in IDENTIFIER_FIELDS}
    )

    def index(self, target: TargetField) -> Mapping[str, str]:
        return self._index.get(target, {})

    def entries(self, target: TargetField) -> tuple[CatalogEntry, ...]:
        return tuple(self._entries.get(target, ()))

    def ids(self, target: TargetField) -> set[str]:
        return {e.id for e in self._entries.get(target, ())}

    def get(self, target: TargetField, ident: str) -> CatalogEntry | None:
        for e in self._entries.get(target, ()):
            if e.id == ident:
                return e
        return None

    def children_of(self, target: TargetField, parent_id: str) -> tuple[CatalogEntry, ...]:
        return tuple(e for e in self._entries.get(target, ()) if e.parent_id == parent_id)

    def index_key(self, target: TargetField, key: str, ident: str, *, primary: bool) -> None:
        if not key:
            return
        bucket = self._index[target]
        if primary:
            bucket[key] = ident
        else:
            bucket.setdefault(key, ident)

    def add_entry(
        self,
        target: TargetField,
        entry: CatalogEntry,
        *,
        extra_keys: Iterable[str] = (),
        variants: bool = True,
    ) -> None:
        """Register ``entry`` as an option of ``target`` and index its lookup keys."""

        if target not in self._index:
            raise ValueError(f"{target.value} is not an identifier field")
        if all(e.id != entry.id for e in self._entries[target]):
            self._entries[target].append(entry)
        normalized = normalize_text(entry.name)
        self.index_key(target, normalized, entry.id, primary=True)
        if variants:
            for v in name_variants(entry.name):
                self.index_key(target, v, entry.id, primary=False)
        for k in extra_keys:
            nk = normalize_text(k)
            if nk != normalized and len(nk) >= _MIN_VARIANT_LENGTH:
                self.index_key(target, nk, entry.id, primary=False)


# ---------------------------------------------------------------------------
# Construction from plain records
# ---------------------------------------------------------------------------


class ConceptNode(TypedDict, total=False):
    id: str
    name: str
    children: list[ConceptNode]


class CurrencyOption(TypedDict):
    id: str  # organization currency id
    name: str
    code: str | None


class WalletOption(TypedDict):
    id: str  # organization wallet id
    name: str


def _type_synonyms(name: str) -> list[str]:
    normalized = normalize_text(name)
    out: list[str] = []
    for needle, synonyms in TYPE_SYNONYMS.items():
        if needle in normalized:
            out.extend(synonyms)
    return out


def build_catalog(
    hierarchy: Sequence[ConceptNode],
    currencies: Sequence[CurrencyOption] = (),
    wallets: Sequence[WalletOption] = (),
) -> ReferenceCatalog:
    """Build a catalog from a type → category → subcategory tree and option lists.

    Currencies are indexed by name and by code; wallets by name. Only concept
    names get spelling variants; types additionally get :data:`TYPE_SYNONYMS`.
    """

    catalog = ReferenceCatalog()
    for type_node in hierarchy:
        type_id = str(type_node["id"])
        catalog.add_entry(
            TargetField.TYPE_ID,
            CatalogEntry(type_id, type_node["name"]),
            extra_keys=_type_synonyms(type_node["name"]),
        )
        for cat_node in type_node.get("children") or []:
            cat_id = str(cat_node["id"])
            catalog.add_entry(
                TargetField.CATEGORY_ID, CatalogEntry(cat_id, cat_node["name"], type_id)
            )
            for sub_node in cat_node.get("children") or []:
                catalog.add_entry(
                    TargetField.SUBCATEGORY_ID,
                    CatalogEntry(str(sub_node["id"]), sub_node["name"], cat_id),
                )

    for cur in currencies:
        entry = CatalogEntry(str(cur["id"]), cur["name"])
        catalog.add_entry(TargetField.CURRENCY_ID, entry, variants=False)
        code = normalize_text(cur.get("code"))
        if code:
            # Codes are short (USD, ARS) and authoritative; index them as primary.
            catalog.index_key(TargetField.CURRENCY_ID, code, entry.id, primary=True)

    for w in wallets:
        catalog.add_entry(
            TargetField.WALLET_ID, CatalogEntry(str(w["id"]), w["name"]), variants=False
        )

    _logger.debug(
        "catalog built types=%d categories=%d subcategories=%d currencies=%d wallets=%d",
        len(catalog.entries(TargetField.TYPE_ID)),
        len(catalog.entries(TargetField.CATEGORY_ID)),
        len(catalog.entries(TargetField.SUBCATEGORY_ID)),
        len(catalog.entries(TargetField.CURRENCY_ID)),
        len(catalog.entries(TargetField.WALLET_ID)),
    )
    return catalog


# ---------------------------------------------------------------------------
# Database-backed loading and concept creation
# ---------------------------------------------------------------------------


def load_catalog_from_db(session: Session, organization_id: uuid.UUID) -> ReferenceCatalog:
    """Load the organization's catalog (system concepts included)."""

    from db.models.movements import (  # local import
        Currency,
        MovementConcept,
        OrganizationCurrency,
        OrganizationWallet,
        Wallet,
    )

    concepts = (
        session.execute(
            select(MovementConcept)
            .where(
                (MovementConcept.organization_id == organization_id)
                | MovementConcept.organization_id.is_(None)
            )
            .order_by(MovementConcept.created_at, MovementConcept.name)
        )
        .scalars()
        .all()
    )
    by_parent: dict[uuid.UUID | None, list[Any]] = {}
    for c in concepts:
        by_parent.setdefault(c.parent_id, []).append(c)

    def _node(row: Any, depth: int) -> ConceptNode:
        node: ConceptNode = {"id": str(row.id), "name": row.name}
        if depth < 2:
            node["children"] = [_node(ch, depth + 1) for ch in by_parent.get(row.id, [])]
        return node

    hierarchy = [_node(t, 0) for t in by_parent.get(None, [])]

    cur_rows = session.execute(
        select(OrganizationCurrency.id, Currency.name, Currency.code)
        .join(Currency, Currency.id == OrganizationCurrency.currency_id)
        .where(
            OrganizationCurrency.organization_id == organization_id,
            OrganizationCurrency.is_active.is_(True),
        )
        .order_by(OrganizationCurrency.is_default.desc(), Currency.code)
    ).all()
    wallet_rows = session.execute(
        select(OrganizationWallet.id, Wallet.name)
        .join(Wallet, Wallet.id == OrganizationWallet.wallet_id)
        .where(
            OrganizationWallet.organization_id == organization_id,
            OrganizationWallet.is_active.is_(True),
        )
        .order_by(Wallet.name)
    ).all()

    return build_catalog(
        hierarchy,
        [{"id": str(r[0]), "name": r[1], "code": r[2]} for r in cur_rows],
        [{"id": str(r[0]), "name": r[1]} for r in wallet_rows],
    )


_NAME_RE = re.compile(r"^[\w &\-/.,()']+$")


def normalize_name(name: str) -> str:
    """Trimmed, single-spaced ``name``; case is preserved."""

    return " ".join(name.strip().split())


def validate_name(name: str, *, max_len: int = 64) -> str | None:
    """Return a human-readable problem with ``name`` or ``None`` when valid."""

    n = normalize_name(name)
    if not n:
        return "Name cannot be empty"
    if len(n) > max_len:
        return f"Name must be at most {max_len} characters"
    if not _NAME_RE.match(n):
        return "Only letters, numbers, spaces, and & - / . , ( ) ' are allowed"
    return None


def create_concept(
    session: Session,
    *,
    organization_id: uuid.UUID,
    name: str,
    parent_id: uuid.UUID | str | None,
    description: str | None = None,
) -> tuple[str, bool]:
    """Create a movement concept under ``parent_id`` unless one already exists.

    Parameters
    ----------
    session:
        SQLAlchemy session (callers own the transaction scope).
    organization_id:
        Owning organization.
    name:
        Display name; normalized and validated before insert.
    parent_id:
        Type id for a category, category id for a subcategory. ``None`` only
        for top-level types.
    description:
        Optional free text stored with the concept.

    Returns
    -------
    tuple
        ``(concept_id, created)``. A case-insensitive duplicate under the same
        parent (organization or system scope) returns the existing id with
        ``created=False``.
    """

    from db.models.movements import MovementConcept  # local import

    clean = normalize_name(name)
    problem = validate_name(clean)
    if problem is not None:
        raise ValueError(f"Invalid concept name: {problem}")

    parent_uuid = uuid.UUID(str(parent_id)) if parent_id is not None else None
    if parent_uuid is not None:
        parent = session.get(MovementConcept, parent_uuid)
        if parent is None:
            raise ValueError(f"Parent concept not found: {parent_id}")
        if parent.organization_id not in (None, organization_id):
            raise ValueError("Parent concept belongs to another organization")

    scope = (
        MovementConcept.parent_id == parent_uuid
        if parent_uuid is not None
        else MovementConcept.parent_id.is_(None)
    )
    siblings = session.execute(
        select(MovementConcept.id, MovementConcept.name).where(
            scope,
            (MovementConcept.organization_id == organization_id)
            | MovementConcept.organization_id.is_(None),
        )
    ).all()
    # Compared in Python: SQL lower() is ASCII-only on some backends
    for sibling_id, sibling_name in siblings:
        if sibling_name.casefold() == clean.casefold():
            return str(sibling_id), False

    row = MovementConcept(
        organization_id=organization_id,
        name=clean,
        parent_id=parent_uuid,
        description=description,
    )
    session.add(row)
    session.flush()
    _logger.info("concept created id=%s name=%r parent_id=%s", row.id, clean, parent_uuid)
    return str(row.id), True


__all__ = [
    "CatalogEntry",
    "ConceptNode",
    "CurrencyOption",
    "ReferenceCatalog",
    "TYPE_SYNONYMS",
    "WalletOption",
    "build_catalog",
    "create_concept",
    "load_catalog_from_db",
    "name_variants",
    "normalize_name",
    "validate_name",
]
