"""Incompatible values: collection and operator resolution.

After mapping, every identifier-field cell that the normalizer cannot resolve
(and that is neither a null placeholder nor already overridden) is collected
once per ``(field, trimmed text)``. The operator then binds it to an existing
option, leaves it unset, or, for categories and subcategories, creates a new
catalog entry. Every action lands in :class:`ManualOverrides`, so the
normalizer picks it up immediately.
"""

from __future__ import annotations

import builtins
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from .catalog import CatalogEntry, ReferenceCatalog
from .logging_setup import get_logger
from .mapping import ColumnMapping
from .models import FIELD_LABELS, IDENTIFIER_FIELDS, ParsedFile, TargetField
from .normalizer import ManualOverrides, ValueNormalizer, is_null_placeholder, override_key

_logger = get_logger("movement_import.resolver")

CREATABLE_FIELDS = frozenset({TargetField.CATEGORY_ID, TargetField.SUBCATEGORY_ID})

CREATED_DESCRIPTION = "Categoría creada durante importación: {name}"

# (name, parent_id, description) -> new or existing concept id
type ConceptCreator = Callable[[str, str, str | None], str]


@dataclass(frozen=True, slots=True)
class IncompatibleValue:
    field: TargetField
    raw: str
    row_index: int
    options: tuple[CatalogEntry, ...]
    can_create: bool
    hint: str | None = None
    # Parent inferred from the first row that carries the value (type id for a
    # category, category id for a subcategory).
    suggested_parent_id: str | None = None

    @property
    def label(self) -> str:
        return FIELD_LABELS[self.field]


def _cell_text(parsed: ParsedFile, row_index: int, column: int | None) -> str | None:
    if column is None:
        return None
    cell = parsed.cell(row_index, column)
    if is_null_placeholder(cell):
        return None
    return override_key(cell)


def _context(
    parsed: ParsedFile,
    mapping: ColumnMapping,
    normalizer: ValueNormalizer,
    field: TargetField,
    row_index: int,
) -> tuple[str | None, str | None]:
    """Return ``(hint, suggested_parent_id)`` for a value of ``field`` in a row."""

    type_col = mapping.column_for(TargetField.TYPE_ID)
    cat_col = mapping.column_for(TargetField.CATEGORY_ID)
    type_text = _cell_text(parsed, row_index, type_col)
    cat_text = _cell_text(parsed, row_index, cat_col)

    if field is TargetField.CATEGORY_ID:
        parent = normalizer.resolve(TargetField.TYPE_ID, type_text) if type_text else None
        return type_text, parent
    if field is TargetField.SUBCATEGORY_ID:
        parts = [p for p in (type_text, cat_text) if p]
        parent = normalizer.resolve(TargetField.CATEGORY_ID, cat_text) if cat_text else None
        return (" > ".join(parts) or None), parent
    return None, None


def collect_incompatible(
    parsed: ParsedFile,
    mapping: ColumnMapping,
    normalizer: ValueNormalizer,
    *,
    allow_create: bool = True,
) -> list[IncompatibleValue]:
    """Return distinct unresolved identifier values in first-seen order."""

    identifier_columns = [(c, f) for c, f in mapping if f in IDENTIFIER_FIELDS]
    seen: set[tuple[TargetField, str]] = set()
    out: list[IncompatibleValue] = []
    for row_index in range(len(parsed.rows)):
        for column, field in identifier_columns:
            cell = parsed.cell(row_index, column)
            if not normalizer.is_unresolved(field, cell):
                continue
            raw = override_key(cell)
            if (field, raw) in seen:
                continue
            seen.add((field, raw))
            hint, parent = _context(parsed, mapping, normalizer, field, row_index)
            out.append(
                IncompatibleValue(
                    field=field,
                    raw=raw,
                    row_index=row_index,
                    options=normalizer.catalog.entries(field),
                    can_create=allow_create and field in CREATABLE_FIELDS,
                    hint=hint,
                    suggested_parent_id=parent,
                )
            )
    _logger.info("incompatible values collected=%d", len(out))
    return out


class IncompatibilityResolver:
    """Apply operator decisions for collected incompatible values."""

    def __init__(
        self,
        catalog: ReferenceCatalog,
        overrides: ManualOverrides,
        pending: Sequence[IncompatibleValue] = (),
        *,
        concept_creator: ConceptCreator | None = None,
    ) -> None:
        self.catalog = catalog
        self.overrides = overrides
        self._pending: dict[tuple[TargetField, str], IncompatibleValue] = {
            (v.field, v.raw): v for v in pending
        }
        self._create = concept_creator

    @property
    def pending(self) -> list[IncompatibleValue]:
        return list(self._pending.values())

    @property
    def creation_enabled(self) -> bool:
        return self._create is not None

    def _done(self, field: TargetField, raw: str) -> None:
        self._pending.pop((field, override_key(raw)), None)

    def bind(self, field: TargetField, raw: str, identifier: str) -> None:
        """Map ``raw`` to an existing option of ``field``."""

        if identifier not in self.catalog.ids(field):
            raise ValueError(f"{identifier!r} is not an option for {field.value}")
        self.overrides.bind(field, raw, identifier)
        self._done(field, raw)
        _logger.info("bound field=%s value=%r -> %s", field.value, raw, identifier)

    def leave_unset(self, field: TargetField, raw: str) -> None:
        self.overrides.leave_unset(field, raw)
        self._done(field, raw)
        _logger.info("left unset field=%s value=%r", field.value, raw)

    def _create_entry(
        self, field: TargetField, raw: str, name: str | None, parent_id: str
    ) -> str:
        if self._create is None:
            raise ValueError("catalog creation is not enabled for this session")
        label = " ".join((name or raw).split())
        new_id = self._create(label, parent_id, CREATED_DESCRIPTION.format(name=label))
        self.catalog.add_entry(field, CatalogEntry(new_id, label, parent_id))
        self.overrides.bind(field, raw, new_id)
        self._done(field, raw)
        _logger.info(
            "created field=%s name=%r parent_id=%s -> %s", field.value, label, parent_id, new_id
        )
        return new_id

    def _suggested_parent(self, field: TargetField, raw: str) -> str | None:
        item = self._pending.get((field, override_key(raw)))
        return item.suggested_parent_id if item is not None else None

    def create_category(
        self, raw: str, *, name: str | None = None, parent_type_id: str | None = None
    ) -> str:
        """Create a category under a type and bind ``raw`` to it.

        ``parent_type_id`` defaults to the type found on the value's first row.
        """

        parent = parent_type_id or self._suggested_parent(TargetField.CATEGORY_ID, raw)
        if parent is None:
            raise ValueError("a parent type is required to create a category")
        if parent not in self.catalog.ids(TargetField.TYPE_ID):
            raise ValueError(f"unknown parent type: {parent}")
        return self._create_entry(TargetField.CATEGORY_ID, raw, name, parent)

    def create_subcategory(
        self, raw: str, *, parent_category_id: str | None, name: str | None = None
    ) -> str:
        """Create a subcategory under an existing category and bind ``raw`` to it."""

        if not parent_category_id:
            raise ValueError("a parent category is required to create a subcategory")
        if parent_category_id not in self.catalog.ids(TargetField.CATEGORY_ID):
            raise ValueError(f"unknown parent category: {parent_category_id}")
        return self._create_entry(TargetField.SUBCATEGORY_ID, raw, name, parent_category_id)


# ----------------------------------------------------------------------------
# Interactive review
# ----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CreateConceptRequest:
    """Selector result asking to create a new entry (name and parent are optional hints)."""

    name: str = ""
    parent_name: str | None = None


type Selector = Callable[[IncompatibleValue, list[str]], str | CreateConceptRequest]


def _parent_choices(resolver: IncompatibilityResolver, field: TargetField) -> dict[str, str]:
    """Return ``{label: id}`` for the possible parents of a new ``field`` entry.

    Categories are labelled ``"<type> > <category>"``: the same category name
    can exist under several types.
    """

    catalog = resolver.catalog
    if field is TargetField.CATEGORY_ID:
        return {e.name: e.id for e in catalog.entries(TargetField.TYPE_ID)}
    choices: dict[str, str] = {}
    for e in catalog.entries(TargetField.CATEGORY_ID):
        parent = catalog.get(TargetField.TYPE_ID, e.parent_id) if e.parent_id else None
        label = f"{parent.name} > {e.name}" if parent is not None else e.name
        choices[label] = e.id
    return choices


def _parent_id_for(choices: dict[str, str], text: str) -> str:
    """Resolve a parent label, or a bare name that matches exactly one parent."""

    wanted = " ".join(text.split()).lower()
    for label, ident in choices.items():
        if label.lower() == wanted:
            return ident
    bare = [label for label in choices if label.rsplit(" > ", 1)[-1].lower() == wanted]
    if len(bare) == 1:
        return choices[bare[0]]
    if bare:
        raise ValueError(f"parent {text!r} is ambiguous; choose one of: " + ", ".join(bare))
    raise ValueError(f"unknown parent: {text}")


def _process_create_intent(
    resolver: IncompatibilityResolver,
    item: IncompatibleValue,
    intent: CreateConceptRequest,
    *,
    interactive: bool,
    print_fn: Callable[..., None],
) -> bool:
    """Collect name/parent (prompting when interactive) and create. True on success."""

    from .term_ui import prompt_new_concept_name, prompt_select_parent

    name: str | None = intent.name.strip() or None
    if name is None and interactive:
        name = prompt_new_concept_name(initial=item.raw)
        if name is None:
            return False
    choices = _parent_choices(resolver, item.field)
    parent_id: str | None = item.suggested_parent_id
    try:
        if intent.parent_name is not None:
            parent_id = _parent_id_for(choices, intent.parent_name)
        elif interactive:
            default_label = next((k for k, v in choices.items() if v == parent_id), "")
            label = prompt_select_parent(list(choices), default=default_label)
            if label is None:
                return False
            parent_id = choices.get(label)
        if item.field is TargetField.CATEGORY_ID:
            new_id = resolver.create_category(item.raw, name=name, parent_type_id=parent_id)
        else:
            new_id = resolver.create_subcategory(
                item.raw, parent_category_id=parent_id, name=name
            )
    except ValueError as e:
        print_fn(str(e))
        return False
    except SQLAlchemyError as e:
        print_fn(f"Error creating {item.label.lower()}: {e}")
        return False
    print_fn(f"Created '{name or item.raw}' ({new_id}). Selected.")
    return True


UNSET_LABEL = "Sin asignar"


def review_incompatible_values(
    resolver: IncompatibilityResolver,
    *,
    selector: Selector | None = None,
    print_fn: Callable[..., None] = builtins.print,
    max_attempts: int = 3,
) -> int:
    """Walk every pending value and apply the operator's decision.

    ``selector`` receives the item and the option labels (entry names followed
    by ``"Sin asignar"``) and returns a label or a
    :class:`CreateConceptRequest`. Without a selector the prompt_toolkit UI is
    used. An item that stays invalid after ``max_attempts`` is left unset.
    Returns the number of items resolved.
    """

    interactive = selector is None
    resolved = 0
    for item in resolver.pending:
        # Live options so entries created earlier in the loop are offered too.
        options = resolver.catalog.entries(item.field)
        labels = [e.name for e in options] + [UNSET_LABEL]
        by_label = {e.name.lower(): e.id for e in options}
        can_create = item.can_create and resolver.creation_enabled
        context = f" ({item.hint})" if item.hint else ""
        print_fn(f"{item.label}: '{item.raw}'{context} has no match.")

        done = False
        for _ in range(max_attempts):
            if selector is not None:
                choice = selector(item, labels)
            else:
                from .term_ui import select_value_or_create

                choice = select_value_or_create(
                    labels, default=UNSET_LABEL, allow_create=can_create
                )

            if isinstance(choice, CreateConceptRequest):
                if not can_create:
                    print_fn(f"Creating a {item.label.lower()} is not available here.")
                    continue
                if _process_create_intent(
                    resolver, item, choice, interactive=interactive, print_fn=print_fn
                ):
                    done = True
                    break
                continue

            text = choice.strip()
            if not text or text.lower() == UNSET_LABEL.lower():
                resolver.leave_unset(item.field, item.raw)
                done = True
                break
            ident = by_label.get(text.lower())
            if ident is None:
                print_fn("Invalid option. Enter one of: " + ", ".join(labels))
                continue
            resolver.bind(item.field, item.raw, ident)
            done = True
            break

        if not done:
            resolver.leave_unset(item.field, item.raw)
            print_fn(f"Leaving '{item.raw}' unset.")
        resolved += 1
    return resolved


__all__ = [
    "CREATABLE_FIELDS",
    "ConceptCreator",
    "CreateConceptRequest",
    "IncompatibilityResolver",
    "IncompatibleValue",
    "Selector",
    "UNSET_LABEL",
    "collect_incompatible",
    "review_incompatible_values",
]
