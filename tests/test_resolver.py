import uuid

import pytest

from movement_import.catalog import build_catalog
from movement_import.mapping import ColumnMapping
from movement_import.models import ParsedFile, TargetField
from movement_import.normalizer import UNSET, ManualOverrides, ValueNormalizer
from movement_import.resolver import (
    CREATED_DESCRIPTION,
    CreateConceptRequest,
    IncompatibilityResolver,
    collect_incompatible,
    review_incompatible_values,
)

TYPE_OUT = str(uuid.uuid4())
CAT_LABOR = str(uuid.uuid4())
SUB_WAGES = str(uuid.uuid4())

PARSED = ParsedFile(
    file_name="movs.csv",
    headers=("Tipo", "Categoría", "Subcategoría", "Monto"),
    rows=(
        ("Egresos", "Honorarios", "Asesoría", "100"),
        ("Egresos", "Honorarios", "Asesoría", "200"),
        ("Egresos", "Mano de Obra", "Jornales", "50"),
        ("Egresos", "Sin asignar", None, "10"),
    ),
)


class FakeCreator:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str | None]] = []

    def __call__(self, name: str, parent_id: str, description: str | None) -> str:
        self.calls.append((name, parent_id, description))
        return str(uuid.uuid4())


def _setup(*, allow_create: bool = True):
    catalog = build_catalog(
        [
            {
                "id": TYPE_OUT,
                "name": "Egresos",
                "children": [
                    {
                        "id": CAT_LABOR,
                        "name": "Mano de Obra",
                        "children": [{"id": SUB_WAGES, "name": "Jornales"}],
                    }
                ],
            }
        ]
    )
    overrides = ManualOverrides()
    normalizer = ValueNormalizer(catalog, overrides)
    mapping = ColumnMapping(len(PARSED.headers))
    mapping.auto_assign(PARSED.headers)
    pending = collect_incompatible(PARSED, mapping, normalizer, allow_create=allow_create)
    creator = FakeCreator() if allow_create else None
    resolver = IncompatibilityResolver(catalog, overrides, pending, concept_creator=creator)
    return resolver, normalizer, creator


def test_collect_incompatible_dedupes_and_carries_context():
    resolver, _, _ = _setup()
    pending = resolver.pending
    assert [(p.field, p.raw, p.row_index) for p in pending] == [
        (TargetField.CATEGORY_ID, "Honorarios", 0),
        (TargetField.SUBCATEGORY_ID, "Asesoría", 0),
    ]
    cat, sub = pending
    assert cat.hint == "Egresos"
    assert cat.suggested_parent_id == TYPE_OUT
    assert cat.can_create is True
    assert cat.label == "Categoría"
    assert sub.hint == "Egresos > Honorarios"
    assert sub.suggested_parent_id is None
    assert [o.name for o in cat.options] == ["Mano de Obra"]


def test_collect_incompatible_without_creation():
    resolver, _, _ = _setup(allow_create=False)
    assert all(not p.can_create for p in resolver.pending)
    assert resolver.creation_enabled is False
    with pytest.raises(ValueError, match="not enabled"):
        resolver.create_category("Honorarios")


def test_bind_and_leave_unset_update_overrides_and_pending():
    resolver, normalizer, _ = _setup()
    resolver.bind(TargetField.CATEGORY_ID, "Honorarios", CAT_LABOR)
    assert normalizer.resolve(TargetField.CATEGORY_ID, "Honorarios") == CAT_LABOR
    resolver.leave_unset(TargetField.SUBCATEGORY_ID, "Asesoría")
    assert resolver.overrides.get(TargetField.SUBCATEGORY_ID, "Asesoría") is UNSET
    assert resolver.pending == []


def test_bind_rejects_ids_outside_the_field_options():
    resolver, _, _ = _setup()
    with pytest.raises(ValueError):
        resolver.bind(TargetField.CATEGORY_ID, "Honorarios", TYPE_OUT)
    assert len(resolver.pending) == 2


def test_create_category_round_trip_through_overrides():
    resolver, normalizer, creator = _setup()
    new_id = resolver.create_category("Honorarios")

    assert creator.calls == [
        ("Honorarios", TYPE_OUT, CREATED_DESCRIPTION.format(name="Honorarios"))
    ]
    assert normalizer.resolve(TargetField.CATEGORY_ID, "Honorarios") == new_id
    assert resolver.catalog.get(TargetField.CATEGORY_ID, new_id).parent_id == TYPE_OUT
    assert [p.field for p in resolver.pending] == [TargetField.SUBCATEGORY_ID]

    sub_id = resolver.create_subcategory(
        "Asesoría", parent_category_id=new_id, name="Asesoría  Legal"
    )
    assert creator.calls[-1][:2] == ("Asesoría Legal", new_id)
    assert normalizer.resolve(TargetField.SUBCATEGORY_ID, "Asesoría") == sub_id
    assert resolver.pending == []


def test_create_requires_a_known_parent():
    resolver, _, _ = _setup()
    with pytest.raises(ValueError, match="unknown parent type"):
        resolver.create_category("Honorarios", parent_type_id=CAT_LABOR)
    with pytest.raises(ValueError, match="parent category is required"):
        resolver.create_subcategory("Asesoría", parent_category_id=None)
    with pytest.raises(ValueError, match="unknown parent category"):
        resolver.create_subcategory("Asesoría", parent_category_id=TYPE_OUT)


def test_review_with_selector_creates_and_leaves_unset():
    resolver, normalizer, creator = _setup()
    seen_labels: list[list[str]] = []

    def selector(item, labels):
        seen_labels.append(labels)
        if item.field is TargetField.CATEGORY_ID:
            return CreateConceptRequest("Honorarios Profesionales")
        return "Sin asignar"

    lines: list[str] = []
    n = review_incompatible_values(resolver, selector=selector, print_fn=lines.append)

    assert n == 2
    assert creator.calls[0][:2] == ("Honorarios Profesionales", TYPE_OUT)
    assert seen_labels[0] == ["Mano de Obra", "Sin asignar"]
    assert normalizer.resolve(TargetField.CATEGORY_ID, "Honorarios") is not None
    assert normalizer.resolve(TargetField.SUBCATEGORY_ID, "Asesoría") is None
    assert any("has no match" in line for line in lines)


def test_review_binds_existing_option_case_insensitively():
    resolver, normalizer, _ = _setup()
    answers = {TargetField.CATEGORY_ID: "mano de obra", TargetField.SUBCATEGORY_ID: "JORNALES"}
    review_incompatible_values(
        resolver, selector=lambda item, _labels: answers[item.field], print_fn=lambda *_: None
    )
    assert normalizer.resolve(TargetField.CATEGORY_ID, "Honorarios") == CAT_LABOR
    assert normalizer.resolve(TargetField.SUBCATEGORY_ID, "Asesoría") == SUB_WAGES


def test_review_gives_up_after_invalid_answers():
    resolver, _, _ = _setup()
    lines: list[str] = []
    review_incompatible_values(
        resolver, selector=lambda *_: "nope", print_fn=lines.append, max_attempts=2
    )
    assert resolver.pending == []
    assert resolver.overrides.get(TargetField.CATEGORY_ID, "Honorarios") is UNSET
    assert sum("Invalid option" in line for line in lines) == 4


def test_review_refuses_creation_when_disabled():
    resolver, _, _ = _setup(allow_create=False)
    lines: list[str] = []
    review_incompatible_values(
        resolver,
        selector=lambda *_: CreateConceptRequest("X"),
        print_fn=lines.append,
        max_attempts=1,
    )
    assert any("not available" in line for line in lines)
    assert resolver.pending == []


def _repeated_category_names():
    out_other, in_other, type_in = (str(uuid.uuid4()) for _ in range(3))
    catalog = build_catalog(
        [
            {"id": TYPE_OUT, "name": "Egresos", "children": [{"id": out_other, "name": "Otros"}]},
            {"id": type_in, "name": "Ingresos", "children": [{"id": in_other, "name": "Otros"}]},
        ]
    )
    overrides = ManualOverrides()
    # "Otros" alone is ambiguous; pin the file's value to the expense category
    overrides.bind(TargetField.CATEGORY_ID, "Otros", out_other)
    parsed = ParsedFile(
        file_name="movs.csv",
        headers=("Tipo", "Categoría", "Subcategoría", "Monto"),
        rows=(("Egresos", "Otros", "Fletes", "10"), ("Egresos", "Otros", "Peajes", "20")),
    )
    normalizer = ValueNormalizer(catalog, overrides)
    mapping = ColumnMapping(len(parsed.headers))
    mapping.auto_assign(parsed.headers)
    creator = FakeCreator()
    pending = collect_incompatible(parsed, mapping, normalizer)
    resolver = IncompatibilityResolver(catalog, overrides, pending, concept_creator=creator)
    return resolver, creator, out_other, in_other


def test_subcategory_parent_is_kept_by_id_when_category_names_repeat():
    resolver, creator, out_other, in_other = _repeated_category_names()
    assert [p.raw for p in resolver.pending] == ["Fletes", "Peajes"]
    assert resolver.pending[0].suggested_parent_id == out_other
    answers = {
        "Fletes": CreateConceptRequest("Fletes"),
        "Peajes": CreateConceptRequest("Peajes", parent_name="ingresos > otros"),
    }

    review_incompatible_values(
        resolver, selector=lambda item, _labels: answers[item.raw], print_fn=lambda *_: None
    )

    assert [c[:2] for c in creator.calls] == [("Fletes", out_other), ("Peajes", in_other)]


def test_bare_parent_name_matching_several_categories_is_refused():
    resolver, creator, _, _ = _repeated_category_names()
    lines: list[str] = []
    review_incompatible_values(
        resolver,
        selector=lambda *_: CreateConceptRequest("Fletes", parent_name="Otros"),
        print_fn=lines.append,
        max_attempts=1,
    )
    assert creator.calls == []
    refused = [line for line in lines if "ambiguous" in line]
    assert refused and "Egresos > Otros, Ingresos > Otros" in refused[0]
