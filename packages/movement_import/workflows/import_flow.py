# ruff: noqa: I001
"""Workflow orchestrator for the end-to-end import flow.

Composes parsing, column mapping, the incompatibility review and the batch
submit behind a single importable function. Keeping this out of ``cli.py``
keeps the package's import surface light.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from os import PathLike

from ..models import ImportContext, TargetField
from ..parsing import parse_file
from ..persistence import BatchWriter, MovementWriter
from ..resolver import Selector, review_incompatible_values
from ..session import ImportSession
from ..submit import SubmitResult


def apply_column_overrides(
    session: ImportSession, overrides: Mapping[int, TargetField | str | None]
) -> None:
    """Apply operator column assignments on top of the auto-assigned mapping.

    ``None`` unmaps a column. Raises ``IndexError`` for an unknown column and
    ``ValueError`` for an unknown field name.
    """

    for column, field in overrides.items():
        session.mapping.set(column, field)


def import_movements_from_file(
    path: str | PathLike[str],
    *,
    context: ImportContext,
    database_url: str | None = None,
    column_overrides: Mapping[int, TargetField | str | None] | None = None,
    rows: Iterable[int] | None = None,
    allow_create: bool = True,
    interactive: bool = True,
    selector: Selector | None = None,
    writer: BatchWriter | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> SubmitResult:
    """End-to-end: file → mapping → review → drafts → single batch write.

    Parameters
    ----------
    path:
        Spreadsheet (``.xlsx``/``.xlsm``) or delimited text (``.csv``/``.txt``).
    context:
        Organization, project and creator stamped on every record.
    database_url:
        Optional DB URL override. Falls back to ``DATABASE_URL`` when ``None``.
    column_overrides:
        Column index → field (or ``None`` to unmap), applied after auto-assign.
    rows:
        Optional subset of 0-based data-row indices to import.
    allow_create:
        When ``True``, unknown categories/subcategories may be created during
        review.
    interactive / selector:
        With ``interactive=False`` and no ``selector`` every incompatible value
        is left unset. A ``selector`` replaces the terminal prompts.
    writer:
        Batch writer; defaults to a :class:`MovementWriter` on ``database_url``.
    on_progress:
        Optional callable receiving short status lines (e.g., ``print``).

    Raises
    ------
    FileFormatError, MappingValidationError, IntegrityViolationError, BatchWriteError
        Propagated from the corresponding stage.
    """

    parsed = parse_file(path)
    if on_progress:
        on_progress(f"Read {len(parsed.rows)} row(s) from {parsed.file_name}.")

    session = ImportSession.from_database(
        context, parsed, database_url=database_url, allow_create=allow_create
    )
    if column_overrides:
        apply_column_overrides(session, column_overrides)

    resolver = session.resolver()
    pending = resolver.pending
    if pending:
        if on_progress:
            on_progress(f"{len(pending)} value(s) without a match.")
        if interactive or selector is not None:
            review_incompatible_values(
                resolver, selector=selector, print_fn=on_progress or (lambda *_a, **_k: None)
            )
        else:
            for item in pending:
                resolver.leave_unset(item.field, item.raw)

    result = session.submit(writer or MovementWriter(database_url=database_url), rows=rows)
    if on_progress:
        on_progress(f"Imported {result.inserted} movement(s).")
    return result


__all__ = ["apply_column_overrides", "import_movements_from_file"]
