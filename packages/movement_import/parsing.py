"""Spreadsheet / delimited-text → :class:`ParsedFile`.

Supported inputs
----------------
- ``.xlsx`` / ``.xlsm``: first worksheet only, read with ``openpyxl`` in
  read-only, values-only mode (dates arrive as ``datetime``; numbers as
  ``int``/``float``).
- ``.csv`` / ``.txt``: comma-delimited, parsed with the stdlib :mod:`csv`
  module (RFC 4180 quoting). UTF-8 (BOM tolerated) with a Latin-1 fallback.

The first row is the header row. Empty header cells are dropped together with
their column; fully empty data rows are skipped. Any failure surfaces as a
single :class:`~movement_import.errors.FileFormatError` with no partial result.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from os import PathLike
from pathlib import Path
from typing import Any

from .errors import FileFormatError
from .logging_setup import get_logger
from .models import ParsedFile

_logger = get_logger("movement_import.parsing")

WORKBOOK_SUFFIXES = frozenset({".xlsx", ".xlsm"})
TEXT_SUFFIXES = frozenset({".csv", ".txt"})


def _is_blank(cell: Any) -> bool:
    return cell is None or (isinstance(cell, str) and not cell.strip())


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _read_csv_rows(data: bytes) -> list[list[Any]]:
    reader = csv.reader(io.StringIO(_decode(data), newline=""))
    return [list(r) for r in reader]


def _read_workbook_rows(data: bytes) -> list[list[Any]]:
    from openpyxl import load_workbook  # local import keeps CSV-only use light

    wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        if not wb.worksheets:
            return []
        ws = wb.worksheets[0]
        return [list(r) for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _build_parsed(file_name: str, raw_rows: Sequence[Sequence[Any]]) -> ParsedFile:
    if not raw_rows:
        raise FileFormatError(f"{file_name}: the file is empty")

    header_row = raw_rows[0]
    columns: list[int] = []
    headers: list[str] = []
    for idx, cell in enumerate(header_row):
        if _is_blank(cell):
            continue
        columns.append(idx)
        headers.append(str(cell).strip())
    if not headers:
        raise FileFormatError(f"{file_name}: no valid columns found in the header row")

    rows: list[tuple[Any, ...]] = []
    for raw in raw_rows[1:]:
        projected = tuple(raw[i] if i < len(raw) else None for i in columns)
        if all(_is_blank(c) for c in projected):
            continue
        rows.append(projected)

    return ParsedFile(file_name=file_name, headers=tuple(headers), rows=tuple(rows))


def parse_bytes(data: bytes, file_name: str) -> ParsedFile:
    """Parse an in-memory upload whose type is inferred from ``file_name``.

    Raises
    ------
    FileFormatError
        For unsupported extensions, unreadable content, or a header row with no
        non-empty cells.
    """

    suffix = Path(file_name).suffix.lower()
    try:
        if suffix in WORKBOOK_SUFFIXES:
            raw_rows = _read_workbook_rows(data)
        elif suffix in TEXT_SUFFIXES:
            raw_rows = _read_csv_rows(data)
        else:
            raise FileFormatError(
                f"{file_name}: unsupported file type {suffix or '(none)'!r}; "
                "use .xlsx or .csv"
            )
    except FileFormatError:
        raise
    except Exception as e:
        _logger.debug("parse_failed file=%s", file_name, exc_info=True)
        raise FileFormatError(f"{file_name}: could not read file: {e}") from e

    parsed = _build_parsed(file_name, raw_rows)
    _logger.info(
        "parsed file=%s columns=%d rows=%d", file_name, len(parsed.headers), len(parsed.rows)
    )
    return parsed


def parse_file(path: str | PathLike[str]) -> ParsedFile:
    """Read ``path`` from disk and parse it (see :func:`parse_bytes`)."""

    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise FileFormatError(f"{p.name}: could not open file: {e}") from e
    return parse_bytes(data, p.name)


def preview_rows(parsed: ParsedFile, limit: int = 5) -> Iterable[tuple[Any, ...]]:
    """Return the first ``limit`` data rows for display."""

    return parsed.rows[: max(0, limit)]


__all__ = [
    "TEXT_SUFFIXES",
    "WORKBOOK_SUFFIXES",
    "parse_bytes",
    "parse_file",
    "preview_rows",
]
