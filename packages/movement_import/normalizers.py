"""Cell→value normalizers shared by every pipeline stage.

- ``normalize_text``: the lookup key form used for header synonyms and catalog
  matching (lower-case, accents stripped, whitespace collapsed).
- ``parse_amount``: locale-tolerant numeric parsing for amounts and exchange
  rates.
- ``parse_date``: ISO / day-first / spreadsheet-serial date parsing.

Each parser returns ``None`` when the cell cannot be interpreted; callers treat
that as "field not populated".
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

_WS_RE = re.compile(r"\s+")


def normalize_text(value: Any) -> str:
    """Return the comparison key for ``value``.

    Lower-cases, decomposes (NFD) and drops combining marks, trims, and
    collapses runs of whitespace to a single space. ``None`` maps to ``""``.
    """

    if value is None:
        return ""
    s = unicodedata.normalize("NFD", str(value).lower())
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return _WS_RE.sub(" ", s).strip()


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_CURRENCY_MARKS = ("US$", "U$S", "AR$", "$", "€", "£", "USD", "ARS", "EUR")


def _strip_markers(s: str) -> tuple[str, bool]:
    negative = False
    # Strip leading sign, currency marks and parentheses until stable so any
    # ordering such as "-$ (1.234,50)" is accepted.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        for mark in _CURRENCY_MARKS:
            if s.upper().startswith(mark):
                s = s[len(mark) :].lstrip()
                changed = True
                break
        for mark in _CURRENCY_MARKS:
            if s.upper().endswith(mark):
                s = s[: -len(mark)].rstrip()
                changed = True
                break
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            return s, negative


def _canonical_number(s: str) -> str:
    """Rewrite ``s`` so that ``.`` is the only (decimal) separator.

    Rules: with both separators present the rightmost one is the decimal
    separator; a separator repeated more than once is a thousands separator; a
    single ``,`` or a single ``.`` is a decimal separator.
    """

    dots, commas = s.count("."), s.count(",")
    if dots and commas:
        if s.rfind(",") > s.rfind("."):
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    if commas > 1:
        return s.replace(",", "")
    if dots > 1:
        return s.replace(".", "")
    if commas == 1:
        return s.replace(",", ".")
    return s


def parse_amount(value: Any) -> float | None:
    """Parse an amount/exchange-rate cell; ``None`` when not numeric.

    Numbers pass through unchanged (``bool`` is rejected). Text is stripped of
    currency marks and spaces; parentheses or a leading ``-`` mean negative.
    ``"15.000,50"`` → ``15000.5`` and ``"1,234.56"`` → ``1234.56``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float | Decimal):
        return float(value)
    s = str(value).strip()
    if not s:
        return None
    s, negative = _strip_markers(s)
    s = s.replace(" ", "").replace("\u00a0", "")
    if not s:
        return None
    try:
        d = Decimal(_canonical_number(s))
    except InvalidOperation:
        return None
    if not d.is_finite():
        return None
    return float(-abs(d) if negative else d)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

# Spreadsheet serial day 0; 1899-12-30 absorbs the 1900 leap-year bug.
EXCEL_EPOCH = date(1899, 12, 30)

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y", "%d/%m/%y")


def parse_date(value: Any) -> date | None:
    """Parse a date cell; ``None`` when it cannot be interpreted.

    Accepts ``datetime``/``date`` objects, spreadsheet serial numbers
    (days since 1899-12-30, fractional part ignored), ISO strings, ISO
    datetimes and day-first ``DD/MM/YYYY`` / ``DD-MM-YYYY`` strings.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, int | float):
        if value <= 0:
            return None
        try:
            return EXCEL_EPOCH + timedelta(days=int(value))
        except OverflowError:
            return None
    s = str(value).strip()
    if not s:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    # Serial numbers that arrive as text (CSV exports of spreadsheets)
    if re.fullmatch(r"\d{5}(\.\d+)?", s):
        return parse_date(float(s))
    return None


__all__ = [
    "EXCEL_EPOCH",
    "normalize_text",
    "parse_amount",
    "parse_date",
]
