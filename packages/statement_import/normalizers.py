"""Cell-value normalizers: amounts, dates, concepts and plain text.

Sheet cells arrive either typed (numbers, ``datetime`` objects from openpyxl,
float date serials from xlrd) or as text written with Spanish or American
conventions. Every helper here is pure and returns ``None`` for values it
cannot read; callers decide whether that is fatal (bank layouts) or a skip
(manual layout).
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_CURRENCY_RE = re.compile(r"€|\$|£|\bEUR\b|\bUSD\b", re.IGNORECASE)
_NUMBER_RE = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")


def _resolve_separators(s: str, ambiguous: str) -> str:
    """Rewrite ``s`` so that ``.`` is the only (decimal) separator."""

    dots = s.count(".")
    commas = s.count(",")
    if not dots and not commas:
        return s
    if dots == 1 and not commas:
        # "1234.56" keeps its decimal point; "1.234" is a thousands group.
        fraction = s.rsplit(".", 1)[1]
        return s if len(fraction) <= 2 else s.replace(".", "")
    if commas == 1 and not dots:
        return s.replace(",", ".")

    last_dot = s.rfind(".")
    last_comma = s.rfind(",")
    if commas == 1 and last_comma > last_dot:
        # 1.234.567,89
        return s.replace(".", "").replace(",", ".")
    if dots == 1 and last_dot > last_comma:
        # 1,234,567.89
        return s.replace(",", "")

    if ambiguous == "american":
        return s.replace(",", "")
    return s.replace(".", "").replace(",", ".")


def parse_amount(value: Any, *, ambiguous: str = "european") -> float | None:
    """Parse a signed amount from a cell value.

    Accepts numbers as-is and text with any mixture of ``.``/``,`` separators,
    an optional currency symbol, optional surrounding parentheses (negative)
    and an optional leading ``+``/``-`` (a trailing ``-`` is also read as a
    sign). Mixtures that fit no unambiguous pattern follow ``ambiguous``
    (``"european"`` or ``"american"``).

    Returns ``None`` when the value is empty or not a number.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        f = float(value)
        return f if math.isfinite(f) else None

    s = _CURRENCY_RE.sub("", str(value))
    # Spaces (including NBSP) only ever appear as grouping or padding.
    s = re.sub(r"\s+", "", s)
    if not s:
        return None

    negative = False
    # Iteratively strip sign markers and parentheses until stable so that
    # orderings like "-(1.234,56)" and "(1.234,56)-" are handled alike.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:]
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:]
            changed = True
        if s.endswith("-"):
            negative = True
            s = s[:-1]
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1]
            changed = True
        if not changed:
            break

    s = _resolve_separators(s, ambiguous)
    if not _NUMBER_RE.match(s):
        return None
    amount = float(s)
    return -amount if negative else amount


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

# Spreadsheet serial for 1970-01-01 (day 0 of the Unix epoch).
EXCEL_UNIX_EPOCH_SERIAL = 25569
_UNIX_EPOCH = date(1970, 1, 1)

_GENERIC_DATE_FORMATS = ("%d-%m-%Y", "%d.%m.%Y", "%d-%m-%y", "%d.%m.%y")


def serial_to_date(serial: float) -> date | None:
    """Convert a spreadsheet date serial (days, fraction = time) to a date."""

    f = float(serial)
    if not math.isfinite(f) or f <= 0:
        return None
    try:
        return _UNIX_EPOCH + timedelta(days=math.floor(f) - EXCEL_UNIX_EPOCH_SERIAL)
    except OverflowError:
        return None


def _parse_slashed(s: str) -> date | None:
    parts = s.split("/")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    if len(parts[0]) == 4:
        fmt = "%Y/%m/%d"
    elif len(parts[2]) == 2:
        fmt = "%d/%m/%y"
    elif len(parts[2]) == 4:
        fmt = "%d/%m/%Y"
    else:
        return None
    try:
        return datetime.strptime(s, fmt).date()
    except ValueError:
        return None


def _parse_generic(s: str) -> date | None:
    head = s.split("T", 1)[0]
    try:
        return date.fromisoformat(head)
    except ValueError:
        pass
    for fmt in _GENERIC_DATE_FORMATS:
        try:
            return datetime.strptime(head, fmt).date()
        except ValueError:
            continue
    return None


def parse_date(value: Any) -> date | None:
    """Parse a calendar date from a cell value.

    - ``datetime``/``date`` cells are used directly.
    - Numbers are spreadsheet serials: ``1970-01-01 + (serial - 25569)`` days.
    - Text containing ``/`` is day/month/year (two- or four-digit year), or
      year/month/day when the first segment has four digits.
    - Other text is tried as ISO ``YYYY-MM-DD`` (a time part is ignored),
      then ``DD-MM-YYYY`` and ``DD.MM.YYYY``.

    Returns ``None`` when the value is empty or not a date.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float, Decimal)):
        return serial_to_date(float(value))

    s = str(value).strip()
    if not s:
        return None
    # Drop a trailing time component ("31/01/2024 00:00:00")
    head = s.split()[0]
    if "/" in head:
        return _parse_slashed(head)
    return _parse_generic(head)


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def format_concept(text: str | None) -> str:
    """Normalize a transaction label's capitalization.

    Words of up to two characters are lower-cased (``de``, ``a``, ``en``);
    longer words get an upper-case first letter and lower-case remainder.
    Whitespace runs collapse to single spaces. Applying it twice is the same
    as applying it once.
    """

    if not text:
        return ""
    return " ".join(_format_word(w) for w in text.split())


def _format_word(word: str) -> str:
    # Length is measured after lower-casing; "İ" lower-cases to two code points.
    lowered = word.lower()
    if len(lowered) <= 2:
        return lowered
    first = lowered[:1].upper()
    if len(first) != 1:
        # "ß" upper-cases to "SS"; leave it as is
        first = lowered[:1]
    return first + lowered[1:]


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def cell_text(value: Any) -> str | None:
    """Return a cell as trimmed text, or ``None`` when blank.

    Integral floats (how spreadsheets store reference numbers) render without
    a trailing ``.0``.
    """

    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip() or None


__all__ = [
    "EXCEL_UNIX_EPOCH_SERIAL",
    "parse_amount",
    "parse_date",
    "serial_to_date",
    "format_concept",
    "is_blank",
    "cell_text",
]
