"""Row helpers shared by the positional layout adapters.

Bank layouts require the ``(date, concept, amount)`` triad in fixed columns.
A row blank in all three is padding and skipped; a row with only part of the
triad, or with an unreadable date/amount, is fatal for the whole file.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ...errors import RowParseError
from ...normalizers import cell_text, format_concept, is_blank, parse_amount, parse_date
from ...models import ParsedTransaction

INCOMPLETE_ROW = "INCOMPLETE_ROW"
INVALID_DATE = "INVALID_DATE"
INVALID_AMOUNT = "INVALID_AMOUNT"


def cell_at(row: Sequence[Any], col: int) -> Any:
    """Return ``row[col]`` or ``None`` for short rows."""

    return row[col] if col < len(row) else None


def parse_bank_row(
    row: Sequence[Any],
    *,
    row_number: int,
    layout: str,
    date_col: int,
    concept_col: int,
    amount_col: int,
    ambiguous: str,
    descripcion: str | None = None,
) -> ParsedTransaction | None:
    """Parse the required triad of a bank-layout row.

    Returns ``None`` for rows blank in every required column and raises
    :class:`RowParseError` (carrying ``row_number`` and ``layout``) otherwise
    when a required value is missing or unreadable.
    """

    raw_date = cell_at(row, date_col)
    raw_concept = cell_at(row, concept_col)
    raw_amount = cell_at(row, amount_col)

    if is_blank(raw_date) and is_blank(raw_concept) and is_blank(raw_amount):
        return None
    if is_blank(raw_date) or is_blank(raw_concept) or is_blank(raw_amount):
        raise RowParseError(
            "Incomplete row: date, concept and amount are required",
            row=row_number,
            code=INCOMPLETE_ROW,
            layout=layout,
        )

    fecha = parse_date(raw_date)
    if fecha is None:
        raise RowParseError(
            f"Invalid date: {raw_date!r}", row=row_number, code=INVALID_DATE, layout=layout
        )
    importe = parse_amount(raw_amount, ambiguous=ambiguous)
    if importe is None:
        raise RowParseError(
            f"Invalid amount: {raw_amount!r}",
            row=row_number,
            code=INVALID_AMOUNT,
            layout=layout,
        )

    return ParsedTransaction(
        fecha=fecha,
        concepto=format_concept(cell_text(raw_concept)),
        importe=importe,
        descripcion=descripcion,
        source_row=row_number,
    )


__all__ = [
    "INCOMPLETE_ROW",
    "INVALID_DATE",
    "INVALID_AMOUNT",
    "cell_at",
    "parse_bank_row",
]
