"""Adapter for Banco Sabadell account-movement workbooks.

Contract
--------
- First worksheet only; the first 8 rows are the export preamble (account
  holder, IBAN, period, column titles). Movements start at sheet row 9.
- Columns (fixed, no header detection):
  ``A`` operation date, ``B`` concept, ``D`` signed amount. Column ``C``
  (value date) and anything after ``D`` (balance) are ignored.
- Amounts are already signed by the bank (inflows positive).

Failure mode
------------
Any row with part of the required triad missing, or an unreadable date or
amount, raises :class:`~statement_import.errors.RowParseError` with the
1-based sheet row; nothing from the file is imported.
"""

from __future__ import annotations

from ...models import ParsedTransaction, ParseResult
from ...logging_setup import get_logger
from ..sheets import Grid
from .common import parse_bank_row

LAYOUT = "sabadell"
PREAMBLE_ROWS = 8

DATE_COL = 0
CONCEPT_COL = 1
AMOUNT_COL = 3

logger = get_logger("statement_import.ingest.sabadell")


def parse_sabadell(grid: Grid, *, ambiguous: str = "european") -> ParseResult:
    """Convert a Sabadell sheet grid into parsed transactions in sheet order."""

    transactions: list[ParsedTransaction] = []
    for offset, row in enumerate(grid[PREAMBLE_ROWS:]):
        row_number = PREAMBLE_ROWS + offset + 1
        tx = parse_bank_row(
            row,
            row_number=row_number,
            layout=LAYOUT,
            date_col=DATE_COL,
            concept_col=CONCEPT_COL,
            amount_col=AMOUNT_COL,
            ambiguous=ambiguous,
        )
        if tx is not None:
            transactions.append(tx)

    logger.debug("sabadell: parsed %d movement(s)", len(transactions))
    return ParseResult(transactions=transactions)


__all__ = ["LAYOUT", "PREAMBLE_ROWS", "parse_sabadell"]
