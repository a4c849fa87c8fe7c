"""Adapter for CaixaBank account-movement workbooks.

Contract
--------
- First worksheet only; the first 3 rows are the export preamble. Movements
  start at sheet row 4.
- Columns (fixed, no header detection):
  ``A`` date, ``B`` value date (ignored), ``C`` concept, ``D`` description,
  ``E`` signed amount, ``F``/``G`` extra free-text columns.
- ``descripcion`` is the description followed by the non-numeric extras, one
  per line. Extras that are purely numeric (numeric cells or digit-only
  text, typically reference numbers) are noise and dropped.

Failure mode
------------
Same as the Sabadell adapter: a partially filled required triad or an
unreadable date/amount raises :class:`~statement_import.errors.RowParseError`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ...models import ParsedTransaction, ParseResult
from ...logging_setup import get_logger
from ...normalizers import cell_text
from ..sheets import Grid
from .common import cell_at, parse_bank_row

LAYOUT = "caixabank"
PREAMBLE_ROWS = 3

DATE_COL = 0
CONCEPT_COL = 2
DESCRIPTION_COL = 3
AMOUNT_COL = 4
EXTRA_COLS = (5, 6)

logger = get_logger("statement_import.ingest.caixabank")


def _is_numeric_noise(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and value.strip().isdigit()


def _compose_description(row: Sequence[Any]) -> str | None:
    parts: list[str] = []
    desc = cell_text(cell_at(row, DESCRIPTION_COL))
    if desc:
        parts.append(desc)
    for col in EXTRA_COLS:
        value = cell_at(row, col)
        if _is_numeric_noise(value):
            continue
        text = cell_text(value)
        if text:
            parts.append(text)
    return "\n".join(parts) if parts else None


def parse_caixabank(grid: Grid, *, ambiguous: str = "european") -> ParseResult:
    """Convert a CaixaBank sheet grid into parsed transactions in sheet order."""

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
            descripcion=_compose_description(row),
        )
        if tx is not None:
            transactions.append(tx)

    logger.debug("caixabank: parsed %d movement(s)", len(transactions))
    return ParseResult(transactions=transactions)


__all__ = ["LAYOUT", "PREAMBLE_ROWS", "parse_caixabank"]
