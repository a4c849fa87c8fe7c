"""Adapter for the user-authored manual import template.

Contract
--------
- Row 1 is the header; data starts at row 2.
- Columns (fixed): ``A`` Fecha, ``B`` Concepto, ``C`` Importe,
  ``D`` Descripción, ``E`` Categoría, ``F`` Contraparte.
- Date and amount are required. Rows where either is missing or unreadable
  are skipped and their 1-based row numbers reported; rows blank in both are
  padding and ignored without a tally.
- A blank concept becomes ``"SIN NOMBRE"``.
- The category name is matched against the organization's categories; when
  nothing matches, ``"Categoría no encontrada: <name>"`` is appended as the
  last line of ``descripcion`` so the user can fix it later.

The header itself is not used for column lookup, but a header that does not
look like the template is logged since it usually means the wrong file.
"""

from __future__ import annotations

import unicodedata
from os import PathLike
from pathlib import Path
from typing import Any

import openpyxl

from ...categories import CategoryResolver
from ...logging_setup import get_logger
from ...models import PLACEHOLDER_CONCEPT, ParsedTransaction, ParseResult
from ...normalizers import cell_text, format_concept, is_blank, parse_amount, parse_date
from ..sheets import Grid
from .common import cell_at

LAYOUT = "manual"

MANUAL_HEADER: tuple[str, ...] = (
    "Fecha",
    "Concepto",
    "Importe",
    "Descripción",
    "Categoría",
    "Contraparte",
)
UNMATCHED_CATEGORY_NOTE = "Categoría no encontrada: {name}"

DATE_COL = 0
CONCEPT_COL = 1
AMOUNT_COL = 2
DESCRIPTION_COL = 3
CATEGORY_COL = 4
COUNTERPARTY_COL = 5

logger = get_logger("statement_import.ingest.manual")


def _fold(value: Any) -> str:
    text = cell_text(value) or ""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def header_matches(row: list[Any]) -> bool:
    """Whether ``row`` carries the template's header (accents and case ignored)."""

    expected = [_fold(h) for h in MANUAL_HEADER[:3]]
    return [_fold(cell_at(row, i)) for i in range(3)] == expected


def _compose_description(description: str | None, unmatched_category: str | None) -> str | None:
    lines = [description] if description else []
    if unmatched_category:
        lines.append(UNMATCHED_CATEGORY_NOTE.format(name=unmatched_category))
    return "\n".join(lines) if lines else None


def parse_manual(
    grid: Grid,
    *,
    resolver: CategoryResolver | None = None,
    ambiguous: str = "european",
) -> ParseResult:
    """Convert a manual-template grid into parsed transactions plus skipped rows."""

    if resolver is None:
        resolver = CategoryResolver()
    if grid and not header_matches(grid[0]):
        logger.warning(
            "manual: header row %r does not match the template (%s); parsing positionally",
            [cell_text(c) for c in grid[0][: len(MANUAL_HEADER)]],
            ", ".join(MANUAL_HEADER),
        )

    transactions: list[ParsedTransaction] = []
    skipped: list[int] = []
    for offset, row in enumerate(grid[1:]):
        row_number = offset + 2
        raw_date = cell_at(row, DATE_COL)
        raw_amount = cell_at(row, AMOUNT_COL)
        if is_blank(raw_date) and is_blank(raw_amount):
            continue

        fecha = parse_date(raw_date)
        importe = parse_amount(raw_amount, ambiguous=ambiguous)
        if fecha is None or importe is None:
            logger.info(
                "manual: skipping row %d (fecha=%r, importe=%r)", row_number, raw_date, raw_amount
            )
            skipped.append(row_number)
            continue

        concept = cell_text(cell_at(row, CONCEPT_COL))
        match = resolver.resolve(cell_at(row, CATEGORY_COL))
        transactions.append(
            ParsedTransaction(
                fecha=fecha,
                concepto=format_concept(concept) if concept else PLACEHOLDER_CONCEPT,
                importe=importe,
                descripcion=_compose_description(
                    cell_text(cell_at(row, DESCRIPTION_COL)), match.unmatched_name
                ),
                contraparte=cell_text(cell_at(row, COUNTERPARTY_COL)),
                categoria_id=match.categoria_id,
                source_row=row_number,
            )
        )

    logger.debug(
        "manual: parsed %d movement(s), skipped %d row(s)", len(transactions), len(skipped)
    )
    return ParseResult(transactions=transactions, skipped_rows=skipped)


def write_manual_template(path: str | PathLike[str]) -> Path:
    """Write an empty manual-template workbook with the header row to ``path``."""

    p = Path(path)
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Movimientos"
    ws.append(list(MANUAL_HEADER))
    for col, width in zip("ABCDEF", (12, 32, 12, 40, 20, 24)):
        ws.column_dimensions[col].width = width
    ws.freeze_panes = "A2"
    wb.save(p)
    return p


__all__ = [
    "LAYOUT",
    "MANUAL_HEADER",
    "header_matches",
    "parse_manual",
    "write_manual_template",
]
