"""Read an uploaded file into a 2-D grid of raw cell values.

Only the first worksheet of a workbook is read. Rows keep their sheet
position (blank rows are preserved as rows of ``None``) so that row parsers
can report 1-based sheet row numbers.

Supported inputs
----------------
- ``.xlsx``/``.xlsm`` workbooks via :mod:`openpyxl`; date-formatted cells
  arrive as ``datetime`` objects, numbers as ``int``/``float``.
- Legacy ``.xls`` workbooks via :mod:`xlrd`; date cells arrive as float
  serials, which :func:`statement_import.normalizers.parse_date` converts.
- Delimited text (``,`` ``;`` or tab, sniffed from the first lines); cells
  are strings, empty cells ``None``.
"""

from __future__ import annotations

import csv
import io
import zipfile
from pathlib import PurePath
from typing import Any

import openpyxl
import xlrd
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import UnsupportedFileError

type Grid = list[list[Any]]

_XLSX_SUFFIXES = {".xlsx", ".xlsm"}
_XLS_SUFFIXES = {".xls"}
_TEXT_SUFFIXES = {".csv", ".txt", ".tsv"}

# Magic numbers: xlsx is a zip container, xls an OLE2 compound document.
_ZIP_MAGIC = b"PK\x03\x04"
_OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


def detect_format(data: bytes, filename: str | None = None) -> str:
    """Return ``"xlsx"``, ``"xls"`` or ``"csv"`` for the given content.

    Content sniffing wins over the file extension; the extension only decides
    between text formats and rejects unknown binary uploads.
    """

    if data.startswith(_ZIP_MAGIC):
        return "xlsx"
    if data.startswith(_OLE2_MAGIC):
        return "xls"
    suffix = PurePath(filename).suffix.lower() if filename else ""
    if suffix in _XLSX_SUFFIXES | _XLS_SUFFIXES:
        raise UnsupportedFileError(
            f"{filename!r} has a spreadsheet extension but is not a valid workbook"
        )
    if suffix and suffix not in _TEXT_SUFFIXES:
        raise UnsupportedFileError(f"Unsupported file type: {suffix!r}")
    if b"\x00" in data[:4096]:
        raise UnsupportedFileError("File looks binary but is not a known workbook format")
    return "csv"


def _read_xlsx(data: bytes) -> Grid:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(data), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
        raise UnsupportedFileError(f"Could not open workbook: {exc}") from exc
    try:
        if not wb.worksheets:
            return []
        ws = wb.worksheets[0]
        if ws.max_row == 1 and ws.max_column == 1 and ws.cell(1, 1).value is None:
            return []
        return [list(row) for row in ws.iter_rows(min_row=1, values_only=True)]
    finally:
        wb.close()


def _read_xls(data: bytes) -> Grid:
    try:
        book = xlrd.open_workbook(file_contents=data)
    except xlrd.XLRDError as exc:
        raise UnsupportedFileError(f"Could not open workbook: {exc}") from exc
    if book.nsheets == 0:
        return []
    sheet = book.sheet_by_index(0)
    grid: Grid = []
    for r in range(sheet.nrows):
        row: list[Any] = []
        for cell in sheet.row(r):
            if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                row.append(None)
            else:
                row.append(cell.value)
        grid.append(row)
    return grid


class _SemicolonDialect(csv.excel):
    delimiter = ";"


def _decode_text(data: bytes) -> str:
    # Spreadsheet tools on Windows still export cp1252/latin-1 CSVs.
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _read_delimited(data: bytes) -> Grid:
    text = _decode_text(data)
    if not text.strip():
        return []
    sample = "\n".join(text.splitlines()[:20])
    try:
        dialect: Any = csv.Sniffer().sniff(sample, delimiters=";,\t")
    except csv.Error:
        # Single-column or irregular files: Spanish exports default to ';'
        dialect = _SemicolonDialect if sample.count(";") > sample.count(",") else csv.excel
    reader = csv.reader(io.StringIO(text, newline=""), dialect)
    return [[(cell if cell.strip() else None) for cell in row] for row in reader]


def read_grid(data: bytes, filename: str | None = None) -> Grid:
    """Read ``data`` (the uploaded file's bytes) into a grid of raw cells."""

    fmt = detect_format(data, filename)
    if fmt == "xlsx":
        return _read_xlsx(data)
    if fmt == "xls":
        return _read_xls(data)
    return _read_delimited(data)


__all__ = ["Grid", "detect_format", "read_grid"]
