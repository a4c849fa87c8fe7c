"""Ingest utilities shared by the API, the CLI and tests.

Maps a source type (``manual``, ``sabadell``, ``caixabank``) to its row
parser and the file formats it accepts, and runs read-then-parse in one call.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ..categories import CategoryResolver
from ..errors import UnsupportedFileError
from ..models import ParseResult
from .adapters.caixabank_xlsx import parse_caixabank
from .adapters.manual_template import parse_manual
from .adapters.sabadell_xlsx import parse_sabadell
from .sheets import Grid, detect_format, read_grid

_WORKBOOK_FORMATS = frozenset({"xlsx", "xls"})


@dataclass(frozen=True, slots=True)
class Layout:
    name: str
    formats: frozenset[str]
    parse: Callable[[Grid, CategoryResolver, str], ParseResult]


LAYOUTS: dict[str, Layout] = {
    "manual": Layout(
        "manual",
        _WORKBOOK_FORMATS | {"csv"},
        lambda grid, resolver, ambiguous: parse_manual(
            grid, resolver=resolver, ambiguous=ambiguous
        ),
    ),
    "sabadell": Layout(
        "sabadell",
        _WORKBOOK_FORMATS,
        lambda grid, _resolver, ambiguous: parse_sabadell(grid, ambiguous=ambiguous),
    ),
    "caixabank": Layout(
        "caixabank",
        _WORKBOOK_FORMATS,
        lambda grid, _resolver, ambiguous: parse_caixabank(grid, ambiguous=ambiguous),
    ),
}


def get_layout(source: str) -> Layout:
    """Return the layout registered for ``source`` or raise ``ValueError``."""

    key = (source or "").strip().lower()
    try:
        return LAYOUTS[key]
    except KeyError:
        raise ValueError(
            f"Unknown source type {source!r}; expected one of {', '.join(sorted(LAYOUTS))}"
        ) from None


def parse_file(
    source: str,
    data: bytes,
    *,
    filename: str | None = None,
    resolver: CategoryResolver | None = None,
    ambiguous: str = "european",
) -> ParseResult:
    """Read ``data`` and parse it with the ``source`` layout.

    Raises ``ValueError`` for an unknown source, :class:`UnsupportedFileError`
    when the file format is not accepted by the layout, and
    :class:`~statement_import.errors.RowParseError` for fatal bank-layout rows.
    """

    layout = get_layout(source)
    fmt = detect_format(data, filename)
    if fmt not in layout.formats:
        raise UnsupportedFileError(
            f"The {layout.name} layout requires a workbook (.xlsx or .xls); got {fmt}"
        )
    grid = read_grid(data, filename)
    return layout.parse(grid, resolver or CategoryResolver(), ambiguous)


__all__ = ["LAYOUTS", "Layout", "get_layout", "parse_file"]
