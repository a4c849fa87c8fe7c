"""Public entry points for importing one statement file.

``import_statement`` runs the whole pipeline: read the sheet, parse it with
the layout for ``source``, and hand the batch to :class:`BatchImporter`.
Parsing finishes before the first insert, so a fatal parse error leaves the
store untouched.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from os import PathLike
from pathlib import Path
from typing import Any

from .categories import CategoryResolver
from .importer import BatchImporter, ProgressCallback
from .ingest.utils import parse_file
from .logging_setup import get_logger
from .models import CategoryRef, ImportReport, TransactionStore
from .settings import ImportSettings, load_settings

logger = get_logger("statement_import.api")


def import_statement(
    source: str,
    data: bytes,
    *,
    filename: str | None = None,
    account_id: str | None,
    store: TransactionStore,
    categories: Iterable[CategoryRef | Mapping[str, Any]] = (),
    organization_id: str | None = None,
    created_by: str | None = None,
    settings: ImportSettings | None = None,
    on_progress: ProgressCallback | None = None,
) -> ImportReport:
    """Parse ``data`` as a ``source`` statement and import it into ``account_id``.

    Parameters
    ----------
    source:
        ``"manual"``, ``"sabadell"`` or ``"caixabank"``.
    data, filename:
        The uploaded file; ``filename`` only disambiguates text formats.
    categories, organization_id:
        Read-only category list used to resolve manual-template category names.

    Returns the :class:`ImportReport`; raises
    :class:`~statement_import.errors.RowParseError`,
    :class:`~statement_import.errors.UnsupportedFileError` or
    :class:`~statement_import.errors.ImportStoreError` on fatal failures.
    """

    if not account_id:
        raise ValueError("account_id is required")
    settings = settings or load_settings()
    resolver = CategoryResolver(categories, organization_id=organization_id)

    parsed = parse_file(
        source,
        data,
        filename=filename,
        resolver=resolver,
        ambiguous=settings.ambiguous_separators,
    )
    logger.info(
        "parsed %d movement(s) from %s (%s), %d row(s) skipped",
        len(parsed.transactions),
        filename or "<bytes>",
        source,
        len(parsed.skipped_rows),
    )

    importer = BatchImporter(store, settings=settings)
    return importer.run(
        parsed.transactions,
        account_id=account_id,
        created_by=created_by,
        on_progress=on_progress,
        source=source,
        skipped_rows=parsed.skipped_rows,
    )


def import_statement_file(
    path: str | PathLike[str],
    *,
    source: str,
    **kwargs: Any,
) -> ImportReport:
    """Read ``path`` and delegate to :func:`import_statement`."""

    p = Path(path)
    return import_statement(source, p.read_bytes(), filename=p.name, **kwargs)


__all__ = ["import_statement", "import_statement_file"]
