"""Exception types raised by the import engine.

Parse errors and non-duplicate store errors are fatal and always propagate to
the caller. ``DedupeConflictError`` is the only failure the importer recovers
from; it is turned into report data rather than surfaced.
"""

from __future__ import annotations


class StatementImportError(Exception):
    """Base class for every error raised by ``statement_import``."""


class RowParseError(StatementImportError):
    """A required cell of a bank-layout row could not be parsed.

    ``row`` is the 1-based sheet row number and ``code`` one of
    ``INCOMPLETE_ROW``, ``INVALID_DATE`` or ``INVALID_AMOUNT``.
    """

    def __init__(self, message: str, *, row: int, code: str, layout: str) -> None:
        super().__init__(message)
        self.message = message
        self.row = row
        self.code = code
        self.layout = layout

    @property
    def qualified_code(self) -> str:
        return f"{self.layout.upper()}_{self.code}"

    def __str__(self) -> str:
        return f"[{self.layout}:{self.code}] row {self.row}: {self.message}"


class UnsupportedFileError(StatementImportError):
    """The file cannot be read, or its format is not accepted by the layout."""


class DedupeConflictError(StatementImportError):
    """Raised by stores when an insert violates the dedupe unique index."""


class ImportStoreError(StatementImportError):
    """A store failure not attributable to the dedupe index; aborts the run.

    ``phase`` is ``"bulk"`` or ``"isolation"``; ``row_index`` is the batch
    position being inserted when the isolation phase failed.
    ``inserted_count`` is how many rows of the batch were already committed
    when the run aborted (always 0 for the bulk phase).
    """

    def __init__(
        self,
        message: str,
        *,
        phase: str,
        row_index: int | None = None,
        inserted_count: int = 0,
    ) -> None:
        super().__init__(message)
        self.phase = phase
        self.row_index = row_index
        self.inserted_count = inserted_count


class ForceInsertError(StatementImportError):
    """A forced duplicate insert failed; the row stays pending."""

    def __init__(self, message: str, *, original_index: int) -> None:
        super().__init__(message)
        self.original_index = original_index


__all__ = [
    "StatementImportError",
    "RowParseError",
    "UnsupportedFileError",
    "DedupeConflictError",
    "ImportStoreError",
    "ForceInsertError",
]
