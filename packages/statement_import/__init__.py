"""Public interface for the ``statement_import`` package.

This module exposes the package's entry points and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import import_statement, import_statement_file
from .categories import CategoryMatch, CategoryResolver, load_categories
from .duplicates import DuplicateResolver, describe_conflict
from .errors import (
    DedupeConflictError,
    ForceInsertError,
    ImportStoreError,
    RowParseError,
    StatementImportError,
    UnsupportedFileError,
)
from .importer import BatchImporter
from .ingest.adapters.manual_template import write_manual_template
from .models import (
    CategoryRef,
    DuplicateTransaction,
    ImportReport,
    ParsedTransaction,
    ParseResult,
    StoredTransaction,
    TransactionStore,
)
from .normalizers import format_concept, parse_amount, parse_date
from .persistence import SqlTransactionStore
from .settings import ImportSettings, load_settings

__all__ = [
    # API
    "import_statement",
    "import_statement_file",
    "BatchImporter",
    "DuplicateResolver",
    "describe_conflict",
    "CategoryResolver",
    "CategoryMatch",
    "load_categories",
    "SqlTransactionStore",
    "write_manual_template",
    # Normalizers
    "parse_amount",
    "parse_date",
    "format_concept",
    # Models / types
    "ParsedTransaction",
    "ParseResult",
    "DuplicateTransaction",
    "ImportReport",
    "StoredTransaction",
    "TransactionStore",
    "CategoryRef",
    # Settings
    "ImportSettings",
    "load_settings",
    # Errors
    "StatementImportError",
    "RowParseError",
    "UnsupportedFileError",
    "DedupeConflictError",
    "ImportStoreError",
    "ForceInsertError",
]
