"""Data models for ``statement_import``.

Records produced by parsing are frozen dataclasses: a parsed row is created
once per import run and never mutated. Forcing a duplicate builds a new insert
payload instead of editing the record.

Field names follow the ``movimiento`` table (``fecha``, ``concepto``,
``importe``, ...), so a parsed row maps onto an insert payload one-to-one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, field_validator

# Placeholder concept for manual rows that leave the concept cell empty.
PLACEHOLDER_CONCEPT = "SIN NOMBRE"


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """A canonical transaction parsed from one sheet row, not yet persisted.

    ``importe`` is signed: positive is an inflow, negative an outflow.
    ``source_row`` is the 1-based sheet row the record came from.
    """

    fecha: date
    concepto: str
    importe: float
    descripcion: str | None = None
    contraparte: str | None = None
    categoria_id: str | None = None
    source_row: int | None = None

    @property
    def fecha_iso(self) -> str:
        return self.fecha.isoformat()


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Output of a row parser: the batch plus manual-layout skip tally."""

    transactions: list[ParsedTransaction]
    skipped_rows: list[int] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class StoredTransaction:
    """The subset of a persisted ``movimiento`` row used to explain conflicts."""

    id: str
    cuenta_id: str
    fecha: date
    concepto: str
    importe: Decimal
    descripcion: str | None


@dataclass(frozen=True, slots=True)
class DuplicateTransaction:
    """A parsed row rejected by the dedupe index during the isolation phase."""

    transaction: ParsedTransaction
    original_index: int
    conflict_reason: str
    existing_id: str | None = None
    is_duplicate: bool = True

    @property
    def fecha(self) -> date:
        return self.transaction.fecha

    @property
    def concepto(self) -> str:
        return self.transaction.concepto

    @property
    def importe(self) -> float:
        return self.transaction.importe

    @property
    def descripcion(self) -> str | None:
        return self.transaction.descripcion

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_index": self.original_index,
            "fecha": self.transaction.fecha_iso,
            "concepto": self.concepto,
            "importe": self.importe,
            "descripcion": self.descripcion,
            "conflict_reason": self.conflict_reason,
            "existing_id": self.existing_id,
        }


@dataclass(slots=True)
class ImportReport:
    """Outcome of one import run.

    ``skipped_rows`` is only populated for the manual layout. A fatal error is
    never represented here; it is raised instead.
    """

    account_id: str
    batch_size: int
    inserted_count: int = 0
    duplicates: list[DuplicateTransaction] = field(default_factory=list)
    skipped_rows: list[int] = field(default_factory=list)
    source: str | None = None

    @property
    def has_duplicates(self) -> bool:
        return bool(self.duplicates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "account_id": self.account_id,
            "batch_size": self.batch_size,
            "inserted_count": self.inserted_count,
            "duplicates": [d.to_dict() for d in self.duplicates],
            "skipped_rows": list(self.skipped_rows),
        }


class TransactionStore(Protocol):
    """Write target for parsed transactions.

    ``insert_many`` and ``insert_one`` raise
    :class:`~statement_import.errors.DedupeConflictError` when the dedupe index
    rejects a row and let any other failure propagate. ``insert_many`` is
    all-or-nothing. Stores may additionally implement
    ``insert_skipping_conflicts(rows) -> list[int]`` (positions rejected by the
    dedupe index, everything else inserted).
    """

    def insert_many(self, rows: list[dict[str, Any]]) -> None: ...

    def insert_one(self, row: dict[str, Any]) -> None: ...

    def find_existing(self, row: dict[str, Any]) -> StoredTransaction | None: ...


# ---------------------------------------------------------------------------
# Collaborator DTOs
# ---------------------------------------------------------------------------


class CategoryRef(BaseModel):
    """A category as supplied by the host application (read-only)."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)

    id: str
    nombre: str
    organizacion_id: str | None = None

    @field_validator("id", "organizacion_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, v: Any) -> Any:
        # UUIDs and integer keys arrive from different hosts; compare as text.
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("nombre")
    @classmethod
    def _nombre_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("category nombre must be non-empty")
        return v


__all__ = [
    "PLACEHOLDER_CONCEPT",
    "ParsedTransaction",
    "ParseResult",
    "StoredTransaction",
    "DuplicateTransaction",
    "ImportReport",
    "TransactionStore",
    "CategoryRef",
]
