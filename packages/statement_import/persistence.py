# ruff: noqa: I001
"""Persistence integration for statement_import.

Writes parsed transactions to the ``movimiento`` table owned by ``libs/db``
through the ORM models in ``db.models.finance`` and the sessions provided by
``db.client``.

Scope:
- Build insert payloads from parsed rows (amounts quantized to cents).
- ``SqlTransactionStore``: the :class:`~statement_import.models.TransactionStore`
  used outside tests. Every call runs in its own ``session_scope`` and so its
  own transaction; a failed bulk insert leaves nothing behind, and rows
  inserted one at a time stay inserted even if a later row fails.
- Classify ``IntegrityError`` from the dedupe index as
  :class:`~statement_import.errors.DedupeConflictError`.
"""

from __future__ import annotations

import uuid
from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

from sqlalchemy import func, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.client import session_scope
from db.models.finance import DEDUPE_INDEX_NAME, Movimiento
from .errors import DedupeConflictError
from .logging_setup import get_logger
from .models import ParsedTransaction, StoredTransaction

logger = get_logger("statement_import.persistence")

# Rows per INSERT ... ON CONFLICT statement; keeps bound parameters well under
# SQLite's per-statement limit.
NATIVE_CHUNK_SIZE = 200

type DedupeKey = tuple[str, date, Decimal, str, str]


def _to_decimal_2(raw: Any) -> Decimal | None:
    if raw is None:
        return None
    try:
        d = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def build_insert_payload(
    tx: ParsedTransaction,
    *,
    account_id: str,
    created_by: str | None = None,
) -> dict[str, Any]:
    """Return the ``movimiento`` column values for one parsed row."""

    return {
        "cuenta_id": account_id,
        "fecha": tx.fecha,
        "concepto": tx.concepto,
        "descripcion": tx.descripcion,
        "contraparte": tx.contraparte,
        "importe": _to_decimal_2(tx.importe),
        "categoria_id": tx.categoria_id,
        "creado_por": created_by or "",
    }


def dedupe_key(row: Mapping[str, Any]) -> DedupeKey:
    """The tuple the dedupe index compares, with NULL descriptions as ``''``."""

    fecha = row["fecha"]
    if isinstance(fecha, str):
        fecha = date.fromisoformat(fecha)
    return (
        str(row["cuenta_id"]),
        fecha,
        _to_decimal_2(row["importe"]) or Decimal("0.00"),
        row["concepto"],
        row.get("descripcion") or "",
    )


def is_dedupe_violation(exc: IntegrityError) -> bool:
    """Whether ``exc`` was raised by the dedupe unique index.

    PostgreSQL drivers expose the constraint name on ``orig.diag``; SQLite
    only names the index in the message (``UNIQUE constraint failed: index
    'uq_movimiento_dedupe'``).
    """

    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    if getattr(diag, "constraint_name", None) == DEDUPE_INDEX_NAME:
        return True
    return DEDUPE_INDEX_NAME in str(orig if orig is not None else exc)


def _with_id(row: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(row)
    out.setdefault("id", str(uuid.uuid4()))
    return out


def _dialect_insert(session: Session):
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return pg_insert
    if name == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"ON CONFLICT DO NOTHING is not supported for dialect {name!r}")


class SqlTransactionStore:
    """SQLAlchemy-backed store for ``movimiento`` rows.

    ``database_url`` defaults to ``DATABASE_URL`` (see :mod:`db.client`).
    """

    def __init__(self, database_url: str | None = None) -> None:
        self.database_url = database_url

    def insert_many(self, rows: list[dict[str, Any]]) -> None:
        if not rows:
            return
        try:
            with session_scope(database_url=self.database_url) as session:
                session.execute(insert(Movimiento), [_with_id(r) for r in rows])
        except IntegrityError as exc:
            if is_dedupe_violation(exc):
                raise DedupeConflictError(str(exc.orig)) from exc
            raise

    def insert_one(self, row: dict[str, Any]) -> None:
        try:
            with session_scope(database_url=self.database_url) as session:
                session.execute(insert(Movimiento), [_with_id(row)])
        except IntegrityError as exc:
            if is_dedupe_violation(exc):
                raise DedupeConflictError(str(exc.orig)) from exc
            raise

    def find_existing(self, row: dict[str, Any]) -> StoredTransaction | None:
        """Look up the stored row that collides with ``row``.

        Candidates share account, date, amount and concept; an exact
        (NULL-safe) description match is preferred.
        """

        wanted = row.get("descripcion") or ""
        stmt = (
            select(Movimiento)
            .where(
                Movimiento.cuenta_id == row["cuenta_id"],
                Movimiento.fecha == row["fecha"],
                Movimiento.importe == _to_decimal_2(row["importe"]),
                Movimiento.concepto == row["concepto"],
            )
            .order_by(
                (func.coalesce(Movimiento.descripcion, "") == wanted).desc(),
                Movimiento.creado_en,
            )
            .limit(1)
        )
        with session_scope(database_url=self.database_url) as session:
            found = session.execute(stmt).scalars().first()
            if found is None:
                return None
            return StoredTransaction(
                id=found.id,
                cuenta_id=found.cuenta_id,
                fecha=found.fecha,
                concepto=found.concepto,
                importe=found.importe,
                descripcion=found.descripcion,
            )

    def insert_skipping_conflicts(self, rows: Sequence[dict[str, Any]]) -> list[int]:
        """Insert ``rows`` with ``ON CONFLICT DO NOTHING``; return rejected positions.

        Inserted rows are read back with ``RETURNING`` and matched to inputs
        by dedupe key. When several inputs share a key, the earliest ones are
        taken as inserted, matching what a row-by-row insert would do.
        On dialects other than PostgreSQL and SQLite it raises
        ``NotImplementedError`` before writing anything.
        """

        rejected: list[int] = []
        for start in range(0, len(rows), NATIVE_CHUNK_SIZE):
            chunk = [_with_id(r) for r in rows[start : start + NATIVE_CHUNK_SIZE]]
            with session_scope(database_url=self.database_url) as session:
                dialect_insert = _dialect_insert(session)
                stmt = (
                    dialect_insert(Movimiento)
                    .values(chunk)
                    .on_conflict_do_nothing()
                    .returning(
                        Movimiento.cuenta_id,
                        Movimiento.fecha,
                        Movimiento.importe,
                        Movimiento.concepto,
                        Movimiento.descripcion,
                    )
                )
                returned = Counter(dedupe_key(r._mapping) for r in session.execute(stmt))
            for offset, row in enumerate(chunk):
                key = dedupe_key(row)
                if returned[key] > 0:
                    returned[key] -= 1
                else:
                    rejected.append(start + offset)
        logger.debug("native insert: %d of %d row(s) rejected", len(rejected), len(rows))
        return rejected


__all__ = [
    "NATIVE_CHUNK_SIZE",
    "SqlTransactionStore",
    "build_insert_payload",
    "dedupe_key",
    "is_dedupe_violation",
]
