"""Duplicate explanation and the force-insert override.

Public surface:
- ``describe_conflict``: human-readable reason for a dedupe rejection, built
  by comparing the candidate against the stored row it collided with.
- ``DuplicateResolver``: holds the duplicates flagged by an import run and
  lets the user force selected ones in. A forced row gets an audit line
  appended to ``descripcion`` so its tuple no longer collides with the stored
  original; nothing else about the row changes.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from .errors import ForceInsertError
from .logging_setup import get_logger
from .models import DuplicateTransaction, ImportReport, StoredTransaction, TransactionStore
from .persistence import build_insert_payload
from .settings import ImportSettings

logger = get_logger("statement_import.duplicates")

REASON_NOT_FOUND = "Conflicto con un movimiento existente que no se ha podido localizar"
REASON_IDENTICAL = "Ya existe un movimiento idéntico (fecha, concepto, importe y descripción)"
REASON_DESCRIPTION_DIFFERS = (
    "Ya existe un movimiento con la misma fecha, concepto e importe pero distinta "
    "descripción (existente: {existing!r}, nueva: {candidate!r})"
)


def describe_conflict(candidate: Mapping[str, Any], existing: StoredTransaction | None) -> str:
    """Explain why ``candidate`` (an insert payload) was rejected."""

    if existing is None:
        return REASON_NOT_FOUND
    stored = existing.descripcion or ""
    incoming = candidate.get("descripcion") or ""
    if stored == incoming:
        return REASON_IDENTICAL
    return REASON_DESCRIPTION_DIFFERS.format(existing=stored, candidate=incoming)


class DuplicateResolver:
    """Force-insert workflow over the duplicates of one :class:`ImportReport`.

    ``clock`` returns the timestamp written into the audit marker (defaults to
    local ``datetime.now``); tests inject a fixed one.
    """

    def __init__(
        self,
        store: TransactionStore,
        report: ImportReport,
        *,
        settings: ImportSettings | None = None,
        clock: Callable[[], datetime] | None = None,
        created_by: str | None = None,
    ) -> None:
        self.store = store
        self.report = report
        self.settings = settings or ImportSettings()
        self.clock = clock or datetime.now
        self.created_by = created_by
        self._pending: dict[int, DuplicateTransaction] = {
            d.original_index: d for d in report.duplicates
        }

    @property
    def pending(self) -> list[DuplicateTransaction]:
        """Flagged duplicates not yet forced, in batch order."""

        return [self._pending[i] for i in sorted(self._pending)]

    def audit_marker(self) -> str:
        return self.settings.audit_marker.format(
            timestamp=self.clock().isoformat(timespec="seconds")
        )

    def build_forced_payload(self, dup: DuplicateTransaction) -> dict[str, Any]:
        """Insert payload for ``dup`` with the audit marker appended to ``descripcion``."""

        payload = build_insert_payload(
            dup.transaction, account_id=self.report.account_id, created_by=self.created_by
        )
        marker = self.audit_marker()
        payload["descripcion"] = f"{dup.descripcion}\n{marker}" if dup.descripcion else marker
        return payload

    def force_insert(self, original_index: int) -> dict[str, Any]:
        """Insert one pending duplicate; return the payload written.

        Raises ``KeyError`` when ``original_index`` is not pending and
        :class:`ForceInsertError` when the store rejects the row (it then
        stays pending).
        """

        dup = self._pending.get(original_index)
        if dup is None:
            raise KeyError(f"No pending duplicate at batch position {original_index}")
        payload = self.build_forced_payload(dup)
        try:
            self.store.insert_one(payload)
        except Exception as exc:
            logger.warning("force insert of row %d failed: %s", original_index, exc)
            raise ForceInsertError(
                f"Could not force-insert duplicate at batch position {original_index}: {exc}",
                original_index=original_index,
            ) from exc
        del self._pending[original_index]
        self.report.inserted_count += 1
        logger.info(
            "forced duplicate %d in (%s %s %s)",
            original_index,
            dup.fecha.isoformat(),
            dup.concepto,
            dup.importe,
        )
        return payload

    def force_all(self) -> dict[int, ForceInsertError]:
        """Force every pending duplicate; return the failures by batch position."""

        failures: dict[int, ForceInsertError] = {}
        for dup in self.pending:
            try:
                self.force_insert(dup.original_index)
            except ForceInsertError as exc:
                failures[dup.original_index] = exc
        return failures


__all__ = [
    "DuplicateResolver",
    "describe_conflict",
    "REASON_NOT_FOUND",
    "REASON_IDENTICAL",
    "REASON_DESCRIPTION_DIFFERS",
]
