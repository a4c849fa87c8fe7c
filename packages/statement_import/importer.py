"""Two-phase batch insert with per-row conflict isolation.

The bulk phase writes the whole batch in one all-or-nothing call; with no
duplicates (the common case) that is the only store round-trip. When the
dedupe index rejects the bulk insert, the isolation phase retries the rows one
at a time, in order, so each rejection can be attributed to exactly one row
and explained against the stored record it collided with.

Any store failure other than a dedupe conflict aborts the run with
:class:`~statement_import.errors.ImportStoreError`. Rows the isolation phase
already inserted stay inserted.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from .duplicates import describe_conflict
from .errors import DedupeConflictError, ImportStoreError
from .logging_setup import get_logger
from .models import DuplicateTransaction, ImportReport, ParsedTransaction, TransactionStore
from .persistence import build_insert_payload
from .settings import ImportSettings

logger = get_logger("statement_import.importer")

type ProgressCallback = Callable[[int], None]


class BatchImporter:
    """Insert parsed batches into a :class:`TransactionStore`."""

    def __init__(self, store: TransactionStore, *, settings: ImportSettings | None = None) -> None:
        self.store = store
        self.settings = settings or ImportSettings()

    def run(
        self,
        batch: Sequence[ParsedTransaction],
        *,
        account_id: str | None,
        created_by: str | None = None,
        on_progress: ProgressCallback | None = None,
        source: str | None = None,
        skipped_rows: Sequence[int] | None = None,
    ) -> ImportReport:
        """Import ``batch`` into ``account_id`` and report what happened.

        Parameters
        ----------
        batch:
            Parsed rows in sheet order; ``original_index`` in the report refers
            to positions in this sequence.
        on_progress:
            Called with an integer percentage after each payload is prepared.
        source, skipped_rows:
            Carried into the report unchanged.
        """

        if not account_id:
            raise ValueError("account_id is required")

        report = ImportReport(
            account_id=account_id,
            batch_size=len(batch),
            skipped_rows=list(skipped_rows or ()),
            source=source,
        )
        if not batch:
            logger.info("nothing to import into account %s", account_id)
            return report

        payloads: list[dict[str, Any]] = []
        total = len(batch)
        for i, tx in enumerate(batch, start=1):
            payloads.append(build_insert_payload(tx, account_id=account_id, created_by=created_by))
            if on_progress is not None:
                on_progress(int(i * 100 / total))

        try:
            self.store.insert_many(payloads)
        except DedupeConflictError:
            logger.info(
                "bulk insert of %d row(s) hit the dedupe index; isolating rows", len(payloads)
            )
        except Exception as exc:
            logger.error("bulk insert failed: %s", exc)
            raise ImportStoreError(f"Bulk insert failed: {exc}", phase="bulk") from exc
        else:
            report.inserted_count = len(payloads)
            logger.info("inserted %d row(s) into account %s", len(payloads), account_id)
            return report

        native = getattr(self.store, "insert_skipping_conflicts", None)
        if not (
            self.settings.native_conflict_skip
            and native is not None
            and self._isolate_native(batch, payloads, report, native)
        ):
            self._isolate_rows(batch, payloads, report)

        logger.info(
            "imported %d of %d row(s) into account %s; %d duplicate(s)",
            report.inserted_count,
            report.batch_size,
            account_id,
            len(report.duplicates),
        )
        return report

    def _flag(
        self,
        report: ImportReport,
        tx: ParsedTransaction,
        index: int,
        payload: dict[str, Any],
    ) -> None:
        try:
            existing = self.store.find_existing(payload)
        except Exception as exc:
            logger.error("lookup of duplicate at batch position %d failed: %s", index, exc)
            raise ImportStoreError(
                f"Duplicate lookup failed at batch position {index} "
                f"({report.inserted_count} row(s) already inserted): {exc}",
                phase="isolation",
                row_index=index,
                inserted_count=report.inserted_count,
            ) from exc
        dup = DuplicateTransaction(
            transaction=tx,
            original_index=index,
            conflict_reason=describe_conflict(payload, existing),
            existing_id=existing.id if existing is not None else None,
        )
        report.duplicates.append(dup)
        logger.info(
            "duplicate at batch position %d (row %s): %s",
            index,
            tx.source_row,
            dup.conflict_reason,
        )

    def _isolate_rows(
        self,
        batch: Sequence[ParsedTransaction],
        payloads: list[dict[str, Any]],
        report: ImportReport,
    ) -> None:
        for index, (tx, payload) in enumerate(zip(batch, payloads)):
            try:
                self.store.insert_one(payload)
            except DedupeConflictError:
                self._flag(report, tx, index, payload)
            except Exception as exc:
                logger.error("insert of batch position %d failed: %s", index, exc)
                raise ImportStoreError(
                    f"Insert failed at batch position {index} "
                    f"({report.inserted_count} row(s) already inserted): {exc}",
                    phase="isolation",
                    row_index=index,
                    inserted_count=report.inserted_count,
                ) from exc
            else:
                report.inserted_count += 1

    def _isolate_native(
        self,
        batch: Sequence[ParsedTransaction],
        payloads: list[dict[str, Any]],
        report: ImportReport,
        insert_skipping_conflicts: Callable[[list[dict[str, Any]]], list[int]],
    ) -> bool:
        """Run the single-statement path; ``False`` when the store's backend lacks it."""

        try:
            rejected = sorted(set(insert_skipping_conflicts(payloads)))
        except NotImplementedError as exc:
            logger.warning("%s; isolating rows one at a time instead", exc)
            return False
        except Exception as exc:
            logger.error("conflict-skipping insert failed: %s", exc)
            raise ImportStoreError(
                f"Conflict-skipping insert failed: {exc}", phase="isolation"
            ) from exc
        report.inserted_count += len(payloads) - len(rejected)
        for index in rejected:
            self._flag(report, batch[index], index, payloads[index])
        return True


__all__ = ["BatchImporter", "ProgressCallback"]
