# ruff: noqa: I001
"""End-to-end imports against a file-backed SQLite database.

The schema comes from the ORM metadata, so the dedupe index (including its
``coalesce(descripcion, '')`` expression) is the real one.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy.exc import IntegrityError

from statement_import.api import import_statement, import_statement_file
from statement_import.duplicates import DuplicateResolver
from statement_import.errors import DedupeConflictError, RowParseError
from statement_import.persistence import SqlTransactionStore, build_insert_payload
from statement_import.settings import ImportSettings
from statement_import.models import ParsedTransaction
from statement_import.ingest.adapters.manual_template import MANUAL_HEADER

from tests.helpers.db import (
    ACCOUNT_ID,
    ORGANIZATION_ID,
    bootstrap_sqlite_db,
    count_movimientos,
    fetch_movimientos,
    seed_account,
    seed_categories,
)
from tests.helpers.sheets import build_xlsx, caixabank_workbook, sabadell_workbook


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    url = bootstrap_sqlite_db(tmp_path / "import-e2e.db")
    seed_account(database_url=url)
    return url


def _sabadell_file() -> bytes:
    return sabadell_workbook(
        [
            [date(2024, 1, 2), "NOMINA EMPRESA SL", date(2024, 1, 2), 1850.0, 3000],
            [date(2024, 1, 3), "RECIBO LUZ", date(2024, 1, 3), "-60,15", 2939.85],
            [date(2024, 1, 5), "COMPRA TARJ. MERCADONA", date(2024, 1, 5), -82.4, 2857.45],
            [date(2024, 1, 5), "BIZUM A maria", date(2024, 1, 5), "-15,00", 2842.45],
        ]
    )


def test_sabadell_reimport_is_idempotent(db_url: str):
    store = SqlTransactionStore(database_url=db_url)

    first = import_statement(
        "sabadell", _sabadell_file(), filename="sabadell.xlsx", account_id=ACCOUNT_ID, store=store
    )
    second = import_statement(
        "sabadell", _sabadell_file(), filename="sabadell.xlsx", account_id=ACCOUNT_ID, store=store
    )

    assert first.inserted_count == 4
    assert first.duplicates == []
    assert second.inserted_count == 0
    assert len(second.duplicates) == second.batch_size == 4
    assert all(d.existing_id for d in second.duplicates)
    assert count_movimientos(database_url=db_url) == 4

    stored = fetch_movimientos(database_url=db_url)
    luz = next(r for r in stored if r["concepto"] == "Recibo Luz")
    assert luz["importe"] == Decimal("-60.15")
    assert luz["fecha"] == date(2024, 1, 3)


def test_bank_file_with_bad_amount_inserts_nothing(db_url: str):
    data = sabadell_workbook(
        [
            [date(2024, 1, 2), "NOMINA", None, 1850.0],
            [date(2024, 1, 3), "RECIBO", None, "sesenta"],
            [date(2024, 1, 4), "OTRO", None, -1.0],
        ]
    )
    with pytest.raises(RowParseError) as info:
        import_statement(
            "sabadell",
            data,
            filename="sabadell.xlsx",
            account_id=ACCOUNT_ID,
            store=SqlTransactionStore(database_url=db_url),
        )

    assert info.value.row == 10
    assert info.value.code == "INVALID_AMOUNT"
    assert count_movimientos(database_url=db_url) == 0


def test_manual_file_with_blank_dates_skips_those_rows(db_url: str, tmp_path: Path):
    cats = seed_categories(database_url=db_url, names=["Ocio", "Hogar"])
    rows = [list(MANUAL_HEADER)]
    for n in range(1, 11):
        fecha = None if n in (3, 8) else f"{n:02d}/03/2024"
        categoria = "Ocio" if n % 2 else "Desconocida"
        rows.append([fecha, f"movimiento {n}", f"-{n},50", None, categoria, None])
    path = tmp_path / "manual.xlsx"
    path.write_bytes(build_xlsx(rows))

    report = import_statement_file(
        path,
        source="manual",
        account_id=ACCOUNT_ID,
        store=SqlTransactionStore(database_url=db_url),
        categories=[{"id": cid, "nombre": name} for name, cid in cats.items()],
        organization_id=ORGANIZATION_ID,
        created_by="user-7",
    )

    assert report.inserted_count == 8
    assert report.skipped_rows == [4, 9]
    assert report.duplicates == []

    stored = fetch_movimientos(database_url=db_url)
    assert len(stored) == 8
    first = next(r for r in stored if r["concepto"] == "Movimiento 1")
    assert first["categoria_id"] == cats["Ocio"]
    assert first["descripcion"] is None
    assert first["creado_por"] == "user-7"
    second = next(r for r in stored if r["concepto"] == "Movimiento 2")
    assert second["categoria_id"] is None
    assert second["descripcion"] == "Categoría no encontrada: Desconocida"


def test_null_descriptions_collide_in_the_database(db_url: str):
    data = caixabank_workbook(
        [
            [date(2024, 2, 1), None, "CAJERO", None, -50.0],
            [date(2024, 2, 2), None, "CAJERO", None, -50.0, "oficina centro"],
        ]
    )
    store = SqlTransactionStore(database_url=db_url)
    import_statement("caixabank", data, filename="caixa.xlsx", account_id=ACCOUNT_ID, store=store)
    again = import_statement(
        "caixabank", data, filename="caixa.xlsx", account_id=ACCOUNT_ID, store=store
    )

    assert again.inserted_count == 0
    assert [d.original_index for d in again.duplicates] == [0, 1]


def test_force_insert_keeps_both_tuples(db_url: str):
    store = SqlTransactionStore(database_url=db_url)
    import_statement(
        "sabadell", _sabadell_file(), filename="s.xlsx", account_id=ACCOUNT_ID, store=store
    )
    report = import_statement(
        "sabadell", _sabadell_file(), filename="s.xlsx", account_id=ACCOUNT_ID, store=store
    )
    resolver = DuplicateResolver(store, report, clock=lambda: datetime(2024, 6, 1, 12, 0, 0))

    resolver.force_insert(1)

    assert [d.original_index for d in resolver.pending] == [0, 2, 3]
    luz = [r for r in fetch_movimientos(database_url=db_url) if r["concepto"] == "Recibo Luz"]
    assert sorted(r["descripcion"] or "" for r in luz) == [
        "",
        "[Duplicado importado forzosamente el 2024-06-01T12:00:00]",
    ]


def test_native_conflict_skip_on_sqlite(db_url: str):
    store = SqlTransactionStore(database_url=db_url)
    settings = ImportSettings(native_conflict_skip=True)
    import_statement(
        "sabadell",
        _sabadell_file(),
        filename="s.xlsx",
        account_id=ACCOUNT_ID,
        store=store,
        settings=settings,
    )
    extra = sabadell_workbook(
        [
            [date(2024, 1, 3), "RECIBO LUZ", None, "-60,15"],
            [date(2024, 1, 9), "RECIBO AGUA", None, "-20,00"],
            [date(2024, 1, 9), "RECIBO AGUA", None, "-20,00"],
        ]
    )

    report = import_statement(
        "sabadell", extra, filename="s.xlsx", account_id=ACCOUNT_ID, store=store, settings=settings
    )

    assert report.inserted_count == 1
    assert [d.original_index for d in report.duplicates] == [0, 2]
    assert count_movimientos(database_url=db_url) == 5


def test_store_classifies_dedupe_and_other_integrity_errors(db_url: str):
    store = SqlTransactionStore(database_url=db_url)
    tx = ParsedTransaction(fecha=date(2024, 1, 1), concepto="Cafe", importe=-1.2)
    row = build_insert_payload(tx, account_id=ACCOUNT_ID)

    store.insert_one(row)
    with pytest.raises(DedupeConflictError):
        store.insert_one(row)
    # Unknown account: foreign key violation is not a duplicate
    with pytest.raises(IntegrityError):
        store.insert_one({**row, "cuenta_id": "missing-account"})

    found = store.find_existing(row)
    assert found is not None
    assert found.concepto == "Cafe"
    assert found.importe == Decimal("-1.20")
