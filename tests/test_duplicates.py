from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from statement_import.duplicates import (
    REASON_IDENTICAL,
    REASON_NOT_FOUND,
    DuplicateResolver,
    describe_conflict,
)
from statement_import.errors import ForceInsertError
from statement_import.importer import BatchImporter
from statement_import.models import ParsedTransaction, StoredTransaction
from statement_import.persistence import build_insert_payload, dedupe_key
from statement_import.settings import ImportSettings

from tests.helpers.store import FakeStore

ACCOUNT = "acc-1"
FIXED_NOW = datetime(2024, 5, 6, 7, 8, 9)


def _clock() -> datetime:
    return FIXED_NOW


def _batch() -> list[ParsedTransaction]:
    return [
        ParsedTransaction(fecha=date(2024, 1, 1), concepto="Nomina", importe=1500.0),
        ParsedTransaction(
            fecha=date(2024, 1, 2), concepto="Cafe", importe=-1.5, descripcion="Bar"
        ),
    ]


def _imported_twice(store: FakeStore):
    importer = BatchImporter(store)
    importer.run(_batch(), account_id=ACCOUNT)
    return importer.run(_batch(), account_id=ACCOUNT)


def test_describe_conflict_cases():
    stored = StoredTransaction(
        id="m1",
        cuenta_id=ACCOUNT,
        fecha=date(2024, 1, 2),
        concepto="Cafe",
        importe=Decimal("-1.50"),
        descripcion=None,
    )
    assert describe_conflict({"descripcion": None}, None) == REASON_NOT_FOUND
    assert describe_conflict({"descripcion": ""}, stored) == REASON_IDENTICAL
    reason = describe_conflict({"descripcion": "Bar"}, stored)
    assert "distinta descripción" in reason
    assert "'Bar'" in reason


def test_forced_payload_appends_audit_marker():
    store = FakeStore()
    report = _imported_twice(store)
    resolver = DuplicateResolver(store, report, clock=_clock)

    nomina, cafe = resolver.pending
    marker = "[Duplicado importado forzosamente el 2024-05-06T07:08:09]"
    assert resolver.build_forced_payload(nomina)["descripcion"] == marker
    forced_cafe = resolver.build_forced_payload(cafe)
    assert forced_cafe["descripcion"] == f"Bar\n{marker}"
    original = build_insert_payload(cafe.transaction, account_id=ACCOUNT)
    assert {k: v for k, v in forced_cafe.items() if k != "descripcion"} == {
        k: v for k, v in original.items() if k != "descripcion"
    }


def test_force_insert_stores_both_tuples_and_clears_pending():
    store = FakeStore()
    report = _imported_twice(store)
    resolver = DuplicateResolver(store, report, clock=_clock, created_by="user-1")

    payload = resolver.force_insert(1)

    assert [d.original_index for d in resolver.pending] == [0]
    keys = {dedupe_key(r) for r in store.rows}
    assert dedupe_key(build_insert_payload(_batch()[1], account_id=ACCOUNT)) in keys
    assert dedupe_key(payload) in keys
    assert payload["creado_por"] == "user-1"
    assert report.inserted_count == 1


def test_force_insert_unknown_index():
    store = FakeStore()
    resolver = DuplicateResolver(store, _imported_twice(store), clock=_clock)
    with pytest.raises(KeyError):
        resolver.force_insert(7)


def test_failed_force_insert_keeps_row_pending():
    store = FakeStore()
    report = _imported_twice(store)
    store.fail_when = lambda row: RuntimeError("timeout")
    resolver = DuplicateResolver(store, report, clock=_clock)

    with pytest.raises(ForceInsertError) as info:
        resolver.force_insert(0)

    assert info.value.original_index == 0
    assert isinstance(info.value.__cause__, RuntimeError)
    assert [d.original_index for d in resolver.pending] == [0, 1]


def test_force_all_reports_failures_per_row():
    store = FakeStore()
    report = _imported_twice(store)
    store.fail_when = lambda row: RuntimeError("nope") if row["concepto"] == "Cafe" else None
    resolver = DuplicateResolver(store, report, clock=_clock)

    failures = resolver.force_all()

    assert list(failures) == [1]
    assert isinstance(failures[1], ForceInsertError)
    assert [d.original_index for d in resolver.pending] == [1]
    assert len(store.rows) == 3


def test_custom_audit_marker_template():
    store = FakeStore()
    report = _imported_twice(store)
    settings = ImportSettings(audit_marker="(forced at {timestamp})")
    resolver = DuplicateResolver(store, report, settings=settings, clock=_clock)
    payload = resolver.build_forced_payload(resolver.pending[0])
    assert payload["descripcion"] == "(forced at 2024-05-06T07:08:09)"


def test_forcing_the_same_row_twice_in_one_second_conflicts():
    store = FakeStore()
    report = _imported_twice(store)
    first = DuplicateResolver(store, report, clock=_clock)
    first.force_insert(0)
    second = DuplicateResolver(store, report, clock=_clock)

    with pytest.raises(ForceInsertError):
        second.force_insert(0)
