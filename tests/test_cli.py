from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest
from typer.testing import CliRunner

import statement_import.cli as cli_mod
from statement_import.cli import app
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
from tests.helpers.sheets import build_xlsx, sabadell_workbook

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_global_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    # Leave handler configuration to pytest's capture
    monkeypatch.setattr(cli_mod, "configure_logging", lambda: None)


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    url = bootstrap_sqlite_db(tmp_path / "cli.db")
    seed_account(database_url=url)
    return url


def _sabadell_path(tmp_path: Path) -> Path:
    path = tmp_path / "sabadell.xlsx"
    path.write_bytes(
        sabadell_workbook(
            [
                [date(2024, 1, 2), "NOMINA", None, 1850.0],
                [date(2024, 1, 3), "RECIBO LUZ", None, "-60,15"],
            ]
        )
    )
    return path


def _import_args(path: Path, db_url: str, *extra: str) -> list[str]:
    return [
        "import",
        str(path),
        "--source",
        "sabadell",
        "--account",
        ACCOUNT_ID,
        "--database-url",
        db_url,
        *extra,
    ]


def test_import_prints_summary(tmp_path: Path, db_url: str):
    result = runner.invoke(app, _import_args(_sabadell_path(tmp_path), db_url))

    assert result.exit_code == 0, result.output
    assert "Inserted 2 of 2 movement(s)" in result.output
    assert count_movimientos(database_url=db_url) == 2


def test_import_json_report_lists_duplicates(tmp_path: Path, db_url: str):
    path = _sabadell_path(tmp_path)
    runner.invoke(app, _import_args(path, db_url))

    result = runner.invoke(app, _import_args(path, db_url, "--json"))

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["inserted_count"] == 0
    assert payload["batch_size"] == 2
    assert [d["original_index"] for d in payload["duplicates"]] == [0, 1]
    assert payload["duplicates"][1]["fecha"] == "2024-01-03"
    assert payload["source"] == "sabadell"


def test_force_duplicates_inserts_audited_copies(tmp_path: Path, db_url: str):
    path = _sabadell_path(tmp_path)
    runner.invoke(app, _import_args(path, db_url))

    result = runner.invoke(app, _import_args(path, db_url, "--force-duplicates"))

    assert result.exit_code == 0, result.output
    assert "Forced 2 duplicate(s) in." in result.output
    stored = fetch_movimientos(database_url=db_url)
    assert len(stored) == 4
    forced = [r for r in stored if r["descripcion"]]
    assert len(forced) == 2
    assert all("Duplicado importado forzosamente" in r["descripcion"] for r in forced)


def test_parse_error_exits_non_zero(tmp_path: Path, db_url: str):
    path = tmp_path / "bad.xlsx"
    path.write_bytes(sabadell_workbook([[date(2024, 1, 2), "NOMINA", None, "mil"]]))

    result = runner.invoke(app, _import_args(path, db_url))

    assert result.exit_code == 1
    assert "INVALID_AMOUNT" in result.output
    assert count_movimientos(database_url=db_url) == 0


def test_manual_import_loads_categories_from_db(tmp_path: Path, db_url: str):
    cats = seed_categories(database_url=db_url, names=["Hogar"])
    path = tmp_path / "manual.xlsx"
    path.write_bytes(
        build_xlsx(
            [
                list(MANUAL_HEADER),
                ["01/03/2024", "ikea", "-120,00", None, "hogar", None],
                [None, "sin fecha", "-1,00", None, None, None],
            ]
        )
    )

    result = runner.invoke(
        app,
        [
            "import",
            str(path),
            "--source",
            "manual",
            "--account",
            ACCOUNT_ID,
            "--organization",
            ORGANIZATION_ID,
            "--database-url",
            db_url,
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Skipped 1 row(s) without date or amount: 3" in result.output
    (row,) = fetch_movimientos(database_url=db_url)
    assert row["categoria_id"] == cats["Hogar"]
    assert row["concepto"] == "Ikea"


def test_template_command_writes_workbook(tmp_path: Path):
    target = tmp_path / "plantilla.xlsx"

    result = runner.invoke(app, ["template", str(target)])

    assert result.exit_code == 0, result.output
    assert target.read_bytes().startswith(b"PK")


def _manual_path(tmp_path: Path) -> Path:
    path = tmp_path / "manual.xlsx"
    path.write_bytes(
        build_xlsx(
            [
                list(MANUAL_HEADER),
                ["05/03/2024", "cine", "-18,00", None, "Ocio", None],
            ]
        )
    )
    return path


def _manual_args(path: Path, db_url: str, *extra: str) -> list[str]:
    return [
        "import",
        str(path),
        "--source",
        "manual",
        "--account",
        ACCOUNT_ID,
        "--database-url",
        db_url,
        *extra,
    ]


def test_manual_import_requires_organization(tmp_path: Path, db_url: str):
    seed_categories(database_url=db_url, names=["Ocio"], organization_id="other-org")

    result = runner.invoke(app, _manual_args(_manual_path(tmp_path), db_url))

    assert result.exit_code == 1
    assert "--organization is required" in result.output
    assert count_movimientos(database_url=db_url) == 0


def test_manual_import_ignores_other_organizations_categories(tmp_path: Path, db_url: str):
    seed_categories(database_url=db_url, names=["Ocio"], organization_id="other-org")

    result = runner.invoke(
        app,
        _manual_args(_manual_path(tmp_path), db_url, "--organization", ORGANIZATION_ID),
    )

    assert result.exit_code == 0, result.output
    (row,) = fetch_movimientos(database_url=db_url)
    assert row["categoria_id"] is None
    assert "Categoría no encontrada: Ocio" in (row["descripcion"] or "")
