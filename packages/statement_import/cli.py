# ruff: noqa: I001
"""CLI for the ``statement_import`` package.

Typer-based console interface. Environment variables (notably
``DATABASE_URL`` and the ``STATEMENT_IMPORT_*`` settings) are loaded from a
local ``.env`` using ``python-dotenv`` before any command runs. Business logic
lives in ``statement_import.api`` and related modules.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from .logging_setup import configure_logging
from .models import ImportReport


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statements (manual template, Sabadell, CaixaBank) into an account, "
        "reporting duplicates rejected by the dedupe index. Loads .env before running."
    ),
)


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def _print_report(report: ImportReport) -> None:
    typer.echo(
        f"Inserted {report.inserted_count} of {report.batch_size} movement(s) "
        f"into account {report.account_id}."
    )
    if report.skipped_rows:
        rows = ", ".join(str(r) for r in report.skipped_rows)
        typer.echo(f"Skipped {len(report.skipped_rows)} row(s) without date or amount: {rows}")
    if report.duplicates:
        typer.echo(f"{len(report.duplicates)} duplicate(s):")
        for dup in report.duplicates:
            typer.echo(
                f"  #{dup.original_index}\t{dup.fecha.isoformat()}\t{dup.concepto}\t"
                f"{dup.importe:.2f}\t{dup.conflict_reason}"
            )


@app.command("import")
def import_cmd(
    file: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="Statement file."),
    ],
    *,
    source: str = typer.Option(..., help="Layout of the file: manual, sabadell or caixabank."),
    account: str = typer.Option(..., help="Destination cuenta id."),
    organization: str | None = typer.Option(
        None,
        help="Organization whose categories resolve manual-template names "
        "(required with --source manual).",
    ),
    created_by: str | None = typer.Option(None, help="User id recorded in creado_por."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    force_duplicates: bool = typer.Option(
        False, help="Force-insert every duplicate with an audit note in its description."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
) -> None:
    """Import one statement file into an account."""

    # Deferred imports to keep CLI startup fast
    from db.client import session_scope

    from .api import import_statement_file
    from .categories import load_categories
    from .duplicates import DuplicateResolver
    from .errors import StatementImportError
    from .persistence import SqlTransactionStore
    from .settings import load_settings

    try:
        settings = load_settings()
    except ValueError as e:
        raise _fail(f"invalid settings: {e}") from e

    categories = []
    if source.strip().lower() == "manual":
        # Category names are only unique within one organization
        if not organization:
            raise _fail("--organization is required for manual imports")
        try:
            with session_scope(database_url=database_url) as session:
                categories = load_categories(session, organization)
        except Exception as e:
            raise _fail(f"failed to load categories from DB: {e}") from e

    store = SqlTransactionStore(database_url=database_url)
    try:
        report = import_statement_file(
            file,
            source=source,
            account_id=account,
            store=store,
            categories=categories,
            organization_id=organization,
            created_by=created_by,
            settings=settings,
        )
    except (StatementImportError, ValueError) as e:
        raise _fail(str(e)) from e

    failures = {}
    if force_duplicates and report.duplicates:
        resolver = DuplicateResolver(store, report, settings=settings, created_by=created_by)
        failures = resolver.force_all()

    if as_json:
        payload = report.to_dict()
        payload["forced_failures"] = {str(i): str(e) for i, e in failures.items()}
        typer.echo(json.dumps(payload, ensure_ascii=False, default=str, indent=2))
    else:
        _print_report(report)
        if force_duplicates and report.duplicates:
            forced = len(report.duplicates) - len(failures)
            typer.echo(f"Forced {forced} duplicate(s) in.")

    if failures:
        for e in failures.values():
            typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("template")
def template_cmd(
    path: Annotated[Path, typer.Argument(dir_okay=False, help="Where to write the .xlsx file.")],
) -> None:
    """Write an empty manual-import template workbook."""

    from .ingest.adapters.manual_template import write_manual_template

    written = write_manual_template(path)
    typer.echo(f"Wrote manual template to {written}")


@app.callback()
def _root() -> None:
    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
