"""Pytest configuration for test isolation.

Engines are cached per database URL by ``db.client``; every test that
bootstraps a temporary SQLite file gets a fresh URL, but the cached engines
would keep file handles open across tests. They are disposed after each test.

Import settings are read from ``STATEMENT_IMPORT_*`` environment variables, so
any value leaking in from the developer's shell or a ``.env`` would change
parsing behavior. Those variables are cleared for every test.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from db.client import dispose_engines

_SETTINGS_ENV = (
    "STATEMENT_IMPORT_AMBIGUOUS_SEPARATORS",
    "STATEMENT_IMPORT_NATIVE_CONFLICT_SKIP",
    "STATEMENT_IMPORT_AUDIT_MARKER",
    "STATEMENT_IMPORT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture(autouse=True)
def _dispose_engines() -> Iterator[None]:
    yield
    dispose_engines()
