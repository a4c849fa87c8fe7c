"""Runtime settings for the import engine.

Values come from explicit arguments first, then environment variables, then
defaults. The CLI loads a local ``.env`` (python-dotenv) before calling
:func:`load_settings`; library callers may construct :class:`ImportSettings`
directly.

Environment variables
---------------------
- ``STATEMENT_IMPORT_AMBIGUOUS_SEPARATORS``: ``european`` (default) or
  ``american``; how amounts like ``1.234.567,8.9`` are read.
- ``STATEMENT_IMPORT_NATIVE_CONFLICT_SKIP``: truthy to let stores that support
  ``INSERT ... ON CONFLICT DO NOTHING RETURNING`` replace the row-by-row
  isolation phase.
- ``STATEMENT_IMPORT_AUDIT_MARKER``: template appended to the description of
  force-inserted duplicates; must contain ``{timestamp}``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

AMBIGUOUS_POLICIES: frozenset[str] = frozenset({"european", "american"})
DEFAULT_AUDIT_MARKER = "[Duplicado importado forzosamente el {timestamp}]"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class ImportSettings:
    """Knobs for parsing and the two-phase insert protocol."""

    ambiguous_separators: str = "european"
    native_conflict_skip: bool = False
    audit_marker: str = DEFAULT_AUDIT_MARKER

    def __post_init__(self) -> None:
        if self.ambiguous_separators not in AMBIGUOUS_POLICIES:
            raise ValueError(
                f"ambiguous_separators must be one of {sorted(AMBIGUOUS_POLICIES)}, "
                f"got {self.ambiguous_separators!r}"
            )
        if "{timestamp}" not in self.audit_marker:
            raise ValueError("audit_marker must contain a '{timestamp}' placeholder")


def _env_flag(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in _TRUTHY


def load_settings(
    *,
    ambiguous_separators: str | None = None,
    native_conflict_skip: bool | None = None,
    audit_marker: str | None = None,
) -> ImportSettings:
    """Resolve settings from arguments, then environment, then defaults."""

    if ambiguous_separators is None:
        env_policy = os.getenv("STATEMENT_IMPORT_AMBIGUOUS_SEPARATORS")
        ambiguous_separators = (env_policy or "european").strip().lower()
    if native_conflict_skip is None:
        native_conflict_skip = bool(_env_flag("STATEMENT_IMPORT_NATIVE_CONFLICT_SKIP"))
    if audit_marker is None:
        audit_marker = os.getenv("STATEMENT_IMPORT_AUDIT_MARKER") or DEFAULT_AUDIT_MARKER

    return ImportSettings(
        ambiguous_separators=ambiguous_separators,
        native_conflict_skip=native_conflict_skip,
        audit_marker=audit_marker,
    )


__all__ = ["ImportSettings", "load_settings", "DEFAULT_AUDIT_MARKER", "AMBIGUOUS_POLICIES"]
