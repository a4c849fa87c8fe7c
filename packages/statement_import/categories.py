"""Category matching for manual-template rows.

The host application owns the ``categoria`` reference table; this module only
reads it. Matching is exact up to case and surrounding whitespace: there is no
fuzzy matching and no category is ever created during an import.

Exports
-------
- ``CategoryResolver``: resolve a free-text category name to an id within one
  organization's categories.
- ``load_categories(session, organization_id)``: read ``categoria`` rows as
  :class:`~statement_import.models.CategoryRef` for CLI use.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from db.models.finance import Categoria
from sqlalchemy import select
from sqlalchemy.orm import Session

from .logging_setup import get_logger
from .models import CategoryRef

logger = get_logger("statement_import.categories")


def normalize_category_name(name: str) -> str:
    """Return the comparison key for ``name``: trimmed, single-spaced, casefolded."""

    return " ".join(name.split()).casefold()


@dataclass(frozen=True, slots=True)
class CategoryMatch:
    """Result of resolving one name.

    Exactly one of the fields is set for a non-blank name; both are ``None``
    for a blank one.
    """

    categoria_id: str | None = None
    unmatched_name: str | None = None

    @property
    def matched(self) -> bool:
        return self.categoria_id is not None


def _coerce(ref: CategoryRef | Mapping[str, Any]) -> CategoryRef:
    if isinstance(ref, CategoryRef):
        return ref
    return CategoryRef.model_validate(dict(ref))


class CategoryResolver:
    """Map category names to ids for one organization.

    When ``organization_id`` is given, categories belonging to another
    organization are ignored; categories without an organization are always
    eligible. When two eligible categories normalize to the same name, the
    first one supplied wins.
    """

    def __init__(
        self,
        categories: Iterable[CategoryRef | Mapping[str, Any]] = (),
        *,
        organization_id: str | None = None,
    ) -> None:
        self.organization_id = organization_id
        self._by_name: dict[str, str] = {}
        for raw in categories:
            ref = _coerce(raw)
            if (
                organization_id is not None
                and ref.organizacion_id is not None
                and ref.organizacion_id != str(organization_id)
            ):
                continue
            self._by_name.setdefault(normalize_category_name(ref.nombre), ref.id)
        logger.debug("category resolver: %d eligible name(s)", len(self._by_name))

    def __len__(self) -> int:
        return len(self._by_name)

    def resolve(self, name: Any) -> CategoryMatch:
        if name is None:
            return CategoryMatch()
        text = str(name).strip()
        if not text:
            return CategoryMatch()
        categoria_id = self._by_name.get(normalize_category_name(text))
        if categoria_id is None:
            return CategoryMatch(unmatched_name=text)
        return CategoryMatch(categoria_id=categoria_id)


def load_categories(session: Session, organization_id: str | None = None) -> list[CategoryRef]:
    """Read categories visible to ``organization_id`` ordered by ``orden``.

    Without an organization every category is returned.
    """

    stmt = select(Categoria.id, Categoria.nombre, Categoria.organizacion_id)
    if organization_id is not None:
        stmt = stmt.where(Categoria.organizacion_id == str(organization_id))
    stmt = stmt.order_by(Categoria.orden, Categoria.nombre)
    return [
        CategoryRef(id=row.id, nombre=row.nombre, organizacion_id=row.organizacion_id)
        for row in session.execute(stmt)
    ]


__all__ = [
    "CategoryMatch",
    "CategoryResolver",
    "load_categories",
    "normalize_category_name",
]
