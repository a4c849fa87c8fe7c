"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the finance models written by ``statement_import``.
"""

from .finance import DEDUPE_INDEX_NAME, Base, Categoria, Cuenta, Movimiento

__all__ = [
    "Base",
    "Cuenta",
    "Categoria",
    "Movimiento",
    "DEDUPE_INDEX_NAME",
]
