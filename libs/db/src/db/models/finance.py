from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Name of the unique index that defines "the same transaction". Stores match
# on this name when classifying IntegrityErrors, so keep it in sync with the
# Alembic migration.
DEDUPE_INDEX_NAME = "uq_movimiento_dedupe"


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: cuenta
# ---------------------------


class Cuenta(Base):
    __tablename__ = "cuenta"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    # Tenant scoping lives outside this library; kept as an opaque reference.
    delegacion_id: Mapped[str] = mapped_column(String(36), nullable=False)
    nombre: Mapped[str] = mapped_column(Text, nullable=False)
    tipo: Mapped[str] = mapped_column(String, nullable=False)
    # "manual" accounts are the only ones fed by file import
    origen: Mapped[str] = mapped_column(String, nullable=False, server_default="manual")
    banco_nombre: Mapped[str | None] = mapped_column(Text, nullable=True)
    iban: Mapped[str | None] = mapped_column(String(34), nullable=True)
    creado_en: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Reference: categoria
# ---------------------------


class Categoria(Base):
    __tablename__ = "categoria"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    organizacion_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    # Matching against imported names is case-insensitive and happens in the
    # service layer; no DB uniqueness on nombre.
    nombre: Mapped[str] = mapped_column(Text, nullable=False)
    tipo: Mapped[str] = mapped_column(String, nullable=False, server_default="gasto")
    orden: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    categoria_padre_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("categoria.id"), nullable=True
    )
    creado_en: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Core: movimiento
# ---------------------------


class Movimiento(Base):
    __tablename__ = "movimiento"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    cuenta_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cuenta.id", ondelete="CASCADE"), nullable=False
    )
    fecha: Mapped[date] = mapped_column(Date, nullable=False)
    concepto: Mapped[str] = mapped_column(Text, nullable=False)
    descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)
    contraparte: Mapped[str | None] = mapped_column(Text, nullable=True)
    importe: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    categoria_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("categoria.id", ondelete="SET NULL"), nullable=True
    )
    creado_por: Mapped[str] = mapped_column(String, nullable=False, server_default="")
    creado_en: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# coalesce() so that two NULL descriptions collide; a plain column index would
# treat NULLs as distinct.
Index(
    DEDUPE_INDEX_NAME,
    Movimiento.cuenta_id,
    Movimiento.fecha,
    Movimiento.importe,
    Movimiento.concepto,
    func.coalesce(Movimiento.descripcion, ""),
    unique=True,
)


__all__ = [
    "Base",
    "Cuenta",
    "Categoria",
    "Movimiento",
    "DEDUPE_INDEX_NAME",
]
