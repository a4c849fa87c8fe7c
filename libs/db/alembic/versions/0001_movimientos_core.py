# ruff: noqa: I001
"""Accounts, categories and transactions with the dedupe index.

Revision ID: 0001_movimientos_core
Revises: None
Create Date: 2026-10-17
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_movimientos_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # cuenta
    op.create_table(
        "cuenta",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("delegacion_id", sa.String(36), nullable=False),
        sa.Column("nombre", sa.Text(), nullable=False),
        sa.Column("tipo", sa.String(), nullable=False),
        sa.Column("origen", sa.String(), nullable=False, server_default=sa.text("'manual'")),
        sa.Column("banco_nombre", sa.Text(), nullable=True),
        sa.Column("iban", sa.String(34), nullable=True),
        sa.Column(
            "creado_en",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    # categoria
    op.create_table(
        "categoria",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organizacion_id", sa.String(36), nullable=False),
        sa.Column("nombre", sa.Text(), nullable=False),
        sa.Column("tipo", sa.String(), nullable=False, server_default=sa.text("'gasto'")),
        sa.Column("orden", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "categoria_padre_id",
            sa.String(36),
            sa.ForeignKey("categoria.id"),
            nullable=True,
        ),
        sa.Column(
            "creado_en",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_categoria_organizacion_id", "categoria", ["organizacion_id"])

    # movimiento
    op.create_table(
        "movimiento",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "cuenta_id",
            sa.String(36),
            sa.ForeignKey("cuenta.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("fecha", sa.Date(), nullable=False),
        sa.Column("concepto", sa.Text(), nullable=False),
        sa.Column("descripcion", sa.Text(), nullable=True),
        sa.Column("contraparte", sa.Text(), nullable=True),
        sa.Column("importe", sa.Numeric(14, 2), nullable=False),
        sa.Column(
            "categoria_id",
            sa.String(36),
            sa.ForeignKey("categoria.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("creado_por", sa.String(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "creado_en",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    # Dedupe index: the definition of "the same transaction". Keep the name in
    # sync with db.models.finance.DEDUPE_INDEX_NAME.
    op.execute(
        """
        CREATE UNIQUE INDEX uq_movimiento_dedupe
        ON movimiento (cuenta_id, fecha, importe, concepto, coalesce(descripcion, ''))
        """
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS uq_movimiento_dedupe")
    op.drop_table("movimiento")
    op.drop_index("ix_categoria_organizacion_id", table_name="categoria")
    op.drop_table("categoria")
    op.drop_table("cuenta")
