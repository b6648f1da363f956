"""initial order tracker schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BIGINT_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

role = sa.Enum("admin", "user", name="role")
design_status = sa.Enum("active", "inactive", name="design_status")
order_type = sa.Enum("internal", "out", name="order_type")
order_status = sa.Enum("pending", "in_progress", "completed", "cancelled", name="order_status")
stone_unit = sa.Enum("pieces", "kg", "grams", name="stone_unit")
inventory_type = sa.Enum("internal", "out", name="inventory_type")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", BIGINT_PK, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", role, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "designs",
        sa.Column("id", BIGINT_PK, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("number", sa.String(64), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("image_url", sa.String(500)),
        sa.Column("status", design_status, nullable=False),
        sa.Column("created_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_designs_status", "designs", ["status"])

    # ---------- INVENTORY ----------
    op.create_table(
        "stones",
        sa.Column("id", BIGINT_PK, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit", stone_unit, nullable=False),
        sa.Column("weight_per_piece", sa.Float(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("updated_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 0", name="ck_stone_quantity_nonneg"),
        sa.CheckConstraint("weight_per_piece > 0", name="ck_stone_weight_pos"),
    )

    op.create_table(
        "papers",
        sa.Column("id", BIGINT_PK, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("width", sa.Float(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("pieces_per_roll", sa.Integer(), nullable=False),
        sa.Column("weight_per_piece", sa.Float(), nullable=False),
        sa.Column("inventory_type", inventory_type, nullable=False),
        sa.Column("updated_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        *_timestamps(),
        sa.UniqueConstraint("name", "inventory_type", name="uq_paper_name_inventory_type"),
        sa.CheckConstraint("quantity >= 0", name="ck_paper_quantity_nonneg"),
        sa.CheckConstraint("pieces_per_roll > 0", name="ck_paper_pieces_per_roll_pos"),
        sa.CheckConstraint("weight_per_piece > 0", name="ck_paper_weight_pos"),
        sa.CheckConstraint("width > 0", name="ck_paper_width_pos"),
    )
    op.create_index("ix_papers_inventory_type", "papers", ["inventory_type"])

    # ---------- ORDERS ----------
    op.create_table(
        "orders",
        sa.Column("id", BIGINT_PK, primary_key=True),
        sa.Column("order_number", sa.String(32), nullable=False, unique=True),
        sa.Column("design_id", sa.BigInteger(), sa.ForeignKey("designs.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("type", order_type, nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("calculated_weight", sa.Float(), nullable=False),
        sa.Column("final_weight", sa.Float()),
        sa.Column("weight_discrepancy", sa.Float(), nullable=False),
        sa.Column("created_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("updated_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 1", name="ck_order_quantity_pos"),
        sa.CheckConstraint("calculated_weight >= 0", name="ck_order_calculated_weight_nonneg"),
        sa.CheckConstraint("final_weight IS NULL OR final_weight >= 0", name="ck_order_final_weight_nonneg"),
    )
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_type", "orders", ["type"])
    op.create_index("ix_orders_design_id", "orders", ["design_id"])
    op.create_index("ix_orders_created_at", "orders", ["created_at"])

    op.create_table(
        "order_stone_usages",
        sa.Column("id", BIGINT_PK, primary_key=True),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("stone_id", sa.BigInteger(), sa.ForeignKey("stones.id", ondelete="SET NULL")),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.UniqueConstraint("order_id", "position", name="uq_order_stone_usage_position"),
        sa.CheckConstraint("quantity >= 0", name="ck_order_stone_usage_qty_nonneg"),
    )
    op.create_index("ix_order_stone_usages_order_id", "order_stone_usages", ["order_id"])

    op.create_table(
        "order_paper_usages",
        sa.Column("id", BIGINT_PK, primary_key=True),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("paper_id", sa.BigInteger(), sa.ForeignKey("papers.id", ondelete="SET NULL")),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.UniqueConstraint("order_id", "position", name="uq_order_paper_usage_position"),
        sa.CheckConstraint("quantity >= 0", name="ck_order_paper_usage_qty_nonneg"),
    )
    op.create_index("ix_order_paper_usages_order_id", "order_paper_usages", ["order_id"])

    op.create_table(
        "order_sequences",
        sa.Column("day", sa.Date(), primary_key=True),
        sa.Column("last_seq", sa.Integer(), nullable=False),
        sa.CheckConstraint("last_seq >= 1", name="ck_order_sequence_pos"),
    )

    # ---------- AUDIT ----------
    op.create_table(
        "audit_log",
        sa.Column("id", BIGINT_PK, primary_key=True),
        sa.Column("actor_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("meta", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_entity", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_table("order_sequences")
    op.drop_index("ix_order_paper_usages_order_id", table_name="order_paper_usages")
    op.drop_table("order_paper_usages")
    op.drop_index("ix_order_stone_usages_order_id", table_name="order_stone_usages")
    op.drop_table("order_stone_usages")
    for ix in ("ix_orders_created_at", "ix_orders_design_id", "ix_orders_type", "ix_orders_status"):
        op.drop_index(ix, table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_papers_inventory_type", table_name="papers")
    op.drop_table("papers")
    op.drop_table("stones")
    op.drop_index("ix_designs_status", table_name="designs")
    op.drop_table("designs")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (inventory_type, stone_unit, order_status, order_type, design_status, role):
        enum.drop(bind, checkfirst=True)
