from __future__ import annotations

from datetime import datetime, date

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Date,
    Boolean,
    Float,
    ForeignKey,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db.base import Base, BigIntPK, utcnow
from backend.app.db.models.core_types import (
    Role,
    DesignStatus,
    OrderType,
    OrderStatus,
    StoneUnit,
    InventoryType,
)

# ---------- AUTH ----------
class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), default=Role.user, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


# ---------- MASTER DATA ----------
class Design(Base):
    __tablename__ = "designs"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    image_url: Mapped[str | None] = mapped_column(String(500))
    status: Mapped[DesignStatus] = mapped_column(
        Enum(DesignStatus, name="design_status"),
        default=DesignStatus.active,
        nullable=False,
    )
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (Index("ix_designs_status", "status"),)


# ---------- INVENTORY ----------
class Stone(Base):
    """Matière comptée à la pièce. quantity = pièces en stock."""

    __tablename__ = "stones"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit: Mapped[StoneUnit] = mapped_column(Enum(StoneUnit, name="stone_unit"), default=StoneUnit.pieces, nullable=False)
    weight_per_piece: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    updated_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stone_quantity_nonneg"),
        CheckConstraint("weight_per_piece > 0", name="ck_stone_weight_pos"),
    )


class Paper(Base):
    """
    Stocké en rouleaux, consommé à la pièce.
    quantity = rouleaux, weight_per_piece = poids d'UNE pièce.
    """

    __tablename__ = "papers"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    width: Mapped[float] = mapped_column(Float, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pieces_per_roll: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_per_piece: Mapped[float] = mapped_column(Float, nullable=False)
    inventory_type: Mapped[InventoryType] = mapped_column(
        Enum(InventoryType, name="inventory_type"),
        default=InventoryType.internal,
        nullable=False,
    )

    updated_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("name", "inventory_type", name="uq_paper_name_inventory_type"),
        CheckConstraint("quantity >= 0", name="ck_paper_quantity_nonneg"),
        CheckConstraint("pieces_per_roll > 0", name="ck_paper_pieces_per_roll_pos"),
        CheckConstraint("weight_per_piece > 0", name="ck_paper_weight_pos"),
        CheckConstraint("width > 0", name="ck_paper_width_pos"),
        Index("ix_papers_inventory_type", "inventory_type"),
    )

    @property
    def total_pieces(self) -> int:
        return self.quantity * self.pieces_per_roll


# ---------- ORDERS ----------
class Order(Base):
    __tablename__ = "orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    design_id: Mapped[int] = mapped_column(ForeignKey("designs.id", ondelete="RESTRICT"), nullable=False)
    type: Mapped[OrderType] = mapped_column(Enum(OrderType, name="order_type"), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status"),
        default=OrderStatus.pending,
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    calculated_weight: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    final_weight: Mapped[float | None] = mapped_column(Float)
    weight_discrepancy: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    created_by: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    updated_by: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    design: Mapped[Design] = relationship()
    stone_usages: Mapped[list["OrderStoneUsage"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStoneUsage.position",
    )
    paper_usages: Mapped[list["OrderPaperUsage"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderPaperUsage.position",
    )

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_quantity_pos"),
        CheckConstraint("calculated_weight >= 0", name="ck_order_calculated_weight_nonneg"),
        CheckConstraint("final_weight IS NULL OR final_weight >= 0", name="ck_order_final_weight_nonneg"),
        Index("ix_orders_status", "status"),
        Index("ix_orders_type", "type"),
        Index("ix_orders_design_id", "design_id"),
        Index("ix_orders_created_at", "created_at"),
    )


class OrderStoneUsage(Base):
    __tablename__ = "order_stone_usages"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    # NULL : pierre supprimée du catalogue depuis la commande
    stone_id: Mapped[int | None] = mapped_column(ForeignKey("stones.id", ondelete="SET NULL"))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped[Order] = relationship(back_populates="stone_usages")
    stone: Mapped[Stone | None] = relationship()

    __table_args__ = (
        UniqueConstraint("order_id", "position", name="uq_order_stone_usage_position"),
        CheckConstraint("quantity >= 0", name="ck_order_stone_usage_qty_nonneg"),
    )


class OrderPaperUsage(Base):
    __tablename__ = "order_paper_usages"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    paper_id: Mapped[int | None] = mapped_column(ForeignKey("papers.id", ondelete="SET NULL"))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)  # en pièces

    order: Mapped[Order] = relationship(back_populates="paper_usages")
    paper: Mapped[Paper | None] = relationship()

    __table_args__ = (
        UniqueConstraint("order_id", "position", name="uq_order_paper_usage_position"),
        CheckConstraint("quantity >= 0", name="ck_order_paper_usage_qty_nonneg"),
    )


class OrderSequence(Base):
    """Compteur journalier des numéros de commande (une ligne par jour)."""

    __tablename__ = "order_sequences"
    day: Mapped[date] = mapped_column(Date, primary_key=True)
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (CheckConstraint("last_seq >= 1", name="ck_order_sequence_pos"),)


# ---------- AUDIT ----------
class AuditLog(Base):
    __tablename__ = "audit_log"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    meta: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (Index("ix_audit_entity", "entity_type", "entity_id"),)
