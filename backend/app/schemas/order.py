from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from backend.app.db.models.core_types import OrderStatus, OrderType


class StoneUsageIn(BaseModel):
    stone_id: int
    quantity: int = Field(ge=0)


class PaperUsageIn(BaseModel):
    paper_id: int
    quantity: int = Field(ge=0)  # pièces, pas rouleaux


class OrderCreate(BaseModel):
    design_id: int
    type: OrderType
    quantity: int = Field(ge=1)
    stones_used: list[StoneUsageIn] = Field(default_factory=list)
    paper_used: list[PaperUsageIn] = Field(default_factory=list)
    notes: str | None = None


class OrderUpdate(BaseModel):
    status: OrderStatus | None = None
    notes: str | None = None
    final_weight: float | None = Field(default=None, ge=0, allow_inf_nan=False)


class StoneUsageRead(BaseModel):
    stone_id: int | None  # None : pierre supprimée du catalogue
    quantity: int

    class Config:
        from_attributes = True


class PaperUsageRead(BaseModel):
    paper_id: int | None
    quantity: int

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: int
    order_number: str
    design_id: int
    type: OrderType
    status: OrderStatus
    quantity: int
    stones_used: list[StoneUsageRead] = Field(validation_alias=AliasChoices("stones_used", "stone_usages"))
    paper_used: list[PaperUsageRead] = Field(validation_alias=AliasChoices("paper_used", "paper_usages"))
    notes: str | None
    calculated_weight: float
    final_weight: float | None
    weight_discrepancy: float
    created_by: int
    updated_by: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WeightBreakdownRead(BaseModel):
    calculated_weight: float
    weight_per_piece: float
    stone_weight: float
    paper_weight: float


class OrderRecalculated(BaseModel):
    order: OrderRead
    weight_calculation: WeightBreakdownRead
