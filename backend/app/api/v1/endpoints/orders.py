from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user, get_db
from backend.app.db.models.core_types import OrderStatus, OrderType
from backend.app.db.models.models_v1 import User
from backend.app.schemas.order import (
    OrderCreate,
    OrderRead,
    OrderRecalculated,
    OrderUpdate,
    WeightBreakdownRead,
)
from backend.services import orders as order_service
from backend.services.weights import MaterialUsage

router = APIRouter(prefix="/orders")


@router.get("", response_model=list[OrderRead])
def list_orders(
    status: OrderStatus | None = None,
    type: OrderType | None = None,
    design_id: int | None = None,
    db: Session = Depends(get_db),
):
    rows = order_service.list_orders(db, status=status, order_type=type, design_id=design_id)
    return [OrderRead.model_validate(o) for o in rows]


@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: int, db: Session = Depends(get_db)):
    return OrderRead.model_validate(order_service.get_order(db, order_id))


@router.post("", response_model=OrderRead)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = order_service.create_order(
        db,
        design_id=payload.design_id,
        order_type=payload.type,
        quantity=payload.quantity,
        stones_used=[MaterialUsage(s.stone_id, s.quantity) for s in payload.stones_used],
        paper_used=[MaterialUsage(p.paper_id, p.quantity) for p in payload.paper_used],
        notes=payload.notes,
        actor_id=user.id,
    )
    return OrderRead.model_validate(order)


@router.put("/{order_id}", response_model=OrderRead)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    # seuls les champs réellement envoyés sont appliqués
    patch = payload.model_dump(exclude_unset=True)
    order = order_service.update_order(db, order_id, patch, actor_id=user.id)
    return OrderRead.model_validate(order)


@router.post("/{order_id}/recalculate-weight", response_model=OrderRecalculated)
def recalculate_weight(
    order_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order, breakdown = order_service.recalculate_order_weight(db, order_id, actor_id=user.id)
    return OrderRecalculated(
        order=OrderRead.model_validate(order),
        weight_calculation=WeightBreakdownRead(**breakdown.as_dict()),
    )


@router.delete("/{order_id}", status_code=204)
def delete_order(
    order_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order_service.delete_order(db, order_id, actor_id=user.id)
    return Response(status_code=204)
