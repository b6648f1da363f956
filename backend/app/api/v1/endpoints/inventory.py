from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from backend.app.api.deps import get_current_user, get_db
from backend.app.db.models.core_types import InventoryType
from backend.app.db.models.models_v1 import User
from backend.app.schemas.inventory import (
    PaperCreate,
    PaperRead,
    PaperUpdate,
    StoneCreate,
    StoneRead,
    StoneUpdate,
)
from backend.services import catalog

router = APIRouter(prefix="/inventory")


# ---------- Stones ----------
@router.get("/stones", response_model=list[StoneRead])
def list_stones(db: Session = Depends(get_db)):
    return [StoneRead.model_validate(s) for s in catalog.list_stones(db)]


@router.post("/stones", response_model=StoneRead)
def create_stone(
    payload: StoneCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    stone = catalog.create_stone(db, **payload.model_dump(), actor_id=user.id)
    return StoneRead.model_validate(stone)


@router.put("/stones/{stone_id}", response_model=StoneRead)
def update_stone(
    stone_id: int,
    payload: StoneUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    stone = catalog.update_stone(db, stone_id, payload.model_dump(exclude_unset=True), actor_id=user.id)
    return StoneRead.model_validate(stone)


@router.delete("/stones/{stone_id}", status_code=204)
def delete_stone(
    stone_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    catalog.delete_stone(db, stone_id, actor_id=user.id)
    return Response(status_code=204)


# ---------- Paper ----------
@router.get("/paper", response_model=list[PaperRead])
def list_papers(type: InventoryType = InventoryType.internal, db: Session = Depends(get_db)):
    return [PaperRead.model_validate(p) for p in catalog.list_papers(db, type)]


@router.post("/paper", response_model=PaperRead)
def create_paper(
    payload: PaperCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    paper = catalog.create_paper(db, **payload.model_dump(), actor_id=user.id)
    return PaperRead.model_validate(paper)


@router.put("/paper/{paper_id}", response_model=PaperRead)
def update_paper(
    paper_id: int,
    payload: PaperUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    paper = catalog.update_paper(db, paper_id, payload.model_dump(exclude_unset=True), actor_id=user.id)
    return PaperRead.model_validate(paper)


@router.delete("/paper/{paper_id}", status_code=204)
def delete_paper(
    paper_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    catalog.delete_paper(db, paper_id, actor_id=user.id)
    return Response(status_code=204)
