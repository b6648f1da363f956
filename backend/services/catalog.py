"""
Catalogue matières (pierres, papier).

Création avec stock initial (tout utilisateur).
Modification des caractéristiques (nom, poids, pièces par rouleau...) et
suppression : admin uniquement.
La quantité en stock n'est jamais modifiée ici : voir backend.services.inventory.
Une matière ne se supprime qu'à stock nul ; les lignes de commande qui la
référencent gardent leur quantité mais perdent le lien (material_id NULL).
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.core_types import InventoryType, Role, StoneUnit
from backend.app.db.models.models_v1 import Paper, Stone, User
from backend.services.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from backend.services.common import coerce_enum, unit_of_work

logger = logging.getLogger(__name__)

STONE_FIELDS = {"name", "unit", "weight_per_piece", "description"}
PAPER_FIELDS = {"name", "width", "pieces_per_roll", "weight_per_piece"}


def _positive(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValidationError(f"{field} must be a positive number", field=field)
    return value


def _non_negative_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer", field=field)
    return value


def _positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return value


def _name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("name is required", field="name")
    return value.strip()


def _reject_unknown(patch: Mapping[str, Any], allowed: set[str]) -> None:
    unknown = set(patch) - allowed
    if unknown:
        raise ValidationError(f"Fields not updatable: {', '.join(sorted(unknown))}", field=sorted(unknown)[0])


def _require_admin(db: Session, actor_id: int, action: str) -> User:
    actor = db.get(User, actor_id)
    if actor is None:
        raise NotFoundError("user", actor_id)
    if actor.role != Role.admin:
        raise PermissionDeniedError(f"Only administrators can {action} master data", actor_id=actor.id)
    return actor


# ---------- STONES ----------
def list_stones(db: Session) -> list[Stone]:
    return list(db.execute(select(Stone).order_by(Stone.name)).scalars().all())


def create_stone(
    db: Session,
    *,
    name: str,
    quantity: int,
    weight_per_piece: float,
    unit: StoneUnit | str = StoneUnit.pieces,
    description: str | None = None,
    actor_id: int | None = None,
) -> Stone:
    name = _name(name)
    quantity = _non_negative_int(quantity, "quantity")
    weight_per_piece = _positive(weight_per_piece, "weight_per_piece")
    unit = coerce_enum(StoneUnit, unit, "unit")

    with unit_of_work(db):
        if db.execute(select(Stone.id).where(Stone.name == name)).first():
            raise ConflictError("Stone with this name already exists", name=name)

        stone = Stone(
            name=name,
            quantity=quantity,
            unit=unit,
            weight_per_piece=weight_per_piece,
            description=description,
            updated_by=actor_id,
        )
        db.add(stone)

    logger.info("stone %s created (%s pieces)", stone.name, stone.quantity)
    return stone


def update_stone(db: Session, stone_id: int, patch: Mapping[str, Any], *, actor_id: int) -> Stone:
    _reject_unknown(patch, STONE_FIELDS)

    with unit_of_work(db):
        actor = _require_admin(db, actor_id, "edit")
        stone = db.get(Stone, stone_id)
        if stone is None:
            raise NotFoundError("stone", stone_id)

        if "name" in patch:
            name = _name(patch["name"])
            clash = db.execute(
                select(Stone.id).where(Stone.name == name).where(Stone.id != stone_id)
            ).first()
            if clash:
                raise ConflictError("Stone with this name already exists", name=name)
            stone.name = name
        if "unit" in patch:
            stone.unit = coerce_enum(StoneUnit, patch["unit"], "unit")
        if "weight_per_piece" in patch:
            stone.weight_per_piece = _positive(patch["weight_per_piece"], "weight_per_piece")
        if "description" in patch:
            stone.description = patch["description"]
        stone.updated_by = actor.id

    logger.info("stone %s updated: %s", stone_id, sorted(patch))
    return stone


# ---------- PAPER ----------
def list_papers(db: Session, inventory_type: InventoryType | str = InventoryType.internal) -> list[Paper]:
    inventory_type = coerce_enum(InventoryType, inventory_type, "inventory_type")
    return list(
        db.execute(
            select(Paper).where(Paper.inventory_type == inventory_type).order_by(Paper.width, Paper.id)
        ).scalars().all()
    )


def create_paper(
    db: Session,
    *,
    name: str,
    width: float,
    quantity: int,
    pieces_per_roll: int,
    weight_per_piece: float,
    inventory_type: InventoryType | str = InventoryType.internal,
    actor_id: int | None = None,
) -> Paper:
    name = _name(name)
    width = _positive(width, "width")
    quantity = _non_negative_int(quantity, "quantity")
    pieces_per_roll = _positive_int(pieces_per_roll, "pieces_per_roll")
    weight_per_piece = _positive(weight_per_piece, "weight_per_piece")
    inventory_type = coerce_enum(InventoryType, inventory_type, "inventory_type")

    with unit_of_work(db):
        exists = db.execute(
            select(Paper.id).where(Paper.name == name).where(Paper.inventory_type == inventory_type)
        ).first()
        if exists:
            raise ConflictError(
                "Paper with this name already exists for this inventory type",
                name=name,
                inventory_type=inventory_type.value,
            )

        paper = Paper(
            name=name,
            width=width,
            quantity=quantity,
            pieces_per_roll=pieces_per_roll,
            weight_per_piece=weight_per_piece,
            inventory_type=inventory_type,
            updated_by=actor_id,
        )
        db.add(paper)

    logger.info("paper %s/%s created (%s rolls)", paper.name, paper.inventory_type.value, paper.quantity)
    return paper


def update_paper(db: Session, paper_id: int, patch: Mapping[str, Any], *, actor_id: int) -> Paper:
    _reject_unknown(patch, PAPER_FIELDS)

    with unit_of_work(db):
        actor = _require_admin(db, actor_id, "edit")
        paper = db.get(Paper, paper_id)
        if paper is None:
            raise NotFoundError("paper", paper_id)

        if "name" in patch:
            name = _name(patch["name"])
            clash = db.execute(
                select(Paper.id)
                .where(Paper.name == name)
                .where(Paper.inventory_type == paper.inventory_type)
                .where(Paper.id != paper_id)
            ).first()
            if clash:
                raise ConflictError(
                    "Paper with this name already exists for this inventory type",
                    name=name,
                    inventory_type=paper.inventory_type.value,
                )
            paper.name = name
        if "width" in patch:
            paper.width = _positive(patch["width"], "width")
        if "pieces_per_roll" in patch:
            paper.pieces_per_roll = _positive_int(patch["pieces_per_roll"], "pieces_per_roll")
        if "weight_per_piece" in patch:
            paper.weight_per_piece = _positive(patch["weight_per_piece"], "weight_per_piece")
        paper.updated_by = actor.id

    logger.info("paper %s updated: %s", paper_id, sorted(patch))
    return paper


# ---------- DELETE ----------
def delete_stone(db: Session, stone_id: int, *, actor_id: int) -> None:
    """Admin uniquement, et seulement si le stock est à zéro."""
    with unit_of_work(db):
        _require_admin(db, actor_id, "delete")
        stone = db.get(Stone, stone_id, with_for_update=True, populate_existing=True)
        if stone is None:
            raise NotFoundError("stone", stone_id)
        if stone.quantity > 0:
            raise ValidationError(
                "Cannot delete stone with existing stock",
                field="quantity",
                quantity=stone.quantity,
            )
        name = stone.name
        db.delete(stone)

    logger.info("stone %s (%s) deleted by user %s", stone_id, name, actor_id)


def delete_paper(db: Session, paper_id: int, *, actor_id: int) -> None:
    """Admin uniquement, et seulement si plus aucun rouleau en stock."""
    with unit_of_work(db):
        _require_admin(db, actor_id, "delete")
        paper = db.get(Paper, paper_id, with_for_update=True, populate_existing=True)
        if paper is None:
            raise NotFoundError("paper", paper_id)
        if paper.quantity > 0:
            raise ValidationError(
                "Cannot delete paper with existing stock",
                field="quantity",
                quantity=paper.quantity,
            )
        name = paper.name
        db.delete(paper)

    logger.info("paper %s (%s) deleted by user %s", paper_id, name, actor_id)
