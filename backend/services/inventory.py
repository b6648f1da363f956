"""
Ledger de stock (pierres + papier).

Seul module autorisé à modifier Stone.quantity / Paper.quantity.

Règles :
- Stone : stock en pièces, consommé en pièces.
- Paper : stock en rouleaux, consommé en pièces.
  pièces -> rouleaux = ceil(pieces / pieces_per_roll), à la déduction
  comme à la restitution (chaque opération arrondit indépendamment).

Concurrence :
- check_* avec lock=True pose un SELECT ... FOR UPDATE sur la ligne matière
- deduct_* est un UPDATE conditionnel (compare-and-decrement) : le stock
  ne peut jamais passer sous zéro, même si le check a été fait ailleurs
"""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import Paper, Stone
from backend.services.errors import (
    InsufficientStockError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def rolls_for_pieces(pieces: int, pieces_per_roll: int) -> int:
    """Nombre de rouleaux entamés pour `pieces` pièces (arrondi supérieur)."""
    if pieces_per_roll <= 0:
        raise ValidationError("pieces_per_roll must be positive", field="pieces_per_roll")
    return -(-pieces // pieces_per_roll)


def available_paper_pieces(paper: Paper) -> int:
    return paper.total_pieces


def _require_pieces(pieces: int) -> None:
    if isinstance(pieces, bool) or not isinstance(pieces, int) or pieces < 0:
        raise ValidationError("pieces must be a non-negative integer", field="pieces")


# ---------- CHECKS ----------
def check_stone_available(db: Session, stone_id: int, pieces: int, *, lock: bool = False) -> Stone:
    _require_pieces(pieces)
    stone = db.get(Stone, stone_id, with_for_update=lock or None, populate_existing=True)
    if stone is None:
        raise NotFoundError("stone", stone_id)

    if stone.quantity < pieces:
        raise InsufficientStockError(
            material="stone",
            material_id=int(stone.id),
            name=stone.name,
            available=stone.quantity,
            requested=pieces,
        )
    return stone


def check_paper_available(db: Session, paper_id: int, pieces: int, *, lock: bool = False) -> Paper:
    _require_pieces(pieces)
    paper = db.get(Paper, paper_id, with_for_update=lock or None, populate_existing=True)
    if paper is None:
        raise NotFoundError("paper", paper_id)

    available = available_paper_pieces(paper)
    if available < pieces:
        raise InsufficientStockError(
            material="paper",
            material_id=int(paper.id),
            name=paper.name,
            available=available,
            requested=pieces,
        )
    return paper


# ---------- DEDUCT ----------
def deduct_stone(db: Session, stone_id: int, pieces: int) -> Stone:
    _require_pieces(pieces)
    result = db.execute(
        update(Stone)
        .where(Stone.id == stone_id)
        .where(Stone.quantity >= pieces)
        .values(quantity=Stone.quantity - pieces)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # relit pour lever l'erreur précise (NotFound / InsufficientStock)
        check_stone_available(db, stone_id, pieces)
        raise PersistenceError(f"Stock update for stone {stone_id} affected no row", material_id=stone_id)

    stone = db.get(Stone, stone_id, populate_existing=True)
    logger.debug("stone %s: -%s pieces -> %s", stone_id, pieces, stone.quantity)
    return stone


def deduct_paper(db: Session, paper_id: int, pieces: int) -> Paper:
    _require_pieces(pieces)
    paper = db.get(Paper, paper_id)
    if paper is None:
        raise NotFoundError("paper", paper_id)

    pieces_per_roll = paper.pieces_per_roll
    rolls = rolls_for_pieces(pieces, pieces_per_roll)

    # quantity >= rolls  <=>  quantity * pieces_per_roll >= pieces (quantity entier)
    result = db.execute(
        update(Paper)
        .where(Paper.id == paper_id)
        .where(Paper.pieces_per_roll == pieces_per_roll)
        .where(Paper.quantity >= rolls)
        .values(quantity=Paper.quantity - rolls)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        paper = db.get(Paper, paper_id, populate_existing=True)
        if paper is None:
            raise NotFoundError("paper", paper_id)
        raise InsufficientStockError(
            material="paper",
            material_id=int(paper.id),
            name=paper.name,
            available=available_paper_pieces(paper),
            requested=pieces,
        )

    paper = db.get(Paper, paper_id, populate_existing=True)
    logger.debug("paper %s: -%s rolls (%s pieces) -> %s", paper_id, rolls, pieces, paper.quantity)
    return paper


# ---------- RESTORE ----------
def restore_stone(db: Session, stone_id: int, pieces: int) -> Stone | None:
    _require_pieces(pieces)
    result = db.execute(
        update(Stone)
        .where(Stone.id == stone_id)
        .values(quantity=Stone.quantity + pieces)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("restore skipped: stone %s no longer exists (%s pieces)", stone_id, pieces)
        return None

    stone = db.get(Stone, stone_id, populate_existing=True)
    logger.debug("stone %s: +%s pieces -> %s", stone_id, pieces, stone.quantity)
    return stone


def restore_paper(db: Session, paper_id: int, pieces: int) -> Paper | None:
    _require_pieces(pieces)
    paper = db.get(Paper, paper_id)
    if paper is None:
        logger.warning("restore skipped: paper %s no longer exists (%s pieces)", paper_id, pieces)
        return None

    rolls = rolls_for_pieces(pieces, paper.pieces_per_roll)
    db.execute(
        update(Paper)
        .where(Paper.id == paper_id)
        .values(quantity=Paper.quantity + rolls)
        .execution_options(synchronize_session=False)
    )

    paper = db.get(Paper, paper_id, populate_existing=True)
    logger.debug("paper %s: +%s rolls (%s pieces) -> %s", paper_id, rolls, pieces, paper.quantity)
    return paper
