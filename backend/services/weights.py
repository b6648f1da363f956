from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import Paper, Stone


@dataclass(frozen=True)
class MaterialUsage:
    """Ligne de nomenclature : (matière, nombre de pièces)."""

    material_id: int
    quantity: int


@dataclass(frozen=True)
class WeightBreakdown:
    calculated_weight: float
    weight_per_piece: float
    stone_weight: float
    paper_weight: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def _usage_weight(usages: Iterable[MaterialUsage], weights: Mapping[int, float]) -> float:
    # matière disparue du catalogue -> contribution 0
    return sum((weights.get(u.material_id, 0.0) * u.quantity for u in usages), 0.0)


def compute_weight(
    stones_used: Sequence[MaterialUsage],
    paper_used: Sequence[MaterialUsage],
    quantity: int,
    *,
    stone_weights: Mapping[int, float],
    paper_weights: Mapping[int, float],
) -> WeightBreakdown:
    """
    Poids nomenclature, fonction pure.

        weight_per_piece  = stone_weight + paper_weight
        calculated_weight = weight_per_piece * quantity
    """
    stone_weight = _usage_weight(stones_used, stone_weights)
    paper_weight = _usage_weight(paper_used, paper_weights)
    weight_per_piece = stone_weight + paper_weight

    return WeightBreakdown(
        calculated_weight=weight_per_piece * quantity,
        weight_per_piece=weight_per_piece,
        stone_weight=stone_weight,
        paper_weight=paper_weight,
    )


def load_weights(db: Session, model: type[Stone] | type[Paper], ids: Iterable[int]) -> dict[int, float]:
    ids = sorted({int(i) for i in ids if i is not None})
    if not ids:
        return {}

    rows = db.execute(select(model.id, model.weight_per_piece).where(model.id.in_(ids))).all()
    return {int(mid): float(w) for mid, w in rows}


def calculate_weight(
    db: Session,
    stones_used: Sequence[MaterialUsage],
    paper_used: Sequence[MaterialUsage],
    quantity: int,
) -> WeightBreakdown:
    """compute_weight avec les poids catalogue actuels."""
    return compute_weight(
        stones_used,
        paper_used,
        quantity,
        stone_weights=load_weights(db, Stone, (u.material_id for u in stones_used)),
        paper_weights=load_weights(db, Paper, (u.material_id for u in paper_used)),
    )
