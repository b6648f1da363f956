"""
Cycle de vie des commandes de production.

Orchestre :
- backend.services.sequencer  (numéro ORD-YYYYMMDD-NNN)
- backend.services.weights    (poids nomenclature)
- backend.services.inventory  (check / deduct / restore du stock)

Chaque opération publique = une transaction (commit ou rollback complet).
Toute la validation est faite AVANT la première écriture.

Statuts : aucune table de transition, tout changement est accepté.
Passer une commande en `cancelled` ne restitue PAS le stock ;
seule la suppression (admin) le fait.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.base import utcnow
from backend.app.db.models.core_types import OrderStatus, OrderType, Role
from backend.app.db.models.models_v1 import (
    AuditLog,
    Design,
    Order,
    OrderPaperUsage,
    OrderStoneUsage,
    User,
)
from backend.services.common import coerce_enum, unit_of_work
from backend.services.errors import (
    AtelierError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from backend.services.inventory import (
    check_paper_available,
    check_stone_available,
    deduct_paper,
    deduct_stone,
    restore_paper,
    restore_stone,
)
from backend.services.sequencer import next_order_number
from backend.services.weights import MaterialUsage, WeightBreakdown, calculate_weight

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"status", "notes", "final_weight"}


@dataclass
class RecalculationSummary:
    success: int = 0
    skipped: int = 0
    errors: int = 0


# ---------- Helpers ----------
def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _coerce_usages(entries: Iterable[Any] | None, field: str) -> list[MaterialUsage]:
    """Accepte des MaterialUsage ou des paires (material_id, quantity)."""
    usages: list[MaterialUsage] = []
    for entry in entries or ():
        if isinstance(entry, MaterialUsage):
            usage = entry
        else:
            try:
                material_id, quantity = entry
            except (TypeError, ValueError):
                raise ValidationError(f"{field} entries must be (material_id, quantity) pairs", field=field) from None
            usage = MaterialUsage(material_id=material_id, quantity=quantity)

        if not _is_int(usage.material_id):
            raise ValidationError(f"{field}: material id is required", field=field)
        if not _is_int(usage.quantity) or usage.quantity < 0:
            raise ValidationError(f"{field}: quantity must be a non-negative integer", field=field)
        usages.append(usage)
    return usages


def _totals(usages: Sequence[MaterialUsage]) -> list[tuple[int, int]]:
    """
    Pièces demandées par matière, triées par id.
    Le tri fixe l'ordre de verrouillage (pas de deadlock entre créations).
    """
    totals: dict[int, int] = {}
    for u in usages:
        totals[u.material_id] = totals.get(u.material_id, 0) + u.quantity
    return sorted(totals.items())


def _stone_usages(order: Order) -> list[MaterialUsage]:
    return [MaterialUsage(u.stone_id, u.quantity) for u in order.stone_usages]


def _paper_usages(order: Order) -> list[MaterialUsage]:
    return [MaterialUsage(u.paper_id, u.quantity) for u in order.paper_usages]


def _restorable(usages: Sequence[Any], key: str, order_number: str) -> list[Any]:
    """Lignes à restituer, triées par matière ; les matières supprimées sont ignorées."""
    kept = []
    for u in usages:
        if getattr(u, key) is None:
            logger.warning("order %s: restore skipped, material deleted (%s pieces)", order_number, u.quantity)
            continue
        kept.append(u)
    return sorted(kept, key=lambda u: getattr(u, key))


def _validate_final_weight(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        raise ValidationError("final_weight must be a finite non-negative number", field="final_weight")
    return float(value)


def _get_actor(db: Session, actor_id: int) -> User:
    actor = db.get(User, actor_id)
    if actor is None:
        raise NotFoundError("user", actor_id)
    return actor


def _get_order(db: Session, order_id: int, *, lock: bool = False) -> Order:
    order = db.get(Order, order_id, with_for_update=lock or None)
    if order is None:
        raise NotFoundError("order", order_id)
    return order


def _audit(db: Session, actor_id: int, action: str, order: Order, **meta: Any) -> None:
    db.add(
        AuditLog(
            actor_id=actor_id,
            action=action,
            entity_type="order",
            entity_id=str(order.id),
            meta=json.dumps({"order_number": order.order_number, **meta}, default=str),
        )
    )


# ---------- Queries ----------
def get_order(db: Session, order_id: int) -> Order:
    return _get_order(db, order_id)


def list_orders(
    db: Session,
    *,
    status: OrderStatus | str | None = None,
    order_type: OrderType | str | None = None,
    design_id: int | None = None,
) -> list[Order]:
    stmt = select(Order).order_by(Order.created_at.desc(), Order.id.desc())

    if status is not None:
        stmt = stmt.where(Order.status == coerce_enum(OrderStatus, status, "status"))
    if order_type is not None:
        stmt = stmt.where(Order.type == coerce_enum(OrderType, order_type, "type"))
    if design_id is not None:
        stmt = stmt.where(Order.design_id == design_id)

    return list(db.execute(stmt).scalars().all())


# ---------- Lifecycle ----------
def create_order(
    db: Session,
    *,
    design_id: int,
    order_type: OrderType | str,
    quantity: int,
    stones_used: Iterable[Any] | None = None,
    paper_used: Iterable[Any] | None = None,
    notes: str | None = None,
    actor_id: int,
    now: datetime | None = None,
) -> Order:
    """
    Crée une commande et consomme le stock, en une seule transaction.

    1. validation (design, type, quantité, lignes)
    2. disponibilité de chaque matière (lignes verrouillées, ordre des ids)
    3. numéro de commande
    4. poids calculé
    5. insertion (pending)
    6. déduction du stock
    """
    order_type = coerce_enum(OrderType, order_type, "type")
    if not _is_int(quantity) or quantity < 1:
        raise ValidationError("quantity must be an integer >= 1", field="quantity")
    stones = _coerce_usages(stones_used, "stones_used")
    papers = _coerce_usages(paper_used, "paper_used")

    with unit_of_work(db):
        actor = _get_actor(db, actor_id)
        if db.get(Design, design_id) is None:
            raise NotFoundError("design", design_id)

        # ---------- DISPONIBILITÉ (verrou par matière) ----------
        for stone_id, pieces in _totals(stones):
            check_stone_available(db, stone_id, pieces, lock=True)
        for paper_id, pieces in _totals(papers):
            check_paper_available(db, paper_id, pieces, lock=True)

        # ---------- NUMÉRO + POIDS ----------
        created_at = now or utcnow()
        order_number = next_order_number(db, created_at)
        breakdown = calculate_weight(db, stones, papers, quantity)

        order = Order(
            order_number=order_number,
            design_id=design_id,
            type=order_type,
            status=OrderStatus.pending,
            quantity=quantity,
            notes=notes,
            calculated_weight=breakdown.calculated_weight,
            weight_discrepancy=0,
            created_by=actor.id,
            updated_by=actor.id,
            created_at=created_at,
            updated_at=created_at,
        )
        order.stone_usages = [
            OrderStoneUsage(position=i, stone_id=u.material_id, quantity=u.quantity)
            for i, u in enumerate(stones)
        ]
        order.paper_usages = [
            OrderPaperUsage(position=i, paper_id=u.material_id, quantity=u.quantity)
            for i, u in enumerate(papers)
        ]
        db.add(order)
        db.flush()

        # ---------- STOCK ----------
        for u in sorted(stones, key=lambda u: u.material_id):
            deduct_stone(db, u.material_id, u.quantity)
        for u in sorted(papers, key=lambda u: u.material_id):
            deduct_paper(db, u.material_id, u.quantity)

        _audit(db, actor.id, "order.create", order, calculated_weight=breakdown.calculated_weight)

    logger.info(
        "order %s created (design=%s, qty=%s, weight=%s)",
        order.order_number,
        design_id,
        quantity,
        order.calculated_weight,
    )
    return order


def recalculate_order_weight(db: Session, order_id: int, *, actor_id: int) -> tuple[Order, WeightBreakdown]:
    """
    Recalcule calculated_weight avec les poids catalogue ACTUELS.
    L'écart n'est recalculé que si final_weight est renseigné. Stock intact.
    """
    with unit_of_work(db):
        actor = _get_actor(db, actor_id)
        order = _get_order(db, order_id, lock=True)

        breakdown = calculate_weight(db, _stone_usages(order), _paper_usages(order), order.quantity)
        order.calculated_weight = breakdown.calculated_weight
        if order.final_weight is not None:
            order.weight_discrepancy = order.final_weight - order.calculated_weight
        order.updated_by = actor.id

        _audit(db, actor.id, "order.recalculate_weight", order, **breakdown.as_dict())

    logger.info("order %s weight recalculated: %s", order.order_number, breakdown.calculated_weight)
    return order, breakdown


def update_order(db: Session, order_id: int, patch: Mapping[str, Any], *, actor_id: int) -> Order:
    """
    Patch libre de status / notes / final_weight.

    - status : n'importe lequel des 4, depuis n'importe quel état ;
      None est ignoré (champ absent)
    - final_weight : recalcule weight_discrepancy ; None efface la mesure
    """
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields not updatable: {', '.join(sorted(unknown))}", field=sorted(unknown)[0])

    changes: dict[str, Any] = {}
    if patch.get("status") is not None:
        changes["status"] = coerce_enum(OrderStatus, patch["status"], "status")
    if "notes" in patch:
        changes["notes"] = patch["notes"]
    if "final_weight" in patch:
        changes["final_weight"] = _validate_final_weight(patch["final_weight"])

    with unit_of_work(db):
        actor = _get_actor(db, actor_id)
        order = _get_order(db, order_id, lock=True)

        if "status" in changes:
            order.status = changes["status"]
        if "notes" in changes:
            order.notes = changes["notes"]
        if "final_weight" in changes:
            order.final_weight = changes["final_weight"]
            if order.final_weight is None:
                order.weight_discrepancy = 0
            else:
                order.weight_discrepancy = order.final_weight - order.calculated_weight
        order.updated_by = actor.id

        _audit(db, actor.id, "order.update", order, **changes)

    logger.info("order %s updated: %s", order.order_number, sorted(changes))
    return order


def delete_order(db: Session, order_id: int, *, actor_id: int) -> None:
    """Suppression (admin uniquement) : restitue tout le stock puis supprime."""
    with unit_of_work(db):
        actor = _get_actor(db, actor_id)
        if actor.role != Role.admin:
            raise PermissionDeniedError(
                "Only administrators can delete orders",
                actor_id=actor.id,
                order_id=order_id,
            )

        order = _get_order(db, order_id, lock=True)
        order_number = order.order_number

        for u in _restorable(order.stone_usages, "stone_id", order_number):
            restore_stone(db, u.stone_id, u.quantity)
        for u in _restorable(order.paper_usages, "paper_id", order_number):
            restore_paper(db, u.paper_id, u.quantity)

        _audit(db, actor.id, "order.delete", order)
        db.delete(order)

    logger.info("order %s deleted by user %s, stock restored", order_number, actor_id)


def recalculate_all_order_weights(db: Session, *, actor_id: int) -> RecalculationSummary:
    """
    Maintenance : recalcule toutes les commandes.
    Ignore les commandes sans nomenclature ou au poids nul ;
    une commande en erreur est journalisée et n'arrête pas le lot.
    """
    summary = RecalculationSummary()
    order_ids = db.execute(select(Order.id).order_by(Order.id)).scalars().all()

    for order_id in order_ids:
        order = db.get(Order, order_id)
        if order is None:
            summary.skipped += 1
            continue

        if not order.stone_usages and not order.paper_usages:
            logger.info("order %s skipped: no stones or papers used", order.order_number)
            summary.skipped += 1
            continue

        preview = calculate_weight(db, _stone_usages(order), _paper_usages(order), order.quantity)
        if preview.calculated_weight <= 0:
            logger.info("order %s skipped: calculated weight %s", order.order_number, preview.calculated_weight)
            summary.skipped += 1
            continue

        try:
            recalculate_order_weight(db, order_id, actor_id=actor_id)
        except AtelierError:
            logger.exception("order %s: recalculation failed", order_id)
            summary.errors += 1
            continue
        summary.success += 1

    logger.info(
        "recalculation done: success=%s skipped=%s errors=%s",
        summary.success,
        summary.skipped,
        summary.errors,
    )
    return summary
