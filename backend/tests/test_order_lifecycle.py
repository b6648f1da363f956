import json
from datetime import datetime

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from backend.app.db.models.core_types import OrderStatus, OrderType
from backend.app.db.models.models_v1 import AuditLog, Order, OrderSequence
from backend.services import catalog
from backend.services import orders as order_service
from backend.services.errors import (
    InsufficientStockError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)
from backend.services.weights import MaterialUsage

NOW = datetime(2024, 3, 5, 10, 0)


def _order_count(db):
    return db.execute(select(func.count(Order.id))).scalar_one()


def _create(db, design, actor, *, stones=(), papers=(), quantity=1, now=NOW, **kw):
    return order_service.create_order(
        db,
        design_id=design.id,
        order_type=kw.pop("order_type", OrderType.internal),
        quantity=quantity,
        stones_used=list(stones),
        paper_used=list(papers),
        actor_id=actor.id,
        now=now,
        **kw,
    )


# ---------- create ----------
def test_create_order_deducts_stock_and_computes_weight(db_session, design, operator, make_stone, make_paper):
    stone = make_stone(quantity=100, weight_per_piece=0.5)
    paper = make_paper(quantity=3, pieces_per_roll=50, weight_per_piece=2.0)

    order = _create(
        db_session,
        design,
        operator,
        stones=[MaterialUsage(stone.id, 40)],
        papers=[MaterialUsage(paper.id, 10)],
        quantity=3,
        notes="first batch",
    )

    assert order.order_number == "ORD-20240305-001"
    assert order.status == OrderStatus.pending
    assert order.type == OrderType.internal
    # (0.5*40 + 2.0*10) * 3
    assert order.calculated_weight == pytest.approx(120.0)
    assert order.final_weight is None
    assert order.weight_discrepancy == 0
    assert order.created_by == operator.id
    assert order.notes == "first batch"

    db_session.refresh(stone)
    db_session.refresh(paper)
    assert stone.quantity == 60
    assert paper.quantity == 2  # ceil(10/50) = 1 rouleau


def test_second_order_same_day_gets_next_number(db_session, design, operator, make_stone):
    stone = make_stone(quantity=10)

    first = _create(db_session, design, operator, stones=[(stone.id, 1)])
    second = _create(db_session, design, operator, stones=[(stone.id, 1)])

    assert first.order_number == "ORD-20240305-001"
    assert second.order_number == "ORD-20240305-002"


def test_usage_lists_keep_their_order(db_session, design, operator, make_stone):
    a = make_stone(name="A", quantity=10)
    b = make_stone(name="B", quantity=10)

    order = _create(db_session, design, operator, stones=[(b.id, 2), (a.id, 3), (b.id, 1)])

    assert [(u.stone_id, u.quantity) for u in order.stone_usages] == [(b.id, 2), (a.id, 3), (b.id, 1)]


def test_insufficient_stock_rejects_without_side_effects(db_session, design, operator, make_stone):
    stone = make_stone(quantity=5)

    with pytest.raises(InsufficientStockError) as exc:
        _create(db_session, design, operator, stones=[MaterialUsage(stone.id, 10)])

    assert exc.value.available == 5
    assert exc.value.requested == 10
    db_session.refresh(stone)
    assert stone.quantity == 5
    assert _order_count(db_session) == 0
    assert db_session.execute(select(func.count()).select_from(OrderSequence)).scalar_one() == 0


def test_duplicate_lines_are_checked_together(db_session, design, operator, make_stone):
    stone = make_stone(quantity=8)

    with pytest.raises(InsufficientStockError):
        _create(db_session, design, operator, stones=[(stone.id, 5), (stone.id, 5)])

    db_session.refresh(stone)
    assert stone.quantity == 8


def test_paper_rounding_failure_rolls_back_whole_order(db_session, design, operator, make_stone, make_paper):
    """
    GIVEN 2 rouleaux de 100 pièces (200 pièces) et une pierre en stock
    WHEN deux lignes papier 150 + 40 (190 pièces <= 200)
    THEN le check passe mais ceil(150/100) + ceil(40/100) = 3 rouleaux > 2
         -> InsufficientStockError, aucune écriture ne reste (pierre comprise)
    """
    stone = make_stone(quantity=10)
    paper = make_paper(quantity=2, pieces_per_roll=100)

    with pytest.raises(InsufficientStockError):
        _create(
            db_session,
            design,
            operator,
            stones=[(stone.id, 4)],
            papers=[(paper.id, 150), (paper.id, 40)],
        )

    db_session.refresh(stone)
    db_session.refresh(paper)
    assert stone.quantity == 10
    assert paper.quantity == 2
    assert _order_count(db_session) == 0


def test_storage_failure_during_deduction_rolls_back(db_session, design, operator, make_stone, monkeypatch):
    stone = make_stone(quantity=10)

    def _boom(db, stone_id, pieces):
        raise OperationalError("UPDATE stones ...", {}, Exception("disk I/O error"))

    monkeypatch.setattr(order_service, "deduct_stone", _boom)

    with pytest.raises(PersistenceError):
        _create(db_session, design, operator, stones=[(stone.id, 3)])

    db_session.refresh(stone)
    assert stone.quantity == 10
    assert _order_count(db_session) == 0


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
def test_create_rejects_bad_quantity(db_session, design, operator, quantity):
    with pytest.raises(ValidationError) as exc:
        _create(db_session, design, operator, quantity=quantity)
    assert exc.value.field == "quantity"


def test_create_rejects_unknown_type(db_session, design, operator):
    with pytest.raises(ValidationError):
        _create(db_session, design, operator, order_type="export")


def test_create_rejects_negative_usage(db_session, design, operator, make_stone):
    stone = make_stone()
    with pytest.raises(ValidationError):
        _create(db_session, design, operator, stones=[(stone.id, -2)])


def test_create_unknown_design(db_session, operator):
    with pytest.raises(NotFoundError) as exc:
        order_service.create_order(
            db_session,
            design_id=9999,
            order_type="out",
            quantity=1,
            actor_id=operator.id,
        )
    assert exc.value.entity == "design"


def test_create_unknown_stone(db_session, design, operator):
    with pytest.raises(NotFoundError) as exc:
        _create(db_session, design, operator, stones=[(777, 1)])
    assert exc.value.entity == "stone"


def test_create_writes_audit_entry(db_session, design, operator, make_stone):
    stone = make_stone(quantity=10)
    order = _create(db_session, design, operator, stones=[(stone.id, 2)])

    entry = db_session.execute(select(AuditLog).where(AuditLog.action == "order.create")).scalar_one()
    assert entry.actor_id == operator.id
    assert entry.entity_id == str(order.id)
    assert json.loads(entry.meta)["order_number"] == order.order_number


# ---------- delete ----------
def test_delete_restores_stone_stock(db_session, design, operator, admin, make_stone):
    stone = make_stone(quantity=50)
    order = _create(db_session, design, operator, stones=[(stone.id, 20)])
    db_session.refresh(stone)
    assert stone.quantity == 30

    order_service.delete_order(db_session, order.id, actor_id=admin.id)

    db_session.refresh(stone)
    assert stone.quantity == 50
    assert _order_count(db_session) == 0


def test_paper_rounding_example_create_then_delete(db_session, design, operator, admin, make_paper):
    paper = make_paper(quantity=3, pieces_per_roll=50)

    order = _create(db_session, design, operator, papers=[(paper.id, 120)])
    db_session.refresh(paper)
    assert paper.quantity == 0

    order_service.delete_order(db_session, order.id, actor_id=admin.id)
    db_session.refresh(paper)
    assert paper.quantity == 3


def test_delete_requires_admin(db_session, design, operator, make_stone):
    stone = make_stone(quantity=10)
    order = _create(db_session, design, operator, stones=[(stone.id, 4)])

    with pytest.raises(PermissionDeniedError):
        order_service.delete_order(db_session, order.id, actor_id=operator.id)

    db_session.refresh(stone)
    assert stone.quantity == 6
    assert _order_count(db_session) == 1


def test_delete_unknown_order(db_session, admin):
    with pytest.raises(NotFoundError):
        order_service.delete_order(db_session, 12345, actor_id=admin.id)


# ---------- update / status ----------
def test_cancelling_does_not_restore_stock(db_session, design, operator, make_stone):
    stone = make_stone(quantity=10)
    order = _create(db_session, design, operator, stones=[(stone.id, 4)])

    order = order_service.update_order(db_session, order.id, {"status": "cancelled"}, actor_id=operator.id)

    assert order.status == OrderStatus.cancelled
    db_session.refresh(stone)
    assert stone.quantity == 6


def test_any_status_transition_is_accepted(db_session, design, operator):
    order = _create(db_session, design, operator)

    for status in ("completed", "pending", "cancelled", "in_progress", "pending"):
        order = order_service.update_order(db_session, order.id, {"status": status}, actor_id=operator.id)
        assert order.status == OrderStatus(status)


def test_final_weight_discrepancy(db_session, design, operator, make_stone):
    stone = make_stone(quantity=100, weight_per_piece=2.0)
    order = _create(db_session, design, operator, stones=[(stone.id, 4)], quantity=5)
    assert order.calculated_weight == pytest.approx(40.0)

    order = order_service.update_order(db_session, order.id, {"final_weight": 45}, actor_id=operator.id)
    assert order.weight_discrepancy == pytest.approx(5.0)

    order = order_service.update_order(db_session, order.id, {"final_weight": 38}, actor_id=operator.id)
    assert order.weight_discrepancy == pytest.approx(-2.0)

    order = order_service.update_order(db_session, order.id, {"final_weight": None}, actor_id=operator.id)
    assert order.final_weight is None
    assert order.weight_discrepancy == 0


def test_update_notes_only(db_session, design, operator):
    order = _create(db_session, design, operator, notes="a")

    order = order_service.update_order(db_session, order.id, {"notes": "b"}, actor_id=operator.id)

    assert order.notes == "b"
    assert order.status == OrderStatus.pending


@pytest.mark.parametrize(
    "patch",
    [
        {"status": "shipped"},
        {"final_weight": -1},
        {"quantity": 4},
        {"final_weight": float("nan")},
        {"final_weight": float("inf")},
    ],
)
def test_update_rejects_invalid_patch(db_session, design, operator, patch):
    order = _create(db_session, design, operator)

    with pytest.raises(ValidationError):
        order_service.update_order(db_session, order.id, patch, actor_id=operator.id)


# ---------- recalculation ----------
def test_recalculate_uses_current_catalog_weights(db_session, design, operator, make_stone):
    stone = make_stone(quantity=100, weight_per_piece=2.0)
    order = _create(db_session, design, operator, stones=[(stone.id, 4)], quantity=5)
    order_service.update_order(db_session, order.id, {"final_weight": 45}, actor_id=operator.id)

    stone.weight_per_piece = 2.5
    db_session.commit()

    order, breakdown = order_service.recalculate_order_weight(db_session, order.id, actor_id=operator.id)

    assert breakdown.weight_per_piece == pytest.approx(10.0)
    assert order.calculated_weight == pytest.approx(50.0)
    assert order.weight_discrepancy == pytest.approx(-5.0)
    db_session.refresh(stone)
    assert stone.quantity == 96


def test_recalculate_without_final_weight_keeps_discrepancy(db_session, design, operator, make_stone):
    stone = make_stone(quantity=100, weight_per_piece=1.0)
    order = _create(db_session, design, operator, stones=[(stone.id, 2)])

    stone.weight_per_piece = 3.0
    db_session.commit()
    order, _ = order_service.recalculate_order_weight(db_session, order.id, actor_id=operator.id)

    assert order.calculated_weight == pytest.approx(6.0)
    assert order.final_weight is None
    assert order.weight_discrepancy == 0


def test_recalculate_all_skips_orders_without_materials(db_session, design, operator, admin, make_stone):
    stone = make_stone(quantity=100, weight_per_piece=1.0)
    with_bom = _create(db_session, design, operator, stones=[(stone.id, 2)])
    _create(db_session, design, operator)

    stone.weight_per_piece = 4.0
    db_session.commit()

    summary = order_service.recalculate_all_order_weights(db_session, actor_id=admin.id)

    assert (summary.success, summary.skipped, summary.errors) == (1, 1, 0)
    assert db_session.get(Order, with_bom.id).calculated_weight == pytest.approx(8.0)


# ---------- queries ----------
def test_list_orders_filters(db_session, design, operator):
    internal = _create(db_session, design, operator)
    out = _create(db_session, design, operator, order_type="out")
    order_service.update_order(db_session, out.id, {"status": "completed"}, actor_id=operator.id)

    assert [o.id for o in order_service.list_orders(db_session, order_type="internal")] == [internal.id]
    assert [o.id for o in order_service.list_orders(db_session, status=OrderStatus.completed)] == [out.id]
    assert len(order_service.list_orders(db_session, design_id=design.id)) == 2


def test_null_status_is_ignored(db_session, design, operator):
    order = _create(db_session, design, operator, notes="a")

    order = order_service.update_order(db_session, order.id, {"status": None, "notes": "x"}, actor_id=operator.id)

    assert order.status == OrderStatus.pending
    assert order.notes == "x"


# ---------- matière supprimée du catalogue ----------
def test_order_survives_deleted_materials(db_session, design, operator, admin, make_stone, make_paper):
    """
    GIVEN une commande qui consomme tout le stock d'une pierre et d'un papier
    WHEN les deux matières sont supprimées du catalogue
    THEN les lignes gardent leur quantité sans lien matière,
         le recalcul donne 0 et la suppression de la commande passe
    """
    stone = make_stone(quantity=4, weight_per_piece=2.0)
    paper = make_paper(quantity=1, pieces_per_roll=50, weight_per_piece=1.0)
    order = _create(db_session, design, operator, stones=[(stone.id, 4)], papers=[(paper.id, 30)])
    assert order.calculated_weight == pytest.approx(38.0)

    catalog.delete_stone(db_session, stone.id, actor_id=admin.id)
    catalog.delete_paper(db_session, paper.id, actor_id=admin.id)

    order = order_service.get_order(db_session, order.id)
    assert [(u.stone_id, u.quantity) for u in order.stone_usages] == [(None, 4)]
    assert [(u.paper_id, u.quantity) for u in order.paper_usages] == [(None, 30)]

    order, breakdown = order_service.recalculate_order_weight(db_session, order.id, actor_id=operator.id)
    assert breakdown.calculated_weight == 0
    assert order.calculated_weight == 0

    order_service.delete_order(db_session, order.id, actor_id=admin.id)
    assert _order_count(db_session) == 0


def test_recalculate_all_skips_orders_whose_materials_are_gone(db_session, design, operator, admin, make_stone):
    stone = make_stone(quantity=2, weight_per_piece=1.0)
    _create(db_session, design, operator, stones=[(stone.id, 2)])
    catalog.delete_stone(db_session, stone.id, actor_id=admin.id)

    summary = order_service.recalculate_all_order_weights(db_session, actor_id=admin.id)

    assert (summary.success, summary.skipped, summary.errors) == (0, 1, 0)
