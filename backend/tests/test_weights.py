import pytest

from backend.services.weights import MaterialUsage, calculate_weight, compute_weight


def test_compute_weight_formula():
    """quantity * (somme pierres + somme papier)"""
    breakdown = compute_weight(
        [MaterialUsage(1, 10), MaterialUsage(2, 4)],
        [MaterialUsage(7, 3)],
        5,
        stone_weights={1: 0.5, 2: 0.25},
        paper_weights={7: 2.0},
    )

    assert breakdown.stone_weight == pytest.approx(6.0)
    assert breakdown.paper_weight == pytest.approx(6.0)
    assert breakdown.weight_per_piece == pytest.approx(12.0)
    assert breakdown.calculated_weight == pytest.approx(60.0)


def test_missing_material_contributes_nothing():
    breakdown = compute_weight(
        [MaterialUsage(1, 10), MaterialUsage(99, 1000)],
        [],
        2,
        stone_weights={1: 1.0},
        paper_weights={},
    )

    assert breakdown.stone_weight == pytest.approx(10.0)
    assert breakdown.calculated_weight == pytest.approx(20.0)


def test_empty_bom_weighs_zero():
    breakdown = compute_weight([], [], 3, stone_weights={}, paper_weights={})
    assert breakdown.as_dict() == {
        "calculated_weight": 0.0,
        "weight_per_piece": 0.0,
        "stone_weight": 0.0,
        "paper_weight": 0.0,
    }


def test_calculate_weight_reads_catalog(db_session, make_stone, make_paper):
    stone = make_stone(weight_per_piece=0.5)
    paper = make_paper(weight_per_piece=2.0)

    first = calculate_weight(db_session, [MaterialUsage(stone.id, 8)], [MaterialUsage(paper.id, 1)], 2)
    second = calculate_weight(db_session, [MaterialUsage(stone.id, 8)], [MaterialUsage(paper.id, 1)], 2)

    assert first == second
    assert first.calculated_weight == pytest.approx(12.0)
