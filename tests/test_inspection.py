from datetime import datetime, timezone

import pytest

from transport_backend.application.checklist import CHECKLIST_CATEGORIES, DEFAULT_CHECKLIST
from transport_backend.domain.errors import PreconditionError
from transport_backend.domain.inspection import (
    build_inspection,
    evaluate,
    maintenance_alerts_for,
    next_safety_score,
    overall_score,
)
from transport_backend.domain.models import ChecklistItem, ItemResponse, SafetyScore

NOW = datetime(2025, 10, 9, 7, 45, tzinfo=timezone.utc)

CHECKLIST = [
    ChecklistItem("oil", "Engine & Fluids", "Engine oil level", True),
    ChecklistItem("tires", "Tires & Brakes", "Tire condition", True),
    ChecklistItem("first_aid", "Safety Equipment", "First aid kit", False),
]


def answers(**statuses):
    return {item_id: ItemResponse(status=status) for item_id, status in statuses.items()}


def inspect(responses, checklist=CHECKLIST):
    return build_inspection("R1", "D1", "V1", "ORG-1", responses, checklist, time_to_complete=95, now=NOW)


def test_checklist_taxonomy_loaded_from_configuration():
    assert len(CHECKLIST_CATEGORIES) == 7
    assert len(DEFAULT_CHECKLIST) == sum(len(items) for items in CHECKLIST_CATEGORIES.values())
    assert len({item.item_id for item in DEFAULT_CHECKLIST}) == len(DEFAULT_CHECKLIST)
    assert any(not item.required for item in DEFAULT_CHECKLIST)


def test_evaluate_all_good_is_perfect():
    result = evaluate(answers(oil="good", tires="good", first_aid="good"), CHECKLIST)
    assert result.is_perfect
    assert not result.has_critical_issues
    assert result.unanswered == []
    assert result.overall_score == 100


@pytest.mark.parametrize("bad", ["poor", "missing"])
def test_evaluate_flags_critical_issues(bad):
    result = evaluate(answers(oil="good", tires=bad), CHECKLIST)
    assert result.has_critical_issues
    assert not result.is_perfect


def test_fair_answer_is_neither_perfect_nor_critical():
    result = evaluate(answers(oil="fair", tires="good"), CHECKLIST)
    assert not result.is_perfect
    assert not result.has_critical_issues
    assert result.overall_score == 75


def test_unanswered_lists_required_items_only():
    result = evaluate(answers(oil="good"), CHECKLIST)
    assert result.unanswered == ["tires"]


def test_empty_responses_are_not_perfect():
    result = evaluate({}, CHECKLIST)
    assert not result.is_perfect
    assert result.unanswered == ["oil", "tires"]


def test_unknown_item_or_answer_rejected():
    with pytest.raises(PreconditionError):
        evaluate(answers(brakes="good"), CHECKLIST)
    with pytest.raises(PreconditionError):
        evaluate(answers(oil="excellent"), CHECKLIST)


def test_overall_score_ignores_not_applicable():
    assert overall_score(answers(oil="good", tires="poor", first_aid="not_applicable")) == 50
    assert overall_score(answers(first_aid="not_applicable")) == 100


def test_build_inspection_rejects_unanswered_required_items():
    with pytest.raises(PreconditionError, match="tires"):
        inspect(answers(oil="good"))


def test_build_inspection_records_every_checklist_item():
    inspection = inspect(answers(oil="good", tires="missing"))

    assert [i.item_id for i in inspection.items] == ["oil", "tires", "first_aid"]
    assert inspection.items[2].status == "not_applicable"
    assert inspection.has_critical_issues
    assert inspection.inspection_date == "2025-10-09"
    assert inspection.completed_at == NOW
    assert inspection.time_to_complete == 95
    assert inspection.inspection_id is None


def test_first_inspection_seeds_score_with_overall_score():
    inspection = inspect(answers(oil="good", tires="fair"))
    score = next_safety_score(None, inspection)
    assert score.score == 75
    assert score.total_inspections == 1
    assert score.perfect_inspections == 0
    assert score.current_streak == 0


def test_perfect_inspection_adds_points_and_extends_streak():
    existing = SafetyScore(driver_id="D1", organization_id="ORG-1", total_inspections=4, perfect_inspections=3,
                           score=90, current_streak=2, longest_streak=2)
    score = next_safety_score(existing, inspect(answers(oil="good", tires="good", first_aid="good")))
    assert score.score == 95
    assert score.total_inspections == 5
    assert score.perfect_inspections == 4
    assert score.current_streak == 3
    assert score.longest_streak == 3


def test_critical_inspection_costs_points_and_breaks_streak():
    existing = SafetyScore(driver_id="D1", organization_id="ORG-1", score=2, current_streak=4, longest_streak=4)
    score = next_safety_score(existing, inspect(answers(oil="poor", tires="good")))
    assert score.score == 0
    assert score.current_streak == 0
    assert score.longest_streak == 4


def test_score_is_capped_at_100():
    existing = SafetyScore(driver_id="D1", organization_id="ORG-1", score=99)
    score = next_safety_score(existing, inspect(answers(oil="fair", tires="good")))
    assert score.score == 100


def test_maintenance_alerts_for_critical_items():
    inspection = inspect(answers(oil="missing", tires="poor", first_aid="fair"))
    alerts = maintenance_alerts_for(inspection)
    assert [(a.issue, a.severity) for a in alerts] == [
        ("Engine oil level", "critical"),
        ("Tire condition", "high"),
    ]
    assert all(a.vehicle_id == "V1" and a.status == "open" for a in alerts)


def test_no_alerts_for_clean_inspection():
    assert maintenance_alerts_for(inspect(answers(oil="good", tires="fair"))) == []
