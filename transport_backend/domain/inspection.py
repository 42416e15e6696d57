"""
Pre-trip safety inspection. Evaluation, record building, rolling driver score, maintenance alerts.
Pure functions; the checklist itself is configuration (application.checklist).
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Mapping, Optional

from transport_backend.domain.constraints import SafetyScorePolicy
from transport_backend.domain.errors import PreconditionError
from transport_backend.domain.models import (
    CRITICAL_ITEM_STATUSES,
    ITEM_GOOD,
    ITEM_MISSING,
    ITEM_NOT_APPLICABLE,
    ITEM_STATUSES,
    ChecklistItem,
    InspectionEvaluation,
    InspectionItem,
    ItemResponse,
    MaintenanceAlert,
    SafetyInspection,
    SafetyScore,
)

DEFAULT_SCORE_POLICY = SafetyScorePolicy()


def _check_responses(responses: Mapping[str, ItemResponse], checklist: list[ChecklistItem]) -> None:
    known = {item.item_id for item in checklist}
    unknown = sorted(set(responses) - known)
    if unknown:
        raise PreconditionError(f"Unknown checklist items: {', '.join(unknown)}")
    for item_id, response in responses.items():
        if response.status not in ITEM_STATUSES:
            raise PreconditionError(f"Invalid answer {response.status!r} for item {item_id}")


def overall_score(
    responses: Mapping[str, ItemResponse],
    policy: SafetyScorePolicy = DEFAULT_SCORE_POLICY,
) -> int:
    weights = [
        policy.answer_weights.get(r.status, 0.0)
        for r in responses.values()
        if r.status != ITEM_NOT_APPLICABLE
    ]
    if not weights:
        return 100
    return int(100 * sum(weights) / len(weights) + 0.5)


def evaluate(
    responses: Mapping[str, ItemResponse],
    checklist: list[ChecklistItem],
    policy: SafetyScorePolicy = DEFAULT_SCORE_POLICY,
) -> InspectionEvaluation:
    """
    has_critical_issues: any answer poor or missing.
    is_perfect: every answer good (and at least one answer).
    unanswered: required checklist items with no answer, in checklist order.
    """
    _check_responses(responses, checklist)
    statuses = [r.status for r in responses.values()]
    return InspectionEvaluation(
        has_critical_issues=any(s in CRITICAL_ITEM_STATUSES for s in statuses),
        is_perfect=bool(statuses) and all(s == ITEM_GOOD for s in statuses),
        unanswered=[item.item_id for item in checklist if item.required and item.item_id not in responses],
        overall_score=overall_score(responses, policy),
    )


def build_inspection(
    route_id: str,
    driver_id: str,
    vehicle_id: str,
    organization_id: str,
    responses: Mapping[str, ItemResponse],
    checklist: list[ChecklistItem],
    time_to_complete: int,
    now: Optional[datetime] = None,
    policy: SafetyScorePolicy = DEFAULT_SCORE_POLICY,
) -> SafetyInspection:
    """Evaluate and freeze the inspection. Raises PreconditionError while required items are unanswered."""
    evaluation = evaluate(responses, checklist, policy)
    if evaluation.unanswered:
        raise PreconditionError(
            f"{len(evaluation.unanswered)} required inspection item(s) unanswered: "
            + ", ".join(evaluation.unanswered)
        )
    now = now or datetime.now(timezone.utc)

    items = []
    for item in checklist:
        # optional items left blank are recorded as not applicable
        response = responses.get(item.item_id) or ItemResponse(status=ITEM_NOT_APPLICABLE)
        items.append(
            InspectionItem(
                item_id=item.item_id,
                category=item.category,
                question=item.question,
                required=item.required,
                status=response.status,
                notes=response.notes,
                photo_url=response.photo_url,
            )
        )

    return SafetyInspection(
        inspection_id=None,
        route_id=route_id,
        driver_id=driver_id,
        vehicle_id=vehicle_id,
        organization_id=organization_id,
        inspection_date=now.date().isoformat(),
        items=items,
        overall_score=evaluation.overall_score,
        is_perfect=evaluation.is_perfect,
        has_critical_issues=evaluation.has_critical_issues,
        completed_at=now,
        time_to_complete=max(0, int(time_to_complete)),
    )


def next_safety_score(
    existing: Optional[SafetyScore],
    inspection: SafetyInspection,
    policy: SafetyScorePolicy = DEFAULT_SCORE_POLICY,
) -> SafetyScore:
    """
    First inspection seeds the score with the inspection's overall score.
    Later ones: +5 perfect, -3 critical issues, +2 otherwise, clamped to 0..100.
    """
    perfect = 1 if inspection.is_perfect else 0
    if existing is None:
        return SafetyScore(
            driver_id=inspection.driver_id,
            organization_id=inspection.organization_id,
            total_inspections=1,
            perfect_inspections=perfect,
            score=float(inspection.overall_score),
            current_streak=perfect,
            longest_streak=perfect,
            last_inspection_date=inspection.inspection_date,
        )

    if inspection.is_perfect:
        points = policy.perfect_points
    elif inspection.has_critical_issues:
        points = policy.critical_points
    else:
        points = policy.regular_points
    streak = existing.current_streak + 1 if inspection.is_perfect else 0
    return replace(
        existing,
        total_inspections=existing.total_inspections + 1,
        perfect_inspections=existing.perfect_inspections + perfect,
        score=max(policy.min_score, min(policy.max_score, existing.score + points)),
        current_streak=streak,
        longest_streak=max(streak, existing.longest_streak),
        last_inspection_date=inspection.inspection_date,
    )


def maintenance_alerts_for(inspection: SafetyInspection) -> list[MaintenanceAlert]:
    return [
        MaintenanceAlert(
            vehicle_id=inspection.vehicle_id,
            organization_id=inspection.organization_id,
            inspection_id=inspection.inspection_id,
            driver_id=inspection.driver_id,
            route_id=inspection.route_id,
            category=item.category,
            issue=item.question,
            severity="critical" if item.status == ITEM_MISSING else "high",
            notes=item.notes or "",
            photo_url=item.photo_url or "",
            reported_date=inspection.inspection_date,
        )
        for item in inspection.items
        if item.status in CRITICAL_ITEM_STATUSES
    ]
