"""
Workflow policies. Dataclasses only. No FastAPI, no external deps beyond dataclasses/typing.
"""

from dataclasses import dataclass, field

from transport_backend.domain.models import (
    DRIVER_AVAILABLE,
    DRIVER_IDLE,
    DRIVER_ON_ROUTE,
    VEHICLE_ACTIVE,
    VEHICLE_IDLE,
    VEHICLE_ON_THE_MOVE,
    VEHICLE_PARKED,
)


@dataclass(frozen=True)
class AssignmentPolicy:
    assignable_driver_statuses: frozenset = frozenset({DRIVER_IDLE, DRIVER_AVAILABLE})
    assignable_vehicle_statuses: frozenset = frozenset({VEHICLE_ACTIVE, VEHICLE_PARKED})
    # Written on the resources while they carry a route
    driver_on_route_status: str = DRIVER_ON_ROUTE
    vehicle_on_route_status: str = VEHICLE_ON_THE_MOVE
    # Written on completion (POD path and manual path alike)
    driver_released_status: str = DRIVER_IDLE
    vehicle_released_status: str = VEHICLE_IDLE
    assigned_progress: int = 5


@dataclass(frozen=True)
class SafetyScorePolicy:
    perfect_points: float = 5.0
    critical_points: float = -3.0
    regular_points: float = 2.0
    min_score: float = 0.0
    max_score: float = 100.0
    # Per-answer weight for overall inspection score; not_applicable is excluded
    answer_weights: dict = field(
        default_factory=lambda: {"good": 1.0, "fair": 0.5, "poor": 0.0, "missing": 0.0}
    )
