"""
Domain models. Dataclasses only. No FastAPI, no storage, no external deps beyond dataclasses/typing.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

# Route lifecycle
ROUTE_PENDING = "Pending"
ROUTE_IN_PROGRESS = "In Progress"
ROUTE_COMPLETED = "Completed"
ROUTE_STATUSES = (ROUTE_PENDING, ROUTE_IN_PROGRESS, ROUTE_COMPLETED)

# Stop lifecycle
STOP_PENDING = "pending"
STOP_ARRIVED = "arrived"
STOP_COMPLETED = "completed"
STOP_FAILED = "failed"
STOP_STATUSES = (STOP_PENDING, STOP_ARRIVED, STOP_COMPLETED, STOP_FAILED)

# Driver / vehicle statuses
DRIVER_IDLE = "Idle"
DRIVER_AVAILABLE = "Available"
DRIVER_ON_ROUTE = "On-route"
DRIVER_STATUSES = (DRIVER_IDLE, DRIVER_AVAILABLE, DRIVER_ON_ROUTE, "Offline", "Active", "Inactive")

VEHICLE_ACTIVE = "Active"
VEHICLE_PARKED = "Parked"
VEHICLE_IDLE = "Idle"
VEHICLE_ON_THE_MOVE = "On the Move"
VEHICLE_STATUSES = (VEHICLE_ACTIVE, VEHICLE_PARKED, VEHICLE_IDLE, VEHICLE_ON_THE_MOVE, "Inactive", "In-Shop")

EXPENSE_TYPES = ("Fuel", "Tolls", "Maintenance", "Other")

# Inspection item answers
ITEM_GOOD = "good"
ITEM_FAIR = "fair"
ITEM_POOR = "poor"
ITEM_MISSING = "missing"
ITEM_NOT_APPLICABLE = "not_applicable"
ITEM_STATUSES = (ITEM_GOOD, ITEM_FAIR, ITEM_POOR, ITEM_MISSING, ITEM_NOT_APPLICABLE)
CRITICAL_ITEM_STATUSES = frozenset({ITEM_POOR, ITEM_MISSING})


@dataclass(frozen=True)
class Stop:
    """One delivery leg of a route. Replaced, never mutated (see domain.progress)."""
    stop_id: str
    sequence: int
    address: str
    status: str = STOP_PENDING
    lat: Optional[float] = None
    lng: Optional[float] = None
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None
    delivery_notes: Optional[str] = None
    pod_photo_url: Optional[str] = None
    signature_url: Optional[str] = None
    failure_reason: Optional[str] = None
    estimated_arrival: Optional[datetime] = None
    actual_arrival: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def has_pod(self) -> bool:
        return self.status == STOP_COMPLETED and bool(self.recipient_name)


@dataclass(frozen=True)
class PodData:
    """Proof of delivery captured at a stop."""
    recipient_name: str
    delivery_notes: str = ""
    pod_photo_url: Optional[str] = None
    signature_url: Optional[str] = None


@dataclass(frozen=True)
class Expense:
    expense_id: str
    expense_type: str
    description: str
    amount: float
    date: str  # YYYY-MM-DD


@dataclass
class Route:
    route_id: str
    organization_id: str
    origin: str = ""
    destination: str = ""
    status: str = ROUTE_PENDING
    progress: int = 0
    rate: float = 0.0
    distance_km: float = 0.0
    assigned_driver_id: Optional[str] = None
    assigned_driver_name: str = ""
    assigned_vehicle_id: Optional[str] = None
    assigned_vehicle_plate: str = ""
    client_id: Optional[str] = None
    client_name: str = ""
    stops: List[Stop] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    pre_trip_inspection_id: Optional[str] = None
    notes: str = ""
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    actual_departure_time: Optional[datetime] = None
    completion_date: Optional[datetime] = None
    version: int = 0

    @property
    def is_assigned(self) -> bool:
        return bool(self.assigned_driver_id and self.assigned_vehicle_id)

    @property
    def is_stop_tracked(self) -> bool:
        return bool(self.stops)

    @property
    def total_expenses(self) -> float:
        return sum(e.amount for e in self.expenses)

    @property
    def balance(self) -> float:
        return self.rate - self.total_expenses

    def find_stop(self, stop_id: str) -> Optional[Stop]:
        return next((s for s in self.stops if s.stop_id == stop_id), None)


@dataclass
class Driver:
    driver_id: str
    organization_id: str
    name: str
    status: str = DRIVER_IDLE
    phone: str = ""
    current_route_id: Optional[str] = None
    current_route_status: Optional[str] = None
    whatsapp_notifications: bool = True
    safety_score: Optional[float] = None
    version: int = 0


@dataclass
class Vehicle:
    vehicle_id: str
    organization_id: str
    plate_number: str
    status: str = VEHICLE_PARKED
    make: str = ""
    model: str = ""
    current_route_id: Optional[str] = None
    current_route_status: Optional[str] = None
    assigned_driver_id: Optional[str] = None
    odometer: float = 0.0
    version: int = 0


@dataclass(frozen=True)
class ChecklistItem:
    """Checklist question as configured (no answer)."""
    item_id: str
    category: str
    question: str
    required: bool


@dataclass(frozen=True)
class ItemResponse:
    status: str
    notes: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class InspectionItem:
    item_id: str
    category: str
    question: str
    required: bool
    status: str
    notes: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class InspectionEvaluation:
    has_critical_issues: bool
    is_perfect: bool
    unanswered: List[str]
    overall_score: int


@dataclass(frozen=True)
class SafetyInspection:
    """Pre-trip inspection record. Created once per start attempt, never updated."""
    inspection_id: Optional[str]
    route_id: str
    driver_id: str
    vehicle_id: str
    organization_id: str
    inspection_date: str  # YYYY-MM-DD
    items: List[InspectionItem]
    overall_score: int
    is_perfect: bool
    has_critical_issues: bool
    completed_at: datetime
    time_to_complete: int  # seconds


@dataclass
class SafetyScore:
    driver_id: str
    organization_id: str
    total_inspections: int = 0
    perfect_inspections: int = 0
    score: float = 100.0
    current_streak: int = 0
    longest_streak: int = 0
    last_inspection_date: Optional[str] = None
    incidents: int = 0
    score_id: Optional[str] = None


@dataclass(frozen=True)
class MaintenanceAlert:
    vehicle_id: str
    organization_id: str
    inspection_id: Optional[str]
    driver_id: str
    route_id: str
    category: str
    issue: str
    severity: str  # "critical" | "high"
    notes: str = ""
    photo_url: str = ""
    reported_date: str = ""
    status: str = "open"
