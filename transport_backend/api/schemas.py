"""
API request/response schemas. Pydantic only in api layer.
Timestamps go out as ISO-8601 strings.
"""

from typing import Optional

from pydantic import BaseModel, Field


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------

class StopInput(BaseModel):
    address: str
    sequence: Optional[int] = None  # unset: after the sequenced stops, in the order given
    stop_id: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None


class RouteCreateRequest(BaseModel):
    origin: str
    destination: str
    rate: float = 0.0
    distance_km: float = 0.0
    client_id: Optional[str] = None
    client_name: str = ""
    notes: str = ""
    stops: list[StopInput] = Field(default_factory=list)


class RouteEditRequest(BaseModel):
    """Only the fields sent are changed."""
    origin: Optional[str] = None
    destination: Optional[str] = None
    rate: Optional[float] = None
    distance_km: Optional[float] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    notes: Optional[str] = None
    stops: Optional[list[StopInput]] = None


class AssignRequest(BaseModel):
    driver_id: str
    vehicle_id: str


class ItemResponseInput(BaseModel):
    status: str  # good | fair | poor | missing | not_applicable
    notes: Optional[str] = None
    photo_url: Optional[str] = None


class StartRouteRequest(BaseModel):
    responses: dict[str, ItemResponseInput]
    time_to_complete: int = 0  # seconds spent on the checklist


class StopStatusRequest(BaseModel):
    status: str  # arrived | completed | failed
    notes: Optional[str] = None


class PodRequest(BaseModel):
    recipient_name: str
    delivery_notes: str = ""
    pod_photo_url: Optional[str] = None
    signature_url: Optional[str] = None


class CompleteRouteRequest(BaseModel):
    odometer_reading: Optional[float] = None


class ExpenseRequest(BaseModel):
    expense_type: str  # Fuel | Tolls | Maintenance | Other
    amount: float
    description: str = ""
    date: Optional[str] = None  # YYYY-MM-DD, today if omitted


class DriverCreateRequest(BaseModel):
    name: str
    phone: str = ""
    email: str = ""
    license_number: str = ""
    status: Optional[str] = None
    whatsapp_notifications: bool = True


class VehicleCreateRequest(BaseModel):
    plate_number: str
    make: str = ""
    model: str = ""
    status: Optional[str] = None
    odometer: float = 0.0


class StatusRequest(BaseModel):
    status: str


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------

class StopSchema(BaseModel):
    stop_id: str
    sequence: int
    address: str
    status: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None
    delivery_notes: Optional[str] = None
    pod_photo_url: Optional[str] = None
    signature_url: Optional[str] = None
    failure_reason: Optional[str] = None
    estimated_arrival: Optional[str] = None
    actual_arrival: Optional[str] = None
    completed_at: Optional[str] = None


class ExpenseSchema(BaseModel):
    expense_id: str
    expense_type: str
    description: str
    amount: float
    date: str


class RouteSchema(BaseModel):
    route_id: str
    organization_id: str
    origin: str
    destination: str
    status: str
    progress: int
    rate: float
    distance_km: float
    assigned_driver_id: Optional[str] = None
    assigned_driver_name: str = ""
    assigned_vehicle_id: Optional[str] = None
    assigned_vehicle_plate: str = ""
    client_id: Optional[str] = None
    client_name: str = ""
    stops: list[StopSchema]
    expenses: list[ExpenseSchema]
    pre_trip_inspection_id: Optional[str] = None
    notes: str = ""
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    actual_departure_time: Optional[str] = None
    completion_date: Optional[str] = None
    version: int
    total_expenses: float
    balance: float
    pods_collected: int


class RouteResponse(BaseModel):
    message: str
    warnings: list[str] = Field(default_factory=list)
    route: Optional[RouteSchema] = None


class RouteListResponse(BaseModel):
    routes: list[RouteSchema]


class DriverSchema(BaseModel):
    driver_id: str
    organization_id: str
    name: str
    status: str
    phone: str = ""
    current_route_id: Optional[str] = None
    current_route_status: Optional[str] = None
    whatsapp_notifications: bool = True
    safety_score: Optional[float] = None
    version: int


class DriverResponse(BaseModel):
    message: str
    driver: DriverSchema


class VehicleSchema(BaseModel):
    vehicle_id: str
    organization_id: str
    plate_number: str
    status: str
    make: str = ""
    model: str = ""
    current_route_id: Optional[str] = None
    current_route_status: Optional[str] = None
    assigned_driver_id: Optional[str] = None
    odometer: float = 0.0
    version: int


class VehicleResponse(BaseModel):
    message: str
    vehicle: VehicleSchema


class InspectionItemSchema(BaseModel):
    item_id: str
    category: str
    question: str
    required: bool
    status: str
    notes: Optional[str] = None
    photo_url: Optional[str] = None


class InspectionSchema(BaseModel):
    inspection_id: Optional[str] = None
    route_id: str
    driver_id: str
    vehicle_id: str
    organization_id: str
    inspection_date: str
    items: list[InspectionItemSchema]
    overall_score: int
    is_perfect: bool
    has_critical_issues: bool
    completed_at: Optional[str] = None
    time_to_complete: int


class ChecklistQuestionSchema(BaseModel):
    item_id: str
    question: str
    required: bool


class ChecklistCategorySchema(BaseModel):
    category: str
    items: list[ChecklistQuestionSchema]


class ChecklistSchema(BaseModel):
    categories: list[ChecklistCategorySchema]
