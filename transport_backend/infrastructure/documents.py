"""
Store documents <-> domain dataclasses. Raw dicts never reach the use cases.

Legacy documents are tolerated: numeric ids, ISO-string timestamps, and the
old route shape where `stops` was a plain count instead of a list.
"""

from typing import Any, Optional

from transport_backend.domain.models import (
    ROUTE_PENDING,
    STOP_PENDING,
    Driver,
    Expense,
    InspectionItem,
    MaintenanceAlert,
    Route,
    SafetyInspection,
    SafetyScore,
    Stop,
    Vehicle,
)
from transport_backend.infrastructure.ids import normalize_id
from transport_backend.infrastructure.store import parse_timestamp

_STOP_TIMESTAMPS = ("estimated_arrival", "actual_arrival", "completed_at")


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None and value != "" else default
    except (TypeError, ValueError):
        return default


def _opt_float(value: Any) -> Optional[float]:
    return None if value is None or value == "" else _float(value)


# ----------------------------------------------------------------------
# Stops / expenses (embedded in routes)
# ----------------------------------------------------------------------

def stop_from_dict(raw: dict) -> Stop:
    return Stop(
        stop_id=normalize_id(raw.get("stop_id") or raw.get("id")) or "",
        sequence=int(raw.get("sequence") or 0),
        address=str(raw.get("address", "")),
        status=raw.get("status") or STOP_PENDING,
        lat=_opt_float(raw.get("lat")),
        lng=_opt_float(raw.get("lng")),
        recipient_name=raw.get("recipient_name") or None,
        recipient_phone=raw.get("recipient_phone") or None,
        delivery_notes=raw.get("delivery_notes"),
        pod_photo_url=raw.get("pod_photo_url"),
        signature_url=raw.get("signature_url"),
        failure_reason=raw.get("failure_reason"),
        **{key: parse_timestamp(raw.get(key)) for key in _STOP_TIMESTAMPS},
    )


def stop_to_dict(stop: Stop) -> dict:
    return {
        "stop_id": stop.stop_id,
        "sequence": stop.sequence,
        "address": stop.address,
        "status": stop.status,
        "lat": stop.lat,
        "lng": stop.lng,
        "recipient_name": stop.recipient_name,
        "recipient_phone": stop.recipient_phone,
        "delivery_notes": stop.delivery_notes,
        "pod_photo_url": stop.pod_photo_url,
        "signature_url": stop.signature_url,
        "failure_reason": stop.failure_reason,
        "estimated_arrival": stop.estimated_arrival,
        "actual_arrival": stop.actual_arrival,
        "completed_at": stop.completed_at,
    }


def expense_from_dict(raw: dict) -> Expense:
    return Expense(
        expense_id=normalize_id(raw.get("expense_id") or raw.get("id")) or "",
        expense_type=raw.get("expense_type") or raw.get("type") or "Other",
        description=str(raw.get("description", "")),
        amount=_float(raw.get("amount")),
        date=str(raw.get("date", "")),
    )


def expense_to_dict(expense: Expense) -> dict:
    return {
        "expense_id": expense.expense_id,
        "expense_type": expense.expense_type,
        "description": expense.description,
        "amount": expense.amount,
        "date": expense.date,
    }


# ----------------------------------------------------------------------
# Routes
# ----------------------------------------------------------------------

def route_from_doc(doc: dict) -> Route:
    raw_stops = doc.get("stops")
    # old routes stored a stop count only; they are not stop-tracked
    stops = [stop_from_dict(s) for s in raw_stops] if isinstance(raw_stops, list) else []
    stops.sort(key=lambda s: s.sequence)
    return Route(
        route_id=normalize_id(doc.get("id")) or "",
        organization_id=normalize_id(doc.get("organization_id")) or "",
        origin=doc.get("origin") or "",
        destination=doc.get("destination") or "",
        status=doc.get("status") or ROUTE_PENDING,
        progress=int(doc.get("progress") or 0),
        rate=_float(doc.get("rate")),
        distance_km=_float(doc.get("distance_km")),
        assigned_driver_id=normalize_id(doc.get("assigned_driver_id")),
        assigned_driver_name=doc.get("assigned_driver_name") or "",
        assigned_vehicle_id=normalize_id(doc.get("assigned_vehicle_id")),
        assigned_vehicle_plate=doc.get("assigned_vehicle_plate") or "",
        client_id=normalize_id(doc.get("client_id")),
        client_name=doc.get("client_name") or "",
        stops=stops,
        expenses=[expense_from_dict(e) for e in doc.get("expenses") or []],
        pre_trip_inspection_id=normalize_id(doc.get("pre_trip_inspection_id")),
        notes=doc.get("notes") or "",
        created_by=normalize_id(doc.get("created_by")),
        created_at=parse_timestamp(doc.get("created_at")),
        updated_at=parse_timestamp(doc.get("updated_at")),
        actual_departure_time=parse_timestamp(doc.get("actual_departure_time")),
        completion_date=parse_timestamp(doc.get("completion_date")),
        version=int(doc.get("version") or 0),
    )


def route_to_doc(route: Route) -> dict:
    """Writable fields only; id/version/timestamps belong to the store."""
    return {
        "organization_id": route.organization_id,
        "origin": route.origin,
        "destination": route.destination,
        "status": route.status,
        "progress": route.progress,
        "rate": route.rate,
        "distance_km": route.distance_km,
        "assigned_driver_id": route.assigned_driver_id,
        "assigned_driver_name": route.assigned_driver_name,
        "assigned_vehicle_id": route.assigned_vehicle_id,
        "assigned_vehicle_plate": route.assigned_vehicle_plate,
        "client_id": route.client_id,
        "client_name": route.client_name,
        "stops": [stop_to_dict(s) for s in route.stops],
        "expenses": [expense_to_dict(e) for e in route.expenses],
        "pre_trip_inspection_id": route.pre_trip_inspection_id,
        "notes": route.notes,
        "created_by": route.created_by,
        "actual_departure_time": route.actual_departure_time,
        "completion_date": route.completion_date,
    }


# ----------------------------------------------------------------------
# Drivers / vehicles
# ----------------------------------------------------------------------

def driver_from_doc(doc: dict) -> Driver:
    portal = doc.get("portal_access") or {}
    return Driver(
        driver_id=normalize_id(doc.get("id")) or "",
        organization_id=normalize_id(doc.get("organization_id")) or "",
        name=doc.get("name") or "",
        status=doc.get("status") or "Idle",
        phone=doc.get("phone") or "",
        current_route_id=normalize_id(doc.get("current_route_id")),
        current_route_status=doc.get("current_route_status"),
        whatsapp_notifications=bool(portal.get("whatsapp_notifications", doc.get("whatsapp_notifications", True))),
        safety_score=_opt_float(doc.get("safety_score")),
        version=int(doc.get("version") or 0),
    )


def vehicle_from_doc(doc: dict) -> Vehicle:
    telematics = doc.get("telematics") or {}
    return Vehicle(
        vehicle_id=normalize_id(doc.get("id")) or "",
        organization_id=normalize_id(doc.get("organization_id")) or "",
        plate_number=doc.get("plate_number") or "",
        status=doc.get("status") or "Parked",
        make=doc.get("make") or "",
        model=doc.get("model") or "",
        current_route_id=normalize_id(doc.get("current_route_id")),
        current_route_status=doc.get("current_route_status"),
        assigned_driver_id=normalize_id(doc.get("assigned_driver_id")),
        odometer=_float(doc.get("odometer", telematics.get("odometer"))),
        version=int(doc.get("version") or 0),
    )


# ----------------------------------------------------------------------
# Safety
# ----------------------------------------------------------------------

def inspection_to_doc(inspection: SafetyInspection) -> dict:
    return {
        "route_id": inspection.route_id,
        "driver_id": inspection.driver_id,
        "vehicle_id": inspection.vehicle_id,
        "organization_id": inspection.organization_id,
        "inspection_date": inspection.inspection_date,
        "items": [
            {
                "item_id": i.item_id,
                "category": i.category,
                "question": i.question,
                "required": i.required,
                "status": i.status,
                "notes": i.notes,
                "photo_url": i.photo_url,
            }
            for i in inspection.items
        ],
        "overall_score": inspection.overall_score,
        "is_perfect": inspection.is_perfect,
        "has_critical_issues": inspection.has_critical_issues,
        "completed_at": inspection.completed_at,
        "time_to_complete": inspection.time_to_complete,
    }


def inspection_from_doc(doc: dict) -> SafetyInspection:
    return SafetyInspection(
        inspection_id=normalize_id(doc.get("id")),
        route_id=normalize_id(doc.get("route_id")) or "",
        driver_id=normalize_id(doc.get("driver_id")) or "",
        vehicle_id=normalize_id(doc.get("vehicle_id")) or "",
        organization_id=normalize_id(doc.get("organization_id")) or "",
        inspection_date=str(doc.get("inspection_date", "")),
        items=[
            InspectionItem(
                item_id=i.get("item_id") or i.get("id") or "",
                category=i.get("category", ""),
                question=i.get("question", ""),
                required=bool(i.get("required", False)),
                status=i.get("status", "not_applicable"),
                notes=i.get("notes"),
                photo_url=i.get("photo_url"),
            )
            for i in doc.get("items") or []
        ],
        overall_score=int(doc.get("overall_score") or 0),
        is_perfect=bool(doc.get("is_perfect")),
        has_critical_issues=bool(doc.get("has_critical_issues")),
        completed_at=parse_timestamp(doc.get("completed_at")) or parse_timestamp(doc.get("created_at")),
        time_to_complete=int(doc.get("time_to_complete") or 0),
    )


def safety_score_from_doc(doc: dict) -> SafetyScore:
    return SafetyScore(
        driver_id=normalize_id(doc.get("driver_id")) or "",
        organization_id=normalize_id(doc.get("organization_id")) or "",
        total_inspections=int(doc.get("total_inspections") or 0),
        perfect_inspections=int(doc.get("perfect_inspections") or 0),
        score=_float(doc.get("score"), 100.0),
        current_streak=int(doc.get("current_streak") or 0),
        longest_streak=int(doc.get("longest_streak") or 0),
        last_inspection_date=doc.get("last_inspection_date"),
        incidents=int(doc.get("incidents") or 0),
        score_id=normalize_id(doc.get("id")),
    )


def safety_score_to_doc(score: SafetyScore) -> dict:
    return {
        "driver_id": score.driver_id,
        "organization_id": score.organization_id,
        "total_inspections": score.total_inspections,
        "perfect_inspections": score.perfect_inspections,
        "score": score.score,
        "current_streak": score.current_streak,
        "longest_streak": score.longest_streak,
        "last_inspection_date": score.last_inspection_date,
        "incidents": score.incidents,
    }


def alert_to_doc(alert: MaintenanceAlert) -> dict:
    return {
        "vehicle_id": alert.vehicle_id,
        "organization_id": alert.organization_id,
        "inspection_id": alert.inspection_id,
        "driver_id": alert.driver_id,
        "route_id": alert.route_id,
        "category": alert.category,
        "issue": alert.issue,
        "severity": alert.severity,
        "status": alert.status,
        "notes": alert.notes,
        "photo_url": alert.photo_url,
        "reported_date": alert.reported_date,
    }
