"""
Route lifecycle: Pending -> In Progress -> Completed.

The route is the only writer of the driver/vehicle current-route fields. Every
transition that touches more than one document runs inside store.transaction()
with version checks, so a reader sees all of it or none of it.

Side effects are split in two:
    critical     route / driver / vehicle / inspection writes; failures are returned
    best-effort  notifications, WhatsApp, safety score, maintenance alerts; logged only
"""

import logging
import math
from dataclasses import replace
from typing import Any, AsyncIterator, Awaitable, Mapping, Optional

from transport_backend.application.checklist import DEFAULT_CHECKLIST
from transport_backend.application.config import (
    DEFAULT_ASSIGNMENT_POLICY,
    DEFAULT_CURRENCY,
    DEFAULT_SAFETY_SCORE_POLICY,
    TEMPLATE_DRIVER_ASSIGNED,
    TEMPLATE_ROUTE_COMPLETED,
)
from transport_backend.application.results import OperationResult, as_result
from transport_backend.domain.constraints import AssignmentPolicy, SafetyScorePolicy
from transport_backend.domain.errors import NotFoundError, PolicyViolation, PreconditionError
from transport_backend.domain.inspection import (
    build_inspection,
    maintenance_alerts_for,
    next_safety_score,
)
from transport_backend.domain.models import (
    CRITICAL_ITEM_STATUSES,
    EXPENSE_TYPES,
    ROUTE_COMPLETED,
    ROUTE_IN_PROGRESS,
    ROUTE_PENDING,
    STOP_FAILED,
    STOP_PENDING,
    ChecklistItem,
    Driver,
    Expense,
    ItemResponse,
    PodData,
    Route,
    SafetyInspection,
    Stop,
    Vehicle,
)
from transport_backend.domain.progress import (
    TERMINAL_STOP_STATUSES,
    all_stops_terminal,
    apply_pod,
    apply_stop_transition,
    compute_progress,
    is_route_complete,
    renumber_stops,
    replace_stop,
    validate_sequences,
)
from transport_backend.infrastructure.documents import (
    alert_to_doc,
    driver_from_doc,
    expense_to_dict,
    inspection_from_doc,
    inspection_to_doc,
    route_from_doc,
    route_to_doc,
    safety_score_from_doc,
    safety_score_to_doc,
    stop_from_dict,
    stop_to_dict,
    vehicle_from_doc,
)
from transport_backend.infrastructure.ids import (
    generate_readable_id,
    generate_route_id,
    generate_stop_id,
    normalize_id,
)
from transport_backend.infrastructure.notifier import Notifier
from transport_backend.infrastructure.store import (
    DRIVER_SAFETY_SCORES,
    DRIVERS,
    MAINTENANCE_ALERTS,
    ROUTES,
    SAFETY_INSPECTIONS,
    VEHICLES,
    ResourceStore,
    utcnow,
)
from transport_backend.infrastructure.whatsapp import WhatsAppSender

logger = logging.getLogger(__name__)

# Fields a caller may set on create / change on edit. Status, progress, assignment,
# inspection and timestamps only move through the lifecycle operations.
EDITABLE_ROUTE_FIELDS = frozenset(
    {"origin", "destination", "rate", "distance_km", "client_id", "client_name", "notes", "stops"}
)


def _amount(value: Any, name: str) -> float:
    try:
        amount = float(value) if value not in (None, "") else 0.0
    except (TypeError, ValueError):
        raise PreconditionError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(amount):
        raise PreconditionError(f"{name} must be a finite number, got {value!r}")
    if amount < 0:
        raise PreconditionError(f"{name} cannot be negative")
    return amount


def format_money(amount: float, currency: str = DEFAULT_CURRENCY) -> str:
    return f"{currency} {amount:,.2f}"


class RouteLifecycleManager:
    """
    Route workflow for one organization and acting user.

    Every public operation returns an OperationResult; precondition, policy,
    not-found and conflict errors never escape as exceptions.
    """

    def __init__(
        self,
        store: ResourceStore,
        notifier: Notifier,
        whatsapp: WhatsAppSender,
        organization_id: str,
        user_id: str,
        policy: AssignmentPolicy = DEFAULT_ASSIGNMENT_POLICY,
        score_policy: SafetyScorePolicy = DEFAULT_SAFETY_SCORE_POLICY,
        checklist: Optional[list[ChecklistItem]] = None,
        clock=utcnow,
    ):
        self._store = store
        self._notifier = notifier
        self._whatsapp = whatsapp
        self._organization_id = normalize_id(organization_id) or ""
        self._user_id = normalize_id(user_id) or ""
        self._policy = policy
        self._score_policy = score_policy
        self._checklist = checklist if checklist is not None else DEFAULT_CHECKLIST
        self._clock = clock

    # ------------------------------------------------------------------
    # Loading (organization scoped)
    # ------------------------------------------------------------------

    async def _load(self, collection: str, doc_id: Any) -> dict:
        key = normalize_id(doc_id) or ""
        doc = await self._store.get(collection, key) if key else None
        if doc is None or normalize_id(doc.get("organization_id")) != self._organization_id:
            raise NotFoundError(collection, key)
        return doc

    async def _load_route(self, route_id: Any) -> Route:
        return route_from_doc(await self._load(ROUTES, route_id))

    async def _load_driver(self, driver_id: Any) -> Driver:
        return driver_from_doc(await self._load(DRIVERS, driver_id))

    async def _load_vehicle(self, vehicle_id: Any) -> Vehicle:
        return vehicle_from_doc(await self._load(VEHICLES, vehicle_id))

    @staticmethod
    def _find_stop(route: Route, stop_id: Any) -> Stop:
        stop = route.find_stop(normalize_id(stop_id) or "")
        if stop is None:
            raise NotFoundError("stops", str(stop_id))
        return stop

    @staticmethod
    def _require_in_progress(route: Route) -> None:
        if route.status != ROUTE_IN_PROGRESS:
            raise PreconditionError(f"Route {route.route_id} is {route.status}, not In Progress")

    @staticmethod
    def _require_pending(route: Route, action: str) -> None:
        if route.status != ROUTE_PENDING:
            raise PolicyViolation(
                f"Route {route.route_id} is {route.status}; only Pending routes can be {action}"
            )

    # ------------------------------------------------------------------
    # Best-effort side channels
    # ------------------------------------------------------------------

    async def _best_effort(self, label: str, action: Awaitable) -> bool:
        try:
            await action
            return True
        except Exception:
            logger.warning("%s failed (non-critical)", label, exc_info=True)
            return False

    async def _notify(self, kind: str, payload: Mapping[str, Any]) -> None:
        await self._best_effort(
            f"{kind} notification",
            self._notifier.notify(kind, self._user_id, self._organization_id, payload),
        )

    async def _send_whatsapp(self, driver: Driver, template_id: str, params: list[str]) -> None:
        if not driver.phone or not driver.whatsapp_notifications:
            logger.debug("No WhatsApp for driver %s (no phone or opted out)", driver.driver_id)
            return
        try:
            result = await self._whatsapp.send_whatsapp(driver.phone, template_id, params)
        except Exception:
            logger.warning("WhatsApp %s to driver %s raised", template_id, driver.driver_id, exc_info=True)
            return
        if result.success:
            logger.info("WhatsApp %s sent to driver %s", template_id, driver.driver_id)
        else:
            logger.warning("WhatsApp %s to driver %s failed: %s", template_id, driver.driver_id, result.error)

    # ------------------------------------------------------------------
    # Create / edit / delete (Pending only)
    # ------------------------------------------------------------------

    @staticmethod
    def _check_fields(fields: Mapping[str, Any]) -> None:
        not_editable = sorted(set(fields) - EDITABLE_ROUTE_FIELDS)
        if not_editable:
            raise PreconditionError(f"Field(s) cannot be set directly: {', '.join(not_editable)}")

    @staticmethod
    def _build_stops(raw_stops: Any) -> list[Stop]:
        """New stop list in visiting order; all pending, sequences renumbered 1..n."""
        if not isinstance(raw_stops, (list, tuple)):
            raise PreconditionError("stops must be a list")
        keyed = []
        for raw in raw_stops:
            try:
                stop = stop_from_dict(dict(raw))
            except (TypeError, ValueError):
                raise PreconditionError(f"Invalid stop: {raw!r}")
            if not stop.address.strip():
                raise PreconditionError("Every stop needs an address")
            # sequence 0, negative or unset: no explicit position
            unsequenced = stop.sequence <= 0
            stop = replace(stop, stop_id=stop.stop_id or generate_stop_id(), status=STOP_PENDING)
            keyed.append(((unsequenced, 0 if unsequenced else stop.sequence), stop))
        # stable: unsequenced stops follow the sequenced ones in their given order
        keyed.sort(key=lambda pair: pair[0])
        stops = renumber_stops([stop for _, stop in keyed])
        validate_sequences(stops)
        return stops

    def _route_fields(self, fields: Mapping[str, Any]) -> dict:
        changes: dict[str, Any] = {}
        for key in ("origin", "destination"):
            if key in fields:
                value = str(fields[key] or "").strip()
                if not value:
                    raise PreconditionError(f"{key} cannot be empty")
                changes[key] = value
        for key in ("rate", "distance_km"):
            if key in fields:
                changes[key] = _amount(fields[key], key)
        if "client_id" in fields:
            changes["client_id"] = normalize_id(fields["client_id"])
        for key in ("client_name", "notes"):
            if key in fields:
                changes[key] = str(fields[key] or "")
        if "stops" in fields:
            changes["stops"] = self._build_stops(fields["stops"] or [])
        return changes

    @as_result
    async def create_route(self, fields: Mapping[str, Any]) -> OperationResult:
        """
        Create a Pending, unassigned route.

        Args:
            fields: origin and destination (required), rate, distance_km, client_id,
                client_name, notes, stops [{"address", "lat", "lng", "recipient_name", ...}].
        """
        self._check_fields(fields)
        changes = self._route_fields(fields)
        if not changes.get("origin") or not changes.get("destination"):
            raise PreconditionError("Origin and destination are required")

        route = Route(
            route_id=generate_route_id(changes["origin"], changes["destination"]),
            organization_id=self._organization_id,
            created_by=self._user_id,
            **changes,
        )
        route_id = await self._store.create(ROUTES, route_to_doc(route), doc_id=route.route_id)
        logger.info("Route %s created (%s -> %s, %d stops)", route_id, route.origin, route.destination, len(route.stops))

        await self._notify(
            "new_route",
            {"route_id": route_id, "message": f"Route {route.origin} → {route.destination} created"},
        )
        return OperationResult.success(f"Route {route_id} created", data=await self._load_route(route_id))

    @as_result
    async def edit_route(self, route_id: str, fields: Mapping[str, Any]) -> OperationResult:
        self._check_fields(fields)
        async with self._store.transaction():
            route = await self._load_route(route_id)
            self._require_pending(route, "edited")
            changes = self._route_fields(fields)
            if "stops" in changes:
                changes["stops"] = [stop_to_dict(s) for s in changes["stops"]]
            if changes:
                await self._store.update(ROUTES, route.route_id, changes, expected_version=route.version)
        logger.info("Route %s edited: %s", route.route_id, ", ".join(sorted(changes)) or "no changes")
        return OperationResult.success(f"Route {route.route_id} updated", data=await self._load_route(route.route_id))

    @as_result
    async def delete_route(self, route_id: str) -> OperationResult:
        async with self._store.transaction():
            route = await self._load_route(route_id)
            self._require_pending(route, "deleted")
            await self._store.delete(ROUTES, route.route_id)
        logger.info("Route %s deleted", route.route_id)
        return OperationResult.success(f"Route {route.route_id} deleted")

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def _check_assignable(self, route: Route, driver: Driver, vehicle: Vehicle) -> None:
        if route.status != ROUTE_PENDING:
            raise PreconditionError(f"Route {route.route_id} is {route.status}; only Pending routes can be assigned")
        if route.is_assigned:
            raise PreconditionError(
                f"Route {route.route_id} is already assigned to {route.assigned_driver_name or route.assigned_driver_id}"
            )
        if driver.status not in self._policy.assignable_driver_statuses or driver.current_route_id:
            raise PreconditionError(
                f"Driver {driver.name or driver.driver_id} is {driver.status} and cannot take a route"
            )
        if vehicle.status not in self._policy.assignable_vehicle_statuses or vehicle.current_route_id:
            raise PreconditionError(
                f"Vehicle {vehicle.plate_number or vehicle.vehicle_id} is {vehicle.status} and cannot take a route"
            )

    @as_result
    async def assign(self, route_id: str, driver_id: str, vehicle_id: str) -> OperationResult:
        """
        Pending -> In Progress. Route, driver and vehicle are written together or not at all.

        Preconditions are read and checked inside the transaction, so two operators
        racing for the same driver, vehicle or route cannot both pass them.
        """
        async with self._store.transaction():
            route = await self._load_route(route_id)
            driver = await self._load_driver(driver_id)
            vehicle = await self._load_vehicle(vehicle_id)
            self._check_assignable(route, driver, vehicle)

            await self._store.update(
                ROUTES,
                route.route_id,
                {
                    "assigned_driver_id": driver.driver_id,
                    "assigned_driver_name": driver.name,
                    "assigned_vehicle_id": vehicle.vehicle_id,
                    "assigned_vehicle_plate": vehicle.plate_number,
                    "status": ROUTE_IN_PROGRESS,
                    "progress": self._policy.assigned_progress,
                    "actual_departure_time": self._clock(),
                },
                expected_version=route.version,
            )
            await self._store.update(
                DRIVERS,
                driver.driver_id,
                {
                    "status": self._policy.driver_on_route_status,
                    "current_route_id": route.route_id,
                    "current_route_status": ROUTE_IN_PROGRESS,
                },
                expected_version=driver.version,
            )
            await self._store.update(
                VEHICLES,
                vehicle.vehicle_id,
                {
                    "status": self._policy.vehicle_on_route_status,
                    "current_route_id": route.route_id,
                    "current_route_status": ROUTE_IN_PROGRESS,
                    "assigned_driver_id": driver.driver_id,
                },
                expected_version=vehicle.version,
            )
        logger.info("Route %s assigned to driver %s, vehicle %s", route.route_id, driver.driver_id, vehicle.vehicle_id)

        await self._notify(
            "driver_assigned",
            {
                "route_id": route.route_id,
                "driver_id": driver.driver_id,
                "message": f"{driver.name} assigned to route {route.origin} → {route.destination}",
            },
        )
        await self._send_whatsapp(driver, TEMPLATE_DRIVER_ASSIGNED, [driver.name, route.route_id])
        return OperationResult.success(
            f"{driver.name} assigned to route {route.route_id}",
            data=await self._load_route(route.route_id),
        )

    # ------------------------------------------------------------------
    # Start (safety gate)
    # ------------------------------------------------------------------

    async def _update_safety_score(self, inspection: SafetyInspection) -> None:
        existing_doc = await self._store.get(DRIVER_SAFETY_SCORES, inspection.driver_id)
        existing = safety_score_from_doc(existing_doc) if existing_doc else None
        score = next_safety_score(existing, inspection, self._score_policy)
        if existing is None:
            await self._store.create(DRIVER_SAFETY_SCORES, safety_score_to_doc(score), doc_id=inspection.driver_id)
        else:
            await self._store.update(DRIVER_SAFETY_SCORES, inspection.driver_id, safety_score_to_doc(score))
        await self._store.update(DRIVERS, inspection.driver_id, {"safety_score": score.score})
        logger.info("Driver %s safety score now %.0f", inspection.driver_id, score.score)

    async def _raise_maintenance_alerts(self, inspection: SafetyInspection) -> int:
        alerts = maintenance_alerts_for(inspection)
        for alert in alerts:
            await self._store.create(MAINTENANCE_ALERTS, alert_to_doc(alert))
        logger.info("%d maintenance alert(s) raised for vehicle %s", len(alerts), inspection.vehicle_id)
        return len(alerts)

    @as_result
    async def start_route(
        self,
        route_id: str,
        responses: Mapping[str, ItemResponse],
        time_to_complete: int = 0,
    ) -> OperationResult:
        """
        Submit the pre-trip inspection and start the route.

        The inspection record is required; the driver score, maintenance alerts and
        notifications are not. Critical issues are a warning, not a failure.
        """
        async with self._store.transaction():
            route = await self._load_route(route_id)
            self._require_in_progress(route)
            if not route.is_assigned:
                raise PreconditionError(f"Route {route.route_id} has no driver and vehicle assigned")
            if route.pre_trip_inspection_id:
                raise PreconditionError(f"Route {route.route_id} has already passed its pre-trip inspection")

            inspection = build_inspection(
                route_id=route.route_id,
                driver_id=route.assigned_driver_id,
                vehicle_id=route.assigned_vehicle_id,
                organization_id=self._organization_id,
                responses=responses,
                checklist=self._checklist,
                time_to_complete=time_to_complete,
                now=self._clock(),
                policy=self._score_policy,
            )
            inspection_id = await self._store.create(
                SAFETY_INSPECTIONS, inspection_to_doc(inspection), doc_id=generate_readable_id("INSP")
            )
            await self._store.update(
                ROUTES, route.route_id, {"pre_trip_inspection_id": inspection_id}, expected_version=route.version
            )
        inspection = replace(inspection, inspection_id=inspection_id)
        logger.info(
            "Route %s started; inspection %s scored %d%s",
            route.route_id,
            inspection_id,
            inspection.overall_score,
            " with critical issues" if inspection.has_critical_issues else "",
        )

        warnings = []
        await self._best_effort("safety score update", self._update_safety_score(inspection))
        if inspection.has_critical_issues:
            critical = [i.question for i in inspection.items if i.status in CRITICAL_ITEM_STATUSES]
            warnings.append(
                f"{len(critical)} critical safety issue(s) reported; maintenance has been alerted"
            )
            await self._best_effort("maintenance alerts", self._raise_maintenance_alerts(inspection))
            await self._notify(
                "safety_issue",
                {
                    "route_id": route.route_id,
                    "vehicle_id": route.assigned_vehicle_id,
                    "inspection_id": inspection_id,
                    "message": f"{route.assigned_vehicle_plate}: {', '.join(critical)}",
                },
            )
        await self._notify(
            "route_started",
            {"route_id": route.route_id, "message": f"{route.assigned_driver_name} started route {route.route_id}"},
        )
        return OperationResult.success(
            f"Route {route.route_id} started",
            data=await self._load_route(route.route_id),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Stops, POD, completion
    # ------------------------------------------------------------------

    async def _release_driver(self, route: Route) -> None:
        if not route.assigned_driver_id:
            return
        doc = await self._store.get(DRIVERS, route.assigned_driver_id)
        if doc is None:
            logger.warning("Driver %s of route %s no longer exists", route.assigned_driver_id, route.route_id)
            return
        driver = driver_from_doc(doc)
        if driver.current_route_id not in (None, route.route_id):
            logger.warning("Driver %s is on route %s, not %s; left as is", driver.driver_id, driver.current_route_id, route.route_id)
            return
        await self._store.update(
            DRIVERS,
            driver.driver_id,
            {
                "status": self._policy.driver_released_status,
                "current_route_id": None,
                "current_route_status": None,
            },
            expected_version=driver.version,
        )

    async def _release_vehicle(self, route: Route, odometer: Optional[float] = None) -> None:
        if not route.assigned_vehicle_id:
            return
        doc = await self._store.get(VEHICLES, route.assigned_vehicle_id)
        if doc is None:
            logger.warning("Vehicle %s of route %s no longer exists", route.assigned_vehicle_id, route.route_id)
            return
        vehicle = vehicle_from_doc(doc)
        if vehicle.current_route_id not in (None, route.route_id):
            logger.warning("Vehicle %s is on route %s, not %s; left as is", vehicle.vehicle_id, vehicle.current_route_id, route.route_id)
            return
        fields: dict[str, Any] = {
            "status": self._policy.vehicle_released_status,
            "current_route_id": None,
            "current_route_status": None,
            "assigned_driver_id": None,
        }
        if odometer is not None:
            fields["odometer"] = odometer
        await self._store.update(VEHICLES, vehicle.vehicle_id, fields, expected_version=vehicle.version)

    async def _complete(
        self,
        route: Route,
        stops: Optional[list[Stop]] = None,
        odometer: Optional[float] = None,
    ) -> None:
        """Route -> Completed and release its driver and vehicle. Call inside a transaction."""
        fields: dict[str, Any] = {
            "status": ROUTE_COMPLETED,
            "progress": 100,
            "completion_date": self._clock(),
        }
        if stops is not None:
            fields["stops"] = [stop_to_dict(s) for s in stops]
        await self._store.update(ROUTES, route.route_id, fields, expected_version=route.version)
        await self._release_driver(route)
        await self._release_vehicle(route, odometer)

    async def _write_stops(self, route: Route, stops: list[Stop]) -> bool:
        """Persist a changed stop list; auto-complete when every stop is completed. Returns True if completed."""
        if is_route_complete(stops):
            await self._complete(route, stops=stops)
            return True
        await self._store.update(
            ROUTES,
            route.route_id,
            {"stops": [stop_to_dict(s) for s in stops], "progress": compute_progress(stops)},
            expected_version=route.version,
        )
        return False

    async def _announce_completion(self, route: Route) -> None:
        completed_at = route.completion_date or self._clock()
        await self._notify(
            "route_completed",
            {
                "route_id": route.route_id,
                "message": f"Route {route.origin} → {route.destination} completed",
            },
        )
        if not route.assigned_driver_id:
            return
        doc = await self._store.get(DRIVERS, route.assigned_driver_id)
        if doc is None:
            return
        await self._send_whatsapp(
            driver_from_doc(doc),
            TEMPLATE_ROUTE_COMPLETED,
            [route.route_id, format_money(route.balance), completed_at.strftime("%d %b %Y %H:%M")],
        )

    async def _after_stop_change(self, route_id: str, completed: bool, message: str) -> OperationResult:
        route = await self._load_route(route_id)
        warnings = []
        if completed:
            logger.info("Route %s auto-completed", route.route_id)
            await self._announce_completion(route)
            message = f"{message}; route completed"
        else:
            failed = sum(1 for s in route.stops if s.status == STOP_FAILED)
            if failed and all_stops_terminal(route.stops):
                warnings.append(
                    f"All stops are resolved but {failed} failed; complete the route manually"
                )
        return OperationResult.success(message, data=route, warnings=warnings)

    @as_result
    async def update_stop(
        self,
        route_id: str,
        stop_id: str,
        status: str,
        notes: Optional[str] = None,
    ) -> OperationResult:
        async with self._store.transaction():
            route = await self._load_route(route_id)
            self._require_in_progress(route)
            stop = apply_stop_transition(self._find_stop(route, stop_id), status, notes, now=self._clock())
            completed = await self._write_stops(route, replace_stop(route.stops, stop))
        logger.info("Route %s stop %d -> %s", route.route_id, stop.sequence, status)
        return await self._after_stop_change(route.route_id, completed, f"Stop {stop.sequence} marked {status}")

    @as_result
    async def submit_pod(self, route_id: str, stop_id: str, pod: PodData) -> OperationResult:
        """
        Record proof of delivery and complete the stop.

        Submitting the same POD again is a no-op success, even after the route completed.
        """
        async with self._store.transaction():
            route = await self._load_route(route_id)
            current = self._find_stop(route, stop_id)
            stop = apply_pod(current, pod, now=self._clock())
            if stop == current:
                return OperationResult.success(f"Proof of delivery already recorded for stop {stop.sequence}", data=route)
            self._require_in_progress(route)
            completed = await self._write_stops(route, replace_stop(route.stops, stop))
        logger.info("Route %s stop %d delivered to %s", route.route_id, stop.sequence, stop.recipient_name)
        return await self._after_stop_change(
            route.route_id, completed, f"Proof of delivery recorded for stop {stop.sequence}"
        )

    @as_result
    async def complete_route(self, route_id: str, odometer_reading: Optional[float] = None) -> OperationResult:
        """
        Manual completion. Routes without stops, or whose stops are all completed or failed.

        The vehicle odometer moves to odometer_reading when given, else forward by the route distance.
        """
        async with self._store.transaction():
            route = await self._load_route(route_id)
            self._require_in_progress(route)
            open_stops = [s for s in route.stops if s.status not in TERMINAL_STOP_STATUSES]
            if open_stops:
                raise PreconditionError(
                    f"{len(open_stops)} stop(s) still open; record delivery or mark them failed first"
                )

            odometer = None
            vehicle_doc = await self._store.get(VEHICLES, route.assigned_vehicle_id) if route.assigned_vehicle_id else None
            if vehicle_doc is not None:
                vehicle = vehicle_from_doc(vehicle_doc)
                if odometer_reading is not None:
                    reading = _amount(odometer_reading, "odometer_reading")
                    if reading < vehicle.odometer:
                        raise PreconditionError(
                            f"Odometer reading {reading:g} is below the vehicle's current {vehicle.odometer:g}"
                        )
                    odometer = reading
                elif route.distance_km > 0:
                    odometer = vehicle.odometer + route.distance_km
            await self._complete(route, odometer=odometer)
        logger.info("Route %s completed manually", route.route_id)

        route = await self._load_route(route.route_id)
        await self._announce_completion(route)
        return OperationResult.success(f"Route {route.route_id} completed", data=route)

    # ------------------------------------------------------------------
    # Expenses (any status)
    # ------------------------------------------------------------------

    @as_result
    async def add_expense(self, route_id: str, expense: Mapping[str, Any]) -> OperationResult:
        expense_type = expense.get("expense_type") or expense.get("type") or "Other"
        if expense_type not in EXPENSE_TYPES:
            raise PreconditionError(f"Expense type must be one of {', '.join(EXPENSE_TYPES)}")
        amount = _amount(expense.get("amount"), "amount")
        if amount == 0:
            raise PreconditionError("amount must be greater than zero")

        async with self._store.transaction():
            route = await self._load_route(route_id)
            entry = Expense(
                expense_id=generate_readable_id("EXP"),
                expense_type=expense_type,
                description=str(expense.get("description") or "").strip(),
                amount=amount,
                date=str(expense.get("date") or self._clock().date().isoformat()),
            )
            await self._store.update(
                ROUTES,
                route.route_id,
                {"expenses": [expense_to_dict(e) for e in route.expenses] + [expense_to_dict(entry)]},
                expected_version=route.version,
            )
        route = await self._load_route(route.route_id)
        logger.info("Expense %s (%s %.2f) added to route %s", entry.expense_id, expense_type, amount, route.route_id)
        return OperationResult.success(
            f"Expense added; balance {format_money(route.balance)}", data=route
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @as_result
    async def get_route(self, route_id: str) -> OperationResult:
        return OperationResult.success(data=await self._load_route(route_id))

    def _route_filters(
        self,
        status: Optional[str] = None,
        driver_id: Optional[str] = None,
        vehicle_id: Optional[str] = None,
    ) -> dict:
        filters: dict[str, Any] = {"organization_id": self._organization_id}
        if status:
            filters["status"] = status
        if driver_id:
            filters["assigned_driver_id"] = normalize_id(driver_id)
        if vehicle_id:
            filters["assigned_vehicle_id"] = normalize_id(vehicle_id)
        return filters

    @as_result
    async def list_routes(
        self,
        status: Optional[str] = None,
        driver_id: Optional[str] = None,
        vehicle_id: Optional[str] = None,
    ) -> OperationResult:
        docs = await self._store.query(
            ROUTES, self._route_filters(status, driver_id, vehicle_id), order_by="created_at", descending=True
        )
        return OperationResult.success(data=[route_from_doc(d) for d in docs])

    @as_result
    async def route_inspection(self, route_id: str) -> OperationResult:
        route = await self._load_route(route_id)
        if not route.pre_trip_inspection_id:
            raise NotFoundError(SAFETY_INSPECTIONS, f"for route {route.route_id}")
        doc = await self._load(SAFETY_INSPECTIONS, route.pre_trip_inspection_id)
        return OperationResult.success(data=inspection_from_doc(doc))

    async def subscribe_routes(self, status: Optional[str] = None) -> AsyncIterator[list[Route]]:
        """Live route list: the current routes first, then again after every change."""
        async for docs in self._store.subscribe(
            ROUTES, self._route_filters(status), order_by="created_at", descending=True
        ):
            yield [route_from_doc(d) for d in docs]
