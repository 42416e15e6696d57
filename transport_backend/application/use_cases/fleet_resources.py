"""
Driver and vehicle registration and manual status changes.

While a driver or vehicle carries a route, its status belongs to the route
lifecycle; it cannot be changed here.
"""

import logging
import math
from typing import Any, Mapping

from transport_backend.application.results import OperationResult, as_result
from transport_backend.domain.errors import NotFoundError, PreconditionError
from transport_backend.domain.models import (
    DRIVER_IDLE,
    DRIVER_ON_ROUTE,
    DRIVER_STATUSES,
    VEHICLE_ON_THE_MOVE,
    VEHICLE_PARKED,
    VEHICLE_STATUSES,
)
from transport_backend.infrastructure.documents import driver_from_doc, vehicle_from_doc
from transport_backend.infrastructure.ids import generate_driver_id, generate_vehicle_id, normalize_id
from transport_backend.infrastructure.notifier import Notifier
from transport_backend.infrastructure.store import DRIVERS, VEHICLES, ResourceStore

logger = logging.getLogger(__name__)

# Only the route lifecycle sets these
ROUTE_OWNED_DRIVER_STATUSES = frozenset({DRIVER_ON_ROUTE})
ROUTE_OWNED_VEHICLE_STATUSES = frozenset({VEHICLE_ON_THE_MOVE})


def _required(fields: Mapping[str, Any], key: str) -> str:
    value = str(fields.get(key) or "").strip()
    if not value:
        raise PreconditionError(f"{key} is required")
    return value


def _check_status(status: str, allowed: tuple, route_owned: frozenset, kind: str) -> None:
    if status not in allowed:
        raise PreconditionError(f"Unknown {kind} status {status!r}")
    if status in route_owned:
        raise PreconditionError(f"{status!r} is set by route assignment, not directly")


class FleetResourceService:
    def __init__(self, store: ResourceStore, notifier: Notifier, organization_id: str, user_id: str):
        self._store = store
        self._notifier = notifier
        self._organization_id = normalize_id(organization_id) or ""
        self._user_id = normalize_id(user_id) or ""

    async def _load(self, collection: str, doc_id: Any) -> dict:
        key = normalize_id(doc_id) or ""
        doc = await self._store.get(collection, key) if key else None
        if doc is None or normalize_id(doc.get("organization_id")) != self._organization_id:
            raise NotFoundError(collection, key)
        return doc

    @as_result
    async def register_driver(self, fields: Mapping[str, Any]) -> OperationResult:
        status = fields.get("status") or DRIVER_IDLE
        _check_status(status, DRIVER_STATUSES, ROUTE_OWNED_DRIVER_STATUSES, "driver")
        doc = {
            "organization_id": self._organization_id,
            "name": _required(fields, "name"),
            "phone": str(fields.get("phone") or "").strip(),
            "email": str(fields.get("email") or "").strip(),
            "license_number": str(fields.get("license_number") or "").strip(),
            "status": status,
            "current_route_id": None,
            "current_route_status": None,
            "portal_access": {"whatsapp_notifications": bool(fields.get("whatsapp_notifications", True))},
            "created_by": self._user_id,
        }
        driver_id = await self._store.create(DRIVERS, doc, doc_id=generate_driver_id())
        logger.info("Driver %s registered (%s)", driver_id, doc["name"])

        try:
            await self._notifier.notify(
                "driver_onboarded",
                self._user_id,
                self._organization_id,
                {"driver_id": driver_id, "message": f"{doc['name']} was added to your fleet"},
            )
        except Exception:
            logger.warning("driver_onboarded notification failed (non-critical)", exc_info=True)

        return OperationResult.success(
            f"Driver {doc['name']} registered", data=driver_from_doc(await self._load(DRIVERS, driver_id))
        )

    @as_result
    async def register_vehicle(self, fields: Mapping[str, Any]) -> OperationResult:
        status = fields.get("status") or VEHICLE_PARKED
        _check_status(status, VEHICLE_STATUSES, ROUTE_OWNED_VEHICLE_STATUSES, "vehicle")
        try:
            odometer = float(fields.get("odometer") or 0)
        except (TypeError, ValueError):
            raise PreconditionError("odometer must be a number")
        if not math.isfinite(odometer):
            raise PreconditionError("odometer must be a finite number")
        doc = {
            "organization_id": self._organization_id,
            "plate_number": _required(fields, "plate_number").upper(),
            "make": str(fields.get("make") or "").strip(),
            "model": str(fields.get("model") or "").strip(),
            "status": status,
            "odometer": max(0.0, odometer),
            "current_route_id": None,
            "current_route_status": None,
            "assigned_driver_id": None,
            "created_by": self._user_id,
        }
        vehicle_id = await self._store.create(VEHICLES, doc, doc_id=generate_vehicle_id())
        logger.info("Vehicle %s registered (%s)", vehicle_id, doc["plate_number"])
        return OperationResult.success(
            f"Vehicle {doc['plate_number']} registered",
            data=vehicle_from_doc(await self._load(VEHICLES, vehicle_id)),
        )

    @as_result
    async def set_driver_status(self, driver_id: str, status: str) -> OperationResult:
        _check_status(status, DRIVER_STATUSES, ROUTE_OWNED_DRIVER_STATUSES, "driver")
        async with self._store.transaction():
            driver = driver_from_doc(await self._load(DRIVERS, driver_id))
            if driver.current_route_id:
                raise PreconditionError(
                    f"Driver {driver.name} is on route {driver.current_route_id}; status follows the route"
                )
            await self._store.update(DRIVERS, driver.driver_id, {"status": status}, expected_version=driver.version)
        logger.info("Driver %s status %s -> %s", driver.driver_id, driver.status, status)
        return OperationResult.success(
            f"Driver {driver.name} is now {status}",
            data=driver_from_doc(await self._load(DRIVERS, driver.driver_id)),
        )

    @as_result
    async def set_vehicle_status(self, vehicle_id: str, status: str) -> OperationResult:
        _check_status(status, VEHICLE_STATUSES, ROUTE_OWNED_VEHICLE_STATUSES, "vehicle")
        async with self._store.transaction():
            vehicle = vehicle_from_doc(await self._load(VEHICLES, vehicle_id))
            if vehicle.current_route_id:
                raise PreconditionError(
                    f"Vehicle {vehicle.plate_number} is on route {vehicle.current_route_id}; status follows the route"
                )
            await self._store.update(VEHICLES, vehicle.vehicle_id, {"status": status}, expected_version=vehicle.version)
        logger.info("Vehicle %s status %s -> %s", vehicle.vehicle_id, vehicle.status, status)
        return OperationResult.success(
            f"Vehicle {vehicle.plate_number} is now {status}",
            data=vehicle_from_doc(await self._load(VEHICLES, vehicle.vehicle_id)),
        )
