"""
In-app notifications. Written into the notifications collection for the UI's real-time feed.
"""

import logging
from typing import Any, Mapping, Protocol

from transport_backend.infrastructure.store import NOTIFICATIONS, ResourceStore

logger = logging.getLogger(__name__)

# kind -> (type, title, icon)
NOTIFICATION_KINDS = {
    "driver_assigned": ("route", "Driver Assigned", "👤"),
    "new_route": ("route", "New Route Created", "🗺️"),
    "route_started": ("route", "Route Started", "🚚"),
    "route_completed": ("route", "Route Completed", "✅"),
    "safety_issue": ("maintenance", "Safety Issues Reported", "⚠️"),
    "driver_onboarded": ("driver", "Driver Added", "🧑‍✈️"),
}


class Notifier(Protocol):
    async def notify(self, kind: str, user_id: str, organization_id: str, payload: Mapping[str, Any]) -> None:
        ...


class StoreNotifier:
    def __init__(self, store: ResourceStore):
        self._store = store

    async def notify(self, kind: str, user_id: str, organization_id: str, payload: Mapping[str, Any]) -> None:
        notif_type, title, icon = NOTIFICATION_KINDS.get(kind, ("system", kind.replace("_", " ").title(), "🔔"))
        doc = {
            "user_id": user_id,
            "organization_id": organization_id,
            "kind": kind,
            "type": notif_type,
            "title": payload.get("title", title),
            "message": payload.get("message", ""),
            "icon": icon,
            "read": False,
            "payload": dict(payload),
        }
        notification_id = await self._store.create(NOTIFICATIONS, doc)
        logger.debug("Notification %s (%s) for user %s", notification_id, kind, user_id)
