"""
Resource Store interface. Document database keyed by organization; schemaless dict documents.

Every stored document carries:
    id          str, normalized (see ids.normalize_id)
    created_at  timezone-aware datetime, set on create
    updated_at  timezone-aware datetime, set on every write
    version     int, 1 on create, +1 per update
"""

from datetime import date, datetime, timezone
from typing import Any, AsyncContextManager, AsyncIterator, Mapping, Optional, Protocol

ROUTES = "routes"
DRIVERS = "drivers"
VEHICLES = "vehicles"
CLIENTS = "clients"
INVOICES = "invoices"
PAYROLL_RUNS = "payroll_runs"
NOTIFICATIONS = "notifications"
EXPENSES = "expenses"
SAFETY_INSPECTIONS = "safety_inspections"
DRIVER_SAFETY_SCORES = "driver_safety_scores"
MAINTENANCE_ALERTS = "maintenance_alerts"

COLLECTIONS = (
    ROUTES,
    DRIVERS,
    VEHICLES,
    CLIENTS,
    INVOICES,
    PAYROLL_RUNS,
    NOTIFICATIONS,
    EXPENSES,
    SAFETY_INSPECTIONS,
    DRIVER_SAFETY_SCORES,
    MAINTENANCE_ALERTS,
)

RESERVED_FIELDS = frozenset({"id", "created_at", "updated_at", "version"})


class ResourceStore(Protocol):
    async def create(self, collection: str, doc: Mapping[str, Any], doc_id: Optional[str] = None) -> str:
        ...

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        """Partial update. NotFoundError if absent, ConcurrencyError on version mismatch."""
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        ...

    def subscribe(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> AsyncIterator[list[dict]]:
        """Full result set first, then again after every change to the collection."""
        ...

    def transaction(self) -> AsyncContextManager[Any]:
        """Writes inside appear atomic to readers."""
        ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def matches(doc: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    """Equality filters; ids compare as strings so legacy numeric ids still match."""
    if not filters:
        return True
    for key, expected in filters.items():
        actual = doc.get(key)
        if actual == expected:
            continue
        if actual is None or expected is None or str(actual) != str(expected):
            return False
    return True


def sort_docs(docs: list[dict], order_by: Optional[str], descending: bool = False) -> list[dict]:
    if not order_by:
        return docs
    # documents without the field sort last
    present = [d for d in docs if d.get(order_by) is not None]
    missing = [d for d in docs if d.get(order_by) is None]
    present.sort(key=lambda d: d[order_by], reverse=descending)
    return present + missing


def to_iso(value: Any) -> Any:
    """Timestamps -> ISO-8601 strings, recursively. Used at the API boundary."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_iso(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_iso(v) for v in value]
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """datetime or ISO string (legacy documents) -> aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None
