"""
Supabase-backed Resource Store.

One table per collection:
    id text primary key, organization_id text, version int,
    created_at timestamptz, updated_at timestamptz, data jsonb

The supabase client is synchronous; calls run in a worker thread. PostgREST
has no multi-statement transactions, so transaction() keeps a compensation
log: on failure, every write made inside the block is undone in reverse order.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any, AsyncIterator, Mapping, Optional

from supabase import Client, create_client

from transport_backend.domain.errors import (
    ConcurrencyError,
    NotFoundError,
    PartialWriteError,
    WorkflowError,
)
from transport_backend.infrastructure.ids import generate_readable_id, normalize_id
from transport_backend.infrastructure.store import RESERVED_FIELDS, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

_TS_KEY = "$ts"
_COLUMNS = ("created_at", "updated_at", "id", "organization_id", "version")


def _encode(value: Any) -> Any:
    """JSON-safe; timestamps tagged so they come back as datetimes."""
    if isinstance(value, datetime):
        return {_TS_KEY: value.isoformat()}
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {_TS_KEY}:
            return parse_timestamp(value[_TS_KEY])
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


def _row_to_doc(row: dict) -> dict:
    doc = _decode(row.get("data") or {})
    doc.update(
        id=row["id"],
        version=int(row.get("version") or 1),
        created_at=parse_timestamp(row.get("created_at")),
        updated_at=parse_timestamp(row.get("updated_at")),
    )
    if row.get("organization_id") is not None:
        doc.setdefault("organization_id", row["organization_id"])
    return doc


def _column(field: str) -> str:
    return field if field in _COLUMNS else f"data->>{field}"


class SupabaseResourceStore:
    def __init__(self, client: Client, poll_seconds: float = 2.0):
        self._client = client
        self._poll_seconds = poll_seconds
        self._lock = asyncio.Lock()
        self._undo_log: ContextVar[Optional[list]] = ContextVar(f"supabase_undo_{id(self)}", default=None)

    @classmethod
    def from_credentials(cls, url: str, service_key: str, **kwargs) -> "SupabaseResourceStore":
        return cls(create_client(url, service_key), **kwargs)

    async def _run(self, builder):
        response = await asyncio.to_thread(builder.execute)
        return response.data or []

    def _record(self, collection: str, doc_id: str, previous: Optional[dict]) -> None:
        log = self._undo_log.get()
        if log is not None:
            log.append((collection, doc_id, previous))

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create(self, collection: str, doc: Mapping[str, Any], doc_id: Optional[str] = None) -> str:
        doc_id = normalize_id(doc_id) or generate_readable_id(collection[:3].upper())
        now = utcnow()
        data = {k: v for k, v in doc.items() if k not in RESERVED_FIELDS}
        row = {
            "id": doc_id,
            "organization_id": normalize_id(data.get("organization_id")),
            "version": 1,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
            "data": _encode(data),
        }
        await self._run(self._client.table(collection).insert(row))
        self._record(collection, doc_id, None)
        return doc_id

    async def _get_row(self, collection: str, doc_id: str) -> Optional[dict]:
        rows = await self._run(self._client.table(collection).select("*").eq("id", doc_id).limit(1))
        return rows[0] if rows else None

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        key = normalize_id(doc_id)
        if key is None:
            return None
        row = await self._get_row(collection, key)
        return _row_to_doc(row) if row else None

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        key = normalize_id(doc_id) or ""
        row = await self._get_row(collection, key)
        if row is None:
            raise NotFoundError(collection, key)
        version = int(row.get("version") or 1)
        if expected_version is not None and version != expected_version:
            raise ConcurrencyError(f"{collection} {key!r} was modified by someone else; reload and try again")

        data = _decode(row.get("data") or {})
        data.update({k: v for k, v in fields.items() if k not in RESERVED_FIELDS})
        patch = {
            "data": _encode(data),
            "version": version + 1,
            "updated_at": utcnow().isoformat(),
            "organization_id": normalize_id(data.get("organization_id")),
        }
        # compare-and-set on version
        updated = await self._run(
            self._client.table(collection).update(patch).eq("id", key).eq("version", version)
        )
        if not updated:
            raise ConcurrencyError(f"{collection} {key!r} was modified by someone else; reload and try again")
        self._record(collection, key, row)

    async def delete(self, collection: str, doc_id: str) -> None:
        key = normalize_id(doc_id) or ""
        row = await self._get_row(collection, key)
        if row is None:
            return
        await self._run(self._client.table(collection).delete().eq("id", key))
        self._record(collection, key, row)

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        builder = self._client.table(collection).select("*")
        for field, value in (filters or {}).items():
            if value is None:
                builder = builder.is_(_column(field), "null")
            else:
                builder = builder.eq(_column(field), str(value))
        if order_by:
            builder = builder.order(_column(order_by), desc=descending)
        if limit is not None:
            builder = builder.limit(limit)
        return [_row_to_doc(r) for r in await self._run(builder)]

    # ------------------------------------------------------------------
    # Transactions (compensating)
    # ------------------------------------------------------------------

    async def _undo(self, collection: str, doc_id: str, previous: Optional[dict]) -> None:
        table = self._client.table(collection)
        if previous is None:
            await self._run(table.delete().eq("id", doc_id))
        else:
            await self._run(table.upsert(previous))

    @asynccontextmanager
    async def transaction(self):
        if self._undo_log.get() is not None:
            yield self
            return
        async with self._lock:
            log: list = []
            token = self._undo_log.set(log)
            try:
                yield self
            except Exception as exc:
                if not log:
                    raise
                logger.warning("Compensating %d write(s) after failure: %s", len(log), exc)
                for collection, doc_id, previous in reversed(log):
                    try:
                        await self._undo(collection, doc_id, previous)
                    except Exception:
                        logger.exception("Compensation failed for %s %s", collection, doc_id)
                if isinstance(exc, (WorkflowError, NotFoundError)):
                    raise
                raise PartialWriteError(
                    "The update could not be completed and was rolled back; please try again"
                ) from exc
            finally:
                self._undo_log.reset(token)

    # ------------------------------------------------------------------
    # Real-time (polling)
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> AsyncIterator[list[dict]]:
        last_seen = None
        while True:
            docs = await self.query(collection, filters, order_by, descending)
            fingerprint = [(d["id"], d["version"]) for d in docs]
            if fingerprint != last_seen:
                last_seen = fingerprint
                yield docs
            await asyncio.sleep(self._poll_seconds)
