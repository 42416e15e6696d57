"""
In-memory Resource Store.

Backs demo mode and tests with the same interface as the real store, so the
workflow never branches on which backend it runs against. Volatile: contents
reset with the process.
"""

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Mapping, Optional

from transport_backend.domain.errors import ConcurrencyError, NotFoundError
from transport_backend.infrastructure.ids import generate_readable_id, normalize_id
from transport_backend.infrastructure.store import (
    RESERVED_FIELDS,
    matches,
    sort_docs,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class _Subscription:
    collection: str
    filters: dict
    order_by: Optional[str]
    descending: bool
    queue: asyncio.Queue


class InMemoryResourceStore:
    def __init__(self, clock: Callable = utcnow):
        self._clock = clock
        self._collections: dict[str, dict[str, dict]] = {}
        self._subscriptions: list[_Subscription] = []
        self._lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(f"memory_store_txn_{id(self)}", default=False)
        self._dirty: set[str] = set()

    # ------------------------------------------------------------------
    # Write plumbing
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _write(self, collection: str):
        """Single writes take the lock unless already inside this task's transaction."""
        if self._in_transaction.get():
            yield
            self._dirty.add(collection)
            return
        async with self._lock:
            yield
        self._publish({collection})

    @asynccontextmanager
    async def transaction(self):
        """
        Serializes against other transactions and single writes.
        Any exception restores the snapshot taken on entry; subscribers only see committed state.
        """
        if self._in_transaction.get():
            yield self
            return
        async with self._lock:
            snapshot = copy.deepcopy(self._collections)
            self._dirty = set()
            token = self._in_transaction.set(True)
            try:
                yield self
            except BaseException:
                self._collections = snapshot
                self._dirty = set()
                logger.info("Transaction rolled back")
                raise
            finally:
                self._in_transaction.reset(token)
            dirty, self._dirty = self._dirty, set()
        self._publish(dirty)

    def _table(self, collection: str) -> dict[str, dict]:
        return self._collections.setdefault(collection, {})

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create(self, collection: str, doc: Mapping[str, Any], doc_id: Optional[str] = None) -> str:
        doc_id = normalize_id(doc_id) or generate_readable_id(collection[:3].upper())
        async with self._write(collection):
            table = self._table(collection)
            if doc_id in table:
                raise ValueError(f"{collection} {doc_id!r} already exists")
            now = self._clock()
            stored = {k: copy.deepcopy(v) for k, v in doc.items() if k not in RESERVED_FIELDS}
            stored.update(id=doc_id, created_at=now, updated_at=now, version=1)
            table[doc_id] = stored
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        doc = self._table(collection).get(normalize_id(doc_id) or "")
        return copy.deepcopy(doc) if doc is not None else None

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        key = normalize_id(doc_id) or ""
        async with self._write(collection):
            current = self._table(collection).get(key)
            if current is None:
                raise NotFoundError(collection, key)
            if expected_version is not None and current["version"] != expected_version:
                raise ConcurrencyError(
                    f"{collection} {key!r} was modified by someone else; reload and try again"
                )
            for k, v in fields.items():
                if k not in RESERVED_FIELDS:
                    current[k] = copy.deepcopy(v)
            current["updated_at"] = self._clock()
            current["version"] += 1

    async def delete(self, collection: str, doc_id: str) -> None:
        key = normalize_id(doc_id) or ""
        async with self._write(collection):
            self._table(collection).pop(key, None)

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        docs = self._select(collection, filters, order_by, descending)
        return docs[:limit] if limit is not None else docs

    def _select(self, collection, filters, order_by, descending) -> list[dict]:
        docs = [copy.deepcopy(d) for d in self._table(collection).values() if matches(d, filters)]
        return sort_docs(docs, order_by, descending)

    # ------------------------------------------------------------------
    # Real-time
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> AsyncIterator[list[dict]]:
        sub = _Subscription(collection, dict(filters or {}), order_by, descending, asyncio.Queue())
        self._subscriptions.append(sub)
        try:
            yield self._select(collection, sub.filters, order_by, descending)
            while True:
                yield await sub.queue.get()
        finally:
            self._subscriptions.remove(sub)

    def _publish(self, collections: set[str]) -> None:
        for sub in list(self._subscriptions):
            if sub.collection in collections:
                sub.queue.put_nowait(self._select(sub.collection, sub.filters, sub.order_by, sub.descending))

    # ------------------------------------------------------------------
    # Seeding (demo data, tests)
    # ------------------------------------------------------------------

    def seed(self, collection: str, docs: list[dict]) -> None:
        """Load documents synchronously; each needs an 'id'."""
        now = self._clock()
        table = self._table(collection)
        for doc in docs:
            doc_id = normalize_id(doc.get("id"))
            if doc_id is None:
                raise ValueError("seed documents need an id")
            stored = copy.deepcopy(dict(doc))
            stored["id"] = doc_id
            stored.setdefault("created_at", now)
            stored.setdefault("updated_at", now)
            stored.setdefault("version", 1)
            table[doc_id] = stored
