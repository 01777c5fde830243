"""In-process implementation of the document store.

Snapshots are delivered synchronously on the writing thread, after the data
lock is released. A separate re-entrant delivery lock keeps deliveries for
concurrent writes in commit order, so every watcher sees snapshots in the
order the writes happened.
"""

from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock, RLock
from typing import Any, Callable, Mapping
from uuid import uuid4

from crosspoint.backends.document_store import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    DocumentCallback,
    DocumentSnapshot,
    DocumentStore,
    ErrorCallback,
    QueryCallback,
    StoreError,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass(slots=True)
class _StoredDocument:
    data: dict[str, Any]
    sequence: int


@dataclass(slots=True)
class _QueryWatch:
    collection: str
    order_by: str
    descending: bool
    limit: int
    on_snapshot: QueryCallback
    on_error: ErrorCallback


@dataclass(slots=True)
class _DocumentWatch:
    collection: str
    doc_id: str
    on_snapshot: DocumentCallback
    on_error: ErrorCallback


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe dictionary-backed store with live snapshot delivery."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._lock = Lock()
        self._delivery_lock = RLock()
        self._collections: dict[str, dict[str, _StoredDocument]] = {}
        self._sequence = itertools.count(1)
        self._watch_ids = itertools.count(1)
        self._query_watches: dict[int, _QueryWatch] = {}
        self._document_watches: dict[int, _DocumentWatch] = {}

    # --- Writes ---

    def add_document(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = uuid4().hex[:20]
        with self._delivery_lock:
            with self._lock:
                resolved = self._resolve(data, existing={})
                self._collections.setdefault(collection, {})[doc_id] = _StoredDocument(
                    data=resolved, sequence=next(self._sequence)
                )
                deliveries = self._collect_deliveries(collection, doc_id)
            self._deliver(deliveries)
        return doc_id

    def merge_document(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        if not doc_id:
            raise StoreError("Document id must not be empty.")
        with self._delivery_lock:
            with self._lock:
                documents = self._collections.setdefault(collection, {})
                stored = documents.get(doc_id)
                existing = stored.data if stored else {}
                merged = dict(existing)
                merged.update(self._resolve(data, existing=existing))
                documents[doc_id] = _StoredDocument(
                    data=merged,
                    sequence=stored.sequence if stored else next(self._sequence),
                )
                deliveries = self._collect_deliveries(collection, doc_id)
            self._deliver(deliveries)

    # --- Reads ---

    def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        with self._lock:
            return self._document_snapshot(collection, doc_id)

    def watch_query(
        self,
        collection: str,
        order_by: str,
        descending: bool,
        limit: int,
        on_snapshot: QueryCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        if limit <= 0:
            raise StoreError("Query limit must be positive.")
        watch = _QueryWatch(collection, order_by, descending, limit, on_snapshot, on_error)
        with self._delivery_lock:
            with self._lock:
                watch_id = next(self._watch_ids)
                self._query_watches[watch_id] = watch
                initial = self._query_snapshot(watch)
            self._deliver([(on_snapshot, initial)])
        return self._make_unsubscribe(self._query_watches, watch_id)

    def watch_document(
        self,
        collection: str,
        doc_id: str,
        on_snapshot: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        watch = _DocumentWatch(collection, doc_id, on_snapshot, on_error)
        with self._delivery_lock:
            with self._lock:
                watch_id = next(self._watch_ids)
                self._document_watches[watch_id] = watch
                initial = self._document_snapshot(collection, doc_id)
            self._deliver([(on_snapshot, initial)])
        return self._make_unsubscribe(self._document_watches, watch_id)

    def fail_watchers(self, collection: str, error: Exception) -> int:
        """Terminate every watcher on ``collection`` with ``error``; returns how many."""
        with self._delivery_lock:
            with self._lock:
                failed: list[ErrorCallback] = []
                for watches in (self._query_watches, self._document_watches):
                    for watch_id, watch in list(watches.items()):
                        if watch.collection == collection:
                            failed.append(watch.on_error)
                            del watches[watch_id]
            for on_error in failed:
                on_error(error)
        return len(failed)

    def watcher_count(self) -> int:
        with self._lock:
            return len(self._query_watches) + len(self._document_watches)

    # --- Internals ---

    def _make_unsubscribe(self, registry: dict[int, Any], watch_id: int) -> Unsubscribe:
        def unsubscribe() -> None:
            with self._lock:
                registry.pop(watch_id, None)

        return unsubscribe

    def _resolve(self, data: Mapping[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
        now = self._clock()
        resolved: dict[str, Any] = {}
        for key, value in data.items():
            if value is SERVER_TIMESTAMP:
                resolved[key] = now
            elif isinstance(value, ArrayUnion):
                current = list(existing.get(key) or [])
                for item in value.values:
                    if item not in current:
                        current.append(item)
                resolved[key] = current
            else:
                resolved[key] = copy.deepcopy(value)
        return resolved

    def _document_snapshot(self, collection: str, doc_id: str) -> DocumentSnapshot:
        stored = self._collections.get(collection, {}).get(doc_id)
        data = copy.deepcopy(stored.data) if stored else None
        return DocumentSnapshot(id=doc_id, data=data)

    def _query_snapshot(self, watch: _QueryWatch) -> list[DocumentSnapshot]:
        documents = self._collections.get(watch.collection, {})

        def sort_key(item: tuple[str, _StoredDocument]) -> tuple[bool, Any, int]:
            value = item[1].data.get(watch.order_by)
            return (value is not None, value if value is not None else _EPOCH, item[1].sequence)

        ordered = sorted(documents.items(), key=sort_key, reverse=watch.descending)
        return [
            DocumentSnapshot(id=doc_id, data=copy.deepcopy(stored.data))
            for doc_id, stored in ordered[: watch.limit]
        ]

    def _collect_deliveries(self, collection: str, doc_id: str) -> list[tuple[Callable, Any]]:
        deliveries: list[tuple[Callable, Any]] = []
        for watch in self._query_watches.values():
            if watch.collection == collection:
                deliveries.append((watch.on_snapshot, self._query_snapshot(watch)))
        for watch in self._document_watches.values():
            if watch.collection == collection and watch.doc_id == doc_id:
                deliveries.append((watch.on_snapshot, self._document_snapshot(collection, doc_id)))
        return deliveries

    def _deliver(self, deliveries: list[tuple[Callable, Any]]) -> None:
        for callback, snapshot in deliveries:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot listener raised; continuing with other listeners")
