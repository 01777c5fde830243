"""Abstract contract for the real-time document store.

The store owns durable state: the question collection and one verification
document per user. Implementations must deliver an initial snapshot when a
watcher attaches and a fresh full snapshot after every change that affects
it. Snapshots replace prior ones; there is no incremental patching.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping


class StoreError(Exception):
    """Raised when the store cannot complete a read, write or watch."""


class _ServerTimestamp:
    """Sentinel replaced by the store's clock at write time."""

    _instance: "_ServerTimestamp | None" = None

    def __new__(cls) -> "_ServerTimestamp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class ArrayUnion:
    """Write transform: add values to a stored list, skipping ones already present."""

    values: tuple[Any, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True, slots=True)
class DocumentSnapshot:
    """A single document as read from the store."""

    id: str
    data: Mapping[str, Any] | None = field(default=None)

    @property
    def exists(self) -> bool:
        return self.data is not None


Unsubscribe = Callable[[], None]
QueryCallback = Callable[[list[DocumentSnapshot]], None]
DocumentCallback = Callable[[DocumentSnapshot], None]
ErrorCallback = Callable[[Exception], None]


def collection_path(namespace: str, name: str) -> str:
    """Return the namespaced path of a shared collection."""
    if not namespace or "/" in namespace:
        raise ValueError(f"Invalid collection namespace: {namespace!r}")
    return f"artifacts/{namespace}/public/data/{name}"


class DocumentStore(ABC):
    """Operations the core relies on; everything else is the store's business."""

    @abstractmethod
    def add_document(self, collection: str, data: Mapping[str, Any]) -> str:
        """Create a document with a store-assigned id and return the id."""

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        """Read a single document."""

    @abstractmethod
    def merge_document(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Merge fields into a document, creating it if absent.

        Fields not named in ``data`` are left untouched. ``ArrayUnion`` values
        are applied against the stored list.
        """

    @abstractmethod
    def watch_query(
        self,
        collection: str,
        order_by: str,
        descending: bool,
        limit: int,
        on_snapshot: QueryCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """Watch the first ``limit`` documents ordered by ``order_by``."""

    @abstractmethod
    def watch_document(
        self,
        collection: str,
        doc_id: str,
        on_snapshot: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """Watch a single document; absent documents deliver ``exists == False``."""
