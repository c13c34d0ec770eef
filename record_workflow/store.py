"""Document store interface for record workflow."""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import structlog

from record_workflow.models import FieldFilter, OrderBy, Record

logger = structlog.get_logger()

SnapshotCallback = Callable[[list[Record]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription:
    """Cancellation handle for a standing live query."""

    def __init__(self, collection: str, cancel: Callable[[], None] | None = None) -> None:
        self.collection = collection
        self._cancel = cancel
        self._lock = threading.Lock()
        self._active = True

    @property
    def active(self) -> bool:
        """Whether the subscription still delivers snapshots."""
        return self._active

    def unsubscribe(self) -> None:
        """Stop receiving snapshots and release the live query. Safe to call twice."""
        with self._lock:
            if not self._active:
                return
            self._active = False
        logger.debug("Unsubscribing", collection=self.collection)
        if self._cancel is not None:
            self._cancel()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()


class DocumentStore(ABC):
    """Abstract base class for document stores backing the workflow."""

    @abstractmethod
    def subscribe_collection(
        self,
        name: str,
        filters: list[FieldFilter] | None,
        order_by: OrderBy | None,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Open a live query.

        ``on_snapshot`` receives the full matching list, first on subscription and
        again after every remote change.
        """
        pass

    @abstractmethod
    def add_document(self, name: str, payload: dict[str, Any]) -> str:
        """Create a document and return its store-assigned id."""
        pass

    @abstractmethod
    def get_document(self, name: str, doc_id: str) -> Record:
        """Read a single document."""
        pass

    @abstractmethod
    def update_document(self, name: str, doc_id: str, changes: dict[str, Any]) -> None:
        """Apply a partial update to a document."""
        pass

    @abstractmethod
    def delete_document(self, name: str, doc_id: str) -> None:
        """Delete a document."""
        pass

    @abstractmethod
    def query(
        self,
        name: str,
        filters: list[FieldFilter] | None = None,
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        """Run a one-shot query."""
        pass
