"""In-process document store with synchronous live queries."""

import copy
import threading
import uuid
from pathlib import Path
from typing import Any

import structlog
import yaml

from record_workflow.errors import BackendUnavailable, RecordNotFound
from record_workflow.filtering import matches_filters, sort_records
from record_workflow.models import FieldFilter, OrderBy, Record
from record_workflow.store import DocumentStore, ErrorCallback, SnapshotCallback, Subscription

logger = structlog.get_logger()


class _Listener:
    def __init__(
        self,
        name: str,
        filters: list[FieldFilter] | None,
        order_by: OrderBy | None,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None,
    ) -> None:
        self.name = name
        self.filters = list(filters or [])
        self.order_by = order_by
        self.on_snapshot = on_snapshot
        self.on_error = on_error


class MemoryStore(DocumentStore):
    """Document store kept in memory, optionally persisted to a YAML file.

    Every write re-runs each live query on the written collection and delivers the
    full result to its listener on the writer's thread, so snapshots arrive before
    the write call returns.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        """Initialize memory store.

        Args:
            path: Optional YAML file to load documents from and save them to after each write
        """
        self.path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._listeners: list[_Listener] = []
        if self.path is not None and self.path.exists():
            self._collections = self._load()
        logger.debug("Memory store initialized", path=str(self.path) if self.path else None)

    def _load(self) -> dict[str, dict[str, dict[str, Any]]]:
        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load store file", path=str(self.path), error=str(e))
            raise BackendUnavailable(f"Failed to load records from {self.path}: {e}") from e
        logger.debug("Store file loaded", collections=list(data.keys()))
        return data

    def _save(self, collections: dict[str, dict[str, dict[str, Any]]]) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                yaml.safe_dump(collections, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to save store file", path=str(self.path), error=str(e))
            raise BackendUnavailable(f"Failed to save records to {self.path}: {e}") from e

    def _snapshot(self, name: str, filters: list[FieldFilter] | None, order_by: OrderBy | None) -> list[Record]:
        documents = self._collections.get(name, {})
        records = [Record.from_document(doc_id, copy.deepcopy(doc)) for doc_id, doc in documents.items()]
        return sort_records([r for r in records if matches_filters(r, filters)], order_by)

    def _notify(self, name: str) -> None:
        with self._lock:
            pending = [
                (listener, self._snapshot(name, listener.filters, listener.order_by))
                for listener in self._listeners
                if listener.name == name
            ]
        for listener, records in pending:
            self._deliver(listener, records)

    def _deliver(self, listener: _Listener, records: list[Record]) -> None:
        try:
            listener.on_snapshot(records)
        except Exception as e:
            logger.error("Snapshot listener failed", collection=listener.name, error=str(e))
            if listener.on_error is not None:
                listener.on_error(e)

    def _commit(self, name: str, documents: dict[str, dict[str, Any]]) -> None:
        """Replace one collection; memory changes only once the save succeeded."""
        collections = {**self._collections, name: documents}
        self._save(collections)
        self._collections = collections

    def subscribe_collection(
        self,
        name: str,
        filters: list[FieldFilter] | None,
        order_by: OrderBy | None,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Register a live query and deliver its initial snapshot."""
        listener = _Listener(name, filters, order_by, on_snapshot, on_error)
        logger.info("Subscribing to collection", collection=name, filters=listener.filters)

        def cancel() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        with self._lock:
            self._listeners.append(listener)
            initial = self._snapshot(name, listener.filters, order_by)
        self._deliver(listener, initial)
        return Subscription(name, cancel)

    def add_document(self, name: str, payload: dict[str, Any]) -> str:
        """Store a new document under a generated id."""
        doc_id = uuid.uuid4().hex[:20]
        logger.info("Adding document", collection=name, doc_id=doc_id)
        with self._lock:
            documents = dict(self._collections.get(name, {}))
            documents[doc_id] = copy.deepcopy(payload)
            self._commit(name, documents)
        self._notify(name)
        return doc_id

    def get_document(self, name: str, doc_id: str) -> Record:
        """Read a document by id."""
        with self._lock:
            document = self._collections.get(name, {}).get(doc_id)
            if document is None:
                raise RecordNotFound(f"No document '{doc_id}' in '{name}'")
            return Record.from_document(doc_id, copy.deepcopy(document))

    def update_document(self, name: str, doc_id: str, changes: dict[str, Any]) -> None:
        """Merge changes into an existing document."""
        logger.info("Updating document", collection=name, doc_id=doc_id, fields=list(changes.keys()))
        with self._lock:
            documents = dict(self._collections.get(name, {}))
            if doc_id not in documents:
                raise RecordNotFound(f"No document '{doc_id}' in '{name}'")
            documents[doc_id] = {**documents[doc_id], **copy.deepcopy(changes)}
            self._commit(name, documents)
        self._notify(name)

    def delete_document(self, name: str, doc_id: str) -> None:
        """Remove a document."""
        logger.info("Deleting document", collection=name, doc_id=doc_id)
        with self._lock:
            documents = dict(self._collections.get(name, {}))
            if doc_id not in documents:
                raise RecordNotFound(f"No document '{doc_id}' in '{name}'")
            del documents[doc_id]
            self._commit(name, documents)
        self._notify(name)

    def query(
        self,
        name: str,
        filters: list[FieldFilter] | None = None,
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        """Run a one-shot query."""
        with self._lock:
            records = self._snapshot(name, filters, order_by)
        if limit:
            records = records[:limit]
        logger.debug("Queried collection", collection=name, count=len(records))
        return records
