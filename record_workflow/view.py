"""Live view: the latest snapshot of a subscription plus the user's filters."""

import threading
from collections import Counter
from collections.abc import Callable
from typing import Any

import structlog

from record_workflow.filtering import ALL_STATUSES, apply_client_filter
from record_workflow.models import Record
from record_workflow.store import Subscription
from record_workflow.workflow import RecordWorkflow

logger = structlog.get_logger()


class LiveView:
    """Holds the authoritative list from a live query and derives the visible rows.

    Each snapshot replaces the whole list. ``visible`` is recomputed from
    (snapshot, search term, status filter) and memoized on those inputs.
    """

    def __init__(
        self,
        workflow: RecordWorkflow,
        on_update: Callable[[list[Record]], None] | None = None,
    ) -> None:
        """Initialize live view.

        Args:
            workflow: Workflow providing the scoped subscription
            on_update: Called with the visible rows after each snapshot or filter change
        """
        self.workflow = workflow
        self.on_update = on_update
        self.loading = True
        self._lock = threading.RLock()
        self._records: list[Record] = []
        self._version = 0
        self._search_term = ""
        self._status_filter = ALL_STATUSES
        self._memo: tuple[tuple[int, str, str], list[Record]] | None = None
        self._subscription: Subscription | None = None

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def open(self) -> "LiveView":
        """Start the live query. Opening an open view is a no-op."""
        if self.is_open:
            return self
        self._subscription = self.workflow.subscribe(self._on_snapshot)
        return self

    def close(self) -> None:
        """Release the live query."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
            logger.debug("Live view closed", collection=self.workflow.collection)

    def restart(self) -> "LiveView":
        """Re-issue the live query."""
        self.close()
        self.loading = True
        return self.open()

    def __enter__(self) -> "LiveView":
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _on_snapshot(self, records: list[Record]) -> None:
        with self._lock:
            self._records = list(records)
            self._version += 1
            self.loading = False
        logger.debug("Live view snapshot", collection=self.workflow.collection, count=len(records))
        self._changed()

    def _changed(self) -> None:
        if self.on_update is not None:
            self.on_update(self.visible)

    @property
    def records(self) -> list[Record]:
        """The full in-scope list from the latest snapshot."""
        with self._lock:
            return list(self._records)

    @property
    def search_term(self) -> str:
        return self._search_term

    @property
    def status_filter(self) -> str:
        return self._status_filter

    def set_search(self, term: str) -> None:
        """Change the search term."""
        with self._lock:
            self._search_term = term
        self._changed()

    def set_status_filter(self, status: str) -> None:
        """Change the status filter; ``"all"`` shows every status."""
        if status != ALL_STATUSES and not self.workflow.profile.allows_status(status):
            raise ValueError(f"Unknown status '{status}' for {self.workflow.profile.name}")
        with self._lock:
            self._status_filter = status
        self._changed()

    @property
    def visible(self) -> list[Record]:
        """Rows matching the current search term and status filter."""
        with self._lock:
            key = (self._version, self._search_term, self._status_filter)
            if self._memo is None or self._memo[0] != key:
                rows = apply_client_filter(
                    self._records, self._search_term, self._status_filter, self.workflow.profile.search_fields
                )
                self._memo = (key, list(rows))
            return list(self._memo[1])

    def counts(self) -> Counter:
        """Number of in-scope records per status."""
        with self._lock:
            return Counter(record.status for record in self._records)

    def total(self, field: str, status: str | None = None) -> float:
        """Sum a numeric field over in-scope records, optionally for one status."""
        with self._lock:
            return sum(
                record.get(field, 0) or 0
                for record in self._records
                if status is None or record.status == status
            )
