"""Live queries for stores without a push channel, implemented by polling."""

import threading
from collections.abc import Callable

import structlog

from record_workflow.models import Record
from record_workflow.store import ErrorCallback, SnapshotCallback, Subscription

logger = structlog.get_logger()


class PollingSubscription(Subscription):
    """Re-runs a query on an interval and emits the full result whenever it changes."""

    def __init__(
        self,
        collection: str,
        fetch: Callable[[], list[Record]],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        interval: float = 5.0,
    ) -> None:
        """Initialize polling subscription.

        Args:
            collection: Collection name, for logging
            fetch: One-shot query returning the current matching set
            on_snapshot: Receives each changed snapshot
            on_error: Receives fetch and listener failures; polling continues afterwards
            interval: Seconds between polls
        """
        self._stop = threading.Event()
        super().__init__(collection, self._stop.set)
        self.fetch = fetch
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.interval = interval
        self._last: list[Record] | None = None
        self._thread: threading.Thread | None = None

    def poll_once(self) -> bool:
        """Fetch once and emit if the result changed.

        Returns:
            True if a snapshot was delivered
        """
        try:
            records = self.fetch()
        except Exception as e:
            logger.warning("Polling fetch failed", collection=self.collection, error=str(e))
            # The first good poll after a failure is always delivered
            self._last = None
            if self.on_error is not None:
                self.on_error(e)
            return False

        if records == self._last:
            return False
        self._last = records
        logger.debug("Delivering polled snapshot", collection=self.collection, count=len(records))
        try:
            self.on_snapshot(records)
        except Exception as e:
            logger.error("Snapshot listener failed", collection=self.collection, error=str(e))
            if self.on_error is not None:
                self.on_error(e)
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            self.poll_once()
            self._stop.wait(self.interval)
        logger.debug("Polling stopped", collection=self.collection)

    def start(self) -> "PollingSubscription":
        """Start polling on a daemon thread."""
        logger.info("Starting polling subscription", collection=self.collection, interval=self.interval)
        self._thread = threading.Thread(target=self._run, name=f"poll-{self.collection}", daemon=True)
        self._thread.start()
        return self
