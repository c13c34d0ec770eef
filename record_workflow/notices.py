"""User-visible notices for failed actions."""

import sys
from typing import Protocol, TextIO

import structlog

logger = structlog.get_logger()


class Notifier(Protocol):
    """Presents a blocking notice to the user."""

    def notify(self, message: str) -> None: ...


class LogNotifier:
    """Notifier for headless use: notices only go to the log."""

    def notify(self, message: str) -> None:
        logger.warning("User notice", message=message)


class ConsoleNotifier:
    """Prints notices to a terminal stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stderr

    def notify(self, message: str) -> None:
        print(f"Error: {message}", file=self.stream)
