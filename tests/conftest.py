"""Shared test configuration."""

from collections.abc import Iterator

import pytest
import structlog

from record_workflow.cli import configure_logging


@pytest.fixture(autouse=True)
def default_logging() -> Iterator[None]:
    """Apply the CLI's default log level, as `rw` does before running a command."""
    configure_logging("critical")
    yield
    structlog.reset_defaults()
