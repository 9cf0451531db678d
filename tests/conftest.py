"""
Test fixtures for streambus.
"""

from typing import Generator

import pytest

from streambus.core.event_bus import EventBus
from streambus.core.scheduler import SerialScheduler


class RecordingSink:
    """Default error handler that remembers what reached it."""

    def __init__(self) -> None:
        self.errors: list[BaseException] = []

    def __call__(self, exc: BaseException) -> None:
        self.errors.append(exc)


class QueueScheduler:
    """Scheduler that holds tasks until the test runs them."""

    def __init__(self) -> None:
        self.tasks: list = []

    def execute(self, task) -> None:
        self.tasks.append(task)

    def run_all(self) -> None:
        """Run queued tasks, including ones queued while running, in FIFO order."""
        while self.tasks:
            self.tasks.pop(0)()


@pytest.fixture
def sink() -> RecordingSink:
    """Fixture providing a recording default error handler."""
    return RecordingSink()


@pytest.fixture
def bus(sink) -> EventBus:
    """Fixture providing a blocking bus whose unhandled errors go to ``sink``."""
    return EventBus.blocking(name="test", default_handler=sink)


@pytest.fixture
def queue_scheduler() -> QueueScheduler:
    """Fixture providing a manually driven scheduler."""
    return QueueScheduler()


@pytest.fixture
def serial_scheduler() -> Generator[SerialScheduler, None, None]:
    """
    Fixture providing a single-threaded mailbox scheduler.

    Yields:
        A SerialScheduler, shut down after the test.
    """
    scheduler = SerialScheduler(thread_name_prefix="test-bus")
    yield scheduler
    scheduler.shutdown()
