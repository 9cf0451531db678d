"""
Schedulers that decide where and when bus work runs.

A bus only ever calls ``execute(task)``. When a scheduler serves as a bus's
serialization domain it must run tasks one at a time, in submission order.
"""

import asyncio
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

Task = Callable[[], None]


@runtime_checkable
class Scheduler(Protocol):
    """Accepts a unit of work for eventual execution."""

    def execute(self, task: Task) -> None: ...


class ImmediateScheduler:
    """Runs every task on the calling thread, before ``execute`` returns."""

    def execute(self, task: Task) -> None:
        task()

    def __repr__(self) -> str:
        return "ImmediateScheduler()"


IMMEDIATE = ImmediateScheduler()


class ExecutorScheduler:
    """
    Adapts a ``concurrent.futures.Executor`` to the scheduler protocol.

    Ordering is whatever the wrapped executor provides. A pool with more than
    one worker is fine for subscription dispatch but must not be used as a
    bus's own scheduler.
    """

    def __init__(self, executor: Executor) -> None:
        self._executor = executor

    def execute(self, task: Task) -> None:
        future = self._executor.submit(task)
        future.add_done_callback(self._log_failure)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks, optionally waiting for queued ones to finish."""
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Scheduled task failed: %s", exc, exc_info=exc)


class SerialScheduler(ExecutorScheduler):
    """
    A mailbox: one worker thread draining tasks in submission order.

    Suitable as a bus's serialization domain.
    """

    def __init__(self, thread_name_prefix: str = "streambus") -> None:
        super().__init__(
            ThreadPoolExecutor(max_workers=1, thread_name_prefix=thread_name_prefix)
        )
        self.thread_name_prefix = thread_name_prefix

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every task submitted before this call has run.

        Returns:
            False if the timeout elapsed first.
        """
        done = threading.Event()
        self.execute(done.set)
        return done.wait(timeout)

    def __repr__(self) -> str:
        return f"SerialScheduler(thread_name_prefix={self.thread_name_prefix!r})"


class AsyncioScheduler:
    """
    Runs tasks as callbacks on an asyncio event loop.

    The loop runs callbacks one at a time in the order they were scheduled,
    so this is a valid serialization domain. ``execute`` is thread-safe.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.loop = loop or asyncio.get_running_loop()

    def execute(self, task: Task) -> None:
        self.loop.call_soon_threadsafe(task)

    def __repr__(self) -> str:
        return f"AsyncioScheduler(loop={self.loop!r})"
