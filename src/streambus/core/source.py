"""
The two faces of a bus: the source you subscribe to and the emitter you
publish into, with the operators every source and emitter gets for free.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Generic, Optional, Tuple, TypeVar, Union, cast

from .capabilities import is_assignable
from .error_router import ErrorHandler
from .forwarding import (
    ErrorBridge,
    FilteringSubscriber,
    ForwardingSubscriber,
    MappingSubscriber,
    PeekingSubscriber,
)
from .scheduler import Scheduler
from .subscriber import consuming, running
from .subscription import EventSubscription

T = TypeVar("T")
F = TypeVar("F")


class _CapturingSubscriber:
    """Completes a future with the first event it sees and ignores the rest."""

    def __init__(self) -> None:
        self.future: Future = Future()
        self._lock = threading.Lock()

    def accept(self, event: Any, subscription: EventSubscription) -> None:
        with self._lock:
            if self.future.done():
                return
            self.future.set_result(event)


class EventSource(ABC, Generic[T]):
    """
    Something that can be subscribed to.

    ``map``, ``filter`` and ``peek`` each return a new bus carrying the
    transformed stream. That bus lives exactly as long as something
    references it or subscribes to it; there is nothing to close.
    """

    first_timeout: float = 5.0

    @property
    @abstractmethod
    def scheduler(self) -> Scheduler:
        """The scheduler this source serializes its own work on."""
        pass

    @abstractmethod
    def subscribe(self, subscriber, scheduler: Optional[Scheduler] = None) -> EventSubscription[T]:
        """
        Subscribe to this source.

        Args:
            subscriber: An ``EventSubscriber`` or an ``(event, subscription)`` callable.
            scheduler: Where the subscriber runs. Defaults to this source's scheduler.

        Returns:
            The new subscription.
        """
        pass

    @abstractmethod
    def error(self, exc_type_or_handler, handler: Optional[ErrorHandler] = None) -> "EventSource[T]":
        """
        Handle errors raised by subscribers whose subscriptions don't.

        Operator subscriptions route their errors into the bus the operator
        returned, so this is the only place to catch errors raised inside
        ``map``, ``filter`` and ``peek`` callables.
        """
        pass

    @abstractmethod
    def _derive(self, operator: str) -> "EventSource":
        """Create the bus an operator forwards into."""
        pass

    def consume(self, consumer: Callable[[T], Any], scheduler: Optional[Scheduler] = None) -> EventSubscription[T]:
        """Subscribe ``consumer`` to every event."""
        return self.subscribe(consuming(consumer), scheduler)

    def run(self, action: Callable[[], Any], scheduler: Optional[Scheduler] = None) -> EventSubscription[T]:
        """Call ``action`` whenever an event is emitted."""
        return self.subscribe(running(action), scheduler)

    def map(self, fn: Callable[[T], F], scheduler: Optional[Scheduler] = None) -> "EventSource[F]":
        """
        Map each event through ``fn``.

        Args:
            fn: The mapping function.
            scheduler: Where ``fn`` runs. Defaults to this source's scheduler.

        Returns:
            A source of mapped events.
        """
        recipient = self._derive("map")
        self.subscribe(MappingSubscriber(fn, recipient), scheduler).error(ErrorBridge(recipient))
        return recipient

    def filter(
        self,
        predicate: Union[Callable[[T], bool], type],
        scheduler: Optional[Scheduler] = None,
    ) -> "EventSource[T]":
        """
        Keep only the events ``predicate`` accepts.

        Passing a class instead of a predicate keeps the events assignable to
        it, as described by ``streambus.core.capabilities``.
        """
        if isinstance(predicate, type):
            return self._filter_type(predicate, scheduler)
        recipient = self._derive("filter")
        self.subscribe(FilteringSubscriber(predicate, recipient), scheduler).error(ErrorBridge(recipient))
        return recipient

    def _filter_type(self, event_type: type, scheduler: Optional[Scheduler]) -> "EventSource":
        return self.filter(lambda event: is_assignable(event, event_type), scheduler).map(
            lambda event: cast(event_type, event)
        )

    def peek(self, consumer: Callable[[T], Any], scheduler: Optional[Scheduler] = None) -> "EventSource[T]":
        """
        Look at each event on its way through.

        Unlike ``consume``, peeking stops once the returned source is neither
        referenced nor subscribed to.
        """
        recipient = self._derive("peek")
        self.subscribe(PeekingSubscriber(consumer, recipient), scheduler).error(ErrorBridge(recipient))
        return recipient

    def forward(self, recipient: "EventEmitter[T]") -> "EventSource[T]":
        """
        Re-emit every event into ``recipient`` while it has subscribers.

        Returns:
            This source.
        """
        self.subscribe(ForwardingSubscriber(recipient))
        return self

    def capture(self, scheduler: Optional[Scheduler] = None) -> Future:
        """
        Capture the next event.

        Returns:
            A future completed with the first event emitted after this call.
            Cancelling the future cancels the capturing subscription.
        """
        future, _ = self._capture(scheduler)
        return future

    def _capture(self, scheduler: Optional[Scheduler]) -> Tuple[Future, EventSubscription[T]]:
        capturer = _CapturingSubscriber()
        subscription = self.subscribe(capturer, scheduler)
        capturer.future.add_done_callback(lambda _: subscription.cancel())
        return capturer.future, subscription

    def first(self, timeout: Optional[float] = None) -> Optional[T]:
        """
        Block the calling thread until the next event arrives.

        Args:
            timeout: Seconds to wait. Defaults to ``first_timeout``.

        Returns:
            The event, or None if the timeout elapsed first.
        """
        if timeout is None:
            timeout = self.first_timeout
        future, subscription = self._capture(None)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            return None
        finally:
            subscription.cancel()

    async def first_async(self, timeout: Optional[float] = None) -> Optional[T]:
        """Await the next event. Same timeout semantics as ``first``."""
        if timeout is None:
            timeout = self.first_timeout
        future, subscription = self._capture(None)
        try:
            return await asyncio.wait_for(asyncio.wrap_future(future), timeout)
        except asyncio.TimeoutError:
            return None
        finally:
            subscription.cancel()


class EventEmitter(ABC, Generic[T]):
    """Something events can be emitted into."""

    @abstractmethod
    def emit(self, event: T) -> None:
        """Emit an event to subscribers."""
        pass

    @abstractmethod
    def emit_error(self, exc: BaseException) -> None:
        """Route an error through this emitter's error handlers."""
        pass

    @abstractmethod
    def has_subscribers(self) -> bool:
        """Whether anything is subscribed."""
        pass

    def demap(self, fn: Callable[[F], T]) -> "EventEmitter[F]":
        """
        Present this emitter as an emitter of another event type.

        Events emitted into the returned emitter are mapped through ``fn`` and
        forwarded here. Errors raised by ``fn`` are routed into this emitter's
        error handlers. The returned emitter holds this one only while this
        one has subscribers; otherwise it can be reclaimed independently.
        """
        from .event_bus import EventBus

        bus = EventBus.blocking()
        bus.map(fn).error(ErrorBridge(self)).forward(self)
        return bus
