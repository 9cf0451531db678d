"""
Subscribers that relay events into a downstream emitter.

These back the ``map``/``filter``/``peek``/``forward`` operators. Every
operator call creates a new downstream bus that nobody is obliged to close,
so each forwarding subscriber decides per event how strongly it holds on to
that bus:

1. If the downstream bus is gone, cancel our own subscription.
2. If it has subscribers, own it (it must outlive its consumers even if
   nothing else references it) and forward the event.
3. Otherwise only observe it. If we were the last owner it is reclaimed,
   and the next event takes branch 1.
"""

import logging
import weakref
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from .lifetime import LifetimeHandle
from .subscription import EventSubscription

if TYPE_CHECKING:
    from .source import EventEmitter

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F")


class AbstractForwardingSubscriber(ABC, Generic[T, F]):
    """Holds a ``LifetimeHandle`` to its downstream emitter."""

    def __init__(self, emitter: "EventEmitter[F]") -> None:
        self.handle: "LifetimeHandle[EventEmitter[F]]" = LifetimeHandle(emitter)

    def accept(self, event: T, subscription: EventSubscription[T]) -> None:
        emitter = self.handle.value()
        if emitter is None:
            logger.debug("Downstream emitter reclaimed; cancelling %r", subscription)
            subscription.cancel()
        elif emitter.has_subscribers():
            self.handle.set_strong(True)
            self.forward(event, emitter)
        else:
            self.handle.set_strong(False)

    @abstractmethod
    def forward(self, event: T, emitter: "EventEmitter[F]") -> None:
        """
        Relay one event into the downstream emitter.

        Only called while the emitter has subscribers.
        """
        pass


class ForwardingSubscriber(AbstractForwardingSubscriber[T, T]):
    """Re-emits events unchanged."""

    def forward(self, event: T, emitter: "EventEmitter[T]") -> None:
        emitter.emit(event)


class MappingSubscriber(AbstractForwardingSubscriber[T, F]):
    """Emits ``fn(event)``."""

    def __init__(self, fn: Callable[[T], F], emitter: "EventEmitter[F]") -> None:
        super().__init__(emitter)
        self.fn = fn

    def forward(self, event: T, emitter: "EventEmitter[F]") -> None:
        emitter.emit(self.fn(event))


class FilteringSubscriber(AbstractForwardingSubscriber[T, T]):
    """Emits only the events ``predicate`` accepts."""

    def __init__(self, predicate: Callable[[T], bool], emitter: "EventEmitter[T]") -> None:
        super().__init__(emitter)
        self.predicate = predicate

    def forward(self, event: T, emitter: "EventEmitter[T]") -> None:
        if self.predicate(event):
            emitter.emit(event)


class PeekingSubscriber(AbstractForwardingSubscriber[T, T]):
    """Shows each event to ``consumer``, then re-emits it unchanged."""

    def __init__(self, consumer: Callable[[T], Any], emitter: "EventEmitter[T]") -> None:
        super().__init__(emitter)
        self.consumer = consumer

    def forward(self, event: T, emitter: "EventEmitter[T]") -> None:
        self.consumer(event)
        emitter.emit(event)


class ErrorBridge:
    """
    Error handler that injects errors into another emitter.

    Holds the emitter weakly so that bridging an operator subscription's
    errors into its derived bus never keeps that bus alive.
    """

    def __init__(self, emitter: "EventEmitter") -> None:
        self._ref = weakref.ref(emitter)

    def __call__(self, exc: BaseException) -> None:
        emitter = self._ref()
        if emitter is None:
            logger.warning("Dropping %r: the emitter it was bridged to has been reclaimed", exc)
            return
        emitter.emit_error(exc)
