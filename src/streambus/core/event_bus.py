"""
Typed in-process pub/sub bus.
"""

import itertools
import logging
from functools import partial
from typing import Generic, List, Optional, TypeVar

from ..utils.logging import get_bus_logger, log_bus_event
from .config import BusConfig, create_scheduler
from .error_router import ErrorHandler, ErrorRouter, split_registration
from .scheduler import IMMEDIATE, Scheduler
from .source import EventEmitter, EventSource
from .subscription import EventSubscription, SubscriptionCancelledError

T = TypeVar("T")

_bus_ids = itertools.count(1)


class EventBus(EventSource[T], EventEmitter[T], Generic[T]):
    """
    Pub/sub hub for one event type.

    The bus's scheduler is its serialization domain: adding and removing
    subscriptions and fanning out emitted events all run as tasks on it,
    so it must run them one at a time in submission order.
    ``subscribe``, ``unsubscribe`` and ``emit`` only enqueue.
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        *,
        name: Optional[str] = None,
        default_handler: Optional[ErrorHandler] = None,
        first_timeout: float = EventSource.first_timeout,
    ) -> None:
        """
        Initialize an empty bus.

        Args:
            scheduler: Serialization domain. Defaults to running on the calling thread.
            name: Name used in log records. Defaults to ``bus-<n>``.
            default_handler: Handler for errors nothing else handles. Defaults to logging them.
            first_timeout: Default timeout for ``first``.
        """
        self._scheduler = scheduler if scheduler is not None else IMMEDIATE
        self.name = name or f"bus-{next(_bus_ids)}"
        self.default_handler = default_handler
        self.first_timeout = first_timeout
        self._subscriptions: List[EventSubscription[T]] = []
        self._errors = ErrorRouter(default_handler)
        self._log = get_bus_logger(self.name)

    @classmethod
    def create(cls, scheduler: Scheduler, **kwargs) -> "EventBus[T]":
        """Create a bus serialized on ``scheduler``."""
        return cls(scheduler, **kwargs)

    @classmethod
    def blocking(cls, **kwargs) -> "EventBus[T]":
        """Create a bus that does all its work on the calling thread."""
        return cls(IMMEDIATE, **kwargs)

    @classmethod
    def from_config(
        cls, config: BusConfig, default_handler: Optional[ErrorHandler] = None
    ) -> "EventBus[T]":
        """Create a bus from a ``BusConfig``."""
        return cls(
            create_scheduler(config.scheduler),
            name=config.name,
            default_handler=default_handler,
            first_timeout=config.first_timeout,
        )

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def subscribers(self) -> int:
        """Number of registered subscriptions."""
        return len(self._subscriptions)

    def subscribe(self, subscriber, scheduler: Optional[Scheduler] = None) -> EventSubscription[T]:
        """
        Subscribe to this bus.

        The subscription is returned immediately but is only registered once
        the add task has run on this bus's scheduler.

        Args:
            subscriber: An ``EventSubscriber`` or an ``(event, subscription)`` callable.
            scheduler: Where the subscriber runs. Defaults to this bus's scheduler.

        Returns:
            The new subscription.
        """
        subscription = EventSubscription(
            subscriber,
            scheduler if scheduler is not None else self._scheduler,
            self,
            self._errors.fork(),
        )
        self._scheduler.execute(partial(self._add, subscription))
        return subscription

    def unsubscribe(self, subscription: EventSubscription[T]) -> None:
        """Schedule removal of ``subscription``. Unknown subscriptions are ignored."""
        self._scheduler.execute(partial(self._remove, subscription))

    def emit(self, event: T) -> None:
        """
        Schedule delivery of ``event`` to every subscription registered when
        the delivery task runs.
        """
        self._scheduler.execute(partial(self._fan_out, event))

    def emit_error(self, exc: BaseException) -> None:
        """Route ``exc`` straight into this bus's error handlers."""
        self._errors.handle(exc)

    def error(self, exc_type_or_handler, handler: Optional[ErrorHandler] = None) -> "EventBus[T]":
        """
        Register a bus-level error handler.

        Called as ``error(handler)`` it catches every ``Exception``; called
        as ``error(exc_type, handler)`` it catches that type and subclasses.

        Returns:
            This bus, for chaining.
        """
        exc_type, handler = split_registration(exc_type_or_handler, handler)
        self._errors.register(exc_type, handler)
        return self

    def has_subscribers(self) -> bool:
        """
        Whether any subscription is registered.

        Subscriptions whose add task has not run yet do not count.
        """
        return len(self._subscriptions) > 0

    def _derive(self, operator: str) -> "EventBus":
        bus: EventBus = EventBus(
            self._scheduler,
            name=f"{self.name}.{operator}",
            default_handler=self.default_handler,
            first_timeout=self.first_timeout,
        )
        log_bus_event(
            logging.getLogger(__name__), logging.DEBUG, "Derived bus created",
            bus=bus.name, operator=operator, parent=self.name,
        )
        return bus

    def _add(self, subscription: EventSubscription[T]) -> None:
        if subscription in self._subscriptions:
            return
        self._subscriptions.append(subscription)
        self._log.debug("Subscribed %r (%d active)", subscription.subscriber, len(self._subscriptions))

    def _remove(self, subscription: EventSubscription[T]) -> None:
        if subscription not in self._subscriptions:
            return
        self._subscriptions.remove(subscription)
        self._log.debug("Unsubscribed %r (%d active)", subscription.subscriber, len(self._subscriptions))

    def _fan_out(self, event: T) -> None:
        for subscription in list(self._subscriptions):
            # Cancelled, removal still queued behind this task
            if subscription.cancelled:
                continue
            try:
                subscription.deliver(event)
            except SubscriptionCancelledError:
                # Cancelled from another thread after the check above
                continue

    def __repr__(self) -> str:
        return f"<EventBus {self.name!r} subscribers={len(self._subscriptions)}>"
