"""
The live relationship between one subscriber and one bus.
"""

import threading
from functools import partial
from typing import TYPE_CHECKING, Generic, Optional, TypeVar

from .error_router import ErrorHandler, ErrorRouter, split_registration
from .scheduler import Scheduler
from .subscriber import as_callback

if TYPE_CHECKING:
    from .event_bus import EventBus

T = TypeVar("T")


class SubscriptionCancelledError(RuntimeError):
    """Raised when an event is delivered to a subscription that was cancelled."""
    pass


class EventSubscription(Generic[T]):
    """
    Returned by ``subscribe``; used to cancel and to attach error handlers.

    Each delivery runs the subscriber on this subscription's own scheduler.
    Whatever the subscriber raises is routed through this subscription's
    error router, a fork of the bus's router, and never reaches the emitter.
    """

    def __init__(
        self,
        subscriber,
        scheduler: Scheduler,
        bus: "EventBus[T]",
        errors: ErrorRouter,
    ) -> None:
        self.subscriber = subscriber
        self.scheduler = scheduler
        self.bus = bus
        self._accept = as_callback(subscriber)
        self._errors = errors
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        """Whether ``cancel`` has been called. Never goes back to False."""
        return self._cancelled

    def deliver(self, event: T) -> None:
        """
        Schedule the subscriber to accept ``event``.

        Raises:
            SubscriptionCancelledError: If this subscription was cancelled.
        """
        if self._cancelled:
            raise SubscriptionCancelledError("attempt to deliver to a cancelled subscription")
        self.scheduler.execute(partial(self._dispatch, event))

    def _dispatch(self, event: T) -> None:
        try:
            self._accept(event, self)
        except Exception as exc:
            self._errors.handle(exc)

    def error(self, exc_type_or_handler, handler: Optional[ErrorHandler] = None) -> "EventSubscription[T]":
        """
        Handle errors raised by this subscription's subscriber.

        Called as ``error(handler)`` it catches every ``Exception``; called as
        ``error(exc_type, handler)`` it catches that type and its subclasses.
        These handlers are consulted before the bus-level ones.

        Returns:
            This subscription, for chaining.
        """
        exc_type, handler = split_registration(exc_type_or_handler, handler)
        self._errors.register(exc_type, handler)
        return self

    def cancel(self) -> bool:
        """
        Ask the bus to drop this subscription.

        Removal happens on the bus's scheduler, so one delivery that was
        already scheduled may still reach the subscriber.

        Returns:
            True if this call cancelled the subscription, False if it was
            already cancelled.
        """
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
        self.bus.unsubscribe(self)
        return True

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<EventSubscription {state} on {self.bus!r}>"
