"""
Subscriber protocol and small adapters for common subscriber shapes.
"""

from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .subscription import EventSubscription

SubscriberCallback = Callable[[Any, "EventSubscription"], None]


@runtime_checkable
class EventSubscriber(Protocol):
    """Receives an event together with the subscription that delivered it."""

    def accept(self, event: Any, subscription: "EventSubscription") -> None: ...


def as_callback(subscriber) -> SubscriberCallback:
    """
    Turn an ``EventSubscriber`` or a plain ``(event, subscription)`` callable
    into the callable a subscription invokes.

    Raises:
        TypeError: If the subscriber is neither.
    """
    if isinstance(subscriber, EventSubscriber):
        return subscriber.accept
    if callable(subscriber):
        return subscriber
    raise TypeError(f"{subscriber!r} is not a subscriber")


def consuming(consumer: Callable[[Any], None]) -> SubscriberCallback:
    """Subscriber that hands each event to ``consumer``."""

    def accept(event: Any, subscription: "EventSubscription") -> None:
        consumer(event)

    return accept


def running(action: Callable[[], None]) -> SubscriberCallback:
    """Subscriber that calls ``action`` for each event, ignoring the event."""

    def accept(event: Any, subscription: "EventSubscription") -> None:
        action()

    return accept


def cancelling() -> SubscriberCallback:
    """Subscriber that cancels its own subscription on the first event."""

    def accept(event: Any, subscription: "EventSubscription") -> None:
        subscription.cancel()

    return accept
