"""
Tests for the map/filter/peek/forward operators and the lifetime of the
buses they create.
"""

import gc

from streambus.core.capabilities import capabilities
from streambus.core.event_bus import EventBus
from streambus.core.forwarding import ForwardingSubscriber, PeekingSubscriber
from streambus.core.lifetime import LifetimeHandle


class Priced:
    """Capability tag for testing."""


@capabilities(Priced)
class Order:
    def __init__(self, amount):
        self.amount = amount


class Heartbeat:
    pass


class TestOperatorOutputs:
    """Tests for what each operator relays."""

    def test_map_applies_function(self, bus):
        """Test that map() emits fn(event) for each event."""
        actual = []
        bus.map(str.upper).consume(actual.append)

        for event in ["a", "b", "c"]:
            bus.emit(event)

        assert actual == ["A", "B", "C"]

    def test_filter_keeps_matching_subsequence(self, bus):
        """Test that filter() emits exactly the events satisfying the predicate."""
        actual = []
        bus.filter(lambda n: n % 2 == 0).consume(actual.append)

        for n in range(10):
            bus.emit(n)

        assert actual == [0, 2, 4, 6, 8]

    def test_peek_observes_and_relays_unchanged(self, bus):
        """Test that peek() sees every event once and relays it untouched."""
        seen = []
        actual = []
        bus.peek(seen.append).consume(actual.append)

        for event in ["1", "2", "3"]:
            bus.emit(event)

        assert seen == ["1", "2", "3"]
        assert actual == ["1", "2", "3"]

    def test_operators_compose(self, bus):
        """Test chaining several operators."""
        actual = []
        bus.filter(lambda n: n > 1).map(lambda n: n * 10).peek(lambda n: None).consume(actual.append)

        for n in [1, 2, 3]:
            bus.emit(n)

        assert actual == [20, 30]

    def test_filter_by_type_uses_capabilities(self, bus):
        """Test that filtering by a class keeps events assignable to it."""
        priced = []
        orders = []
        bus.filter(Priced).consume(priced.append)
        bus.filter(Order).consume(orders.append)

        order = Order(10)
        bus.emit(order)
        bus.emit(Heartbeat())

        assert priced == [order]
        assert orders == [order]

    def test_filter_by_type_respects_subclassing(self, bus):
        """Test that subclasses pass a filter for their base class."""

        class LargeOrder(Order):
            pass

        actual = []
        bus.filter(Priced).consume(actual.append)
        large = LargeOrder(1000)
        bus.emit(large)

        assert actual == [large]

    def test_forward_relays_into_recipient(self, bus):
        """Test that forward() re-emits events into another bus and returns the source."""
        target = EventBus.blocking()
        actual = []
        target.consume(actual.append)

        assert bus.forward(target) is bus

        bus.emit("x")

        assert actual == ["x"]

    def test_forward_drops_events_while_recipient_unobserved(self, bus):
        """Test that nothing is forwarded to a recipient without subscribers."""
        target = EventBus.blocking()
        bus.forward(target)
        bus.emit("lost")

        actual = []
        target.consume(actual.append)
        bus.emit("kept")

        assert actual == ["kept"]

    def test_derived_bus_inherits_scheduler(self, queue_scheduler):
        """Test that operator buses share their source's scheduler."""
        bus = EventBus(queue_scheduler)
        mapped = bus.map(str)

        assert mapped.scheduler is queue_scheduler
        assert mapped.name.startswith(bus.name)


class TestOperatorErrors:
    """Tests for errors raised inside operator callables."""

    def test_map_error_reaches_derived_bus_handler(self, bus, mocker):
        """Test that errors from a mapping function go to the mapped bus's handlers."""
        handler = mocker.Mock()
        mapped = bus.map(int)
        mapped.error(ValueError, handler)
        actual = []
        mapped.consume(actual.append)

        bus.emit("not a number")
        bus.emit("7")

        handler.assert_called_once()
        assert isinstance(handler.call_args[0][0], ValueError)
        assert actual == [7]

    def test_unhandled_operator_error_reaches_inherited_default(self, bus, sink):
        """Test that derived buses reuse their source's default handler."""

        def explode(event):
            raise RuntimeError(event)

        bus.peek(explode).consume(lambda event: None)
        bus.emit("x")

        assert len(sink.errors) == 1
        assert str(sink.errors[0]) == "x"

    def test_operator_error_does_not_reach_source_handlers(self, bus, mocker):
        """Test that operator errors are bridged downstream, not handled upstream."""
        source_handler = mocker.Mock()
        bus.error(source_handler)
        bus.filter(lambda event: 1 / 0).consume(lambda event: None)

        bus.emit("x")

        source_handler.assert_not_called()


class TestDerivedBusLifetime:
    """Tests for keeping operator buses alive exactly while they are observed."""

    def test_peek_without_consumer_observes_nothing(self, bus):
        """Test that an unobserved, unreferenced peek sees no events."""
        seen = []
        bus.peek(seen.append)
        gc.collect()

        for event in ["1", "2", "3"]:
            bus.emit(event)

        assert seen == []

    def test_unreferenced_peek_releases_its_subscription(self, bus):
        """Test that the operator cancels itself once its bus has been reclaimed."""
        bus.peek(lambda event: None)

        bus.emit("1")
        gc.collect()
        bus.emit("2")

        assert bus.has_subscribers() is False

    def test_peek_with_consumer_survives_collection(self, bus):
        """Test that a subscribed derived bus is kept alive by its operator."""
        seen = []
        bus.peek(seen.append).consume(lambda event: None)
        gc.collect()

        for event in ["1", "2", "3"]:
            bus.emit(event)
            gc.collect()

        assert seen == ["1", "2", "3"]

    def test_peek_stops_after_downstream_cancels(self, bus):
        """Test that cancelling the only consumer lets the chain be released."""
        seen = []
        subscription = bus.peek(seen.append).consume(lambda event: None)
        bus.emit("1")

        subscription.cancel()
        del subscription
        gc.collect()

        bus.emit("2")
        gc.collect()
        bus.emit("3")

        assert seen == ["1"]
        assert bus.has_subscribers() is False

    def test_referenced_derived_bus_is_not_reclaimed(self, bus):
        """Test that weakening the operator's handle leaves externally held buses alive."""
        mapped = bus.map(str.upper)
        bus.emit("dropped")
        gc.collect()

        actual = []
        mapped.consume(actual.append)
        bus.emit("kept")

        assert actual == ["KEPT"]
        assert bus.has_subscribers() is True


class TestForwardingSubscriber:
    """Tests for the handle-strength decisions of forwarding subscribers."""

    def test_weakens_when_downstream_unobserved(self, bus):
        """Test that the handle turns weak while the downstream has no subscribers."""
        downstream = EventBus.blocking()
        forwarder = ForwardingSubscriber(downstream)
        bus.subscribe(forwarder)

        assert forwarder.handle.is_strong is True

        bus.emit(1)

        assert forwarder.handle.is_strong is False
        assert forwarder.handle.value() is downstream

    def test_strengthens_and_forwards_when_observed(self, bus):
        """Test that the handle turns strong again once the downstream is subscribed."""
        downstream = EventBus.blocking()
        forwarder = ForwardingSubscriber(downstream)
        bus.subscribe(forwarder)
        bus.emit(1)

        actual = []
        downstream.consume(actual.append)
        bus.emit(2)

        assert forwarder.handle.is_strong is True
        assert actual == [2]

    def test_cancels_itself_once_downstream_reclaimed(self, bus):
        """Test that the subscription is cancelled after the downstream disappears."""
        downstream = EventBus.blocking()
        forwarder = PeekingSubscriber(lambda event: None, downstream)
        subscription = bus.subscribe(forwarder)
        del downstream

        bus.emit(1)
        gc.collect()

        assert forwarder.handle.is_reclaimed() is True

        bus.emit(2)

        assert subscription.cancelled is True
        assert bus.has_subscribers() is False


class TestDemap:
    """Tests for presenting an emitter as an emitter of another type."""

    def test_demap_chain_survives_while_target_exists(self):
        """Test that demapped events reach the target after collection."""
        actual = []
        bus = EventBus.blocking()
        bus.consume(actual.append)

        mapped = bus.demap(str)
        gc.collect()
        for n in [1, 2, 3]:
            mapped.emit(n)

        assert actual == ["1", "2", "3"]

    def test_demap_does_not_keep_target_alive(self):
        """Test that the demapped emitter does not own a target nobody observes."""
        handle = LifetimeHandle(EventBus.blocking())
        mapped = handle.value().demap(str)
        handle.set_strong(False)

        for n in [1, 2, 3]:
            mapped.emit(n)
        gc.collect()

        assert handle.is_reclaimed() is True

    def test_demap_keeps_observed_target_alive(self):
        """Test that the demapped emitter holds its target while the target has subscribers."""
        actual = []
        handle = LifetimeHandle(EventBus.blocking())
        handle.value().consume(actual.append)
        mapped = handle.value().demap(str)
        handle.set_strong(False)

        gc.collect()
        for n in [1, 2]:
            mapped.emit(n)
        gc.collect()

        assert handle.is_reclaimed() is False
        assert actual == ["1", "2"]

    def test_demap_errors_reach_target_handlers(self, mocker):
        """Test that mapping failures are routed into the target's error handlers."""
        handler = mocker.Mock()
        target = EventBus.blocking()
        target.error(ValueError, handler)
        actual = []
        target.consume(actual.append)

        mapped = target.demap(int)
        mapped.emit("nope")
        mapped.emit("5")

        handler.assert_called_once()
        assert actual == [5]
