"""Unit tests for Orders event handlers and the in-memory bus."""

from __future__ import annotations

import logging
from uuid import uuid4

import pytest

from modules.orders.events import (
    CourierAssigned,
    OrderCancelled,
    OrderCreated,
    OrderStatusChanged,
    PreparationTimeSet,
)
from modules.orders.handlers import (
    OrderCancelledHandler,
    OrderCreatedHandler,
    OrderSnapshotHandler,
    OrderStatusChangedHandler,
)
from modules.orders.snapshots import order_cache
from shared.infrastructure.bus import InMemoryEventBus, event_bus

pytestmark = pytest.mark.unit


def _messages(caplog):
    return [record.getMessage() for record in caplog.records]


def test_order_created_handler_logs(caplog):
    event = OrderCreated(aggregate_id=uuid4(), business_id="b-1", client_id="c-1")

    with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
        OrderCreatedHandler().handle(event)

    assert any("order.event.created" in message for message in _messages(caplog))


def test_order_cancelled_handler_logs(caplog):
    event = OrderCancelled(aggregate_id=uuid4(), old_status="pending", automatic=True)

    with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
        OrderCancelledHandler().handle(event)

    assert any("order.event.cancelled" in message for message in _messages(caplog))


def test_status_changed_handler_logs(caplog):
    event = OrderStatusChanged(aggregate_id=uuid4(), old_status="ready", new_status="delivering")

    with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
        OrderStatusChangedHandler().handle(event)

    assert any("delivering" in message for message in _messages(caplog))


def test_in_memory_event_bus_routes_events():
    bus = InMemoryEventBus()
    handled = []

    class CapturingHandler:
        def handle(self, event) -> None:
            handled.append(event)

    event = OrderCreated(aggregate_id=uuid4())
    bus.subscribe(OrderCreated, CapturingHandler())
    bus.publish(event)

    assert handled == [event]


def test_base_class_subscribers_receive_subclasses():
    bus = InMemoryEventBus()
    handled = []

    class CapturingHandler:
        def handle(self, event) -> None:
            handled.append(type(event))

    bus.subscribe(OrderStatusChanged, CapturingHandler())
    bus.publish(CourierAssigned(aggregate_id=uuid4(), courier_id="x"))
    bus.publish(PreparationTimeSet(aggregate_id=uuid4(), minutes=5))

    assert handled == [CourierAssigned]


def test_handlers_for_lists_most_specific_first():
    bus = InMemoryEventBus()
    specific, general = OrderCancelledHandler(), OrderStatusChangedHandler()
    bus.subscribe(OrderStatusChanged, general)
    bus.subscribe(OrderCancelled, specific)

    event = OrderCancelled(aggregate_id=uuid4(), old_status="pending", new_status="cancelled")

    assert bus.handlers_for(event) == [specific, general]


def test_snapshot_handler_upserts_cache(place_order):
    order = place_order()
    order_cache.invalidate(order.id)

    OrderSnapshotHandler().handle(OrderCreated(aggregate_id=order.id))

    snapshot = order_cache.get(order.id)
    assert snapshot["id"] == str(order.id)
    assert snapshot["status"] == "pending"


def test_snapshot_handler_drops_missing_order():
    missing = uuid4()
    order_cache.upsert(missing, {"id": str(missing)})

    OrderSnapshotHandler().handle(OrderCreated(aggregate_id=missing))

    assert order_cache.get(missing) is None


def test_app_wires_snapshot_handler_for_status_changes(place_order, order_service, owner_actor):
    order = place_order()
    order_service.accept_order(order.id, owner_actor)
    order_cache.invalidate(order.id)

    event_bus.publish(
        OrderStatusChanged(aggregate_id=order.id, old_status="pending", new_status="accepted")
    )

    assert order_cache.get(order.id)["status"] == "accepted"
