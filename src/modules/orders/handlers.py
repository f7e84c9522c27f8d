"""Event handlers for Orders domain events."""

from __future__ import annotations

import structlog

from modules.orders.events import (
    CourierAssigned,
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderStatusChanged,
    PreparationTimeSet,
)
from modules.orders.snapshots import refresh_order_snapshot
from shared.domain.bus import IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class OrderSnapshotHandler(IEventHandler[DomainEvent]):
    """Keeps the cached snapshot of the affected order current."""

    def handle(self, event: DomainEvent) -> None:
        refresh_order_snapshot(event.aggregate_id)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info(
            "order.event.created",
            order_id=str(event.aggregate_id),
            business_id=event.business_id,
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "order.event.status_changed",
            order_id=str(event.aggregate_id),
            old_status=event.old_status,
            new_status=event.new_status,
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.event.cancelled",
            order_id=str(event.aggregate_id),
            automatic=event.automatic,
        )


class PreparationTimeSetHandler(IEventHandler[PreparationTimeSet]):
    def handle(self, event: PreparationTimeSet) -> None:
        logger.info(
            "order.event.preparation_time_set",
            order_id=str(event.aggregate_id),
            minutes=event.minutes,
        )


class CourierAssignedHandler(IEventHandler[CourierAssigned]):
    def handle(self, event: CourierAssigned) -> None:
        logger.info(
            "order.event.courier_assigned",
            order_id=str(event.aggregate_id),
            courier_id=event.courier_id,
        )


class OrderDeliveredHandler(IEventHandler[OrderDelivered]):
    def handle(self, event: OrderDelivered) -> None:
        logger.info(
            "order.event.delivered",
            order_id=str(event.aggregate_id),
            courier_id=event.courier_id,
            commission=event.commission,
        )


order_snapshot_handler = OrderSnapshotHandler()
order_created_handler = OrderCreatedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
order_cancelled_handler = OrderCancelledHandler()
preparation_time_set_handler = PreparationTimeSetHandler()
courier_assigned_handler = CourierAssignedHandler()
order_delivered_handler = OrderDeliveredHandler()
