from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        from modules.orders.events import (
            CourierAssigned,
            OrderCancelled,
            OrderCreated,
            OrderDelivered,
            OrderRated,
            OrderStatusChanged,
            PreparationTimeSet,
        )
        from modules.orders.handlers import (
            courier_assigned_handler,
            order_cancelled_handler,
            order_created_handler,
            order_delivered_handler,
            order_snapshot_handler,
            order_status_changed_handler,
            preparation_time_set_handler,
        )
        from shared.infrastructure.bus import event_bus

        # Subclasses of OrderStatusChanged reach its handlers too.
        for event_class in (OrderCreated, OrderStatusChanged, PreparationTimeSet, OrderRated):
            event_bus.subscribe(event_class, order_snapshot_handler)

        event_bus.subscribe(OrderCreated, order_created_handler)
        event_bus.subscribe(OrderStatusChanged, order_status_changed_handler)
        event_bus.subscribe(OrderCancelled, order_cancelled_handler)
        event_bus.subscribe(PreparationTimeSet, preparation_time_set_handler)
        event_bus.subscribe(CourierAssigned, courier_assigned_handler)
        event_bus.subscribe(OrderDelivered, order_delivered_handler)
