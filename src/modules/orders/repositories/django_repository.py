"""Django ORM implementation of the Order repository.

Writes run inside ``transaction.atomic()`` so the aggregate, its history
rows and its outbox events commit together.  Status changes are serialized
with ``select_for_update()``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Avg, Count, Sum

from modules.core.exceptions import PersistenceFailure
from modules.core.outbox import record_domain_events
from modules.orders.constants import TERMINAL_STATES, OrderStatus
from modules.orders.models import (
    ArchivedOrder,
    DeliveryTracking,
    Order,
    OrderItem,
    OrderStatusHistory,
    QuickMessage,
    Rating,
)
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

EVENT_TOPIC = "orders"
ONE_DECIMAL = Decimal("0.1")


def _base_queryset():
    return (
        Order.objects.alive()
        .select_related("business", "delivery_person")
        .prefetch_related("items", "status_history")
    )


def _round_rating(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value)).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        items = data.pop("items", [])
        order = Order(**data)
        try:
            order.save()
            subtotal = Decimal("0.00")
            for item_data in items:
                item = OrderItem(order=order, **item_data)
                item.save()
                subtotal += item.subtotal
            order.subtotal = subtotal
            order.total_price = subtotal + order.delivery_fee
            order.save(update_fields=["subtotal", "total_price"])
        except DatabaseError as exc:
            logger.error("order.create_failed", error=str(exc))
            raise PersistenceFailure(str(exc)) from exc

        logger.info("order.persisted", order_id=str(order.id), item_count=len(items))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Order with business, courier, items and history eager-loaded.

        Returns ``None`` for non-existent or malformed ids.
        """
        try:
            return _base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        try:
            return (
                Order.objects.select_for_update(of=("self",))
                .alive()
                .select_related("business", "delivery_person")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Live orders, newest first.

        Examples of valid filters::

            {"client_id": "auth0|123"}
            {"business_id": business.id, "status": "pending"}
            {"delivery_person_id": courier.id, "status__in": ["delivering"]}
        """
        queryset = _base_queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset.order_by("-created_at"))

    def list_overdue_pending_ids(self, created_before: datetime) -> List[UUID]:
        return list(
            Order.objects.alive()
            .filter(status=OrderStatus.PENDING, created_at__lte=created_before)
            .values_list("id", flat=True)
        )

    def list_available(self) -> List[Order]:
        return list(
            _base_queryset()
            .filter(status=OrderStatus.READY, delivery_person__isnull=True)
            .order_by("created_at")
        )

    def list_terminal(self) -> List[Order]:
        return list(_base_queryset().filter(status__in=TERMINAL_STATES))

    def list_delivered_by_courier(self, courier_id: Any) -> List[Order]:
        return list(
            _base_queryset()
            .filter(delivery_person_id=courier_id, status=OrderStatus.DELIVERED)
            .order_by("-delivered_at", "-created_at")
        )

    # ------------------------------------------------------------------
    # Save / Delete
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist the order and record its pending domain events."""
        try:
            entity.save()
            rows = record_domain_events(entity, EVENT_TOPIC)
        except DatabaseError as exc:
            logger.error("order.save_failed", order_id=str(entity.id), error=str(exc))
            raise PersistenceFailure(str(exc)) from exc
        logger.info("order.saved", order_id=str(entity.id), event_count=len(rows))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        order = self.get_by_id(id)
        if not order:
            return False
        order.delete()
        logger.info("order.soft_deleted", order_id=str(id))
        return True

    @transaction.atomic
    def add_history(
        self,
        order_id: UUID,
        new_status: str,
        old_status: Optional[str] = None,
        notes: str = "",
        actor_id: str = "",
    ) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            notes=notes,
            actor_id=actor_id or "",
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=new_status,
        )
        return history

    @transaction.atomic
    def archive(self, order: Order) -> ArchivedOrder:
        archived = ArchivedOrder.objects.create(
            order_id=order.id,
            business_id=order.business_id,
            business_name=order.business.name,
            client_id=order.client_id,
            delivery_person_id=order.delivery_person_id,
            status=order.status,
            total_price=order.total_price,
            items=[item.as_snapshot() for item in order.items.all()],
            order_created_at=order.created_at,
        )
        order.hard_delete()
        logger.info("order.archived", order_id=str(archived.order_id))
        return archived

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def get_tracking(self, order_id: str) -> Optional[DeliveryTracking]:
        try:
            return DeliveryTracking.objects.filter(order_id=order_id).first()
        except (ValueError, ValidationError):
            return None

    def get_tracking_for_update(self, order_id: str) -> Optional[DeliveryTracking]:
        try:
            return (
                DeliveryTracking.objects.select_for_update()
                .filter(order_id=order_id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    @transaction.atomic
    def save_tracking(self, tracking: DeliveryTracking) -> DeliveryTracking:
        tracking.save()
        return tracking

    # ------------------------------------------------------------------
    # Ratings and messages
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_rating(self, data: Dict[str, Any]) -> Rating:
        return Rating.objects.create(**data)

    def average_business_rating(self, business_id: Any) -> Optional[Decimal]:
        result = Rating.objects.filter(
            business_id=business_id, business_rating__isnull=False
        ).aggregate(avg=Avg("business_rating"))
        return _round_rating(result["avg"])

    def average_courier_rating(self, courier_id: Any) -> Optional[Decimal]:
        result = Rating.objects.filter(
            delivery_person_id=courier_id, delivery_rating__isnull=False
        ).aggregate(avg=Avg("delivery_rating"))
        return _round_rating(result["avg"])

    @transaction.atomic
    def add_quick_message(self, order_id: UUID, sender_id: str, message: str) -> QuickMessage:
        return QuickMessage.objects.create(
            order_id=order_id, sender_id=sender_id, message=message
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _stats_queryset(self, business_id: Any = None):
        qs = Order.objects.alive()
        if business_id is not None:
            qs = qs.filter(business_id=business_id)
        return qs

    def count_by_status(self, business_id: Any = None) -> Dict[str, int]:
        counts = {value: 0 for value in OrderStatus.values}
        rows = self._stats_queryset(business_id).values("status").annotate(total=Count("id"))
        for row in rows:
            counts[row["status"]] = row["total"]
        return counts

    def delivered_revenue(self, business_id: Any = None) -> Decimal:
        result = (
            self._stats_queryset(business_id)
            .filter(status=OrderStatus.DELIVERED)
            .aggregate(revenue=Sum("total_price"))
        )
        return result["revenue"] or Decimal("0.00")

    def top_products(self, business_id: Any, limit: int = 5) -> List[Dict[str, Any]]:
        rows = (
            OrderItem.objects.filter(
                order__business_id=business_id, order__deleted_at__isnull=True
            )
            .values("name")
            .annotate(quantity=Sum("quantity"))
            .order_by("-quantity", "name")[:limit]
        )
        return [{"name": row["name"], "quantity": row["quantity"]} for row in rows]
