"""Order aggregate and its satellite records.

Business rules implemented:
- Status moves only along ``VALID_TRANSITIONS``; terminal orders never
  change again (guards live on ``Order``, commands on ``OrderService``).
- A pending order is cancelled once ``ORDER_AUTO_CANCEL_SECONDS`` have
  elapsed since creation without a business response.
- ``preparation_time`` is set once, only while the order is accepted.
- ``delivery_person`` is set iff the order is delivering or delivered.
- OrderItem snapshots product name and price at checkout; ``subtotal`` is
  always ``quantity * unit_price``.
- Every status change or preparation time capture appends an
  ``OrderStatusHistory`` row (empty ``actor_id`` means the system).
- Ratings are 1..5 and set at most once per order.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel, SoftDeleteModel
from modules.orders.constants import TERMINAL_STATES, VALID_TRANSITIONS, OrderStatus
from modules.orders.exceptions import InvalidTransition, TerminalState
from shared.domain.events import DomainEventMixin
from shared.domain.geo import Coordinates

RATING_VALIDATORS = [MinValueValidator(1), MaxValueValidator(5)]


class Order(DomainEventMixin, SoftDeleteModel):
    """Order aggregate root."""

    client_id = models.CharField(max_length=255, db_index=True)
    business = models.ForeignKey(
        "businesses.Business",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    delivery_person = models.ForeignKey(
        "couriers.DeliveryPerson",
        on_delete=models.PROTECT,
        related_name="orders",
        null=True,
        blank=True,
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    preparation_time = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
    )
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    delivery_fee = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal("0.00"))
    total_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    delivery_address = models.TextField(blank=True, default="")
    delivery_lat = models.FloatField(null=True, blank=True)
    delivery_lng = models.FloatField(null=True, blank=True)
    special_notes = models.TextField(blank=True, default="")
    client_rating = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=RATING_VALIDATORS
    )
    delivery_rating = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=RATING_VALIDATORS
    )
    auto_cancel_task_id = models.CharField(max_length=255, blank=True, default="")
    accepted_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["business", "status"], name="orders_business_status_idx"),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def ensure_can_transition(self, new_status: str) -> None:
        """Raise unless ``new_status`` is reachable from the current status.

        Raises:
            TerminalState: the order is delivered or cancelled.
            InvalidTransition: the edge does not exist.
        """
        if self.is_terminal:
            raise TerminalState(f"Order {self.id} is already {self.status}.")
        if not self.can_transition_to(new_status):
            raise InvalidTransition(
                f"Cannot transition from {self.status} to {new_status}."
            )

    # ------------------------------------------------------------------
    # Auto-cancel countdown
    # ------------------------------------------------------------------

    def seconds_until_auto_cancel(self, now: Optional[datetime] = None) -> int:
        """Whole seconds left before a pending order is auto-cancelled.

        May be zero or negative once the deadline has passed.
        """
        now = now or timezone.now()
        elapsed = math.floor((now - self.created_at).total_seconds())
        return settings.ORDER_AUTO_CANCEL_SECONDS - elapsed

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        return (
            self.status == OrderStatus.PENDING
            and self.seconds_until_auto_cancel(now) <= 0
        )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    @property
    def delivery_location(self) -> Optional[Coordinates]:
        if self.delivery_lat is None or self.delivery_lng is None:
            return None
        return Coordinates(lat=self.delivery_lat, lng=self.delivery_lng)

    @property
    def short_id(self) -> str:
        return str(self.id)[-6:]

    def __str__(self) -> str:
        return f"Order {self.short_id} ({self.status})"


class OrderItem(BaseModel):
    """Checkout snapshot of one cart line.

    ``product`` is kept only as a reference; name and price never follow
    later menu edits.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "businesses.Product",
        on_delete=models.SET_NULL,
        related_name="order_items",
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, editable=False)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def as_snapshot(self) -> dict[str, Any]:
        return {
            "product_id": str(self.product_id) if self.product_id else None,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "subtotal": str(self.subtotal),
        }

    def __str__(self) -> str:
        return f"{self.name} x{self.quantity} (${self.subtotal})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail of status changes and preparation captures.

    Audit rows are immutable, so this is a ``BaseModel`` and never
    soft-deleted.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    actor_id = models.CharField(max_length=255, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["order", "-created_at"], name="osh_order_created_idx"),
        ]

    @property
    def is_system(self) -> bool:
        return not self.actor_id

    def __str__(self) -> str:
        return f"{self.order_id}: {self.old_status} -> {self.new_status}"


class Rating(BaseModel):
    """Client feedback for a delivered order.

    ``order`` is nulled when completed orders are archived so ratings keep
    counting towards business and courier averages.
    """

    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.SET_NULL,
        related_name="rating",
        null=True,
        blank=True,
    )
    client_id = models.CharField(max_length=255)
    business = models.ForeignKey(
        "businesses.Business",
        on_delete=models.CASCADE,
        related_name="ratings",
    )
    delivery_person = models.ForeignKey(
        "couriers.DeliveryPerson",
        on_delete=models.SET_NULL,
        related_name="ratings",
        null=True,
        blank=True,
    )
    business_rating = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=RATING_VALIDATORS
    )
    delivery_rating = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=RATING_VALIDATORS
    )
    comment = models.TextField(blank=True, default="")

    class Meta:
        db_table = "ratings"
        ordering = ["-created_at"]


class QuickMessage(BaseModel):
    """Short courier-to-client note on an order in delivery."""

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="quick_messages",
    )
    sender_id = models.CharField(max_length=255)
    message = models.CharField(max_length=280)

    class Meta:
        db_table = "quick_messages"
        ordering = ["created_at"]


class ArchivedOrder(BaseModel):
    """Snapshot of a terminal order kept after the live row is purged."""

    order_id = models.UUIDField(unique=True)
    business_id = models.UUIDField()
    business_name = models.CharField(max_length=255, blank=True, default="")
    client_id = models.CharField(max_length=255)
    delivery_person_id = models.UUIDField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    total_price = models.DecimalField(max_digits=10, decimal_places=2)
    items = models.JSONField(default=list)
    order_created_at = models.DateTimeField()

    class Meta:
        db_table = "order_history"
        ordering = ["-order_created_at"]


class DeliveryTracking(BaseModel):
    """Simulated courier position for an order in delivery."""

    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="tracking",
    )
    current_lat = models.FloatField()
    current_lng = models.FloatField()
    target_lat = models.FloatField()
    target_lng = models.FloatField()
    arrived = models.BooleanField(default=False)
    active = models.BooleanField(default=True)
    ticks = models.PositiveIntegerField(default=0)
    tick_task_id = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "delivery_tracking"

    @property
    def position(self) -> Coordinates:
        return Coordinates(lat=self.current_lat, lng=self.current_lng)

    @property
    def target(self) -> Coordinates:
        return Coordinates(lat=self.target_lat, lng=self.target_lng)
