"""Order DTOs for the Service Layer.

Pydantic v2 contracts between the API layer and ``OrderService``.  DTOs are
immutable (``frozen=True``).

- ``CreateOrderDTO``: checkout payload (cart lines + delivery address).
- ``RateOrderDTO`` / ``QuickMessageDTO``: client and courier feedback.
- ``OrderOutputDTO``: order snapshot stored in the entity cache and returned
  by the API.
- ``TrackingOutputDTO``, ``CourierHistoryDTO``, ``GlobalStatsDTO``,
  ``BusinessStatsDTO``: read models.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, List, Optional
from uuid import UUID

from django.conf import settings
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import OrderStatus
from modules.orders.estimation import estimate_delivery_time
from shared.domain.geo import Coordinates

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CheckoutItemDTO(BaseModel):
    """One cart line.  Name and price are resolved from the menu."""

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class DeliveryAddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_address: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None

    @model_validator(mode="after")
    def address_must_be_locatable(self) -> DeliveryAddressDTO:
        if (self.lat is None) != (self.lng is None):
            raise ValueError("Both lat and lng are required when giving coordinates.")
        if self.lat is not None:
            Coordinates(lat=self.lat, lng=self.lng)
        if not self.full_address.strip() and self.lat is None:
            raise ValueError("A delivery address or coordinates are required.")
        return self

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(lat=self.lat, lng=self.lng)


class CreateOrderDTO(BaseModel):
    """Checkout request.

    Validates:
    - ``items`` contains at least one line.
    - A product appears at most once.
    """

    model_config = ConfigDict(frozen=True)

    business_id: UUID
    items: List[CheckoutItemDTO]
    delivery_address: DeliveryAddressDTO
    special_notes: str = ""

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(cls, v: List[CheckoutItemDTO]) -> List[CheckoutItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @model_validator(mode="after")
    def no_duplicate_products(self) -> CreateOrderDTO:
        product_ids = [item.product_id for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Duplicate product IDs are not allowed in the same order.")
        return self


class RateOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    business_rating: Optional[int] = Field(default=None, ge=1, le=5)
    delivery_rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: str = ""

    @model_validator(mode="after")
    def at_least_one_rating(self) -> RateOrderDTO:
        if self.business_rating is None and self.delivery_rating is None:
            raise ValueError("Give a business rating, a delivery rating or both.")
        return self


class QuickMessageDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str

    @field_validator("message")
    @classmethod
    def message_must_fit(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Message must not be empty.")
        if len(v) > 280:
            raise ValueError("Message must be at most 280 characters.")
        return v


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderItemOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    product_id: Optional[UUID]
    name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class StatusHistoryDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    old_status: Optional[str]
    new_status: str
    notes: str
    actor_id: str
    created_at: datetime

    @classmethod
    def from_entity(cls, history: OrderStatusHistory) -> StatusHistoryDTO:
        return cls(
            id=history.id,
            old_status=history.old_status,
            new_status=history.new_status,
            notes=history.notes,
            actor_id=history.actor_id,
            created_at=history.created_at,
        )


class OrderOutputDTO(BaseModel):
    """Order snapshot.

    ``auto_cancel_at`` is the absolute deadline of a pending order, so the
    snapshot stays valid while cached; the live countdown is derived from it.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    status: str
    client_id: str
    business_id: UUID
    business_name: str
    delivery_person_id: Optional[UUID]
    preparation_time: Optional[int]
    subtotal: Decimal
    delivery_fee: Decimal
    total_price: Decimal
    delivery_address: str
    delivery_location: Optional[Dict[str, float]]
    special_notes: str
    client_rating: Optional[int]
    delivery_rating: Optional[int]
    estimated_delivery: str
    auto_cancel_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOutputDTO]
    history: List[StatusHistoryDTO]

    @classmethod
    def from_entity(cls, order: Order) -> OrderOutputDTO:
        """Build a snapshot; assumes ``items`` and ``status_history`` are prefetched."""
        items = [
            OrderItemOutputDTO(
                id=item.id,
                product_id=item.product_id,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
            )
            for item in order.items.all()
        ]
        history = [StatusHistoryDTO.from_entity(h) for h in order.status_history.all()]
        location = order.delivery_location
        auto_cancel_at = None
        if order.status == OrderStatus.PENDING:
            auto_cancel_at = order.created_at + timedelta(
                seconds=settings.ORDER_AUTO_CANCEL_SECONDS
            )
        return cls(
            id=order.id,
            status=order.status,
            client_id=order.client_id,
            business_id=order.business_id,
            business_name=order.business.name,
            delivery_person_id=order.delivery_person_id,
            preparation_time=order.preparation_time,
            subtotal=order.subtotal,
            delivery_fee=order.delivery_fee,
            total_price=order.total_price,
            delivery_address=order.delivery_address,
            delivery_location=location.as_dict() if location else None,
            special_notes=order.special_notes,
            client_rating=order.client_rating,
            delivery_rating=order.delivery_rating,
            estimated_delivery=estimate_delivery_time(order, order.business),
            auto_cancel_at=auto_cancel_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=items,
            history=history,
        )


class TrackingOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    status: str
    position: Optional[Dict[str, float]]
    target: Optional[Dict[str, float]]
    distance_m: Optional[float]
    arrived: bool
    active: bool
    estimated_delivery: str


class DailyEarningsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    deliveries: int
    earnings: Decimal


class CourierHistoryDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_deliveries: int
    total_earnings: Decimal
    average_earning: Decimal
    by_day: List[DailyEarningsDTO]
    orders: List[OrderOutputDTO]


class GlobalStatsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    orders_by_status: Dict[str, int]
    total_orders: int
    delivered_revenue: Decimal
    online_couriers: int
    open_businesses: int


class ProductSalesDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    quantity: int


class BusinessStatsDTO(BaseModel):
    """Dashboard figures for one business over its live orders."""

    model_config = ConfigDict(frozen=True)

    business_id: UUID
    total_orders: int
    delivered_revenue: Decimal
    average_order_value: Decimal
    rating: Decimal
    orders_by_status: Dict[str, int]
    top_products: List[ProductSalesDTO]
