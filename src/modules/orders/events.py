"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when a client checks out."""

    business_id: str = ""
    client_id: str = ""


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised on every status transition."""

    old_status: str = ""
    new_status: str = ""


@dataclass(frozen=True)
class OrderCancelled(OrderStatusChanged):
    """Raised when an order reaches ``cancelled``.

    ``automatic`` distinguishes the response-timeout cancellation from
    business rejection and manual cancellation.
    """

    automatic: bool = False


@dataclass(frozen=True)
class PreparationTimeSet(DomainEvent):
    minutes: int = 0


@dataclass(frozen=True)
class CourierAssigned(OrderStatusChanged):
    courier_id: str = ""


@dataclass(frozen=True)
class OrderDelivered(OrderStatusChanged):
    courier_id: str = ""
    commission: str = "0"


@dataclass(frozen=True)
class OrderRated(DomainEvent):
    business_rating: int | None = None
    delivery_rating: int | None = None
