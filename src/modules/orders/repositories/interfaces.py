"""Order repository interface.

The Order aggregate covers its items, status history, tracking row, quick
messages and rating.  The Service Layer depends only on this contract.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import (
        ArchivedOrder,
        DeliveryTracking,
        Order,
        OrderStatusHistory,
        QuickMessage,
        Rating,
    )


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` holds the order fields plus ``items``: a list of dicts with
        ``product_id``, ``name``, ``quantity`` and ``unit_price``.
        """

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside ``transaction.atomic()``.
        """

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        new_status: str,
        old_status: Optional[str] = None,
        notes: str = "",
        actor_id: str = "",
    ) -> OrderStatusHistory:
        """Append a record to the order's audit trail."""

    @abstractmethod
    def list_overdue_pending_ids(self, created_before: datetime) -> List[UUID]:
        """Ids of pending orders created at or before ``created_before``."""

    @abstractmethod
    def list_available(self) -> List[Order]:
        """Orders ready for pickup with no courier assigned."""

    @abstractmethod
    def list_terminal(self) -> List[Order]:
        """Delivered and cancelled orders still in the live table."""

    @abstractmethod
    def archive(self, order: Order) -> ArchivedOrder:
        """Copy ``order`` into ``order_history`` and purge the live row."""

    # Tracking

    @abstractmethod
    def get_tracking(self, order_id: str) -> Optional[DeliveryTracking]:
        """Tracking row of an order, if any."""

    @abstractmethod
    def get_tracking_for_update(self, order_id: str) -> Optional[DeliveryTracking]:
        """Tracking row with a row-level lock."""

    @abstractmethod
    def save_tracking(self, tracking: DeliveryTracking) -> DeliveryTracking:
        """Persist a tracking row."""

    # Ratings and messages

    @abstractmethod
    def create_rating(self, data: Dict[str, Any]) -> Rating:
        """Store a client rating."""

    @abstractmethod
    def average_business_rating(self, business_id: Any) -> Optional[Decimal]:
        """Average of every business rating received, or ``None``."""

    @abstractmethod
    def average_courier_rating(self, courier_id: Any) -> Optional[Decimal]:
        """Average of every delivery rating received, or ``None``."""

    @abstractmethod
    def add_quick_message(self, order_id: UUID, sender_id: str, message: str) -> QuickMessage:
        """Attach a courier message to an order."""

    # Statistics

    @abstractmethod
    def count_by_status(self, business_id: Any = None) -> Dict[str, int]:
        """Number of live orders per status, optionally for one business."""

    @abstractmethod
    def delivered_revenue(self, business_id: Any = None) -> Decimal:
        """Sum of ``total_price`` over delivered orders."""

    @abstractmethod
    def top_products(self, business_id: Any, limit: int = 5) -> List[Dict[str, Any]]:
        """Best sellers of a business as ``{"name", "quantity"}``, most sold first."""

    @abstractmethod
    def list_delivered_by_courier(self, courier_id: Any) -> List[Order]:
        """Delivered orders of a courier, newest first."""
