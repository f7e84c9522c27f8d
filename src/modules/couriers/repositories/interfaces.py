"""Courier repository interface."""

from __future__ import annotations

from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.couriers.models import DeliveryPerson


class ICourierRepository(IRepository["DeliveryPerson"]):
    """Repository contract for the DeliveryPerson aggregate."""

    @abstractmethod
    def get_by_user(self, user_id: str) -> Optional[DeliveryPerson]:
        """Retrieve the courier profile of an auth subject."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[DeliveryPerson]:
        """Retrieve a courier with a row-level lock (SELECT FOR UPDATE).

        Must be called inside ``transaction.atomic()``.
        """

    @abstractmethod
    def credit_delivery(self, id: str, commission: Decimal) -> None:
        """Atomically add ``commission`` to earnings and one delivery to the count."""

    @abstractmethod
    def update_rating(self, id: str, rating: Decimal) -> None:
        """Store a recomputed average rating."""

    @abstractmethod
    def count_online(self) -> int:
        """Number of live couriers currently online."""
