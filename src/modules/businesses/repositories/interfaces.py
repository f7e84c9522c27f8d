"""Business repository interface.

Products belong to the Business aggregate and are persisted through the
same repository.
"""

from __future__ import annotations

from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.businesses.models import Business, Product


class IBusinessRepository(IRepository["Business"]):
    """Repository contract for the Business aggregate."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Business]:
        """List live businesses.

        Supported filter keys: ``category``, ``is_open``, ``search`` (name,
        category or product name), ``min_avg_price`` / ``max_avg_price``
        (average price of available products).
        """

    @abstractmethod
    def get_by_owner(self, owner_id: str) -> Optional[Business]:
        """Retrieve the business owned by the given auth subject."""

    @abstractmethod
    def update_rating(self, id: str, rating: Decimal) -> None:
        """Store a recomputed average rating."""

    @abstractmethod
    def list_products(
        self, business_id: str, available_only: bool = False
    ) -> List[Product]:
        """List the menu of a business."""

    @abstractmethod
    def get_product(self, business_id: str, product_id: str) -> Optional[Product]:
        """Retrieve a live product that belongs to ``business_id``."""

    @abstractmethod
    def get_products(self, business_id: str, product_ids: List[str]) -> Dict[str, Product]:
        """Bulk look-up of live products of one business, keyed by id string."""

    @abstractmethod
    def save_product(self, product: Product) -> Product:
        """Persist (create or update) a product."""

    @abstractmethod
    def delete_product(self, business_id: str, product_id: str) -> bool:
        """Soft-delete a product; ``False`` when it does not exist."""
