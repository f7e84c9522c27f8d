"""Business service layer (Use Cases).

Orchestrates the Business aggregate: owner registration and profile
updates, menu management, promotional uploads and the public browse
listing.

Business rules enforced here:
- One business per owner subject.
- Products are managed only by the owning business.
- The browse distance filter needs both ``lat`` and ``lng``; a partial or
  unparsable pair raises ``LocationUnavailable``.
- Businesses without a location never match an active distance filter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.conf import settings
from django.db import transaction

from modules.businesses.exceptions import (
    BusinessAlreadyRegistered,
    BusinessNotFound,
    ProductNotFound,
    PromotionNotFound,
)
from modules.businesses.models import Business, Product
from modules.businesses.storage import PromotionStorage
from modules.core.exceptions import LocationUnavailable, PersistenceFailure
from modules.orders.estimation import estimate_delivery_time
from shared.domain.geo import Coordinates, haversine_distance_km

if TYPE_CHECKING:
    from modules.businesses.dtos import (
        BrowseQueryDTO,
        BusinessProfileDTO,
        CreateProductDTO,
        UpdateProductDTO,
    )
    from modules.businesses.repositories.interfaces import IBusinessRepository

logger = structlog.get_logger(__name__)

PROFILE_FIELDS = (
    "name",
    "category",
    "description",
    "phone",
    "address",
    "delivery_time",
    "delivery_fee",
    "is_open",
)


@dataclass(frozen=True)
class BrowseEntry:
    """One row of the public listing."""

    business: Business
    distance_km: Optional[float]
    estimated_delivery: str


@dataclass(frozen=True)
class BrowseResult:
    entries: List[BrowseEntry]
    distance_filter: str


def parse_origin(lat: Any, lng: Any) -> Coordinates:
    """Build the browse origin from raw query values.

    Raises:
        LocationUnavailable: a coordinate is missing or not a valid number.
    """
    if lat in (None, "") or lng in (None, ""):
        raise LocationUnavailable("Both lat and lng are required for distance filtering.")
    try:
        return Coordinates(lat=float(lat), lng=float(lng))
    except (TypeError, ValueError) as exc:
        raise LocationUnavailable(str(exc)) from exc


class BusinessService:
    """Application service for the Business aggregate."""

    def __init__(
        self,
        repository: IBusinessRepository,
        storage: Optional[PromotionStorage] = None,
    ) -> None:
        self._repo = repository
        self._storage = storage or PromotionStorage()

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    @transaction.atomic
    def register_business(self, owner_id: str, dto: BusinessProfileDTO) -> Business:
        """Create the business profile of ``owner_id``.

        Raises:
            BusinessAlreadyRegistered: the owner already has a business.
        """
        if self._repo.get_by_owner(owner_id):
            logger.warning("business.duplicate_owner", owner_id=owner_id)
            raise BusinessAlreadyRegistered(f"Owner {owner_id} already has a business.")
        if not dto.name:
            raise ValueError("Name is required.")

        business = Business(owner_id=owner_id)
        self._apply_profile(business, dto)
        business = self._repo.save(business)
        logger.info("business.registered", business_id=str(business.id), owner_id=owner_id)
        return business

    @transaction.atomic
    def update_profile(self, owner_id: str, dto: BusinessProfileDTO) -> Business:
        business = self.get_owned_business(owner_id)
        self._apply_profile(business, dto)
        business = self._repo.save(business)
        logger.info("business.profile_updated", business_id=str(business.id))
        return business

    def get_business(self, id: str) -> Business:
        business = self._repo.get_by_id(id)
        if not business:
            raise BusinessNotFound(f"Business {id} not found.")
        return business

    def get_owned_business(self, owner_id: str) -> Business:
        business = self._repo.get_by_owner(owner_id)
        if not business:
            raise BusinessNotFound(f"No business registered for {owner_id}.")
        return business

    @staticmethod
    def _apply_profile(business: Business, dto: BusinessProfileDTO) -> None:
        for field in PROFILE_FIELDS:
            value = getattr(dto, field)
            if value is not None:
                setattr(business, field, value)
        if dto.location is not None:
            business.location_lat = dto.location.lat
            business.location_lng = dto.location.lng

    # ------------------------------------------------------------------
    # Browse
    # ------------------------------------------------------------------

    def browse(self, query: BrowseQueryDTO) -> BrowseResult:
        """Public listing with optional distance filter and browse ETA.

        Raises:
            LocationUnavailable: coordinates were supplied but are incomplete
                or invalid.
        """
        origin = parse_origin(query.lat, query.lng) if query.wants_distance_filter else None
        max_km = query.max_distance_km or settings.BUSINESS_MAX_DISTANCE_KM

        businesses = self._repo.list(
            {
                "category": query.category,
                "is_open": query.is_open,
                "search": query.search,
                "min_avg_price": query.min_avg_price,
                "max_avg_price": query.max_avg_price,
            }
        )

        entries = []
        for business in businesses:
            distance = None
            if origin is not None:
                location = business.location
                if location is None:
                    continue
                distance = haversine_distance_km(origin, location)
                if distance > max_km:
                    continue
            entries.append(
                BrowseEntry(
                    business=business,
                    distance_km=distance,
                    estimated_delivery=estimate_delivery_time(None, business),
                )
            )

        if origin is not None:
            entries.sort(key=lambda entry: entry.distance_km)
        return BrowseResult(
            entries=entries,
            distance_filter="applied" if origin is not None else "off",
        )

    # ------------------------------------------------------------------
    # Promotions
    # ------------------------------------------------------------------

    @transaction.atomic
    def add_promotion(self, owner_id: str, upload: Any) -> Dict[str, str]:
        business = self.get_owned_business(owner_id)
        descriptor = self._storage.upload(business.id, upload)
        business.promotions = [*(business.promotions or []), descriptor]
        try:
            self._repo.save(business)
        except PersistenceFailure:
            self._storage.delete(descriptor["path"])
            raise
        return descriptor

    @transaction.atomic
    def remove_promotion(self, owner_id: str, path: str) -> None:
        business = self.get_owned_business(owner_id)
        promotions = business.promotions or []
        remaining = [promo for promo in promotions if promo.get("path") != path]
        if len(remaining) == len(promotions):
            raise PromotionNotFound(f"{path} is not a promotion of this business.")
        self._storage.delete(path)
        business.promotions = remaining
        self._repo.save(business)

    # ------------------------------------------------------------------
    # Menu
    # ------------------------------------------------------------------

    def list_menu(self, business_id: str, available_only: bool = True) -> List[Product]:
        self.get_business(business_id)
        return self._repo.list_products(business_id, available_only=available_only)

    @transaction.atomic
    def create_product(self, owner_id: str, dto: CreateProductDTO) -> Product:
        business = self.get_owned_business(owner_id)
        product = Product(
            business=business,
            name=dto.name,
            price=dto.price,
            description=dto.description,
            category=dto.category,
            is_available=dto.is_available,
        )
        product = self._repo.save_product(product)
        logger.info("product.created", product_id=str(product.id), business_id=str(business.id))
        return product

    @transaction.atomic
    def update_product(self, owner_id: str, product_id: str, dto: UpdateProductDTO) -> Product:
        business = self.get_owned_business(owner_id)
        product = self._repo.get_product(business.id, product_id)
        if not product:
            raise ProductNotFound(f"Product {product_id} not found.")
        for field in ("name", "price", "description", "category", "is_available"):
            value = getattr(dto, field)
            if value is not None:
                setattr(product, field, value)
        return self._repo.save_product(product)

    @transaction.atomic
    def delete_product(self, owner_id: str, product_id: str) -> None:
        business = self.get_owned_business(owner_id)
        if not self._repo.delete_product(business.id, product_id):
            raise ProductNotFound(f"Product {product_id} not found.")
