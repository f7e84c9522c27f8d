"""Django ORM implementation of the Business repository.

Missing rows are reported as ``None`` / ``False``; the Service Layer decides
which domain exception to raise.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Avg, DecimalField, Q, Value
from django.db.models.functions import Coalesce

from modules.businesses.models import Business, Product
from modules.businesses.repositories.interfaces import IBusinessRepository
from modules.core.exceptions import PersistenceFailure

logger = structlog.get_logger(__name__)


class BusinessDjangoRepository(IBusinessRepository):
    """Concrete Business repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Business]:
        try:
            return Business.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_owner(self, owner_id: str) -> Optional[Business]:
        return Business.objects.alive().filter(owner_id=owner_id).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Business]:
        filters = dict(filters or {})
        queryset = Business.objects.alive()

        category = filters.pop("category", None)
        if category and category != "all":
            queryset = queryset.filter(category=category)

        is_open = filters.pop("is_open", None)
        if is_open is not None:
            queryset = queryset.filter(is_open=is_open)

        search = (filters.pop("search", None) or "").strip()
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search)
                | Q(category__icontains=search)
                | Q(
                    id__in=Product.objects.alive()
                    .filter(name__icontains=search)
                    .values("business_id")
                )
            )

        min_avg = filters.pop("min_avg_price", None)
        max_avg = filters.pop("max_avg_price", None)
        if min_avg is not None or max_avg is not None:
            queryset = queryset.annotate(
                avg_price=Coalesce(
                    Avg(
                        "products__price",
                        filter=Q(products__deleted_at__isnull=True),
                    ),
                    Value(Decimal("0")),
                    output_field=DecimalField(max_digits=10, decimal_places=2),
                )
            )
            if min_avg is not None:
                queryset = queryset.filter(avg_price__gte=min_avg)
            if max_avg is not None:
                queryset = queryset.filter(avg_price__lte=max_avg)

        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset.order_by("name"))

    @transaction.atomic
    def save(self, entity: Business) -> Business:
        try:
            entity.save()
        except DatabaseError as exc:
            logger.error("business.save_failed", business_id=str(entity.id), error=str(exc))
            raise PersistenceFailure(str(exc)) from exc
        logger.info("business.saved", business_id=str(entity.id), owner_id=entity.owner_id)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        business = self.get_by_id(id)
        if not business:
            return False
        business.delete()
        logger.info("business.soft_deleted", business_id=str(id))
        return True

    def update_rating(self, id: str, rating: Decimal) -> None:
        Business.objects.filter(id=id).update(rating=rating)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def list_products(
        self, business_id: str, available_only: bool = False
    ) -> List[Product]:
        queryset = Product.objects.alive().filter(business_id=business_id)
        if available_only:
            queryset = queryset.filter(is_available=True)
        return list(queryset)

    def get_product(self, business_id: str, product_id: str) -> Optional[Product]:
        try:
            return (
                Product.objects.alive()
                .filter(business_id=business_id, id=product_id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_products(self, business_id: str, product_ids: List[str]) -> Dict[str, Product]:
        try:
            products = Product.objects.alive().filter(
                business_id=business_id, id__in=product_ids
            )
            return {str(product.id): product for product in products}
        except (ValueError, ValidationError):
            return {}

    @transaction.atomic
    def save_product(self, product: Product) -> Product:
        try:
            product.save()
        except DatabaseError as exc:
            logger.error("product.save_failed", product_id=str(product.id), error=str(exc))
            raise PersistenceFailure(str(exc)) from exc
        logger.info(
            "product.saved",
            product_id=str(product.id),
            business_id=str(product.business_id),
        )
        return product

    @transaction.atomic
    def delete_product(self, business_id: str, product_id: str) -> bool:
        product = self.get_product(business_id, product_id)
        if not product:
            return False
        product.delete()
        logger.info("product.soft_deleted", product_id=str(product_id))
        return True
