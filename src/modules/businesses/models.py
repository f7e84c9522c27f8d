"""Business and Product models.

Business rules implemented:
- A business is owned by exactly one auth subject (``owner_id``).
- ``delivery_time`` is free text: a range ("25-35") or a single number of
  minutes; the ETA estimator interprets it.
- ``rating`` is the average of all business ratings, one decimal place.
- ``promotions`` holds uploaded promotional files as ``{name, url, path}``.
- Product price must be greater than zero; unavailable products cannot be
  ordered (enforced at service layer).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel
from shared.domain.geo import Coordinates


class Business(SoftDeleteModel):
    """Business (restaurant) aggregate root."""

    owner_id = models.CharField(max_length=255, unique=True)
    name = models.CharField(max_length=255)
    category = models.CharField(max_length=100, blank=True, default="")
    description = models.TextField(blank=True, default="")
    phone = models.CharField(max_length=30, blank=True, default="")
    address = models.TextField(blank=True, default="")
    location_lat = models.FloatField(null=True, blank=True)
    location_lng = models.FloatField(null=True, blank=True)
    delivery_time = models.CharField(max_length=20, blank=True, default="")
    delivery_fee = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    is_open = models.BooleanField(default=True)
    rating = models.DecimalField(max_digits=2, decimal_places=1, default=Decimal("0.0"))
    promotions = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "businesses"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["category"], name="businesses_category_idx"),
            models.Index(fields=["is_open"], name="businesses_open_idx"),
        ]

    @property
    def location(self) -> Optional[Coordinates]:
        if self.location_lat is None or self.location_lng is None:
            return None
        return Coordinates(lat=self.location_lat, lng=self.location_lng)

    def __str__(self) -> str:
        return self.name


class Product(SoftDeleteModel):
    """Menu item sold by a business."""

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name="products",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=100, blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    is_available = models.BooleanField(default=True)

    class Meta:
        db_table = "products"
        ordering = ["category", "name"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(price__gt=0),
                name="products_price_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} (${self.price})"
