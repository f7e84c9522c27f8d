"""Courier (delivery person) model.

Business rules implemented:
- One courier profile per auth subject (``user_id``).
- Only online couriers may claim orders (enforced at service layer).
- ``earnings`` and ``total_deliveries`` only grow, through atomic
  ``F()`` updates when a delivery completes.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel
from shared.domain.geo import Coordinates


class VehicleType(models.TextChoices):
    MOTORCYCLE = "moto", "Moto"
    BICYCLE = "bicicleta", "Bicicleta"
    CAR = "auto", "Auto"
    WALKING = "a_pie", "A pie"


class DeliveryPerson(SoftDeleteModel):
    user_id = models.CharField(max_length=255, unique=True)
    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=30, blank=True, default="")
    vehicle_type = models.CharField(
        max_length=20,
        choices=VehicleType.choices,
        default=VehicleType.MOTORCYCLE,
    )
    is_online = models.BooleanField(default=False)
    current_lat = models.FloatField(null=True, blank=True)
    current_lng = models.FloatField(null=True, blank=True)
    earnings = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    total_deliveries = models.PositiveIntegerField(default=0)
    rating = models.DecimalField(max_digits=2, decimal_places=1, default=Decimal("0.0"))

    class Meta:
        db_table = "delivery_persons"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["is_online"], name="couriers_online_idx"),
        ]

    @property
    def current_location(self) -> Optional[Coordinates]:
        if self.current_lat is None or self.current_lng is None:
            return None
        return Coordinates(lat=self.current_lat, lng=self.current_lng)

    def __str__(self) -> str:
        return f"{self.name} ({self.get_vehicle_type_display()})"
