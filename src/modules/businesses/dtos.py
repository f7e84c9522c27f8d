"""Business DTOs for the Service Layer.

Pydantic v2 models exchanged between the DRF views and ``BusinessService``.
All DTOs are immutable.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from shared.domain.geo import Coordinates


class LocationDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float

    @model_validator(mode="after")
    def within_range(self) -> LocationDTO:
        Coordinates(lat=self.lat, lng=self.lng)
        return self


class BusinessProfileDTO(BaseModel):
    """Profile fields for registration and partial updates.

    Every field is optional; ``None`` means "leave unchanged".
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    location: Optional[LocationDTO] = None
    delivery_time: Optional[str] = None
    delivery_fee: Optional[Decimal] = None
    is_open: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Name must not be empty.")
        return v.strip() if v is not None else v

    @field_validator("delivery_fee")
    @classmethod
    def fee_must_not_be_negative(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v < 0:
            raise ValueError("Delivery fee cannot be negative.")
        return v

    @field_validator("delivery_time")
    @classmethod
    def strip_delivery_time(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


class CreateProductDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    price: Decimal
    description: str = ""
    category: str = ""
    is_available: bool = True

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Name must not be empty.")
        return v.strip()


class UpdateProductDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    price: Optional[Decimal] = None
    description: Optional[str] = None
    category: Optional[str] = None
    is_available: Optional[bool] = None

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v


class BrowseQueryDTO(BaseModel):
    """Query parameters of the public business listing."""

    model_config = ConfigDict(frozen=True)

    category: Optional[str] = None
    is_open: Optional[bool] = None
    search: Optional[str] = None
    min_avg_price: Optional[Decimal] = None
    max_avg_price: Optional[Decimal] = None
    lat: Optional[str] = None
    lng: Optional[str] = None
    max_distance_km: Optional[float] = None

    @field_validator("max_distance_km")
    @classmethod
    def distance_must_be_positive(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("max_distance_km must be greater than zero.")
        return v

    @property
    def wants_distance_filter(self) -> bool:
        return self.lat is not None or self.lng is not None
