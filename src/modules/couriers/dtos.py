"""Courier DTOs (Pydantic v2, immutable)."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.couriers.models import VehicleType
from shared.domain.geo import Coordinates


class RegisterCourierDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    phone: str = ""
    vehicle_type: str = VehicleType.MOTORCYCLE

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Name must not be empty.")
        return v.strip()

    @field_validator("vehicle_type")
    @classmethod
    def vehicle_must_be_known(cls, v: str) -> str:
        if v not in VehicleType.values:
            raise ValueError(f"Unknown vehicle type: {v}")
        return v


class UpdateLocationDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float

    @model_validator(mode="after")
    def within_range(self) -> UpdateLocationDTO:
        Coordinates(lat=self.lat, lng=self.lng)
        return self

    def to_coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lng=self.lng)


class SetOnlineDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_online: bool
    location: Optional[UpdateLocationDTO] = None
