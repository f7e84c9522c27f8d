"""Courier service layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from django.db import transaction

from modules.couriers.exceptions import CourierAlreadyRegistered, CourierNotFound
from modules.couriers.models import DeliveryPerson

if TYPE_CHECKING:
    from modules.couriers.dtos import RegisterCourierDTO, SetOnlineDTO, UpdateLocationDTO
    from modules.couriers.repositories.interfaces import ICourierRepository

logger = structlog.get_logger(__name__)


class CourierService:
    """Profile, availability and position of couriers."""

    def __init__(self, repository: ICourierRepository) -> None:
        self._repo = repository

    @transaction.atomic
    def register_courier(self, user_id: str, dto: RegisterCourierDTO) -> DeliveryPerson:
        if self._repo.get_by_user(user_id):
            raise CourierAlreadyRegistered(f"{user_id} already has a courier profile.")
        courier = DeliveryPerson(
            user_id=user_id,
            name=dto.name,
            phone=dto.phone,
            vehicle_type=dto.vehicle_type,
        )
        courier = self._repo.save(courier)
        logger.info("courier.registered", courier_id=str(courier.id), user_id=user_id)
        return courier

    def get_profile(self, user_id: str) -> DeliveryPerson:
        courier = self._repo.get_by_user(user_id)
        if not courier:
            raise CourierNotFound(f"No courier profile for {user_id}.")
        return courier

    @transaction.atomic
    def set_online(self, user_id: str, dto: SetOnlineDTO) -> DeliveryPerson:
        courier = self.get_profile(user_id)
        courier.is_online = dto.is_online
        if dto.location is not None:
            courier.current_lat = dto.location.lat
            courier.current_lng = dto.location.lng
        courier = self._repo.save(courier)
        logger.info(
            "courier.online" if courier.is_online else "courier.offline",
            courier_id=str(courier.id),
        )
        return courier

    @transaction.atomic
    def update_location(self, user_id: str, dto: UpdateLocationDTO) -> DeliveryPerson:
        courier = self.get_profile(user_id)
        courier.current_lat = dto.lat
        courier.current_lng = dto.lng
        return self._repo.save(courier)
