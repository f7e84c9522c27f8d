"""Unit tests for CourierService and courier DTOs."""

from __future__ import annotations

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from pydantic import ValidationError

from modules.couriers.dtos import RegisterCourierDTO, SetOnlineDTO, UpdateLocationDTO
from modules.couriers.exceptions import CourierAlreadyRegistered, CourierNotFound
from modules.couriers.models import DeliveryPerson, VehicleType
from modules.couriers.services import CourierService

pytestmark = pytest.mark.unit


@pytest.fixture()
def courier():
    return DeliveryPerson(id=uuid4(), user_id="user-1", name="Marta", is_online=False)


@pytest.fixture()
def repo(courier):
    repo = MagicMock()
    repo.get_by_user.side_effect = lambda user: courier if user == "user-1" else None
    repo.save.side_effect = lambda entity: entity
    return repo


@pytest.fixture()
def service(repo):
    return CourierService(repository=repo)


class TestCourierDTOs:
    def test_unknown_vehicle(self):
        with pytest.raises(ValidationError):
            RegisterCourierDTO(name="Marta", vehicle_type="helicóptero")

    def test_blank_name(self):
        with pytest.raises(ValidationError):
            RegisterCourierDTO(name="  ")

    def test_location_range(self):
        with pytest.raises(ValidationError):
            UpdateLocationDTO(lat=10, lng=200)


class TestCourierService:
    def test_register(self, service):
        courier = service.register_courier(
            "user-2", RegisterCourierDTO(name="Pedro", vehicle_type=VehicleType.BICYCLE)
        )
        assert courier.user_id == "user-2"
        assert courier.vehicle_type == "bicicleta"
        assert courier.is_online is False

    def test_register_twice(self, service):
        with pytest.raises(CourierAlreadyRegistered):
            service.register_courier("user-1", RegisterCourierDTO(name="Marta"))

    def test_missing_profile(self, service):
        with pytest.raises(CourierNotFound):
            service.get_profile("ghost")

    def test_go_online_with_location(self, service, courier):
        dto = SetOnlineDTO(is_online=True, location=UpdateLocationDTO(lat=19.4, lng=-99.1))

        service.set_online("user-1", dto)

        assert courier.is_online is True
        assert courier.current_location.as_dict() == {"lat": 19.4, "lng": -99.1}

    def test_update_location(self, service, courier):
        service.update_location("user-1", UpdateLocationDTO(lat=19.5, lng=-99.2))
        assert (courier.current_lat, courier.current_lng) == (19.5, -99.2)
