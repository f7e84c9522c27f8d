"""Integration tests for the courier profile endpoints."""

from __future__ import annotations

import pytest

from modules.couriers.models import DeliveryPerson

pytestmark = pytest.mark.integration

URL = "/api/v1/couriers/"


class TestRegistration:
    def test_register(self, authenticated, courier_user):
        response = authenticated(courier_user).post(
            URL, {"name": "Ana", "phone": "5511112222", "vehicle_type": "bicicleta"}, format="json"
        )

        assert response.status_code == 201
        assert response.data["user_id"] == str(courier_user.pk)
        assert response.data["vehicle_type"] == "bicicleta"
        assert response.data["is_online"] is False

    def test_register_twice(self, authenticated, courier_user, courier):
        response = authenticated(courier_user).post(URL, {"name": "Ana"}, format="json")
        assert response.status_code == 409

    def test_unknown_vehicle(self, authenticated, courier_user):
        response = authenticated(courier_user).post(
            URL, {"name": "Ana", "vehicle_type": "patineta"}, format="json"
        )
        assert response.status_code == 400

    def test_clients_are_forbidden(self, authenticated, client_user):
        assert authenticated(client_user).post(URL, {"name": "Ana"}, format="json").status_code == 403


class TestProfile:
    def test_me(self, authenticated, courier_user, courier):
        response = authenticated(courier_user).get(f"{URL}me/")

        assert response.status_code == 200
        assert response.data["name"] == "Luis Repartidor"
        assert response.data["current_location"] == {"lat": 19.44, "lng": -99.14}

    def test_me_without_profile(self, authenticated, courier_user):
        assert authenticated(courier_user).get(f"{URL}me/").status_code == 404

    def test_go_offline(self, authenticated, courier_user, courier):
        response = authenticated(courier_user).patch(
            f"{URL}me/status/", {"is_online": False}, format="json"
        )

        assert response.status_code == 200
        assert DeliveryPerson.objects.get(id=courier.id).is_online is False

    def test_status_requires_flag(self, authenticated, courier_user, courier):
        response = authenticated(courier_user).patch(f"{URL}me/status/", {}, format="json")
        assert response.status_code == 400

    def test_update_location(self, authenticated, courier_user, courier):
        response = authenticated(courier_user).patch(
            f"{URL}me/location/", {"lat": 19.45, "lng": -99.15}, format="json"
        )

        assert response.status_code == 200
        courier.refresh_from_db()
        assert (courier.current_lat, courier.current_lng) == (19.45, -99.15)

    def test_location_out_of_range(self, authenticated, courier_user, courier):
        response = authenticated(courier_user).patch(
            f"{URL}me/location/", {"lat": 95, "lng": -99.15}, format="json"
        )
        assert response.status_code == 400
