"""Integration tests for the Business and menu endpoints.

Covers:
- Public browsing: filters, search over menu items, distance filter.
- Business detail with orderable products only.
- Owner profile registration and updates.
- Promotional uploads (size caps, removal).
- Menu management scoped to the owner's business.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from modules.businesses.models import Business, Product

pytestmark = pytest.mark.integration

URL = "/api/v1/businesses/"


@pytest.fixture()
def pizzeria(make_user):
    owner = make_user("negocio-pizza", "negocio")
    business = Business.objects.create(
        owner_id=str(owner.pk),
        name="Pizzería Napoli",
        category="pizza",
        location_lat=20.6736,
        location_lng=-103.344,
        delivery_time="40",
        is_open=False,
    )
    Product.objects.create(business=business, name="Margarita", price=Decimal("180.00"))
    return business


class TestBrowse:
    def test_public_listing(self, api_client, business, pizzeria):
        response = api_client.get(URL)

        assert response.status_code == 200
        assert response.data["count"] == 2
        assert response.data["distance_filter"] == "off"
        names = [entry["name"] for entry in response.data["results"]]
        assert names == ["Pizzería Napoli", "Tacos El Güero"]

    def test_entries_carry_browse_eta(self, api_client, business):
        entry = api_client.get(URL).data["results"][0]
        assert entry["estimated_delivery"] == "25-35 min"
        assert entry["distance_km"] is None

    def test_filter_by_category_and_open(self, api_client, business, pizzeria):
        pizza = api_client.get(URL, {"category": "pizza"}).data
        open_now = api_client.get(URL, {"is_open": "true"}).data
        assert [e["name"] for e in pizza["results"]] == ["Pizzería Napoli"]
        assert [e["name"] for e in open_now["results"]] == ["Tacos El Güero"]

    def test_search_matches_menu_items(self, api_client, business, product, pizzeria):
        response = api_client.get(URL, {"search": "pastor"})
        assert [e["name"] for e in response.data["results"]] == ["Tacos El Güero"]

    def test_average_price_filter(self, api_client, business, product, second_product, pizzeria):
        response = api_client.get(URL, {"max_avg_price": "50"})
        assert [e["name"] for e in response.data["results"]] == ["Tacos El Güero"]

    def test_distance_filter(self, api_client, business, pizzeria):
        response = api_client.get(URL, {"lat": "19.4326", "lng": "-99.1332"})

        assert response.data["distance_filter"] == "applied"
        assert [e["name"] for e in response.data["results"]] == ["Tacos El Güero"]
        assert response.data["results"][0]["distance_km"] == 0.0

    def test_partial_coordinates_fall_back_to_full_listing(self, api_client, business, pizzeria):
        response = api_client.get(URL, {"lat": "19.4326"})

        assert response.status_code == 200
        assert response.data["distance_filter"] == "unavailable"
        assert response.data["count"] == 2

    def test_detail_lists_available_products_only(self, api_client, business, product, second_product):
        second_product.is_available = False
        second_product.save()

        response = api_client.get(f"{URL}{business.id}/")

        assert response.status_code == 200
        assert [p["name"] for p in response.data["products"]] == ["Taco al pastor"]

    def test_unknown_business(self, api_client):
        response = api_client.get(f"{URL}00000000-0000-7000-8000-000000000000/")
        assert response.status_code == 404


class TestProfile:
    def test_register_business(self, authenticated, owner_user):
        client = authenticated(owner_user)

        response = client.post(
            URL,
            {
                "name": "Sushi Go",
                "category": "japonesa",
                "delivery_time": "30-40",
                "delivery_fee": "25.00",
                "location": {"lat": 19.42, "lng": -99.17},
            },
            format="json",
        )

        assert response.status_code == 201
        assert response.data["owner_id"] == str(owner_user.pk)
        assert response.data["location"] == {"lat": 19.42, "lng": -99.17}

    def test_second_registration_conflicts(self, authenticated, owner_user, business):
        response = authenticated(owner_user).post(URL, {"name": "Otro"}, format="json")
        assert response.status_code == 409

    def test_register_without_name(self, authenticated, owner_user):
        response = authenticated(owner_user).post(URL, {"category": "pizza"}, format="json")
        assert response.status_code == 400

    def test_clients_cannot_register(self, authenticated, client_user):
        response = authenticated(client_user).post(URL, {"name": "X"}, format="json")
        assert response.status_code == 403

    def test_update_mine(self, authenticated, owner_user, business):
        response = authenticated(owner_user).patch(
            f"{URL}mine/", {"is_open": False, "delivery_time": "45"}, format="json"
        )

        assert response.status_code == 200
        business.refresh_from_db()
        assert business.is_open is False
        assert business.delivery_time == "45"
        assert business.name == "Tacos El Güero"

    def test_mine_without_business(self, authenticated, owner_user):
        assert authenticated(owner_user).get(f"{URL}mine/").status_code == 404


class TestPromotions:
    def test_upload_and_remove(self, authenticated, owner_user, business):
        client = authenticated(owner_user)
        upload = SimpleUploadedFile("promo.png", b"x" * 1024, content_type="image/png")

        created = client.post(f"{URL}mine/promotions/", {"file": upload}, format="multipart")

        assert created.status_code == 201
        business.refresh_from_db()
        assert business.promotions == [created.data]

        removed = client.delete(
            f"{URL}mine/promotions/", {"path": created.data["path"]}, format="json"
        )

        assert removed.status_code == 204
        business.refresh_from_db()
        assert business.promotions == []

    def test_oversized_image(self, authenticated, owner_user, business):
        upload = SimpleUploadedFile("big.png", b"x" * (200 * 1024), content_type="image/png")
        response = authenticated(owner_user).post(
            f"{URL}mine/promotions/", {"file": upload}, format="multipart"
        )
        assert response.status_code == 413

    def test_missing_file(self, authenticated, owner_user, business):
        response = authenticated(owner_user).post(f"{URL}mine/promotions/", {}, format="multipart")
        assert response.status_code == 400

    def test_remove_unknown_path(self, authenticated, owner_user, business):
        response = authenticated(owner_user).delete(
            f"{URL}mine/promotions/", {"path": "promotions/nope.png"}, format="json"
        )
        assert response.status_code == 404


class TestMenu:
    def test_create_and_list(self, authenticated, owner_user, business):
        client = authenticated(owner_user)

        created = client.post(
            "/api/v1/products/",
            {"name": "Gringa", "price": "45.50", "category": "tacos"},
            format="json",
        )
        listed = client.get("/api/v1/products/", {"category": "tacos"})

        assert created.status_code == 201
        assert created.data["business_id"] == str(business.id)
        assert [p["name"] for p in listed.data] == ["Gringa"]

    def test_price_must_be_positive(self, authenticated, owner_user, business):
        response = authenticated(owner_user).post(
            "/api/v1/products/", {"name": "Gratis", "price": "0"}, format="json"
        )
        assert response.status_code == 400

    def test_toggle_availability(self, authenticated, owner_user, product):
        response = authenticated(owner_user).patch(
            f"/api/v1/products/{product.id}/", {"is_available": False}, format="json"
        )

        assert response.status_code == 200
        product.refresh_from_db()
        assert product.is_available is False
        assert product.price == Decimal("25.00")

    def test_other_owner_cannot_edit(self, authenticated, make_user, product):
        stranger = make_user("negocio-x", "negocio")
        Business.objects.create(owner_id=str(stranger.pk), name="Ajeno")

        response = authenticated(stranger).patch(
            f"/api/v1/products/{product.id}/", {"price": "1.00"}, format="json"
        )

        assert response.status_code == 404

    def test_delete(self, authenticated, owner_user, product):
        response = authenticated(owner_user).delete(f"/api/v1/products/{product.id}/")

        assert response.status_code == 204
        assert not Product.objects.alive().filter(id=product.id).exists()
