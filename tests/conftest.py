from decimal import Decimal
from unittest.mock import patch

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.businesses.models import Business, Product
from modules.core.roles import Actor, Role
from modules.couriers.models import DeliveryPerson

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Order snapshots live in the locmem cache; isolate them per test."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def no_timers():
    """Keep order timers off the broker; yields the patched helpers."""
    with patch("modules.orders.services.schedule_auto_cancel") as auto_cancel, patch(
        "modules.orders.services.schedule_tracking_tick"
    ) as tracking_tick, patch("modules.orders.services.revoke_task") as revoke:
        yield {"auto_cancel": auto_cancel, "tracking_tick": tracking_tick, "revoke": revoke}


# ---------------------------------------------------------------------------
# Users and roles
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_user():
    """Create a local user whose role is carried as a Django group."""

    def _make(username: str, role: str):
        user = User.objects.create_user(username=username, password="testpass123")
        group, _ = Group.objects.get_or_create(name=role)
        user.groups.add(group)
        return user

    return _make


@pytest.fixture()
def client_user(make_user):
    return make_user("cliente1", Role.CLIENT)


@pytest.fixture()
def owner_user(make_user):
    return make_user("negocio1", Role.BUSINESS)


@pytest.fixture()
def courier_user(make_user):
    return make_user("repartidor1", Role.COURIER)


@pytest.fixture()
def admin_user(make_user):
    return make_user("admin1", Role.ADMIN)


@pytest.fixture()
def client_actor(client_user):
    return Actor.from_user(client_user)


@pytest.fixture()
def owner_actor(owner_user):
    return Actor.from_user(owner_user)


@pytest.fixture()
def courier_actor(courier_user):
    return Actor.from_user(courier_user)


@pytest.fixture()
def authenticated(api_client):
    """Return a helper that force-authenticates ``api_client`` as a user."""

    def _as(user):
        api_client.force_authenticate(user=user)
        return api_client

    return _as


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def business(owner_user):
    return Business.objects.create(
        owner_id=str(owner_user.pk),
        name="Tacos El Güero",
        category="mexicana",
        phone="5512345678",
        address="Av. Reforma 100, CDMX",
        location_lat=19.4326,
        location_lng=-99.1332,
        delivery_time="25-35",
        delivery_fee=Decimal("30.00"),
        is_open=True,
    )


@pytest.fixture()
def product(business):
    return Product.objects.create(
        business=business,
        name="Taco al pastor",
        category="tacos",
        price=Decimal("25.00"),
    )


@pytest.fixture()
def second_product(business):
    return Product.objects.create(
        business=business,
        name="Agua de horchata",
        category="bebidas",
        price=Decimal("20.00"),
    )


@pytest.fixture()
def courier(courier_user):
    return DeliveryPerson.objects.create(
        user_id=str(courier_user.pk),
        name="Luis Repartidor",
        phone="5598765432",
        is_online=True,
        current_lat=19.4400,
        current_lng=-99.1400,
    )


@pytest.fixture()
def order_service():
    from modules.orders.tasks import build_order_service

    return build_order_service()


@pytest.fixture()
def place_order(order_service, client_actor, business, product, no_timers):
    """Check out ``quantity`` x ``product`` for the client fixture."""
    from modules.orders.dtos import CheckoutItemDTO, CreateOrderDTO, DeliveryAddressDTO

    def _place(quantity: int = 2, **address):
        dto = CreateOrderDTO(
            business_id=business.id,
            items=[CheckoutItemDTO(product_id=product.id, quantity=quantity)],
            delivery_address=DeliveryAddressDTO(
                full_address=address.get("full_address", "Calle Durango 25, Roma Norte"),
                lat=address.get("lat", 19.4180),
                lng=address.get("lng", -99.1600),
            ),
        )
        return order_service.create_order(client_actor.subject, dto)

    return _place
