"""Unit tests for OrderService with mocked repositories.

Covers:
- Checkout validation (business open, products on the menu and available).
- Address resolution through the reverse geocoder.
- Ownership checks on business commands.
- Preparation time capture rules.
- Courier claim rules (online, ready, not yet assigned).
- Rating rules and average refresh.
- In-memory state restored when persistence fails.
- Business dashboard figures.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from django.db import connection

from modules.businesses.exceptions import (
    BusinessClosed,
    BusinessNotFound,
    ProductNotFound,
    ProductUnavailable,
)
from modules.businesses.models import Business, Product
from modules.core.exceptions import PersistenceFailure
from modules.core.roles import Actor, Role
from modules.couriers.exceptions import CourierNotFound, CourierOffline
from modules.couriers.models import DeliveryPerson
from modules.orders.constants import OrderStatus
from modules.orders.dtos import (
    CheckoutItemDTO,
    CreateOrderDTO,
    DeliveryAddressDTO,
    RateOrderDTO,
)
from modules.orders.exceptions import (
    AlreadyAssigned,
    AlreadyRated,
    InvalidTransition,
    NotReady,
    OrderNotFound,
    RatingNotAllowed,
    TerminalState,
)
from modules.orders.models import Order
from modules.orders.services import OrderService, commission_for

pytestmark = pytest.mark.unit

OWNER = Actor(subject="owner-1", role=Role.BUSINESS)
STRANGER = Actor(subject="owner-2", role=Role.BUSINESS)
CLIENT = Actor(subject="client-1", role=Role.CLIENT)
COURIER = Actor(subject="courier-1", role=Role.COURIER)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def business():
    return Business(
        id=uuid4(),
        owner_id=OWNER.subject,
        name="Pizzería Napoli",
        delivery_time="25-35",
        delivery_fee=Decimal("20.00"),
        is_open=True,
    )


@pytest.fixture()
def product(business):
    return Product(id=uuid4(), business=business, name="Margarita", price=Decimal("120.00"))


@pytest.fixture()
def courier():
    return DeliveryPerson(id=uuid4(), user_id=COURIER.subject, name="Ana", is_online=True)


@pytest.fixture()
def order_repo():
    repo = MagicMock()
    repo.save.side_effect = lambda order: order
    repo.get_by_id.return_value = None
    return repo


@pytest.fixture()
def business_repo(business, product):
    repo = MagicMock()
    repo.get_by_id.return_value = business
    repo.get_by_owner.side_effect = lambda owner: business if owner == OWNER.subject else None
    repo.get_products.return_value = {str(product.id): product}
    return repo


@pytest.fixture()
def courier_repo(courier):
    repo = MagicMock()
    repo.get_by_user.side_effect = lambda user: courier if user == COURIER.subject else None
    repo.get_for_update.return_value = courier
    return repo


@pytest.fixture()
def geocoder():
    geocoder = MagicMock()
    geocoder.reverse.return_value = "Calle Falsa 123"
    return geocoder


@pytest.fixture()
def service(order_repo, business_repo, courier_repo, geocoder, no_timers):
    return OrderService(
        order_repository=order_repo,
        business_repository=business_repo,
        courier_repository=courier_repo,
        geocoder=geocoder,
    )


def _order(business, status=OrderStatus.PENDING, **fields):
    return Order(
        id=uuid4(),
        client_id=CLIENT.subject,
        business=business,
        status=status,
        total_price=Decimal("140.00"),
        **fields,
    )


def _checkout(product, **address):
    return CreateOrderDTO(
        business_id=product.business.id,
        items=[CheckoutItemDTO(product_id=product.id, quantity=1)],
        delivery_address=DeliveryAddressDTO(**(address or {"full_address": "Calle 1"})),
    )


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_creates_pending_order_from_menu_prices(self, service, order_repo, business, product):
        order_repo.create.side_effect = lambda data: _order(business)

        service.create_order(CLIENT.subject, _checkout(product))

        data = order_repo.create.call_args.args[0]
        assert data["status"] == OrderStatus.PENDING
        assert data["client_id"] == CLIENT.subject
        assert data["delivery_fee"] == Decimal("20.00")
        assert data["auto_cancel_task_id"]
        assert data["items"] == [
            {
                "product_id": product.id,
                "name": "Margarita",
                "quantity": 1,
                "unit_price": Decimal("120.00"),
            }
        ]
        order_repo.add_history.assert_called_once()

    def test_unknown_business(self, service, business_repo, product):
        business_repo.get_by_id.return_value = None
        with pytest.raises(BusinessNotFound):
            service.create_order(CLIENT.subject, _checkout(product))

    def test_closed_business(self, service, business, product):
        business.is_open = False
        with pytest.raises(BusinessClosed):
            service.create_order(CLIENT.subject, _checkout(product))

    def test_product_not_on_menu(self, service, business_repo, product):
        business_repo.get_products.return_value = {}
        with pytest.raises(ProductNotFound):
            service.create_order(CLIENT.subject, _checkout(product))

    def test_unavailable_product(self, service, product):
        product.is_available = False
        with pytest.raises(ProductUnavailable):
            service.create_order(CLIENT.subject, _checkout(product))

    def test_coordinates_only_address_is_geocoded(
        self, service, order_repo, geocoder, business, product
    ):
        order_repo.create.side_effect = lambda data: _order(business)

        service.create_order(CLIENT.subject, _checkout(product, lat=19.41, lng=-99.16))

        data = order_repo.create.call_args.args[0]
        assert data["delivery_address"] == "Calle Falsa 123"
        assert data["delivery_lat"] == 19.41
        geocoder.reverse.assert_called_once()

    def test_geocoding_happens_before_the_write_transaction(
        self, service, order_repo, geocoder, business, product
    ):
        depth = {}

        def reverse(coordinates):
            depth["geocoder"] = len(connection.savepoint_ids)
            return "Calle Falsa 123"

        def create(data):
            depth["create"] = len(connection.savepoint_ids)
            return _order(business)

        geocoder.reverse.side_effect = reverse
        order_repo.create.side_effect = create

        service.create_order(CLIENT.subject, _checkout(product, lat=19.41, lng=-99.16))

        assert depth["create"] == depth["geocoder"] + 1

    def test_written_address_is_not_geocoded(self, service, order_repo, geocoder, business, product):
        order_repo.create.side_effect = lambda data: _order(business)

        service.create_order(
            CLIENT.subject, _checkout(product, full_address="Av. 5", lat=19.41, lng=-99.16)
        )

        geocoder.reverse.assert_not_called()


# ---------------------------------------------------------------------------
# Business commands
# ---------------------------------------------------------------------------


class TestBusinessCommands:
    def test_other_business_cannot_accept(self, service, order_repo, business):
        order_repo.get_for_update.return_value = _order(business)
        with pytest.raises(OrderNotFound):
            service.accept_order(uuid4(), STRANGER)

    def test_missing_order(self, service, order_repo):
        order_repo.get_for_update.return_value = None
        with pytest.raises(OrderNotFound):
            service.accept_order(uuid4(), OWNER)

    def test_accept_clears_auto_cancel_task(self, service, order_repo, business):
        order = _order(business, auto_cancel_task_id="task-1")
        order_repo.get_for_update.return_value = order

        service.accept_order(order.id, OWNER)

        assert order.status == OrderStatus.ACCEPTED
        assert order.auto_cancel_task_id == ""
        assert order.accepted_at is not None

    def test_reject_already_cancelled_is_noop(self, service, order_repo, business):
        order = _order(business, status=OrderStatus.CANCELLED)
        order_repo.get_for_update.return_value = order

        service.reject_order(order.id, OWNER)

        order_repo.save.assert_not_called()

    def test_reject_accepted_order_is_invalid(self, service, order_repo, business):
        order_repo.get_for_update.return_value = _order(business, status=OrderStatus.ACCEPTED)
        with pytest.raises(InvalidTransition):
            service.reject_order(uuid4(), OWNER)

    def test_preparation_time_set_once(self, service, order_repo, business):
        order = _order(business, status=OrderStatus.ACCEPTED)
        order_repo.get_for_update.return_value = order

        service.set_preparation_time(order.id, OWNER, 20)
        assert order.preparation_time == 20

        with pytest.raises(InvalidTransition):
            service.set_preparation_time(order.id, OWNER, 25)
        assert order.preparation_time == 20

    def test_preparation_time_requires_accepted(self, service, order_repo, business):
        order_repo.get_for_update.return_value = _order(business)
        with pytest.raises(InvalidTransition):
            service.set_preparation_time(uuid4(), OWNER, 20)

    def test_preparation_time_on_cancelled_is_terminal(self, service, order_repo, business):
        order_repo.get_for_update.return_value = _order(business, status=OrderStatus.CANCELLED)
        with pytest.raises(TerminalState):
            service.set_preparation_time(uuid4(), OWNER, 20)

    @pytest.mark.parametrize("minutes", [0, -5, True, 2.5])
    def test_preparation_time_must_be_positive_integer(self, service, minutes):
        with pytest.raises(ValueError):
            service.set_preparation_time(uuid4(), OWNER, minutes)

    def test_cancel_cancelled_order_is_noop(self, service, order_repo, business):
        order_repo.get_for_update.return_value = _order(business, status=OrderStatus.CANCELLED)

        service.cancel_order(uuid4(), OWNER)

        order_repo.save.assert_not_called()
        order_repo.add_history.assert_not_called()

    def test_persistence_failure_restores_order(self, service, order_repo, business):
        order = _order(business, auto_cancel_task_id="task-1")
        order_repo.get_for_update.return_value = order
        order_repo.save.side_effect = PersistenceFailure("db down")

        with pytest.raises(PersistenceFailure):
            service.accept_order(order.id, OWNER)

        assert order.status == OrderStatus.PENDING
        assert order.auto_cancel_task_id == "task-1"
        assert order.accepted_at is None
        assert order.domain_events == []
        order_repo.add_history.assert_not_called()


# ---------------------------------------------------------------------------
# Courier commands
# ---------------------------------------------------------------------------


class TestCourierCommands:
    def test_claim_ready_order(self, service, order_repo, business, courier):
        order = _order(business, status=OrderStatus.READY)
        order_repo.get_for_update.return_value = order
        order_repo.get_tracking_for_update.return_value = None

        service.accept_for_delivery(order.id, COURIER)

        assert order.status == OrderStatus.DELIVERING
        assert order.delivery_person == courier

    def test_second_claim_is_already_assigned(self, service, order_repo, business, courier):
        order = _order(business, status=OrderStatus.DELIVERING, delivery_person=courier)
        order_repo.get_for_update.return_value = order
        with pytest.raises(AlreadyAssigned):
            service.accept_for_delivery(order.id, COURIER)

    def test_claim_before_ready(self, service, order_repo, business):
        order_repo.get_for_update.return_value = _order(business, status=OrderStatus.PREPARING)
        with pytest.raises(NotReady):
            service.accept_for_delivery(uuid4(), COURIER)

    def test_offline_courier_cannot_claim(self, service, order_repo, business, courier):
        courier.is_online = False
        order_repo.get_for_update.return_value = _order(business, status=OrderStatus.READY)
        with pytest.raises(CourierOffline):
            service.accept_for_delivery(uuid4(), COURIER)

    def test_caller_without_profile(self, service):
        with pytest.raises(CourierNotFound):
            service.accept_for_delivery(uuid4(), CLIENT)

    def test_delivery_credits_commission(self, service, order_repo, courier_repo, business, courier):
        order = _order(business, status=OrderStatus.DELIVERING, delivery_person=courier)
        order_repo.get_for_update.return_value = order
        order_repo.get_tracking_for_update.return_value = None

        service.mark_delivered(order.id, COURIER)

        assert order.status == OrderStatus.DELIVERED
        assert order.delivered_at is not None
        courier_repo.credit_delivery.assert_called_once_with(str(courier.id), Decimal("21.00"))

    def test_only_assigned_courier_delivers(self, service, order_repo, business):
        other = DeliveryPerson(id=uuid4(), user_id="someone", name="Otro")
        order_repo.get_for_update.return_value = _order(
            business, status=OrderStatus.DELIVERING, delivery_person=other
        )
        with pytest.raises(AlreadyAssigned):
            service.mark_delivered(uuid4(), COURIER)


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------


class TestRateOrder:
    def test_rates_delivered_order(self, service, order_repo, business_repo, business, courier):
        order = _order(business, status=OrderStatus.DELIVERED, delivery_person=courier)
        order_repo.get_for_update.return_value = order
        order_repo.average_business_rating.return_value = Decimal("4.5")
        order_repo.average_courier_rating.return_value = Decimal("5.0")

        service.rate_order(order.id, CLIENT, RateOrderDTO(business_rating=4, delivery_rating=5))

        assert order.client_rating == 4
        assert order.delivery_rating == 5
        order_repo.create_rating.assert_called_once()
        business_repo.update_rating.assert_called_once_with(str(business.id), Decimal("4.5"))

    def test_rating_requires_delivered(self, service, order_repo, business):
        order_repo.get_for_update.return_value = _order(business, status=OrderStatus.READY)
        with pytest.raises(RatingNotAllowed):
            service.rate_order(uuid4(), CLIENT, RateOrderDTO(business_rating=4))

    def test_rating_only_by_own_client(self, service, order_repo, business):
        order_repo.get_for_update.return_value = _order(business, status=OrderStatus.DELIVERED)
        other = Actor(subject="client-2", role=Role.CLIENT)
        with pytest.raises(RatingNotAllowed):
            service.rate_order(uuid4(), other, RateOrderDTO(business_rating=4))

    def test_rating_twice(self, service, order_repo, business):
        order_repo.get_for_update.return_value = _order(
            business, status=OrderStatus.DELIVERED, client_rating=3
        )
        with pytest.raises(AlreadyRated):
            service.rate_order(uuid4(), CLIENT, RateOrderDTO(business_rating=4))

    def test_delivery_rating_needs_courier(self, service, order_repo, business):
        order_repo.get_for_update.return_value = _order(business, status=OrderStatus.DELIVERED)
        with pytest.raises(RatingNotAllowed):
            service.rate_order(uuid4(), CLIENT, RateOrderDTO(delivery_rating=5))


class TestCommission:
    @pytest.mark.parametrize(
        "total,expected",
        [
            (Decimal("100.00"), Decimal("15.00")),
            (Decimal("80.00"), Decimal("12.00")),
            (Decimal("33.33"), Decimal("5.00")),
        ],
    )
    def test_fifteen_percent_rounded_to_cents(self, total, expected):
        assert commission_for(total) == expected


class TestBusinessStats:
    def test_dashboard_figures(self, service, order_repo, business):
        business.rating = Decimal("4.5")
        order_repo.count_by_status.return_value = {
            OrderStatus.PENDING: 1,
            OrderStatus.DELIVERED: 2,
            OrderStatus.CANCELLED: 0,
        }
        order_repo.delivered_revenue.return_value = Decimal("100.00")
        order_repo.top_products.return_value = [{"name": "Margarita", "quantity": 7}]

        stats = service.business_stats(OWNER)

        order_repo.count_by_status.assert_called_once_with(business.id)
        order_repo.delivered_revenue.assert_called_once_with(business.id)
        assert stats.total_orders == 3
        assert stats.average_order_value == Decimal("33.33")
        assert stats.rating == Decimal("4.5")
        assert stats.top_products[0].name == "Margarita"
        assert stats.top_products[0].quantity == 7

    def test_no_orders_has_zero_average(self, service, order_repo):
        order_repo.count_by_status.return_value = {OrderStatus.PENDING: 0}
        order_repo.delivered_revenue.return_value = Decimal("0.00")
        order_repo.top_products.return_value = []

        assert service.business_stats(OWNER).average_order_value == Decimal("0.00")

    def test_owner_without_business(self, service):
        with pytest.raises(BusinessNotFound):
            service.business_stats(STRANGER)
