"""Integration tests for order timer tasks and their scheduling helpers.

Celery runs eagerly under the test settings, so tasks execute in-process
against the test database.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from freezegun import freeze_time
from kombu.exceptions import OperationalError

from modules.orders import scheduling
from modules.orders.constants import OrderStatus
from modules.orders.models import DeliveryTracking, Order
from modules.orders.tasks import advance_tracking, auto_cancel_order, expire_overdue_orders
from shared.domain.geo import haversine_distance_m

pytestmark = pytest.mark.integration


@pytest.fixture()
def delivering_order(place_order, order_service, owner_actor, courier_actor, courier):
    order = place_order()
    order_service.accept_order(order.id, owner_actor)
    order_service.set_preparation_time(order.id, owner_actor, 10)
    order_service.start_preparing(order.id, owner_actor)
    order_service.mark_ready(order.id, owner_actor)
    return order_service.accept_for_delivery(order.id, courier_actor)


class TestAutoCancelTask:
    def test_cancels_overdue_order(self, place_order):
        with freeze_time("2026-03-02 12:00:00") as clock:
            order = place_order()
            clock.tick(timedelta(seconds=181))

            assert auto_cancel_order(str(order.id)) is True

        order.refresh_from_db()
        assert order.status == OrderStatus.CANCELLED

    def test_early_run_is_harmless(self, place_order):
        order = place_order()
        assert auto_cancel_order(str(order.id)) is False
        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING

    def test_unknown_order(self):
        assert auto_cancel_order("00000000-0000-7000-8000-000000000000") is False

    def test_sweep_task(self, place_order):
        with freeze_time("2026-03-02 12:00:00") as clock:
            place_order()
            place_order()
            clock.tick(timedelta(seconds=300))

            assert expire_overdue_orders() == 2

        assert not Order.objects.filter(status=OrderStatus.PENDING).exists()


class TestTrackingTask:
    def test_tick_moves_courier_closer(self, delivering_order, no_timers):
        tracking = DeliveryTracking.objects.get(order_id=delivering_order.id)
        before = haversine_distance_m(tracking.position, tracking.target)

        assert advance_tracking(str(delivering_order.id)) is True

        tracking.refresh_from_db()
        assert tracking.ticks == 1
        assert haversine_distance_m(tracking.position, tracking.target) < before

    def test_next_tick_is_scheduled_after_commit(
        self, delivering_order, no_timers, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            advance_tracking(str(delivering_order.id))

        tracking = DeliveryTracking.objects.get(order_id=delivering_order.id)
        no_timers["tracking_tick"].assert_called_with(delivering_order.id, tracking.tick_task_id)

    def test_stops_when_order_left_delivery(self, delivering_order):
        Order.objects.filter(id=delivering_order.id).update(status=OrderStatus.DELIVERED)

        assert advance_tracking(str(delivering_order.id)) is False

        tracking = DeliveryTracking.objects.get(order_id=delivering_order.id)
        assert tracking.active is False
        assert tracking.tick_task_id == ""

    def test_arrives_eventually(self, delivering_order):
        ticks = 0
        while advance_tracking(str(delivering_order.id)):
            ticks += 1
            assert ticks < 500

        tracking = DeliveryTracking.objects.get(order_id=delivering_order.id)
        assert tracking.arrived is True
        assert tracking.position == tracking.target


class TestScheduling:
    def test_eager_schedule_runs_the_task(self, place_order):
        order = place_order()

        scheduling.schedule_auto_cancel(order.id, scheduling.new_task_id())

        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING

    def test_broker_outage_is_tolerated(self, place_order):
        order = place_order()
        with patch.object(
            auto_cancel_order, "apply_async", side_effect=OperationalError("broker down")
        ):
            scheduling.schedule_auto_cancel(order.id, "task-1")

    def test_revoke(self):
        app = MagicMock()
        with patch.object(scheduling, "current_app", app):
            scheduling.revoke_task("task-1")
        app.control.revoke.assert_called_once_with("task-1")

    def test_revoke_tolerates_broker_outage(self):
        app = MagicMock()
        app.control.revoke.side_effect = OperationalError("broker down")
        with patch.object(scheduling, "current_app", app):
            scheduling.revoke_task("task-1")

    def test_revoke_without_task_id(self):
        app = MagicMock()
        with patch.object(scheduling, "current_app", app):
            scheduling.revoke_task("")
        app.control.revoke.assert_not_called()
