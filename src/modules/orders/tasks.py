"""Celery tasks for order timers.

Every task re-reads persisted state under a row lock before acting, so
running one twice, or after the business already responded, is harmless.
"""

from __future__ import annotations

import structlog
from celery import shared_task

from modules.businesses.repositories.django_repository import BusinessDjangoRepository
from modules.couriers.repositories.django_repository import CourierDjangoRepository
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService

logger = structlog.get_logger(__name__)


def build_order_service() -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        business_repository=BusinessDjangoRepository(),
        courier_repository=CourierDjangoRepository(),
    )


@shared_task(name="orders.auto_cancel_order")
def auto_cancel_order(order_id: str) -> bool:
    """Cancel ``order_id`` if it is still pending past its response window."""
    cancelled = build_order_service().expire_if_overdue(order_id)
    logger.info("task.auto_cancel_order", order_id=order_id, cancelled=cancelled)
    return cancelled


@shared_task(name="orders.advance_tracking")
def advance_tracking(order_id: str) -> bool:
    """Move the simulated courier one step; the service schedules the next."""
    return build_order_service().advance_tracking(order_id)


@shared_task(name="orders.expire_overdue_orders")
def expire_overdue_orders() -> int:
    expired = build_order_service().expire_overdue_orders()
    logger.info("task.expire_overdue_orders", expired=expired)
    return expired
