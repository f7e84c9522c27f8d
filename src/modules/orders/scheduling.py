"""Celery scheduling helpers for order timers.

Callers register these in ``transaction.on_commit`` so a task never sees
uncommitted state.  A broker outage is logged and tolerated: the periodic
overdue sweep still cancels pending orders and tracking resumes on the
next claim or status read.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from celery import current_app
from django.conf import settings
from kombu.exceptions import OperationalError

logger = structlog.get_logger(__name__)


def new_task_id() -> str:
    return str(uuid.uuid4())


def schedule_auto_cancel(order_id: Any, task_id: str) -> None:
    """Run ``orders.auto_cancel_order`` once the response window closes."""
    from modules.orders.tasks import auto_cancel_order

    try:
        auto_cancel_order.apply_async(
            args=[str(order_id)],
            countdown=settings.ORDER_AUTO_CANCEL_SECONDS,
            task_id=task_id,
        )
    except OperationalError as exc:
        logger.warning("order.auto_cancel_not_scheduled", order_id=str(order_id), error=str(exc))
        return
    logger.info(
        "order.auto_cancel_scheduled",
        order_id=str(order_id),
        task_id=task_id,
        countdown=settings.ORDER_AUTO_CANCEL_SECONDS,
    )


def schedule_tracking_tick(order_id: Any, task_id: str) -> None:
    """Run the next ``orders.advance_tracking`` step after one tick interval."""
    from modules.orders.tasks import advance_tracking

    try:
        advance_tracking.apply_async(
            args=[str(order_id)],
            countdown=settings.TRACKING_TICK_SECONDS,
            task_id=task_id,
        )
    except OperationalError as exc:
        logger.warning("tracking.tick_not_scheduled", order_id=str(order_id), error=str(exc))


def revoke_task(task_id: str) -> None:
    if not task_id:
        return
    try:
        current_app.control.revoke(task_id)
    except OperationalError as exc:
        logger.warning("task.revoke_failed", task_id=task_id, error=str(exc))
        return
    logger.info("task.revoked", task_id=task_id)
