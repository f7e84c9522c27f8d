"""Cached order snapshots.

Writers never refresh the cache directly: the event handlers upsert the
snapshot of the order named by each committed event.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from modules.orders.dtos import OrderOutputDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.repositories.interfaces import IOrderRepository
from shared.infrastructure.cache import EntityCache

order_cache = EntityCache("orders")


def build_order_snapshot(
    order_id: Any, repository: Optional[IOrderRepository] = None
) -> Optional[Dict[str, Any]]:
    repository = repository or OrderDjangoRepository()
    order = repository.get_by_id(str(order_id))
    if order is None:
        return None
    return OrderOutputDTO.from_entity(order).model_dump(mode="json")


def refresh_order_snapshot(
    order_id: Any, repository: Optional[IOrderRepository] = None
) -> Optional[Dict[str, Any]]:
    """Upsert the snapshot of ``order_id``; drop it when the order is gone."""
    snapshot = build_order_snapshot(order_id, repository)
    if snapshot is None:
        order_cache.invalidate(order_id)
    else:
        order_cache.upsert(order_id, snapshot)
    return snapshot
