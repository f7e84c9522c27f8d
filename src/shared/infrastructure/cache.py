"""Entity cache keyed by collection and id.

Replaces the "refetch every collection on any change" strategy with an
explicit contract: writers upsert a single entity snapshot by id after their
transaction commits, readers fall back to the repository on a miss.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import structlog
from django.conf import settings
from django.core.cache import cache

logger = structlog.get_logger(__name__)


class EntityCache:
    """JSON snapshots of one collection stored in the Django cache."""

    def __init__(self, collection: str, timeout: Optional[int] = None) -> None:
        self.collection = collection
        self._timeout = timeout

    @property
    def timeout(self) -> int:
        if self._timeout is not None:
            return self._timeout
        return settings.ENTITY_CACHE_TIMEOUT

    def key(self, entity_id: Any) -> str:
        return f"{self.collection}:{entity_id}"

    def get(self, entity_id: Any) -> Optional[Dict[str, Any]]:
        return cache.get(self.key(entity_id))

    def upsert(self, entity_id: Any, snapshot: Dict[str, Any]) -> None:
        cache.set(self.key(entity_id), snapshot, self.timeout)
        logger.debug("cache.upserted", collection=self.collection, id=str(entity_id))

    def invalidate(self, entity_id: Any) -> None:
        cache.delete(self.key(entity_id))
        logger.debug("cache.invalidated", collection=self.collection, id=str(entity_id))

    def get_or_load(
        self,
        entity_id: Any,
        loader: Callable[[], Optional[Dict[str, Any]]],
    ) -> Optional[Dict[str, Any]]:
        """Return the cached snapshot, loading and caching it on a miss."""
        snapshot = self.get(entity_id)
        if snapshot is not None:
            return snapshot
        snapshot = loader()
        if snapshot is not None:
            self.upsert(entity_id, snapshot)
        return snapshot
