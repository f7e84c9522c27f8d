"""Outbox recording and after-commit publication of domain events.

Repositories call ``record_domain_events`` from inside their write
transaction.  Rows land in ``outbox_events`` atomically with the aggregate;
the in-process bus only sees an event once the transaction has committed, so
handlers never observe state that may still roll back.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import Any, Dict, List
from uuid import UUID

import structlog
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.domain.events import DomainEvent, DomainEventMixin
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


def record_domain_events(entity: DomainEventMixin, topic: str) -> List[OutboxEvent]:
    """Persist the entity's pending events and schedule their publication."""
    rows = []
    for event in entity.pull_domain_events():
        row = OutboxEvent.objects.create(
            event_type=event.event_name,
            aggregate_id=str(event.aggregate_id),
            payload=serialize_event_payload(event),
            topic=topic,
        )
        rows.append(row)
        transaction.on_commit(partial(publish_recorded_event, event, row.id))
    return rows


def publish_recorded_event(event: DomainEvent, outbox_id: UUID) -> None:
    """Deliver ``event`` to the bus and mark its outbox row accordingly."""
    row = OutboxEvent.objects.filter(id=outbox_id).first()
    try:
        event_bus.publish(event)
    except Exception as exc:
        logger.exception(
            "outbox.publish_failed",
            event=event.event_name,
            aggregate_id=str(event.aggregate_id),
        )
        if row is not None:
            row.mark_as_failed(str(exc))
        return
    if row is not None:
        row.mark_as_published()


def serialize_event_payload(event: Any) -> Dict[str, Any]:
    data = asdict(event)
    normalized = _normalize_for_json(data)
    return json.loads(json.dumps(normalized))


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
