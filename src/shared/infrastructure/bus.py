"""Process-local event bus used by the outbox publisher."""

from __future__ import annotations

from typing import Dict, List, Type

import structlog

from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class InMemoryEventBus(IEventBus):
    """Simple in-process event bus.

    Handlers subscribed to a base class also receive its subclasses, so a
    single handler on ``DomainEvent`` sees everything.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)

    def handlers_for(self, event: DomainEvent) -> List[IEventHandler]:
        """Handlers of the event's class and of every base class, most specific first."""
        return [
            handler
            for event_class in type(event).__mro__
            for handler in self._handlers.get(event_class, [])
        ]

    def publish(self, event: DomainEvent) -> None:
        handlers = self.handlers_for(event)
        for handler in handlers:
            handler.handle(event)
        logger.debug("event_bus.published", event=event.event_name, handlers=len(handlers))


# Shared by the outbox publisher and the app registries.

event_bus = InMemoryEventBus()
