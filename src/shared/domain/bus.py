"""Contracts between aggregates that raise events and code that reacts.

Handlers are plain objects with a ``handle`` method; the outbox publisher
only knows ``IEventBus``.
"""

from __future__ import annotations

from typing import Generic, List, Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

E = TypeVar("E", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[E]):
    def handle(self, event: E) -> None: ...


class IEventBus(Protocol):
    """Synchronous fan-out of committed domain events.

    A handler subscribed to an event class also receives every subclass of
    it, so ``OrderStatusChanged`` handlers see ``OrderCancelled`` too.
    """

    def subscribe(self, event_class: Type[E], handler: IEventHandler[E]) -> None: ...

    def handlers_for(self, event: DomainEvent) -> List[IEventHandler]: ...

    def publish(self, event: DomainEvent) -> None: ...
