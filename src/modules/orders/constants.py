"""Order domain constants.

Status choices and the transition graph of the order state machine.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pendiente"
    ACCEPTED = "accepted", "Aceptado"
    PREPARING = "preparing", "En preparación"
    READY = "ready", "Listo"
    DELIVERING = "delivering", "En camino"
    DELIVERED = "delivered", "Entregado"
    CANCELLED = "cancelled", "Cancelado"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.ACCEPTED, OrderStatus.CANCELLED},
    OrderStatus.ACCEPTED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY},
    OrderStatus.READY: {OrderStatus.DELIVERING},
    OrderStatus.DELIVERING: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

AUTO_CANCEL_NOTE = "Cancelled automatically: the business did not respond in time."
REJECTED_NOTE = "Rejected by the business."
MANUAL_CANCEL_NOTE = "Cancelled manually."

NOT_AVAILABLE = "N/A"
