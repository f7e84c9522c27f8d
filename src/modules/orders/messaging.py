"""Prefilled chat link sent back to the client after checkout."""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote, urlencode

from django.conf import settings

from modules.orders.models import Order


def build_checkout_message(order: Order, business_name: Optional[str] = None) -> str:
    name = business_name or getattr(order.business, "name", None) or "Restaurante"
    lines = [
        f"*¡Hola! Quiero confirmar mi pedido de {name}*",
        "",
        "*Mi pedido es:*",
    ]
    lines.extend(f"{item.quantity}x {item.name}" for item in order.items.all())
    lines += [
        "",
        f"*Total:* ${order.total_price:.2f}",
        "",
        "*Dirección de entrega:*",
        order.delivery_address,
    ]
    if order.special_notes:
        lines += ["", "*Notas Especiales:*", order.special_notes]
    lines += ["", f"*ID del Pedido:* {order.id}", "", "¡Gracias!"]
    return "\n".join(lines).strip()


def build_checkout_link(order: Order) -> str:
    """``<CHECKOUT_MESSAGING_URL>?phone=<phone>&text=<message>``."""
    query = urlencode(
        {
            "phone": settings.CHECKOUT_MESSAGING_PHONE,
            "text": build_checkout_message(order),
        },
        quote_via=quote,
    )
    return f"{settings.CHECKOUT_MESSAGING_URL}?{query}"
