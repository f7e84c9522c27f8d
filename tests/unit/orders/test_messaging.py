"""Unit tests for the prefilled checkout chat link."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from modules.orders.messaging import build_checkout_link, build_checkout_message

pytestmark = pytest.mark.unit


class TestCheckoutMessage:
    def test_message_lists_items_total_and_address(self, place_order):
        order = place_order(quantity=3)

        message = build_checkout_message(order)

        assert "Tacos El Güero" in message
        assert "3x Taco al pastor" in message
        assert "*Total:* $105.00" in message
        assert "Calle Durango 25, Roma Norte" in message
        assert str(order.id) in message
        assert "Notas Especiales" not in message

    def test_link_targets_configured_phone(self, place_order, settings):
        settings.CHECKOUT_MESSAGING_URL = "https://api.whatsapp.com/send"
        settings.CHECKOUT_MESSAGING_PHONE = "525500000000"
        order = place_order()

        link = build_checkout_link(order)

        parts = urlsplit(link)
        query = parse_qs(parts.query)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == settings.CHECKOUT_MESSAGING_URL
        assert query["phone"] == ["525500000000"]
        assert query["text"] == [build_checkout_message(order)]
        assert "+" not in parts.query
