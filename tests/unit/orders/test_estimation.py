"""Unit tests for the delivery time estimator."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from modules.orders.estimation import estimate_delivery_time

pytestmark = pytest.mark.unit


def _business(delivery_time):
    return SimpleNamespace(delivery_time=delivery_time)


def _order(preparation_time):
    return SimpleNamespace(preparation_time=preparation_time)


class TestBrowseEstimate:
    """Without an order, preparation contributes nothing."""

    @pytest.mark.parametrize(
        "delivery_time,expected",
        [
            ("25-35", "25-35 min"),
            ("30", "30 min"),
            ("30 min", "30 min"),
            ("Entre 20-30 minutos", "20-30 min"),
            ("0", "N/A"),
            ("", "N/A"),
            (None, "N/A"),
            ("rápido", "rápido"),
        ],
    )
    def test_browse(self, delivery_time, expected):
        assert estimate_delivery_time(None, _business(delivery_time)) == expected

    def test_missing_business(self):
        assert estimate_delivery_time(None, None) == "N/A"


class TestOrderEstimate:
    @pytest.mark.parametrize("prep,expected", [(10, "35-45 min"), (20, "45-55 min")])
    def test_range_is_shifted_by_preparation(self, prep, expected):
        assert estimate_delivery_time(_order(prep), _business("25-35")) == expected

    def test_single_value_is_shifted_by_preparation(self):
        assert estimate_delivery_time(_order(5), _business("30")) == "35 min"

    def test_unknown_preparation_has_no_estimate(self):
        assert estimate_delivery_time(_order(None), _business("25-35")) == "N/A"

    @pytest.mark.parametrize("delivery_time,expected", [("-5", "5 min"), ("0", "10 min")])
    def test_single_value_counts_once_preparation_is_added(self, delivery_time, expected):
        assert estimate_delivery_time(_order(10), _business(delivery_time)) == expected

    def test_single_value_without_positive_sum_has_no_estimate(self):
        assert estimate_delivery_time(_order(5), _business("-5")) == "N/A"

    def test_unparsable_text_is_returned_verbatim(self):
        assert estimate_delivery_time(_order(10), _business("consultar")) == "consultar"
