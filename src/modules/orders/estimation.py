"""Delivery time estimation.

The estimate adds the order's preparation minutes to the business's
advertised delivery time.  Businesses advertise either a range ("25-35")
or a single number of minutes ("30").

Examples::

    estimate_delivery_time(None, business)            # "25-35 min"
    estimate_delivery_time(order_with_prep_10, biz)   # "35-45 min"
    estimate_delivery_time(order_without_prep, biz)   # "N/A"
"""

from __future__ import annotations

import re
from typing import Any, Optional

from modules.orders.constants import NOT_AVAILABLE

RANGE_PATTERN = re.compile(r"(\d+)-(\d+)")
LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")


def estimate_delivery_time(order: Optional[Any], business: Optional[Any]) -> str:
    """Human readable ETA for ``order`` placed at ``business``.

    ``order`` may be ``None`` (browsing, no order yet): preparation then
    contributes nothing.  An order whose preparation time is still unknown
    has no estimate.
    """
    if business is None:
        return NOT_AVAILABLE

    if order is None:
        prep = 0
    else:
        prep = getattr(order, "preparation_time", None)
        if not prep:
            return NOT_AVAILABLE

    raw = getattr(business, "delivery_time", None) or ""

    match = RANGE_PATTERN.search(raw)
    if match:
        low, high = int(match.group(1)), int(match.group(2))
        return f"{low + prep}-{high + prep} min"

    match = LEADING_INT_PATTERN.match(raw)
    if match:
        total = int(match.group(1)) + prep
        return f"{total} min" if total > 0 else NOT_AVAILABLE

    return raw or NOT_AVAILABLE
