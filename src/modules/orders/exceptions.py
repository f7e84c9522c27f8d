"""Order domain exceptions.

Raised by the Service Layer when a lifecycle rule is violated.  The views
translate them into HTTP responses.
"""

from __future__ import annotations


class OrderNotFound(Exception):
    """The requested order does not exist or is not visible to the caller."""


class InvalidTransition(Exception):
    """The requested transition is not an edge of the state machine, or its
    guard (preparation time, etc.) is not satisfied."""


class TerminalState(Exception):
    """The order is delivered or cancelled and cannot change any more."""


class AlreadyAssigned(Exception):
    """Another courier holds the order (or the caller is not its courier)."""


class NotReady(Exception):
    """The order is not waiting for a courier."""


class AlreadyRated(Exception):
    """The order has already been rated."""


class RatingNotAllowed(Exception):
    """Only the client of a delivered order can rate it."""
