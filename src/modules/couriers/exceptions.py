"""Courier domain exceptions."""

from __future__ import annotations


class CourierNotFound(Exception):
    """No courier profile exists for the given id or subject."""


class CourierOffline(Exception):
    """The courier must be online to claim orders."""


class CourierAlreadyRegistered(Exception):
    """The subject already has a courier profile."""
