"""Exceptions shared across modules.

Raised by repositories and infrastructure adapters; the API layer translates
them into HTTP responses or degrades the feature that needed them.
"""

from __future__ import annotations


class PersistenceFailure(Exception):
    """A read or write against the database did not complete."""


class LocationUnavailable(Exception):
    """Coordinates were not supplied or could not be interpreted."""
