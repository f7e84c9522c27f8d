"""Business domain exceptions.

Raised by the Service Layer and the promotion storage adapter; the API
layer translates them into HTTP responses.
"""

from __future__ import annotations


class BusinessNotFound(Exception):
    """The requested business does not exist or has been soft-deleted."""


class BusinessClosed(Exception):
    """The business is not accepting orders right now."""


class ProductNotFound(Exception):
    """A product does not exist or does not belong to the business."""


class ProductUnavailable(Exception):
    """A product exists but is marked as unavailable."""


class UploadTooLarge(Exception):
    """The uploaded file exceeds the size cap for its type."""


class UploadFailed(Exception):
    """The file type is not accepted or storage rejected the file."""


class BusinessAlreadyRegistered(Exception):
    """The owner already has a business profile."""


class PromotionNotFound(Exception):
    """The given path is not one of the business promotions."""
