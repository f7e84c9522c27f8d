"""User roles and subject resolution.

The identity provider issues one role claim per user.  Local (SimpleJWT)
users carry it as a Django group name; Auth0 users carry it in a token claim.
Aggregates reference users by *subject*: the Auth0 ``sub`` or the local
user's primary key as a string.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from django.db import models


class Role(models.TextChoices):
    CLIENT = "cliente", "Cliente"
    BUSINESS = "negocio", "Negocio"
    COURIER = "repartidor", "Repartidor"
    ADMIN = "admin", "Administrador"


def get_role(user: Any) -> Optional[str]:
    """Return the role of an authenticated user, or ``None``."""
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    role = getattr(user, "role", None)
    if role in Role.values:
        return role
    if getattr(user, "is_superuser", False):
        return Role.ADMIN
    groups = getattr(user, "groups", None)
    if groups is None:
        return None
    names = set(groups.values_list("name", flat=True))
    for candidate in (Role.ADMIN, Role.BUSINESS, Role.COURIER, Role.CLIENT):
        if candidate in names:
            return candidate
    return None


def get_subject(user: Any) -> str:
    """Return the stable identifier used to reference ``user`` in aggregates."""
    sub = getattr(user, "sub", None)
    if sub:
        return sub
    return str(user.pk)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as seen by the Service Layer."""

    subject: str
    role: Optional[str]

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_user(cls, user: Any) -> Actor:
        return cls(subject=get_subject(user), role=get_role(user))


SYSTEM_ACTOR = Actor(subject="", role=Role.ADMIN)
