"""Role-based DRF permissions."""

from __future__ import annotations

from typing import ClassVar, FrozenSet

from rest_framework.permissions import BasePermission

from modules.core.roles import Role, get_role


class HasRole(BasePermission):
    """Allow authenticated users whose role is in ``allowed_roles``.

    Admins are always allowed.
    """

    allowed_roles: ClassVar[FrozenSet[str]] = frozenset()
    message = "Your role is not allowed to perform this action."

    def has_permission(self, request, view) -> bool:
        role = get_role(request.user)
        if role is None:
            return False
        return role == Role.ADMIN or role in self.allowed_roles


class IsClient(HasRole):
    allowed_roles = frozenset({Role.CLIENT})


class IsBusinessOwner(HasRole):
    allowed_roles = frozenset({Role.BUSINESS})


class IsCourier(HasRole):
    allowed_roles = frozenset({Role.COURIER})


class IsAdmin(HasRole):
    allowed_roles = frozenset()
