"""Role-based permissions for the admin dashboard and driver app."""

from __future__ import annotations

from rest_framework.permissions import BasePermission

ROLE_ADMIN = "admin"
ROLE_DRIVER = "driver"


def principal_role(user) -> str | None:
    """Resolve the application role of an authenticated principal.

    Managed-auth principals carry ``role``; Django staff users (used by
    the Django admin and the test-suite) count as admins.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    role = getattr(user, "role", None)
    if role:
        return role
    if getattr(user, "is_staff", False):
        return ROLE_ADMIN
    return "customer"


class IsAdminRole(BasePermission):
    message = "Admin role required."

    def has_permission(self, request, view) -> bool:
        return principal_role(request.user) == ROLE_ADMIN


class IsAdminOrDriverRole(BasePermission):
    message = "Admin or driver role required."

    def has_permission(self, request, view) -> bool:
        return principal_role(request.user) in {ROLE_ADMIN, ROLE_DRIVER}
