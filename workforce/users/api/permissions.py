"""Role-gated permission classes shared by the workforce APIs."""

from rest_framework.permissions import SAFE_METHODS
from rest_framework.permissions import BasePermission

from workforce.users import roles


class _RolePermission(BasePermission):
    """Base helper to gate access by role names."""

    allowed_roles: tuple[str, ...] = ()
    allow_staff: bool = True

    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        if not (user and getattr(user, "is_authenticated", False)):
            return False
        if self.allow_staff and getattr(user, "is_staff", False):
            return True
        return roles.user_in_groups(user, self.allowed_roles)


class IsGlobalOperator(_RolePermission):
    allowed_roles = roles.GLOBAL_ROLES


class IsBookingReviewer(_RolePermission):
    allowed_roles = roles.BOOKING_REVIEW_ROLES


class IsAuditViewer(_RolePermission):
    allowed_roles = (*roles.GLOBAL_ROLES, roles.FIELD_MANAGER)


class IsKitManagerOrReadOnly(_RolePermission):
    allowed_roles = (*roles.GLOBAL_ROLES, roles.FIELD_MANAGER, roles.CLIENT_MANAGER)

    def has_permission(self, request, view) -> bool:
        if request.method in SAFE_METHODS:
            return bool(request.user and request.user.is_authenticated)
        return super().has_permission(request, view)
