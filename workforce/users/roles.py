"""Role (auth group) names used across the workforce apps."""

SUPER_ADMIN = "Super Admin"
INTERNAL_ADMIN = "Internal Admin"
FIELD_MANAGER = "Field Manager"
BRAND_AGENT = "Brand Agent"
CLIENT_MANAGER = "Client Manager"
CLIENT_USER = "Client User"

ALL_ROLES = (
    SUPER_ADMIN,
    INTERNAL_ADMIN,
    FIELD_MANAGER,
    BRAND_AGENT,
    CLIENT_MANAGER,
    CLIENT_USER,
)

# Roles that see every organization's data.
GLOBAL_ROLES = (SUPER_ADMIN, INTERNAL_ADMIN)
# Roles allowed to approve, reject or cancel bookings.
BOOKING_REVIEW_ROLES = (SUPER_ADMIN, INTERNAL_ADMIN, FIELD_MANAGER)

DEFAULT_ROLE = CLIENT_USER


def user_in_groups(user, names) -> bool:
    if not getattr(user, "is_authenticated", False):
        return False
    if getattr(user, "is_superuser", False):
        return True
    return user.groups.filter(name__in=list(names)).exists()


def has_global_access(user) -> bool:
    return bool(getattr(user, "is_staff", False)) or user_in_groups(user, GLOBAL_ROLES)
