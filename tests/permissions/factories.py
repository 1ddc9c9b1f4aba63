from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group

from workforce.organizations.models import Membership

if TYPE_CHECKING:
    from collections.abc import Iterable

    from workforce.organizations.models import Organization

User = get_user_model()


@dataclass
class RoleContext:
    user: User
    organization: Organization | None


def ensure_groups(names: Iterable[str]) -> None:
    for name in names:
        Group.objects.get_or_create(name=name)


def create_user_with_role(
    username: str,
    *,
    groups: Iterable[str] | None = None,
    is_staff: bool = False,
    organization: Organization | None = None,
) -> RoleContext:
    ensure_groups(groups or [])
    user = User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="TestPass123!",  # noqa: S106
    )
    if is_staff:
        user.is_staff = True
        user.save(update_fields=["is_staff"])
    # Replace the default role with the requested ones.
    user.groups.set(Group.objects.filter(name__in=list(groups or [])))
    if organization is not None:
        role = next(iter(groups or []), "")
        Membership.objects.create(user=user, organization=organization, role=role)
    return RoleContext(user=user, organization=organization)
