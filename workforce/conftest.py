from datetime import date

import pytest
from django.contrib.auth.models import Group

from workforce.bookings.models import Booking
from workforce.organizations.models import Membership
from workforce.organizations.models import Organization
from workforce.users import roles
from workforce.users.models import User
from workforce.users.tests.factories import create_user


@pytest.fixture
def user(db) -> User:
    return create_user()


@pytest.fixture
def reviewer(db) -> User:
    account = create_user()
    group, _ = Group.objects.get_or_create(name=roles.INTERNAL_ADMIN)
    account.groups.add(group)
    return account


@pytest.fixture
def organization(db, user) -> Organization:
    org = Organization.objects.create(name="Acme Events", type=Organization.Type.CLIENT)
    Membership.objects.create(user=user, organization=org, role=roles.CLIENT_USER)
    return org


@pytest.fixture
def booking(db, organization, user) -> Booking:
    # 2030-01-07 is a Monday.
    return Booking.objects.create(
        client_organization=organization,
        title="Spring activation",
        start_date=date(2030, 1, 7),
        end_date=date(2030, 1, 31),
        status=Booking.Status.PENDING,
        is_recurring=True,
        recurrence_pattern="FREQ=WEEKLY;BYDAY=MO,WE,FR",
        created_by=user,
    )
