import pytest
from django.contrib.auth.models import Group
from django.core.management import call_command

from workforce.users import roles
from workforce.users.models import User
from workforce.users.tests.factories import create_user


@pytest.mark.django_db
def test_new_user_joins_default_role():
    user = create_user()
    assert list(user.groups.values_list("name", flat=True)) == [roles.CLIENT_USER]


@pytest.mark.django_db
def test_default_role_not_added_again_on_update():
    user = create_user()
    user.groups.clear()
    user.first_name = "Ada"
    user.save()
    assert not user.groups.exists()


@pytest.mark.django_db
def test_save_builds_full_name():
    user = User.objects.create_user(
        username="ada",
        email="ada@example.com",
        password="pass-12345",  # noqa: S106
        first_name="Ada",
        last_name="Lovelace",
    )
    assert user.name == "Ada Lovelace"
    assert str(user) == "Ada Lovelace"


@pytest.mark.django_db
def test_global_access_roles():
    staff = create_user(is_staff=True)
    internal = create_user()
    internal.groups.add(Group.objects.get_or_create(name=roles.INTERNAL_ADMIN)[0])
    client = create_user()

    assert roles.has_global_access(staff)
    assert roles.has_global_access(internal)
    assert not roles.has_global_access(client)


def test_setup_rbac_creates_role_groups(db):
    Group.objects.filter(name__in=roles.ALL_ROLES).delete()

    call_command("setup_rbac")

    for name in roles.ALL_ROLES:
        assert Group.objects.filter(name=name).exists()

    super_admin = Group.objects.get(name=roles.SUPER_ADMIN)
    internal = Group.objects.get(name=roles.INTERNAL_ADMIN)
    field_manager = Group.objects.get(name=roles.FIELD_MANAGER)
    client_user = Group.objects.get(name=roles.CLIENT_USER)

    assert super_admin.permissions.filter(codename="delete_kittemplate").exists()
    assert internal.permissions.filter(codename="delete_booking").exists()
    assert internal.permissions.filter(codename="view_auditlog").exists()
    assert field_manager.permissions.filter(codename="change_booking").exists()
    assert not field_manager.permissions.filter(codename="delete_booking").exists()
    assert client_user.permissions.filter(codename="add_booking").exists()
    assert client_user.permissions.filter(codename="view_user").exists()


def test_setup_rbac_is_idempotent(db):
    call_command("setup_rbac")
    first = Group.objects.get(name=roles.FIELD_MANAGER).permissions.count()
    call_command("setup_rbac")
    assert Group.objects.get(name=roles.FIELD_MANAGER).permissions.count() == first
