from collections import defaultdict
from contextlib import suppress

from django.apps import apps
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.contrib.auth.models import Permission
from django.contrib.contenttypes.models import ContentType
from django.core.management.base import BaseCommand
from django.utils.translation import gettext as _

from workforce.users import roles

FULL_ACTIONS = ("add", "change", "delete", "view")
MANAGE_ACTIONS = ("add", "change", "view")
APPROVE_ACTIONS = ("change", "view")
READ_ACTIONS = ("view",)

ROLE_APP_ACTIONS = {
    roles.INTERNAL_ADMIN: {
        "bookings": FULL_ACTIONS,
        "kits": FULL_ACTIONS,
        "organizations": FULL_ACTIONS,
        "users": MANAGE_ACTIONS,
        "audit": READ_ACTIONS,
    },
    roles.FIELD_MANAGER: {
        "bookings": APPROVE_ACTIONS,
        "kits": MANAGE_ACTIONS,
        "organizations": READ_ACTIONS,
    },
    roles.BRAND_AGENT: {
        "bookings": READ_ACTIONS,
        "kits": READ_ACTIONS,
    },
    roles.CLIENT_MANAGER: {
        "bookings": MANAGE_ACTIONS,
        "kits": MANAGE_ACTIONS,
        "organizations": READ_ACTIONS,
    },
    roles.CLIENT_USER: {
        "bookings": READ_ACTIONS,
        "kits": READ_ACTIONS,
        "organizations": READ_ACTIONS,
    },
}

ROLE_MODEL_ACTIONS = {
    ("bookings", "booking"): {
        roles.CLIENT_USER: ("add", "view"),
    },
    ("bookings", "eventinstance"): {
        roles.BRAND_AGENT: ("change", "view"),
    },
    ("organizations", "location"): {
        roles.CLIENT_MANAGER: ("add", "change", "view"),
    },
}


class Command(BaseCommand):
    help = _("Create default RBAC groups and permissions")

    def handle(self, *args, **options):
        user_model = get_user_model()
        models = self._collect_models(user_model)
        role_perms = self._build_roles(models, user_model)
        self._apply_roles(role_perms)
        self.stdout.write(self.style.SUCCESS("RBAC setup complete"))

    def _collect_models(self, user_model):
        """Gather models from the workforce apps that drive permission creation."""

        collected: list[type] = [user_model]
        for label in sorted(self._target_app_labels()):
            for model in self._collect_app_models(label):
                if model not in collected:
                    collected.append(model)
        return collected

    def _target_app_labels(self):
        labels = {label for rules in ROLE_APP_ACTIONS.values() for label in rules}
        labels.update(app_label for app_label, _unused in ROLE_MODEL_ACTIONS)
        return labels

    def _collect_app_models(self, label):
        with suppress(LookupError):
            return list(apps.get_app_config(label).get_models())
        return []

    def _build_roles(self, models, user_model):
        super_admin_ids: set[int] = set()
        role_perm_ids: dict[str, set[int]] = defaultdict(set)

        for model in models:
            ct = ContentType.objects.get_for_model(model)
            perms_by_codename = {
                perm.codename: perm.pk for perm in Permission.objects.filter(content_type=ct)
            }
            if not perms_by_codename:
                continue
            super_admin_ids.update(perms_by_codename.values())

            model_name = model._meta.model_name  # noqa: SLF001
            app_label = model._meta.app_label  # noqa: SLF001

            for role_name, app_rules in ROLE_APP_ACTIONS.items():
                actions = app_rules.get(app_label, ())
                self._add_actions(role_perm_ids[role_name], perms_by_codename, model_name, actions)

            for role_name, actions in ROLE_MODEL_ACTIONS.get((app_label, model_name), {}).items():
                self._add_actions(role_perm_ids[role_name], perms_by_codename, model_name, actions)

        # Everybody can at least see their own account.
        view_user = Permission.objects.filter(
            content_type=ContentType.objects.get_for_model(user_model),
            codename=f"view_{user_model._meta.model_name}",  # noqa: SLF001
        ).first()
        if view_user:
            for role_name in roles.ALL_ROLES:
                role_perm_ids[role_name].add(view_user.pk)

        role_perm_ids[roles.SUPER_ADMIN] = super_admin_ids
        return role_perm_ids

    def _add_actions(self, bucket, perms_by_codename, model_name, actions):
        for action in actions:
            perm_id = perms_by_codename.get(f"{action}_{model_name}")
            if perm_id:
                bucket.add(perm_id)

    def _apply_roles(self, role_perms):
        """Create or update every role group and assign its permissions."""

        for role_name in roles.ALL_ROLES:
            group, _ = Group.objects.get_or_create(name=role_name)
            perm_ids = role_perms.get(role_name, set())
            group.permissions.set(list(Permission.objects.filter(pk__in=perm_ids)))
            msg = f"Ensured group '{role_name}' with permissions ({len(perm_ids)})"
            self.stdout.write(self.style.SUCCESS(msg))
