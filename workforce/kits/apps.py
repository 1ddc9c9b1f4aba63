from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class KitsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "workforce.kits"
    verbose_name = _("Kits")
