from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from workforce.kits.models import KitInstance
from workforce.kits.models import KitTemplate
from workforce.organizations.models import organization_ids_for
from workforce.users.roles import has_global_access


class KitTemplateSerializer(serializers.ModelSerializer):
    instance_count = serializers.IntegerField(source="instances.count", read_only=True)

    class Meta:
        model = KitTemplate
        fields = "__all__"
        read_only_fields = (
            "approval_status",
            "rejection_reason",
            "created_by",
            "approved_by",
            "approved_at",
        )

    def validate_client_organization(self, value):
        user = getattr(self.context.get("request"), "user", None)
        if user is not None and not has_global_access(user):
            if value.pk not in organization_ids_for(user):
                msg = _("You are not a member of this organization.")
                raise serializers.ValidationError(msg)
        return value


class KitInstanceSerializer(serializers.ModelSerializer):
    template_name = serializers.CharField(source="template.name", read_only=True)

    class Meta:
        model = KitInstance
        fields = "__all__"
        read_only_fields = ("assigned_at",)

    def validate_template(self, value):
        if not value.is_usable:
            msg = _("Kit template is not approved and active.")
            raise serializers.ValidationError(msg)
        return value


class RejectKitTemplateSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=False, trim_whitespace=True)
