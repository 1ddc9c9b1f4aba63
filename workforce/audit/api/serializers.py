from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import serializers

from workforce.audit.models import AuditLog

User = get_user_model()


class AuditActorSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username", "name"]


class AuditLogSerializer(serializers.ModelSerializer):
    actor = AuditActorSerializer(allow_null=True, read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            "id",
            "action",
            "message",
            "organization",
            "entity_type",
            "entity_id",
            "before",
            "after",
            "ip_address",
            "user_agent",
            "created_at",
            "actor",
        ]
        read_only_fields = fields
