from django.contrib import admin

from workforce.audit import models


@admin.register(models.AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ["id", "action", "actor", "entity_type", "entity_id", "created_at"]
    search_fields = ["action", "message", "entity_type", "entity_id", "ip_address"]
    list_filter = ["action", "entity_type", "created_at"]
