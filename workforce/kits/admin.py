from django.contrib import admin

from workforce.kits import models


@admin.register(models.KitTemplate)
class KitTemplateAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "client_organization", "approval_status", "is_active"]
    list_filter = ["approval_status", "is_active", "template_type"]
    search_fields = ["name", "client_organization__name"]


@admin.register(models.KitInstance)
class KitInstanceAdmin(admin.ModelAdmin):
    list_display = ["id", "instance_name", "template", "status", "condition", "assigned_to"]
    list_filter = ["status", "condition", "region"]
    search_fields = ["instance_name", "serial_number"]
