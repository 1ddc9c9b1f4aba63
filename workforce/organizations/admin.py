from django.contrib import admin

from workforce.organizations import models


class MembershipInline(admin.TabularInline):
    model = models.Membership
    extra = 0


@admin.register(models.Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "type", "tier", "status"]
    search_fields = ["name", "billing_email"]
    list_filter = ["type", "tier", "status"]
    inlines = [MembershipInline]


@admin.register(models.Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "city", "organization", "status", "is_active"]
    search_fields = ["name", "city", "address1"]
    list_filter = ["status", "is_active"]
