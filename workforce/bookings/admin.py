from django.contrib import admin

from workforce.bookings import models


class EventInstanceInline(admin.TabularInline):
    model = models.EventInstance
    extra = 0
    fields = ["date", "start_time", "end_time", "status", "preparation_status", "field_manager"]


@admin.register(models.Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "title",
        "client_organization",
        "start_date",
        "status",
        "is_recurring",
        "event_count",
    ]
    search_fields = ["title", "notes", "client_organization__name"]
    list_filter = ["status", "priority", "is_recurring", "event_generation_status"]
    inlines = [EventInstanceInline]


@admin.register(models.EventInstance)
class EventInstanceAdmin(admin.ModelAdmin):
    list_display = ["id", "booking", "date", "status", "preparation_status", "field_manager"]
    list_filter = ["status", "preparation_status", "date"]
