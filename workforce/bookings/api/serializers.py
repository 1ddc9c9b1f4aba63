from django.contrib.auth import get_user_model
from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from workforce.bookings.models import Booking
from workforce.bookings.models import EventInstance
from workforce.organizations.models import organization_ids_for
from workforce.recurrence import parse_recurrence_rule
from workforce.recurrence import RecurrenceParseError
from workforce.recurrence import rule_for_legacy_pattern
from workforce.users.roles import has_global_access

User = get_user_model()


class BookingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Booking
        fields = "__all__"
        read_only_fields = (
            "status",
            "created_by",
            "approved_by",
            "approved_at",
            "rejected_by",
            "rejected_at",
            "rejection_reason",
            "canceled_by",
            "canceled_at",
            "cancel_reason",
            "event_generation_status",
            "event_count",
            "last_event_generated_at",
        )

    def validate_client_organization(self, value):
        request = self.context.get("request")
        user = getattr(request, "user", None)
        if user is None or has_global_access(user):
            return value
        if value.pk not in organization_ids_for(user):
            msg = _("You are not a member of this organization.")
            raise serializers.ValidationError(msg)
        return value

    def validate_recurrence_pattern(self, value):
        value = (value or "").strip()
        if not value:
            return value
        rule = rule_for_legacy_pattern(value)
        if rule is None:
            msg = _("Unknown recurrence pattern.")
            raise serializers.ValidationError(msg)
        try:
            parse_recurrence_rule(rule)
        except RecurrenceParseError as exc:
            raise serializers.ValidationError(str(exc)) from exc
        return value

    def validate(self, attrs):
        start_date = attrs.get("start_date")
        end_date = attrs.get("end_date")
        if start_date and end_date and start_date > end_date:
            msg = _("Start date cannot be after end date.")
            raise serializers.ValidationError(msg)
        if attrs.get("is_recurring") and not attrs.get("recurrence_pattern"):
            raise serializers.ValidationError(
                {"recurrence_pattern": _("Recurring bookings need a pattern.")}
            )
        return attrs


class EventInstanceSerializer(serializers.ModelSerializer):
    booking_title = serializers.CharField(source="booking.title", read_only=True)

    class Meta:
        model = EventInstance
        fields = "__all__"
        read_only_fields = ("booking", "date", "status", "preparation_status")


class ApproveBookingSerializer(serializers.Serializer):
    generate_events = serializers.BooleanField(default=True)


class RejectBookingSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=False, trim_whitespace=True)


class CancelBookingSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class AssignManagerSerializer(serializers.Serializer):
    manager = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())


class StartPreparationSerializer(serializers.Serializer):
    tasks = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )


class MarkReadySerializer(serializers.Serializer):
    details = serializers.DictField(required=False, default=dict)


class RecurrencePreviewQuerySerializer(serializers.Serializer):
    start = serializers.DateField()
    rule = serializers.CharField()
    end = serializers.DateField(required=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=500)
