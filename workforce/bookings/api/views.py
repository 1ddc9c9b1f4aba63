"""Bookings, event instances and the recurrence preview."""

import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from rest_framework import mixins
from rest_framework import permissions
from rest_framework import status
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from workforce import policies
from workforce.bookings import services
from workforce.bookings.api.serializers import ApproveBookingSerializer
from workforce.bookings.api.serializers import AssignManagerSerializer
from workforce.bookings.api.serializers import BookingSerializer
from workforce.bookings.api.serializers import CancelBookingSerializer
from workforce.bookings.api.serializers import EventInstanceSerializer
from workforce.bookings.api.serializers import MarkReadySerializer
from workforce.bookings.api.serializers import RecurrencePreviewQuerySerializer
from workforce.bookings.api.serializers import RejectBookingSerializer
from workforce.bookings.api.serializers import StartPreparationSerializer
from workforce.bookings.exceptions import BookingNotFoundError
from workforce.bookings.exceptions import BookingStateError
from workforce.bookings.exceptions import BookingValidationError
from workforce.bookings.exceptions import EventInstanceNotFoundError
from workforce.bookings.models import Booking
from workforce.bookings.models import EventInstance
from workforce.organizations.models import organization_ids_for
from workforce.recurrence import describe_recurrence
from workforce.recurrence import generate_occurrences
from workforce.recurrence import parse_recurrence_pattern
from workforce.recurrence import rule_for_legacy_pattern
from workforce.users.api.permissions import IsBookingReviewer
from workforce.users.roles import has_global_access

logger = logging.getLogger(__name__)

REVIEW_PERMISSIONS = [permissions.IsAuthenticated, IsBookingReviewer]


def _run_service(func, *args, **kwargs):
    """Call a booking service, mapping domain errors to API errors."""

    try:
        return func(*args, **kwargs)
    except (BookingNotFoundError, EventInstanceNotFoundError) as exc:
        raise NotFound(str(exc)) from exc
    except (BookingStateError, BookingValidationError) as exc:
        raise ValidationError({"detail": str(exc)}) from exc


class BookingViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "priority", "client_organization", "is_recurring"]

    def get_queryset(self):
        user = self.request.user
        qs = Booking.objects.select_related("client_organization", "location")
        if has_global_access(user):
            return qs
        return qs.filter(client_organization_id__in=organization_ids_for(user))

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    @extend_schema(tags=["Bookings"], request=ApproveBookingSerializer, responses=BookingSerializer)
    @action(detail=True, methods=["post"], permission_classes=REVIEW_PERMISSIONS)
    def approve(self, request, pk=None):
        booking = self.get_object()
        ser = ApproveBookingSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        booking = _run_service(
            services.approve_booking,
            booking.pk,
            request.user,
            generate_events=ser.validated_data["generate_events"],
        )
        return Response(self.get_serializer(booking).data)

    @extend_schema(tags=["Bookings"], request=RejectBookingSerializer, responses=BookingSerializer)
    @action(detail=True, methods=["post"], permission_classes=REVIEW_PERMISSIONS)
    def reject(self, request, pk=None):
        booking = self.get_object()
        ser = RejectBookingSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        booking = _run_service(
            services.reject_booking,
            booking.pk,
            request.user,
            ser.validated_data["reason"],
        )
        return Response(self.get_serializer(booking).data)

    @extend_schema(tags=["Bookings"], request=CancelBookingSerializer, responses=BookingSerializer)
    @action(detail=True, methods=["post"], permission_classes=REVIEW_PERMISSIONS)
    def cancel(self, request, pk=None):
        booking = self.get_object()
        ser = CancelBookingSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        booking = _run_service(
            services.cancel_booking,
            booking.pk,
            request.user,
            ser.validated_data["reason"],
        )
        return Response(self.get_serializer(booking).data)

    @extend_schema(tags=["Bookings"], responses=EventInstanceSerializer(many=True))
    @action(detail=True, methods=["get"])
    def events(self, request, pk=None):
        booking = self.get_object()
        rows = booking.event_instances.select_related("booking").all()
        return Response(EventInstanceSerializer(rows, many=True).data)


class EventInstanceViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = EventInstanceSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["booking", "status", "preparation_status", "field_manager", "date"]

    def get_queryset(self):
        user = self.request.user
        qs = EventInstance.objects.select_related("booking", "location")
        if has_global_access(user):
            return qs
        return qs.filter(booking__client_organization_id__in=organization_ids_for(user))

    @extend_schema(tags=["Events"], request=AssignManagerSerializer, responses=EventInstanceSerializer)
    @action(
        detail=True,
        methods=["post"],
        url_path="assign-manager",
        permission_classes=REVIEW_PERMISSIONS,
    )
    def assign_manager(self, request, pk=None):
        event = self.get_object()
        ser = AssignManagerSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        event = _run_service(
            services.assign_event_manager,
            event.pk,
            ser.validated_data["manager"],
            request.user,
        )
        return Response(self.get_serializer(event).data)

    @extend_schema(tags=["Events"], request=StartPreparationSerializer, responses=EventInstanceSerializer)
    @action(detail=True, methods=["post"], url_path="start-preparation")
    def start_preparation(self, request, pk=None):
        event = self.get_object()
        ser = StartPreparationSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        event = _run_service(
            services.start_event_preparation,
            event.pk,
            request.user,
            ser.validated_data["tasks"],
        )
        return Response(self.get_serializer(event).data)

    @extend_schema(tags=["Events"], request=MarkReadySerializer, responses=EventInstanceSerializer)
    @action(detail=True, methods=["post"], url_path="mark-ready")
    def mark_ready(self, request, pk=None):
        event = self.get_object()
        ser = MarkReadySerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        event = _run_service(
            services.mark_event_ready,
            event.pk,
            request.user,
            ser.validated_data["details"],
        )
        return Response(self.get_serializer(event).data)


class RecurrencePreviewView(APIView):
    """Expand a rule without touching the database."""

    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=["Bookings"],
        parameters=[
            OpenApiParameter("start", OpenApiTypes.DATE, OpenApiParameter.QUERY, required=True),
            OpenApiParameter("rule", OpenApiTypes.STR, OpenApiParameter.QUERY, required=True),
            OpenApiParameter("end", OpenApiTypes.DATE, OpenApiParameter.QUERY),
            OpenApiParameter("limit", OpenApiTypes.INT, OpenApiParameter.QUERY),
        ],
    )
    def get(self, request):
        ser = RecurrencePreviewQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        params = ser.validated_data

        rule = rule_for_legacy_pattern(params["rule"])
        if rule is None or parse_recurrence_pattern(rule) is None:
            raise ValidationError({"rule": ["Invalid recurrence rule."]})

        dates = generate_occurrences(
            params["start"],
            rule,
            end_date=params.get("end"),
            max_occurrences=params.get("limit") or policies.recurrence_max_occurrences(),
        )
        return Response(
            {
                "rule": rule,
                "description": describe_recurrence(rule),
                "count": len(dates),
                "dates": [d.isoformat() for d in dates],
            },
            status=status.HTTP_200_OK,
        )
