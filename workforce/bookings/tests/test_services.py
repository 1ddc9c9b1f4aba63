from datetime import date
from datetime import time
from unittest import mock

import pytest
from django.db import OperationalError

from workforce.audit.models import AuditLog
from workforce.audit.utils import log_action
from workforce.bookings import services
from workforce.bookings.exceptions import BookingNotFoundError
from workforce.bookings.exceptions import BookingStateError
from workforce.bookings.exceptions import BookingValidationError
from workforce.bookings.exceptions import EventInstanceNotFoundError
from workforce.bookings.models import Booking
from workforce.bookings.models import EventInstance
from workforce.realtime.events import bookings as booking_events

PUBLISH = "workforce.realtime.events.bookings.publish_best_effort"

# MO/WE/FR between 2030-01-07 and 2030-01-31.
EXPECTED_DATES = [
    date(2030, 1, d) for d in (7, 9, 11, 14, 16, 18, 21, 23, 25, 28, 30)
]


class TestCalculateEventDates:
    def test_one_off_booking_yields_start_date(self, booking):
        booking.is_recurring = False
        assert services.calculate_event_dates(booking) == [booking.start_date]

    def test_recurring_booking_expands_until_end_date(self, booking):
        assert services.calculate_event_dates(booking) == EXPECTED_DATES

    def test_recurrence_end_date_wins_over_end_date(self, booking):
        booking.recurrence_end_date = date(2030, 1, 10)
        assert services.calculate_event_dates(booking) == EXPECTED_DATES[:2]

    def test_legacy_pattern(self, booking):
        booking.recurrence_pattern = "biweekly"
        assert services.calculate_event_dates(booking) == [
            date(2030, 1, 7),
            date(2030, 1, 21),
        ]

    def test_unknown_pattern_yields_start_date(self, booking):
        booking.recurrence_pattern = "whenever"
        assert services.calculate_event_dates(booking) == [booking.start_date]

    def test_cap_comes_from_settings(self, booking, settings):
        settings.RECURRENCE_MAX_OCCURRENCES = 4
        booking.recurrence_pattern = "daily"
        booking.end_date = date(2031, 1, 1)
        assert len(services.calculate_event_dates(booking)) == 4


@pytest.mark.django_db
class TestApproveBooking:
    def test_approve_generates_one_instance_per_occurrence(self, booking, reviewer):
        result = services.approve_booking(booking.pk, reviewer)

        booking.refresh_from_db()
        assert result.pk == booking.pk
        assert booking.status == Booking.Status.APPROVED
        assert booking.approved_by == reviewer
        assert booking.approved_at is not None
        assert booking.event_generation_status == Booking.EventGenerationStatus.COMPLETED
        assert booking.event_count == len(EXPECTED_DATES)
        assert booking.last_event_generated_at is not None

        instances = list(booking.event_instances.all())
        assert [e.date for e in instances] == EXPECTED_DATES
        first = instances[0]
        assert first.status == EventInstance.Status.SCHEDULED
        assert first.check_in_required is True
        assert first.start_time == time(9, 0)
        assert first.end_time == time(17, 0)

    def test_approve_uses_booking_times(self, booking, reviewer):
        booking.start_time = time(10, 30)
        booking.end_time = time(14, 0)
        booking.save()

        services.approve_booking(booking.pk, reviewer)

        first = booking.event_instances.first()
        assert (first.start_time, first.end_time) == (time(10, 30), time(14, 0))

    def test_approve_without_generation_creates_no_rows(self, booking, reviewer):
        services.approve_booking(booking.pk, reviewer, generate_events=False)

        booking.refresh_from_db()
        assert booking.status == Booking.Status.APPROVED
        assert booking.event_generation_status == Booking.EventGenerationStatus.NOT_REQUESTED
        assert booking.event_count == 0
        assert not EventInstance.objects.filter(booking=booking).exists()

    def test_approve_writes_audit_row(self, booking, reviewer):
        services.approve_booking(booking.pk, reviewer)

        row = AuditLog.objects.get(action="booking_approved")
        assert row.actor == reviewer
        assert row.entity_type == "booking"
        assert row.entity_id == str(booking.pk)
        assert row.organization == booking.client_organization
        assert row.after["event_count"] == len(EXPECTED_DATES)

    def test_missing_booking(self, reviewer):
        with pytest.raises(BookingNotFoundError):
            services.approve_booking(999_999, reviewer)

    @pytest.mark.parametrize(
        "status",
        [Booking.Status.APPROVED, Booking.Status.REJECTED, Booking.Status.CANCELED],
    )
    def test_cannot_approve_from_status(self, booking, reviewer, status):
        Booking.objects.filter(pk=booking.pk).update(status=status)

        with pytest.raises(BookingStateError):
            services.approve_booking(booking.pk, reviewer)
        assert not EventInstance.objects.filter(booking=booking).exists()

    def test_draft_booking_can_be_approved(self, booking, reviewer):
        Booking.objects.filter(pk=booking.pk).update(status=Booking.Status.DRAFT)
        services.approve_booking(booking.pk, reviewer, generate_events=False)
        booking.refresh_from_db()
        assert booking.status == Booking.Status.APPROVED

    def test_transient_failures_are_retried_and_commit_once(self, booking, reviewer):
        calls = {"n": 0}

        def flaky_log_action(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] <= 2:
                msg = "deadlock detected"
                raise OperationalError(msg)
            return log_action(*args, **kwargs)

        with mock.patch.object(services, "log_action", side_effect=flaky_log_action):
            services.approve_booking(booking.pk, reviewer)

        assert calls["n"] == 3
        booking.refresh_from_db()
        assert booking.status == Booking.Status.APPROVED
        assert booking.event_instances.count() == len(EXPECTED_DATES)
        assert AuditLog.objects.filter(action="booking_approved").count() == 1

    def test_retries_are_bounded(self, booking, reviewer):
        error = OperationalError("connection reset by peer")
        with (
            mock.patch.object(services, "log_action", side_effect=error) as patched,
            pytest.raises(OperationalError),
        ):
            services.approve_booking(booking.pk, reviewer)

        assert patched.call_count == 3
        booking.refresh_from_db()
        assert booking.status == Booking.Status.PENDING
        assert not booking.event_instances.exists()

    def test_non_transient_error_is_not_retried(self, booking, reviewer):
        error = OperationalError("no such column: bogus")
        with (
            mock.patch.object(services, "log_action", side_effect=error) as patched,
            pytest.raises(OperationalError),
        ):
            services.approve_booking(booking.pk, reviewer)

        assert patched.call_count == 1

    def test_publishes_after_commit(
        self, booking, reviewer, django_capture_on_commit_callbacks
    ):
        with mock.patch(PUBLISH) as publish:
            with django_capture_on_commit_callbacks(execute=True):
                services.approve_booking(booking.pk, reviewer)

        publish.assert_called_once()
        event_type, payload = publish.call_args.args
        assert event_type == booking_events.BOOKING_APPROVED
        assert payload["bookingId"] == booking.pk
        assert payload["clientId"] == booking.client_organization_id
        assert payload["approvedBy"] == reviewer.pk
        assert payload["eventGenerationRequested"] is True
        assert payload["eventCount"] == len(EXPECTED_DATES)

    def test_nothing_published_when_approval_fails(
        self, booking, reviewer, django_capture_on_commit_callbacks
    ):
        Booking.objects.filter(pk=booking.pk).update(status=Booking.Status.REJECTED)
        with mock.patch(PUBLISH) as publish:
            with (
                django_capture_on_commit_callbacks(execute=True),
                pytest.raises(BookingStateError),
            ):
                services.approve_booking(booking.pk, reviewer)

        publish.assert_not_called()

    def test_failed_publish_keeps_approval(
        self, booking, reviewer, django_capture_on_commit_callbacks
    ):
        with mock.patch(PUBLISH, return_value=False):
            with django_capture_on_commit_callbacks(execute=True):
                services.approve_booking(booking.pk, reviewer)

        booking.refresh_from_db()
        assert booking.status == Booking.Status.APPROVED


@pytest.mark.django_db
class TestRejectAndCancel:
    def test_reject_requires_reason(self, booking, reviewer):
        with pytest.raises(BookingValidationError):
            services.reject_booking(booking.pk, reviewer, "   ")

    def test_reject(self, booking, reviewer, django_capture_on_commit_callbacks):
        with mock.patch(PUBLISH) as publish:
            with django_capture_on_commit_callbacks(execute=True):
                services.reject_booking(booking.pk, reviewer, "Venue unavailable")

        booking.refresh_from_db()
        assert booking.status == Booking.Status.REJECTED
        assert booking.rejection_reason == "Venue unavailable"
        assert booking.rejected_by == reviewer
        assert publish.call_args.args[0] == booking_events.BOOKING_REJECTED
        assert AuditLog.objects.filter(action="booking_rejected").exists()

    def test_cannot_reject_approved_booking(self, booking, reviewer):
        services.approve_booking(booking.pk, reviewer, generate_events=False)
        with pytest.raises(BookingStateError):
            services.reject_booking(booking.pk, reviewer, "Too late")

    def test_cancel_cancels_upcoming_scheduled_events(self, booking, reviewer):
        services.approve_booking(booking.pk, reviewer)
        first = booking.event_instances.first()
        EventInstance.objects.filter(pk=first.pk).update(
            status=EventInstance.Status.COMPLETED
        )

        services.cancel_booking(booking.pk, reviewer, "Client request")

        booking.refresh_from_db()
        assert booking.status == Booking.Status.CANCELED
        assert booking.cancel_reason == "Client request"
        statuses = set(
            booking.event_instances.exclude(pk=first.pk).values_list("status", flat=True)
        )
        assert statuses == {EventInstance.Status.CANCELED}
        first.refresh_from_db()
        assert first.status == EventInstance.Status.COMPLETED

    def test_cannot_cancel_twice(self, booking, reviewer):
        services.cancel_booking(booking.pk, reviewer)
        with pytest.raises(BookingStateError):
            services.cancel_booking(booking.pk, reviewer)


@pytest.mark.django_db
class TestRegenerate:
    def test_requires_approved_booking(self, booking):
        with pytest.raises(BookingStateError):
            services.regenerate_event_instances(booking.pk)

    def test_keeps_progressed_instances(self, booking, reviewer):
        services.approve_booking(booking.pk, reviewer)
        started = booking.event_instances.get(date=date(2030, 1, 9))
        started.status = EventInstance.Status.IN_PROGRESS
        started.save()
        Booking.objects.filter(pk=booking.pk).update(end_date=date(2030, 1, 14))

        services.regenerate_event_instances(booking.pk)

        booking.refresh_from_db()
        dates = list(booking.event_instances.values_list("date", flat=True))
        assert dates == [
            date(2030, 1, 7),
            date(2030, 1, 9),
            date(2030, 1, 11),
            date(2030, 1, 14),
        ]
        assert booking.event_count == 4
        started.refresh_from_db()
        assert started.status == EventInstance.Status.IN_PROGRESS


@pytest.mark.django_db
class TestEventInstanceTransitions:
    @pytest.fixture
    def event(self, booking, reviewer):
        services.approve_booking(booking.pk, reviewer)
        return booking.event_instances.first()

    def test_assign_manager(self, event, reviewer, user, django_capture_on_commit_callbacks):
        with mock.patch(PUBLISH) as publish:
            with django_capture_on_commit_callbacks(execute=True):
                services.assign_event_manager(event.pk, user, reviewer)

        event.refresh_from_db()
        assert event.field_manager == user
        event_type, payload = publish.call_args.args
        assert event_type == booking_events.EVENT_MANAGER_ASSIGNED
        assert payload["managerId"] == user.pk
        assert payload["eventId"] == event.pk

    def test_assign_manager_missing_event(self, reviewer, user):
        with pytest.raises(EventInstanceNotFoundError):
            services.assign_event_manager(999_999, user, reviewer)

    def test_preparation_flow(self, event, user, django_capture_on_commit_callbacks):
        with mock.patch(PUBLISH) as publish:
            with django_capture_on_commit_callbacks(execute=True):
                services.start_event_preparation(event.pk, user, ["pack kit"])
                services.mark_event_ready(event.pk, user, {"kit": True})

        event.refresh_from_db()
        assert event.preparation_status == EventInstance.PreparationStatus.READY
        published = [c.args[0] for c in publish.call_args_list]
        assert published == [
            booking_events.EVENT_PREPARATION_STARTED,
            booking_events.EVENT_PREPARATION_COMPLETE,
        ]
        assert publish.call_args_list[0].args[1]["tasks"] == ["pack kit"]

    def test_canceled_event_cannot_be_prepared(self, event, user):
        EventInstance.objects.filter(pk=event.pk).update(
            status=EventInstance.Status.CANCELED
        )
        with pytest.raises(BookingStateError):
            services.start_event_preparation(event.pk, user)
        with pytest.raises(BookingStateError):
            services.mark_event_ready(event.pk, user, {})
