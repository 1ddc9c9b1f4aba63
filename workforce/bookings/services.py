"""Booking workflow: approval with event-instance generation and the
follow-up transitions on bookings and their scheduled events.

Every write runs in ``transaction.atomic`` under :func:`run_with_retry`, so a
deadlock or dropped connection restarts the whole unit from a clean rollback.
Notifications go out through the event bus only after commit.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING
from typing import TypeVar

from django.db import InterfaceError
from django.db import OperationalError
from django.db import transaction
from django.utils import timezone

from workforce import policies
from workforce.audit.utils import log_action
from workforce.bookings.exceptions import BookingNotFoundError
from workforce.bookings.exceptions import BookingStateError
from workforce.bookings.exceptions import BookingValidationError
from workforce.bookings.exceptions import EventInstanceNotFoundError
from workforce.bookings.models import Booking
from workforce.bookings.models import EventInstance
from workforce.core.retry import TRANSACTION_ERROR_MARKERS
from workforce.core.retry import RetryPolicy
from workforce.core.retry import run_with_retry
from workforce.realtime.events import bookings as booking_events
from workforce.recurrence import generate_occurrences
from workforce.recurrence import rule_for_legacy_pattern

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

APPROVABLE_STATUSES = {Booking.Status.DRAFT, Booking.Status.PENDING}
REJECTABLE_STATUSES = {Booking.Status.DRAFT, Booking.Status.PENDING}
CANCELABLE_STATUSES = {
    Booking.Status.DRAFT,
    Booking.Status.PENDING,
    Booking.Status.APPROVED,
    Booking.Status.IN_PROGRESS,
}


def _transaction_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=policies.booking_approval_max_attempts(),
        delay=policies.booking_approval_retry_delay(),
        retryable_markers=TRANSACTION_ERROR_MARKERS,
        retry_on=(OperationalError, InterfaceError),
    )


def _atomic_with_retry(func: Callable[[], T], *, label: str) -> T:
    def attempt():
        with transaction.atomic():
            return func()

    return run_with_retry(attempt, policy=_transaction_policy(), label=label)


def _lock_booking(booking_id) -> Booking:
    try:
        return Booking.objects.select_for_update().get(pk=booking_id)
    except Booking.DoesNotExist as exc:
        msg = f"Booking {booking_id} not found"
        raise BookingNotFoundError(msg) from exc


def _lock_event(event_id) -> EventInstance:
    try:
        return EventInstance.objects.select_for_update().get(pk=event_id)
    except EventInstance.DoesNotExist as exc:
        msg = f"Event instance {event_id} not found"
        raise EventInstanceNotFoundError(msg) from exc


def _booking_audit(action: str, booking: Booking, actor, **kwargs) -> None:
    log_action(
        action,
        actor=actor,
        organization=booking.client_organization,
        entity_type="booking",
        entity_id=booking.pk,
        **kwargs,
    )


def calculate_event_dates(booking: Booking) -> list[date]:
    """Dates to materialize for ``booking``.

    One-off bookings (or recurring ones without a usable pattern) yield their
    start date only. Recurring bookings expand their rule up to
    ``recurrence_end_date`` (falling back to ``end_date``).
    """

    if not booking.is_recurring or not booking.recurrence_pattern:
        return [booking.start_date]

    rule = rule_for_legacy_pattern(booking.recurrence_pattern)
    if rule is None:
        logger.warning(
            "Booking %s has unknown recurrence pattern %r; scheduling start date only",
            booking.pk,
            booking.recurrence_pattern,
        )
        return [booking.start_date]

    return generate_occurrences(
        booking.start_date,
        rule,
        end_date=booking.recurrence_end_date or booking.end_date,
        max_occurrences=policies.recurrence_max_occurrences(),
    )


def build_event_instances(booking: Booking, dates: list[date]) -> list[EventInstance]:
    start_time = booking.start_time or policies.event_instance_default_start_time()
    end_time = booking.end_time or policies.event_instance_default_end_time()
    return [
        EventInstance(
            booking=booking,
            date=day,
            start_time=start_time,
            end_time=end_time,
            location_id=booking.location_id,
            status=EventInstance.Status.SCHEDULED,
            check_in_required=True,
            special_instructions=booking.notes or "",
        )
        for day in dates
    ]


def approve_booking(booking_id, approved_by, *, generate_events: bool = True) -> Booking:
    """Approve a booking and optionally create one event instance per occurrence.

    Raises ``BookingNotFoundError`` or ``BookingStateError``; transient
    database errors are retried up to ``BOOKING_APPROVAL_MAX_ATTEMPTS`` times
    in total. ``BOOKING_APPROVED`` is published after commit and a failed
    publish never affects the approval.
    """

    def approve() -> Booking:
        booking = _lock_booking(booking_id)
        if booking.status not in APPROVABLE_STATUSES:
            msg = f"Booking {booking.pk} is {booking.status} and cannot be approved"
            raise BookingStateError(msg)

        now = timezone.now()
        booking.status = Booking.Status.APPROVED
        booking.approved_by = approved_by
        booking.approved_at = now

        if generate_events:
            instances = build_event_instances(booking, calculate_event_dates(booking))
            EventInstance.objects.bulk_create(instances)
            booking.event_generation_status = Booking.EventGenerationStatus.COMPLETED
            booking.event_count = len(instances)
            booking.last_event_generated_at = now
        else:
            booking.event_generation_status = Booking.EventGenerationStatus.NOT_REQUESTED
            booking.event_count = 0

        booking.save(
            update_fields=[
                "status",
                "approved_by",
                "approved_at",
                "event_generation_status",
                "event_count",
                "last_event_generated_at",
                "updated_at",
            ]
        )
        _booking_audit(
            "booking_approved",
            booking,
            approved_by,
            after={
                "status": booking.status,
                "event_generation_status": booking.event_generation_status,
                "event_count": booking.event_count,
            },
        )
        booking_events.booking_approved(booking, approved_by, generate_events=generate_events)
        return booking

    booking = _atomic_with_retry(approve, label=f"approve booking {booking_id}")
    logger.info(
        "Booking %s approved with %s event instance(s)",
        booking.pk,
        booking.event_count,
    )
    return booking


def reject_booking(booking_id, rejected_by, reason: str) -> Booking:
    reason = (reason or "").strip()
    if not reason:
        msg = "A rejection reason is required"
        raise BookingValidationError(msg)

    def reject() -> Booking:
        booking = _lock_booking(booking_id)
        if booking.status not in REJECTABLE_STATUSES:
            msg = f"Booking {booking.pk} is {booking.status} and cannot be rejected"
            raise BookingStateError(msg)
        before = {"status": booking.status}
        booking.status = Booking.Status.REJECTED
        booking.rejected_by = rejected_by
        booking.rejected_at = timezone.now()
        booking.rejection_reason = reason
        booking.save(
            update_fields=[
                "status",
                "rejected_by",
                "rejected_at",
                "rejection_reason",
                "updated_at",
            ]
        )
        _booking_audit(
            "booking_rejected",
            booking,
            rejected_by,
            message=reason,
            before=before,
            after={"status": booking.status},
        )
        booking_events.booking_rejected(booking, rejected_by)
        return booking

    return _atomic_with_retry(reject, label=f"reject booking {booking_id}")


def cancel_booking(booking_id, canceled_by, reason: str = "") -> Booking:
    """Cancel a booking along with its upcoming scheduled event instances."""

    def cancel() -> Booking:
        booking = _lock_booking(booking_id)
        if booking.status not in CANCELABLE_STATUSES:
            msg = f"Booking {booking.pk} is {booking.status} and cannot be canceled"
            raise BookingStateError(msg)
        before = {"status": booking.status}
        booking.status = Booking.Status.CANCELED
        booking.canceled_by = canceled_by
        booking.canceled_at = timezone.now()
        booking.cancel_reason = (reason or "").strip()
        booking.save(
            update_fields=[
                "status",
                "canceled_by",
                "canceled_at",
                "cancel_reason",
                "updated_at",
            ]
        )
        canceled_events = booking.event_instances.filter(
            status=EventInstance.Status.SCHEDULED,
            date__gte=timezone.localdate(),
        ).update(status=EventInstance.Status.CANCELED, updated_at=timezone.now())
        _booking_audit(
            "booking_canceled",
            booking,
            canceled_by,
            message=booking.cancel_reason,
            before=before,
            after={"status": booking.status, "canceled_events": canceled_events},
        )
        booking_events.booking_canceled(
            booking, canceled_by, canceled_events=canceled_events
        )
        return booking

    return _atomic_with_retry(cancel, label=f"cancel booking {booking_id}")


def regenerate_event_instances(booking_id) -> Booking:
    """Rebuild the scheduled instances of an approved booking.

    Instances that already moved past ``scheduled`` are kept; their dates are
    not generated again.
    """

    def regenerate() -> Booking:
        booking = _lock_booking(booking_id)
        if booking.status != Booking.Status.APPROVED:
            msg = f"Booking {booking.pk} is {booking.status}; only approved bookings have events"
            raise BookingStateError(msg)

        booking.event_instances.filter(status=EventInstance.Status.SCHEDULED).delete()
        kept = set(booking.event_instances.values_list("date", flat=True))
        dates = [d for d in calculate_event_dates(booking) if d not in kept]
        EventInstance.objects.bulk_create(build_event_instances(booking, dates))

        booking.event_count = booking.event_instances.count()
        booking.event_generation_status = Booking.EventGenerationStatus.COMPLETED
        booking.last_event_generated_at = timezone.now()
        booking.save(
            update_fields=[
                "event_count",
                "event_generation_status",
                "last_event_generated_at",
                "updated_at",
            ]
        )
        _booking_audit(
            "booking_events_regenerated",
            booking,
            None,
            after={"event_count": booking.event_count},
        )
        booking_events.booking_events_regenerated(booking)
        return booking

    return _atomic_with_retry(regenerate, label=f"regenerate events for booking {booking_id}")


def assign_event_manager(event_id, manager, assigned_by) -> EventInstance:
    def assign() -> EventInstance:
        event = _lock_event(event_id)
        before = {"field_manager": event.field_manager_id}
        event.field_manager = manager
        event.save(update_fields=["field_manager", "updated_at"])
        log_action(
            "event_manager_assigned",
            actor=assigned_by,
            entity_type="event_instance",
            entity_id=event.pk,
            before=before,
            after={"field_manager": event.field_manager_id},
        )
        booking_events.event_manager_assigned(event, assigned_by)
        return event

    return _atomic_with_retry(assign, label=f"assign manager to event {event_id}")


def start_event_preparation(event_id, user, tasks: list | None = None) -> EventInstance:
    tasks = list(tasks or [])

    def start() -> EventInstance:
        event = _lock_event(event_id)
        if event.status == EventInstance.Status.CANCELED:
            msg = f"Event instance {event.pk} is canceled"
            raise BookingStateError(msg)
        event.preparation_status = EventInstance.PreparationStatus.IN_PROGRESS
        event.save(update_fields=["preparation_status", "updated_at"])
        log_action(
            "event_preparation_started",
            actor=user,
            entity_type="event_instance",
            entity_id=event.pk,
            after={"preparation_status": event.preparation_status, "tasks": tasks},
        )
        booking_events.event_preparation_started(event, user, tasks)
        return event

    return _atomic_with_retry(start, label=f"start preparation of event {event_id}")


def mark_event_ready(event_id, user, details: dict) -> EventInstance:
    def mark() -> EventInstance:
        event = _lock_event(event_id)
        if event.status == EventInstance.Status.CANCELED:
            msg = f"Event instance {event.pk} is canceled"
            raise BookingStateError(msg)
        event.preparation_status = EventInstance.PreparationStatus.READY
        event.save(update_fields=["preparation_status", "updated_at"])
        log_action(
            "event_marked_ready",
            actor=user,
            entity_type="event_instance",
            entity_id=event.pk,
            after={"preparation_status": event.preparation_status, "ready": details},
        )
        booking_events.event_preparation_complete(event, user, details)
        return event

    return _atomic_with_retry(mark, label=f"mark event {event_id} ready")
