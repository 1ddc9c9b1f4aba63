from __future__ import annotations

import uuid
from typing import TYPE_CHECKING
from typing import Any

from django.db.transaction import on_commit
from django.utils import timezone

from workforce.realtime.bus import publish_best_effort

if TYPE_CHECKING:  # import for type checking only
    from workforce.bookings.models import Booking
    from workforce.bookings.models import EventInstance

BOOKING_APPROVED = "BOOKING_APPROVED"
BOOKING_REJECTED = "BOOKING_REJECTED"
BOOKING_CANCELED = "BOOKING_CANCELED"
BOOKING_EVENTS_REGENERATED = "BOOKING_EVENTS_REGENERATED"
EVENT_MANAGER_ASSIGNED = "EVENT_MANAGER_ASSIGNED"
EVENT_PREPARATION_STARTED = "EVENT_PREPARATION_STARTED"
EVENT_PREPARATION_COMPLETE = "EVENT_PREPARATION_COMPLETE"


def _user_id(user) -> int | None:
    return getattr(user, "pk", None)


def build_booking_payload(booking: Booking, **extra: Any) -> dict[str, Any]:
    payload = {
        "bookingId": booking.pk,
        "clientId": booking.client_organization_id,
        "status": booking.status,
        "eventCount": booking.event_count,
        "correlationId": str(uuid.uuid4()),
    }
    payload.update(extra)
    return payload


def build_event_instance_payload(event: EventInstance, **extra: Any) -> dict[str, Any]:
    payload = {
        "eventId": event.pk,
        "bookingId": event.booking_id,
        "date": event.date.isoformat(),
        "preparationStatus": event.preparation_status,
    }
    payload.update(extra)
    return payload


def publish_on_commit(event_type: str, payload: dict[str, Any]) -> None:
    """Publish once the surrounding transaction commits; never raises."""

    on_commit(lambda: publish_best_effort(event_type, payload))


def booking_approved(booking: Booking, approved_by, *, generate_events: bool) -> None:
    payload = build_booking_payload(
        booking,
        approvedBy=_user_id(approved_by),
        approvedAt=(booking.approved_at or timezone.now()).isoformat(),
        eventGenerationRequested=generate_events,
    )
    publish_on_commit(BOOKING_APPROVED, payload)


def booking_rejected(booking: Booking, rejected_by) -> None:
    payload = build_booking_payload(
        booking,
        rejectedBy=_user_id(rejected_by),
        reason=booking.rejection_reason,
    )
    publish_on_commit(BOOKING_REJECTED, payload)


def booking_canceled(booking: Booking, canceled_by, *, canceled_events: int) -> None:
    payload = build_booking_payload(
        booking,
        canceledBy=_user_id(canceled_by),
        reason=booking.cancel_reason,
        canceledEvents=canceled_events,
    )
    publish_on_commit(BOOKING_CANCELED, payload)


def booking_events_regenerated(booking: Booking) -> None:
    publish_on_commit(BOOKING_EVENTS_REGENERATED, build_booking_payload(booking))


def event_manager_assigned(event: EventInstance, assigned_by) -> None:
    payload = build_event_instance_payload(
        event,
        managerId=event.field_manager_id,
        assignedBy=_user_id(assigned_by),
        assignedAt=timezone.now().isoformat(),
    )
    publish_on_commit(EVENT_MANAGER_ASSIGNED, payload)


def event_preparation_started(event: EventInstance, started_by, tasks: list) -> None:
    payload = build_event_instance_payload(
        event,
        startedBy=_user_id(started_by),
        startedAt=timezone.now().isoformat(),
        tasks=tasks,
    )
    publish_on_commit(EVENT_PREPARATION_STARTED, payload)


def event_preparation_complete(event: EventInstance, marked_by, details: dict) -> None:
    payload = build_event_instance_payload(
        event,
        readyStatus=details,
        markedBy=_user_id(marked_by),
        markedAt=timezone.now().isoformat(),
    )
    publish_on_commit(EVENT_PREPARATION_COMPLETE, payload)
