from celery import shared_task
from django.contrib.auth import get_user_model

from workforce.bookings.services import approve_booking
from workforce.bookings.services import regenerate_event_instances


@shared_task(name="bookings.approve")
def approve_booking_task(
    booking_id: int,
    approved_by_id: int | None = None,
    generate_events: bool = True,  # noqa: FBT001, FBT002
) -> dict:
    """Celery task wrapper to approve a booking outside the request cycle."""

    approver = None
    if approved_by_id is not None:
        approver = get_user_model().objects.filter(pk=approved_by_id).first()
    booking = approve_booking(booking_id, approver, generate_events=generate_events)
    return {
        "booking_id": booking.pk,
        "status": booking.status,
        "event_count": booking.event_count,
    }


@shared_task(name="bookings.regenerate_events")
def regenerate_events_task(booking_id: int) -> dict:
    booking = regenerate_event_instances(booking_id)
    return {"booking_id": booking.pk, "event_count": booking.event_count}
