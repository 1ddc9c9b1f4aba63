"""Operational knobs for bookings, the event bus and recurrence.

Services read these values through the accessors below instead of
embedding constants locally.
"""

from .accessors import booking_approval_max_attempts
from .accessors import booking_approval_retry_delay
from .accessors import event_bus_publish_max_attempts
from .accessors import event_bus_retry_delay
from .accessors import event_instance_default_end_time
from .accessors import event_instance_default_start_time
from .accessors import recurrence_max_occurrences

__all__ = [
    "booking_approval_max_attempts",
    "booking_approval_retry_delay",
    "event_bus_publish_max_attempts",
    "event_bus_retry_delay",
    "event_instance_default_end_time",
    "event_instance_default_start_time",
    "recurrence_max_occurrences",
]
