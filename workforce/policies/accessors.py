from __future__ import annotations

from datetime import time

from django.conf import settings


def _time_setting(name: str, default: str) -> time:
    raw = str(getattr(settings, name, default) or default)
    try:
        return time.fromisoformat(raw)
    except ValueError:
        return time.fromisoformat(default)


def booking_approval_max_attempts() -> int:
    """Total attempts for the approval transaction (default: 3)."""

    return max(1, int(getattr(settings, "BOOKING_APPROVAL_MAX_ATTEMPTS", 3)))


def booking_approval_retry_delay() -> float:
    """Seconds to wait between approval attempts."""

    return float(getattr(settings, "BOOKING_APPROVAL_RETRY_DELAY", 0.1))


def event_bus_publish_max_attempts() -> int:
    """Attempts for a post-commit publish before giving up (default: 5)."""

    return max(1, int(getattr(settings, "EVENT_BUS_PUBLISH_MAX_ATTEMPTS", 5)))


def event_bus_retry_delay() -> float:
    return float(getattr(settings, "EVENT_BUS_RETRY_DELAY", 0.2))


def recurrence_max_occurrences() -> int:
    """Cap applied to rules without COUNT (default: 100)."""

    return max(1, int(getattr(settings, "RECURRENCE_MAX_OCCURRENCES", 100)))


def event_instance_default_start_time() -> time:
    return _time_setting("EVENT_INSTANCE_DEFAULT_START_TIME", "09:00")


def event_instance_default_end_time() -> time:
    return _time_setting("EVENT_INSTANCE_DEFAULT_END_TIME", "17:00")
