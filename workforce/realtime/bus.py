"""Domain event bus on top of the channels layer.

Every published event goes to the group of its type and to ``events.all``.
WebSocket consumers join those groups on behalf of their clients.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

from workforce import policies
from workforce.core.retry import PUBLISH_ERROR_MARKERS
from workforce.core.retry import RetryPolicy
from workforce.core.retry import run_with_retry

logger = logging.getLogger(__name__)

ALL_EVENTS_GROUP = "events.all"
WILDCARD_EVENT_TYPES = frozenset({"*", "all"})
BUS_MESSAGE_TYPE = "bus.event"


class EventPublishError(RuntimeError):
    """Raised when an event cannot be handed to the channel layer."""


def _normalize_group_suffix(value: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in value.strip())
    return cleaned.lower()[:80]


def group_for_event_type(event_type: str) -> str:
    if event_type in WILDCARD_EVENT_TYPES:
        return ALL_EVENTS_GROUP
    return f"events.{_normalize_group_suffix(event_type)}"


def build_envelope(
    event_type: str,
    data: dict[str, Any],
    *,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "type": event_type,
        "data": data,
        "timestamp": timezone.now().isoformat(),
        "correlationId": correlation_id or data.get("correlationId") or str(uuid.uuid4()),
    }


async def apublish_event(event_type: str, data: dict[str, Any]) -> dict[str, Any]:
    layer = get_channel_layer()
    if layer is None:
        msg = "No channel layer configured"
        raise EventPublishError(msg)

    envelope = build_envelope(event_type, data)
    message = {"type": BUS_MESSAGE_TYPE, "event": envelope}
    await layer.group_send(group_for_event_type(event_type), message)
    await layer.group_send(ALL_EVENTS_GROUP, message)
    logger.debug("Published %s (%s)", event_type, envelope["id"])
    return envelope


def publish_event(event_type: str, data: dict[str, Any]) -> dict[str, Any]:
    """Publish from sync Django code (views, services, Celery tasks)."""

    return async_to_sync(apublish_event)(event_type, data)


def publish_best_effort(
    event_type: str,
    data: dict[str, Any],
    *,
    max_attempts: int | None = None,
) -> bool:
    """Publish with bounded retry; failures are logged, never raised."""

    policy = RetryPolicy(
        max_attempts=max_attempts or policies.event_bus_publish_max_attempts(),
        delay=policies.event_bus_retry_delay(),
        retryable_markers=PUBLISH_ERROR_MARKERS,
    )
    try:
        run_with_retry(
            lambda: publish_event(event_type, data),
            policy=policy,
            label=f"publish {event_type}",
        )
    except Exception:
        logger.exception(
            "Failed to publish %s after at most %s attempts (data=%s)",
            event_type,
            policy.max_attempts,
            data,
        )
        return False
    return True
