from __future__ import annotations

import json
import logging
import uuid
from collections import deque
from urllib.parse import parse_qs

from channels.generic.websocket import AsyncWebsocketConsumer
from django.utils import timezone

from .bus import group_for_event_type

logger = logging.getLogger(__name__)

# Envelope ids remembered to avoid forwarding one event twice when the socket
# sits in both a type group and the catch-all group.
RECENT_EVENT_IDS = 256


def _now() -> str:
    return timezone.now().isoformat()


def _requested_event_types(message: dict) -> list[str]:
    if isinstance(message.get("events"), list):
        return [str(t) for t in message["events"] if t]
    event_type = message.get("eventType")
    if isinstance(event_type, str) and event_type:
        return [event_type]
    return []


class EventStreamConsumer(AsyncWebsocketConsumer):
    """Streams bus events to subscribed WebSocket clients.

    Inbound messages: ``subscribe``/``unsubscribe`` (``eventType`` or
    ``events``), ``ping``/``heartbeat``. Outbound: ``connected``,
    ``subscription_confirmed``, ``unsubscription_confirmed``, ``pong``,
    ``event`` and ``error``.
    """

    async def connect(self):
        self.connection_id = str(uuid.uuid4())
        self.groups_joined: set[str] = set()
        self.subscriptions: set[str] = set()
        self._recent_ids: deque[str] = deque(maxlen=RECENT_EVENT_IDS)
        await self.accept()

        user = self.scope.get("user")
        logger.info(
            "Client connected: %s (user=%s)",
            self.connection_id,
            getattr(user, "pk", None),
        )

        query = parse_qs(self.scope.get("query_string", b"").decode(errors="ignore"))
        initial = [t for raw in query.get("events", []) for t in raw.split(",") if t]
        if initial:
            await self._subscribe(initial)

        await self._send_json(
            {
                "type": "connected",
                "connectionId": self.connection_id,
                "subscriptions": sorted(self.subscriptions),
                "timestamp": _now(),
            }
        )

    async def disconnect(self, code):
        for group in list(getattr(self, "groups_joined", ())):
            await self.channel_layer.group_discard(group, self.channel_name)
        logger.info("Client disconnected: %s (code=%s)", getattr(self, "connection_id", "-"), code)

    async def receive(self, text_data=None, bytes_data=None):
        try:
            message = json.loads(text_data or "")
        except (TypeError, ValueError):
            await self._send_error("Invalid message format")
            return
        if not isinstance(message, dict):
            await self._send_error("Invalid message format")
            return

        kind = message.get("type")
        if kind in {"subscribe", "unsubscribe"}:
            event_types = _requested_event_types(message)
            if not event_types:
                await self._send_error(f"No event types given to {kind}")
                return
            if kind == "subscribe":
                await self._subscribe(event_types)
                reply = "subscription_confirmed"
            else:
                await self._unsubscribe(event_types)
                reply = "unsubscription_confirmed"
            await self._send_json(
                {
                    "type": reply,
                    "events": event_types,
                    "connectionId": self.connection_id,
                    "timestamp": _now(),
                }
            )
        elif kind in {"ping", "heartbeat"}:
            await self._send_json({"type": "pong", "timestamp": _now()})
        else:
            await self._send_error(f"Unknown message type: {kind}")

    async def bus_event(self, message):
        envelope = message["event"]
        if envelope["id"] in self._recent_ids:
            return
        self._recent_ids.append(envelope["id"])
        await self._send_json(
            {
                "type": "event",
                "eventType": envelope["type"],
                "data": envelope["data"],
                "id": envelope["id"],
                "correlationId": envelope.get("correlationId"),
                "timestamp": envelope["timestamp"],
            }
        )

    async def _subscribe(self, event_types: list[str]) -> None:
        for event_type in event_types:
            self.subscriptions.add(event_type)
            group = group_for_event_type(event_type)
            if group not in self.groups_joined:
                await self.channel_layer.group_add(group, self.channel_name)
                self.groups_joined.add(group)
        logger.debug("Client %s subscribed to %s", self.connection_id, event_types)

    async def _unsubscribe(self, event_types: list[str]) -> None:
        for event_type in event_types:
            self.subscriptions.discard(event_type)
        wanted = {group_for_event_type(t) for t in self.subscriptions}
        for group in self.groups_joined - wanted:
            await self.channel_layer.group_discard(group, self.channel_name)
        self.groups_joined &= wanted

    async def _send_error(self, text: str) -> None:
        await self._send_json({"type": "error", "message": text, "timestamp": _now()})

    async def _send_json(self, payload: dict) -> None:
        await self.send(text_data=json.dumps(payload))
