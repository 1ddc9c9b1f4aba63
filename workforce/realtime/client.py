"""Reconnecting client for the ``ws/events/`` stream.

Features:
- One WebSocket per client object, guarded against overlapping connects
- Fixed-delay reconnect with a bounded number of attempts
- Subscriptions re-sent after every successful (re)connect
- Ring buffer of the latest events, most recent first
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from typing import Any

import aiohttp

if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

_CLOSING_TYPES = (
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
    aiohttp.WSMsgType.ERROR,
)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class EventSocketOptions:
    auto_reconnect: bool = True
    reconnect_delay: float = 3.0
    max_reconnect_attempts: int = 5
    connect_timeout: float = 5.0
    max_events: int = 100
    on_connect: Callable[[], Any] | None = None
    on_disconnect: Callable[[], Any] | None = None
    on_error: Callable[[Any], Any] | None = None
    # Called as on_event(event_type, data).
    on_event: Callable[[str, Any], Any] | None = None


class EventSocketClient:
    """Client side of the event stream.

    ``session`` may be shared; when omitted the client creates its own
    ``aiohttp.ClientSession`` and closes it in :meth:`close`.
    """

    def __init__(
        self,
        url: str,
        event_types: Iterable[str] = (),
        options: EventSocketOptions | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        self.url = url
        self.options = options or EventSocketOptions()
        self.event_types: list[str] = list(dict.fromkeys(event_types))
        self.events: deque[Any] = deque(maxlen=self.options.max_events)
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0

        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._connecting = False
        self._closed = False
        self._reader_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED and self._ws is not None

    # Connection lifecycle -------------------------------------------------
    async def connect(self) -> bool:
        """Open the socket; returns ``False`` when skipped or failed."""

        if self._connecting:
            logger.info("Connection attempt already in progress, skipping")
            return False

        self._connecting = True
        self._closed = False
        try:
            await self._close_socket()
            self.state = ConnectionState.CONNECTING
            logger.info("Connecting to %s", self.url)

            try:
                ws = await asyncio.wait_for(
                    self._ensure_session().ws_connect(self.url),
                    timeout=self.options.connect_timeout,
                )
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
                logger.warning("Connection to %s failed: %s", self.url, exc)
                await self._notify(self.options.on_error, exc)
                await self._handle_disconnect()
                return False

            if self._closed:
                # close() ran during the handshake.
                await ws.close()
                self.state = ConnectionState.DISCONNECTED
                return False

            self._ws = ws
            self.state = ConnectionState.CONNECTED
            logger.info("Connected to %s", self.url)

            try:
                for event_type in self.event_types:
                    await self._send({"type": "subscribe", "eventType": event_type})
            except (aiohttp.ClientError, ConnectionError) as exc:
                logger.warning("Subscribing on %s failed: %s", self.url, exc)
                await self._notify(self.options.on_error, exc)
                await self._close_socket()
                await self._handle_disconnect()
                return False

            self.reconnect_attempts = 0
            self._reader_task = asyncio.create_task(self._read_loop(ws))
            await self._notify(self.options.on_connect)
            return True
        finally:
            self._connecting = False

    async def reconnect(self) -> bool:
        """Reset the attempt counter and connect again right away."""

        self.reconnect_attempts = 0
        self._cancel_reconnect()
        return await self.connect()

    async def close(self) -> None:
        """Stop reconnecting and close the socket (and an owned session)."""

        self._closed = True
        self._cancel_reconnect()
        await self._close_socket()
        self.state = ConnectionState.DISCONNECTED
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        logger.info("Event socket closed")

    # Subscriptions --------------------------------------------------------
    async def subscribe(self, event_type: str) -> None:
        if event_type not in self.event_types:
            self.event_types.append(event_type)
        if self.is_connected:
            await self._send({"type": "subscribe", "eventType": event_type})

    async def unsubscribe(self, event_type: str) -> None:
        if event_type in self.event_types:
            self.event_types.remove(event_type)
        if self.is_connected:
            await self._send({"type": "unsubscribe", "eventType": event_type})

    async def set_event_types(self, event_types: Iterable[str]) -> None:
        """Replace the tracked subscriptions, syncing the server when connected."""

        wanted = list(dict.fromkeys(event_types))
        removed = [t for t in self.event_types if t not in wanted]
        added = [t for t in wanted if t not in self.event_types]
        self.event_types = wanted
        if not self.is_connected:
            return
        for event_type in removed:
            await self._send({"type": "unsubscribe", "eventType": event_type})
        for event_type in added:
            await self._send({"type": "subscribe", "eventType": event_type})

    async def ping(self) -> bool:
        if not self.is_connected:
            return False
        await self._send({"type": "ping", "timestamp": int(time.time() * 1000)})
        return True

    # Internals ------------------------------------------------------------
    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _send(self, payload: dict[str, Any]) -> None:
        if self._ws is None:
            return
        await self._ws.send_str(json.dumps(payload))

    async def _close_socket(self) -> None:
        ws, self._ws = self._ws, None
        reader = self._reader_task
        self._reader_task = None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
        if ws is not None and not ws.closed:
            await ws.close()

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_message(msg.data)
                elif msg.type in _CLOSING_TYPES:
                    break
        except asyncio.CancelledError:
            return
        except aiohttp.ClientError as exc:
            logger.warning("Event socket read failed: %s", exc)
            await self._notify(self.options.on_error, exc)

        # A socket replaced by connect()/close() is not a disconnect.
        if ws is self._ws:
            self._ws = None
            self._reader_task = None
            await self._handle_disconnect()

    async def _handle_disconnect(self) -> None:
        self.state = ConnectionState.DISCONNECTED
        logger.info("Disconnected from %s", self.url)
        await self._notify(self.options.on_disconnect)

        if self._closed or not self.options.auto_reconnect:
            return
        if self.reconnect_attempts >= self.options.max_reconnect_attempts:
            logger.warning(
                "Giving up on %s after %s reconnect attempts",
                self.url,
                self.reconnect_attempts,
            )
            return

        self.reconnect_attempts += 1
        logger.info(
            "Attempting to reconnect (%s/%s) in %ss",
            self.reconnect_attempts,
            self.options.max_reconnect_attempts,
            self.options.reconnect_delay,
        )
        self._reconnect_task = asyncio.create_task(self._delayed_connect())

    async def _delayed_connect(self) -> None:
        await asyncio.sleep(self.options.reconnect_delay)
        if not self._closed:
            await self.connect()

    async def _handle_message(self, raw: str) -> None:
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring non-JSON message: %r", raw[:200])
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring unexpected message: %r", message)
            return

        kind = message.get("type")
        if kind == "event":
            data = message.get("data")
            self.events.appendleft(data)
            await self._notify(self.options.on_event, message.get("eventType"), data)
        elif kind == "error":
            logger.error("Server reported error: %s", message.get("message"))
            await self._notify(self.options.on_error, message)
        elif kind in {"subscription_confirmed", "unsubscription_confirmed"}:
            logger.info("%s: %s", kind, message.get("events"))
        elif kind in {"connected", "pong", "system"}:
            logger.debug("Received %s", kind)
        else:
            logger.info("Unhandled message type: %s", kind)

    async def _notify(self, callback: Callable | None, *args) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.exception("Event socket callback %r failed", callback)
