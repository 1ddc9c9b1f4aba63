import asyncio
import json

import aiohttp
import pytest

from workforce.realtime.client import ConnectionState
from workforce.realtime.client import EventSocketClient
from workforce.realtime.client import EventSocketOptions

URL = "ws://testserver/ws/events/"


class FakeWebSocket:
    """Stand-in for ``aiohttp.ClientWebSocketResponse`` fed from a queue."""

    def __init__(self, reset_on_send=False):
        self.sent: list[dict] = []
        self.closed = False
        self.reset_on_send = reset_on_send
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send_str(self, data: str):
        if self.reset_on_send:
            msg = "connection reset by peer"
            raise ConnectionResetError(msg)
        self.sent.append(json.loads(data))

    async def close(self):
        self.closed = True
        self.drop()

    def push(self, payload):
        text = payload if isinstance(payload, str) else json.dumps(payload)
        self._inbox.put_nowait(aiohttp.WSMessage(aiohttp.WSMsgType.TEXT, text, None))

    def drop(self):
        self._inbox.put_nowait(aiohttp.WSMessage(aiohttp.WSMsgType.CLOSED, None, None))

    def __aiter__(self):
        return self

    async def __anext__(self):
        msg = await self._inbox.get()
        if msg.type == aiohttp.WSMsgType.CLOSED:
            raise StopAsyncIteration
        return msg


class FakeSession:
    """Hands out FakeWebSockets, or raises for queued failures."""

    def __init__(self, failures=0, resets=0):
        self.failures = failures
        self.resets = resets
        self.sockets: list[FakeWebSocket] = []
        self.attempts = 0
        self.gate: asyncio.Event | None = None

    async def ws_connect(self, url):
        self.attempts += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            self.failures -= 1
            msg = "connection refused"
            raise aiohttp.ClientConnectionError(msg)
        ws = FakeWebSocket(reset_on_send=self.resets > 0)
        self.resets = max(self.resets - 1, 0)
        self.sockets.append(ws)
        return ws

    async def close(self):
        return None


async def settle(client: EventSocketClient):
    """Let pending reconnect attempts and the reader task run."""
    for _ in range(20):
        await asyncio.sleep(0)
        task = client._reconnect_task  # noqa: SLF001
        if task is not None and not task.done():
            await task


def fast_options(**kwargs) -> EventSocketOptions:
    kwargs.setdefault("reconnect_delay", 0)
    return EventSocketOptions(**kwargs)


@pytest.mark.asyncio
async def test_connect_subscribes_tracked_event_types():
    session = FakeSession()
    client = EventSocketClient(URL, ["BOOKING_APPROVED", "KIT_APPROVED"], session=session)

    assert await client.connect() is True
    assert client.state == ConnectionState.CONNECTED
    assert session.sockets[0].sent == [
        {"type": "subscribe", "eventType": "BOOKING_APPROVED"},
        {"type": "subscribe", "eventType": "KIT_APPROVED"},
    ]
    await client.close()
    assert client.state == ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_subscriptions_resent_after_reconnect():
    session = FakeSession()
    connects = []
    client = EventSocketClient(
        URL,
        ["BOOKING_APPROVED"],
        options=fast_options(on_connect=lambda: connects.append(1)),
        session=session,
    )
    await client.connect()
    await client.subscribe("EVENT_MANAGER_ASSIGNED")

    session.sockets[0].drop()
    await settle(client)

    assert client.state == ConnectionState.CONNECTED
    assert len(session.sockets) == 2
    assert session.sockets[1].sent == [
        {"type": "subscribe", "eventType": "BOOKING_APPROVED"},
        {"type": "subscribe", "eventType": "EVENT_MANAGER_ASSIGNED"},
    ]
    assert client.reconnect_attempts == 0
    assert len(connects) == 2
    await client.close()


@pytest.mark.asyncio
async def test_stops_after_max_reconnect_attempts():
    session = FakeSession(failures=10)
    disconnects = []
    client = EventSocketClient(
        URL,
        options=fast_options(
            max_reconnect_attempts=2,
            on_disconnect=lambda: disconnects.append(1),
        ),
        session=session,
    )

    assert await client.connect() is False
    await settle(client)

    # First attempt plus two reconnects.
    assert session.attempts == 3
    assert len(disconnects) == 3
    assert client.state == ConnectionState.DISCONNECTED
    await client.close()


@pytest.mark.asyncio
async def test_no_reconnect_when_disabled():
    session = FakeSession(failures=1)
    client = EventSocketClient(URL, options=fast_options(auto_reconnect=False), session=session)

    await client.connect()
    await settle(client)

    assert session.attempts == 1
    assert client.state == ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_overlapping_connect_is_skipped():
    session = FakeSession()
    session.gate = asyncio.Event()
    client = EventSocketClient(URL, session=session)

    first = asyncio.create_task(client.connect())
    await asyncio.sleep(0)
    assert client.state == ConnectionState.CONNECTING
    assert await client.connect() is False

    session.gate.set()
    assert await first is True
    assert session.attempts == 1
    await client.close()


@pytest.mark.asyncio
async def test_connect_timeout_counts_as_failure():
    session = FakeSession()
    session.gate = asyncio.Event()
    errors = []
    client = EventSocketClient(
        URL,
        options=fast_options(connect_timeout=0.01, auto_reconnect=False, on_error=errors.append),
        session=session,
    )

    assert await client.connect() is False
    assert client.state == ConnectionState.DISCONNECTED
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_events_are_buffered_newest_first_and_capped():
    session = FakeSession()
    received = []
    client = EventSocketClient(
        URL,
        ["BOOKING_APPROVED"],
        options=fast_options(on_event=lambda kind, data: received.append(kind)),
        session=session,
    )
    await client.connect()
    ws = session.sockets[0]

    for i in range(105):
        ws.push({"type": "event", "eventType": "BOOKING_APPROVED", "data": {"n": i}})
    ws.push("{broken json")
    ws.push({"type": "pong"})
    await settle(client)

    assert len(client.events) == 100
    assert client.events[0] == {"n": 104}
    assert client.events[-1] == {"n": 5}
    assert len(received) == 105
    assert client.state == ConnectionState.CONNECTED
    await client.close()


@pytest.mark.asyncio
async def test_subscribe_unsubscribe_and_ping_when_connected():
    session = FakeSession()
    client = EventSocketClient(URL, ["A"], session=session)

    assert await client.ping() is False
    await client.subscribe("B")
    assert client.event_types == ["A", "B"]

    await client.connect()
    ws = session.sockets[0]
    ws.sent.clear()

    await client.unsubscribe("A")
    await client.set_event_types(["B", "C"])
    assert await client.ping() is True

    assert ws.sent[:3] == [
        {"type": "unsubscribe", "eventType": "A"},
        {"type": "subscribe", "eventType": "C"},
        {"type": "ping", "timestamp": ws.sent[2]["timestamp"]},
    ]
    assert client.event_types == ["B", "C"]
    await client.close()


@pytest.mark.asyncio
async def test_close_prevents_reconnect():
    session = FakeSession()
    client = EventSocketClient(URL, options=fast_options(), session=session)
    await client.connect()

    await client.close()
    await settle(client)

    assert session.attempts == 1
    assert session.sockets[0].closed


@pytest.mark.asyncio
async def test_manual_reconnect_resets_attempts():
    session = FakeSession(failures=1)
    client = EventSocketClient(URL, options=fast_options(auto_reconnect=False), session=session)
    await client.connect()
    client.reconnect_attempts = 4

    assert await client.reconnect() is True
    assert client.reconnect_attempts == 0
    await client.close()


@pytest.mark.asyncio
async def test_socket_reset_while_subscribing_triggers_reconnect():
    session = FakeSession(resets=1)
    errors = []
    client = EventSocketClient(
        URL,
        ["BOOKING_APPROVED"],
        options=fast_options(on_error=errors.append),
        session=session,
    )

    assert await client.connect() is False
    assert session.sockets[0].closed
    assert len(errors) == 1

    await settle(client)

    assert session.attempts == 2
    assert client.state == ConnectionState.CONNECTED
    assert client.reconnect_attempts == 0
    assert session.sockets[1].sent == [
        {"type": "subscribe", "eventType": "BOOKING_APPROVED"},
    ]
    await client.close()


@pytest.mark.asyncio
async def test_close_during_handshake_discards_the_socket():
    session = FakeSession()
    session.gate = asyncio.Event()
    client = EventSocketClient(URL, options=fast_options(), session=session)

    pending = asyncio.create_task(client.connect())
    await asyncio.sleep(0)
    await client.close()
    session.gate.set()

    assert await pending is False
    assert client.state == ConnectionState.DISCONNECTED
    assert not client.is_connected
    assert session.sockets[0].closed
    await settle(client)
    assert session.attempts == 1


@pytest.mark.asyncio
async def test_repeated_resets_while_subscribing_stay_bounded():
    session = FakeSession(resets=10)
    client = EventSocketClient(
        URL,
        ["BOOKING_APPROVED"],
        options=fast_options(max_reconnect_attempts=2),
        session=session,
    )

    await client.connect()
    await settle(client)

    assert session.attempts == 3
    assert client.state == ConnectionState.DISCONNECTED
    await client.close()
