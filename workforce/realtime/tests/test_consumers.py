import pytest
from channels.testing import WebsocketCommunicator

from workforce.realtime.bus import apublish_event
from workforce.realtime.consumers import EventStreamConsumer


async def _connect(path="/ws/events/"):
    communicator = WebsocketCommunicator(EventStreamConsumer.as_asgi(), path)
    connected, _ = await communicator.connect()
    assert connected
    hello = await communicator.receive_json_from()
    assert hello["type"] == "connected"
    return communicator, hello


@pytest.mark.asyncio
async def test_connect_announces_connection_id():
    communicator, hello = await _connect()
    assert hello["connectionId"]
    assert hello["subscriptions"] == []
    await communicator.disconnect()


@pytest.mark.asyncio
async def test_query_string_subscribes_immediately():
    communicator, hello = await _connect("/ws/events/?events=BOOKING_APPROVED,KIT_APPROVED")
    assert hello["subscriptions"] == ["BOOKING_APPROVED", "KIT_APPROVED"]

    await apublish_event("KIT_APPROVED", {"kitTemplateId": 3})
    event = await communicator.receive_json_from()
    assert event["type"] == "event"
    assert event["eventType"] == "KIT_APPROVED"
    assert event["data"] == {"kitTemplateId": 3}
    await communicator.disconnect()


@pytest.mark.asyncio
async def test_subscribe_and_receive_events():
    communicator, _ = await _connect()

    await communicator.send_json_to({"type": "subscribe", "eventType": "BOOKING_APPROVED"})
    reply = await communicator.receive_json_from()
    assert reply["type"] == "subscription_confirmed"
    assert reply["events"] == ["BOOKING_APPROVED"]

    await apublish_event("BOOKING_REJECTED", {"bookingId": 1})
    await apublish_event("BOOKING_APPROVED", {"bookingId": 2})
    event = await communicator.receive_json_from()
    assert event["eventType"] == "BOOKING_APPROVED"
    assert event["data"] == {"bookingId": 2}
    assert await communicator.receive_nothing()
    await communicator.disconnect()


@pytest.mark.asyncio
async def test_event_forwarded_once_with_overlapping_subscriptions():
    communicator, _ = await _connect()
    await communicator.send_json_to({"type": "subscribe", "events": ["BOOKING_APPROVED", "*"]})
    await communicator.receive_json_from()

    await apublish_event("BOOKING_APPROVED", {"bookingId": 5})
    event = await communicator.receive_json_from()
    assert event["data"] == {"bookingId": 5}
    assert await communicator.receive_nothing()
    await communicator.disconnect()


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    communicator, _ = await _connect("/ws/events/?events=BOOKING_APPROVED")

    await communicator.send_json_to({"type": "unsubscribe", "events": ["BOOKING_APPROVED"]})
    reply = await communicator.receive_json_from()
    assert reply["type"] == "unsubscription_confirmed"

    await apublish_event("BOOKING_APPROVED", {"bookingId": 9})
    assert await communicator.receive_nothing()
    await communicator.disconnect()


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["ping", "heartbeat"])
async def test_ping_and_heartbeat_get_pong(kind):
    communicator, _ = await _connect()
    await communicator.send_json_to({"type": kind})
    reply = await communicator.receive_json_from()
    assert reply["type"] == "pong"
    await communicator.disconnect()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    ["not json", "[1, 2]", '{"type": "dance"}', '{"type": "subscribe"}'],
)
async def test_bad_messages_get_error(payload):
    communicator, _ = await _connect()
    await communicator.send_to(text_data=payload)
    reply = await communicator.receive_json_from()
    assert reply["type"] == "error"
    assert reply["message"]
    await communicator.disconnect()
