import asyncio
import uuid

import pytest

from chat_relay.core.exceptions import TransportUnavailable
from chat_relay.models.base import utcnow
from chat_relay.models.chat.chat_message import ChatMessage
from chat_relay.services.chat.room_broadcaster import MESSAGE_CREATED, READ_STATUS_CHANGED, RoomBroadcaster
from chat_relay.services.chat.rooms import room_identity
from chat_relay.services.chat.subscription_manager import SubscriptionManager
from chat_relay.services.chat.websocket_manager import WebSocketManager

from conftest import FakeWebSocket


@pytest.fixture
async def manager():
    manager = WebSocketManager(queue_size=10)
    yield manager
    await manager.close()


async def _connect(manager):
    websocket = FakeWebSocket()
    connection = await manager.connect(websocket)
    return websocket, connection


async def _flush(manager):
    await asyncio.gather(*(c.outbox.join() for c in manager.active_connections.values()))


async def test_connect_accepts_and_greets(manager):
    websocket, connection = await _connect(manager)
    await _flush(manager)

    assert websocket.accepted
    assert websocket.sent[0]["type"] == "connection-status"
    assert websocket.sent[0]["data"]["connectionId"] == connection.connection_id


async def test_join_valid_room_acknowledges(manager):
    subscriptions = SubscriptionManager(manager)
    websocket, connection = await _connect(manager)
    room = room_identity(uuid.uuid4())

    assert subscriptions.join(connection.connection_id, room) is True
    await _flush(manager)

    assert websocket.sent[-1] == {"type": "room-joined", "data": {"room": room}}
    assert manager.rooms_of(connection.connection_id) == {room}


async def test_join_invalid_token_is_rejected_without_subscription(manager):
    subscriptions = SubscriptionManager(manager)
    websocket, connection = await _connect(manager)

    assert subscriptions.join(connection.connection_id, "not-a-room") is False
    assert subscriptions.join(connection.connection_id, "chat-not-a-uuid") is False
    await _flush(manager)

    assert websocket.event_types[-2:] == ["join-error", "join-error"]
    assert "must start with chat-" in websocket.sent[-2]["data"]["message"]
    assert "invalid group ID" in websocket.sent[-1]["data"]["message"]
    assert manager.room_subscriptions == {}


async def test_join_and_leave_are_idempotent(manager):
    subscriptions = SubscriptionManager(manager)
    _, connection = await _connect(manager)
    room = room_identity(uuid.uuid4())

    subscriptions.join(connection.connection_id, room)
    subscriptions.join(connection.connection_id, room)
    assert manager.room_subscriptions[room] == {connection.connection_id}

    assert subscriptions.leave(connection.connection_id, room) is True
    assert subscriptions.leave(connection.connection_id, room) is True
    assert room not in manager.room_subscriptions


async def test_leave_invalid_token_reports_error(manager):
    subscriptions = SubscriptionManager(manager)
    websocket, connection = await _connect(manager)

    assert subscriptions.leave(connection.connection_id, "not-a-room") is False
    await _flush(manager)

    assert websocket.event_types[-1] == "leave-error"


async def test_connection_can_hold_many_rooms(manager):
    subscriptions = SubscriptionManager(manager)
    _, connection = await _connect(manager)
    rooms = {room_identity(uuid.uuid4()) for _ in range(3)}

    for room in rooms:
        subscriptions.join(connection.connection_id, room)

    assert manager.rooms_of(connection.connection_id) == rooms


async def test_publish_reaches_only_the_target_room(manager):
    subscriptions = SubscriptionManager(manager)
    broadcaster = RoomBroadcaster(manager)
    ws_one, one = await _connect(manager)
    ws_two, two = await _connect(manager)
    room_one, room_two = room_identity(uuid.uuid4()), room_identity(uuid.uuid4())
    subscriptions.join(one.connection_id, room_one)
    subscriptions.join(two.connection_id, room_two)

    assert broadcaster.publish(room_one, MESSAGE_CREATED, {"text": "hi"}) == 1
    await _flush(manager)

    assert ws_one.sent[-1] == {"type": MESSAGE_CREATED, "data": {"text": "hi"}}
    assert MESSAGE_CREATED not in ws_two.event_types


async def test_publish_without_subscribers_is_noop(manager):
    broadcaster = RoomBroadcaster(manager)

    assert broadcaster.publish(room_identity(uuid.uuid4()), MESSAGE_CREATED, {}) == 0


async def test_publish_preserves_order_per_room(manager):
    subscriptions = SubscriptionManager(manager)
    broadcaster = RoomBroadcaster(manager)
    websocket, connection = await _connect(manager)
    room = room_identity(uuid.uuid4())
    subscriptions.join(connection.connection_id, room)

    for i in range(5):
        broadcaster.publish(room, MESSAGE_CREATED, {"n": i})
    await _flush(manager)

    published = [frame["data"]["n"] for frame in websocket.sent if frame["type"] == MESSAGE_CREATED]
    assert published == [0, 1, 2, 3, 4]


async def test_late_subscriber_misses_earlier_events(manager):
    subscriptions = SubscriptionManager(manager)
    broadcaster = RoomBroadcaster(manager)
    websocket, connection = await _connect(manager)
    room = room_identity(uuid.uuid4())

    broadcaster.publish(room, MESSAGE_CREATED, {"n": 1})
    subscriptions.join(connection.connection_id, room)
    await _flush(manager)

    assert MESSAGE_CREATED not in websocket.event_types


async def test_publish_message_created_serializes_message(manager):
    subscriptions = SubscriptionManager(manager)
    broadcaster = RoomBroadcaster(manager)
    websocket, connection = await _connect(manager)
    group_id = uuid.uuid4()
    subscriptions.join(connection.connection_id, room_identity(group_id))
    message = ChatMessage(
        id=uuid.uuid4(), chat_group_id=group_id, text="hi", sender_user_id="u1",
        sender_name="Alice", is_read=False,
    )
    message.created_at = utcnow()

    broadcaster.publish_message_created(message)
    await _flush(manager)

    frame = websocket.sent[-1]
    assert frame["type"] == MESSAGE_CREATED
    assert frame["data"]["id"] == str(message.id)
    assert frame["data"]["chatGroupId"] == str(group_id)
    assert frame["data"]["senderName"] == "Alice"
    assert frame["data"]["isRead"] is False


async def test_publish_read_status_payload(manager):
    subscriptions = SubscriptionManager(manager)
    broadcaster = RoomBroadcaster(manager)
    websocket, connection = await _connect(manager)
    group_id, message_id = uuid.uuid4(), uuid.uuid4()
    subscriptions.join(connection.connection_id, room_identity(group_id))

    broadcaster.publish_read_status(message_id, group_id, True)
    await _flush(manager)

    assert websocket.sent[-1] == {
        "type": READ_STATUS_CHANGED,
        "data": {"messageId": str(message_id), "groupId": str(group_id), "isRead": True},
    }


async def test_slow_subscriber_does_not_block_publish():
    manager = WebSocketManager(queue_size=1)
    release = asyncio.Event()

    class StalledWebSocket(FakeWebSocket):
        async def send_text(self, data):
            await release.wait()
            await super().send_text(data)

    websocket = StalledWebSocket()
    connection = await manager.connect(websocket)
    room = room_identity(uuid.uuid4())
    manager.add_to_room(connection.connection_id, room)
    # Let the sender pick up the greeting and stall on it
    await asyncio.sleep(0)

    assert manager.broadcast_to_room({"type": MESSAGE_CREATED, "data": {"n": 1}}, room) == 1
    assert manager.broadcast_to_room({"type": MESSAGE_CREATED, "data": {"n": 2}}, room) == 0

    release.set()
    await connection.outbox.join()
    assert websocket.event_types == ["connection-status", MESSAGE_CREATED]
    await manager.close()


async def test_disconnect_removes_all_subscriptions(manager):
    subscriptions = SubscriptionManager(manager)
    _, connection = await _connect(manager)
    _, other = await _connect(manager)
    shared = room_identity(uuid.uuid4())
    subscriptions.join(connection.connection_id, shared)
    subscriptions.join(connection.connection_id, room_identity(uuid.uuid4()))
    subscriptions.join(other.connection_id, shared)

    await manager.disconnect(connection.connection_id)

    assert not manager.is_connected(connection.connection_id)
    assert manager.room_subscriptions == {shared: {other.connection_id}}
    assert connection.sender_task.cancelled()


async def test_failed_send_drops_connection(manager):
    class BrokenWebSocket(FakeWebSocket):
        async def send_text(self, data):
            raise ConnectionResetError("gone")

    connection = await manager.connect(BrokenWebSocket())
    await asyncio.wait_for(connection.sender_task, timeout=1)

    assert not manager.is_connected(connection.connection_id)


async def test_closed_manager_refuses_broadcast():
    manager = WebSocketManager()
    await manager.close()

    with pytest.raises(TransportUnavailable):
        RoomBroadcaster(manager).publish(room_identity(uuid.uuid4()), MESSAGE_CREATED, {})
