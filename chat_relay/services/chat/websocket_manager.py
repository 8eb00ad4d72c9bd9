# chat_relay/services/chat/websocket_manager.py
import asyncio
import contextlib
import json
import logging
import uuid
from typing import Dict, List, Optional, Set

from fastapi import WebSocket

from ...core.exceptions import TransportUnavailable

logger = logging.getLogger(__name__)


class ClientConnection:
    """One live socket with its own FIFO outbox drained by a single sender task."""

    def __init__(self, websocket: WebSocket, connection_id: str, queue_size: int):
        self.websocket = websocket
        self.connection_id = connection_id
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.sender_task: Optional[asyncio.Task] = None

    def enqueue(self, frame: dict) -> bool:
        try:
            self.outbox.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            return False

    async def drain(self):
        while True:
            frame = await self.outbox.get()
            await self.websocket.send_text(json.dumps(frame))
            self.outbox.task_done()


class WebSocketManager:
    """Owns live connections and their room memberships.

    Memberships are only mutated on the event loop; broadcasts iterate over a
    snapshot and never await a subscriber.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        # {connection_id: ClientConnection}
        self.active_connections: Dict[str, ClientConnection] = {}
        # {room: {connection_ids}}
        self.room_subscriptions: Dict[str, Set[str]] = {}
        self.accepting = True

    async def connect(self, websocket: WebSocket) -> ClientConnection:
        """Accept websocket connection and start its sender"""
        if not self.accepting:
            raise TransportUnavailable()
        await websocket.accept()
        connection = ClientConnection(websocket, uuid.uuid4().hex, self.queue_size)
        connection.sender_task = asyncio.create_task(self._run_sender(connection))
        self.active_connections[connection.connection_id] = connection

        logger.info(f"Client {connection.connection_id} connected")

        self.send_personal_message({
            "type": "connection-status",
            "data": {"status": "connected", "connectionId": connection.connection_id}
        }, connection.connection_id)
        return connection

    async def _run_sender(self, connection: ClientConnection):
        try:
            await connection.drain()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error sending to {connection.connection_id}: {e}")
            self._forget(connection.connection_id)

    def _forget(self, connection_id: str) -> Optional[ClientConnection]:
        """Drop a connection and every room it belonged to"""
        connection = self.active_connections.pop(connection_id, None)
        if connection is None:
            return None

        for room in list(self.room_subscriptions):
            subscribers = self.room_subscriptions[room]
            subscribers.discard(connection_id)
            if not subscribers:
                del self.room_subscriptions[room]
        return connection

    async def disconnect(self, connection_id: str):
        """Remove connection, its subscriptions and its sender"""
        connection = self._forget(connection_id)
        if connection is None:
            return
        if connection.sender_task and connection.sender_task is not asyncio.current_task():
            connection.sender_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await connection.sender_task
        logger.info(f"Client {connection_id} disconnected")

    async def close(self):
        """Stop accepting broadcasts and drop every connection"""
        self.accepting = False
        for connection_id in list(self.active_connections):
            await self.disconnect(connection_id)

    def add_to_room(self, connection_id: str, room: str) -> bool:
        if connection_id not in self.active_connections:
            logger.warning(f"Client {connection_id} not connected, cannot join room {room}")
            return False
        self.room_subscriptions.setdefault(room, set()).add(connection_id)
        return True

    def remove_from_room(self, connection_id: str, room: str):
        subscribers = self.room_subscriptions.get(room)
        if subscribers is None:
            return
        subscribers.discard(connection_id)
        if not subscribers:
            del self.room_subscriptions[room]

    def rooms_of(self, connection_id: str) -> Set[str]:
        return {room for room, subscribers in self.room_subscriptions.items() if connection_id in subscribers}

    def subscribers(self, room: str) -> List[ClientConnection]:
        """Snapshot of the live connections in a room"""
        return [
            self.active_connections[connection_id]
            for connection_id in list(self.room_subscriptions.get(room, ()))
            if connection_id in self.active_connections
        ]

    def send_personal_message(self, message: dict, connection_id: str) -> bool:
        """Queue a frame for one connection"""
        connection = self.active_connections.get(connection_id)
        if connection is None:
            return False
        if not connection.enqueue(message):
            logger.warning(f"Outbox full for {connection_id}, dropping {message.get('type')}")
            return False
        return True

    def broadcast_to_room(self, message: dict, room: str) -> int:
        """Queue a frame for every current subscriber of a room; returns how many accepted it"""
        if not self.accepting:
            raise TransportUnavailable()

        sent_count = 0
        for connection in self.subscribers(room):
            if connection.enqueue(message):
                sent_count += 1
            else:
                logger.warning(f"Outbox full for {connection.connection_id}, dropping {message.get('type')} for room {room}")
        logger.debug(f"Broadcast {message.get('type')} to room {room}: {sent_count} recipients")
        return sent_count

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.active_connections
