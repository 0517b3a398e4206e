"""
Real-Time Chat Relay.

Fans telemedicine chat frames out to every other connected websocket.

Each connection moves CONNECTING -> OPEN -> CLOSED and is driven by one
dispatch loop that turns socket activity into ``RelayEvent`` values
(CONNECTED, MESSAGE, DISCONNECTED). Frames are JSON objects with a ``type``
field; only ``chat_message`` frames are relayed, other types are ignored
and frames that cannot be parsed are dropped with a warning. The sending
connection never receives its own frame.

Delivery is at-most-once and best effort: no acknowledgement, retry or
persistence. Broadcasts run one at a time so every recipient sees frames in
the order the relay received them.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union

from fastapi import WebSocketDisconnect

logger = logging.getLogger(__name__)

CHAT_MESSAGE = "chat_message"


class ConnectionState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class RelayEventType(Enum):
    CONNECTED = "connected"
    MESSAGE = "message"
    DISCONNECTED = "disconnected"


@dataclass
class RelayEvent:
    """Something that happened on one connection."""
    type: RelayEventType
    payload: Union[str, bytes, None] = None


def parse_frame(payload: Union[str, bytes, None]) -> Optional[Tuple[Dict[str, Any], str]]:
    """
    Decode a frame into a dict with a string ``type``.

    Binary frames must hold UTF-8 text.

    Returns:
        The decoded frame and its text, or None if the payload is not a
        well-formed frame
    """
    if payload is None:
        return None
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            return None
    try:
        frame = json.loads(payload)
    except ValueError:
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
        return None
    return frame, payload


class RelayConnection:
    """One websocket and its lifecycle state."""

    def __init__(self, websocket: Any):
        self.id = uuid.uuid4().hex[:8]
        self.websocket = websocket
        self.state = ConnectionState.CONNECTING

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    async def send(self, payload: str):
        await self.websocket.send_text(payload)

    async def events(self) -> AsyncIterator[RelayEvent]:
        """
        Accept the socket and yield its events until the peer goes away.

        Always finishes with a DISCONNECTED event.
        """
        await self.websocket.accept()
        yield RelayEvent(RelayEventType.CONNECTED)

        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                payload = message.get("text")
                if payload is None:
                    payload = message.get("bytes")
                yield RelayEvent(RelayEventType.MESSAGE, payload)
        except WebSocketDisconnect:
            pass

        yield RelayEvent(RelayEventType.DISCONNECTED)


class ChatRelay:
    """
    Registry of live connections plus the broadcast logic.

    One instance is created at startup and shared by every ``/ws`` handler.
    """

    def __init__(self):
        # insertion ordered so recipients are served in connection order
        self._connections: Dict[str, RelayConnection] = {}
        self._broadcast_lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return sum(1 for c in self._connections.values() if c.is_open)

    def open_connections(self) -> List[RelayConnection]:
        return [c for c in self._connections.values() if c.is_open]

    def register(self, websocket: Any) -> RelayConnection:
        """Track a new socket; it receives nothing until its CONNECTED event."""
        connection = RelayConnection(websocket)
        self._connections[connection.id] = connection
        return connection

    async def serve(self, websocket: Any):
        """Run the dispatch loop for one websocket until it closes."""
        connection = self.register(websocket)
        try:
            async for event in connection.events():
                await self.dispatch(connection, event)
        finally:
            self._remove(connection)

    async def dispatch(self, connection: RelayConnection, event: RelayEvent):
        if event.type == RelayEventType.CONNECTED:
            connection.state = ConnectionState.OPEN
            logger.info(f"WebSocket client connected: {connection.id} ({self.connection_count} open)")
        elif event.type == RelayEventType.MESSAGE:
            await self.handle_frame(connection, event.payload)
        elif event.type == RelayEventType.DISCONNECTED:
            self._remove(connection)

    async def handle_frame(self, sender: RelayConnection, payload: Union[str, bytes, None]) -> int:
        """
        Relay one inbound frame.

        Returns:
            Number of connections the frame was delivered to
        """
        parsed = parse_frame(payload)
        if parsed is None:
            logger.warning(f"Dropping malformed frame from {sender.id}")
            return 0
        frame, text = parsed

        if frame["type"] != CHAT_MESSAGE:
            logger.debug(f"Ignoring frame of type {frame['type']!r} from {sender.id}")
            return 0

        return await self.broadcast(text, exclude=sender)

    async def broadcast(self, payload: str, exclude: Optional[RelayConnection] = None) -> int:
        """
        Send ``payload`` to every open connection except ``exclude``.

        A recipient whose send fails is closed and skipped; the others still
        receive the frame.
        """
        async with self._broadcast_lock:
            recipients = [c for c in self.open_connections() if c is not exclude]
            delivered = 0
            for recipient in recipients:
                if not recipient.is_open:
                    continue
                try:
                    await recipient.send(payload)
                    delivered += 1
                except (WebSocketDisconnect, RuntimeError, ConnectionError) as e:
                    logger.info(f"Dropping frame for closing connection {recipient.id}: {e}")
                    self._remove(recipient)
            return delivered

    def _remove(self, connection: RelayConnection):
        connection.state = ConnectionState.CLOSED
        if self._connections.pop(connection.id, None) is not None:
            logger.info(f"WebSocket client disconnected: {connection.id} ({self.connection_count} open)")
