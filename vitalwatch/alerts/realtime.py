"""Real-time push to users' private WebSocket rooms.

``RealtimePort`` is the interface the notification dispatcher calls.
``RoomBroadcaster`` implements it over WebSockets: each authenticated
connection joins the room keyed by its user id, and events are emitted
to every connection in that room. With a Redis client, events are
published to a pub/sub channel and every API process delivers to its
own connections, so pushes reach users connected to any worker.

Delivery is at-most-once. Offline users miss the event and fall back to
polling the unread-count endpoint.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from starlette.websockets import WebSocket

logger = logging.getLogger(__name__)

CHANNEL_NAME = "vitalwatch:realtime"


class RealtimePort(ABC):
    """Emit-and-forget event delivery to one user's private channel."""

    @abstractmethod
    async def push_to_user(self, user_id: str, event: str, payload: dict[str, Any]) -> bool:
        """Emit ``event`` with ``payload`` to the user's room.

        Returns:
            True if the event was handed to the transport. This says
            nothing about whether any client received it.
        """


@dataclass
class RoomMember:
    """A connected WebSocket joined to its user's room."""

    ws: WebSocket
    user_id: str
    connected_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class RoomBroadcaster(RealtimePort):
    """Per-user WebSocket rooms with optional Redis pub/sub fan-out.

    Lifecycle:
        1. ``start(redis_client)`` - subscribe to the channel, spawn listener
        2. ``join(ws, user_id)`` / ``leave(ws)`` - manage room membership
        3. ``stop()`` - cancel background tasks, close pub/sub
    """

    def __init__(
        self,
        max_connections: int = 1000,
        heartbeat_interval: int = 30,
    ) -> None:
        self._max_connections = max_connections
        self._heartbeat_interval = heartbeat_interval
        self._members: dict[WebSocket, RoomMember] = {}
        self._rooms: dict[str, set[WebSocket]] = {}
        self._redis: Any | None = None
        self._pubsub: Any | None = None
        self._subscriber_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._running = False

    @property
    def active_connections(self) -> int:
        return len(self._members)

    def room_size(self, user_id: str) -> int:
        return len(self._rooms.get(user_id, ()))

    def join(self, ws: WebSocket, user_id: str) -> bool:
        """Add a connection to ``user_id``'s room.

        Returns:
            True if joined, False if max connections reached.
        """
        if len(self._members) >= self._max_connections:
            return False

        self._members[ws] = RoomMember(ws=ws, user_id=user_id)
        self._rooms.setdefault(user_id, set()).add(ws)
        logger.info(
            "WebSocket joined room %s (total=%d)", user_id, len(self._members),
        )
        return True

    def leave(self, ws: WebSocket) -> None:
        """Remove a connection from its room."""
        member = self._members.pop(ws, None)
        if member is None:
            return
        room = self._rooms.get(member.user_id)
        if room is not None:
            room.discard(ws)
            if not room:
                del self._rooms[member.user_id]
        logger.info(
            "WebSocket left room %s (total=%d)", member.user_id, len(self._members),
        )

    async def start(self, redis_client: Any | None = None) -> None:
        """Start the Redis subscriber (if any) and heartbeat tasks."""
        if self._running:
            return

        self._running = True
        self._redis = redis_client

        if redis_client is not None:
            try:
                self._pubsub = redis_client.pubsub()
                await self._pubsub.subscribe(CHANNEL_NAME)
                self._subscriber_task = asyncio.create_task(
                    self._listen(), name="realtime-room-listener",
                )
            except Exception as e:
                # Degrade to in-process delivery
                logger.warning("Redis pub/sub unavailable, delivering locally: %s", e)
                self._redis = None
                self._pubsub = None

        self._heartbeat_task = asyncio.create_task(
            self._send_heartbeats(), name="realtime-heartbeat",
        )
        logger.info("RoomBroadcaster started (redis=%s)", self._redis is not None)

    async def stop(self) -> None:
        """Stop background tasks and close pub/sub."""
        self._running = False

        for task in (self._subscriber_task, self._heartbeat_task):
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._subscriber_task = None
        self._heartbeat_task = None

        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(CHANNEL_NAME)
                await self._pubsub.close()
            except Exception as e:
                logger.warning("Error closing pub/sub: %s", e)
            self._pubsub = None

        self._members.clear()
        self._rooms.clear()
        logger.info("RoomBroadcaster stopped")

    async def push_to_user(self, user_id: str, event: str, payload: dict[str, Any]) -> bool:
        envelope = {"user_id": user_id, "event": event, "data": payload}

        if self._redis is not None:
            try:
                await self._redis.publish(CHANNEL_NAME, json.dumps(envelope, default=str))
                return True
            except Exception as e:
                logger.warning(
                    "Failed to publish %s for user %s, delivering locally: %s",
                    event, user_id, e,
                )

        await self._deliver(envelope)
        return True

    async def _listen(self) -> None:
        """Background task: read pub/sub messages and deliver to local rooms."""
        try:
            while self._running:
                try:
                    message = await self._pubsub.get_message(
                        ignore_subscribe_messages=True, timeout=1.0,
                    )
                    if message is not None and message["type"] == "message":
                        await self._handle_raw(message["data"])
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning("Error reading pub/sub message: %s", e)
                    await asyncio.sleep(1.0)
        except asyncio.CancelledError:
            pass

    async def _handle_raw(self, raw_data: str | bytes) -> None:
        try:
            if isinstance(raw_data, bytes):
                raw_data = raw_data.decode("utf-8")
            envelope = json.loads(raw_data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Invalid realtime message: %s", e)
            return
        await self._deliver(envelope)

    async def _deliver(self, envelope: dict[str, Any]) -> None:
        """Send an event to every local connection in the target room."""
        user_id = envelope.get("user_id")
        room = self._rooms.get(user_id)
        if not room:
            return

        text = json.dumps(
            {"event": envelope.get("event"), "data": envelope.get("data", {})},
            default=str,
        )

        disconnected: list[WebSocket] = []
        for ws in list(room):
            try:
                await ws.send_text(text)
            except Exception:
                disconnected.append(ws)

        for ws in disconnected:
            self.leave(ws)

    async def _send_heartbeats(self) -> None:
        """Background task: ping every connection periodically."""
        try:
            while self._running:
                await asyncio.sleep(self._heartbeat_interval)
                if not self._members:
                    continue

                heartbeat = json.dumps({
                    "event": "heartbeat",
                    "data": {"timestamp": datetime.now(timezone.utc).isoformat()},
                })

                disconnected: list[WebSocket] = []
                for ws in list(self._members):
                    try:
                        await ws.send_text(heartbeat)
                    except Exception:
                        disconnected.append(ws)

                for ws in disconnected:
                    self.leave(ws)
        except asyncio.CancelledError:
            pass
