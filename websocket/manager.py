"""
WebSocket connection manager for the repository analytics backend.

Pushes panel computation updates to the dashboard:
- Connection management
- Channel-based message broadcasting (``panel:{panel_id}``)
- Panel started / progress / completed / failed notifications
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

from api.shared.logger import get_logger

logger = get_logger(__name__)


class MessageType(str, Enum):
    """Types of WebSocket messages."""

    # Panel computation messages
    PANEL_STARTED = "panel_started"
    PANEL_PROGRESS = "panel_progress"
    PANEL_COMPLETED = "panel_completed"
    PANEL_FAILED = "panel_failed"

    # Client requests
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"

    # System messages
    PING = "ping"
    PONG = "pong"
    ERROR = "error"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"


def panel_channel(panel_id: str) -> str:
    return f"panel:{panel_id}"


@dataclass
class WebSocketMessage:
    """Represents a WebSocket message."""

    type: MessageType
    channel: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[str] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now().isoformat()

    def to_json(self) -> str:
        """Convert message to JSON string."""
        return json.dumps({
            "type": self.type.value,
            "channel": self.channel,
            "data": self.data,
            "timestamp": self.timestamp,
        })

    @classmethod
    def from_json(cls, json_str: str) -> "WebSocketMessage":
        """Create message from JSON string."""
        data = json.loads(json_str)
        if not isinstance(data, dict):
            raise ValueError("message must be a JSON object")
        return cls(
            type=MessageType(data.get("type", "error")),
            channel=data.get("channel", ""),
            data=data.get("data") or {},
            timestamp=data.get("timestamp"),
        )


class WebSocketManager:
    """
    Manages WebSocket connections for panel updates.

    Supports channel-based subscriptions for targeted message delivery.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()

        # Channel subscriptions: channel -> set of WebSockets
        self._channels: Dict[str, Set[WebSocket]] = {}

        # Connection metadata: WebSocket -> subscription info
        self._connection_info: Dict[WebSocket, Dict[str, Any]] = {}

        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, client_id: Optional[str] = None) -> None:
        """
        Accept a new WebSocket connection.

        Args:
            websocket: The WebSocket connection
            client_id: Optional client identifier
        """
        await websocket.accept()

        async with self._lock:
            self._connections.add(websocket)
            self._connection_info[websocket] = {
                "client_id": client_id,
                "connected_at": datetime.now().isoformat(),
                "subscriptions": set(),
            }

        await self.send_to_connection(
            websocket,
            WebSocketMessage(
                type=MessageType.CONNECTED,
                channel="system",
                data={
                    "client_id": client_id,
                    "message": "Connected to repository analytics WebSocket server",
                },
            ),
        )

    async def disconnect(self, websocket: WebSocket) -> None:
        """Forget a connection and all of its subscriptions."""
        async with self._lock:
            subscriptions = self._connection_info.get(websocket, {}).get("subscriptions", set())
            for channel in subscriptions:
                if channel in self._channels:
                    self._channels[channel].discard(websocket)
                    if not self._channels[channel]:
                        del self._channels[channel]

            self._connections.discard(websocket)
            self._connection_info.pop(websocket, None)

    async def subscribe(self, websocket: WebSocket, channel: str) -> None:
        """
        Subscribe a connection to a channel.

        Args:
            websocket: The WebSocket connection
            channel: Channel name to subscribe to
        """
        async with self._lock:
            self._channels.setdefault(channel, set()).add(websocket)
            if websocket in self._connection_info:
                self._connection_info[websocket]["subscriptions"].add(channel)

        await self.send_to_connection(
            websocket,
            WebSocketMessage(
                type=MessageType.SUBSCRIBED,
                channel=channel,
                data={"channel": channel},
            ),
        )

    async def unsubscribe(self, websocket: WebSocket, channel: str) -> None:
        async with self._lock:
            if channel in self._channels:
                self._channels[channel].discard(websocket)
                if not self._channels[channel]:
                    del self._channels[channel]

            if websocket in self._connection_info:
                self._connection_info[websocket]["subscriptions"].discard(channel)

        await self.send_to_connection(
            websocket,
            WebSocketMessage(
                type=MessageType.UNSUBSCRIBED,
                channel=channel,
                data={"channel": channel},
            ),
        )

    async def send_to_connection(
        self,
        websocket: WebSocket,
        message: WebSocketMessage,
    ) -> bool:
        """
        Send a message to a specific connection.

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            await websocket.send_text(message.to_json())
            return True
        except Exception as e:
            logger.warning("Error sending WebSocket message: %s", e)
            await self.disconnect(websocket)
            return False

    async def broadcast_to_channel(
        self,
        channel: str,
        message: WebSocketMessage,
    ) -> int:
        """
        Broadcast a message to all subscribers of a channel.

        Returns:
            Number of connections that received the message
        """
        async with self._lock:
            subscribers = list(self._channels.get(channel, set()))

        sent_count = 0
        disconnected = []

        for websocket in subscribers:
            try:
                await websocket.send_text(message.to_json())
                sent_count += 1
            except Exception:
                disconnected.append(websocket)

        for ws in disconnected:
            await self.disconnect(ws)

        return sent_count

    def get_channel_subscribers(self, channel: str) -> int:
        return len(self._channels.get(channel, set()))

    def get_connection_count(self) -> int:
        """Get the total number of active connections."""
        return len(self._connections)

    async def handle_message(
        self,
        websocket: WebSocket,
        message_text: str,
    ) -> Optional[WebSocketMessage]:
        """
        Handle an incoming WebSocket message.

        Args:
            websocket: Source WebSocket connection
            message_text: Raw message text

        Returns:
            Response message or None
        """
        try:
            message = WebSocketMessage.from_json(message_text)
        except (json.JSONDecodeError, ValueError) as e:
            return WebSocketMessage(
                type=MessageType.ERROR,
                channel="system",
                data={"error": f"Invalid message format: {e}"},
            )

        if message.type == MessageType.PING:
            return WebSocketMessage(
                type=MessageType.PONG,
                channel="system",
                data={"timestamp": datetime.now().isoformat()},
            )

        if message.type in (MessageType.SUBSCRIBE, MessageType.UNSUBSCRIBE):
            channel = message.data.get("channel") or message.channel
            if not channel:
                return WebSocketMessage(
                    type=MessageType.ERROR,
                    channel="system",
                    data={"error": "Missing channel"},
                )
            if message.type == MessageType.SUBSCRIBE:
                await self.subscribe(websocket, channel)
            else:
                await self.unsubscribe(websocket, channel)

        return None


# Global WebSocket manager instance
ws_manager = WebSocketManager()


# ============= Helper Functions for Panel Updates =============


async def notify_panel_started(panel_id: str, panel_data: Dict[str, Any]) -> None:
    """
    Notify subscribers that a panel computation has started.

    Args:
        panel_id: Panel identifier
        panel_data: Panel state (without result)
    """
    channel = panel_channel(panel_id)
    message = WebSocketMessage(
        type=MessageType.PANEL_STARTED,
        channel=channel,
        data=panel_data,
    )
    await ws_manager.broadcast_to_channel(channel, message)


async def notify_panel_progress(
    panel_id: str,
    progress: float,
    revealed: int,
    total: int,
) -> None:
    """
    Notify subscribers that more of a panel's result is visible.

    Args:
        panel_id: Panel identifier
        progress: Revealed percentage (0-100)
        revealed: Number of visible items
        total: Number of items in the full result
    """
    channel = panel_channel(panel_id)
    message = WebSocketMessage(
        type=MessageType.PANEL_PROGRESS,
        channel=channel,
        data={
            "panel_id": panel_id,
            "progress": progress,
            "revealed": revealed,
            "total": total,
        },
    )
    await ws_manager.broadcast_to_channel(channel, message)


async def notify_panel_completed(panel_id: str, panel_data: Dict[str, Any]) -> None:
    channel = panel_channel(panel_id)
    message = WebSocketMessage(
        type=MessageType.PANEL_COMPLETED,
        channel=channel,
        data=panel_data,
    )
    await ws_manager.broadcast_to_channel(channel, message)


async def notify_panel_failed(panel_id: str, error: str, traceback: Optional[str] = None) -> None:
    """
    Notify subscribers that a panel computation has failed.

    Args:
        panel_id: Panel identifier
        error: Error message
        traceback: Optional error traceback
    """
    channel = panel_channel(panel_id)
    message = WebSocketMessage(
        type=MessageType.PANEL_FAILED,
        channel=channel,
        data={
            "panel_id": panel_id,
            "error": error,
            "traceback": traceback,
        },
    )
    await ws_manager.broadcast_to_channel(channel, message)
