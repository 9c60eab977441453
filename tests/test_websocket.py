"""
Tests for panel WebSocket messages.

Tests:
- PANEL_* message types are defined in MessageType enum
- Panel notification helpers broadcast on the panel channel
- Subscribe / unsubscribe / ping handling

Run tests:
    pytest tests/test_websocket.py -v
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

from websocket.manager import (
    MessageType,
    WebSocketManager,
    WebSocketMessage,
    notify_panel_completed,
    notify_panel_failed,
    notify_panel_progress,
    notify_panel_started,
    panel_channel,
)

# ============================================================================
# MessageType Enum Tests
# ============================================================================


class TestPanelMessageTypes:
    def test_panel_types(self):
        assert MessageType.PANEL_STARTED == "panel_started"
        assert MessageType.PANEL_PROGRESS == "panel_progress"
        assert MessageType.PANEL_COMPLETED == "panel_completed"
        assert MessageType.PANEL_FAILED == "panel_failed"

    def test_channel_name(self):
        assert panel_channel("histogram") == "panel:histogram"


# ============================================================================
# Serialization Tests
# ============================================================================


class TestMessageSerialization:
    def test_to_json(self):
        msg = WebSocketMessage(
            type=MessageType.PANEL_PROGRESS,
            channel="panel:scatter",
            data={"panel_id": "scatter", "progress": 40.0},
        )
        parsed = json.loads(msg.to_json())
        assert parsed["type"] == "panel_progress"
        assert parsed["channel"] == "panel:scatter"
        assert parsed["data"]["progress"] == 40.0
        assert "timestamp" in parsed

    def test_from_json(self):
        msg = WebSocketMessage.from_json(json.dumps({
            "type": "subscribe",
            "channel": "",
            "data": {"channel": "panel:a"},
        }))
        assert msg.type == MessageType.SUBSCRIBE
        assert msg.data["channel"] == "panel:a"


# ============================================================================
# Notification Helper Tests
# ============================================================================


class TestPanelNotificationHelpers:
    def test_notify_panel_started(self):
        with patch("websocket.manager.ws_manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock(return_value=1)
            asyncio.run(notify_panel_started("size", {"panel_id": "size", "status": "running"}))

            channel, message = mock_manager.broadcast_to_channel.call_args[0]
            assert channel == "panel:size"
            assert message.type == MessageType.PANEL_STARTED
            assert message.data["status"] == "running"

    def test_notify_panel_progress(self):
        with patch("websocket.manager.ws_manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock(return_value=1)
            asyncio.run(notify_panel_progress("scatter", progress=40.0, revealed=100, total=250))

            message = mock_manager.broadcast_to_channel.call_args[0][1]
            assert message.type == MessageType.PANEL_PROGRESS
            assert message.data == {"panel_id": "scatter", "progress": 40.0, "revealed": 100, "total": 250}

    def test_notify_panel_completed(self):
        with patch("websocket.manager.ws_manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock(return_value=1)
            asyncio.run(notify_panel_completed("size", {"status": "succeeded"}))

            message = mock_manager.broadcast_to_channel.call_args[0][1]
            assert message.type == MessageType.PANEL_COMPLETED

    def test_notify_panel_failed(self):
        with patch("websocket.manager.ws_manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock(return_value=1)
            asyncio.run(notify_panel_failed("size", "Unknown numeric field: 'Stars'", "Traceback..."))

            message = mock_manager.broadcast_to_channel.call_args[0][1]
            assert message.type == MessageType.PANEL_FAILED
            assert message.data["error"] == "Unknown numeric field: 'Stars'"
            assert message.data["traceback"] == "Traceback..."


# ============================================================================
# Message Handling Tests
# ============================================================================


def fake_socket():
    ws = MagicMock()
    ws.accept = AsyncMock()
    ws.send_text = AsyncMock()
    return ws


class TestHandleMessage:
    def test_ping(self):
        manager = WebSocketManager()
        response = asyncio.run(manager.handle_message(fake_socket(), json.dumps({"type": "ping"})))
        assert response.type == MessageType.PONG

    def test_invalid_message(self):
        manager = WebSocketManager()
        response = asyncio.run(manager.handle_message(fake_socket(), "not json"))
        assert response.type == MessageType.ERROR

    def test_subscribe_then_broadcast(self):
        manager = WebSocketManager()
        ws = fake_socket()

        async def scenario():
            await manager.connect(ws, "client")
            await manager.handle_message(ws, json.dumps({"type": "subscribe", "data": {"channel": "panel:a"}}))
            sent = await manager.broadcast_to_channel(
                "panel:a",
                WebSocketMessage(type=MessageType.PANEL_COMPLETED, channel="panel:a"),
            )
            await manager.handle_message(ws, json.dumps({"type": "unsubscribe", "channel": "panel:a"}))
            return sent

        assert asyncio.run(scenario()) == 1
        assert manager.get_channel_subscribers("panel:a") == 0
        assert manager.get_connection_count() == 1

    def test_subscribe_without_channel(self):
        manager = WebSocketManager()
        response = asyncio.run(manager.handle_message(fake_socket(), json.dumps({"type": "subscribe"})))
        assert response.type == MessageType.ERROR
