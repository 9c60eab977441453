"""
WebSocket module for the repository analytics backend.

Provides real-time updates for panel computations via WebSocket connections.
"""

from .manager import (
    MessageType,
    WebSocketManager,
    WebSocketMessage,
    notify_panel_completed,
    notify_panel_failed,
    notify_panel_progress,
    notify_panel_started,
    panel_channel,
    ws_manager,
)

__all__ = [
    "WebSocketManager",
    "WebSocketMessage",
    "MessageType",
    "ws_manager",
    "panel_channel",
    "notify_panel_started",
    "notify_panel_progress",
    "notify_panel_completed",
    "notify_panel_failed",
]
