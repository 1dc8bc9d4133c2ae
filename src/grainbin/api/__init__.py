"""Quart backend for grain bin tracking."""

from .app import create_app
from .websocket import WebSocketManager

__all__ = [
    "create_app",
    "WebSocketManager",
]
