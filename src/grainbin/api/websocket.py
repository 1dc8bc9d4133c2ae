"""WebSocket fan-out of bin, settings and alert updates."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Optional

from quart import Websocket

from .schemas import BinResponse, SettingsResponse, WebSocketMessage

if TYPE_CHECKING:
    from ..notify.base import Notification

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks connected clients and pushes messages to all of them.

    Clients only listen. A client whose send fails is dropped, so one dead
    connection never holds up the others.
    """

    def __init__(self) -> None:
        self._clients: set[Websocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: Websocket) -> None:
        async with self._lock:
            self._clients.add(websocket)
            count = len(self._clients)
        logger.info("WebSocket client connected (%d open)", count)

    async def disconnect(self, websocket: Websocket) -> None:
        async with self._lock:
            self._clients.discard(websocket)
            count = len(self._clients)
        logger.info("WebSocket client disconnected (%d open)", count)

    async def broadcast(self, message_type: str, data: dict[str, Any]) -> None:
        """Send one message to every client.

        Args:
            message_type: "bin_update", "settings_update", "notification"
                or "error".
            data: JSON-serializable payload.
        """
        if not self._clients:
            return

        payload = WebSocketMessage(type=message_type, data=data).to_json()

        async with self._lock:
            clients = list(self._clients)
            results = await asyncio.gather(
                *(client.send(payload) for client in clients),
                return_exceptions=True,
            )
            for client, result in zip(clients, results):
                if isinstance(result, Exception):
                    logger.warning("Dropping WebSocket client after send failure: %s", result)
                    self._clients.discard(client)

    async def broadcast_bin_update(self, bin_response: BinResponse, operation: str) -> None:
        """Push a bin's state and metrics.

        Args:
            bin_response: Bin state and metrics.
            operation: What changed the bin (e.g. "accrual", "truck_load").
        """
        await self.broadcast("bin_update", dict(asdict(bin_response), operation=operation))

    async def broadcast_settings_update(self, settings: SettingsResponse) -> None:
        await self.broadcast("settings_update", asdict(settings))

    async def broadcast_notification(self, notification: "Notification") -> None:
        await self.broadcast("notification", notification.to_dict())

    async def broadcast_error(self, message: str, error_type: Optional[str] = None) -> None:
        data: dict[str, Any] = {"message": message}
        if error_type:
            data["error_type"] = error_type
        await self.broadcast("error", data)
