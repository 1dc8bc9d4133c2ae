"""Notifier that pushes alerts to connected clients."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .base import Notification
from .log_notifier import LoggingNotifier

logger = logging.getLogger(__name__)

# Async function that sends one notification to clients
NotificationSender = Callable[[Notification], Awaitable[None]]


class BroadcastNotifier(LoggingNotifier):
    """Logs each alert and schedules it for delivery to clients.

    Delivery runs as a background task so the core never waits on client
    connections. Without a running event loop the alert is only logged.
    """

    def __init__(self, sender: NotificationSender, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._sender = sender
        self._tasks: set[asyncio.Task] = set()

    def _deliver(self, notification: Notification) -> None:
        super()._deliver(notification)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No event loop, notification %s not broadcast", notification.tag)
            return

        task = loop.create_task(self._broadcast(notification))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _broadcast(self, notification: Notification) -> None:
        try:
            await self._sender(notification)
        except Exception as e:
            logger.error("Failed to broadcast notification %s: %s", notification.tag, e)
