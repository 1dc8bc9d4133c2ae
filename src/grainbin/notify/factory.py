"""Notifier factory."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from .base import DEFAULT_PERIODIC_MINUTES, Notifier

if TYPE_CHECKING:
    from .broadcast import NotificationSender

logger = logging.getLogger(__name__)


def create_notifier(
    backend: str = "log",
    sender: Optional[NotificationSender] = None,
    periodic_minutes: float = DEFAULT_PERIODIC_MINUTES,
    clock: Callable[[], datetime] = datetime.now,
) -> Notifier:
    """Factory function to create the configured notifier.

    Args:
        backend: "log", "broadcast" or "mock".
        sender: Coroutine used by the broadcast backend to reach clients.
        periodic_minutes: Spacing of "still filling" reminders.
        clock: Time source for cooldowns.

    Returns:
        Notifier instance. Falls back to logging when "broadcast" is
        requested without a sender.

    Raises:
        ValueError: If the backend name is unknown.
    """
    if backend == "broadcast":
        if sender is not None:
            from .broadcast import BroadcastNotifier

            logger.info("Using broadcast notifier")
            return BroadcastNotifier(sender, periodic_minutes=periodic_minutes, clock=clock)
        logger.warning("Broadcast notifier requested without a sender, logging only")
        backend = "log"

    if backend == "log":
        from .log_notifier import LoggingNotifier

        logger.info("Using logging notifier")
        return LoggingNotifier(periodic_minutes=periodic_minutes, clock=clock)

    if backend == "mock":
        from .mock_notifier import MockNotifier

        return MockNotifier(periodic_minutes=periodic_minutes, clock=clock)

    raise ValueError(f"Unknown notifier backend: {backend}")
