"""Recording notifier for testing."""

from __future__ import annotations

import logging
from typing import Optional

from .base import CooldownNotifier, Notification, NotificationKind

logger = logging.getLogger(__name__)


class MockNotifier(CooldownNotifier):
    """Keeps delivered notifications in memory.

    Applies the same cooldown policy as the real notifiers so tests can
    assert on what an operator would actually see.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.sent: list[Notification] = []

    def _deliver(self, notification: Notification) -> None:
        self.sent.append(notification)
        logger.debug("[MOCK] Notification %s", notification.tag)

    def of_kind(self, kind: NotificationKind) -> list[Notification]:
        """Delivered notifications of one kind."""
        return [n for n in self.sent if n.kind is kind]

    def clear(self, kind: Optional[NotificationKind] = None) -> None:
        """Forget delivered notifications (cooldowns are kept)."""
        if kind is None:
            self.sent.clear()
        else:
            self.sent = [n for n in self.sent if n.kind is not kind]
