"""Notifier that writes alerts to the log."""

from __future__ import annotations

import logging

from .base import CooldownNotifier, Notification, NotificationKind

logger = logging.getLogger(__name__)


class LoggingNotifier(CooldownNotifier):
    """Delivers alerts as log records.

    Threshold alerts log at WARNING so they stand out; periodic and test
    notifications log at INFO.
    """

    def _deliver(self, notification: Notification) -> None:
        level = logging.WARNING if notification.kind is NotificationKind.THRESHOLD else logging.INFO
        logger.log(level, "[%s] %s: %s", notification.tag, notification.title, notification.body)
