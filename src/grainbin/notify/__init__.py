"""Operator notifications for bin fill thresholds."""

from .base import CooldownNotifier, Notification, NotificationKind, Notifier
from .factory import create_notifier

__all__ = [
    "CooldownNotifier",
    "Notification",
    "NotificationKind",
    "Notifier",
    "create_notifier",
]
