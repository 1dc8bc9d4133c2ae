"""Abstract notifier interface and the shared cooldown policy."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Hashable, Optional

if TYPE_CHECKING:
    from ..core.models import Bin, BinId, SystemSettings

logger = logging.getLogger(__name__)

DEFAULT_PERIODIC_MINUTES = 10.0


class NotificationKind(Enum):
    """Kinds of operator alerts."""

    THRESHOLD = "threshold"
    PERIODIC = "periodic"
    TEST = "test"


@dataclass(frozen=True)
class Notification:
    """One alert ready for delivery."""

    kind: NotificationKind
    title: str
    body: str
    tag: str
    bin_id: Optional[Any] = None
    require_interaction: bool = False
    sound: bool = True
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "body": self.body,
            "tag": self.tag,
            "bin_id": self.bin_id,
            "require_interaction": self.require_interaction,
            "sound": self.sound,
            "timestamp": self.timestamp.isoformat(),
        }


class Notifier(ABC):
    """Abstract interface for fill alerts.

    Both methods are advisory and fire-and-forget: implementations own their
    cooldown policy and must not raise back into the caller.
    """

    @abstractmethod
    def notify_threshold(self, bin_: "Bin", settings: "SystemSettings") -> None:
        """Alert if the bin's remaining capacity is at or below threshold.

        Args:
            bin_: Snapshot of the bin after the mutation.
            settings: Current system settings.
        """

    @abstractmethod
    def notify_periodic(self, bin_: "Bin", settings: "SystemSettings") -> None:
        """Send the recurring "still filling" reminder if one is due.

        Args:
            bin_: Snapshot of the bin after the accrual step.
            settings: Current system settings.
        """

    def reset_cooldown(self, bin_id: "BinId") -> None:
        """Forget cooldown state for a bin (no-op by default)."""

    def send_test(self) -> bool:
        """Deliver a test notification (unsupported by default).

        Returns:
            True if a notification was delivered.
        """
        return False


class CooldownNotifier(Notifier):
    """Notifier that applies the cooldown policy and delegates delivery.

    Threshold alerts fire when ``max - current <= threshold_feet`` and are
    spaced at least ``cooldown_minutes`` apart per bin. Periodic reminders
    fire only while a bin is filling and are spaced ``periodic_minutes``
    apart per bin, tracked separately from threshold alerts.

    Subclasses implement :meth:`_deliver`.
    """

    def __init__(
        self,
        periodic_minutes: float = DEFAULT_PERIODIC_MINUTES,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._periodic_minutes = periodic_minutes
        self._clock = clock
        self._last_sent: dict[Hashable, datetime] = {}

    @abstractmethod
    def _deliver(self, notification: Notification) -> None:
        """Deliver one notification.

        Args:
            notification: Alert to deliver.
        """

    def _cooldown_passed(self, key: Hashable, minutes: float, now: datetime) -> bool:
        last = self._last_sent.get(key)
        if last is None:
            return True
        return now - last >= timedelta(minutes=minutes)

    def _send(self, notification: Notification) -> bool:
        try:
            self._deliver(notification)
        except Exception as e:
            logger.error("Notification delivery failed (%s): %s", notification.tag, e)
            return False
        return True

    def notify_threshold(self, bin_: "Bin", settings: "SystemSettings") -> None:
        prefs = settings.notifications
        if not prefs.enabled:
            return

        remaining = bin_.remaining_feet
        if remaining > prefs.threshold_feet:
            return

        now = self._clock()
        key = ("threshold", bin_.id)
        if not self._cooldown_passed(key, prefs.cooldown_minutes, now):
            return

        self._last_sent[key] = now
        self._send(Notification(
            kind=NotificationKind.THRESHOLD,
            title="Silo Bin Alert - Bin Drop Required",
            body=f"{bin_.name} requires manual measurement - Remaining: {remaining:.1f} ft",
            tag=f"bin-{bin_.id}-threshold",
            bin_id=bin_.id,
            require_interaction=prefs.require_interaction,
            sound=prefs.sound_enabled,
            timestamp=now,
        ))

    def notify_periodic(self, bin_: "Bin", settings: "SystemSettings") -> None:
        prefs = settings.notifications
        if not prefs.enabled or not bin_.is_filling:
            return

        now = self._clock()
        key = ("periodic", bin_.id)
        if not self._cooldown_passed(key, self._periodic_minutes, now):
            return

        self._last_sent[key] = now
        self._send(Notification(
            kind=NotificationKind.PERIODIC,
            title=f"Filling Status - {bin_.name}",
            body=(
                f"Still filling... Current level: {bin_.current_fill_feet:.1f} ft "
                f"({bin_.current_fill_tons:.0f} tons)"
            ),
            tag=f"bin-{bin_.id}-periodic",
            bin_id=bin_.id,
            sound=prefs.sound_enabled,
            timestamp=now,
        ))

    def reset_cooldown(self, bin_id: "BinId") -> None:
        self._last_sent.pop(("threshold", bin_id), None)

    def send_test(self) -> bool:
        return self._send(Notification(
            kind=NotificationKind.TEST,
            title="Test Notification",
            body="This is a test notification from the grain bin tracker.",
            tag="test-notification",
            timestamp=self._clock(),
        ))
