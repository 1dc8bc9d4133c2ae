"""Core grain bin tracking logic."""

from .states import FillState, FillTrigger
from .events import Event, EventType
from .models import Bin, Note, NotePriority, NotificationSettings, SystemSettings
from .activity import ActivityAction, ActivityLedger, ActivityLogEntry
from .metrics import BinMetrics, calculate_bin_metrics
from .manager import BinManager

__all__ = [
    "FillState",
    "FillTrigger",
    "Event",
    "EventType",
    "Bin",
    "Note",
    "NotePriority",
    "NotificationSettings",
    "SystemSettings",
    "ActivityAction",
    "ActivityLedger",
    "ActivityLogEntry",
    "BinMetrics",
    "calculate_bin_metrics",
    "BinManager",
]
