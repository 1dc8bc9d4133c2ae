"""Event system for bin state changes."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Optional


class EventType(Enum):
    """Types of events emitted by the bin manager."""

    # Fill state events
    FILLING_STARTED = auto()
    FILLING_STOPPED = auto()
    AUTO_STOPPED = auto()

    # Bin data events
    BIN_UPDATED = auto()
    ACTIVITY_UNDONE = auto()

    # System events
    SETTINGS_UPDATED = auto()
    BINS_LOADED = auto()

    # Error events
    PERSISTENCE_FAILED = auto()


@dataclass
class Event:
    """Event data structure for the event system.

    Events are emitted by the bin manager and consumed by listeners
    (e.g., WebSocket manager, logging).

    Attributes:
        type: The type of event.
        timestamp: When the event occurred.
        data: Optional dictionary of event-specific data.
        source: Optional identifier for the event source.
    """

    type: EventType
    timestamp: datetime = field(default_factory=datetime.now)
    data: Optional[dict[str, Any]] = None
    source: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {
            "type": self.type.name,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
            "source": self.source,
        }


def bin_updated_event(bin_id: Any, operation: str) -> Event:
    """Create a BIN_UPDATED event.

    Args:
        bin_id: Id of the bin that changed.
        operation: Name of the operation that changed it.

    Returns:
        Bin updated event.
    """
    return Event(
        type=EventType.BIN_UPDATED,
        data={"bin_id": bin_id, "operation": operation},
        source="manager",
    )


def auto_stopped_event(bin_id: Any, fill_feet: float) -> Event:
    """Create an AUTO_STOPPED event for a bin that reached capacity."""
    return Event(
        type=EventType.AUTO_STOPPED,
        data={"bin_id": bin_id, "fill_feet": fill_feet},
        source="accrual",
    )


def persistence_failed_event(operation: str, message: str) -> Event:
    """Create a PERSISTENCE_FAILED event.

    Args:
        operation: Store operation that failed (e.g. "save_bins").
        message: Human-readable error message.

    Returns:
        Persistence failure event.
    """
    return Event(
        type=EventType.PERSISTENCE_FAILED,
        data={"operation": operation, "message": message},
        source="store",
    )
