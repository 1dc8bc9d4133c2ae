"""Append-only activity ledger with single-step undo."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

from .states import FillTrigger

if TYPE_CHECKING:
    from .models import Bin
    from .units import UnitConverter

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 50

_GRAIN_CHANGE_PATTERN = re.compile(r'from "([^"]*)" to "([^"]*)"')


class ActivityAction(Enum):
    """Kinds of mutation recorded in the ledger."""

    START_FILLING = "start_filling"
    STOP_FILLING = "stop_filling"
    RESET = "reset"
    MANUAL_FILL = "manual_fill"
    MANUAL_INLOAD = "manual_inload"
    MANUAL_OUTLOAD = "manual_outload"
    TRUCK_LOAD = "truck_load"
    TRUCK_REMOVE = "truck_remove"
    TRAILER_RESET = "trailer_reset"
    WAGON_LOAD = "wagon_load"
    WAGON_REMOVE = "wagon_remove"
    WAGON_RESET = "wagon_reset"
    GRAIN_CHANGE = "grain_change"

    @property
    def label(self) -> str:
        """Display name, e.g. "Truck Load"."""
        return self.value.replace("_", " ").title()


# Undo consumes these entries without touching bin state: the ledger does
# not retain what the session, fill level or counter looked like before.
NON_REVERSIBLE_ACTIONS = frozenset({
    ActivityAction.STOP_FILLING,
    ActivityAction.RESET,
    ActivityAction.TRAILER_RESET,
    ActivityAction.WAGON_RESET,
})


def _new_entry_id(timestamp: datetime) -> str:
    return f"{int(timestamp.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class ActivityLogEntry:
    """Immutable record of one bin mutation.

    Attributes:
        action: Kind of mutation.
        details: Human-readable description.
        timestamp: When the mutation happened.
        old_value: Quantity before the mutation, if it changed one.
        new_value: Quantity after the mutation, if it changed one.
        unit: Unit of old_value/new_value ("tons", "trailers", ...).
        old_text: Previous text value (grain type changes).
        new_text: New text value (grain type changes).
        quantity: Trailers or wagons moved by a load/remove.
        id: Unique entry id (epoch milliseconds plus random suffix).
    """

    action: ActivityAction
    details: str
    timestamp: datetime = field(default_factory=datetime.now)
    old_value: Optional[float] = None
    new_value: Optional[float] = None
    unit: Optional[str] = None
    old_text: Optional[str] = None
    new_text: Optional[str] = None
    quantity: Optional[int] = None
    id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            object.__setattr__(self, "id", _new_entry_id(self.timestamp))

    @property
    def label(self) -> str:
        return self.action.label

    @property
    def reversible(self) -> bool:
        return self.action not in NON_REVERSIBLE_ACTIONS

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action.value,
            "details": self.details,
        }
        optional = {
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "unit": self.unit,
            "oldText": self.old_text,
            "newText": self.new_text,
            "quantity": self.quantity,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActivityLogEntry":
        from .models import parse_timestamp

        return cls(
            id=str(data.get("id", "")),
            timestamp=parse_timestamp(data.get("timestamp")) or datetime.now(),
            action=ActivityAction(data["action"]),
            details=data.get("details", ""),
            old_value=data.get("oldValue"),
            new_value=data.get("newValue"),
            unit=data.get("unit"),
            old_text=data.get("oldText"),
            new_text=data.get("newText"),
            quantity=data.get("quantity"),
        )


@dataclass(frozen=True)
class UndoResult:
    """Outcome of undoing the most recent entry.

    Attributes:
        entry: The consumed entry.
        reverted: False when the entry's action is not reversible or lacked
            the values needed to revert it.
    """

    entry: ActivityLogEntry
    reverted: bool


class ActivityLedger:
    """Per-bin activity log operations.

    Entries are kept most-recent-first on ``Bin.activity_logs`` and capped
    at ``max_entries``; overflow drops the oldest.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._clock = clock

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def append(
        self,
        bin_: "Bin",
        action: ActivityAction,
        details: str,
        old_value: Optional[float] = None,
        new_value: Optional[float] = None,
        unit: Optional[str] = None,
        **structured: Any,
    ) -> ActivityLogEntry:
        """Prepend a new entry and truncate to the cap."""
        entry = ActivityLogEntry(
            action=action,
            details=details,
            timestamp=self._clock(),
            old_value=old_value,
            new_value=new_value,
            unit=unit,
            **structured,
        )
        bin_.activity_logs = [entry, *bin_.activity_logs][: self._max_entries]
        logger.debug("Bin %s: %s (%s)", bin_.id, action.value, details)
        return entry

    def delete(self, bin_: "Bin", log_id: str) -> bool:
        """Remove one entry by id.

        Returns:
            True if an entry was removed, False if it was not present.
        """
        remaining = [entry for entry in bin_.activity_logs if entry.id != log_id]
        removed = len(remaining) != len(bin_.activity_logs)
        bin_.activity_logs = remaining
        return removed

    def undo_last(self, bin_: "Bin", converter: "UnitConverter") -> Optional[UndoResult]:
        """Pop the newest entry and apply its inverse to the bin.

        Returns:
            The undo outcome, or None if the log was empty.
        """
        if not bin_.activity_logs:
            return None

        entry = bin_.activity_logs[0]
        reverted = self._apply_inverse(bin_, entry, converter)
        bin_.activity_logs = bin_.activity_logs[1:]

        if reverted:
            logger.info("Bin %s: undid %s", bin_.id, entry.action.value)
        else:
            logger.info(
                "Bin %s: removed %s entry without reverting state",
                bin_.id,
                entry.action.value,
            )
        return UndoResult(entry=entry, reverted=reverted)

    def _apply_inverse(
        self,
        bin_: "Bin",
        entry: ActivityLogEntry,
        converter: "UnitConverter",
    ) -> bool:
        action = entry.action

        if action in NON_REVERSIBLE_ACTIONS:
            return False

        if action is ActivityAction.START_FILLING:
            bin_.apply_trigger(FillTrigger.UNDO)
            return True

        if action is ActivityAction.GRAIN_CHANGE:
            previous = entry.old_text
            if previous is None:
                match = _GRAIN_CHANGE_PATTERN.search(entry.details)
                if match is None:
                    return False
                previous = match.group(1)
            bin_.grain_type = previous
            return True

        # Remaining actions are all fill writes that need the old level
        if entry.old_value is None:
            return False

        bin_.set_fill_tons(entry.old_value, converter)
        bin_.apply_trigger(FillTrigger.UNDO)

        count = entry.quantity if entry.quantity is not None else 1
        if action is ActivityAction.TRUCK_LOAD:
            bin_.trailer_count = max(0, bin_.trailer_count - count)
        elif action is ActivityAction.TRUCK_REMOVE:
            bin_.trailer_count += count
        elif action is ActivityAction.WAGON_LOAD:
            bin_.wagon_count = max(0, bin_.wagon_count - count)
        elif action is ActivityAction.WAGON_REMOVE:
            bin_.wagon_count += count
        return True
