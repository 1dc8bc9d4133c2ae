"""Domain model: bins, notes and system settings."""

from __future__ import annotations

import copy
import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from .activity import ActivityLogEntry
from .errors import ConfigurationError
from .states import FillState, FillTrigger, can_transition, next_state
from .units import UnitConverter

BinId = Union[int, str]

DEFAULT_CAPACITY_FEET = 130.0
DEFAULT_GRAIN_TYPES = ("Wheat H2", "Wheat APH2")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from a stored document.

    Timestamps written by browsers carry a trailing ``Z``; aware values are
    converted to naive local time to match ``datetime.now()``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class NotePriority(Enum):
    """Operator note priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Note:
    """Free-text operator note attached to a bin."""

    bin_id: BinId
    title: str
    content: str
    priority: NotePriority = NotePriority.MEDIUM
    is_read: bool = False
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "binId": self.bin_id,
            "title": self.title,
            "content": self.content,
            "timestamp": format_timestamp(self.timestamp),
            "isRead": self.is_read,
            "priority": self.priority.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Note":
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            bin_id=data.get("binId"),
            title=data.get("title", ""),
            content=data.get("content", ""),
            timestamp=parse_timestamp(data.get("timestamp")) or datetime.now(),
            is_read=bool(data.get("isRead", False)),
            priority=NotePriority(data.get("priority", "medium")),
        )


@dataclass
class Bin:
    """One grain storage bin.

    Feet is the source of truth for the fill level. Every mutator goes
    through :meth:`set_fill_feet` or :meth:`set_fill_tons`, which clamp to
    ``[0, max]`` and keep the tons value derived from the clamped feet, so
    the two numbers always describe the same physical level.

    Attributes:
        id: Stable identifier, never changed after creation.
        name: Display name.
        grain_type: Grain currently stored.
        max_capacity_feet: Capacity in feet.
        max_capacity_tons: Capacity in tons at the configured ratio.
        current_fill_feet: Current fill level in feet.
        current_fill_tons: Current fill level in tons.
        is_filling: Whether continuous accrual is active.
        start_time: Start of the current filling session.
        last_checkpoint_time: Last time accrual was applied.
        total_elapsed_minutes: Accrued minutes in the current session.
        trailer_count: Trailer loads added minus removed (may be negative).
        wagon_count: Wagon loads added minus removed (may be negative).
        activity_logs: Ledger entries, most recent first.
        notes: Operator notes.
    """

    id: BinId
    name: str
    grain_type: str
    max_capacity_feet: float
    max_capacity_tons: float
    current_fill_feet: float = 0.0
    current_fill_tons: float = 0.0
    is_filling: bool = False
    start_time: Optional[datetime] = None
    last_checkpoint_time: Optional[datetime] = None
    total_elapsed_minutes: float = 0.0
    trailer_count: int = 0
    wagon_count: int = 0
    activity_logs: list[ActivityLogEntry] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        bin_id: BinId,
        name: str,
        grain_type: str,
        max_capacity_feet: float,
        converter: UnitConverter,
    ) -> "Bin":
        """Create an empty bin with tons capacity derived from feet."""
        return cls(
            id=bin_id,
            name=name,
            grain_type=grain_type,
            max_capacity_feet=float(max_capacity_feet),
            max_capacity_tons=converter.feet_to_tons(max_capacity_feet),
        )

    @property
    def state(self) -> FillState:
        return FillState.FILLING if self.is_filling else FillState.IDLE

    @property
    def remaining_feet(self) -> float:
        return self.max_capacity_feet - self.current_fill_feet

    @property
    def is_full(self) -> bool:
        return self.current_fill_feet >= self.max_capacity_feet

    def set_fill_feet(self, feet: float, converter: UnitConverter) -> None:
        """Set the fill level in feet, clamped, and derive tons."""
        feet = min(max(feet, 0.0), self.max_capacity_feet)
        self.current_fill_feet = feet
        self.current_fill_tons = converter.feet_to_tons(feet)

    def set_fill_tons(self, tons: float, converter: UnitConverter) -> None:
        """Set the fill level in tons, clamped, and derive feet."""
        self.set_fill_feet(converter.tons_to_feet(tons), converter)

    def recompute_tons(self, converter: UnitConverter) -> None:
        """Re-derive tons fields from feet after a ratio change."""
        self.max_capacity_tons = converter.feet_to_tons(self.max_capacity_feet)
        self.set_fill_feet(self.current_fill_feet, converter)

    def apply_trigger(self, trigger: FillTrigger) -> None:
        """Apply a fill state trigger; leaving FILLING ends the session.

        Triggers not allowed in the current state are ignored.
        """
        if not can_transition(self.state, trigger):
            return
        if next_state(self.state, trigger) is FillState.IDLE:
            self.clear_filling()

    def clear_filling(self) -> None:
        """End the filling session, keeping the current fill level."""
        self.is_filling = False
        self.start_time = None
        self.last_checkpoint_time = None

    def find_note(self, note_id: str) -> Optional[Note]:
        for note in self.notes:
            if note.id == note_id:
                return note
        return None

    def snapshot(self) -> "Bin":
        """Independent copy safe to hand outside the state owner."""
        return copy.deepcopy(self)

    def fill_snapshot(self) -> "Bin":
        """Copy of the fill fields only, without ledger and notes."""
        return replace(self, activity_logs=[], notes=[])

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted document shape."""
        return {
            "id": self.id,
            "name": self.name,
            "grainType": self.grain_type,
            "isFilling": self.is_filling,
            "currentFillFeet": self.current_fill_feet,
            "currentFillTons": self.current_fill_tons,
            "maxCapacityFeet": self.max_capacity_feet,
            "maxCapacityTons": self.max_capacity_tons,
            "trailerCount": self.trailer_count,
            "wagonCount": self.wagon_count,
            "startTime": format_timestamp(self.start_time),
            "lastCheckpointTime": format_timestamp(self.last_checkpoint_time),
            "totalElapsedMinutes": self.total_elapsed_minutes,
            "activityLogs": [entry.to_dict() for entry in self.activity_logs],
            "notes": [note.to_dict() for note in self.notes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], converter: UnitConverter) -> "Bin":
        """Build a bin from a persisted document.

        Tons are re-derived from feet so documents written with a different
        ratio, or with drifted values, load consistent.
        """
        checkpoint = data.get("lastCheckpointTime", data.get("lastUpdateTime"))
        max_feet = float(data.get("maxCapacityFeet", DEFAULT_CAPACITY_FEET))
        bin_ = cls(
            id=data["id"],
            name=data.get("name", f"Bin {data['id']}"),
            grain_type=data.get("grainType", ""),
            max_capacity_feet=max_feet,
            max_capacity_tons=converter.feet_to_tons(max_feet),
            is_filling=bool(data.get("isFilling", False)),
            start_time=parse_timestamp(data.get("startTime")),
            last_checkpoint_time=parse_timestamp(checkpoint),
            total_elapsed_minutes=float(data.get("totalElapsedMinutes") or 0.0),
            trailer_count=int(data.get("trailerCount", 0)),
            wagon_count=int(data.get("wagonCount", 0)),
            activity_logs=[
                ActivityLogEntry.from_dict(entry)
                for entry in data.get("activityLogs") or []
            ],
            notes=[Note.from_dict(note) for note in data.get("notes") or []],
        )
        bin_.set_fill_feet(float(data.get("currentFillFeet", 0.0)), converter)
        if not bin_.is_filling:
            bin_.clear_filling()
        elif bin_.last_checkpoint_time is None:
            bin_.last_checkpoint_time = bin_.start_time or datetime.now()
        return bin_


@dataclass(frozen=True)
class NotificationSettings:
    """Alerting preferences shared by all bins."""

    enabled: bool = True
    threshold_feet: float = 10.0
    cooldown_minutes: float = 30.0
    require_interaction: bool = True
    sound_enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "thresholdFeet": self.threshold_feet,
            "cooldownMinutes": self.cooldown_minutes,
            "requireInteraction": self.require_interaction,
            "soundEnabled": self.sound_enabled,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "NotificationSettings":
        defaults = cls()
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", defaults.enabled)),
            threshold_feet=float(data.get("thresholdFeet", defaults.threshold_feet)),
            cooldown_minutes=float(
                data.get("cooldownMinutes", defaults.cooldown_minutes)
            ),
            require_interaction=bool(
                data.get("requireInteraction", defaults.require_interaction)
            ),
            sound_enabled=bool(data.get("soundEnabled", defaults.sound_enabled)),
        )


@dataclass(frozen=True)
class SystemSettings:
    """Process-wide rates and load sizes.

    Instances are immutable; updates produce a new validated value so an
    accrual tick always reads one consistent snapshot.

    Attributes:
        elevator_speed: Fill rate in tons per hour.
        tons_per_foot: Conversion ratio between fill height and mass.
        tons_per_trailer: Size of one trailer load.
        tons_per_wagon: Size of one rail wagon load.
        notifications: Alerting preferences.
    """

    elevator_speed: float = 180.0
    tons_per_foot: float = 25.0
    tons_per_trailer: float = 30.0
    tons_per_wagon: float = 50.0
    notifications: NotificationSettings = field(default_factory=NotificationSettings)

    @property
    def converter(self) -> UnitConverter:
        return UnitConverter(self.tons_per_foot)

    @property
    def tons_per_minute(self) -> float:
        return self.elevator_speed / 60.0

    def validate(self) -> "SystemSettings":
        """Reject values that would poison accrual or metrics math.

        Returns:
            The same settings, for chaining.

        Raises:
            ConfigurationError: If any rate or size is invalid.
        """
        for name in ("elevator_speed", "tons_per_foot", "tons_per_trailer", "tons_per_wagon"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value!r}")
        notifications = self.notifications
        for name in ("threshold_feet", "cooldown_minutes"):
            value = getattr(notifications, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
                raise ConfigurationError(f"notifications.{name} must be >= 0, got {value!r}")
        return self

    def with_changes(self, **changes: Any) -> "SystemSettings":
        """Return validated settings with a partial update applied.

        ``notifications`` may be a partial mapping of notification fields.

        Raises:
            ConfigurationError: On unknown fields or invalid values.
        """
        notifications = self.notifications
        notification_changes = changes.pop("notifications", None)
        if notification_changes:
            if isinstance(notification_changes, NotificationSettings):
                notifications = notification_changes
            elif not isinstance(notification_changes, dict):
                raise ConfigurationError("notifications must be a mapping of settings")
            else:
                unknown = set(notification_changes) - set(NotificationSettings.__dataclass_fields__)
                if unknown:
                    raise ConfigurationError(
                        f"Unknown notification settings: {', '.join(sorted(unknown))}"
                    )
                notifications = replace(notifications, **notification_changes)

        unknown = set(changes) - set(self.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        return replace(self, notifications=notifications, **changes).validate()

    def to_dict(self) -> dict[str, Any]:
        return {
            "elevatorSpeed": self.elevator_speed,
            "tonsPerFoot": self.tons_per_foot,
            "tonsPerTrailer": self.tons_per_trailer,
            "tonsPerWagon": self.tons_per_wagon,
            "notifications": self.notifications.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SystemSettings":
        defaults = cls()
        data = data or {}
        return cls(
            elevator_speed=float(data.get("elevatorSpeed", defaults.elevator_speed)),
            tons_per_foot=float(data.get("tonsPerFoot", defaults.tons_per_foot)),
            tons_per_trailer=float(data.get("tonsPerTrailer", defaults.tons_per_trailer)),
            tons_per_wagon=float(data.get("tonsPerWagon", defaults.tons_per_wagon)),
            notifications=NotificationSettings.from_dict(data.get("notifications")),
        )


def default_bins(
    settings: SystemSettings,
    count: int = 2,
    capacity_feet: float = DEFAULT_CAPACITY_FEET,
) -> list[Bin]:
    """Built-in bins used when nothing can be loaded."""
    converter = settings.converter
    return [
        Bin.create(
            bin_id=index,
            name=f"Bin {index}",
            grain_type=DEFAULT_GRAIN_TYPES[(index - 1) % len(DEFAULT_GRAIN_TYPES)],
            max_capacity_feet=capacity_feet,
            converter=converter,
        )
        for index in range(1, count + 1)
    ]
