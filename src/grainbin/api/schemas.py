"""Data classes for API request/response schemas."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..core.metrics import BinMetrics
from ..core.models import Bin, BinId, Note, SystemSettings, format_timestamp


@dataclass
class ActivityLogResponse:
    """One ledger entry as shown to clients."""

    id: str
    timestamp: str
    action: str
    label: str
    details: str
    reversible: bool
    old_value: Optional[float] = None
    new_value: Optional[float] = None
    unit: Optional[str] = None


@dataclass
class NoteResponse:
    """Operator note."""

    id: str
    bin_id: BinId
    title: str
    content: str
    priority: str
    is_read: bool
    timestamp: str

    @classmethod
    def from_note(cls, note: Note) -> "NoteResponse":
        return cls(
            id=note.id,
            bin_id=note.bin_id,
            title=note.title,
            content=note.content,
            priority=note.priority.value,
            is_read=note.is_read,
            timestamp=note.timestamp.isoformat(),
        )


@dataclass
class BinResponse:
    """Bin state plus derived metrics."""

    id: BinId
    name: str
    grain_type: str
    max_capacity_feet: float
    max_capacity_tons: float
    current_fill_feet: float
    current_fill_tons: float
    is_filling: bool
    start_time: Optional[str]
    total_elapsed_minutes: float
    trailer_count: int
    wagon_count: int
    metrics: dict[str, Any]
    activity_logs: list[ActivityLogResponse] = field(default_factory=list)
    notes: list[NoteResponse] = field(default_factory=list)

    @classmethod
    def from_bin(cls, bin_: Bin, metrics: BinMetrics) -> "BinResponse":
        return cls(
            id=bin_.id,
            name=bin_.name,
            grain_type=bin_.grain_type,
            max_capacity_feet=bin_.max_capacity_feet,
            max_capacity_tons=bin_.max_capacity_tons,
            current_fill_feet=bin_.current_fill_feet,
            current_fill_tons=bin_.current_fill_tons,
            is_filling=bin_.is_filling,
            start_time=format_timestamp(bin_.start_time),
            total_elapsed_minutes=bin_.total_elapsed_minutes,
            trailer_count=bin_.trailer_count,
            wagon_count=bin_.wagon_count,
            metrics=asdict(metrics),
            activity_logs=[
                ActivityLogResponse(
                    id=entry.id,
                    timestamp=entry.timestamp.isoformat(),
                    action=entry.action.value,
                    label=entry.label,
                    details=entry.details,
                    reversible=entry.reversible,
                    old_value=entry.old_value,
                    new_value=entry.new_value,
                    unit=entry.unit,
                )
                for entry in bin_.activity_logs
            ],
            notes=[NoteResponse.from_note(note) for note in bin_.notes],
        )


@dataclass
class NotificationSettingsResponse:
    """Alerting preferences."""

    enabled: bool
    threshold_feet: float
    cooldown_minutes: float
    require_interaction: bool
    sound_enabled: bool


@dataclass
class SettingsResponse:
    """Current system settings."""

    elevator_speed: float  # tons per hour
    tons_per_foot: float
    tons_per_trailer: float
    tons_per_wagon: float
    notifications: NotificationSettingsResponse

    @classmethod
    def from_settings(cls, settings: SystemSettings) -> "SettingsResponse":
        prefs = settings.notifications
        return cls(
            elevator_speed=settings.elevator_speed,
            tons_per_foot=settings.tons_per_foot,
            tons_per_trailer=settings.tons_per_trailer,
            tons_per_wagon=settings.tons_per_wagon,
            notifications=NotificationSettingsResponse(
                enabled=prefs.enabled,
                threshold_feet=prefs.threshold_feet,
                cooldown_minutes=prefs.cooldown_minutes,
                require_interaction=prefs.require_interaction,
                sound_enabled=prefs.sound_enabled,
            ),
        )


@dataclass
class SettingsUpdate:
    """Partial settings update request."""

    elevator_speed: Optional[float] = None
    tons_per_foot: Optional[float] = None
    tons_per_trailer: Optional[float] = None
    tons_per_wagon: Optional[float] = None
    notifications: Optional[dict[str, Any]] = None

    def changes(self) -> dict[str, Any]:
        """Fields that were provided, as keyword arguments."""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class ManualFillRequest:
    """Measured headspace from a bin drop."""

    remaining_feet: Any = None


@dataclass
class LoadRequest:
    """Manual inload or outload."""

    tons: Any = None
    load_type: Optional[str] = None  # "trailer", "wagon" or "custom"


@dataclass
class CountRequest:
    """Number of trailers or wagons to add or remove."""

    count: Any = 1


@dataclass
class GrainTypeRequest:
    grain_type: Any = None


@dataclass
class NoteRequest:
    """Create or edit a note."""

    title: Any = None
    content: Any = None
    priority: str = "medium"


@dataclass
class WebSocketMessage:
    """WebSocket message format."""

    type: str  # "bin_update", "settings_update", "notification", "error"
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)

    def to_json(self) -> str:
        return json.dumps({
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        })


@dataclass
class ErrorResponse:
    """Error response."""

    error: str
    detail: Optional[str] = None
