"""Presentation metrics derived from a bin snapshot and settings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .models import Bin, SystemSettings


@dataclass(frozen=True)
class BinMetrics:
    """Derived, read-only view of one bin.

    Attributes:
        fill_percentage: Fill level as a percentage of capacity, capped at 100.
        tons_per_minute: Elevator rate in tons per minute.
        feet_per_minute: Elevator rate in feet per minute.
        elapsed_time: Formatted duration of the current filling session.
        estimated_time_to_full: Formatted time until full at the elevator
            rate, or "Full".
        remaining_capacity_tons: Tons until full.
        remaining_capacity_feet: Feet until full.
        estimated_trailers_to_full: Trailer loads needed to fill, rounded up.
        estimated_wagons_to_full: Wagon loads needed to fill, rounded up.
    """

    fill_percentage: float
    tons_per_minute: float
    feet_per_minute: float
    elapsed_time: str
    estimated_time_to_full: str
    remaining_capacity_tons: float
    remaining_capacity_feet: float
    estimated_trailers_to_full: int
    estimated_wagons_to_full: int


def format_duration(minutes: float) -> str:
    """Format minutes as "1h 2m 3s", omitting zero leading units."""
    total_seconds = max(0, round(minutes * 60))
    hours, remainder = divmod(total_seconds, 3600)
    mins, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {mins}m {secs}s"
    if mins > 0:
        return f"{mins}m {secs}s"
    return f"{secs}s"


def fill_percentage(current_feet: float, max_feet: float) -> float:
    if max_feet == 0:
        return 0.0
    return min(current_feet / max_feet * 100.0, 100.0)


def elapsed_time(bin_: Bin, now: datetime) -> str:
    if not bin_.is_filling or bin_.start_time is None:
        return "0s"
    return format_duration((now - bin_.start_time).total_seconds() / 60.0)


def estimated_time_to_full(bin_: Bin, settings: SystemSettings) -> str:
    if bin_.current_fill_feet >= bin_.max_capacity_feet:
        return "Full"
    feet_per_minute = settings.tons_per_minute / settings.tons_per_foot
    return format_duration(bin_.remaining_feet / feet_per_minute)


def loads_to_full(remaining_tons: float, tons_per_load: float) -> int:
    """Whole loads needed to cover the remaining capacity.

    Rounds up: overestimating the trucks or wagons still required is the
    safe direction.
    """
    if remaining_tons <= 0:
        return 0
    return math.ceil(remaining_tons / tons_per_load)


def calculate_bin_metrics(
    bin_: Bin,
    settings: SystemSettings,
    now: Optional[datetime] = None,
) -> BinMetrics:
    """Compute all metrics for a bin. No mutation, no I/O."""
    now = now or datetime.now()
    tons_per_minute = settings.tons_per_minute
    remaining_tons = bin_.max_capacity_tons - bin_.current_fill_tons

    return BinMetrics(
        fill_percentage=fill_percentage(bin_.current_fill_feet, bin_.max_capacity_feet),
        tons_per_minute=tons_per_minute,
        feet_per_minute=tons_per_minute / settings.tons_per_foot,
        elapsed_time=elapsed_time(bin_, now),
        estimated_time_to_full=estimated_time_to_full(bin_, settings),
        remaining_capacity_tons=remaining_tons,
        remaining_capacity_feet=bin_.remaining_feet,
        estimated_trailers_to_full=loads_to_full(remaining_tons, settings.tons_per_trailer),
        estimated_wagons_to_full=loads_to_full(remaining_tons, settings.tons_per_wagon),
    )
