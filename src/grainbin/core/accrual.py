"""Continuous fill accrual for bins that are filling."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from .models import Bin, SystemSettings
from .states import FillTrigger

if TYPE_CHECKING:
    from .manager import BinManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccrualResult:
    """Outcome of one accrual step on one bin.

    Attributes:
        elapsed_minutes: Wall-clock minutes since the previous checkpoint.
        added_feet: Feet actually added after clamping.
        auto_stopped: True if the bin reached capacity and stopped filling.
    """

    elapsed_minutes: float
    added_feet: float
    auto_stopped: bool


def accrue(bin_: Bin, settings: SystemSettings, now: datetime) -> AccrualResult:
    """Advance a filling bin to ``now``.

    The increment is based on wall-clock time since the last checkpoint, not
    on a fixed per-tick amount, so late or irregular ticks neither lose nor
    double-count fill. Tons are reconciled from feet on every step.

    Args:
        bin_: Bin to advance; mutated in place. Idle bins are left alone.
        settings: Settings snapshot used for the whole step.
        now: Current time.

    Returns:
        What changed.
    """
    if not bin_.is_filling:
        return AccrualResult(elapsed_minutes=0.0, added_feet=0.0, auto_stopped=False)

    converter = settings.converter
    checkpoint = bin_.last_checkpoint_time or bin_.start_time or now
    elapsed_minutes = max((now - checkpoint).total_seconds() / 60.0, 0.0)

    added_tons = elapsed_minutes * settings.tons_per_minute
    added_feet = converter.tons_to_feet(added_tons)

    previous_feet = bin_.current_fill_feet
    target_feet = min(previous_feet + added_feet, bin_.max_capacity_feet)

    bin_.last_checkpoint_time = now
    bin_.total_elapsed_minutes += elapsed_minutes

    if target_feet >= bin_.max_capacity_feet:
        bin_.set_fill_feet(bin_.max_capacity_feet, converter)
        bin_.apply_trigger(FillTrigger.AUTO_FULL)
        logger.info("Bin %s reached capacity, filling stopped", bin_.id)
        return AccrualResult(
            elapsed_minutes=elapsed_minutes,
            added_feet=bin_.current_fill_feet - previous_feet,
            auto_stopped=True,
        )

    bin_.set_fill_feet(target_feet, converter)
    return AccrualResult(
        elapsed_minutes=elapsed_minutes,
        added_feet=bin_.current_fill_feet - previous_feet,
        auto_stopped=False,
    )


class AccrualLoop:
    """Fixed-cadence task that advances every filling bin.

    Each tick goes through :meth:`BinManager.tick`, which holds the manager
    lock, so ticks are serialized with operator actions on the same state.

    Example:
        loop = AccrualLoop(manager, tick_interval=1.0)
        task = asyncio.create_task(loop.run())
        ...
        loop.stop()
    """

    def __init__(self, manager: "BinManager", tick_interval: float = 1.0) -> None:
        """Initialize the loop.

        Args:
            manager: State owner to tick.
            tick_interval: Seconds between ticks.
        """
        self._manager = manager
        self._tick_interval = tick_interval
        self._running = False
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        """Whether the loop is running."""
        return self._running

    async def run(self) -> None:
        """Tick until :meth:`stop` is called."""
        self._running = True
        self._stop_event.clear()
        logger.info("Accrual loop started (interval %.1fs)", self._tick_interval)

        while self._running:
            try:
                await self._manager.tick()
            except asyncio.CancelledError:
                logger.info("Accrual loop cancelled")
                break
            except Exception as e:
                logger.error("Accrual tick error: %s", e)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._tick_interval)
                break
            except asyncio.TimeoutError:
                pass

        self._running = False
        logger.info("Accrual loop stopped")

    def stop(self) -> None:
        """Request the loop to exit after the current tick."""
        self._running = False
        self._stop_event.set()
