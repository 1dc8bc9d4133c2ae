"""Bin manager: the single owner of bin fill state."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from ..notify.base import Notifier
from ..store.base import BinStore, Document
from .accrual import AccrualResult, accrue
from .activity import DEFAULT_MAX_ENTRIES, ActivityAction, ActivityLedger, UndoResult
from .errors import BinNotFoundError, ConfigurationError, StoreError, ValidationError
from .events import (
    Event,
    EventType,
    auto_stopped_event,
    bin_updated_event,
    persistence_failed_event,
)
from .metrics import BinMetrics, calculate_bin_metrics
from .models import (
    DEFAULT_CAPACITY_FEET,
    Bin,
    BinId,
    Note,
    NotePriority,
    SystemSettings,
    default_bins,
)
from .states import FillTrigger, can_transition

logger = logging.getLogger(__name__)

# Type alias for event listeners
EventListener = Callable[[Event], Awaitable[None]]

LOAD_TYPES = frozenset({"trailer", "wagon", "custom"})


def _positive_amount(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    if not math.isfinite(value) or value <= 0:
        raise ValidationError(f"{name} must be greater than zero")
    return float(value)


def _positive_count(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive whole number")
    return value


def _required_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must not be empty")
    return value.strip()


def _note_priority(value: Any) -> NotePriority:
    if isinstance(value, NotePriority):
        return value
    try:
        return NotePriority(value)
    except ValueError:
        raise ValidationError(f"Invalid note priority: {value!r}") from None


class BinManager:
    """Authoritative in-memory store for all bins and system settings.

    Every operation, every accrual tick and every persistence snapshot runs
    under one asyncio lock, so for a given bin they are totally ordered and
    a stop always observes the most recently accrued level. Persistence is
    a write-through of that state: the store is read once at :meth:`load`
    and never becomes the read path.

    Mutating operations update the bin, append one ledger entry, evaluate
    the threshold notification when the fill level changed, mark the state
    dirty for the next flush and emit a BIN_UPDATED event once the lock is
    released.

    Example:
        manager = BinManager(store=FileStore("data"), notifier=LoggingNotifier())
        await manager.load()
        await manager.add_truck_load(1, trailers=2)
    """

    def __init__(
        self,
        store: Optional[BinStore] = None,
        notifier: Optional[Notifier] = None,
        settings: Optional[SystemSettings] = None,
        bins: Optional[list[Bin]] = None,
        activity_log_limit: int = DEFAULT_MAX_ENTRIES,
        default_bin_count: int = 2,
        default_capacity_feet: float = DEFAULT_CAPACITY_FEET,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Persistence backend. No persistence if None.
            notifier: Alert backend. Logs alerts if None.
            settings: Initial settings. Defaults if None.
            bins: Initial bins. Built-in defaults if None.
            activity_log_limit: Ledger entries kept per bin.
            default_bin_count: Number of bins created when none can be loaded.
            default_capacity_feet: Capacity of default bins.
            clock: Time source, injectable for tests.
        """
        if notifier is None:
            from ..notify.log_notifier import LoggingNotifier

            notifier = LoggingNotifier(clock=clock)

        self._store = store
        self._notifier = notifier
        self._clock = clock
        self._settings = (settings or SystemSettings()).validate()
        self._default_bin_count = default_bin_count
        self._default_capacity_feet = default_capacity_feet
        self._ledger = ActivityLedger(max_entries=activity_log_limit, clock=clock)
        if bins is None:
            bins = default_bins(self._settings, default_bin_count, default_capacity_feet)
        self._bins: dict[BinId, Bin] = {b.id: b for b in bins}
        self._lock = asyncio.Lock()
        self._flush_lock = asyncio.Lock()
        self._dirty = False
        self._listeners: list[EventListener] = []
        self._stop_event = asyncio.Event()

    @property
    def settings(self) -> SystemSettings:
        """Current settings (immutable value)."""
        return self._settings

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def ledger(self) -> ActivityLedger:
        return self._ledger

    @property
    def is_dirty(self) -> bool:
        """Whether there are changes not yet written to the store."""
        return self._dirty

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def add_listener(self, listener: EventListener) -> None:
        """Add event listener for bin and settings changes.

        Args:
            listener: Async function taking Event.
        """
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        """Remove an event listener.

        Args:
            listener: Previously added listener function.
        """
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _emit_event(self, event: Event) -> None:
        for listener in self._listeners:
            try:
                await listener(event)
            except Exception as e:
                logger.error("Event listener error: %s", e)

    async def _emit_events(self, events: list[Event]) -> None:
        for event in events:
            await self._emit_event(event)

    # ------------------------------------------------------------------
    # Internal helpers (call with the lock held)
    # ------------------------------------------------------------------

    def _resolve(self, bin_id: BinId) -> Bin:
        bin_ = self._bins.get(bin_id)
        if bin_ is not None:
            return bin_
        # Ids from URLs arrive as strings
        if isinstance(bin_id, str) and bin_id.lstrip("-").isdigit():
            bin_ = self._bins.get(int(bin_id))
        elif isinstance(bin_id, int):
            bin_ = self._bins.get(str(bin_id))
        if bin_ is None:
            raise BinNotFoundError(bin_id)
        return bin_

    def _apply_trigger(self, bin_: Bin, trigger: FillTrigger) -> None:
        bin_.apply_trigger(trigger)

    def _notify_threshold(self, bin_: Bin, settings: SystemSettings) -> None:
        try:
            self._notifier.notify_threshold(bin_.fill_snapshot(), settings)
        except Exception as e:
            logger.error("Threshold notifier error for bin %s: %s", bin_.id, e)

    def _notify_periodic(self, bin_: Bin, settings: SystemSettings) -> None:
        try:
            self._notifier.notify_periodic(bin_.fill_snapshot(), settings)
        except Exception as e:
            logger.error("Periodic notifier error for bin %s: %s", bin_.id, e)

    def _commit(self, bin_: Bin, fill_changed: bool) -> Bin:
        self._dirty = True
        if fill_changed:
            self._notify_threshold(bin_, self._settings)
        return bin_.snapshot()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_bins(self) -> list[Bin]:
        """Snapshots of all bins in creation order."""
        async with self._lock:
            return [b.snapshot() for b in self._bins.values()]

    async def get_bin(self, bin_id: BinId) -> Bin:
        """Snapshot of one bin.

        Raises:
            BinNotFoundError: If the bin does not exist.
        """
        async with self._lock:
            return self._resolve(bin_id).snapshot()

    async def get_bin_metrics(self, bin_id: BinId) -> tuple[Bin, BinMetrics]:
        async with self._lock:
            bin_ = self._resolve(bin_id)
            return bin_.snapshot(), calculate_bin_metrics(bin_, self._settings, self._clock())

    async def get_all_bin_metrics(self) -> list[tuple[Bin, BinMetrics]]:
        """Every bin paired with its derived metrics."""
        async with self._lock:
            now = self._clock()
            settings = self._settings
            return [
                (b.snapshot(), calculate_bin_metrics(b, settings, now))
                for b in self._bins.values()
            ]

    # ------------------------------------------------------------------
    # Filling session
    # ------------------------------------------------------------------

    async def start_filling(self, bin_id: BinId) -> bool:
        """Start continuous accrual for a bin.

        Starting a full bin is allowed; the next accrual tick stops it.

        Returns:
            True if filling started, False if the bin was already filling.
        """
        async with self._lock:
            bin_ = self._resolve(bin_id)
            if not can_transition(bin_.state, FillTrigger.START):
                logger.warning("Bin %s is already filling", bin_.id)
                return False

            now = self._clock()
            bin_.is_filling = True
            bin_.start_time = now
            bin_.last_checkpoint_time = now
            bin_.total_elapsed_minutes = 0.0
            self._ledger.append(bin_, ActivityAction.START_FILLING, "Started filling bin")
            self._commit(bin_, fill_changed=True)
            events = [
                Event(type=EventType.FILLING_STARTED, data={"bin_id": bin_.id}, source="manager"),
                bin_updated_event(bin_.id, "start_filling"),
            ]

        logger.info("Bin %s: filling started", bin_id)
        await self._emit_events(events)
        return True

    async def stop_filling(self, bin_id: BinId) -> bool:
        """Stop continuous accrual, keeping everything accrued up to now.

        Accrual is brought up to the current instant under the lock before
        the session ends, so no in-flight progress is lost.

        Returns:
            True if the bin was filling, False if it was already idle.
        """
        async with self._lock:
            bin_ = self._resolve(bin_id)
            if not can_transition(bin_.state, FillTrigger.STOP):
                logger.warning("Bin %s is not filling", bin_.id)
                return False

            settings = self._settings
            old_tons = bin_.current_fill_tons
            result = accrue(bin_, settings, self._clock())
            self._apply_trigger(bin_, FillTrigger.STOP)
            self._ledger.append(bin_, ActivityAction.STOP_FILLING, "Stopped filling bin")
            self._commit(bin_, fill_changed=bin_.current_fill_tons != old_tons)
            events = [
                Event(
                    type=EventType.FILLING_STOPPED,
                    data={"bin_id": bin_.id, "fill_feet": bin_.current_fill_feet},
                    source="manager",
                ),
                bin_updated_event(bin_.id, "stop_filling"),
            ]
            if result.auto_stopped:
                events.insert(0, auto_stopped_event(bin_.id, bin_.current_fill_feet))

        logger.info("Bin %s: filling stopped", bin_id)
        await self._emit_events(events)
        return True

    async def tick(self) -> dict[BinId, AccrualResult]:
        """Advance every filling bin to now.

        One settings snapshot is used for the whole tick. Reaching capacity
        stops filling without a ledger entry.

        Returns:
            Accrual results keyed by bin id, for bins that were filling.
        """
        events: list[Event] = []
        results: dict[BinId, AccrualResult] = {}

        async with self._lock:
            now = self._clock()
            settings = self._settings
            for bin_ in self._bins.values():
                if not bin_.is_filling:
                    continue
                result = accrue(bin_, settings, now)
                results[bin_.id] = result
                self._dirty = True

                self._notify_threshold(bin_, settings)
                self._notify_periodic(bin_, settings)

                if result.auto_stopped:
                    events.append(auto_stopped_event(bin_.id, bin_.current_fill_feet))
                events.append(bin_updated_event(bin_.id, "accrual"))

        if results:
            logger.debug("Accrual tick advanced %d bin(s)", len(results))
        await self._emit_events(events)
        return results

    # ------------------------------------------------------------------
    # Exact writes
    # ------------------------------------------------------------------

    async def reset(self, bin_id: BinId) -> Bin:
        """Empty a bin and end any filling session."""
        async with self._lock:
            bin_ = self._resolve(bin_id)
            converter = self._settings.converter
            old_tons = bin_.current_fill_tons
            bin_.set_fill_feet(0.0, converter)
            bin_.total_elapsed_minutes = 0.0
            self._apply_trigger(bin_, FillTrigger.RESET)
            self._ledger.append(
                bin_, ActivityAction.RESET, "Reset bin to empty", old_tons, 0.0, "tons"
            )
            snapshot = self._commit(bin_, fill_changed=True)

        logger.info("Bin %s: reset to empty", bin_id)
        await self._emit_event(bin_updated_event(snapshot.id, "reset"))
        return snapshot

    async def update_manual_fill(self, bin_id: BinId, remaining_feet: float) -> Bin:
        """Set the fill level from a measured headspace.

        The resulting fill is ``max - remaining_feet`` clamped to
        ``[0, max]``: a headspace larger than the bin reads as empty.

        Raises:
            ValidationError: If ``remaining_feet`` is negative or not a number.
        """
        if isinstance(remaining_feet, bool) or not isinstance(remaining_feet, (int, float)):
            raise ValidationError("remaining_feet must be a number")
        if not math.isfinite(remaining_feet) or remaining_feet < 0:
            raise ValidationError("remaining_feet must be zero or greater")

        async with self._lock:
            bin_ = self._resolve(bin_id)
            converter = self._settings.converter
            old_tons = bin_.current_fill_tons
            bin_.set_fill_feet(bin_.max_capacity_feet - remaining_feet, converter)
            self._apply_trigger(bin_, FillTrigger.EXACT_WRITE)
            self._ledger.append(
                bin_,
                ActivityAction.MANUAL_FILL,
                f"Updated remaining capacity to {remaining_feet:.1f} ft",
                old_tons,
                bin_.current_fill_tons,
                "tons",
            )
            snapshot = self._commit(bin_, fill_changed=True)

        await self._emit_event(bin_updated_event(snapshot.id, "manual_fill"))
        return snapshot

    async def manual_inload(
        self, bin_id: BinId, tons: float, load_type: Optional[str] = None
    ) -> Bin:
        """Add an arbitrary tonnage, clamped at capacity."""
        return await self._manual_load(bin_id, tons, load_type, inbound=True)

    async def manual_outload(
        self, bin_id: BinId, tons: float, load_type: Optional[str] = None
    ) -> Bin:
        """Remove an arbitrary tonnage, clamped at empty."""
        return await self._manual_load(bin_id, tons, load_type, inbound=False)

    async def _manual_load(
        self, bin_id: BinId, tons: float, load_type: Optional[str], inbound: bool
    ) -> Bin:
        tons = _positive_amount(tons, "tons")
        if load_type is not None and load_type not in LOAD_TYPES:
            raise ValidationError(f"Invalid load type: {load_type!r}")

        action = ActivityAction.MANUAL_INLOAD if inbound else ActivityAction.MANUAL_OUTLOAD
        suffix = f" ({load_type})" if load_type and load_type != "custom" else ""
        verb = "inload" if inbound else "outload"

        async with self._lock:
            bin_ = self._resolve(bin_id)
            converter = self._settings.converter
            old_tons = bin_.current_fill_tons
            bin_.set_fill_tons(old_tons + tons if inbound else old_tons - tons, converter)
            self._apply_trigger(bin_, FillTrigger.EXACT_WRITE)
            self._ledger.append(
                bin_,
                action,
                f"Manual {verb}: {tons:g} tons{suffix}",
                old_tons,
                bin_.current_fill_tons,
                "tons",
            )
            snapshot = self._commit(bin_, fill_changed=True)

        await self._emit_event(bin_updated_event(snapshot.id, action.value))
        return snapshot

    # ------------------------------------------------------------------
    # Trailer and wagon loads
    # ------------------------------------------------------------------

    async def add_truck_load(self, bin_id: BinId, trailers: int) -> Bin:
        """Add trailer loads; the trailer count is not clamped."""
        trailers = _positive_count(trailers, "trailers")
        return await self._discrete_load(
            bin_id, ActivityAction.TRUCK_LOAD, trailers, "trailer",
            f"Added {trailers} trailer load(s)",
        )

    async def remove_trailer_load(self, bin_id: BinId, trailers: int) -> Bin:
        """Remove trailer loads; the trailer count may go negative."""
        trailers = _positive_count(trailers, "trailers")
        return await self._discrete_load(
            bin_id, ActivityAction.TRUCK_REMOVE, trailers, "trailer",
            f"Removed {trailers} trailer load(s)",
        )

    async def add_wagon_load(self, bin_id: BinId, wagons: int) -> Bin:
        """Add rail wagon loads; the wagon count is not clamped."""
        wagons = _positive_count(wagons, "wagons")
        return await self._discrete_load(
            bin_id, ActivityAction.WAGON_LOAD, wagons, "wagon",
            f"Added {wagons} wagon load(s)",
        )

    async def remove_wagon_load(self, bin_id: BinId, wagons: int) -> Bin:
        """Remove rail wagon loads; the wagon count may go negative."""
        wagons = _positive_count(wagons, "wagons")
        return await self._discrete_load(
            bin_id, ActivityAction.WAGON_REMOVE, wagons, "wagon",
            f"Removed {wagons} wagon load(s)",
        )

    async def _discrete_load(
        self,
        bin_id: BinId,
        action: ActivityAction,
        quantity: int,
        vehicle: str,
        details: str,
    ) -> Bin:
        inbound = action in (ActivityAction.TRUCK_LOAD, ActivityAction.WAGON_LOAD)
        signed = quantity if inbound else -quantity

        async with self._lock:
            bin_ = self._resolve(bin_id)
            settings = self._settings
            per_load = settings.tons_per_trailer if vehicle == "trailer" else settings.tons_per_wagon
            old_tons = bin_.current_fill_tons
            bin_.set_fill_tons(old_tons + signed * per_load, settings.converter)
            if vehicle == "trailer":
                bin_.trailer_count += signed
            else:
                bin_.wagon_count += signed
            self._apply_trigger(bin_, FillTrigger.EXACT_WRITE)
            self._ledger.append(
                bin_,
                action,
                details,
                old_tons,
                bin_.current_fill_tons,
                "tons",
                quantity=quantity,
            )
            snapshot = self._commit(bin_, fill_changed=True)

        await self._emit_event(bin_updated_event(snapshot.id, action.value))
        return snapshot

    async def reset_trailer_count(self, bin_id: BinId) -> Bin:
        """Zero the trailer counter. Fill level is untouched."""
        return await self._reset_counter(bin_id, "trailer")

    async def reset_wagon_count(self, bin_id: BinId) -> Bin:
        """Zero the wagon counter. Fill level is untouched."""
        return await self._reset_counter(bin_id, "wagon")

    async def _reset_counter(self, bin_id: BinId, vehicle: str) -> Bin:
        attr = f"{vehicle}_count"
        action = ActivityAction.TRAILER_RESET if vehicle == "trailer" else ActivityAction.WAGON_RESET

        async with self._lock:
            bin_ = self._resolve(bin_id)
            old_count = getattr(bin_, attr)
            setattr(bin_, attr, 0)
            self._ledger.append(
                bin_,
                action,
                f"Reset {vehicle} count from {old_count} to 0",
                old_count,
                0,
                f"{vehicle}s",
            )
            snapshot = self._commit(bin_, fill_changed=False)

        await self._emit_event(bin_updated_event(snapshot.id, action.value))
        return snapshot

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def update_grain_type(self, bin_id: BinId, grain_type: str) -> Bin:
        """Replace the grain type, recording old and new for undo.

        Raises:
            ValidationError: If the new grain type is empty.
        """
        grain_type = _required_text(grain_type, "grain_type")

        async with self._lock:
            bin_ = self._resolve(bin_id)
            old_type = bin_.grain_type
            bin_.grain_type = grain_type
            self._ledger.append(
                bin_,
                ActivityAction.GRAIN_CHANGE,
                f'Changed grain type from "{old_type}" to "{grain_type}"',
                old_text=old_type,
                new_text=grain_type,
            )
            snapshot = self._commit(bin_, fill_changed=False)

        await self._emit_event(bin_updated_event(snapshot.id, "grain_change"))
        return snapshot

    # ------------------------------------------------------------------
    # Activity ledger
    # ------------------------------------------------------------------

    async def delete_activity_log(self, bin_id: BinId, log_id: str) -> bool:
        """Remove one ledger entry. Returns False if it did not exist."""
        async with self._lock:
            bin_ = self._resolve(bin_id)
            removed = self._ledger.delete(bin_, log_id)
            if removed:
                self._dirty = True

        if removed:
            await self._emit_event(bin_updated_event(bin_.id, "delete_activity_log"))
        return removed

    async def undo_last_activity(self, bin_id: BinId) -> Optional[UndoResult]:
        """Revert the most recent ledger entry.

        Entries whose action is not reversible are consumed without touching
        the bin. An empty ledger is a no-op.

        Returns:
            The undo outcome, or None if the ledger was empty.
        """
        async with self._lock:
            bin_ = self._resolve(bin_id)
            old_tons = bin_.current_fill_tons
            result = self._ledger.undo_last(bin_, self._settings.converter)
            if result is None:
                return None
            self._commit(bin_, fill_changed=bin_.current_fill_tons != old_tons)
            events = [
                Event(
                    type=EventType.ACTIVITY_UNDONE,
                    data={
                        "bin_id": bin_.id,
                        "action": result.entry.action.value,
                        "reverted": result.reverted,
                    },
                    source="manager",
                ),
                bin_updated_event(bin_.id, "undo"),
            ]

        await self._emit_events(events)
        return result

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def add_note(
        self,
        bin_id: BinId,
        title: str,
        content: str,
        priority: str | NotePriority = NotePriority.MEDIUM,
    ) -> Note:
        """Attach an operator note to a bin."""
        title = _required_text(title, "title")
        content = _required_text(content, "content")
        level = _note_priority(priority)

        async with self._lock:
            bin_ = self._resolve(bin_id)
            note = Note(
                bin_id=bin_.id,
                title=title,
                content=content,
                priority=level,
                timestamp=self._clock(),
            )
            bin_.notes = [note, *bin_.notes]
            self._dirty = True

        await self._emit_event(bin_updated_event(bin_.id, "add_note"))
        return replace(note)

    async def update_note(
        self,
        bin_id: BinId,
        note_id: str,
        title: str,
        content: str,
        priority: str | NotePriority,
    ) -> Optional[Note]:
        """Edit a note. Returns None if the note does not exist."""
        title = _required_text(title, "title")
        content = _required_text(content, "content")
        level = _note_priority(priority)

        async with self._lock:
            bin_ = self._resolve(bin_id)
            note = bin_.find_note(note_id)
            if note is None:
                return None
            note.title = title
            note.content = content
            note.priority = level
            self._dirty = True

        await self._emit_event(bin_updated_event(bin_.id, "update_note"))
        return replace(note)

    async def mark_note_read(self, bin_id: BinId, note_id: str, is_read: bool = True) -> Optional[Note]:
        async with self._lock:
            bin_ = self._resolve(bin_id)
            note = bin_.find_note(note_id)
            if note is None:
                return None
            note.is_read = is_read
            self._dirty = True
        return replace(note)

    async def delete_note(self, bin_id: BinId, note_id: str) -> bool:
        async with self._lock:
            bin_ = self._resolve(bin_id)
            remaining = [n for n in bin_.notes if n.id != note_id]
            removed = len(remaining) != len(bin_.notes)
            bin_.notes = remaining
            if removed:
                self._dirty = True

        if removed:
            await self._emit_event(bin_updated_event(bin_.id, "delete_note"))
        return removed

    # ------------------------------------------------------------------
    # Settings and notifications
    # ------------------------------------------------------------------

    async def update_system_settings(self, **changes: Any) -> SystemSettings:
        """Apply a partial settings update.

        Filling bins are first accrued to now at the old rate. When the
        tons-per-foot ratio changes, every bin's tons fields are recomputed
        from feet. The new settings are persisted immediately.

        Raises:
            ConfigurationError: If the update is invalid; nothing changes.
        """
        async with self._lock:
            current = self._settings
            updated = current.with_changes(**changes)

            now = self._clock()
            events: list[Event] = []
            for bin_ in self._bins.values():
                if not bin_.is_filling:
                    continue
                result = accrue(bin_, current, now)
                self._notify_threshold(bin_, current)
                if result.auto_stopped:
                    events.append(auto_stopped_event(bin_.id, bin_.current_fill_feet))
                events.append(bin_updated_event(bin_.id, "accrual"))

            self._settings = updated
            if updated.tons_per_foot != current.tons_per_foot:
                converter = updated.converter
                for bin_ in self._bins.values():
                    bin_.recompute_tons(converter)
                logger.info(
                    "Tons per foot changed %s -> %s, recomputed bin tonnage",
                    current.tons_per_foot,
                    updated.tons_per_foot,
                )
            self._dirty = True
            document = updated.to_dict()

        logger.info("System settings updated: %s", ", ".join(sorted(changes)) or "none")
        await self._save_settings(document)
        await self._emit_events(events)
        await self._emit_event(Event(
            type=EventType.SETTINGS_UPDATED,
            data=document,
            source="manager",
        ))
        return updated

    def reset_notification_cooldown(self, bin_id: BinId) -> None:
        self._notifier.reset_cooldown(bin_id)

    def send_test_notification(self) -> bool:
        try:
            return self._notifier.send_test()
        except Exception as e:
            logger.error("Test notification failed: %s", e)
            return False

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Load bins and settings from the store.

        Failures never propagate: unreadable settings fall back to defaults,
        and unreadable or empty bins fall back to the built-in bins (which
        are saved back when the store was simply empty).
        """
        settings = await self._load_settings()
        bins = await self._load_bins(settings)

        async with self._lock:
            self._settings = settings
            self._bins = {b.id: b for b in bins}

        logger.info("Loaded %d bin(s)", len(bins))
        await self._emit_event(Event(
            type=EventType.BINS_LOADED,
            data={"bin_ids": [b.id for b in bins]},
            source="manager",
        ))

    async def _load_settings(self) -> SystemSettings:
        if self._store is None:
            return self._settings

        try:
            document = await self._store.load_settings()
        except StoreError as e:
            logger.warning("Failed to load settings, using defaults: %s", e)
            return SystemSettings()

        if document is None:
            logger.info("No stored settings, using defaults")
            defaults = SystemSettings()
            await self._save_settings(defaults.to_dict())
            return defaults

        try:
            return SystemSettings.from_dict(document).validate()
        except (ConfigurationError, ValueError, TypeError) as e:
            logger.warning("Stored settings are invalid, using defaults: %s", e)
            return SystemSettings()

    async def _load_bins(self, settings: SystemSettings) -> list[Bin]:
        defaults = default_bins(settings, self._default_bin_count, self._default_capacity_feet)
        if self._store is None:
            return list(self._bins.values())

        try:
            documents = await self._store.load_bins()
        except StoreError as e:
            logger.warning("Failed to load bins, using defaults: %s", e)
            return defaults

        if not documents:
            logger.info("No stored bins, creating %d default bin(s)", len(defaults))
            try:
                await self._store.save_bins([b.to_dict() for b in defaults])
            except StoreError as e:
                logger.error("Failed to save default bins: %s", e)
                self._dirty = True
            return defaults

        converter = settings.converter
        bins: list[Bin] = []
        for document in documents:
            try:
                bins.append(Bin.from_dict(document, converter))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping unreadable bin document: %s", e)

        if not bins:
            logger.warning("No readable bins in store, using defaults")
            return defaults
        return bins

    async def _save_settings(self, document: Document) -> None:
        if self._store is None:
            return
        try:
            await self._store.save_settings(document)
        except StoreError as e:
            logger.error("Failed to save settings: %s", e)
            await self._emit_event(persistence_failed_event("save_settings", str(e)))

    async def flush(self, force: bool = False) -> bool:
        """Write the current bins through to the store.

        The snapshot is taken under the state lock; the save itself runs
        outside it so operations and accrual are never blocked on I/O.

        Args:
            force: Save even if nothing changed.

        Returns:
            True if the store is up to date, False if the save failed (the
            state stays dirty and is retried on the next flush).
        """
        if self._store is None:
            return True

        async with self._flush_lock:
            async with self._lock:
                if not self._dirty and not force:
                    return True
                documents = [b.to_dict() for b in self._bins.values()]
                self._dirty = False

            try:
                await self._store.save_bins(documents)
            except StoreError as e:
                logger.error("Failed to save bins: %s", e)
                self._dirty = True
                await self._emit_event(persistence_failed_event("save_bins", str(e)))
                return False
            except Exception:
                self._dirty = True
                raise

        logger.debug("Flushed %d bin(s)", len(documents))
        return True

    async def run_flush_loop(self, interval: float = 5.0) -> None:
        """Flush dirty state every ``interval`` seconds until :meth:`stop`."""
        logger.info("Persistence flush loop started (interval %.1fs)", interval)

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass
            try:
                await self.flush()
            except Exception as e:
                logger.error("Persistence flush error: %s", e)

        logger.info("Persistence flush loop stopped")

    async def stop(self) -> None:
        """Stop the flush loop, write pending changes and close the store."""
        self._stop_event.set()
        await self.flush()
        if self._store is not None:
            await self._store.close()
