"""Tests for the bin manager."""

import math

import pytest

from grainbin.core.activity import ActivityAction
from grainbin.core.errors import BinNotFoundError, ConfigurationError, ValidationError
from grainbin.core.events import Event, EventType
from grainbin.core.manager import BinManager
from grainbin.core.models import Bin, SystemSettings
from grainbin.notify.base import NotificationKind, Notifier
from grainbin.notify.mock_notifier import MockNotifier
from grainbin.store.memory_store import MemoryStore


class RaisingNotifier(Notifier):
    """Notifier that always fails."""

    def notify_threshold(self, bin_, settings) -> None:
        raise RuntimeError("notifier down")

    def notify_periodic(self, bin_, settings) -> None:
        raise RuntimeError("notifier down")


def record_events(manager: BinManager) -> list[Event]:
    events: list[Event] = []

    async def listener(event: Event) -> None:
        events.append(event)

    manager.add_listener(listener)
    return events


class TestLoad:
    """Test startup loading and fallbacks."""

    @pytest.mark.asyncio
    async def test_empty_store_installs_defaults(
        self, manager: BinManager, memory_store: MemoryStore
    ) -> None:
        await manager.load()

        bins = await manager.list_bins()
        assert [b.name for b in bins] == ["Bin 1", "Bin 2"]
        assert [b.grain_type for b in bins] == ["Wheat H2", "Wheat APH2"]
        assert memory_store.save_count == 1
        assert len(await memory_store.load_bins()) == 2
        assert await memory_store.load_settings() == SystemSettings().to_dict()

    @pytest.mark.asyncio
    async def test_store_failure_falls_back_to_defaults(
        self, manager: BinManager, memory_store: MemoryStore
    ) -> None:
        memory_store.fail = True
        await manager.load()

        bins = await manager.list_bins()
        assert len(bins) == 2
        assert manager.settings == SystemSettings()
        assert memory_store.save_count == 0

    @pytest.mark.asyncio
    async def test_loads_stored_bins_and_settings(self, clock) -> None:
        settings = SystemSettings(tons_per_foot=20.0)
        stored = Bin.create(7, "North", "Barley", 100.0, settings.converter)
        stored.set_fill_feet(40.0, settings.converter)
        store = MemoryStore(bins=[stored.to_dict()], settings=settings.to_dict())
        manager = BinManager(store=store, notifier=MockNotifier(clock=clock), clock=clock)

        await manager.load()

        bin_ = await manager.get_bin(7)
        assert bin_.name == "North"
        assert bin_.current_fill_tons == 800.0
        assert manager.settings.tons_per_foot == 20.0

    @pytest.mark.asyncio
    async def test_unreadable_documents_are_skipped(self, clock) -> None:
        store = MemoryStore(bins=[
            {"id": 1, "name": "Good"},
            {"id": 2, "activityLogs": [{"action": "not_an_action"}]},
        ])
        manager = BinManager(store=store, notifier=MockNotifier(clock=clock), clock=clock)

        await manager.load()

        assert [b.name for b in await manager.list_bins()] == ["Good"]

    @pytest.mark.asyncio
    async def test_invalid_stored_settings_use_defaults(self, clock) -> None:
        store = MemoryStore(settings={"tonsPerFoot": 0})
        manager = BinManager(store=store, notifier=MockNotifier(clock=clock), clock=clock)
        await manager.load()
        assert manager.settings == SystemSettings()

    @pytest.mark.asyncio
    async def test_load_emits_event(self, manager: BinManager) -> None:
        events = record_events(manager)
        await manager.load()
        assert events[-1].type == EventType.BINS_LOADED
        assert events[-1].data == {"bin_ids": [1, 2]}


class TestBinLookup:
    @pytest.mark.asyncio
    async def test_numeric_string_id(self, loaded_manager: BinManager) -> None:
        bin_ = await loaded_manager.get_bin("2")
        assert bin_.id == 2

    @pytest.mark.asyncio
    async def test_unknown_bin(self, loaded_manager: BinManager) -> None:
        with pytest.raises(BinNotFoundError):
            await loaded_manager.add_truck_load(99, 1)

    @pytest.mark.asyncio
    async def test_returned_bins_are_snapshots(self, loaded_manager: BinManager) -> None:
        bin_ = await loaded_manager.get_bin(1)
        bin_.current_fill_feet = 100.0
        assert (await loaded_manager.get_bin(1)).current_fill_feet == 0.0


class TestFillingSession:
    """Test start, stop and accrual through the manager."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, loaded_manager: BinManager, clock) -> None:
        assert await loaded_manager.start_filling(1)
        bin_ = await loaded_manager.get_bin(1)
        assert bin_.is_filling
        assert bin_.start_time == clock()

        clock.advance(minutes=5)
        assert await loaded_manager.stop_filling(1)

        bin_ = await loaded_manager.get_bin(1)
        assert not bin_.is_filling
        assert [e.action for e in bin_.activity_logs] == [
            ActivityAction.STOP_FILLING,
            ActivityAction.START_FILLING,
        ]

    @pytest.mark.asyncio
    async def test_stop_keeps_in_flight_accrual(self, loaded_manager: BinManager, clock) -> None:
        """Progress since the last tick is applied before stopping."""
        await loaded_manager.start_filling(1)
        clock.advance(minutes=5)
        await loaded_manager.stop_filling(1)

        bin_ = await loaded_manager.get_bin(1)
        assert bin_.current_fill_tons == pytest.approx(15.0)
        assert bin_.current_fill_feet == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_start_twice_is_rejected(self, loaded_manager: BinManager) -> None:
        assert await loaded_manager.start_filling(1)
        assert not await loaded_manager.start_filling(1)
        bin_ = await loaded_manager.get_bin(1)
        assert len(bin_.activity_logs) == 1

    @pytest.mark.asyncio
    async def test_stop_idle_is_rejected(self, loaded_manager: BinManager) -> None:
        assert not await loaded_manager.stop_filling(1)
        assert (await loaded_manager.get_bin(1)).activity_logs == []

    @pytest.mark.asyncio
    async def test_tick_accrues_filling_bins_only(self, loaded_manager: BinManager, clock) -> None:
        await loaded_manager.start_filling(1)
        clock.advance(minutes=10)

        results = await loaded_manager.tick()

        assert set(results) == {1}
        assert (await loaded_manager.get_bin(1)).current_fill_feet == pytest.approx(1.2)
        assert (await loaded_manager.get_bin(2)).current_fill_feet == 0.0

    @pytest.mark.asyncio
    async def test_auto_stop_at_capacity(self, loaded_manager: BinManager, clock) -> None:
        """Reaching capacity stops filling exactly at max with no ledger entry."""
        await loaded_manager.update_manual_fill(1, 1.0)
        await loaded_manager.start_filling(1)
        events = record_events(loaded_manager)

        # 1 ft at 0.12 ft/min takes about 8.3 minutes
        clock.advance(minutes=10)
        results = await loaded_manager.tick()

        bin_ = await loaded_manager.get_bin(1)
        assert results[1].auto_stopped
        assert bin_.current_fill_feet == 130.0
        assert bin_.current_fill_tons == 3250.0
        assert not bin_.is_filling
        assert bin_.activity_logs[0].action == ActivityAction.START_FILLING
        assert EventType.AUTO_STOPPED in [e.type for e in events]

    @pytest.mark.asyncio
    async def test_stop_after_reaching_capacity_reports_auto_stop(
        self, loaded_manager: BinManager, mock_notifier: MockNotifier, clock
    ) -> None:
        """Capacity reached between ticks is reported by the stop itself."""
        await loaded_manager.update_manual_fill(1, 1.0)
        loaded_manager.reset_notification_cooldown(1)
        await loaded_manager.start_filling(1)
        events = record_events(loaded_manager)

        clock.advance(minutes=10)
        assert await loaded_manager.stop_filling(1)

        bin_ = await loaded_manager.get_bin(1)
        assert bin_.current_fill_feet == 130.0
        assert not bin_.is_filling
        types = [e.type for e in events]
        assert EventType.AUTO_STOPPED in types
        assert EventType.FILLING_STOPPED in types
        assert len(mock_notifier.of_kind(NotificationKind.THRESHOLD)) == 2

    @pytest.mark.asyncio
    async def test_exact_write_ends_session(self, loaded_manager: BinManager, clock) -> None:
        await loaded_manager.start_filling(1)
        clock.advance(minutes=1)
        bin_ = await loaded_manager.manual_inload(1, 100.0)
        assert not bin_.is_filling
        assert bin_.start_time is None


class TestExactWrites:
    """Test reset, manual fill and manual loads."""

    @pytest.mark.asyncio
    async def test_reset(self, loaded_manager: BinManager) -> None:
        await loaded_manager.manual_inload(1, 500.0)
        bin_ = await loaded_manager.reset(1)
        assert bin_.current_fill_feet == 0.0
        assert bin_.activity_logs[0].action == ActivityAction.RESET
        assert bin_.activity_logs[0].old_value == 500.0

    @pytest.mark.asyncio
    async def test_manual_fill_from_remaining(self, loaded_manager: BinManager) -> None:
        bin_ = await loaded_manager.update_manual_fill(1, 30.0)
        assert bin_.current_fill_feet == 100.0
        assert bin_.current_fill_tons == 2500.0
        assert bin_.activity_logs[0].action == ActivityAction.MANUAL_FILL

    @pytest.mark.asyncio
    async def test_manual_fill_larger_than_bin_reads_empty(self, loaded_manager: BinManager) -> None:
        bin_ = await loaded_manager.update_manual_fill(1, 200.0)
        assert bin_.current_fill_feet == 0.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [-1.0, math.nan, math.inf, "10", None, True])
    async def test_manual_fill_rejects_bad_input(self, loaded_manager: BinManager, value) -> None:
        with pytest.raises(ValidationError):
            await loaded_manager.update_manual_fill(1, value)
        assert (await loaded_manager.get_bin(1)).activity_logs == []

    @pytest.mark.asyncio
    async def test_inload_clamps_at_capacity(self, loaded_manager: BinManager) -> None:
        bin_ = await loaded_manager.manual_inload(1, 5000.0, "custom")
        assert bin_.current_fill_feet == 130.0
        assert bin_.activity_logs[0].new_value == 3250.0

    @pytest.mark.asyncio
    async def test_outload_clamps_at_empty(self, loaded_manager: BinManager) -> None:
        await loaded_manager.manual_inload(1, 100.0)
        bin_ = await loaded_manager.manual_outload(1, 250.0, "trailer")
        assert bin_.current_fill_feet == 0.0
        assert bin_.activity_logs[0].details == "Manual outload: 250 tons (trailer)"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tons", [0, -5, math.nan, "ten"])
    async def test_manual_load_rejects_bad_tons(self, loaded_manager: BinManager, tons) -> None:
        with pytest.raises(ValidationError):
            await loaded_manager.manual_inload(1, tons)

    @pytest.mark.asyncio
    async def test_manual_load_rejects_unknown_type(self, loaded_manager: BinManager) -> None:
        with pytest.raises(ValidationError):
            await loaded_manager.manual_inload(1, 10.0, "barge")


class TestDiscreteLoads:
    """Test trailer and wagon loads and counters."""

    @pytest.mark.asyncio
    async def test_add_trailers(self, loaded_manager: BinManager) -> None:
        bin_ = await loaded_manager.add_truck_load(1, 2)
        assert bin_.trailer_count == 2
        assert bin_.current_fill_tons == pytest.approx(60.0)
        assert bin_.current_fill_feet == pytest.approx(2.4)
        assert bin_.activity_logs[0].quantity == 2

    @pytest.mark.asyncio
    async def test_add_wagons(self, loaded_manager: BinManager) -> None:
        bin_ = await loaded_manager.add_wagon_load(2, 3)
        assert bin_.wagon_count == 3
        assert bin_.current_fill_tons == pytest.approx(150.0)

    @pytest.mark.asyncio
    async def test_remove_allows_negative_count(self, loaded_manager: BinManager) -> None:
        """Counts are not clamped; fill is."""
        bin_ = await loaded_manager.remove_trailer_load(1, 2)
        assert bin_.trailer_count == -2
        assert bin_.current_fill_feet == 0.0

        bin_ = await loaded_manager.remove_wagon_load(1, 1)
        assert bin_.wagon_count == -1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, -1, 1.5, True, "2"])
    async def test_rejects_bad_count(self, loaded_manager: BinManager, count) -> None:
        with pytest.raises(ValidationError):
            await loaded_manager.add_truck_load(1, count)

    @pytest.mark.asyncio
    async def test_reset_trailer_count_is_idempotent(self, loaded_manager: BinManager) -> None:
        await loaded_manager.add_truck_load(1, 3)
        first = await loaded_manager.reset_trailer_count(1)
        second = await loaded_manager.reset_trailer_count(1)

        assert first.trailer_count == 0
        assert second.trailer_count == 0
        assert second.current_fill_tons == pytest.approx(90.0)
        assert second.activity_logs[0].details == "Reset trailer count from 0 to 0"
        assert second.activity_logs[1].details == "Reset trailer count from 3 to 0"

    @pytest.mark.asyncio
    async def test_reset_wagon_count(self, loaded_manager: BinManager) -> None:
        await loaded_manager.add_wagon_load(1, 2)
        bin_ = await loaded_manager.reset_wagon_count(1)
        assert bin_.wagon_count == 0
        assert bin_.activity_logs[0].action == ActivityAction.WAGON_RESET


class TestGrainType:
    @pytest.mark.asyncio
    async def test_update_and_undo(self, loaded_manager: BinManager) -> None:
        bin_ = await loaded_manager.update_grain_type(1, "  Barley ")
        assert bin_.grain_type == "Barley"
        assert bin_.activity_logs[0].details == 'Changed grain type from "Wheat H2" to "Barley"'

        await loaded_manager.undo_last_activity(1)
        assert (await loaded_manager.get_bin(1)).grain_type == "Wheat H2"

    @pytest.mark.asyncio
    async def test_rejects_empty(self, loaded_manager: BinManager) -> None:
        with pytest.raises(ValidationError):
            await loaded_manager.update_grain_type(1, "   ")


class TestActivity:
    """Test ledger operations through the manager."""

    @pytest.mark.asyncio
    async def test_truck_load_undo(self, loaded_manager: BinManager) -> None:
        """Undo after adding trailers restores fill and count."""
        await loaded_manager.add_truck_load(1, 2)
        events = record_events(loaded_manager)

        result = await loaded_manager.undo_last_activity(1)

        bin_ = await loaded_manager.get_bin(1)
        assert result is not None and result.reverted
        assert bin_.current_fill_tons == 0.0
        assert bin_.current_fill_feet == 0.0
        assert bin_.trailer_count == 0
        assert bin_.activity_logs == []
        assert [e.type for e in events] == [EventType.ACTIVITY_UNDONE, EventType.BIN_UPDATED]

    @pytest.mark.asyncio
    async def test_undo_empty_ledger(self, loaded_manager: BinManager) -> None:
        assert await loaded_manager.undo_last_activity(1) is None

    @pytest.mark.asyncio
    async def test_undo_reset_only_removes_entry(self, loaded_manager: BinManager) -> None:
        await loaded_manager.manual_inload(1, 100.0)
        await loaded_manager.reset(1)

        result = await loaded_manager.undo_last_activity(1)

        bin_ = await loaded_manager.get_bin(1)
        assert result is not None and not result.reverted
        assert bin_.current_fill_feet == 0.0
        assert [e.action for e in bin_.activity_logs] == [ActivityAction.MANUAL_INLOAD]

    @pytest.mark.asyncio
    async def test_delete_log(self, loaded_manager: BinManager) -> None:
        bin_ = await loaded_manager.add_truck_load(1, 1)
        log_id = bin_.activity_logs[0].id

        assert await loaded_manager.delete_activity_log(1, log_id)
        assert not await loaded_manager.delete_activity_log(1, log_id)
        assert (await loaded_manager.get_bin(1)).trailer_count == 1

    @pytest.mark.asyncio
    async def test_ledger_cap(self, clock) -> None:
        manager = BinManager(notifier=MockNotifier(clock=clock), activity_log_limit=5, clock=clock)
        for _ in range(8):
            await manager.add_truck_load(1, 1)
        assert len((await manager.get_bin(1)).activity_logs) == 5


class TestNotifications:
    """Test threshold and periodic notification wiring."""

    @pytest.mark.asyncio
    async def test_threshold_fires_with_cooldown(
        self, loaded_manager: BinManager, mock_notifier: MockNotifier, clock
    ) -> None:
        """At most one threshold alert per bin per cooldown window."""
        await loaded_manager.update_manual_fill(1, 5.0)
        await loaded_manager.update_manual_fill(1, 4.0)

        alerts = mock_notifier.of_kind(NotificationKind.THRESHOLD)
        assert len(alerts) == 1
        assert alerts[0].body == "Bin 1 requires manual measurement - Remaining: 5.0 ft"

        clock.advance(minutes=31)
        await loaded_manager.update_manual_fill(1, 3.0)
        assert len(mock_notifier.of_kind(NotificationKind.THRESHOLD)) == 2

    @pytest.mark.asyncio
    async def test_no_threshold_alert_with_room(
        self, loaded_manager: BinManager, mock_notifier: MockNotifier
    ) -> None:
        await loaded_manager.update_manual_fill(1, 50.0)
        assert mock_notifier.sent == []

    @pytest.mark.asyncio
    async def test_cooldown_is_per_bin(
        self, loaded_manager: BinManager, mock_notifier: MockNotifier
    ) -> None:
        await loaded_manager.update_manual_fill(1, 5.0)
        await loaded_manager.update_manual_fill(2, 5.0)
        assert len(mock_notifier.of_kind(NotificationKind.THRESHOLD)) == 2

    @pytest.mark.asyncio
    async def test_reset_cooldown(
        self, loaded_manager: BinManager, mock_notifier: MockNotifier
    ) -> None:
        await loaded_manager.update_manual_fill(1, 5.0)
        loaded_manager.reset_notification_cooldown(1)
        await loaded_manager.update_manual_fill(1, 5.0)
        assert len(mock_notifier.of_kind(NotificationKind.THRESHOLD)) == 2

    @pytest.mark.asyncio
    async def test_periodic_reminder_while_filling(
        self, loaded_manager: BinManager, mock_notifier: MockNotifier, clock
    ) -> None:
        await loaded_manager.start_filling(1)
        for _ in range(4):
            clock.advance(minutes=5)
            await loaded_manager.tick()

        # Ticks at 5, 10, 15 and 20 minutes: reminders at 5 and 15
        assert len(mock_notifier.of_kind(NotificationKind.PERIODIC)) == 2

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_break_operations(self, clock) -> None:
        manager = BinManager(notifier=RaisingNotifier(), clock=clock)
        bin_ = await manager.update_manual_fill(1, 1.0)
        assert bin_.current_fill_feet == 129.0

        await manager.start_filling(1)
        clock.advance(minutes=1)
        await manager.tick()

    @pytest.mark.asyncio
    async def test_send_test_notification(
        self, loaded_manager: BinManager, mock_notifier: MockNotifier
    ) -> None:
        assert loaded_manager.send_test_notification()
        assert mock_notifier.of_kind(NotificationKind.TEST)


class TestSettings:
    """Test system settings updates."""

    @pytest.mark.asyncio
    async def test_ratio_change_recomputes_tons(
        self, loaded_manager: BinManager, memory_store: MemoryStore
    ) -> None:
        await loaded_manager.update_manual_fill(1, 30.0)

        updated = await loaded_manager.update_system_settings(tons_per_foot=30.0)

        bin_ = await loaded_manager.get_bin(1)
        assert updated.tons_per_foot == 30.0
        assert bin_.current_fill_feet == 100.0
        assert bin_.current_fill_tons == 3000.0
        assert bin_.max_capacity_tons == 3900.0
        assert (await memory_store.load_settings())["tonsPerFoot"] == 30.0

    @pytest.mark.asyncio
    async def test_rate_change_accrues_at_old_rate_first(
        self, loaded_manager: BinManager, clock
    ) -> None:
        await loaded_manager.start_filling(1)
        clock.advance(minutes=10)
        await loaded_manager.update_system_settings(elevator_speed=360.0)
        clock.advance(minutes=10)
        await loaded_manager.tick()

        # 30 tons at the old rate, then 60 tons at the new rate
        assert (await loaded_manager.get_bin(1)).current_fill_tons == pytest.approx(90.0)

    @pytest.mark.asyncio
    async def test_update_reports_bins_that_reached_capacity(
        self, loaded_manager: BinManager, mock_notifier: MockNotifier, clock
    ) -> None:
        await loaded_manager.update_manual_fill(1, 1.0)
        loaded_manager.reset_notification_cooldown(1)
        await loaded_manager.start_filling(1)
        events = record_events(loaded_manager)

        clock.advance(minutes=10)
        await loaded_manager.update_system_settings(elevator_speed=200.0)

        bin_ = await loaded_manager.get_bin(1)
        assert bin_.current_fill_feet == 130.0
        assert not bin_.is_filling
        auto_stopped = [e for e in events if e.type == EventType.AUTO_STOPPED]
        assert [e.data["bin_id"] for e in auto_stopped] == [1]
        assert events[-1].type == EventType.SETTINGS_UPDATED
        assert len(mock_notifier.of_kind(NotificationKind.THRESHOLD)) == 2

    @pytest.mark.asyncio
    async def test_invalid_update_changes_nothing(self, loaded_manager: BinManager) -> None:
        with pytest.raises(ConfigurationError):
            await loaded_manager.update_system_settings(tons_per_foot=-1)
        assert loaded_manager.settings == SystemSettings()

    @pytest.mark.asyncio
    async def test_update_emits_event(self, loaded_manager: BinManager) -> None:
        events = record_events(loaded_manager)
        await loaded_manager.update_system_settings(notifications={"enabled": False})
        assert events[-1].type == EventType.SETTINGS_UPDATED
        assert events[-1].data["notifications"]["enabled"] is False


class TestNotes:
    @pytest.mark.asyncio
    async def test_note_lifecycle(self, loaded_manager: BinManager) -> None:
        note = await loaded_manager.add_note(1, "Moisture", "Probe reads 14%", "high")
        assert note.priority.value == "high"

        updated = await loaded_manager.update_note(1, note.id, "Moisture", "Now 13%", "low")
        assert updated is not None and updated.content == "Now 13%"

        read = await loaded_manager.mark_note_read(1, note.id)
        assert read is not None and read.is_read

        assert await loaded_manager.delete_note(1, note.id)
        assert (await loaded_manager.get_bin(1)).notes == []

    @pytest.mark.asyncio
    async def test_unknown_note(self, loaded_manager: BinManager) -> None:
        assert await loaded_manager.update_note(1, "missing", "t", "c", "low") is None
        assert await loaded_manager.mark_note_read(1, "missing") is None
        assert not await loaded_manager.delete_note(1, "missing")

    @pytest.mark.asyncio
    async def test_rejects_bad_priority(self, loaded_manager: BinManager) -> None:
        with pytest.raises(ValidationError):
            await loaded_manager.add_note(1, "t", "c", "urgent")


class TestPersistence:
    """Test write-through flushing."""

    @pytest.mark.asyncio
    async def test_flush_writes_dirty_state(
        self, loaded_manager: BinManager, memory_store: MemoryStore
    ) -> None:
        await loaded_manager.add_truck_load(1, 1)
        assert loaded_manager.is_dirty

        assert await loaded_manager.flush()

        assert not loaded_manager.is_dirty
        stored = {doc["id"]: doc for doc in await memory_store.load_bins()}
        assert stored[1]["trailerCount"] == 1

    @pytest.mark.asyncio
    async def test_clean_flush_skips_save(
        self, loaded_manager: BinManager, memory_store: MemoryStore
    ) -> None:
        count = memory_store.save_count
        assert await loaded_manager.flush()
        assert memory_store.save_count == count

    @pytest.mark.asyncio
    async def test_failed_flush_stays_dirty(
        self, loaded_manager: BinManager, memory_store: MemoryStore
    ) -> None:
        """A failed save is reported and retried on the next flush."""
        events = record_events(loaded_manager)
        await loaded_manager.add_truck_load(1, 1)
        memory_store.fail = True

        assert not await loaded_manager.flush()
        assert loaded_manager.is_dirty
        assert events[-1].type == EventType.PERSISTENCE_FAILED

        memory_store.fail = False
        assert await loaded_manager.flush()
        assert not loaded_manager.is_dirty

    @pytest.mark.asyncio
    async def test_operations_never_read_from_store(
        self, loaded_manager: BinManager, memory_store: MemoryStore
    ) -> None:
        memory_store.fail = True
        bin_ = await loaded_manager.add_truck_load(1, 1)
        assert bin_.trailer_count == 1

    @pytest.mark.asyncio
    async def test_listener_errors_are_contained(self, loaded_manager: BinManager) -> None:
        async def broken(event: Event) -> None:
            raise RuntimeError("listener failed")

        loaded_manager.add_listener(broken)
        bin_ = await loaded_manager.add_truck_load(1, 1)
        assert bin_.trailer_count == 1

        loaded_manager.remove_listener(broken)
