"""Pytest fixtures for grainbin tests."""

from datetime import datetime, timedelta

import pytest

from grainbin.core.manager import BinManager
from grainbin.core.models import SystemSettings
from grainbin.notify.mock_notifier import MockNotifier
from grainbin.store.memory_store import MemoryStore


class FakeClock:
    """Controllable time source."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 8, 0, 0)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        """Move time forward, e.g. ``clock.advance(minutes=5)``."""
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def settings() -> SystemSettings:
    """Default settings: 180 t/h, 25 t/ft, 30 t trailers, 50 t wagons."""
    return SystemSettings()


@pytest.fixture
def memory_store() -> MemoryStore:
    """Empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def mock_notifier(clock: FakeClock) -> MockNotifier:
    """Recording notifier on the fake clock."""
    return MockNotifier(clock=clock)


@pytest.fixture
def manager(
    memory_store: MemoryStore,
    mock_notifier: MockNotifier,
    clock: FakeClock,
) -> BinManager:
    """Manager with the two default bins, not yet loaded from the store."""
    return BinManager(store=memory_store, notifier=mock_notifier, clock=clock)


@pytest.fixture
async def loaded_manager(manager: BinManager) -> BinManager:
    """Manager after loading from an empty store (installs default bins)."""
    await manager.load()
    return manager
