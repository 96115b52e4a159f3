"""Shared fixtures for the synchronization tests."""

from datetime import datetime, timedelta, timezone

import pytest

from crm_sync.stores.memory import InMemoryLocalStore, InMemoryRemoteStore
from crm_sync.sync.mapping import Mapping

T0 = datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class TickingClock(ManualClock):
    """Clock that moves forward by one step on every reading."""

    def __init__(self, now: datetime = T0, step: float = 1.0):
        super().__init__(now)
        self.step = timedelta(seconds=step)

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def remote_store(clock: TickingClock) -> InMemoryRemoteStore:
    return InMemoryRemoteStore(clock=clock)


@pytest.fixture
def local_store(clock: TickingClock) -> InMemoryLocalStore:
    return InMemoryLocalStore(clock=clock)


@pytest.fixture
def contacts() -> Mapping:
    return Mapping("contacts", "Contact", {"first_name": "FirstName", "email": "Email"})
