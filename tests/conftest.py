"""
Pytest fixtures for Seeds backend tests. Temporary SQLite snapshot store, fake clock, sample snapshots.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend_seeds.merkle.tree import build_merkle_tree
from backend_seeds.snapshots.models import Snapshot
from backend_seeds.snapshots.provider import SnapshotProvider
from backend_seeds.snapshots.store import get_snapshot_store

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
DAVE = "0x" + "d4" * 20
COLLECTION = "0x8f814c7c75c5e9e0ede0336f535604b1915c1985"


class FakeClock:
    """Mutable clock: call it for now, advance() to move forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_snapshot(owners: dict[int, str], block_number: int = 100) -> Snapshot:
    return Snapshot.from_owners(
        COLLECTION,
        owners,
        total_supply=len(owners),
        block_number=block_number,
        timestamp="2025-01-01T00:00:00.000Z",
        contract_name="FirstWorks",
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 15, 30, tzinfo=timezone.utc))


@pytest.fixture
def sample_snapshot():
    """ALICE holds [1, 5], BOB [2, 3, 4], CAROL [6]."""
    return make_snapshot({1: ALICE, 2: BOB, 3: BOB, 4: BOB, 5: ALICE, 6: CAROL})


@pytest.fixture
def snapshot_store(tmp_path):
    return get_snapshot_store(tmp_path / "seeds.db", keep=3)


@pytest.fixture
def published_store(snapshot_store, sample_snapshot):
    """Store with sample_snapshot published as latest."""
    snapshot_store.publish(sample_snapshot, build_merkle_tree(sample_snapshot))
    return snapshot_store


@pytest.fixture
def provider(published_store, clock):
    return SnapshotProvider(published_store, ttl_sec=300, clock=clock)
