"""
Cached reference to the latest published snapshot.

Readers get an immutable Snapshot; reloads replace the reference under a lock
and never touch the object a reader already holds. Refresh policy (cron,
admin trigger, TTL) is the caller's choice: refresh() and invalidate() are
explicit, and the TTL only bounds how stale get() may be.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from backend_seeds.core.clock import Clock, utc_now
from backend_seeds.core.exceptions import SnapshotUnavailable
from backend_seeds.merkle.tree import MerkleTree
from backend_seeds.seeds_logging import get_logger
from backend_seeds.snapshots.models import Snapshot
from backend_seeds.snapshots.store import SnapshotStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Loaded:
    snapshot_id: int
    snapshot: Snapshot
    tree: MerkleTree
    loaded_at: float


class SnapshotProvider:
    """Serves the latest snapshot and Merkle tree from a SnapshotStore with a freshness TTL."""

    def __init__(self, store: SnapshotStore, *, ttl_sec: float = 300.0, clock: Clock = utc_now) -> None:
        self._store = store
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._lock = threading.Lock()
        self._current: _Loaded | None = None

    def _now(self) -> float:
        return self._clock().timestamp()

    def _is_fresh(self, loaded: _Loaded | None) -> bool:
        return loaded is not None and self._now() - loaded.loaded_at < self._ttl_sec

    def refresh(self) -> Snapshot | None:
        """Reload from the store now. Returns the new latest snapshot (None if none published)."""
        with self._lock:
            return self._reload_locked()

    def _reload_locked(self) -> Snapshot | None:
        loaded = self._store.latest_with_tree()
        if loaded is None:
            self._current = None
            return None
        snapshot_id, snapshot, tree = loaded
        previous = self._current
        self._current = _Loaded(snapshot_id, snapshot, tree, self._now())
        if previous is None or previous.snapshot_id != snapshot_id:
            logger.info(
                "snapshot_reference_swapped",
                snapshot_id=snapshot_id,
                previous_id=previous.snapshot_id if previous else None,
                block_number=snapshot.block_number,
                total_holders=snapshot.total_holders,
            )
        return snapshot

    def invalidate(self) -> None:
        """Drop the cached reference; the next get() reloads from the store."""
        with self._lock:
            self._current = None

    def _loaded(self) -> _Loaded | None:
        current = self._current
        if self._is_fresh(current):
            return current
        with self._lock:
            if not self._is_fresh(self._current):
                self._reload_locked()
            return self._current

    def get(self) -> Snapshot | None:
        loaded = self._loaded()
        return loaded.snapshot if loaded else None

    def require(self) -> Snapshot:
        """
        Latest snapshot.

        Raises:
            SnapshotUnavailable: nothing has been published yet.
        """
        snapshot = self.get()
        if snapshot is None:
            raise SnapshotUnavailable("no snapshot has been published")
        return snapshot

    def tree(self) -> MerkleTree | None:
        loaded = self._loaded()
        return loaded.tree if loaded else None
