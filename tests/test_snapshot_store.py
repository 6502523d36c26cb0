"""
Tests for SnapshotStore (SQLite), SnapshotProvider and the update pipeline.

Uses temporary SQLite DB via conftest fixtures.
"""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

import pytest
from conftest import ALICE, BOB, CAROL, DAVE, make_snapshot

from backend_seeds.core.exceptions import (
    OwnershipLookupFailed,
    SnapshotNotFound,
    SnapshotStoreError,
    SnapshotUnavailable,
)
from backend_seeds.merkle.tree import build_merkle_tree
from backend_seeds.snapshots.pipeline import update_snapshot
from backend_seeds.snapshots.provider import SnapshotProvider
from backend_seeds.snapshots.store import SnapshotStore, SQLiteSnapshotBackend


def _publish(store, owners, block):
    snapshot = make_snapshot(owners, block_number=block)
    return store.publish(snapshot, build_merkle_tree(snapshot))


def test_empty_store_has_no_latest(snapshot_store):
    assert snapshot_store.latest() is None
    assert snapshot_store.latest_tree() is None
    assert snapshot_store.history() == []
    with pytest.raises(SnapshotNotFound):
        snapshot_store.rollback()


def test_publish_then_latest(snapshot_store, sample_snapshot):
    tree = build_merkle_tree(sample_snapshot)
    snapshot_id = snapshot_store.publish(sample_snapshot, tree)
    assert snapshot_store.latest() == sample_snapshot
    assert snapshot_store.get(snapshot_id) == sample_snapshot
    loaded_tree = snapshot_store.latest_tree()
    assert loaded_tree.root == tree.root
    assert loaded_tree.proof_for(ALICE) == tree.proof_for(ALICE)
    assert snapshot_store.tree_for(snapshot_id).block_number == sample_snapshot.block_number


def test_get_unknown_id_raises(snapshot_store):
    with pytest.raises(SnapshotNotFound):
        snapshot_store.get(99)


def test_history_is_bounded_and_newest_first(snapshot_store):
    ids = [_publish(snapshot_store, {1: ALICE, 2: BOB}, block) for block in (10, 11, 12, 13, 14)]
    versions = snapshot_store.history()
    assert [v.id for v in versions] == ids[::-1][:3]
    assert versions[0].is_latest
    assert not any(v.is_latest for v in versions[1:])
    with pytest.raises(SnapshotNotFound):
        snapshot_store.get(ids[0])


def test_rollback_moves_pointer_to_previous(snapshot_store):
    first = _publish(snapshot_store, {1: ALICE}, 10)
    second = _publish(snapshot_store, {1: BOB}, 11)
    assert snapshot_store.latest().nfts_for(BOB) == [1]

    assert snapshot_store.rollback() == first
    assert snapshot_store.latest().nfts_for(ALICE) == [1]
    assert snapshot_store.get(second).block_number == 11
    with pytest.raises(SnapshotNotFound):
        snapshot_store.rollback()


def test_publish_after_rollback_becomes_latest(snapshot_store):
    first = _publish(snapshot_store, {1: ALICE}, 10)
    second = _publish(snapshot_store, {1: BOB}, 11)
    snapshot_store.rollback()
    assert snapshot_store.latest().block_number == 10

    third = _publish(snapshot_store, {1: CAROL}, 12)
    versions = snapshot_store.history()
    assert [v.id for v in versions] == [third, second, first]
    assert versions[0].is_latest
    assert snapshot_store.latest().nfts_for(CAROL) == [1]


def test_provider_serves_latest_and_caches(published_store, sample_snapshot, clock):
    provider = SnapshotProvider(published_store, ttl_sec=60, clock=clock)
    assert provider.get() == sample_snapshot
    held = provider.require()

    _publish(published_store, {1: DAVE}, 200)
    # Still cached within the TTL; the held reference is untouched.
    assert provider.get() is held
    clock.advance(seconds=61)
    assert provider.get().block_number == 200
    assert held.nfts_for(ALICE) == [1, 5]


def test_provider_refresh_and_invalidate(published_store, clock):
    provider = SnapshotProvider(published_store, ttl_sec=3600, clock=clock)
    assert provider.get().block_number == 100
    _publish(published_store, {1: DAVE}, 201)
    assert provider.refresh().block_number == 201
    _publish(published_store, {1: ALICE}, 202)
    provider.invalidate()
    assert provider.get().block_number == 202
    assert provider.tree().block_number == 202


def test_provider_require_raises_when_empty(snapshot_store, clock):
    provider = SnapshotProvider(snapshot_store, clock=clock)
    assert provider.get() is None
    assert provider.tree() is None
    with pytest.raises(SnapshotUnavailable):
        provider.require()


def test_update_snapshot_publishes_and_invalidates(snapshot_store, clock):
    snapshot = make_snapshot({1: ALICE, 2: BOB}, block_number=300)
    builder = MagicMock()
    builder.build.return_value = snapshot
    provider = SnapshotProvider(snapshot_store, ttl_sec=3600, clock=clock)
    assert provider.get() is None

    result = update_snapshot(builder, snapshot_store, provider, block=300)

    builder.build.assert_called_once_with(300)
    assert result.tree.verify(ALICE)
    assert snapshot_store.latest() == snapshot
    assert provider.get() == snapshot


def test_failed_update_leaves_previous_snapshot(published_store, sample_snapshot):
    builder = MagicMock()
    builder.build.side_effect = OwnershipLookupFailed("partial", failed_token_ids=[3])
    with pytest.raises(OwnershipLookupFailed):
        update_snapshot(builder, published_store)
    assert published_store.latest() == sample_snapshot
    assert len(published_store.history()) == 1


def test_store_without_schema_raises_store_error(tmp_path, clock):
    store = SnapshotStore(SQLiteSnapshotBackend(tmp_path / "no-schema.db"))
    with pytest.raises(SnapshotStoreError, match="no such table"):
        store.latest()
    with pytest.raises(SnapshotStoreError):
        SnapshotProvider(store, clock=clock).require()


def test_corrupt_row_raises_store_error(published_store, tmp_path):
    conn = sqlite3.connect(str(tmp_path / "seeds.db"))
    conn.execute("UPDATE snapshots SET snapshot_json = '{not json'")
    conn.commit()
    conn.close()
    with pytest.raises(SnapshotStoreError, match="corrupt"):
        published_store.latest()
