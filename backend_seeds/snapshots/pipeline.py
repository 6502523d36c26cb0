"""
Snapshot update: build, derive the Merkle tree, self-check, publish.

Nothing is written until every step has succeeded, so a failed or interrupted
update leaves the previously published snapshot in place.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend_seeds.merkle.tree import MerkleTree, build_merkle_tree
from backend_seeds.seeds_logging import get_logger
from backend_seeds.snapshots.builder import SnapshotBuilder
from backend_seeds.snapshots.models import Snapshot
from backend_seeds.snapshots.provider import SnapshotProvider
from backend_seeds.snapshots.store import SnapshotStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class SnapshotUpdate:
    snapshot_id: int
    snapshot: Snapshot
    tree: MerkleTree


def update_snapshot(
    builder: SnapshotBuilder,
    store: SnapshotStore,
    provider: SnapshotProvider | None = None,
    block: int | str | None = None,
) -> SnapshotUpdate:
    """
    Run a full snapshot update.

    Raises:
        OwnershipLookupFailed: enumeration failed; nothing is published.
        TreeConstructionFailed: empty holder set or proof self-check mismatch.
        RpcError: block or supply could not be read.
    """
    try:
        snapshot = builder.build(block)
        tree = build_merkle_tree(snapshot, self_check=True)
    except Exception as e:
        logger.error("snapshot_update_failed", block=block, error=str(e), error_type=type(e).__name__)
        raise
    snapshot_id = store.publish(snapshot, tree)
    if provider is not None:
        provider.invalidate()
    logger.info(
        "snapshot_update_completed",
        snapshot_id=snapshot_id,
        block_number=snapshot.block_number,
        total_holders=snapshot.total_holders,
        merkle_root=tree.root,
    )
    return SnapshotUpdate(snapshot_id=snapshot_id, snapshot=snapshot, tree=tree)
