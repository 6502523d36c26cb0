"""
Snapshot builder: enumerate a collection's holders at one block height.

All owner lookups are made at the same block so the snapshot is a consistent
point in time. Any failed lookup aborts the build (OwnershipLookupFailed); a
partial snapshot would disenfranchise the missing holders downstream.
"""

from __future__ import annotations

from backend_seeds.chain.collection import OwnershipSource
from backend_seeds.core.clock import Clock, to_iso, utc_now
from backend_seeds.core.exceptions import OwnershipLookupFailed
from backend_seeds.seeds_logging import get_logger, short_address
from backend_seeds.snapshots.models import Snapshot

logger = get_logger(__name__)


class SnapshotBuilder:
    """Builds immutable Snapshots from an OwnershipSource."""

    def __init__(self, source: OwnershipSource, *, clock: Clock = utc_now) -> None:
        self._source = source
        self._clock = clock

    def build(self, block: int | str | None = None) -> Snapshot:
        """
        Build a snapshot at block (default: latest finalized).

        Raises:
            OwnershipLookupFailed: enumeration failed or produced an inconsistent result.
            RpcError: block height or total supply could not be resolved.
        """
        block_number = self._source.resolve_block(block)
        logger.info(
            "snapshot_build_started",
            contract=self._source.address,
            block_number=block_number,
        )
        token_ids = self._source.token_ids(block_number)
        owners = self._source.owners(token_ids, block_number)

        missing = sorted(set(token_ids) - set(owners))
        if missing:
            raise OwnershipLookupFailed(
                f"{len(missing)} tokens have no resolved owner",
                failed_token_ids=missing,
                block_number=block_number,
            )

        snapshot = Snapshot.from_owners(
            self._source.address,
            owners,
            total_supply=len(token_ids),
            block_number=block_number,
            timestamp=to_iso(self._clock()),
            contract_name=self._source.name(),
        )
        try:
            snapshot.validate()
        except ValueError as e:
            raise OwnershipLookupFailed(f"snapshot failed validation: {e}", block_number=block_number) from e

        top = snapshot.holders[0] if snapshot.holders else None
        logger.info(
            "snapshot_build_completed",
            contract=snapshot.contract_address,
            block_number=block_number,
            total_supply=snapshot.total_supply,
            total_holders=snapshot.total_holders,
            top_holder=short_address(top.address) if top else None,
            top_holder_balance=top.balance if top else 0,
        )
        return snapshot
