"""
NFT ownership source: ERC-721 reads against the gating collection.

Enumerates token IDs 1..totalSupply and resolves each owner with ownerOf at a
fixed block height. Lookups run in concurrent batches; any single failure
fails the whole enumeration so a snapshot never silently drops a holder.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Protocol

from backend_seeds.chain.abi import decode_single, encode_call
from backend_seeds.chain.models import normalize_address
from backend_seeds.chain.rpc import EthRpcClient
from backend_seeds.core.exceptions import OwnershipLookupFailed, RpcError
from backend_seeds.seeds_logging import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 50


class OwnershipSource(Protocol):
    """Anything that can enumerate a collection at a block height."""

    address: str

    def resolve_block(self, block: int | str | None) -> int: ...

    def total_supply(self, block: int) -> int: ...

    def token_ids(self, block: int) -> list[int]: ...

    def owners(self, token_ids: Iterable[int], block: int) -> dict[int, str]: ...

    def name(self) -> str: ...


class NftCollection:
    """ERC-721 + Enumerable-style supply reads over EthRpcClient."""

    def __init__(
        self,
        rpc: EthRpcClient,
        address: str,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = 8,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._rpc = rpc
        self.address = normalize_address(address)
        self._batch_size = batch_size
        self._max_workers = max_workers

    def resolve_block(self, block: int | str | None) -> int:
        """Default block height is the latest finalized block."""
        return self._rpc.block_number("finalized" if block is None else block)

    def name(self) -> str:
        try:
            return str(decode_single("string", self._rpc.eth_call(self.address, encode_call("name()"))))
        except RpcError as e:
            logger.warning("collection_name_unavailable", contract=self.address, error=str(e))
            return ""

    def symbol(self) -> str:
        data = self._rpc.eth_call(self.address, encode_call("symbol()"))
        return str(decode_single("string", data))

    def total_supply(self, block: int) -> int:
        data = self._rpc.eth_call(self.address, encode_call("totalSupply()"), block)
        return int(decode_single("uint256", data))

    def token_ids(self, block: int) -> list[int]:
        """Token IDs are minted sequentially from 1."""
        return list(range(1, self.total_supply(block) + 1))

    def owner_of(self, token_id: int, block: int) -> str:
        data = self._rpc.eth_call(
            self.address, encode_call("ownerOf(uint256)", ["uint256"], [token_id]), block
        )
        return str(decode_single("address", data)).lower()

    def _lookup(self, token_id: int, block: int) -> tuple[int, str | None, str | None]:
        try:
            return token_id, self.owner_of(token_id, block), None
        except RpcError as e:
            return token_id, None, str(e)

    def owners(self, token_ids: Iterable[int], block: int) -> dict[int, str]:
        """
        Resolve owners for all token_ids at block.

        Raises:
            OwnershipLookupFailed: if any lookup fails after retries; no partial map is returned.
        """
        ids = list(token_ids)
        owners: dict[int, str] = {}
        failed: dict[int, str] = {}
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            for start in range(0, len(ids), self._batch_size):
                batch = ids[start : start + self._batch_size]
                for token_id, owner, error in pool.map(lambda t: self._lookup(t, block), batch):
                    if owner is None:
                        failed[token_id] = error or "unknown error"
                    else:
                        owners[token_id] = owner
                logger.debug(
                    "collection_owner_progress",
                    processed=min(start + self._batch_size, len(ids)),
                    total=len(ids),
                    failed=len(failed),
                )
        if failed:
            logger.error(
                "collection_owner_lookup_failed",
                contract=self.address,
                block_number=block,
                failed_count=len(failed),
                sample_errors=list(failed.values())[:3],
            )
            raise OwnershipLookupFailed(
                f"owner lookup failed for {len(failed)} of {len(ids)} tokens",
                failed_token_ids=list(failed),
                block_number=block,
            )
        return owners
