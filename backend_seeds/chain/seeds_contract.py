"""
TheSeeds contract reads: authoritative usage counter, seeds, blessing events.

The contract itself (seed storage, winner selection, roles) is a trusted black
box; this module only reads from it.
"""

from __future__ import annotations

from typing import Protocol

from backend_seeds.chain.abi import decode_single, encode_call
from backend_seeds.chain.models import (
    BLESSING_SUBMITTED_TOPIC,
    BlessingLog,
    SeedInfo,
    normalize_address,
)
from backend_seeds.chain.rpc import EthRpcClient
from backend_seeds.core.exceptions import AbiDecodeError, RpcError, StaleAuthoritativeRead
from backend_seeds.leaderboard.models import BlessingEvent
from backend_seeds.seeds_logging import get_logger

logger = get_logger(__name__)


class UsageCounter(Protocol):
    """Per-wallet, per-UTC-day count of confirmed blessings (ground truth)."""

    def get_user_daily_blessing_count(self, wallet: str) -> int: ...


class SeedsContract:
    """Read adapter for TheSeeds on Base / Base Sepolia."""

    def __init__(self, rpc: EthRpcClient, address: str) -> None:
        self._rpc = rpc
        self.address = normalize_address(address)

    def get_user_daily_blessing_count(self, wallet: str) -> int:
        """
        Confirmed blessings for wallet in the current UTC day.

        Raises:
            StaleAuthoritativeRead: if the counter cannot be read or its return
                data does not decode (e.g. empty `0x` from a wrong address).
        """
        wallet = normalize_address(wallet)
        try:
            data = self._rpc.eth_call(
                self.address,
                encode_call("getUserDailyBlessingCount(address)", ["address"], [wallet]),
            )
            return int(decode_single("uint256", data))
        except (RpcError, ValueError) as e:
            logger.warning(
                "usage_counter_read_failed",
                wallet_id=wallet,
                error=str(e),
            )
            raise StaleAuthoritativeRead(
                "daily blessing counter unavailable",
                wallet=wallet,
                cause=getattr(e, "code", type(e).__name__),
            ) from e

    def get_seed(self, seed_id: int) -> SeedInfo:
        """Raises RpcError (AbiDecodeError for malformed return data)."""
        data = self._rpc.eth_call(
            self.address, encode_call("getSeed(uint256)", ["uint256"], [seed_id])
        )
        return SeedInfo.from_return_data(data)

    def seed_count(self) -> int:
        data = self._rpc.eth_call(self.address, encode_call("seedCount()"))
        return int(decode_single("uint256", data))

    def blessing_logs(self, from_block: int, to_block: int) -> list[BlessingLog]:
        """Decode BlessingSubmitted logs in [from_block, to_block]; malformed logs are skipped."""
        raw = self._rpc.get_logs(self.address, [BLESSING_SUBMITTED_TOPIC], from_block, to_block)
        logs: list[BlessingLog] = []
        for item in raw:
            try:
                logs.append(BlessingLog.from_rpc_log(item))
            except (KeyError, TypeError, ValueError, AbiDecodeError) as e:
                logger.debug("blessing_log_skipped", error=str(e))
        return logs


class ChainBlessingEventSource:
    """
    Blessing event log sourced from BlessingSubmitted events.

    Each event is enriched with the seed's creation time and winner flag; seeds
    are read once per list_events() call.
    """

    def __init__(
        self,
        contract: SeedsContract,
        rpc: EthRpcClient,
        *,
        from_block: int = 0,
        chunk_size: int = 5000,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._contract = contract
        self._rpc = rpc
        self._from_block = from_block
        self._chunk_size = chunk_size

    def _scan(self) -> list[BlessingLog]:
        head = self._rpc.block_number("latest")
        logs: list[BlessingLog] = []
        start = self._from_block
        while start <= head:
            end = min(start + self._chunk_size - 1, head)
            logs.extend(self._contract.blessing_logs(start, end))
            start = end + 1
        return logs

    def list_events(self) -> list[BlessingEvent]:
        """All blessing events ordered by timestamp (then block position)."""
        logs = sorted(self._scan(), key=lambda b: (b.timestamp, b.block_number, b.log_index))
        seeds: dict[int, SeedInfo] = {}
        events: list[BlessingEvent] = []
        for log in logs:
            if log.seed_id not in seeds:
                seeds[log.seed_id] = self._contract.get_seed(log.seed_id)
            seed = seeds[log.seed_id]
            events.append(
                BlessingEvent(
                    seed_id=log.seed_id,
                    blesser=log.blesser,
                    timestamp=log.timestamp,
                    seed_created_at=seed.created_at,
                    was_winner=seed.is_winner,
                )
            )
        logger.info("blessing_events_loaded", event_count=len(events), seed_count=len(seeds))
        return events
