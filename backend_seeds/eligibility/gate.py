"""
Eligibility gate: how many blessings a wallet has left in the current UTC day.

The local per-wallet state is a cache. When a period rolls over (or a wallet
is first seen) usage is re-read from the authoritative on-chain counter if one
is configured, so quota consumed through another channel is never regained.
A failed authoritative read makes the result indeterminate (ineligible), never
"zero used".

Only holders are cached, and entries from past periods are evicted when the
UTC day rolls over. Updates for one wallet are serialized by a per-wallet
lock that lives only while some caller holds it; different wallets never
contend.
"""

from __future__ import annotations

import random
import string
import threading
import weakref
from dataclasses import replace
from datetime import datetime
from typing import Any

from web3 import Web3

from backend_seeds.chain.seeds_contract import UsageCounter
from backend_seeds.core.clock import DAY, Clock, to_iso, utc_midnight, utc_now
from backend_seeds.core.exceptions import (
    RateLimitIndeterminate,
    SeedsError,
    SnapshotUnavailable,
    StaleAuthoritativeRead,
)
from backend_seeds.eligibility.ledger import BlessingLedger
from backend_seeds.eligibility.models import (
    CODE_INVALID_ADDRESS,
    CODE_NO_NFTS,
    CODE_QUOTA_EXHAUSTED,
    REASON_INVALID_ADDRESS,
    REASON_NO_NFTS,
    REASON_QUOTA_EXHAUSTED,
    REASON_QUOTA_UNVERIFIED,
    BlessingRecord,
    EligibilityResult,
    UserBlessingData,
)
from backend_seeds.seeds_logging import get_logger
from backend_seeds.snapshots.provider import SnapshotProvider

logger = get_logger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _blessing_id(now_ms: int) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"blessing_{now_ms}_{suffix}"


class _WalletLock:
    """threading.Lock wrapper that can be held in a WeakValueDictionary."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def __enter__(self) -> "_WalletLock":
        self._lock.acquire()
        return self

    def __exit__(self, *exc: Any) -> None:
        self._lock.release()


class EligibilityGate:
    def __init__(
        self,
        provider: SnapshotProvider,
        *,
        blessings_per_nft: int = 1,
        usage_counter: UsageCounter | None = None,
        ledger: BlessingLedger | None = None,
        clock: Clock = utc_now,
    ) -> None:
        if blessings_per_nft < 1:
            raise ValueError("blessings_per_nft must be at least 1")
        self._provider = provider
        self._blessings_per_nft = blessings_per_nft
        self._usage_counter = usage_counter
        self.ledger = ledger or BlessingLedger()
        self._clock = clock
        self._data: dict[str, UserBlessingData] = {}
        self._locks: weakref.WeakValueDictionary[str, _WalletLock] = weakref.WeakValueDictionary()
        # Guards _data membership and _locks; per-wallet state is guarded by the wallet lock.
        self._guard = threading.Lock()
        self._period_start: datetime | None = None

    def _lock_for(self, wallet: str) -> _WalletLock:
        with self._guard:
            lock = self._locks.get(wallet)
            if lock is None:
                lock = _WalletLock()
                self._locks[wallet] = lock
            return lock

    def _evict_expired(self, now: datetime) -> None:
        """Drop entries from finished periods once per UTC day."""
        start = utc_midnight(now)
        with self._guard:
            if self._period_start == start:
                return
            self._period_start = start
            expired = [w for w, d in self._data.items() if d.is_expired(now)]
            for wallet in expired:
                del self._data[wallet]
        if expired:
            logger.debug("eligibility_cache_evicted", evicted=len(expired), period_start=to_iso(start))

    def _cached(self, wallet: str) -> UserBlessingData | None:
        with self._guard:
            return self._data.get(wallet)

    def _cache(self, wallet: str, data: UserBlessingData | None) -> None:
        with self._guard:
            if data is None:
                self._data.pop(wallet, None)
            else:
                self._data[wallet] = data

    def _nft_count(self, wallet: str) -> int:
        """Raises SnapshotUnavailable when nothing has been published, SeedsError when the store fails."""
        return self._provider.require().nft_count(wallet)

    def _authoritative_used(self, wallet: str) -> int:
        """Usage from the on-chain counter, or 0 when no counter is configured."""
        if self._usage_counter is None:
            return 0
        return int(self._usage_counter.get_user_daily_blessing_count(wallet))

    def _resolve_locked(self, wallet: str, nft_count: int) -> UserBlessingData:
        """
        Current period data for wallet; caller holds the wallet lock.

        Raises:
            StaleAuthoritativeRead: period needs a reset and the counter read failed.
        """
        now = self._clock()
        self._evict_expired(now)
        max_blessings = nft_count * self._blessings_per_nft
        data = self._cached(wallet)

        if max_blessings == 0:
            # Nothing to count against; the counter is not consulted and nothing is cached.
            self._cache(wallet, None)
            return self._fallback(wallet, 0, used_all=False)

        if data is None or data.is_expired(now):
            used = self._authoritative_used(wallet)
            start = utc_midnight(now)
            data = UserBlessingData(
                wallet_address=wallet,
                nft_count=nft_count,
                max_blessings=max_blessings,
                used_blessings=min(max(0, used), max_blessings),
                period_start=start,
                period_end=start + DAY,
            )
            self._cache(wallet, data)
            logger.debug(
                "eligibility_period_initialized",
                wallet_id=wallet,
                nft_count=nft_count,
                used_blessings=data.used_blessings,
                period_end=to_iso(data.period_end),
            )
            return data

        # Snapshot may have changed since the period began.
        data.nft_count = nft_count
        data.max_blessings = max_blessings
        data.used_blessings = min(data.used_blessings, max_blessings)
        return data

    def _fallback(self, wallet: str, nft_count: int, used_all: bool) -> UserBlessingData:
        start = utc_midnight(self._clock())
        max_blessings = nft_count * self._blessings_per_nft
        return UserBlessingData(
            wallet_address=wallet,
            nft_count=nft_count,
            max_blessings=max_blessings,
            used_blessings=max_blessings if used_all else 0,
            period_start=start,
            period_end=start + DAY,
        )

    def _evaluate(self, wallet: str) -> tuple[UserBlessingData, str | None, str | None]:
        """(data, reason, reason_code); degraded results are never cached."""
        with self._lock_for(wallet):
            try:
                nft_count = self._nft_count(wallet)
            except SeedsError as e:
                logger.warning("eligibility_snapshot_unavailable", wallet_id=wallet, code=e.code, error=str(e))
                return self._fallback(wallet, 0, used_all=False), REASON_NO_NFTS, SnapshotUnavailable.code
            try:
                data = self._resolve_locked(wallet, nft_count)
            except StaleAuthoritativeRead as e:
                logger.warning(
                    "eligibility_indeterminate",
                    wallet_id=wallet,
                    nft_count=nft_count,
                    error=str(e),
                )
                return (
                    self._fallback(wallet, nft_count, used_all=True),
                    REASON_QUOTA_UNVERIFIED,
                    RateLimitIndeterminate.code,
                )
            data = replace(data)
        if data.remaining_blessings > 0:
            return data, None, None
        if data.nft_count == 0:
            return data, REASON_NO_NFTS, CODE_NO_NFTS
        return data, REASON_QUOTA_EXHAUSTED, CODE_QUOTA_EXHAUSTED

    def can_bless(self, wallet: str) -> EligibilityResult:
        """Eligibility for wallet right now. Never raises for domain failures."""
        address = (wallet or "").strip().lower()
        if not Web3.is_address(address):
            period_end = to_iso(utc_midnight(self._clock()) + DAY)
            return EligibilityResult(
                eligible=False,
                nft_count=0,
                max_blessings=0,
                used_blessings=0,
                remaining_blessings=0,
                period_end=period_end,
                reason=REASON_INVALID_ADDRESS,
                reason_code=CODE_INVALID_ADDRESS,
            )
        data, reason, reason_code = self._evaluate(address)
        return EligibilityResult(
            eligible=reason is None,
            nft_count=data.nft_count,
            max_blessings=data.max_blessings,
            used_blessings=data.used_blessings,
            remaining_blessings=data.remaining_blessings,
            period_end=to_iso(data.period_end),
            reason=reason,
            reason_code=reason_code,
        )

    def get_blessing_stats(self, wallet: str) -> dict[str, Any]:
        """Quota state for wallet: nft/max/used/remaining and period bounds."""
        address = (wallet or "").strip().lower()
        if not Web3.is_address(address):
            raise ValueError(f"invalid wallet address: {wallet!r}")
        data, _, reason_code = self._evaluate(address)
        stats = data.to_dict()
        del stats["walletAddress"]
        if reason_code in (SnapshotUnavailable.code, RateLimitIndeterminate.code):
            stats["reasonCode"] = reason_code
        return stats

    def record_confirmed_blessing(
        self, wallet: str, seed_id: int | str, tx_hash: str | None = None
    ) -> BlessingRecord:
        """
        Count a blessing the submission collaborator confirmed on-chain.

        Usage never exceeds max_blessings; an over-quota confirmation is logged
        and recorded in the ledger but does not push the counter past the cap.

        Raises:
            SnapshotUnavailable: no snapshot published.
            SnapshotStoreError: the snapshot store could not be read.
            StaleAuthoritativeRead: the period rolled over and the counter read failed.
        """
        address = (wallet or "").strip().lower()
        if not Web3.is_address(address):
            raise ValueError(f"invalid wallet address: {wallet!r}")
        with self._lock_for(address):
            data = self._resolve_locked(address, self._nft_count(address))
            if data.used_blessings >= data.max_blessings:
                logger.warning(
                    "blessing_confirmed_over_quota",
                    wallet_id=address,
                    seed_id=str(seed_id),
                    max_blessings=data.max_blessings,
                )
            else:
                data.used_blessings += 1
            nft_count = data.nft_count
            remaining = data.remaining_blessings

        now = self._clock()
        record = BlessingRecord(
            id=_blessing_id(int(now.timestamp() * 1000)),
            wallet_address=address,
            target_id=str(seed_id),
            timestamp=now,
            nft_count=nft_count,
            tx_hash=tx_hash,
        )
        self.ledger.append(record)
        logger.info(
            "blessing_recorded",
            wallet_id=address,
            seed_id=str(seed_id),
            remaining_blessings=remaining,
            tx_hash=tx_hash,
        )
        return record
