"""
Eligibility data: per-wallet quota state, query results, confirmed blessing records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from backend_seeds.core.clock import to_iso

REASON_NO_NFTS = "No NFTs owned"
REASON_QUOTA_EXHAUSTED = "All blessings used for this period"
REASON_QUOTA_UNVERIFIED = "Blessing quota could not be verified"
REASON_INVALID_ADDRESS = "Invalid wallet address"

# Machine-readable companions of the reasons above
CODE_NO_NFTS = "NO_NFTS"
CODE_QUOTA_EXHAUSTED = "QUOTA_EXHAUSTED"
CODE_INVALID_ADDRESS = "INVALID_ADDRESS"


@dataclass
class UserBlessingData:
    """
    Rate-limit cache entry for one wallet and one UTC day.

    0 <= used_blessings <= max_blessings; max_blessings = nft_count * blessings_per_nft.
    """

    wallet_address: str
    nft_count: int
    max_blessings: int
    used_blessings: int
    period_start: datetime
    period_end: datetime

    @property
    def remaining_blessings(self) -> int:
        return self.max_blessings - self.used_blessings

    def is_expired(self, now: datetime) -> bool:
        return now >= self.period_end

    def to_dict(self) -> dict[str, Any]:
        return {
            "walletAddress": self.wallet_address,
            "nftCount": self.nft_count,
            "maxBlessings": self.max_blessings,
            "usedBlessings": self.used_blessings,
            "remainingBlessings": self.remaining_blessings,
            "periodStart": to_iso(self.period_start),
            "periodEnd": to_iso(self.period_end),
        }


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    nft_count: int
    max_blessings: int
    used_blessings: int
    remaining_blessings: int
    period_end: str
    reason: str | None = None
    reason_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "eligible": self.eligible,
            "nftCount": self.nft_count,
            "maxBlessings": self.max_blessings,
            "usedBlessings": self.used_blessings,
            "remainingBlessings": self.remaining_blessings,
            "periodEnd": self.period_end,
        }
        if self.reason is not None:
            out["reason"] = self.reason
            out["reasonCode"] = self.reason_code
        return out


@dataclass(frozen=True)
class BlessingRecord:
    """A blessing the submission collaborator confirmed on-chain."""

    id: str
    wallet_address: str
    target_id: str
    timestamp: datetime
    nft_count: int
    tx_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "walletAddress": self.wallet_address,
            "targetId": self.target_id,
            "timestamp": to_iso(self.timestamp),
            "nftCount": self.nft_count,
            "txHash": self.tx_hash,
        }
