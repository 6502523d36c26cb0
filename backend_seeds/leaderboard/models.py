"""
Leaderboard inputs and outputs.

Timestamps are unix seconds, as emitted by the chain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Sequence


class Timeframe(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"

    @classmethod
    def parse(cls, value: "str | Timeframe") -> "Timeframe":
        if isinstance(value, Timeframe):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            raise ValueError(
                f"unknown timeframe {value!r}; expected one of {[t.value for t in cls]}"
            ) from None


# Window length per timeframe; None means no cutoff.
TIMEFRAME_SECONDS: dict[Timeframe, int | None] = {
    Timeframe.DAILY: 24 * 60 * 60,
    Timeframe.WEEKLY: 7 * 24 * 60 * 60,
    Timeframe.MONTHLY: 30 * 24 * 60 * 60,
    Timeframe.YEARLY: 365 * 24 * 60 * 60,
    Timeframe.LIFETIME: None,
}


@dataclass(frozen=True)
class BlessingEvent:
    """One confirmed blessing, enriched with the blessed seed's creation time and outcome."""

    seed_id: int
    blesser: str
    timestamp: int
    seed_created_at: int
    was_winner: bool


class BlessingEventSource(Protocol):
    def list_events(self) -> Sequence[BlessingEvent]: ...


@dataclass
class WalletStats:
    """Per-wallet aggregates within one timeframe."""

    address: str
    nft_count: int
    blessing_count: int = 0
    winning_blessings: int = 0
    blessing_efficiency: float = 0.0
    curation_accuracy: float = 0.0
    recent_activity: bool = False
    avg_early_bird_score: float | None = None
    first_blessing_at: int | None = None
    blessings: list[BlessingEvent] = field(default_factory=list, repr=False)


@dataclass
class LeaderboardEntry:
    address: str
    nft_count: int
    blessing_count: int
    winning_blessings: int
    score: int
    rank: int
    blessing_efficiency: float
    curation_accuracy: float
    recent_activity: bool
    avg_early_bird_score: float | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "address": self.address,
            "nftCount": self.nft_count,
            "blessingCount": self.blessing_count,
            "winningBlessings": self.winning_blessings,
            "score": self.score,
            "rank": self.rank,
            "blessingEfficiency": self.blessing_efficiency,
            "curationAccuracy": self.curation_accuracy,
            "recentActivity": self.recent_activity,
        }
        if self.avg_early_bird_score is not None:
            out["avgEarlyBirdScore"] = self.avg_early_bird_score
        return out
