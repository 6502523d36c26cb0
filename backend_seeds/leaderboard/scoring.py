"""
Leaderboard scoring: multi-factor engagement score per wallet.

score = (sqrtVolume + efficiency + winningBonus + accuracy) * recencyMultiplier

- sqrtVolume:   sqrt(blessings) * 50; bounds whale advantage.
- efficiency:   min(1, blessings in last 7 days / (nftCount * daysActive)) * 100.
- winningBonus: per winning blessing, 50 * (1 + earlyBird * 2.0).
- accuracy:     winning / total * 150.
- recency:      * 1.3 if any blessing (any timeframe) is within the last 30 days.

Zero blessings in the timeframe scores 0 regardless of NFT count: NFTs are the
prerequisite to bless, never a source of points.
"""

from __future__ import annotations

import math
from typing import Iterable

from backend_seeds.leaderboard.models import TIMEFRAME_SECONDS, BlessingEvent, Timeframe, WalletStats

SECONDS_PER_DAY = 24 * 60 * 60

SQRT_BLESSING_BASE = 50
BLESSING_EFFICIENCY = 100
WINNING_BLESSING_BASE = 50
EARLY_BIRD_MULTIPLIER = 2.0
CURATION_ACCURACY = 150
RECENCY_MULTIPLIER = 1.3

EFFICIENCY_WINDOW_DAYS = 7
RECENCY_WINDOW_SEC = 30 * SECONDS_PER_DAY
DEFAULT_AVG_TIME_TO_WINNER_SEC = 7 * SECONDS_PER_DAY


def early_bird_score(
    blessed_at: float,
    seed_created_at: float,
    avg_time_to_winner_sec: float = DEFAULT_AVG_TIME_TO_WINNER_SEC,
) -> float:
    """Decay in [0, 1]: 1 at seed creation, ~0.135 after one avg_time_to_winner."""
    if avg_time_to_winner_sec <= 0:
        raise ValueError("avg_time_to_winner_sec must be positive")
    delta = max(0.0, float(blessed_at) - float(seed_created_at))
    return min(1.0, max(0.0, math.exp(-2.0 * delta / avg_time_to_winner_sec)))


def in_timeframe(event: BlessingEvent, timeframe: Timeframe, now: float) -> bool:
    window = TIMEFRAME_SECONDS[timeframe]
    return window is None or now - event.timestamp <= window


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_wallet_stats(
    address: str,
    nft_count: int,
    events: Iterable[BlessingEvent],
    timeframe: Timeframe | str,
    now: float,
    *,
    avg_time_to_winner_sec: float = DEFAULT_AVG_TIME_TO_WINNER_SEC,
    blessings_per_nft: int = 1,
) -> WalletStats:
    """
    Aggregate one wallet's blessing events for a timeframe.

    events may include other wallets' events and events outside the timeframe;
    both are filtered here. The recency flag looks at all of the wallet's events.
    """
    timeframe = Timeframe.parse(timeframe)
    address = address.lower()
    own = [e for e in events if e.blesser.lower() == address]
    blessings = sorted((e for e in own if in_timeframe(e, timeframe, now)), key=lambda e: e.timestamp)

    stats = WalletStats(address=address, nft_count=nft_count, blessings=blessings)
    stats.recent_activity = any(now - e.timestamp <= RECENCY_WINDOW_SEC for e in own)
    if not blessings:
        return stats

    winners = [e for e in blessings if e.was_winner]
    stats.blessing_count = len(blessings)
    stats.winning_blessings = len(winners)
    stats.curation_accuracy = len(winners) / len(blessings)
    stats.first_blessing_at = blessings[0].timestamp

    days_since_first = int((now - blessings[0].timestamp) // SECONDS_PER_DAY)
    days_active = min(EFFICIENCY_WINDOW_DAYS, max(1, days_since_first))
    week_cutoff = now - EFFICIENCY_WINDOW_DAYS * SECONDS_PER_DAY
    recent_count = sum(1 for e in blessings if e.timestamp >= week_cutoff)
    max_possible = nft_count * blessings_per_nft * days_active
    stats.blessing_efficiency = min(1.0, recent_count / max_possible) if max_possible > 0 else 0.0

    if winners:
        avg = sum(
            early_bird_score(e.timestamp, e.seed_created_at, avg_time_to_winner_sec) for e in winners
        ) / len(winners)
        stats.avg_early_bird_score = avg if avg > 0 else None
    return stats


def winning_bonus(
    blessings: Iterable[BlessingEvent],
    avg_time_to_winner_sec: float = DEFAULT_AVG_TIME_TO_WINNER_SEC,
) -> float:
    """Sum over winning blessings; blessings on seeds that have not won contribute nothing."""
    total = 0.0
    for e in blessings:
        if not e.was_winner:
            continue
        bird = early_bird_score(e.timestamp, e.seed_created_at, avg_time_to_winner_sec)
        total += WINNING_BLESSING_BASE * (1 + bird * EARLY_BIRD_MULTIPLIER)
    return total


def calculate_score(
    stats: WalletStats,
    avg_time_to_winner_sec: float = DEFAULT_AVG_TIME_TO_WINNER_SEC,
) -> int:
    """Integer score for stats produced by compute_wallet_stats."""
    if stats.blessing_count == 0:
        return 0
    score = math.sqrt(stats.blessing_count) * SQRT_BLESSING_BASE
    score += stats.blessing_efficiency * BLESSING_EFFICIENCY
    score += winning_bonus(stats.blessings, avg_time_to_winner_sec)
    score += stats.curation_accuracy * CURATION_ACCURACY
    if stats.recent_activity:
        score *= RECENCY_MULTIPLIER
    return round_half_up(score)
