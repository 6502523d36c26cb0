"""
Leaderboard service: rank participants by score within a timeframe.

Participants are snapshot holders plus every blesser in the event log.
Query path: failures degrade (no snapshot -> zero NFTs; event source down ->
empty board) and are logged, never raised.
"""

from __future__ import annotations

from typing import Any, Sequence

from backend_seeds.config.settings import SeedsSettings
from backend_seeds.core.clock import Clock, utc_now
from backend_seeds.core.exceptions import SeedsError
from backend_seeds.leaderboard.models import (
    BlessingEvent,
    BlessingEventSource,
    LeaderboardEntry,
    Timeframe,
    WalletStats,
)
from backend_seeds.leaderboard.scoring import calculate_score, compute_wallet_stats
from backend_seeds.seeds_logging import get_logger
from backend_seeds.snapshots.models import Snapshot
from backend_seeds.snapshots.provider import SnapshotProvider

logger = get_logger(__name__)

DEFAULT_LIMIT = 100


class LeaderboardService:
    def __init__(
        self,
        provider: SnapshotProvider,
        event_source: BlessingEventSource,
        settings: SeedsSettings | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._provider = provider
        self._events = event_source
        self._settings = settings or SeedsSettings()
        self._clock = clock

    def _snapshot(self) -> Snapshot | None:
        try:
            return self._provider.get()
        except SeedsError as e:
            logger.error("leaderboard_snapshot_unavailable", error=str(e), code=e.code)
            return None

    def _load_events(self) -> list[BlessingEvent] | None:
        try:
            return list(self._events.list_events())
        except SeedsError as e:
            logger.error("leaderboard_events_unavailable", error=str(e), code=e.code)
            return None

    def _stats(
        self,
        address: str,
        snapshot: Snapshot | None,
        events: Sequence[BlessingEvent],
        timeframe: Timeframe,
        now: float,
    ) -> WalletStats:
        return compute_wallet_stats(
            address,
            snapshot.nft_count(address) if snapshot else 0,
            events,
            timeframe,
            now,
            avg_time_to_winner_sec=self._settings.avg_time_to_winner_sec,
            blessings_per_nft=self._settings.blessings_per_nft,
        )

    def _rank_all(
        self, snapshot: Snapshot | None, events: Sequence[BlessingEvent], timeframe: Timeframe, now: float
    ) -> list[LeaderboardEntry]:
        by_wallet: dict[str, list[BlessingEvent]] = {}
        for e in events:
            by_wallet.setdefault(e.blesser.lower(), []).append(e)
        participants = set(by_wallet)
        if snapshot:
            participants.update(h.address for h in snapshot.holders)

        scored: list[tuple[int, int, str, WalletStats]] = []
        for address in participants:
            stats = self._stats(address, snapshot, by_wallet.get(address, []), timeframe, now)
            score = calculate_score(stats, self._settings.avg_time_to_winner_sec)
            if score > 0:
                scored.append((score, stats.first_blessing_at or 0, address, stats))

        # Ties: earliest first blessing in the timeframe, then address.
        scored.sort(key=lambda row: (-row[0], row[1], row[2]))
        return [
            LeaderboardEntry(
                address=address,
                nft_count=stats.nft_count,
                blessing_count=stats.blessing_count,
                winning_blessings=stats.winning_blessings,
                score=score,
                rank=i + 1,
                blessing_efficiency=stats.blessing_efficiency,
                curation_accuracy=stats.curation_accuracy,
                recent_activity=stats.recent_activity,
                avg_early_bird_score=stats.avg_early_bird_score,
            )
            for i, (score, _, address, stats) in enumerate(scored)
        ]

    def get_leaderboard(
        self, limit: int = DEFAULT_LIMIT, timeframe: Timeframe | str = Timeframe.LIFETIME
    ) -> list[LeaderboardEntry]:
        """Top `limit` entries with score > 0, ranked from 1."""
        timeframe = Timeframe.parse(timeframe)
        events = self._load_events()
        if events is None:
            return []
        entries = self._rank_all(self._snapshot(), events, timeframe, self._clock().timestamp())
        logger.info(
            "leaderboard_computed",
            timeframe=timeframe.value,
            ranked=len(entries),
            event_count=len(events),
        )
        return entries[: max(0, limit)]

    def get_user_rank(self, address: str, timeframe: Timeframe | str = Timeframe.LIFETIME) -> dict[str, Any]:
        """Stats, score and rank (None when unranked) for one wallet."""
        timeframe = Timeframe.parse(timeframe)
        address = (address or "").strip().lower()
        now = self._clock().timestamp()
        snapshot = self._snapshot()
        events = self._load_events()
        stats = self._stats(address, snapshot, events or [], timeframe, now)
        score = calculate_score(stats, self._settings.avg_time_to_winner_sec)
        entries = self._rank_all(snapshot, events, timeframe, now) if events is not None else []
        rank = next((e.rank for e in entries if e.address == address), None)
        logger.debug("leaderboard_user_rank", wallet_id=address, score=score, rank=rank)
        return {
            "stats": stats,
            "score": score,
            "rank": rank,
            "total": len(entries),
            "timeframe": timeframe.value,
        }
