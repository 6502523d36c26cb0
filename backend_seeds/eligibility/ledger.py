"""
In-memory ledger of confirmed blessings, queryable by wallet and target.
"""

from __future__ import annotations

import threading
from typing import Any

from backend_seeds.eligibility.models import BlessingRecord


class BlessingLedger:
    """Append-only; safe for concurrent appends and reads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[BlessingRecord] = []

    def append(self, record: BlessingRecord) -> None:
        with self._lock:
            self._records.append(record)

    def _all(self) -> list[BlessingRecord]:
        with self._lock:
            return list(self._records)

    def list(
        self,
        wallet: str | None = None,
        target_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
        sort_order: str = "desc",
    ) -> dict[str, Any]:
        """Filtered, time-sorted, paginated records: {blessings, total, limit, offset}."""
        if sort_order not in ("asc", "desc"):
            raise ValueError("sort_order must be 'asc' or 'desc'")
        records = self._all()
        if wallet:
            wallet = wallet.lower()
            records = [r for r in records if r.wallet_address == wallet]
        if target_id:
            records = [r for r in records if r.target_id == str(target_id)]
        records.sort(key=lambda r: r.timestamp, reverse=sort_order == "desc")

        total = len(records)
        offset = max(0, offset)
        limit = limit or total
        return {
            "blessings": records[offset : offset + limit],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    def for_target(self, target_id: str) -> list[BlessingRecord]:
        return self.list(target_id=target_id)["blessings"]

    def for_wallet(self, wallet: str) -> list[BlessingRecord]:
        return self.list(wallet=wallet)["blessings"]

    def count_for_target(self, target_id: str) -> int:
        return sum(1 for r in self._all() if r.target_id == str(target_id))
