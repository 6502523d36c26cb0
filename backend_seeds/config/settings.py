"""
Application settings.

Typed tunables for the snapshot pipeline, RPC adapters, eligibility gate and
leaderboard. Values come from environment variables (after .env loading) with
defaults matching production behavior.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from backend_seeds.config.env import (
    get_firstworks_address,
    get_firstworks_rpc_url,
    get_l2_rpc_url,
    get_seeds_contract_address,
    load_seeds_env,
)
from backend_seeds.core.exceptions import ConfigError

SECONDS_PER_DAY = 24 * 60 * 60
OWNERSHIP_SOURCES = ("auto", "rpc", "alchemy")


@dataclass(frozen=True)
class SeedsSettings:
    """Configuration for snapshot, eligibility and leaderboard services."""

    firstworks_rpc_url: str = ""
    firstworks_address: str = ""
    l2_rpc_url: str = ""
    seeds_contract_address: str | None = None

    blessings_per_nft: int = 1
    snapshot_cache_ttl_sec: float = 300.0
    snapshot_history_keep: int = 5
    snapshot_db_path: Path = field(default_factory=lambda: Path("seeds.db"))

    # Expected time from seed creation to winner selection, used by early-bird decay.
    avg_time_to_winner_sec: float = 7 * SECONDS_PER_DAY

    rpc_timeout_sec: float = 30.0
    rpc_max_retries: int = 3
    rpc_min_retry_delay_sec: float = 1.0
    rpc_max_retry_delay_sec: float = 30.0
    owner_lookup_batch_size: int = 50
    # auto: Alchemy NFT API when FIRSTWORKS_RPC_URL is an Alchemy URL, else ownerOf per token.
    ownership_source: str = "auto"

    # First block to scan for BlessingSubmitted logs.
    seeds_deploy_block: int = 0
    log_chunk_size: int = 5000


def _env_number(name: str, default: float, cast: type = float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}", variable=name) from e
    if value < 0:
        raise ConfigError(f"{name} must be non-negative, got {raw!r}", variable=name)
    return value


def load_settings() -> SeedsSettings:
    """Build settings from the current environment (no caching)."""
    load_seeds_env()
    blessings_per_nft = int(_env_number("BLESSINGS_PER_NFT", 1, int))
    if blessings_per_nft < 1:
        raise ConfigError("BLESSINGS_PER_NFT must be at least 1", variable="BLESSINGS_PER_NFT")
    history_keep = int(_env_number("SNAPSHOT_HISTORY_KEEP", 5, int))
    ownership_source = (os.getenv("OWNERSHIP_SOURCE") or "auto").strip().lower()
    if ownership_source not in OWNERSHIP_SOURCES:
        raise ConfigError(
            f"OWNERSHIP_SOURCE must be one of {', '.join(OWNERSHIP_SOURCES)}, got {ownership_source!r}",
            variable="OWNERSHIP_SOURCE",
        )
    if history_keep < 1:
        raise ConfigError("SNAPSHOT_HISTORY_KEEP must be at least 1", variable="SNAPSHOT_HISTORY_KEEP")
    return SeedsSettings(
        firstworks_rpc_url=get_firstworks_rpc_url(),
        firstworks_address=get_firstworks_address(),
        l2_rpc_url=get_l2_rpc_url(),
        seeds_contract_address=get_seeds_contract_address(),
        blessings_per_nft=blessings_per_nft,
        snapshot_cache_ttl_sec=_env_number("SNAPSHOT_CACHE_TTL_SEC", 300.0),
        snapshot_history_keep=history_keep,
        snapshot_db_path=Path((os.getenv("SNAPSHOT_DB_PATH") or "seeds.db").strip() or "seeds.db"),
        avg_time_to_winner_sec=_env_number("AVG_TIME_TO_WINNER_SEC", 7 * SECONDS_PER_DAY),
        rpc_timeout_sec=_env_number("RPC_TIMEOUT_SEC", 30.0),
        rpc_max_retries=max(1, int(_env_number("RPC_MAX_RETRIES", 3, int))),
        rpc_min_retry_delay_sec=_env_number("RPC_MIN_RETRY_DELAY_SEC", 1.0),
        rpc_max_retry_delay_sec=_env_number("RPC_MAX_RETRY_DELAY_SEC", 30.0),
        owner_lookup_batch_size=max(1, int(_env_number("OWNER_LOOKUP_BATCH_SIZE", 50, int))),
        ownership_source=ownership_source,
        seeds_deploy_block=int(_env_number("SEEDS_DEPLOY_BLOCK", 0, int)),
        log_chunk_size=max(1, int(_env_number("LOG_CHUNK_SIZE", 5000, int))),
    )


@lru_cache(maxsize=1)
def get_settings() -> SeedsSettings:
    """Return the process-wide settings, loaded once."""
    return load_settings()
