"""
Core utilities: exceptions and the injectable clock.

Shared by the chain adapters, snapshot pipeline, eligibility gate and leaderboard.
"""

from backend_seeds.core.clock import Clock, utc_now
from backend_seeds.core.exceptions import (
    ConfigError,
    OwnershipLookupFailed,
    ProofNotFound,
    RateLimitIndeterminate,
    RpcError,
    SeedsError,
    SnapshotNotFound,
    SnapshotUnavailable,
    StaleAuthoritativeRead,
    TreeConstructionFailed,
)

__all__ = [
    "Clock",
    "utc_now",
    "ConfigError",
    "OwnershipLookupFailed",
    "ProofNotFound",
    "RateLimitIndeterminate",
    "RpcError",
    "SeedsError",
    "SnapshotNotFound",
    "SnapshotUnavailable",
    "StaleAuthoritativeRead",
    "TreeConstructionFailed",
]
