"""
Application-level exceptions.

Every domain error carries a stable machine-readable ``code`` so query paths
(eligibility, leaderboard) can turn failures into conservative results with a
reason code instead of raising to the caller.
"""

from __future__ import annotations

from typing import Any


class SeedsError(Exception):
    """Base class for all backend_seeds errors."""

    code = "SEEDS_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ConfigError(SeedsError):
    code = "CONFIG_ERROR"


class RpcError(SeedsError):
    """JSON-RPC transport or protocol failure after retries were exhausted."""

    code = "RPC_ERROR"


class AbiDecodeError(RpcError):
    """Return data could not be ABI-decoded (empty `0x`, wrong shape, bad padding)."""

    code = "ABI_DECODE_ERROR"


class SnapshotUnavailable(SeedsError):
    """No snapshot has ever been published."""

    code = "SNAPSHOT_UNAVAILABLE"


class SnapshotStoreError(SeedsError):
    """The snapshot store could not be opened or queried."""

    code = "SNAPSHOT_STORE_ERROR"


class SnapshotNotFound(SeedsError):
    """A historical snapshot key does not exist (or no rollback target is retained)."""

    code = "SNAPSHOT_NOT_FOUND"


class OwnershipLookupFailed(SeedsError):
    """Owner lookup failed for one or more tokens; the snapshot must not be published."""

    code = "OWNERSHIP_LOOKUP_FAILED"

    def __init__(self, message: str, failed_token_ids: list[int] | None = None, **details: Any) -> None:
        super().__init__(message, **details)
        self.failed_token_ids = sorted(failed_token_ids or [])


class ProofNotFound(SeedsError):
    """Wallet owns no tokens in the snapshot. Callers treat this as '0 NFTs', not a failure."""

    code = "PROOF_NOT_FOUND"


class StaleAuthoritativeRead(SeedsError):
    """The on-chain usage counter could not be read."""

    code = "STALE_AUTHORITATIVE_READ"


class RateLimitIndeterminate(SeedsError):
    """Remaining quota cannot be determined without an authoritative read."""

    code = "RATE_LIMIT_INDETERMINATE"


class TreeConstructionFailed(SeedsError):
    """Empty holder set, or a leaf/proof pair failed to reproduce the root."""

    code = "TREE_CONSTRUCTION_FAILED"
