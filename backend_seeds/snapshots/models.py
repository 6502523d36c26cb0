"""
Snapshot domain model: point-in-time NFT ownership.

A Snapshot is immutable once built. Serialization uses the artifact's camelCase
keys (contractAddress, totalSupply, holderIndex, ...) so stored snapshots stay
readable by other consumers of the same artifact.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class Holder:
    """One owner and the token IDs they held at snapshot time (sorted ascending)."""

    address: str
    token_ids: tuple[int, ...]

    @property
    def balance(self) -> int:
        return len(self.token_ids)

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "balance": self.balance, "tokenIds": list(self.token_ids)}


@dataclass(frozen=True)
class Snapshot:
    """Ownership of one collection at one block."""

    contract_address: str
    total_supply: int
    block_number: int
    timestamp: str
    """ISO 8601 creation time."""
    holders: tuple[Holder, ...]
    contract_name: str = ""
    holder_index: Mapping[str, tuple[int, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index = {h.address: h.token_ids for h in self.holders}
        object.__setattr__(self, "holder_index", MappingProxyType(index))

    @classmethod
    def from_owners(
        cls,
        contract_address: str,
        owners: Mapping[int, str],
        *,
        total_supply: int,
        block_number: int,
        timestamp: str,
        contract_name: str = "",
    ) -> "Snapshot":
        """Group a tokenId -> owner map into holders (balance desc, then address)."""
        grouped: dict[str, list[int]] = {}
        for token_id, owner in owners.items():
            grouped.setdefault(owner.lower(), []).append(int(token_id))
        holders = sorted(
            (Holder(address=addr, token_ids=tuple(sorted(ids))) for addr, ids in grouped.items()),
            key=lambda h: (-h.balance, h.address),
        )
        return cls(
            contract_address=contract_address.lower(),
            total_supply=total_supply,
            block_number=block_number,
            timestamp=timestamp,
            holders=tuple(holders),
            contract_name=contract_name,
        )

    @property
    def total_holders(self) -> int:
        return len(self.holders)

    def nfts_for(self, address: str) -> list[int]:
        """Token IDs owned by address (empty list when absent)."""
        return list(self.holder_index.get((address or "").strip().lower(), ()))

    def nft_count(self, address: str) -> int:
        return len(self.holder_index.get((address or "").strip().lower(), ()))

    def validate(self) -> None:
        """
        Check snapshot invariants; raise ValueError on the first violation.

        - addresses are lowercase and unique
        - every holder has at least one token
        - sum of token counts equals total_supply
        - no token ID appears twice
        """
        seen_addresses: set[str] = set()
        seen_tokens: set[int] = set()
        for holder in self.holders:
            if holder.address != holder.address.lower():
                raise ValueError(f"holder address not normalized: {holder.address}")
            if holder.address in seen_addresses:
                raise ValueError(f"duplicate holder address: {holder.address}")
            if not holder.token_ids:
                raise ValueError(f"holder without tokens: {holder.address}")
            for token_id in holder.token_ids:
                if token_id in seen_tokens:
                    raise ValueError(f"token {token_id} assigned to more than one holder")
                seen_tokens.add(token_id)
            seen_addresses.add(holder.address)
        if len(seen_tokens) != self.total_supply:
            raise ValueError(
                f"holder token count {len(seen_tokens)} does not match totalSupply {self.total_supply}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "contractAddress": self.contract_address,
            "contractName": self.contract_name,
            "totalSupply": self.total_supply,
            "timestamp": self.timestamp,
            "blockNumber": self.block_number,
            "holders": [h.to_dict() for h in self.holders],
            "totalHolders": self.total_holders,
            "holderIndex": {addr: list(ids) for addr, ids in self.holder_index.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        holders = tuple(
            Holder(address=str(h["address"]).lower(), token_ids=tuple(sorted(int(t) for t in h["tokenIds"])))
            for h in data.get("holders") or []
        )
        return cls(
            contract_address=str(data["contractAddress"]).lower(),
            total_supply=int(data["totalSupply"]),
            block_number=int(data["blockNumber"]),
            timestamp=str(data["timestamp"]),
            holders=holders,
            contract_name=str(data.get("contractName") or ""),
        )
