"""
Typed decoding boundary for chain reads.

Every RPC result the core consumes is decoded here into a frozen dataclass, so
nothing above the chain adapters sees raw hex, tuples, or client-library shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from web3 import Web3

from backend_seeds.chain.abi import decode_values

# TheSeeds.getSeed(uint256) return struct
SEED_STRUCT_TYPE = "(uint256,address,string,uint256,uint256,bool,bool,uint256,uint256)"

BLESSING_SUBMITTED_SIGNATURE = "BlessingSubmitted(uint256,address,address,bool,uint256)"
BLESSING_SUBMITTED_TOPIC = "0x" + Web3.keccak(text=BLESSING_SUBMITTED_SIGNATURE).hex().removeprefix("0x")


def normalize_address(address: str) -> str:
    """Validate and lowercase an EVM address; raise ValueError if malformed."""
    raw = (address or "").strip()
    if not Web3.is_address(raw):
        raise ValueError(f"Invalid EVM address: {address!r}")
    return raw.lower()


def _topic_to_address(topic: str) -> str:
    raw = topic[2:] if topic.startswith("0x") else topic
    return "0x" + raw[-40:].lower()


def _hex_to_int(value: str | int) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


@dataclass(frozen=True)
class SeedInfo:
    """On-chain seed record as returned by TheSeeds.getSeed."""

    id: int
    creator: str
    ipfs_hash: str
    blessings: int
    created_at: int
    """Unix timestamp (seconds) when the seed was submitted."""
    is_winner: bool
    is_retracted: bool
    winner_in_round: int
    submitted_in_round: int

    @classmethod
    def from_return_data(cls, data: bytes) -> "SeedInfo":
        """Decode the ABI-encoded getSeed return value; raise AbiDecodeError if malformed."""
        (seed,) = decode_values([SEED_STRUCT_TYPE], data)
        return cls(
            id=int(seed[0]),
            creator=str(seed[1]).lower(),
            ipfs_hash=str(seed[2]),
            blessings=int(seed[3]),
            created_at=int(seed[4]),
            is_winner=bool(seed[5]),
            is_retracted=bool(seed[6]),
            winner_in_round=int(seed[7]),
            submitted_in_round=int(seed[8]),
        )


@dataclass(frozen=True)
class BlessingLog:
    """Decoded BlessingSubmitted event."""

    seed_id: int
    blesser: str
    actor: str
    is_delegated: bool
    timestamp: int
    block_number: int
    log_index: int
    tx_hash: str | None

    @classmethod
    def from_rpc_log(cls, item: dict[str, Any]) -> "BlessingLog":
        """Build from a single eth_getLogs result item; raise KeyError/ValueError/AbiDecodeError if malformed."""
        topics = item["topics"]
        if len(topics) < 4 or topics[0].lower() != BLESSING_SUBMITTED_TOPIC:
            raise ValueError("not a BlessingSubmitted log")
        data = item.get("data") or "0x"
        is_delegated, timestamp = decode_values(["bool", "uint256"], bytes.fromhex(data[2:]))
        return cls(
            seed_id=_hex_to_int(topics[1]),
            blesser=_topic_to_address(topics[2]),
            actor=_topic_to_address(topics[3]),
            is_delegated=bool(is_delegated),
            timestamp=int(timestamp),
            block_number=_hex_to_int(item.get("blockNumber") or 0),
            log_index=_hex_to_int(item.get("logIndex") or 0),
            tx_hash=item.get("transactionHash"),
        )
