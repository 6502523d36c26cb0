"""
Merkle commitment over a Snapshot for on-chain ownership verification.

Leaf:  keccak256(keccak256(abi.encode(address owner, uint256[] tokenIds)))
       with tokenIds sorted ascending (OpenZeppelin StandardMerkleTree leaf encoding).
Pair:  keccak256(min(a, b) ++ max(a, b)), byte-wise order (OpenZeppelin MerkleProof
       commutative hashing), so the verifier never needs to know left from right.
Odd:   an unpaired node is promoted to the next level unchanged, never duplicated.

Leaves are assigned in address order, so the root depends only on the holder set.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from eth_abi import encode
from web3 import Web3

from backend_seeds.core.exceptions import ProofNotFound, TreeConstructionFailed
from backend_seeds.seeds_logging import get_logger
from backend_seeds.snapshots.models import Snapshot

logger = get_logger(__name__)


def _to_hex(value: bytes) -> str:
    return "0x" + value.hex()


def _from_hex(value: str) -> bytes:
    raw = value[2:] if value.startswith("0x") else value
    data = bytes.fromhex(raw)
    if len(data) != 32:
        raise ValueError(f"expected 32-byte hash, got {len(data)} bytes")
    return data


def leaf_hash(address: str, token_ids: Iterable[int]) -> bytes:
    """Leaf binding an owner to its exact token-ID set."""
    encoded = encode(
        ["address", "uint256[]"],
        [Web3.to_checksum_address(address.lower()), sorted(int(t) for t in token_ids)],
    )
    inner = bytes(Web3.keccak(encoded))
    return bytes(Web3.keccak(inner))


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Commutative parent hash."""
    lo, hi = (a, b) if a <= b else (b, a)
    return bytes(Web3.keccak(lo + hi))


def build_levels(leaves: Sequence[bytes]) -> list[list[bytes]]:
    """All tree levels, leaves first, root level last."""
    if not leaves:
        raise TreeConstructionFailed("cannot build a Merkle tree from an empty leaf set")
    levels = [list(leaves)]
    current = levels[0]
    while len(current) > 1:
        nxt = [hash_pair(current[i], current[i + 1]) for i in range(0, len(current) - 1, 2)]
        if len(current) % 2 == 1:
            nxt.append(current[-1])
        levels.append(nxt)
        current = nxt
    return levels


def proof_for_index(levels: Sequence[Sequence[bytes]], index: int) -> list[bytes]:
    """Sibling hashes from leaf to root; a promoted node contributes nothing at that level."""
    proof: list[bytes] = []
    for level in levels[:-1]:
        sibling = index ^ 1
        if sibling < len(level):
            proof.append(level[sibling])
        index //= 2
    return proof


def compute_root(leaf: bytes, proof: Iterable[bytes]) -> bytes:
    computed = leaf
    for element in proof:
        computed = hash_pair(computed, element)
    return computed


def verify_proof(proof: Sequence[str], root: str, leaf: str) -> bool:
    """Recompute the root from a hex leaf and hex proof; compare to the hex root."""
    try:
        computed = compute_root(_from_hex(leaf), (_from_hex(p) for p in proof))
        return computed == _from_hex(root)
    except ValueError:
        return False


@dataclass(frozen=True)
class MerkleTree:
    """Root, per-holder leaves and proofs (hex strings keyed by lowercase address)."""

    root: str
    leaves: Mapping[str, str]
    proofs: Mapping[str, tuple[str, ...]]
    block_number: int | None = None

    def proof_for(self, address: str) -> list[str]:
        """Proof for address; raise ProofNotFound if the address holds nothing in the snapshot."""
        key = (address or "").strip().lower()
        if key not in self.proofs:
            raise ProofNotFound("address has no tokens in the snapshot", address=key)
        return list(self.proofs[key])

    def leaf_for(self, address: str) -> str:
        key = (address or "").strip().lower()
        if key not in self.leaves:
            raise ProofNotFound("address has no tokens in the snapshot", address=key)
        return self.leaves[key]

    def verify(self, address: str) -> bool:
        return verify_proof(self.proof_for(address), self.root, self.leaf_for(address))

    def self_check(self) -> None:
        """Verify every (leaf, proof) pair reproduces the root."""
        bad = [addr for addr in self.leaves if not verify_proof(self.proofs.get(addr, ()), self.root, self.leaves[addr])]
        if bad:
            raise TreeConstructionFailed(
                f"{len(bad)} proofs do not reproduce the root", root=self.root, sample=bad[:3]
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": self.root,
            "leaves": dict(self.leaves),
            "proofs": {addr: list(p) for addr, p in self.proofs.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], block_number: int | None = None) -> "MerkleTree":
        return cls(
            root=str(data["root"]),
            leaves={str(k).lower(): str(v) for k, v in data["leaves"].items()},
            proofs={str(k).lower(): tuple(str(x) for x in v) for k, v in data["proofs"].items()},
            block_number=block_number,
        )


def build_merkle_tree(snapshot: Snapshot, *, self_check: bool = True) -> MerkleTree:
    """
    Derive the MerkleTree for a snapshot.

    Raises:
        TreeConstructionFailed: snapshot has no holders, or the self-check fails.
    """
    if not snapshot.holders:
        raise TreeConstructionFailed(
            "snapshot has no holders", block_number=snapshot.block_number
        )
    holders = sorted(snapshot.holders, key=lambda h: h.address)
    leaves = [leaf_hash(h.address, h.token_ids) for h in holders]
    levels = build_levels(leaves)
    root = levels[-1][0]

    tree = MerkleTree(
        root=_to_hex(root),
        leaves={h.address: _to_hex(leaf) for h, leaf in zip(holders, leaves)},
        proofs={
            h.address: tuple(_to_hex(p) for p in proof_for_index(levels, i))
            for i, h in enumerate(holders)
        },
        block_number=snapshot.block_number,
    )
    if self_check:
        tree.self_check()
    logger.info(
        "merkle_tree_built",
        root=tree.root,
        leaf_count=len(leaves),
        depth=len(levels) - 1,
        block_number=snapshot.block_number,
    )
    return tree
