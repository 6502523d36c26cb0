"""Merkle ownership commitments: leaves, proofs and verification."""

from backend_seeds.merkle.tree import (
    MerkleTree,
    build_merkle_tree,
    hash_pair,
    leaf_hash,
    verify_proof,
)

__all__ = ["MerkleTree", "build_merkle_tree", "hash_pair", "leaf_hash", "verify_proof"]
