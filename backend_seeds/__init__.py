"""
Seeds backend: NFT-gated blessing eligibility, ownership snapshots with Merkle
commitments, and leaderboard scoring.
"""

__version__ = "0.1.0"
