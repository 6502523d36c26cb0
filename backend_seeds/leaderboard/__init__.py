"""Leaderboard scoring and ranking over blessing events."""
