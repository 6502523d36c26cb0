"""
Structured logging for the Seeds backend.

JSON logs with timestamp, wallet_id, event_type.
Use get_logger() in all modules for aggregation-friendly output.
"""

from backend_seeds.seeds_logging.logger import bind_wallet, get_logger, short_address

__all__ = ["bind_wallet", "get_logger", "short_address"]
