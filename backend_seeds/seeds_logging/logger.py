"""
Structured logging for snapshot, eligibility and leaderboard events.

Each record carries timestamp, level, logger, event_type and whatever keys the
caller passes. Wallet addresses under ``wallet_id`` are truncated on output.

Records go to stderr so CLI commands can print JSON results on stdout.
LOG_LEVEL (default INFO) and LOG_FORMAT (json | console, default json) are read
at import. Uses only stdlib logging and structlog; no backend_seeds imports.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

WALLET_KEYS = ("wallet_id", "wallet")


def short_address(address: str | None) -> str:
    """Truncate a wallet address for log output (0x1234abcd...)."""
    if not address:
        return ""
    if address.endswith("..."):
        return address
    return address[:10] + "..."


def _timestamp_utc(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def _truncate_wallets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in WALLET_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = short_address(value)
    return event_dict


def configure_structlog(level: str | None = None, fmt: str | None = None) -> None:
    """(Re)configure structlog; defaults come from LOG_LEVEL / LOG_FORMAT."""
    level_value = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    renderer: Any
    if (fmt or LOG_FORMAT) == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _timestamp_utc,
            _truncate_wallets,
            _event_type,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Logger bound to the module name.

        logger = get_logger(__name__)
        logger.info("snapshot_published", snapshot_id=3, block_number=19_000_000)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_wallet(wallet_id: str) -> structlog.BoundLogger:
    """Logger with wallet_id bound to all subsequent calls."""
    return get_logger("backend_seeds").bind(wallet_id=wallet_id)
