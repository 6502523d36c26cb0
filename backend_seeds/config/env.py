"""
Environment variable loading for the Seeds backend.

- FIRSTWORKS_RPC_URL: Ethereum mainnet RPC used to enumerate the NFT collection
- FIRSTWORKS_CONTRACT_ADDRESS: ERC-721 collection that gates blessings
- L2_RPC_URL: Base / Base Sepolia RPC for TheSeeds contract
- L2_SEEDS_CONTRACT: deployed TheSeeds contract address
- NETWORK: base | baseSepolia (default: baseSepolia)
- Loads .env.local then .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv

# Project root: config is backend_seeds/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent

DEFAULT_FIRSTWORKS_ADDRESS = "0x8F814c7C75C5E9e0EDe0336F535604B1915C1985"

MAINNET_RPC_URL = "https://eth.llamarpc.com"
BASE_RPC_URL = "https://mainnet.base.org"
BASE_SEPOLIA_RPC_URL = "https://sepolia.base.org"


def load_seeds_env() -> None:
    """Load .env.local and .env from project root. Safe to call multiple times; existing vars win."""
    load_dotenv(_ROOT / ".env.local")
    load_dotenv(_ROOT / ".env")


def _get(name: str) -> str:
    return (os.getenv(name) or "").strip()


def get_network() -> str:
    """Return NETWORK: base | baseSepolia. Default: baseSepolia."""
    load_seeds_env()
    raw = _get("NETWORK").lower()
    if raw in ("base", "base-mainnet", "mainnet"):
        return "base"
    return "baseSepolia"


def get_firstworks_rpc_url() -> str:
    load_seeds_env()
    return _get("FIRSTWORKS_RPC_URL") or MAINNET_RPC_URL


def get_firstworks_address() -> str:
    load_seeds_env()
    return _get("FIRSTWORKS_CONTRACT_ADDRESS") or DEFAULT_FIRSTWORKS_ADDRESS


def get_l2_rpc_url() -> str:
    """Resolve L2 RPC URL. Order: L2_RPC_URL > public endpoint for NETWORK."""
    load_seeds_env()
    url = _get("L2_RPC_URL")
    if url:
        return url
    return BASE_RPC_URL if get_network() == "base" else BASE_SEPOLIA_RPC_URL


def get_seeds_contract_address() -> str | None:
    """Return L2_SEEDS_CONTRACT, or None when the seeds contract is not configured."""
    load_seeds_env()
    return _get("L2_SEEDS_CONTRACT") or None


def mask_rpc_url(url: str) -> str:
    """Hide the trailing API key path segment of provider URLs (alchemy/infura style)."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    parts = urlsplit(url)
    head, sep, tail = parts.path.rpartition("/")
    if sep and len(tail) > 10:
        return urlunsplit(parts._replace(path=f"{head}/{tail[:6]}***"))
    return url
