"""
Tests for environment-driven settings and env helpers.
"""

from __future__ import annotations

import pytest

from backend_seeds.config.env import (
    BASE_RPC_URL,
    BASE_SEPOLIA_RPC_URL,
    DEFAULT_FIRSTWORKS_ADDRESS,
    get_l2_rpc_url,
    mask_rpc_url,
)
from backend_seeds.config.settings import load_settings
from backend_seeds.core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "BLESSINGS_PER_NFT",
        "SNAPSHOT_CACHE_TTL_SEC",
        "SNAPSHOT_HISTORY_KEEP",
        "FIRSTWORKS_CONTRACT_ADDRESS",
        "L2_RPC_URL",
        "L2_SEEDS_CONTRACT",
        "NETWORK",
        "OWNERSHIP_SOURCE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings.blessings_per_nft == 1
    assert settings.snapshot_history_keep == 5
    assert settings.snapshot_cache_ttl_sec == 300.0
    assert settings.avg_time_to_winner_sec == 7 * 24 * 60 * 60
    assert settings.firstworks_address == DEFAULT_FIRSTWORKS_ADDRESS
    assert settings.ownership_source == "auto"


def test_overrides(monkeypatch):
    monkeypatch.setenv("BLESSINGS_PER_NFT", "2")
    monkeypatch.setenv("SNAPSHOT_CACHE_TTL_SEC", "30")
    monkeypatch.setenv("L2_SEEDS_CONTRACT", "0x" + "5e" * 20)
    monkeypatch.setenv("OWNERSHIP_SOURCE", " RPC ")
    settings = load_settings()
    assert settings.blessings_per_nft == 2
    assert settings.snapshot_cache_ttl_sec == 30.0
    assert settings.seeds_contract_address == "0x" + "5e" * 20
    assert settings.ownership_source == "rpc"


@pytest.mark.parametrize(
    "name,value",
    [
        ("BLESSINGS_PER_NFT", "abc"),
        ("BLESSINGS_PER_NFT", "0"),
        ("SNAPSHOT_CACHE_TTL_SEC", "-1"),
        ("OWNERSHIP_SOURCE", "opensea"),
    ],
)
def test_invalid_values_raise_config_error(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError):
        load_settings()


def test_l2_rpc_url_follows_network(monkeypatch):
    assert get_l2_rpc_url() == BASE_SEPOLIA_RPC_URL
    monkeypatch.setenv("NETWORK", "base")
    assert get_l2_rpc_url() == BASE_RPC_URL
    monkeypatch.setenv("L2_RPC_URL", "https://custom.example")
    assert get_l2_rpc_url() == "https://custom.example"


def test_mask_rpc_url():
    assert mask_rpc_url("https://eth-mainnet.g.alchemy.com/v2/abcdefghijklmnop") == (
        "https://eth-mainnet.g.alchemy.com/v2/abcdef***"
    )
    assert mask_rpc_url("https://mainnet.base.org") == "https://mainnet.base.org"
