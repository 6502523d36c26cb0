"""
Tests for EthRpcClient: JSON-RPC over httpx.MockTransport, retry/backoff, revert handling.
"""

from __future__ import annotations

import json

import httpx
import pytest

from backend_seeds.chain.rpc import ContractReverted, EthRpcClient, block_param
from backend_seeds.core.exceptions import RpcError

RPC_URL = "https://rpc.example.test/v2/key"


def _client(handler) -> EthRpcClient:
    return EthRpcClient(
        RPC_URL,
        max_retries=3,
        min_retry_delay_sec=0,
        max_retry_delay_sec=0,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def _result(request: httpx.Request, result) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


def test_block_param():
    assert block_param(None) == "latest"
    assert block_param(255) == "0xff"
    assert block_param("finalized") == "finalized"
    with pytest.raises(ValueError):
        block_param("yesterday")
    with pytest.raises(ValueError):
        block_param(-1)


def test_block_number_latest_and_tag():
    seen = []

    def handler(request):
        body = json.loads(request.content)
        seen.append(body["method"])
        if body["method"] == "eth_blockNumber":
            return _result(request, "0x10")
        assert body["params"] == ["finalized", False]
        return _result(request, {"number": "0x0c"})

    rpc = _client(handler)
    assert rpc.block_number("latest") == 16
    assert rpc.block_number("finalized") == 12
    assert rpc.block_number(7) == 7
    assert seen == ["eth_blockNumber", "eth_getBlockByNumber"]


def test_eth_call_sends_hex_data_and_returns_bytes():
    def handler(request):
        body = json.loads(request.content)
        tx, block = body["params"]
        assert tx == {"to": "0xabc", "data": "0x01ff"}
        assert block == "0x64"
        return _result(request, "0x" + "00" * 31 + "2a")

    rpc = _client(handler)
    out = rpc.eth_call("0xabc", bytes([1, 255]), 100)
    assert int.from_bytes(out, "big") == 42


def test_retries_transient_errors_then_succeeds():
    attempts = {"n": 0}

    def handler(request):
        attempts["n"] += 1
        if attempts["n"] < 3:
            return httpx.Response(503)
        return _result(request, "0x1")

    rpc = _client(handler)
    assert rpc.call("eth_blockNumber") == "0x1"
    assert attempts["n"] == 3


def test_gives_up_after_max_retries():
    attempts = {"n": 0}

    def handler(request):
        attempts["n"] += 1
        body = json.loads(request.content)
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32005, "message": "rate limited"}}
        )

    rpc = _client(handler)
    with pytest.raises(RpcError, match="rate limited"):
        rpc.call("eth_blockNumber")
    assert attempts["n"] == 3


def test_revert_is_not_retried():
    attempts = {"n": 0}

    def handler(request):
        attempts["n"] += 1
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": 3, "message": "execution reverted"}},
        )

    rpc = _client(handler)
    with pytest.raises(ContractReverted):
        rpc.eth_call("0xabc", b"\x00")
    assert attempts["n"] == 1


def test_get_logs_filter():
    def handler(request):
        body = json.loads(request.content)
        (flt,) = body["params"]
        assert flt == {"address": "0xabc", "topics": ["0xt"], "fromBlock": "0x1", "toBlock": "0xa"}
        return _result(request, [{"x": 1}])

    rpc = _client(handler)
    assert rpc.get_logs("0xabc", ["0xt"], 1, 10) == [{"x": 1}]


def test_rejects_empty_url():
    with pytest.raises(ValueError):
        EthRpcClient("  ")


def test_malformed_results_raise_rpc_error():
    def handler(request):
        body = json.loads(request.content)
        if body["method"] == "eth_blockNumber":
            return _result(request, "pending")
        return _result(request, "0xzz")

    rpc = _client(handler)
    with pytest.raises(RpcError, match="non-hex quantity"):
        rpc.block_number("latest")
    with pytest.raises(RpcError, match="malformed hex"):
        rpc.eth_call("0xabc", b"\x00")
