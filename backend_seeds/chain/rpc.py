"""
Ethereum JSON-RPC client: eth_call, eth_blockNumber, eth_getBlockByNumber, eth_getLogs.

Responsibilities:
- POST JSON-RPC bodies over httpx with a per-request timeout.
- Retry transport and RPC errors with exponential backoff, bounded by max_retries.
- Raise RpcError once retries are exhausted; contract reverts are not retried.
"""

from __future__ import annotations

import itertools
import threading
import time
from typing import Any

import httpx

from backend_seeds.config.env import mask_rpc_url
from backend_seeds.core.exceptions import RpcError
from backend_seeds.seeds_logging import get_logger

logger = get_logger(__name__)

BLOCK_TAGS = ("latest", "finalized", "safe", "earliest", "pending")

# JSON-RPC error code for execution reverted (geth / most providers)
EXECUTION_REVERTED_CODE = 3


class ContractReverted(RpcError):
    """eth_call reverted (e.g. ownerOf on a burned token). Never retried."""

    code = "CONTRACT_REVERTED"


def block_param(block: int | str | None) -> str:
    """Encode a block number or tag for JSON-RPC params."""
    if block is None:
        return "latest"
    if isinstance(block, int):
        if block < 0:
            raise ValueError("block number must be non-negative")
        return hex(block)
    if block in BLOCK_TAGS or block.startswith("0x"):
        return block
    raise ValueError(f"invalid block parameter: {block!r}")


def _quantity(value: Any, method: str) -> int:
    """Hex QUANTITY from a JSON-RPC result."""
    try:
        return int(value, 16)
    except (TypeError, ValueError) as e:
        raise RpcError(f"{method} returned a non-hex quantity: {value!r}", method=method) from e


def _is_revert(err: dict[str, Any]) -> bool:
    message = str(err.get("message", "")).lower()
    return err.get("code") == EXECUTION_REVERTED_CODE or "revert" in message


class EthRpcClient:
    """
    Synchronous JSON-RPC client for one Ethereum-compatible endpoint.

    Thread-safe: the underlying httpx.Client is shared across worker threads
    during owner enumeration.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_sec: float = 30.0,
        max_retries: int = 3,
        min_retry_delay_sec: float = 1.0,
        max_retry_delay_sec: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        """
        Args:
            rpc_url: HTTP endpoint (e.g. https://eth-mainnet.g.alchemy.com/v2/KEY).
            timeout_sec: HTTP timeout for each request.
            max_retries: Attempts per call before giving up (>= 1).
            min_retry_delay_sec: Initial delay for exponential backoff.
            max_retry_delay_sec: Cap for backoff delay.
            client: Optional preconfigured httpx.Client (tests pass a MockTransport client).
        """
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._rpc_url = rpc_url.strip().rstrip("/")
        self._max_retries = max_retries
        self._min_retry_delay = min_retry_delay_sec
        self._max_retry_delay = max_retry_delay_sec
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_sec))
        self._ids = itertools.count(1)
        self._id_lock = threading.Lock()

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "EthRpcClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _next_id(self) -> int:
        with self._id_lock:
            return next(self._ids)

    def _post(self, method: str, params: list[Any]) -> Any:
        """Single JSON-RPC round trip; raise on transport, HTTP or RPC error."""
        body = {"jsonrpc": "2.0", "id": self._next_id(), "method": method, "params": params}
        resp = self._client.post(self._rpc_url, json=body)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data and data["error"]:
            err = data["error"]
            if isinstance(err, dict) and _is_revert(err):
                raise ContractReverted(
                    f"execution reverted: {err.get('message', err)}",
                    method=method,
                    rpc_code=err.get("code"),
                )
            message = err.get("message", err) if isinstance(err, dict) else err
            rpc_code = err.get("code") if isinstance(err, dict) else None
            raise RpcError(f"RPC error: {message} (code={rpc_code})", method=method, rpc_code=rpc_code)
        if "result" not in data:
            raise RpcError("RPC returned no result", method=method)
        return data["result"]

    def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Perform a JSON-RPC call with retry; raise RpcError after the last attempt."""
        params = params or []
        delay = self._min_retry_delay
        last_error: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                return self._post(method, params)
            except ContractReverted:
                raise
            except (httpx.HTTPError, RpcError, ValueError) as e:
                last_error = e
                if attempt + 1 >= self._max_retries:
                    break
                logger.warning(
                    "rpc_retry",
                    method=method,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    error=str(e),
                )
                if delay > 0:
                    time.sleep(delay)
                delay = min(delay * 2, self._max_retry_delay)
        logger.error(
            "rpc_give_up",
            method=method,
            rpc_url=mask_rpc_url(self._rpc_url),
            max_retries=self._max_retries,
            error=str(last_error),
        )
        if isinstance(last_error, RpcError):
            raise last_error
        raise RpcError(f"RPC call {method} failed: {last_error}", method=method) from last_error

    def block_number(self, block: int | str = "latest") -> int:
        """Resolve a block tag (latest, finalized, ...) or number to a concrete block number."""
        if isinstance(block, int):
            return block
        if block == "latest":
            return _quantity(self.call("eth_blockNumber"), "eth_blockNumber")
        result = self.call("eth_getBlockByNumber", [block_param(block), False])
        if not isinstance(result, dict) or "number" not in result:
            raise RpcError(f"block {block!r} not available", method="eth_getBlockByNumber")
        return _quantity(result["number"], "eth_getBlockByNumber")

    def eth_call(self, to: str, data: bytes, block: int | str | None = None) -> bytes:
        """Read-only contract call; returns raw ABI-encoded return data."""
        tx = {"to": to, "data": "0x" + data.hex()}
        result = self.call("eth_call", [tx, block_param(block)])
        if not isinstance(result, str):
            raise RpcError("eth_call returned non-hex result", method="eth_call")
        try:
            return bytes.fromhex(result[2:] if result.startswith("0x") else result)
        except ValueError as e:
            raise RpcError(f"eth_call returned malformed hex: {result[:20]!r}", method="eth_call") from e

    def get_logs(
        self,
        address: str,
        topics: list[str | None],
        from_block: int,
        to_block: int | str,
    ) -> list[dict[str, Any]]:
        """eth_getLogs for one contract; returns raw log objects (decoded at the model boundary)."""
        flt = {
            "address": address,
            "topics": topics,
            "fromBlock": block_param(from_block),
            "toBlock": block_param(to_block),
        }
        result = self.call("eth_getLogs", [flt])
        return result if isinstance(result, list) else []
