"""ABI call-data helpers shared by the contract adapters."""

from __future__ import annotations

from typing import Any, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from backend_seeds.core.exceptions import AbiDecodeError


def selector(signature: str) -> bytes:
    """4-byte function selector, e.g. selector("ownerOf(uint256)")."""
    return bytes(Web3.keccak(text=signature)[:4])


def encode_call(signature: str, arg_types: Sequence[str] = (), args: Sequence[Any] = ()) -> bytes:
    return selector(signature) + (encode(list(arg_types), list(args)) if arg_types else b"")


def decode_values(types: Sequence[str], data: bytes) -> tuple[Any, ...]:
    """
    Decode return data as types.

    Raises:
        AbiDecodeError: data is empty or does not match types. An eth_call to an
            address without the function returns empty data rather than reverting.
    """
    try:
        return tuple(decode(list(types), data))
    except (DecodingError, ValueError, TypeError) as e:
        raise AbiDecodeError(
            f"cannot decode {len(data)} bytes as ({','.join(types)}): {e}",
            types=list(types),
        ) from e


def decode_single(type_str: str, data: bytes) -> Any:
    (value,) = decode_values([type_str], data)
    return value
