"""
Tests for the chain adapters: ABI helpers, typed decoding, NftCollection owner
enumeration, SeedsContract reads and the chain blessing event source.

RPC is mocked: eth_call returns ABI-encoded values built with eth_abi.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from eth_abi import decode, encode

from backend_seeds.chain.abi import decode_single, encode_call, selector
from backend_seeds.chain.collection import NftCollection
from backend_seeds.chain.models import (
    BLESSING_SUBMITTED_TOPIC,
    SEED_STRUCT_TYPE,
    BlessingLog,
    SeedInfo,
    normalize_address,
)
from backend_seeds.chain.seeds_contract import ChainBlessingEventSource, SeedsContract
from backend_seeds.core.exceptions import (
    AbiDecodeError,
    OwnershipLookupFailed,
    RpcError,
    StaleAuthoritativeRead,
)

COLLECTION = "0x8f814c7c75c5e9e0ede0336f535604b1915c1985"
SEEDS = "0x" + "5e" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20


def _topic_address(address: str) -> str:
    return "0x" + "00" * 12 + address[2:]


def _topic_int(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


def _blessing_log(seed_id: int, blesser: str, timestamp: int, block: int, index: int = 0) -> dict:
    return {
        "topics": [BLESSING_SUBMITTED_TOPIC, _topic_int(seed_id), _topic_address(blesser), _topic_address(blesser)],
        "data": "0x" + encode(["bool", "uint256"], [False, timestamp]).hex(),
        "blockNumber": hex(block),
        "logIndex": hex(index),
        "transactionHash": "0x" + "ee" * 32,
    }


def _seed_data(seed_id: int, created_at: int, is_winner: bool) -> bytes:
    return encode(
        [SEED_STRUCT_TYPE],
        [(seed_id, ALICE, "ipfs://seed", 3, created_at, is_winner, False, 0, 1)],
    )


def test_selector_matches_erc721_owner_of():
    assert selector("ownerOf(uint256)").hex() == "6352211e"
    assert encode_call("totalSupply()") == selector("totalSupply()")
    data = encode_call("ownerOf(uint256)", ["uint256"], [7])
    assert decode(["uint256"], data[4:]) == (7,)


def test_normalize_address():
    assert normalize_address("  " + ALICE.upper().replace("0X", "0x") + " ") == ALICE
    with pytest.raises(ValueError, match="Invalid EVM address"):
        normalize_address("0x1234")


def test_seed_info_decoding():
    seed = SeedInfo.from_return_data(_seed_data(9, 1_700_000_000, True))
    assert seed.id == 9
    assert seed.creator == ALICE
    assert seed.created_at == 1_700_000_000
    assert seed.is_winner is True
    assert seed.is_retracted is False


def test_blessing_log_decoding():
    log = BlessingLog.from_rpc_log(_blessing_log(4, BOB, 1_700_000_100, block=55, index=2))
    assert log.seed_id == 4
    assert log.blesser == BOB
    assert log.timestamp == 1_700_000_100
    assert log.block_number == 55
    assert log.log_index == 2
    with pytest.raises(ValueError):
        BlessingLog.from_rpc_log({"topics": ["0x" + "00" * 32], "data": "0x"})


def _collection_rpc(owners: dict[int, str], failing: set[int] = frozenset()) -> MagicMock:
    owner_sel = selector("ownerOf(uint256)")
    supply_sel = selector("totalSupply()")

    def eth_call(to, data, block=None):
        if data[:4] == supply_sel:
            return encode(["uint256"], [len(owners)])
        if data[:4] == owner_sel:
            (token_id,) = decode(["uint256"], data[4:])
            if token_id in failing:
                raise RpcError("timeout")
            return encode(["address"], [owners[token_id]])
        if data[:4] == selector("name()"):
            return encode(["string"], ["FirstWorks"])
        raise AssertionError("unexpected call")

    rpc = MagicMock()
    rpc.eth_call.side_effect = eth_call
    rpc.block_number.return_value = 1234
    return rpc


def test_collection_owners_resolves_all_tokens():
    rpc = _collection_rpc({1: ALICE, 2: BOB, 3: ALICE})
    collection = NftCollection(rpc, COLLECTION, batch_size=2, max_workers=2)
    assert collection.resolve_block(None) == 1234
    rpc.block_number.assert_called_with("finalized")
    assert collection.token_ids(1234) == [1, 2, 3]
    assert collection.owners([1, 2, 3], 1234) == {1: ALICE, 2: BOB, 3: ALICE}
    assert collection.name() == "FirstWorks"


def test_collection_owners_fails_atomically():
    rpc = _collection_rpc({1: ALICE, 2: BOB, 3: ALICE}, failing={2})
    collection = NftCollection(rpc, COLLECTION, batch_size=10, max_workers=2)
    with pytest.raises(OwnershipLookupFailed) as exc:
        collection.owners([1, 2, 3], 1234)
    assert exc.value.failed_token_ids == [2]


def test_collection_name_falls_back_to_empty():
    rpc = MagicMock()
    rpc.eth_call.side_effect = RpcError("boom")
    assert NftCollection(rpc, COLLECTION).name() == ""


def test_daily_blessing_count_reads_counter():
    rpc = MagicMock()
    rpc.eth_call.return_value = encode(["uint256"], [2])
    contract = SeedsContract(rpc, SEEDS)
    assert contract.get_user_daily_blessing_count(ALICE) == 2
    to, data = rpc.eth_call.call_args[0][:2]
    assert to == SEEDS
    assert data[:4] == selector("getUserDailyBlessingCount(address)")


def test_daily_blessing_count_failure_is_stale_read():
    rpc = MagicMock()
    rpc.eth_call.side_effect = RpcError("down")
    contract = SeedsContract(rpc, SEEDS)
    with pytest.raises(StaleAuthoritativeRead):
        contract.get_user_daily_blessing_count(ALICE)


def test_event_source_enriches_and_orders_events():
    rpc = MagicMock()
    rpc.block_number.return_value = 14
    logs_by_start = {
        10: [_blessing_log(1, BOB, 1_700_000_500, block=11)],
        13: [_blessing_log(2, ALICE, 1_700_000_100, block=13), {"topics": [], "data": "0x"}],
    }
    rpc.get_logs.side_effect = lambda address, topics, start, end: logs_by_start.get(start, [])
    seeds = {1: _seed_data(1, 1_699_999_000, True), 2: _seed_data(2, 1_700_000_000, False)}

    def eth_call(to, data, block=None):
        (seed_id,) = decode(["uint256"], data[4:])
        return seeds[seed_id]

    rpc.eth_call.side_effect = eth_call
    source = ChainBlessingEventSource(SeedsContract(rpc, SEEDS), rpc, from_block=10, chunk_size=3)
    events = source.list_events()

    assert [(e.seed_id, e.blesser) for e in events] == [(2, ALICE), (1, BOB)]
    assert events[0].was_winner is False
    assert events[1].was_winner is True
    assert events[1].seed_created_at == 1_699_999_000
    starts = [c.args[2] for c in rpc.get_logs.call_args_list]
    assert starts == [10, 13]


def test_decode_single_roundtrip_string():
    assert decode_single("string", encode(["string"], ["hello"])) == "hello"


def test_decode_single_rejects_empty_return_data():
    with pytest.raises(AbiDecodeError):
        decode_single("uint256", b"")


def test_daily_blessing_count_empty_return_is_stale_read():
    # eth_call to an address without the function returns 0x rather than reverting
    rpc = MagicMock()
    rpc.eth_call.return_value = b""
    with pytest.raises(StaleAuthoritativeRead) as exc:
        SeedsContract(rpc, SEEDS).get_user_daily_blessing_count(ALICE)
    assert exc.value.details["cause"] == "ABI_DECODE_ERROR"


def test_get_seed_malformed_return_is_rpc_error():
    rpc = MagicMock()
    rpc.eth_call.return_value = b"\x00" * 31
    with pytest.raises(RpcError):
        SeedsContract(rpc, SEEDS).get_seed(1)


def test_blessing_log_with_truncated_data_is_skipped():
    rpc = MagicMock()
    short = dict(_blessing_log(3, BOB, 1_700_000_000, block=5), data="0x" + "00" * 10)
    rpc.get_logs.return_value = [short, _blessing_log(4, ALICE, 1_700_000_001, block=5, index=1)]
    logs = SeedsContract(rpc, SEEDS).blessing_logs(5, 5)
    assert [log.seed_id for log in logs] == [4]


def test_collection_undecodable_owner_fails_atomically():
    rpc = _collection_rpc({1: ALICE, 2: BOB})
    original = rpc.eth_call.side_effect

    def eth_call(to, data, block=None):
        if data[:4] == selector("ownerOf(uint256)") and decode(["uint256"], data[4:]) == (2,):
            return b""
        return original(to, data, block)

    rpc.eth_call.side_effect = eth_call
    with pytest.raises(OwnershipLookupFailed) as exc:
        NftCollection(rpc, COLLECTION).owners([1, 2], 1234)
    assert exc.value.failed_token_ids == [2]
