"""
Operator CLI for snapshots, proofs and the leaderboard.

Run from project root:
  python -m backend_seeds.tools.snapshot_cli snapshot [--block N] [--export PATH]
  python -m backend_seeds.tools.snapshot_cli rollback
  python -m backend_seeds.tools.snapshot_cli history
  python -m backend_seeds.tools.snapshot_cli proof 0xADDRESS
  python -m backend_seeds.tools.snapshot_cli leaderboard [--timeframe weekly] [--limit 20]

Env: FIRSTWORKS_RPC_URL, FIRSTWORKS_CONTRACT_ADDRESS, L2_RPC_URL, L2_SEEDS_CONTRACT,
SNAPSHOT_DB_PATH, OWNERSHIP_SOURCE (see backend_seeds.config.settings).
Exit code 1 on any failure.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from backend_seeds.chain.alchemy import AlchemyOwnershipSource, is_alchemy_url
from backend_seeds.chain.collection import NftCollection, OwnershipSource
from backend_seeds.chain.rpc import EthRpcClient
from backend_seeds.chain.seeds_contract import ChainBlessingEventSource, SeedsContract
from backend_seeds.config.env import mask_rpc_url
from backend_seeds.config.settings import SeedsSettings, get_settings
from backend_seeds.core.exceptions import ConfigError, SeedsError
from backend_seeds.leaderboard.models import Timeframe
from backend_seeds.leaderboard.service import LeaderboardService
from backend_seeds.seeds_logging import get_logger
from backend_seeds.snapshots.builder import SnapshotBuilder
from backend_seeds.snapshots.pipeline import update_snapshot
from backend_seeds.snapshots.provider import SnapshotProvider
from backend_seeds.snapshots.store import SnapshotStore, get_snapshot_store

logger = get_logger(__name__)


def _rpc(settings: SeedsSettings, url: str) -> EthRpcClient:
    return EthRpcClient(
        url,
        timeout_sec=settings.rpc_timeout_sec,
        max_retries=settings.rpc_max_retries,
        min_retry_delay_sec=settings.rpc_min_retry_delay_sec,
        max_retry_delay_sec=settings.rpc_max_retry_delay_sec,
    )


def _store(settings: SeedsSettings) -> SnapshotStore:
    return get_snapshot_store(settings.snapshot_db_path, keep=settings.snapshot_history_keep)


def _ownership_source(settings: SeedsSettings, rpc: EthRpcClient) -> OwnershipSource:
    collection = NftCollection(rpc, settings.firstworks_address, batch_size=settings.owner_lookup_batch_size)
    url = settings.firstworks_rpc_url
    if settings.ownership_source == "rpc":
        return collection
    if is_alchemy_url(url):
        return AlchemyOwnershipSource(collection, url, timeout_sec=settings.rpc_timeout_sec)
    if settings.ownership_source == "alchemy":
        raise ConfigError("OWNERSHIP_SOURCE=alchemy needs an Alchemy FIRSTWORKS_RPC_URL", variable="OWNERSHIP_SOURCE")
    return collection


def cmd_snapshot(args: argparse.Namespace, settings: SeedsSettings) -> int:
    print(f"Collection: {settings.firstworks_address}")
    print(f"RPC:        {mask_rpc_url(settings.firstworks_rpc_url)}")
    with _rpc(settings, settings.firstworks_rpc_url) as rpc:
        source = _ownership_source(settings, rpc)
        print(f"Source:     {type(source).__name__}")
        result = update_snapshot(SnapshotBuilder(source), _store(settings), block=args.block)

    snapshot, tree = result.snapshot, result.tree
    print(f"Snapshot #{result.snapshot_id} at block {snapshot.block_number}")
    print(f"  total supply:  {snapshot.total_supply}")
    print(f"  total holders: {snapshot.total_holders}")
    print(f"  merkle root:   {tree.root}")
    for holder in snapshot.holders[:10]:
        print(f"  {holder.address}  {holder.balance}")

    if args.export:
        path = Path(args.export)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps({"snapshot": snapshot.to_dict(), "merkle": tree.to_dict()}, indent=2),
            encoding="utf-8",
        )
        print(f"Exported to {path}")
    return 0


def cmd_rollback(args: argparse.Namespace, settings: SeedsSettings) -> int:
    snapshot_id = _store(settings).rollback()
    print(f"Latest snapshot is now #{snapshot_id}")
    return 0


def cmd_history(args: argparse.Namespace, settings: SeedsSettings) -> int:
    versions = _store(settings).history()
    if not versions:
        print("No snapshots published")
        return 0
    for v in versions:
        marker = "*" if v.is_latest else " "
        print(
            f"{marker} #{v.id:<4} block={v.block_number:<10} holders={v.total_holders:<6} "
            f"supply={v.total_supply:<6} root={v.merkle_root} at={v.timestamp}"
        )
    return 0


def cmd_proof(args: argparse.Namespace, settings: SeedsSettings) -> int:
    loaded = _store(settings).latest_with_tree()
    if loaded is None:
        print("No snapshot published", file=sys.stderr)
        return 1
    _, snapshot, tree = loaded
    address = args.address.strip().lower()
    out = {
        "address": address,
        "tokenIds": snapshot.nfts_for(address),
        "leaf": tree.leaf_for(address),
        "proof": tree.proof_for(address),
        "root": tree.root,
        "blockNumber": snapshot.block_number,
    }
    print(json.dumps(out, indent=2))
    return 0


def cmd_leaderboard(args: argparse.Namespace, settings: SeedsSettings) -> int:
    if not settings.seeds_contract_address:
        print("L2_SEEDS_CONTRACT is not set", file=sys.stderr)
        return 1
    with _rpc(settings, settings.l2_rpc_url) as rpc:
        source = ChainBlessingEventSource(
            SeedsContract(rpc, settings.seeds_contract_address),
            rpc,
            from_block=settings.seeds_deploy_block,
            chunk_size=settings.log_chunk_size,
        )
        provider = SnapshotProvider(_store(settings), ttl_sec=settings.snapshot_cache_ttl_sec)
        entries = LeaderboardService(provider, source, settings).get_leaderboard(
            limit=args.limit, timeframe=args.timeframe
        )
    print(json.dumps([e.to_dict() for e in entries], indent=2))
    return 0


COMMANDS = {
    "snapshot": cmd_snapshot,
    "rollback": cmd_rollback,
    "history": cmd_history,
    "proof": cmd_proof,
    "leaderboard": cmd_leaderboard,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seeds snapshot and leaderboard operations")
    sub = parser.add_subparsers(dest="command", required=True)

    snap = sub.add_parser("snapshot", help="Build, commit and publish a new ownership snapshot")
    snap.add_argument("--block", type=int, default=None, help="Block height (default: latest finalized)")
    snap.add_argument("--export", default=None, help="Also write snapshot + merkle JSON to this path")

    sub.add_parser("rollback", help="Point latest at the previous retained snapshot")
    sub.add_parser("history", help="List retained snapshots")

    proof = sub.add_parser("proof", help="Print leaf and Merkle proof for an address")
    proof.add_argument("address")

    board = sub.add_parser("leaderboard", help="Compute the leaderboard from chain events")
    board.add_argument("--timeframe", default=Timeframe.LIFETIME.value, choices=[t.value for t in Timeframe])
    board.add_argument("--limit", type=int, default=100)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
        return COMMANDS[args.command](args, settings)
    except SeedsError as e:
        logger.error("snapshot_cli_failed", command=args.command, code=e.code, error=e.message)
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
