"""
Durable, versioned storage for snapshots and their Merkle artifacts.

SQLite backend; the "latest" pointer is a row updated in the same transaction
as the snapshot insert, so readers never observe a half-written snapshot.
Only the newest `keep` versions are retained; the pointed-to version is never pruned.
"""

from __future__ import annotations

import json
import sqlite3
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from backend_seeds.core.exceptions import SnapshotNotFound, SnapshotStoreError
from backend_seeds.merkle.tree import MerkleTree
from backend_seeds.seeds_logging import get_logger
from backend_seeds.snapshots.models import Snapshot

logger = get_logger(__name__)

LATEST_POINTER = "latest"
DEFAULT_KEEP = 5

SCHEMA_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    contract_address TEXT NOT NULL,
    block_number INTEGER NOT NULL,
    total_supply INTEGER NOT NULL,
    total_holders INTEGER NOT NULL,
    snapshot_timestamp TEXT NOT NULL,
    merkle_root TEXT NOT NULL,
    snapshot_json TEXT NOT NULL,
    merkle_json TEXT NOT NULL,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_snapshots_block ON snapshots(block_number);
"""

SCHEMA_POINTERS = """
CREATE TABLE IF NOT EXISTS snapshot_pointers (
    name TEXT PRIMARY KEY,
    snapshot_id INTEGER NOT NULL REFERENCES snapshots(id),
    updated_at INTEGER NOT NULL
);
"""


@dataclass(frozen=True)
class SnapshotVersion:
    """Metadata row for one stored snapshot."""

    id: int
    contract_address: str
    block_number: int
    total_supply: int
    total_holders: int
    timestamp: str
    merkle_root: str
    created_at: int
    is_latest: bool = False


class SnapshotStoreBackend(ABC):
    """Abstract interface for snapshot persistence."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        ...

    @abstractmethod
    def publish(self, snapshot: Snapshot, tree: MerkleTree, keep: int) -> int:
        """Insert snapshot + tree, move the latest pointer, prune old versions. Returns snapshot id."""
        ...

    @abstractmethod
    def load(self, snapshot_id: int | None) -> tuple[int, Snapshot, MerkleTree] | None:
        """Load by id, or the latest when snapshot_id is None. None if absent."""
        ...

    @abstractmethod
    def history(self) -> list[SnapshotVersion]:
        """Retained versions, newest first."""
        ...

    @abstractmethod
    def set_latest(self, snapshot_id: int) -> None:
        """Point latest at an existing version."""
        ...


class SQLiteSnapshotBackend(SnapshotStoreBackend):
    """SQLite implementation; one connection per operation."""

    def __init__(self, path: str | Path, *, timeout_sec: float = 5.0) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Transaction scope; sqlite and filesystem failures surface as SnapshotStoreError."""
        try:
            conn = self._connect()
        except (sqlite3.Error, OSError) as e:
            raise SnapshotStoreError(f"cannot open snapshot store: {e}", path=str(self._path)) from e
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise SnapshotStoreError(f"snapshot store query failed: {e}", path=str(self._path)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            for stmt in (SCHEMA_SNAPSHOTS, SCHEMA_POINTERS):
                cur.executescript(stmt)

    def publish(self, snapshot: Snapshot, tree: MerkleTree, keep: int) -> int:
        now = int(time.time())
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO snapshots (contract_address, block_number, total_supply, total_holders,
                                       snapshot_timestamp, merkle_root, snapshot_json, merkle_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    snapshot.contract_address,
                    snapshot.block_number,
                    snapshot.total_supply,
                    snapshot.total_holders,
                    snapshot.timestamp,
                    tree.root,
                    json.dumps(snapshot.to_dict()),
                    json.dumps(tree.to_dict()),
                    now,
                ),
            )
            snapshot_id = int(cur.lastrowid)
            cur.execute(
                """
                INSERT INTO snapshot_pointers (name, snapshot_id, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET snapshot_id = excluded.snapshot_id, updated_at = excluded.updated_at
                """,
                (LATEST_POINTER, snapshot_id, now),
            )
            cur.execute(
                """
                DELETE FROM snapshots
                WHERE id NOT IN (SELECT id FROM snapshots ORDER BY id DESC LIMIT ?)
                  AND id NOT IN (SELECT snapshot_id FROM snapshot_pointers)
                """,
                (keep,),
            )
            pruned = cur.rowcount
        if pruned:
            logger.info("snapshot_versions_pruned", pruned=pruned, keep=keep)
        return snapshot_id

    def load(self, snapshot_id: int | None) -> tuple[int, Snapshot, MerkleTree] | None:
        with self._cursor() as cur:
            if snapshot_id is None:
                cur.execute(
                    """
                    SELECT s.id, s.block_number, s.snapshot_json, s.merkle_json FROM snapshots s
                    JOIN snapshot_pointers p ON p.snapshot_id = s.id WHERE p.name = ?
                    """,
                    (LATEST_POINTER,),
                )
            else:
                cur.execute(
                    "SELECT id, block_number, snapshot_json, merkle_json FROM snapshots WHERE id = ?",
                    (snapshot_id,),
                )
            row = cur.fetchone()
        if row is None:
            return None
        try:
            snapshot = Snapshot.from_dict(json.loads(row["snapshot_json"]))
            tree = MerkleTree.from_dict(json.loads(row["merkle_json"]), block_number=row["block_number"])
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotStoreError(f"snapshot {row['id']} is corrupt: {e}", snapshot_id=row["id"]) from e
        return int(row["id"]), snapshot, tree

    def history(self) -> list[SnapshotVersion]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT s.id, s.contract_address, s.block_number, s.total_supply, s.total_holders,
                       s.snapshot_timestamp, s.merkle_root, s.created_at, p.name AS pointer
                FROM snapshots s LEFT JOIN snapshot_pointers p ON p.snapshot_id = s.id
                ORDER BY s.id DESC
                """
            )
            rows = cur.fetchall()
        return [
            SnapshotVersion(
                id=row["id"],
                contract_address=row["contract_address"],
                block_number=row["block_number"],
                total_supply=row["total_supply"],
                total_holders=row["total_holders"],
                timestamp=row["snapshot_timestamp"],
                merkle_root=row["merkle_root"],
                created_at=row["created_at"],
                is_latest=row["pointer"] == LATEST_POINTER,
            )
            for row in rows
        ]

    def set_latest(self, snapshot_id: int) -> None:
        now = int(time.time())
        with self._cursor() as cur:
            cur.execute("SELECT 1 FROM snapshots WHERE id = ?", (snapshot_id,))
            if cur.fetchone() is None:
                raise SnapshotNotFound(f"snapshot {snapshot_id} is not retained", snapshot_id=snapshot_id)
            cur.execute(
                """
                INSERT INTO snapshot_pointers (name, snapshot_id, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET snapshot_id = excluded.snapshot_id, updated_at = excluded.updated_at
                """,
                (LATEST_POINTER, snapshot_id, now),
            )


class SnapshotStore:
    """
    Snapshot artifact store: publish, latest, by key, history, rollback.

    Uses a backend (SQLite today). Stored snapshots are never modified; a new
    snapshot supersedes the previous one by moving the latest pointer.
    """

    def __init__(self, backend: SnapshotStoreBackend, *, keep: int = DEFAULT_KEEP) -> None:
        if keep < 1:
            raise ValueError("keep must be at least 1")
        self._backend = backend
        self._keep = keep

    def ensure_schema(self) -> None:
        self._backend.ensure_schema()

    def publish(self, snapshot: Snapshot, tree: MerkleTree) -> int:
        """Persist snapshot and tree, then point latest at them. Returns the new snapshot id."""
        if tree.block_number is not None and tree.block_number != snapshot.block_number:
            raise ValueError("merkle tree was not built from this snapshot")
        snapshot_id = self._backend.publish(snapshot, tree, self._keep)
        logger.info(
            "snapshot_published",
            snapshot_id=snapshot_id,
            block_number=snapshot.block_number,
            total_holders=snapshot.total_holders,
            merkle_root=tree.root,
        )
        return snapshot_id

    def latest(self) -> Snapshot | None:
        loaded = self._backend.load(None)
        return loaded[1] if loaded else None

    def latest_with_tree(self) -> tuple[int, Snapshot, MerkleTree] | None:
        return self._backend.load(None)

    def latest_tree(self) -> MerkleTree | None:
        loaded = self._backend.load(None)
        return loaded[2] if loaded else None

    def get(self, snapshot_id: int) -> Snapshot:
        loaded = self._backend.load(snapshot_id)
        if loaded is None:
            raise SnapshotNotFound(f"snapshot {snapshot_id} not found", snapshot_id=snapshot_id)
        return loaded[1]

    def tree_for(self, snapshot_id: int) -> MerkleTree:
        loaded = self._backend.load(snapshot_id)
        if loaded is None:
            raise SnapshotNotFound(f"snapshot {snapshot_id} not found", snapshot_id=snapshot_id)
        return loaded[2]

    def history(self) -> list[SnapshotVersion]:
        return self._backend.history()

    def rollback(self) -> int:
        """
        Point latest at the newest retained version older than the current one.

        Raises:
            SnapshotNotFound: nothing is published, or no older version is retained.
        """
        versions = self._backend.history()
        current = next((v for v in versions if v.is_latest), None)
        if current is None:
            raise SnapshotNotFound("no snapshot has been published")
        older = [v for v in versions if v.id < current.id]
        if not older:
            raise SnapshotNotFound("no older snapshot retained", current_id=current.id)
        target = older[0]
        self._backend.set_latest(target.id)
        logger.warning(
            "snapshot_rolled_back",
            from_id=current.id,
            to_id=target.id,
            block_number=target.block_number,
        )
        return target.id


def get_snapshot_store(path: str | Path | None = None, *, keep: int = DEFAULT_KEEP) -> SnapshotStore:
    """
    Return a SnapshotStore backed by SQLite at path (default: seeds.db in cwd).
    """
    if path is None:
        path = Path("seeds.db")
    store = SnapshotStore(SQLiteSnapshotBackend(path), keep=keep)
    store.ensure_schema()
    return store
