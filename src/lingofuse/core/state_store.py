# state_store.py
# SPDX-License-Identifier: MIT
"""
Durable stores for the engine's learned state.

The state is four named JSON documents (adaptive weights, language patterns,
contextual patterns and the correction ledger). The SQLite store writes all
of them inside one ``BEGIN IMMEDIATE`` transaction so a save or a wipe is
never half-applied; the memory store keeps the same documents in a dict.
"""

from __future__ import annotations

import copy
import json
import sqlite3
from pathlib import Path
from typing import Any

from .interfaces import StateDocuments
from .log import get_logger

__all__ = ["SQLiteStateStore", "MemoryStateStore", "SCHEMA_VERSION"]

log = get_logger(__name__)

SCHEMA_VERSION = 1


class MemoryStateStore:
    """Keep state documents in process memory (lost at exit)."""

    def __init__(self) -> None:
        self._documents: StateDocuments | None = None
        self.saves = 0

    def load(self) -> StateDocuments | None:
        return copy.deepcopy(self._documents) if self._documents is not None else None

    def save(self, documents: StateDocuments) -> None:
        self._documents = copy.deepcopy(dict(documents))
        self.saves += 1

    def clear(self) -> None:
        self._documents = None

    def close(self) -> None:
        return None


class SQLiteStateStore:
    """Persist state documents in a small SQLite database."""

    def __init__(self, db_path: str | Path, *, read_only: bool = False) -> None:
        self.db_path = Path(db_path).expanduser()
        self.read_only = read_only
        self._conn: sqlite3.Connection | None = self._connect()
        if not self.read_only:
            self._init_schema(self._conn)
        else:
            self._verify_schema(self._conn)

    def _connect(self) -> sqlite3.Connection:
        if self.read_only and not self.db_path.exists():
            raise FileNotFoundError(f"Learning state DB {self.db_path} not found.")

        if not self.read_only:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        uri = f"file:{self.db_path}?mode={'ro' if self.read_only else 'rwc'}"
        # Saves may run on the background persistence worker.
        conn = sqlite3.connect(uri, uri=True, timeout=30.0, check_same_thread=False)

        if not self.read_only:
            try:
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
            except sqlite3.Error:
                log.debug("Failed to set WAL pragmas on %s", self.db_path, exc_info=True)

        return conn

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS learning_state (
                name TEXT PRIMARY KEY,
                payload TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            );
            """
        )
        self._ensure_metadata(conn)
        conn.commit()

    def _ensure_metadata(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("SELECT value FROM metadata WHERE key = 'schema_version'").fetchone()
        if row is None:
            conn.execute(
                "INSERT INTO metadata (key, value) VALUES ('schema_version', ?)",
                (str(SCHEMA_VERSION),),
            )
            return
        try:
            stored = int(row[0])
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Learning state DB {self.db_path} has an unreadable schema_version {row[0]!r}") from exc
        if stored > SCHEMA_VERSION:
            raise ValueError(
                f"Learning state DB {self.db_path} uses schema_version {stored}; "
                f"this version understands up to {SCHEMA_VERSION}."
            )

    def _verify_schema(self, conn: sqlite3.Connection) -> None:
        cur = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='learning_state'")
        if not cur.fetchone():
            raise ValueError(f"Learning state DB {self.db_path} has no learning_state table.")

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = self._connect()
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SQLiteStateStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def load(self) -> StateDocuments | None:
        """Return every stored document, or None when nothing was saved yet."""
        conn = self._get_conn()
        rows = conn.execute("SELECT name, payload FROM learning_state").fetchall()
        if not rows:
            return None
        documents: dict[str, Any] = {}
        for name, payload in rows:
            try:
                documents[name] = json.loads(payload)
            except json.JSONDecodeError:
                log.warning("Ignoring corrupt %s record in %s", name, self.db_path, exc_info=True)
        return documents

    def save(self, documents: StateDocuments) -> None:
        """Replace all documents in a single transaction."""
        if self.read_only:
            raise ValueError("Cannot save to SQLiteStateStore in read-only mode.")
        rows = [(name, json.dumps(payload, ensure_ascii=False, sort_keys=True)) for name, payload in documents.items()]
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE;")
            conn.execute("DELETE FROM learning_state")
            conn.executemany("INSERT INTO learning_state (name, payload) VALUES (?, ?)", rows)
            conn.commit()
        except Exception:
            if conn.in_transaction:
                conn.rollback()
            raise

    def clear(self) -> None:
        """Delete every stored document in one transaction."""
        if self.read_only:
            raise ValueError("Cannot clear SQLiteStateStore in read-only mode.")
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE;")
            conn.execute("DELETE FROM learning_state")
            conn.commit()
        except Exception:
            if conn.in_transaction:
                conn.rollback()
            raise
