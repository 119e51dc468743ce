# src/stakepool/runtime/sqlite_db.py
from __future__ import annotations

import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional


def _now_ms() -> int:
    return int(time.time() * 1000)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite manager for the contract store.

    Design goals:
      - single durable DB file for contract records + host metadata
      - cross-thread safe by never sharing connections

    SQLite allows only one writer at a time; BEGIN IMMEDIATE can transiently
    fail with "database is locked", so write_tx() retries with bounded backoff.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """Return a safe PRAGMA synchronous value.

        Defaults:
          - prod        -> FULL
          - dev/testnet -> NORMAL

        Override with STAKEPOOL_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (os.environ.get("STAKEPOOL_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("STAKEPOOL_SQLITE_SYNCHRONOUS") or default).strip().upper()

        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(_env_int("STAKEPOOL_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0

        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        mode = str(row[0]).strip().lower() if row is not None else ""
        allow_non_wal = (os.environ.get("STAKEPOOL_SQLITE_ALLOW_NON_WAL") or "").strip() in {"1", "true", "TRUE"}
        if mode and mode != "wal" and not allow_non_wal:
            con.close()
            raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA temp_store=MEMORY;")

        busy_ms = max(0, _env_int("STAKEPOOL_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")

        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                try:
                    v = int(str(row["value"]))
                except ValueError:
                    v = 0
                if v != self.SCHEMA_VERSION:
                    raise RuntimeError(
                        f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                        "Refuse to start to avoid corrupting data."
                    )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE until a deadline
          - exponential backoff with jitter
          - then raise (fail closed) if the lock cannot be acquired in time
        """
        deadline_ms = max(250, _env_int("STAKEPOOL_SQLITE_WRITE_DEADLINE_MS", 30_000))
        deadline_ts = _now_ms() + deadline_ms

        base_sleep = max(0.001, float(_env_int("STAKEPOOL_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("STAKEPOOL_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
                    time.sleep(sleep_s * (0.5 + random.random()))
                    attempt += 1

            try:
                yield con
                con.execute("COMMIT;")
            except BaseException:
                con.execute("ROLLBACK;")
                raise


class SqliteKV:
    """Contract key-value store persisted in one SQLite table.

    apply_batch() writes a whole transaction's records inside a single
    BEGIN IMMEDIATE ... COMMIT, so a crash never leaves a half-applied call.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    def get(self, key: str) -> Optional[str]:
        with self._db.connection() as con:
            row = con.execute("SELECT value FROM kv WHERE key=?;", (str(key),)).fetchone()
            return None if row is None else str(row["value"])

    def set(self, key: str, value: str) -> None:
        self.apply_batch({str(key): str(value)})

    def apply_batch(self, writes: Dict[str, str]) -> None:
        now = _now_ms()
        with self._db.write_tx() as con:
            con.executemany(
                """
                INSERT INTO kv(key, value, updated_ts_ms) VALUES(?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_ts_ms=excluded.updated_ts_ms;
                """,
                [(str(k), str(v), now) for k, v in sorted(writes.items())],
            )

    def get_meta(self, key: str) -> Optional[str]:
        with self._db.connection() as con:
            row = con.execute("SELECT value FROM meta WHERE key=?;", (str(key),)).fetchone()
            return None if row is None else str(row["value"])

    def set_meta(self, key: str, value: str) -> None:
        with self._db.write_tx() as con:
            con.execute(
                "INSERT INTO meta(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                (str(key), str(value)),
            )
