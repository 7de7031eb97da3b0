"""Ledger store: the SQLite connection holding baseline and verdict records."""

from __future__ import annotations

import atexit
import logging
import signal
import sqlite3
import threading
from pathlib import Path
from typing import Optional

from src.models.ledger import BaselineRecord, VerdictRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS visual_matrix (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    device TEXT NOT NULL,
    status TEXT NOT NULL,
    imageUrl TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS baseline (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


class LedgerStore:
    """One process-wide connection per run, opened lazily.

    A disabled store (outside CI) accepts every call and persists nothing.
    Closing is idempotent; the next access after ``close()`` reconnects.
    """

    def __init__(self, path: str | Path, enabled: bool = True, verbose: bool = False):
        self.path = Path(path)
        self.enabled = enabled
        self.verbose = verbose
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._hooks_installed = False

    @classmethod
    def from_config(cls, ledger_config, device: str) -> "LedgerStore":
        return cls(
            ledger_config.resolve_db_path(device),
            enabled=ledger_config.ci,
            verbose=ledger_config.verbose,
        )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @property
    def connection(self) -> Optional[sqlite3.Connection]:
        if not self.enabled:
            return None
        with self._lock:
            if self._conn is None:
                self._conn = self._connect()
            return self._conn

    def _connect(self) -> sqlite3.Connection:
        if self.path.parent != Path("."):
            self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if self.verbose:
            conn.set_trace_callback(lambda stmt: logger.debug("SQL: %s", stmt))
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.executescript(_SCHEMA)
        conn.commit()
        logger.info("Connected to ledger database: %s", self.path)
        return conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
                logger.info("Ledger database connection closed")
            except sqlite3.Error as e:
                logger.error("Error closing ledger database: %s", e)
            self._conn = None

    def __enter__(self) -> "LedgerStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def install_teardown_hooks(self) -> None:
        """Close the connection on interpreter exit and on SIGINT/SIGTERM."""
        if self._hooks_installed:
            return
        atexit.register(self.close)
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                previous = signal.getsignal(signum)
                signal.signal(signum, self._make_signal_handler(previous))
            except ValueError:
                # signal handlers can only be installed from the main thread
                logger.debug("Could not install handler for signal %s", signum)
        self._hooks_installed = True

    def _make_signal_handler(self, previous):
        def handler(signum, frame):
            self.close()
            if callable(previous):
                previous(signum, frame)
            elif previous == signal.SIG_DFL:
                signal.signal(signum, signal.SIG_DFL)
                signal.raise_signal(signum)
        return handler

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_baseline(self, name: str) -> Optional[int]:
        conn = self.connection
        if conn is None:
            return None
        with self._lock:
            cur = conn.execute("INSERT INTO baseline (name) VALUES (?)", (name,))
            conn.commit()
        logger.debug("Baseline record inserted with ID %d", cur.lastrowid)
        return cur.lastrowid

    def insert_verdict(self, name: str, device: str, status: str, image_url: str) -> Optional[int]:
        conn = self.connection
        if conn is None:
            return None
        with self._lock:
            try:
                cur = conn.execute(
                    "INSERT INTO visual_matrix (name, device, status, imageUrl) VALUES (?, ?, ?, ?)",
                    (name, device, status, image_url),
                )
                conn.commit()
            except sqlite3.Error as e:
                logger.error("Error inserting verdict for %s (%s): %s", name, status, e)
                raise
        logger.debug("Verdict record inserted with ID %d", cur.lastrowid)
        return cur.lastrowid

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def baseline_records(self) -> list[BaselineRecord]:
        conn = self.connection
        if conn is None:
            return []
        with self._lock:
            rows = conn.execute(
                "SELECT id, name, created_at FROM baseline ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [
            BaselineRecord(id=row["id"], identity_key=row["name"], created_at=str(row["created_at"]))
            for row in rows
        ]

    def verdict_records(self) -> list[VerdictRecord]:
        conn = self.connection
        if conn is None:
            return []
        with self._lock:
            rows = conn.execute(
                "SELECT id, name, device, status, imageUrl, created_at FROM visual_matrix "
                "ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [
            VerdictRecord(
                id=row["id"],
                identity_key=row["name"],
                device=row["device"],
                status=row["status"],
                image_url=row["imageUrl"],
                created_at=str(row["created_at"]),
            )
            for row in rows
        ]
