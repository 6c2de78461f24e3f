"""
Database module for device-local storage.
Uses SQLite for accounts, wagers, minigame history and the transaction log.
Amounts are stored as integer cents.
"""

import json
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from app.core.logger import get_logger

logger = get_logger("database")

COUNTER_COLUMNS = ("total_bets", "total_wins")


class Database:
    """Thread-safe SQLite wrapper. One connection per thread, writes serialized by SQLite."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        logger.info(f"Initializing database at {self.path}")
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        if getattr(self._local, "connection", None) is None:
            # Autocommit mode; transactions are opened explicitly in transaction()
            self._local.connection = sqlite3.connect(
                str(self.path), check_same_thread=False, isolation_level=None, timeout=30
            )
            self._local.connection.row_factory = sqlite3.Row
            self._local.depth = 0
        return self._local.connection

    def close(self):
        conn = getattr(self._local, "connection", None)
        if conn is not None:
            conn.close()
            self._local.connection = None

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block as one write transaction. BEGIN IMMEDIATE takes the write
        lock up front, so a read-check-write inside the block cannot interleave
        with another writer. Nested calls join the outer transaction.
        """
        conn = self._get_connection()
        if self._local.depth:
            self._local.depth += 1
            try:
                yield conn
            finally:
                self._local.depth -= 1
            return

        conn.execute("BEGIN IMMEDIATE")
        self._local.depth = 1
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")
        finally:
            self._local.depth = 0

    def _init_db(self):
        conn = self._get_connection()
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                username TEXT UNIQUE NOT NULL,
                email TEXT NOT NULL DEFAULT '',
                balance_cents INTEGER NOT NULL DEFAULT 0 CHECK (balance_cents >= 0),
                total_bets INTEGER NOT NULL DEFAULT 0,
                total_wins INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                last_active TEXT
            );

            CREATE TABLE IF NOT EXISTS wagers (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                match_id TEXT NOT NULL,
                bet_type TEXT NOT NULL,
                selection TEXT NOT NULL,
                odds TEXT NOT NULL,
                stake_cents INTEGER NOT NULL,
                payout_cents INTEGER NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                created_at TEXT NOT NULL,
                settled_at TEXT,
                FOREIGN KEY (account_id) REFERENCES accounts(id)
            );

            CREATE TABLE IF NOT EXISTS minigame_results (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT UNIQUE NOT NULL,
                account_id TEXT NOT NULL,
                game TEXT NOT NULL,
                stake_cents INTEGER NOT NULL,
                multiplier TEXT NOT NULL,
                result TEXT NOT NULL,
                payout_cents INTEGER NOT NULL,
                details TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (account_id) REFERENCES accounts(id)
            );

            CREATE TABLE IF NOT EXISTS transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                account_id TEXT NOT NULL,
                type TEXT NOT NULL,
                game TEXT,
                amount_cents INTEGER NOT NULL,
                balance_after_cents INTEGER NOT NULL,
                details TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (account_id) REFERENCES accounts(id)
            );

            CREATE INDEX IF NOT EXISTS idx_wagers_account ON wagers(account_id);
            CREATE INDEX IF NOT EXISTS idx_minigame_account ON minigame_results(account_id);
            CREATE INDEX IF NOT EXISTS idx_transactions_account ON transactions(account_id);
            """
        )

    # ==================== Accounts ====================

    def create_account(self, username: str, email: str, balance_cents: int) -> Dict:
        """Create a new account seeded with the given balance."""
        account_id = str(uuid.uuid4())
        now = datetime.now().isoformat()
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO accounts (id, username, email, balance_cents, created_at, last_active)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (account_id, username, email, balance_cents, now, now),
            )
        logger.info(f"Created new account: {username}")
        return self.get_account(account_id)

    def get_account(self, account_id: str) -> Optional[Dict]:
        row = self._get_connection().execute(
            "SELECT * FROM accounts WHERE id = ?", (account_id,)
        ).fetchone()
        return dict(row) if row else None

    def get_account_by_username(self, username: str) -> Optional[Dict]:
        row = self._get_connection().execute(
            "SELECT * FROM accounts WHERE username = ? COLLATE NOCASE", (username,)
        ).fetchone()
        return dict(row) if row else None

    def touch_account(self, account_id: str, email: str) -> Dict:
        """Refresh the contact handle and last-active time on re-login."""
        with self.transaction() as conn:
            conn.execute(
                "UPDATE accounts SET email = ?, last_active = ? WHERE id = ?",
                (email, datetime.now().isoformat(), account_id),
            )
        return self.get_account(account_id)

    # ==================== Balance Operations ====================

    def get_balance_cents(self, account_id: str) -> Optional[int]:
        row = self._get_connection().execute(
            "SELECT balance_cents FROM accounts WHERE id = ?", (account_id,)
        ).fetchone()
        return row["balance_cents"] if row else None

    def debit(self, account_id: str, amount_cents: int) -> Optional[int]:
        """
        Compare-and-decrement. Returns the new balance, or None when the
        account cannot cover the amount (nothing is changed in that case).
        """
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE accounts
                SET balance_cents = balance_cents - ?, last_active = ?
                WHERE id = ? AND balance_cents >= ?
                """,
                (amount_cents, datetime.now().isoformat(), account_id, amount_cents),
            )
            if cursor.rowcount != 1:
                return None
            return self.get_balance_cents(account_id)

    def credit(self, account_id: str, amount_cents: int) -> int:
        """Add to the balance. The result never drops below zero."""
        with self.transaction() as conn:
            conn.execute(
                """
                UPDATE accounts
                SET balance_cents = MAX(0, balance_cents + ?), last_active = ?
                WHERE id = ?
                """,
                (amount_cents, datetime.now().isoformat(), account_id),
            )
            return self.get_balance_cents(account_id)

    def increment_counter(self, account_id: str, column: str) -> int:
        if column not in COUNTER_COLUMNS:
            raise ValueError(f"Unknown counter: {column}")
        with self.transaction() as conn:
            conn.execute(
                f"UPDATE accounts SET {column} = {column} + 1 WHERE id = ?",
                (account_id,),
            )
            row = conn.execute(
                f"SELECT {column} FROM accounts WHERE id = ?", (account_id,)
            ).fetchone()
            return row[column]

    # ==================== Transaction Log ====================

    def log_transaction(
        self,
        account_id: str,
        tx_type: str,
        amount_cents: int,
        balance_after_cents: int,
        game: str = None,
        details: str = None,
    ):
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO transactions
                    (account_id, type, game, amount_cents, balance_after_cents, details, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account_id,
                    tx_type,
                    game,
                    amount_cents,
                    balance_after_cents,
                    details,
                    datetime.now().isoformat(),
                ),
            )

    def get_transactions(self, account_id: str, limit: int = 50) -> List[Dict]:
        rows = self._get_connection().execute(
            "SELECT * FROM transactions WHERE account_id = ? ORDER BY id DESC LIMIT ?",
            (account_id, limit),
        ).fetchall()
        return [dict(row) for row in rows]

    # ==================== Wagers ====================

    def insert_wager(
        self,
        account_id: str,
        match_id: str,
        bet_type: str,
        selection: str,
        odds: str,
        stake_cents: int,
        payout_cents: int,
    ) -> Dict:
        wager_id = str(uuid.uuid4())
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO wagers
                    (id, account_id, match_id, bet_type, selection, odds,
                     stake_cents, payout_cents, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?)
                """,
                (
                    wager_id,
                    account_id,
                    match_id,
                    bet_type,
                    selection,
                    odds,
                    stake_cents,
                    payout_cents,
                    datetime.now().isoformat(),
                ),
            )
        return self.get_wager(wager_id)

    def get_wager(self, wager_id: str) -> Optional[Dict]:
        row = self._get_connection().execute(
            "SELECT * FROM wagers WHERE id = ?", (wager_id,)
        ).fetchone()
        return dict(row) if row else None

    def get_wagers(self, account_id: str, status: str = None) -> List[Dict]:
        query = "SELECT * FROM wagers WHERE account_id = ?"
        params = [account_id]
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC"
        rows = self._get_connection().execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def close_wager(self, wager_id: str, status: str) -> bool:
        """Move a pending wager to its final status. False if it was not pending."""
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE wagers SET status = ?, settled_at = ?
                WHERE id = ? AND status = 'pending'
                """,
                (status, datetime.now().isoformat(), wager_id),
            )
            return cursor.rowcount == 1

    # ==================== Minigame History ====================

    def add_minigame_result(
        self,
        account_id: str,
        result_id: str,
        game: str,
        stake_cents: int,
        multiplier: str,
        result: str,
        payout_cents: int,
        details: Dict,
        created_at: str,
        limit: int,
    ):
        """Append a result and evict the oldest entries beyond `limit`."""
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO minigame_results
                    (id, account_id, game, stake_cents, multiplier, result,
                     payout_cents, details, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result_id,
                    account_id,
                    game,
                    stake_cents,
                    multiplier,
                    result,
                    payout_cents,
                    json.dumps(details),
                    created_at,
                ),
            )
            conn.execute(
                """
                DELETE FROM minigame_results
                WHERE account_id = ? AND seq NOT IN (
                    SELECT seq FROM minigame_results
                    WHERE account_id = ? ORDER BY seq DESC LIMIT ?
                )
                """,
                (account_id, account_id, limit),
            )

    def get_minigame_history(self, account_id: str, limit: int = 50) -> List[Dict]:
        """Most recent first."""
        rows = self._get_connection().execute(
            "SELECT * FROM minigame_results WHERE account_id = ? ORDER BY seq DESC LIMIT ?",
            (account_id, limit),
        ).fetchall()
        return [dict(row) for row in rows]
