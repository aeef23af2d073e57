"""Database repository for the checkpoint and decoded bets."""

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import aiosqlite

from ..codec import to_storage_decimal
from ..decoding import BetEvent
from .models import CHECKPOINT_ID, SCHEMA

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A database failure that retrying will not fix (schema, constraint, logic)."""


class TransientStorageError(StorageError):
    """A database failure worth retrying (locked database, lost connection, I/O)."""


# Primary result codes that describe the environment, not the schema or the SQL
TRANSIENT_SQLITE_CODES = frozenset(
    {
        sqlite3.SQLITE_BUSY,
        sqlite3.SQLITE_LOCKED,
        sqlite3.SQLITE_IOERR,
        sqlite3.SQLITE_CANTOPEN,
        sqlite3.SQLITE_FULL,
    }
)


def is_transient(error: sqlite3.Error) -> bool:
    """True if the sqlite error code says a retry may succeed."""
    code = getattr(error, "sqlite_errorcode", None)
    if code is None:
        return False
    # Extended codes (SQLITE_IOERR_READ, ...) carry the primary code in the low byte
    return (code & 0xFF) in TRANSIENT_SQLITE_CODES


@dataclass
class StoredBet:
    """A bet row as persisted."""

    id: int
    bet: bool
    amount: Decimal
    has_claimed: bool
    claimable_amount: Decimal
    no_probability: Decimal
    yes_probability: Decimal
    user_address: str | None
    block_number: int
    transaction_hash: str
    from_address: str
    contract_address: str | None
    profile_version: str
    created_at: datetime | None


def _as_text(value: Decimal) -> str:
    # Plain notation, never exponent form
    return format(value, "f")


class Repository:
    """Database repository for all persistence operations."""

    def __init__(self, db_path: str | Path, start_block: int = 0):
        self.db_path = Path(db_path)
        self.start_block = start_block
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self):
        """Open the database, create tables and seed the checkpoint row."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._errors("initialize"):
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row

            await self._connection.executescript(SCHEMA)
            await self._connection.execute(
                "INSERT OR IGNORE INTO app_state (id, last_processed_block) VALUES (?, ?)",
                (CHECKPOINT_ID, self.start_block),
            )
            await self._connection.commit()

        logger.info(f"Database initialized at {self.db_path}")

    async def close(self):
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if not self._connection:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._connection

    @contextmanager
    def _errors(self, operation: str):
        """Map sqlite exceptions onto transient and permanent storage errors."""
        try:
            yield
        except sqlite3.DatabaseError as e:
            if is_transient(e):
                raise TransientStorageError(f"{operation} failed: {e}") from e
            raise StorageError(f"{operation} failed: {e}") from e

    # Checkpoint Operations

    async def read_checkpoint(self) -> int:
        """Return the last processed block, or the seed if none is stored."""
        with self._errors("read_checkpoint"):
            async with self.conn.execute(
                "SELECT last_processed_block FROM app_state WHERE id = ?",
                (CHECKPOINT_ID,),
            ) as cursor:
                row = await cursor.fetchone()

        if not row:
            return self.start_block
        return int(row["last_processed_block"])

    async def write_checkpoint(self, block_number: int):
        """Overwrite the last processed block. Single writer only."""
        with self._errors("write_checkpoint"):
            await self.conn.execute(
                """
                INSERT INTO app_state (id, last_processed_block) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    last_processed_block = excluded.last_processed_block
                """,
                (CHECKPOINT_ID, block_number),
            )
            await self.conn.commit()

    # Bet Operations

    async def save_bet(
        self,
        bet: BetEvent,
        block_number: int,
        transaction_hash: str,
        from_address: str,
        contract_address: str | None = None,
    ) -> bool:
        """
        Insert a bet unless (block_number, transaction_hash) is already stored.

        Returns:
            True if a new row was written, False for a duplicate
        """
        profile = bet.profile
        values = (
            bet.direction,
            _as_text(to_storage_decimal(bet.amount, profile.amount_scale)),
            bet.has_claimed,
            _as_text(to_storage_decimal(bet.claimable_amount, profile.amount_scale)),
            _as_text(to_storage_decimal(bet.odds.no_probability, profile.odds_scale)),
            _as_text(to_storage_decimal(bet.odds.yes_probability, profile.odds_scale)),
            bet.user_address,
            block_number,
            transaction_hash,
            from_address,
            contract_address,
            profile.version,
        )

        with self._errors("save_bet"):
            async with self.conn.execute(
                """
                INSERT INTO bet_placed (
                    bet, amount, has_claimed, claimable_amount,
                    no_probability, yes_probability, user_address,
                    block_number, transaction_hash, from_address,
                    contract_address, profile_version
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(block_number, transaction_hash) DO NOTHING
                """,
                values,
            ) as cursor:
                inserted = cursor.rowcount > 0

            await self.conn.commit()

        if not inserted:
            logger.debug(f"Bet already stored: block {block_number}, tx {transaction_hash}")
        return inserted

    async def get_bets(self, limit: int = 100) -> list[StoredBet]:
        """Get stored bets, oldest block first."""
        with self._errors("get_bets"):
            async with self.conn.execute(
                "SELECT * FROM bet_placed ORDER BY block_number ASC, id ASC LIMIT ?",
                (limit,),
            ) as cursor:
                rows = await cursor.fetchall()

        return [
            StoredBet(
                id=row["id"],
                bet=bool(row["bet"]),
                amount=Decimal(row["amount"]),
                has_claimed=bool(row["has_claimed"]),
                claimable_amount=Decimal(row["claimable_amount"]),
                no_probability=Decimal(row["no_probability"]),
                yes_probability=Decimal(row["yes_probability"]),
                user_address=row["user_address"],
                block_number=row["block_number"],
                transaction_hash=row["transaction_hash"],
                from_address=row["from_address"],
                contract_address=row["contract_address"],
                profile_version=row["profile_version"],
                created_at=datetime.fromisoformat(row["created_at"])
                if row["created_at"]
                else None,
            )
            for row in rows
        ]

    async def count_bets(self) -> int:
        """Count stored bets."""
        with self._errors("count_bets"):
            async with self.conn.execute("SELECT COUNT(*) AS count FROM bet_placed") as cursor:
                row = await cursor.fetchone()
        return row["count"] if row else 0
