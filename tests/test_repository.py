"""Tests for checkpoint persistence and idempotent bet storage."""

import sqlite3
from decimal import Decimal

import pytest

from bet_indexer.codec import felt_to_hex
from bet_indexer.db import Repository, StorageError, TransientStorageError
from bet_indexer.decoding import PROFILE_V1, PROFILE_V2, EventDecoder

from .conftest import CONTRACT_A, V2_PAYLOAD

TX = felt_to_hex(0x7777)


async def test_fresh_store_returns_seed(repository: Repository):
    assert await repository.read_checkpoint() == 0


async def test_configured_seed(tmp_path):
    repo = Repository(tmp_path / "seeded.sqlite", start_block=1200)
    await repo.initialize()
    try:
        assert await repo.read_checkpoint() == 1200
    finally:
        await repo.close()


async def test_checkpoint_survives_reopen(tmp_path):
    path = tmp_path / "state.sqlite"
    repo = Repository(path)
    await repo.initialize()
    await repo.write_checkpoint(42)
    await repo.close()

    # A different seed must not clobber an existing checkpoint
    reopened = Repository(path, start_block=7)
    await reopened.initialize()
    try:
        assert await reopened.read_checkpoint() == 42
    finally:
        await reopened.close()


async def test_write_checkpoint_overwrites(repository: Repository):
    await repository.write_checkpoint(10)
    await repository.write_checkpoint(15)
    assert await repository.read_checkpoint() == 15


async def test_save_bet_scales_amounts(repository: Repository):
    bet = EventDecoder(PROFILE_V2).decode(V2_PAYLOAD)

    assert await repository.save_bet(bet, 3, TX, CONTRACT_A, CONTRACT_A) is True

    [row] = await repository.get_bets()
    assert row.bet is True
    assert row.has_claimed is False
    assert row.amount == Decimal("0.000000000000001000")
    assert row.claimable_amount == Decimal("0.000000000000000500")
    assert row.no_probability == Decimal(30)
    assert row.yes_probability == Decimal(70)
    assert row.block_number == 3
    assert row.transaction_hash == TX
    assert row.profile_version == "v2"
    assert row.user_address is None


async def test_duplicate_key_is_a_silent_noop(repository: Repository):
    decoder = EventDecoder(PROFILE_V2)
    first = decoder.decode(V2_PAYLOAD)
    second = decoder.decode([0, 1, 9999, 0, 1, 0, 1, 0, 1, 0])

    assert await repository.save_bet(first, 3, TX, CONTRACT_A) is True
    assert await repository.save_bet(second, 3, TX, CONTRACT_A) is False
    assert await repository.save_bet(first, 3, TX, CONTRACT_A) is False

    assert await repository.count_bets() == 1
    [row] = await repository.get_bets()
    assert row.bet is True
    assert row.amount == Decimal("0.000000000000001")


async def test_same_tx_in_another_block_is_a_new_row(repository: Repository):
    bet = EventDecoder(PROFILE_V2).decode(V2_PAYLOAD)
    assert await repository.save_bet(bet, 3, TX, CONTRACT_A)
    assert await repository.save_bet(bet, 4, TX, CONTRACT_A)
    assert await repository.count_bets() == 2


async def test_values_beyond_64_bits_keep_full_precision(repository: Repository):
    raw = PROFILE_V2.with_scales(amount_scale=None, odds_scale=None)
    huge = (1 << 256) - 1
    bet = EventDecoder(raw).decode(
        [1, 0, (1 << 128) - 1, (1 << 128) - 1, 0, 0, 0, 0, 2**64, 0]
    )

    await repository.save_bet(bet, 1, TX, CONTRACT_A)

    [row] = await repository.get_bets()
    assert row.amount == Decimal(huge)
    assert row.yes_probability == Decimal(2**64)


async def test_v1_odds_are_stored_unscaled(repository: Repository):
    bet = EventDecoder(PROFILE_V1).decode([0, 10**18, 0, 0, 0, 0, 45, 0, 55])
    await repository.save_bet(bet, 9, TX, CONTRACT_A)

    [row] = await repository.get_bets()
    assert row.amount == Decimal("1.000000000000000000")
    assert row.no_probability == Decimal(45)
    assert row.yes_probability == Decimal(55)


def sqlite_error(cls, message: str, code: int | None) -> sqlite3.Error:
    error = cls(message)
    if code is not None:
        error.sqlite_errorcode = code
    return error


@pytest.mark.parametrize(
    "error",
    [
        sqlite_error(sqlite3.OperationalError, "database is locked", sqlite3.SQLITE_BUSY),
        sqlite_error(sqlite3.OperationalError, "table is locked", sqlite3.SQLITE_LOCKED),
        sqlite_error(sqlite3.OperationalError, "disk I/O error", sqlite3.SQLITE_IOERR_READ),
        sqlite_error(sqlite3.OperationalError, "unable to open", sqlite3.SQLITE_CANTOPEN),
        sqlite_error(sqlite3.OperationalError, "database or disk is full", sqlite3.SQLITE_FULL),
    ],
    ids=lambda e: str(e),
)
async def test_environment_errors_are_transient(repository: Repository, error):
    with pytest.raises(TransientStorageError):
        with repository._errors("op"):
            raise error


@pytest.mark.parametrize(
    "error",
    [
        sqlite_error(sqlite3.OperationalError, "no such table: x", sqlite3.SQLITE_ERROR),
        sqlite_error(sqlite3.OperationalError, "no code attached", None),
        sqlite_error(sqlite3.IntegrityError, "NOT NULL constraint failed", sqlite3.SQLITE_CONSTRAINT),
    ],
    ids=lambda e: str(e),
)
async def test_schema_and_logic_errors_are_permanent(repository: Repository, error):
    with pytest.raises(StorageError) as exc:
        with repository._errors("op"):
            raise error
    assert not isinstance(exc.value, TransientStorageError)


async def test_missing_table_is_a_permanent_error(repository: Repository):
    await repository.conn.execute("DROP TABLE bet_placed")
    await repository.conn.commit()
    bet = EventDecoder(PROFILE_V2).decode(V2_PAYLOAD)

    with pytest.raises(StorageError) as exc:
        await repository.save_bet(bet, 3, TX, CONTRACT_A)

    assert not isinstance(exc.value, TransientStorageError)
    assert "no such table" in str(exc.value)


async def test_uninitialized_repository(tmp_path):
    repo = Repository(tmp_path / "never.sqlite")
    with pytest.raises(RuntimeError):
        await repo.read_checkpoint()
