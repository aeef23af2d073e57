"""Shared fixtures: a temporary repository and an in-memory chain."""

import pytest
import pytest_asyncio

from bet_indexer.codec import felt_to_hex
from bet_indexer.db import Repository
from bet_indexer.rpc import EmittedEvent, RpcError

CONTRACT_A = felt_to_hex(0xA11CE)
CONTRACT_B = felt_to_hex(0xB0B)

# direction, has_claimed, amount (lo, hi), claimable (lo, hi), no (lo, hi), yes (lo, hi)
V2_PAYLOAD = [1, 0, 1000, 0, 500, 0, 30, 0, 70, 0]


def make_event(
    data: list[int],
    block_number: int,
    tx: int,
    contract: str = CONTRACT_A,
) -> EmittedEvent:
    return EmittedEvent(
        from_address=contract,
        keys=[0],
        data=list(data),
        block_number=block_number,
        transaction_hash=felt_to_hex(tx),
    )


class FakeChain:
    """In-memory stand-in for the Starknet RPC client."""

    def __init__(self, height: int, events=None, failing=None):
        self.height = height
        self.events: dict[tuple[int, str], list[EmittedEvent]] = events or {}
        self.failing: set[tuple[int, str]] = set(failing or ())
        self.fetches: list[tuple[int, str]] = []
        self.height_calls = 0

    def add(self, event: EmittedEvent, contract: str = CONTRACT_A):
        self.events.setdefault((event.block_number, contract), []).append(event)

    async def block_number(self) -> int:
        self.height_calls += 1
        return self.height

    async def iter_events(self, address, from_block, to_block, keys, chunk_size=100):
        assert from_block == to_block
        self.fetches.append((from_block, address))
        if (from_block, address) in self.failing:
            raise RpcError(f"node unavailable for block {from_block}")
        for event in self.events.get((from_block, address), []):
            yield event


@pytest_asyncio.fixture
async def repository(tmp_path):
    repo = Repository(tmp_path / "bets.sqlite")
    await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
def chain():
    return FakeChain(height=0)
