"""Ingestion engine - polls the chain and persists decoded bets."""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Literal, Protocol, Sequence

import httpx

from .contracts import TrackedContract
from .decoding import BetEvent, EventDecoder
from .db import Repository, TransientStorageError
from .rpc import EmittedEvent, RpcError

logger = logging.getLogger(__name__)

CheckpointPolicy = Literal["contiguous", "skip_ahead"]
CHECKPOINT_POLICIES: tuple[str, ...] = ("contiguous", "skip_ahead")

FETCH_ERRORS = (RpcError, httpx.HTTPError)
TRANSIENT_ERRORS = (RpcError, httpx.HTTPError, TransientStorageError)

# Backoff stops doubling after this many consecutive failures
MAX_BACKOFF_EXPONENT = 16

BetCallback = Callable[[BetEvent, EmittedEvent, int], None]


class ChainClient(Protocol):
    """What the engine needs from a chain node."""

    async def block_number(self) -> int:
        """Return the latest block number."""
        ...

    def iter_events(
        self,
        address: str,
        from_block: int,
        to_block: int,
        keys: Sequence[int],
        chunk_size: int = 100,
    ) -> AsyncIterator[EmittedEvent]:
        """Yield every matching event across all pages."""
        ...


@dataclass
class CycleResult:
    """Outcome of a single ingestion cycle."""

    from_block: int
    to_block: int
    checkpoint: int
    events_seen: int = 0
    events_stored: int = 0
    duplicates: int = 0
    decode_failures: int = 0
    failed_fetches: int = 0

    @property
    def idle(self) -> bool:
        return self.to_block < self.from_block


class IngestionEngine:
    """
    Runs the checkpointed ingestion cycle.

    Each cycle reads the checkpoint, asks the chain for its height and
    walks every new block for every tracked contract. The checkpoint is
    only written once all (block, contract) pairs have been attempted.
    """

    def __init__(
        self,
        chain: ChainClient,
        repository: Repository,
        decoder: EventDecoder,
        contracts: list[TrackedContract],
        event_key: int,
        page_size: int = 100,
        checkpoint_policy: CheckpointPolicy = "contiguous",
        poll_interval: float = 30.0,
        backoff_base: float = 1.0,
        backoff_max: float = 60.0,
        on_bet: BetCallback | None = None,
    ):
        if checkpoint_policy not in CHECKPOINT_POLICIES:
            raise ValueError(f"Unknown checkpoint policy: {checkpoint_policy}")

        self.chain = chain
        self.repository = repository
        self.decoder = decoder
        self.contracts = contracts
        self.event_key = event_key
        self.page_size = page_size
        self.checkpoint_policy = checkpoint_policy
        self.poll_interval = poll_interval
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.on_bet = on_bet

        self._cycles = 0
        self._events_stored = 0
        self._failed_fetches = 0

    async def run_cycle(self) -> CycleResult:
        """Process every block between the checkpoint and the chain head once."""
        checkpoint = await self.repository.read_checkpoint()
        head = await self.chain.block_number()
        self._cycles += 1

        result = CycleResult(from_block=checkpoint + 1, to_block=head, checkpoint=checkpoint)

        logger.info(f"Last processed block: {checkpoint}, latest block: {head}")
        if head <= checkpoint:
            logger.info("No new blocks to process")
            return result

        logger.info(f"Processing blocks {checkpoint + 1} to {head}")

        first_failed: int | None = None
        for block_number in range(checkpoint + 1, head + 1):
            for contract in self.contracts:
                ok = await self._process_block(block_number, contract, result)
                if not ok and first_failed is None:
                    first_failed = block_number

        new_checkpoint = self._next_checkpoint(checkpoint, head, first_failed)
        if new_checkpoint != checkpoint:
            await self.repository.write_checkpoint(new_checkpoint)
        result.checkpoint = new_checkpoint

        if first_failed is not None and self.checkpoint_policy == "contiguous":
            logger.warning(
                f"Fetch failed at block {first_failed}; checkpoint held at {new_checkpoint}"
            )

        logger.info(
            f"Cycle done: {result.events_stored} stored, {result.duplicates} duplicates, "
            f"{result.decode_failures} undecodable, {result.failed_fetches} failed fetches, "
            f"checkpoint={new_checkpoint}"
        )
        return result

    def _next_checkpoint(self, checkpoint: int, head: int, first_failed: int | None) -> int:
        if self.checkpoint_policy == "skip_ahead" or first_failed is None:
            return head
        return max(checkpoint, first_failed - 1)

    async def _process_block(
        self,
        block_number: int,
        contract: TrackedContract,
        result: CycleResult,
    ) -> bool:
        """
        Fetch, decode and store the events of one contract in one block.

        Returns:
            False if the fetch failed, True otherwise
        """
        logger.debug(f"Fetching events for block {block_number} on contract {contract.address}")

        fetched = 0
        try:
            async for event in self.chain.iter_events(
                contract.address,
                block_number,
                block_number,
                [self.event_key],
                chunk_size=self.page_size,
            ):
                fetched += 1
                await self._handle_event(event, block_number, contract, result)
        except FETCH_ERRORS as e:
            result.failed_fetches += 1
            self._failed_fetches += 1
            logger.error(
                f"Error fetching events for block {block_number} "
                f"on contract {contract.address}: {e}"
            )
            return False

        logger.debug(f"Fetched {fetched} event(s) for block {block_number}")
        return True

    async def _handle_event(
        self,
        event: EmittedEvent,
        block_number: int,
        contract: TrackedContract,
        result: CycleResult,
    ):
        result.events_seen += 1

        bet = self.decoder.decode(event.data)
        if bet is None:
            result.decode_failures += 1
            logger.warning(
                f"Skipping undecodable event in tx {event.transaction_hash} "
                f"(block {block_number})"
            )
            return

        inserted = await self.repository.save_bet(
            bet,
            block_number=block_number,
            transaction_hash=event.transaction_hash,
            from_address=event.from_address,
            contract_address=contract.address,
        )
        if not inserted:
            result.duplicates += 1
            return

        result.events_stored += 1
        self._events_stored += 1
        if self.on_bet:
            self.on_bet(bet, event, block_number)

    async def run_forever(self, shutdown: asyncio.Event | None = None):
        """
        Run cycles until `shutdown` is set.

        Transient RPC and storage failures back off exponentially and retry
        the whole cycle; permanent storage errors propagate.
        """
        shutdown = shutdown or asyncio.Event()
        failures = 0

        while not shutdown.is_set():
            try:
                await self.run_cycle()
                failures = 0
                delay = self.poll_interval
            except TRANSIENT_ERRORS as e:
                delay = min(
                    self.backoff_base * 2 ** min(failures, MAX_BACKOFF_EXPONENT),
                    self.backoff_max,
                )
                failures += 1
                logger.error(f"Cycle failed ({type(e).__name__}: {e}); retrying in {delay:.1f}s")

            if await self._sleep(shutdown, delay):
                break

    @staticmethod
    async def _sleep(shutdown: asyncio.Event, seconds: float) -> bool:
        """Sleep, waking early on shutdown. Returns True if shutdown was requested."""
        try:
            await asyncio.wait_for(shutdown.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    @property
    def stats(self) -> dict:
        """Get engine statistics."""
        return {
            "cycles": self._cycles,
            "events_stored": self._events_stored,
            "failed_fetches": self._failed_fetches,
            "contracts_tracked": len(self.contracts),
        }
