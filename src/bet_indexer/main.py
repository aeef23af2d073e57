"""Main entry point for the bet indexer."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from .codec import selector_from_name
from .config import Config, ConfigError, load_config
from .contracts import Allowlist, ConfigAllowlist
from .db import Repository, StorageError
from .decoding import EventDecoder, get_profile
from .engine import IngestionEngine
from .reporting import BetLogger, setup_app_logging
from .rpc import StarknetRpcClient

logger = logging.getLogger(__name__)


class BetIndexer:
    """Main application class that wires the indexer components together."""

    def __init__(self, config: Config, allowlist: Allowlist | None = None):
        self.config = config
        self.allowlist: Allowlist = allowlist or ConfigAllowlist(config.contracts)

        self.repository = Repository(
            config.database.path,
            start_block=config.indexer.start_block,
        )
        self.rpc = StarknetRpcClient(
            config.rpc.url,
            timeout_seconds=config.rpc.timeout_seconds,
        )
        self.bet_logger = BetLogger(
            log_file=config.logging.file,
            log_level=config.logging.level,
            max_file_size_mb=config.logging.max_file_size_mb,
            backup_count=config.logging.backup_count,
        )

        profile = get_profile(config.indexer.profile).with_scales(
            amount_scale=config.indexer.amount_scale,
            odds_scale=config.indexer.odds_scale,
        )
        self.decoder = EventDecoder(profile)
        self.event_key = selector_from_name(config.indexer.event_name)
        self.engine: IngestionEngine | None = None

    async def start(self, shutdown: asyncio.Event):
        """Bootstrap storage and run the ingestion loop until shutdown."""
        logger.info("Starting bet indexer...")

        await self.repository.initialize()

        contracts = self.allowlist.active_contracts()
        if not contracts:
            logger.warning("No active contracts configured; cycles will only advance the checkpoint")

        idx = self.config.indexer
        self.engine = IngestionEngine(
            chain=self.rpc,
            repository=self.repository,
            decoder=self.decoder,
            contracts=contracts,
            event_key=self.event_key,
            page_size=self.config.rpc.page_size,
            checkpoint_policy=idx.checkpoint_policy,
            poll_interval=idx.poll_interval_seconds,
            backoff_base=idx.backoff_base_seconds,
            backoff_max=idx.backoff_max_seconds,
            on_bet=self.bet_logger.log_bet,
        )

        logger.info(
            f"Indexing {idx.event_name} (key {hex(self.event_key)}) on {len(contracts)} "
            f"contract(s), profile={self.decoder.profile.version}, "
            f"poll every {idx.poll_interval_seconds:g}s, policy={idx.checkpoint_policy}"
        )

        await self.engine.run_forever(shutdown)

    async def stop(self):
        """Release the HTTP client and database."""
        logger.info("Stopping bet indexer...")

        await self.rpc.close()
        await self.repository.close()
        self.bet_logger.close()

        if self.engine:
            stats = self.engine.stats
            logger.info(
                f"Final stats: {stats['cycles']} cycles, "
                f"{stats['events_stored']} bets stored, "
                f"{stats['failed_fetches']} failed fetches"
            )


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Bet indexer - record BetPlace events from Starknet into SQLite"
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args()


async def main_async(args) -> int:
    """Async main function. Returns the process exit code."""
    try:
        config = load_config(Path(args.config))
    except ConfigError as e:
        setup_app_logging()
        logger.error(f"Configuration error: {e}")
        return 1

    if args.debug:
        config.logging.level = "DEBUG"

    setup_app_logging(config.logging.level)

    indexer = BetIndexer(config)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    exit_code = 0
    try:
        await indexer.start(shutdown_event)
    except StorageError:
        logger.critical("Unrecoverable storage error, shutting down", exc_info=True)
        exit_code = 1
    finally:
        await indexer.stop()

    return exit_code


def main():
    """Main entry point."""
    args = parse_args()

    try:
        sys.exit(asyncio.run(main_async(args)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
