"""Bet logging - formats newly stored bets for console and file output."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..codec import to_storage_decimal
from ..decoding import BetEvent
from ..rpc import EmittedEvent


class BetFormatter(logging.Formatter):
    """Custom formatter for new-bet records."""

    BET_FORMAT = """
================================================================================
{timestamp} | NEW BET | block {block_number}
--------------------------------------------------------------------------------
  Direction:   {direction}
  Amount:      {amount}
  Claimed:     {has_claimed}
  Claimable:   {claimable}
  Odds:        no={no_probability} yes={yes_probability}
  User:        {user}
  Contract:    {contract}
  Tx:          {tx_hash}
================================================================================
"""

    def format(self, record: logging.LogRecord) -> str:
        if hasattr(record, "bet"):
            return self._format_bet(record)
        return super().format(record)

    def _format_bet(self, record: logging.LogRecord) -> str:
        bet: BetEvent = record.bet
        event: EmittedEvent = record.event
        p = bet.profile
        return self.BET_FORMAT.format(
            timestamp=self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            block_number=record.block_number,
            direction="YES" if bet.direction else "NO",
            amount=format(to_storage_decimal(bet.amount, p.amount_scale), "f"),
            has_claimed="yes" if bet.has_claimed else "no",
            claimable=format(to_storage_decimal(bet.claimable_amount, p.amount_scale), "f"),
            no_probability=format(to_storage_decimal(bet.odds.no_probability, p.odds_scale), "f"),
            yes_probability=format(to_storage_decimal(bet.odds.yes_probability, p.odds_scale), "f"),
            user=bet.user_address or "Unknown",
            contract=event.from_address,
            tx_hash=event.transaction_hash,
        )


class BetLogger:
    """Handles new-bet output to console and file."""

    def __init__(
        self,
        log_file: str | Path,
        log_level: str = "INFO",
        max_file_size_mb: int = 10,
        backup_count: int = 5,
    ):
        self.log_file = Path(log_file)
        self.log_level = getattr(logging, log_level.upper(), logging.INFO)
        self.max_file_size = max_file_size_mb * 1024 * 1024
        self.backup_count = backup_count

        self._logger = logging.getLogger("bet_indexer.bets")
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging handlers."""
        self._logger.setLevel(self.log_level)
        self._logger.handlers.clear()
        # Bets have their own handlers; keep them out of the root format
        self._logger.propagate = False

        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(BetFormatter())
        self._logger.addHandler(console_handler)

        file_handler = RotatingFileHandler(
            self.log_file,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
        )
        file_handler.setLevel(self.log_level)
        file_handler.setFormatter(BetFormatter())
        self._logger.addHandler(file_handler)

    def log_bet(self, bet: BetEvent, event: EmittedEvent, block_number: int):
        """Log a newly stored bet to console and file."""
        self._logger.info(
            "New bet stored",
            extra={"bet": bet, "event": event, "block_number": block_number},
        )

    def close(self):
        """Flush and detach handlers."""
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)


def setup_app_logging(level: str = "INFO"):
    """Set up application-wide logging."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
