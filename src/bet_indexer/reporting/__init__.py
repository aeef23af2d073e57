"""Log output for stored bets and the application."""

from .logger import BetFormatter, BetLogger, setup_app_logging

__all__ = ["BetFormatter", "BetLogger", "setup_app_logging"]
