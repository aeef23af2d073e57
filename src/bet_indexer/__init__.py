"""Checkpointed Starknet BetPlace event indexer."""

__version__ = "0.1.0"
