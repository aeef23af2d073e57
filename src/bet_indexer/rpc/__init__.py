"""Starknet RPC client."""

from .client import EmittedEvent, EventPage, RpcError, StarknetRpcClient

__all__ = ["StarknetRpcClient", "EmittedEvent", "EventPage", "RpcError"]
