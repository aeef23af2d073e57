"""Client for the Starknet JSON-RPC API - chain height and event queries."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Sequence

import httpx

from ..codec import FeltLike, felt_to_hex, felt_to_int

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """The node answered with a JSON-RPC error or a malformed result."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


@dataclass
class EmittedEvent:
    """An event occurrence as returned by starknet_getEvents."""

    from_address: str
    keys: list[int]
    data: list[int]
    block_number: int | None  # None while pending
    transaction_hash: str
    block_hash: str | None = None


@dataclass
class EventPage:
    """One page of starknet_getEvents results."""

    events: list[EmittedEvent] = field(default_factory=list)
    continuation_token: str | None = None


def _parse_event(item: dict[str, Any]) -> EmittedEvent:
    return EmittedEvent(
        from_address=felt_to_hex(item["from_address"]),
        keys=[felt_to_int(k) for k in item.get("keys", [])],
        data=[felt_to_int(d) for d in item.get("data", [])],
        block_number=int(item["block_number"]) if item.get("block_number") is not None else None,
        transaction_hash=felt_to_hex(item["transaction_hash"]),
        block_hash=felt_to_hex(item["block_hash"]) if item.get("block_hash") else None,
    )


class StarknetRpcClient:
    """Minimal Starknet JSON-RPC client over HTTP."""

    MAX_ATTEMPTS = 3  # for HTTP 429 only

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)
        self._request_id = 0

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def _call(self, method: str, params: Any) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}

        for attempt in range(self.MAX_ATTEMPTS):
            response = await self._client.post(self.url, json=payload)
            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                delay = (
                    max(1.0, float(retry_after))
                    if retry_after and retry_after.isdigit()
                    else 1.0 * (2**attempt)
                )
                logger.warning(f"{method} rate limited, retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
                continue

            response.raise_for_status()

            try:
                data = response.json()
            except ValueError as e:
                raise RpcError(f"{method}: response is not JSON") from e

            if "error" in data:
                err = data["error"]
                if isinstance(err, dict):
                    raise RpcError(f"{method}: {err.get('message')}", code=err.get("code"))
                raise RpcError(f"{method}: {err}")

            if "result" not in data:
                raise RpcError(f"{method}: response has no result")
            return data["result"]

        raise RpcError(f"{method}: retries exhausted after rate limiting")

    async def block_number(self) -> int:
        """Get the latest accepted block number."""
        result = await self._call("starknet_blockNumber", [])
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise RpcError(f"starknet_blockNumber: unexpected result {result!r}") from e

    async def get_events(
        self,
        address: str,
        from_block: int,
        to_block: int,
        keys: Sequence[FeltLike],
        chunk_size: int = 100,
        continuation_token: str | None = None,
    ) -> EventPage:
        """
        Fetch one page of events emitted by `address` in [from_block, to_block].

        Args:
            address: Emitting contract address
            from_block: First block, inclusive
            to_block: Last block, inclusive
            keys: Accepted values for the first event key (the selector)
            chunk_size: Page size requested from the node
            continuation_token: Token returned by the previous page, if any

        Returns:
            EventPage with the events and the token for the next page
        """
        event_filter: dict[str, Any] = {
            "from_block": {"block_number": from_block},
            "to_block": {"block_number": to_block},
            "address": felt_to_hex(address),
            "keys": [[hex(felt_to_int(k)) for k in keys]],
            "chunk_size": chunk_size,
        }
        if continuation_token:
            event_filter["continuation_token"] = continuation_token

        result = await self._call("starknet_getEvents", {"filter": event_filter})

        try:
            events = [_parse_event(item) for item in result["events"]]
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(f"starknet_getEvents: malformed event in result: {e}") from e

        return EventPage(events=events, continuation_token=result.get("continuation_token"))

    async def iter_events(
        self,
        address: str,
        from_block: int,
        to_block: int,
        keys: Sequence[FeltLike],
        chunk_size: int = 100,
    ) -> AsyncIterator[EmittedEvent]:
        """Yield every matching event, following continuation tokens."""
        token: str | None = None
        while True:
            page = await self.get_events(
                address, from_block, to_block, keys, chunk_size, continuation_token=token
            )
            for event in page.events:
                yield event
            token = page.continuation_token
            if not token:
                break
