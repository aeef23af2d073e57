"""Tracked contract allowlist."""

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackedContract:
    """A contract whose events are indexed."""

    address: str  # 0x-prefixed, 64 hex chars, lowercase
    active: bool = True
    name: str | None = None


class Allowlist(Protocol):
    """Source of contracts eligible for indexing."""

    def active_contracts(self) -> list[TrackedContract]:
        """Return the contracts to poll, read once at startup."""
        ...


class ConfigAllowlist:
    """Allowlist backed by the `contracts` section of the config file."""

    def __init__(self, contracts: list[TrackedContract]):
        self._contracts = list(contracts)

    def active_contracts(self) -> list[TrackedContract]:
        active = [c for c in self._contracts if c.active]
        skipped = len(self._contracts) - len(active)
        if skipped:
            logger.info(f"Skipping {skipped} inactive contract(s)")
        return active
