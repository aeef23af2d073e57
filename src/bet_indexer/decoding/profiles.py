"""Positional offset tables for the known BetPlace payload layouts."""

from dataclasses import dataclass, replace
from typing import Sequence

from ..codec import FeltLike, felt_to_int, wide_from_halves


@dataclass(frozen=True)
class WordSlot:
    """A value stored in a single field element."""

    index: int

    @property
    def indices(self) -> tuple[int, ...]:
        return (self.index,)

    def read(self, data: Sequence[FeltLike]) -> int:
        return felt_to_int(data[self.index])


@dataclass(frozen=True)
class WideSlot:
    """A u256 value serialized as (low, high) 128-bit halves."""

    low: int
    high: int

    @property
    def indices(self) -> tuple[int, ...]:
        return (self.low, self.high)

    def read(self, data: Sequence[FeltLike]) -> int:
        return wide_from_halves(data[self.high], data[self.low])


Slot = WordSlot | WideSlot


@dataclass(frozen=True)
class DecodingProfile:
    """
    Where each BetEvent field lives in the event payload.

    Slots not referenced here (padding, unused high halves) are skipped.
    `amount_scale` applies to amount and claimable_amount, `odds_scale`
    to both odds values; None stores the raw integer.
    """

    version: str
    direction: WordSlot
    has_claimed: WordSlot
    amount: Slot
    claimable_amount: Slot
    no_probability: Slot
    yes_probability: Slot
    user_address: WordSlot | None = None
    amount_scale: int | None = 18
    odds_scale: int | None = None

    @property
    def slots(self) -> list[Slot]:
        slots: list[Slot] = [
            self.direction,
            self.has_claimed,
            self.amount,
            self.claimable_amount,
            self.no_probability,
            self.yes_probability,
        ]
        if self.user_address is not None:
            slots.append(self.user_address)
        return slots

    @property
    def min_length(self) -> int:
        """Number of slots a payload needs for every offset to be readable."""
        return max(i for slot in self.slots for i in slot.indices) + 1

    def with_scales(self, amount_scale: int | None, odds_scale: int | None) -> "DecodingProfile":
        return replace(self, amount_scale=amount_scale, odds_scale=odds_scale)


# Low words only; the u256 high halves at 2, 5 and 7 are ignored
PROFILE_V1 = DecodingProfile(
    version="v1",
    direction=WordSlot(0),
    amount=WordSlot(1),
    has_claimed=WordSlot(3),
    claimable_amount=WordSlot(4),
    no_probability=WordSlot(6),
    yes_probability=WordSlot(8),
)

PROFILE_V2 = DecodingProfile(
    version="v2",
    direction=WordSlot(0),
    has_claimed=WordSlot(1),
    amount=WideSlot(low=2, high=3),
    claimable_amount=WideSlot(low=4, high=5),
    no_probability=WideSlot(low=6, high=7),
    yes_probability=WideSlot(low=8, high=9),
)

PROFILE_V3 = DecodingProfile(
    version="v3",
    user_address=WordSlot(0),
    direction=WordSlot(1),
    has_claimed=WordSlot(2),
    amount=WideSlot(low=3, high=4),
    claimable_amount=WideSlot(low=5, high=6),
    no_probability=WideSlot(low=7, high=8),
    yes_probability=WideSlot(low=9, high=10),
)

PROFILES: dict[str, DecodingProfile] = {
    p.version: p for p in (PROFILE_V1, PROFILE_V2, PROFILE_V3)
}


def get_profile(version: str) -> DecodingProfile:
    """Look up a built-in profile by its version tag."""
    try:
        return PROFILES[version]
    except KeyError:
        raise KeyError(
            f"Unknown decoding profile {version!r} (known: {', '.join(sorted(PROFILES))})"
        ) from None
