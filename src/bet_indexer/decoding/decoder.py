"""Event decoder - turns a raw BetPlace payload into a typed record."""

import logging
from dataclasses import dataclass
from typing import Sequence

from ..codec import FeltLike, felt_to_bool, felt_to_hex
from .profiles import DecodingProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Odds:
    """Probability weights attached to a bet."""

    no_probability: int
    yes_probability: int


@dataclass(frozen=True)
class BetEvent:
    """A decoded BetPlace event."""

    direction: bool  # True bets "yes"
    amount: int
    has_claimed: bool
    claimable_amount: int
    odds: Odds
    profile: DecodingProfile
    user_address: str | None = None


class EventDecoder:
    """Decodes payloads positionally according to one DecodingProfile."""

    def __init__(self, profile: DecodingProfile):
        self.profile = profile

    def decode(self, data: Sequence[FeltLike]) -> BetEvent | None:
        """
        Decode one event payload.

        Args:
            data: Ordered field elements attached to the event

        Returns:
            BetEvent, or None if the payload is too short for the profile
        """
        p = self.profile
        if len(data) < p.min_length:
            logger.warning(
                f"Event payload too short for profile {p.version}: "
                f"{len(data)} slots, need {p.min_length}"
            )
            return None

        return BetEvent(
            direction=felt_to_bool(data[p.direction.index]),
            amount=p.amount.read(data),
            has_claimed=felt_to_bool(data[p.has_claimed.index]),
            claimable_amount=p.claimable_amount.read(data),
            odds=Odds(
                no_probability=p.no_probability.read(data),
                yes_probability=p.yes_probability.read(data),
            ),
            profile=p,
            user_address=felt_to_hex(data[p.user_address.index])
            if p.user_address is not None
            else None,
        )
