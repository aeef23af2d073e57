"""BetPlace payload decoding."""

from .decoder import BetEvent, EventDecoder, Odds
from .profiles import (
    PROFILE_V1,
    PROFILE_V2,
    PROFILE_V3,
    PROFILES,
    DecodingProfile,
    WideSlot,
    WordSlot,
    get_profile,
)

__all__ = [
    "BetEvent",
    "EventDecoder",
    "Odds",
    "DecodingProfile",
    "WordSlot",
    "WideSlot",
    "PROFILE_V1",
    "PROFILE_V2",
    "PROFILE_V3",
    "PROFILES",
    "get_profile",
]
