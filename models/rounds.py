"""
Round catalog for single-elimination brackets.

The catalog is a fixed, ordered sequence; every bracket plays a contiguous
suffix of it ending in the final.
"""

import enum
from typing import Optional


class RoundName(enum.Enum):
    """Knockout rounds, earliest first."""
    ROUND_OF_128 = "round_of_128"
    ROUND_OF_64 = "round_of_64"
    ROUND_OF_32 = "round_of_32"
    ROUND_OF_16 = "round_of_16"
    QUARTER_FINALS = "quarter_finals"
    SEMI_FINALS = "semi_finals"
    FINAL = "final"

    @classmethod
    def ordered(cls) -> list["RoundName"]:
        """All rounds in playing order."""
        return list(cls)

    @property
    def index(self) -> int:
        return RoundName.ordered().index(self)

    def next(self) -> Optional["RoundName"]:
        """The round played after this one, or None after the final."""
        rounds = RoundName.ordered()
        position = rounds.index(self)
        if position + 1 < len(rounds):
            return rounds[position + 1]
        return None

    @property
    def is_last(self) -> bool:
        return self is RoundName.FINAL


# Sets a player must win to take a match, by round
SETS_TO_WIN: dict[RoundName, int] = {
    RoundName.ROUND_OF_128: 1,
    RoundName.ROUND_OF_64: 1,
    RoundName.ROUND_OF_32: 1,
    RoundName.ROUND_OF_16: 1,
    RoundName.QUARTER_FINALS: 2,
    RoundName.SEMI_FINALS: 3,
    RoundName.FINAL: 4,
}

# Human-readable match format, by round
MATCH_FORMATS: dict[RoundName, str] = {
    RoundName.ROUND_OF_128: "1 set knockout",
    RoundName.ROUND_OF_64: "1 set knockout",
    RoundName.ROUND_OF_32: "1 set knockout",
    RoundName.ROUND_OF_16: "1 set knockout",
    RoundName.QUARTER_FINALS: "Best of 3 sets",
    RoundName.SEMI_FINALS: "Best of 5 sets",
    RoundName.FINAL: "Best of 7 sets",
}
