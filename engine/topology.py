"""
Round Topology Calculator

Maps a participant count onto the rounds a bracket plays and the number of
matches in each. Bracket sizes come from a fixed threshold table rather than
a log2 computation so tournament-size boundaries never shift.
"""

import math
from dataclasses import dataclass

from engine.errors import InsufficientParticipantsError
from models.rounds import RoundName


# (largest participant count, rounds played), checked in order
ROUND_BUCKETS: tuple[tuple[int, tuple[RoundName, ...]], ...] = (
    (16, (
        RoundName.ROUND_OF_16,
        RoundName.QUARTER_FINALS,
        RoundName.SEMI_FINALS,
        RoundName.FINAL,
    )),
    (32, (
        RoundName.ROUND_OF_32,
        RoundName.ROUND_OF_16,
        RoundName.QUARTER_FINALS,
        RoundName.SEMI_FINALS,
        RoundName.FINAL,
    )),
    (64, (
        RoundName.ROUND_OF_64,
        RoundName.ROUND_OF_32,
        RoundName.ROUND_OF_16,
        RoundName.QUARTER_FINALS,
        RoundName.SEMI_FINALS,
        RoundName.FINAL,
    )),
)

# Anything above the last bucket plays the full catalog
LARGEST_ROUNDS: tuple[RoundName, ...] = tuple(RoundName.ordered())


@dataclass(frozen=True)
class RoundTopology:
    """Shape of a bracket for a given participant count."""
    participant_count: int
    round_names: tuple[RoundName, ...]
    first_round_matches: int

    @property
    def total_rounds(self) -> int:
        return len(self.round_names)

    def matches_in_round(self, round_index: int) -> int:
        """
        Matches in round ``round_index`` (0 = first round).

        Rounds up at every level so an odd count carries a bye upward.
        """
        return math.ceil(self.first_round_matches / 2 ** round_index)

    @property
    def matches_per_round(self) -> dict[RoundName, int]:
        return {
            name: self.matches_in_round(index)
            for index, name in enumerate(self.round_names)
        }

    @property
    def total_matches(self) -> int:
        return sum(self.matches_per_round.values())


def rounds_for(participant_count: int) -> tuple[RoundName, ...]:
    """Round names played by a field of ``participant_count``."""
    for limit, round_names in ROUND_BUCKETS:
        if participant_count <= limit:
            return round_names
    return LARGEST_ROUNDS


def calculate_topology(participant_count: int) -> RoundTopology:
    """
    Derive rounds and first-round size from a participant count.

    Args:
        participant_count: Number of confirmed participants (at least 2)

    Returns:
        RoundTopology with ceil(n / 2) first-round matches
    """
    if participant_count < 2:
        raise InsufficientParticipantsError(
            f"A bracket needs at least 2 participants, got {participant_count}"
        )

    return RoundTopology(
        participant_count=participant_count,
        round_names=rounds_for(participant_count),
        first_round_matches=math.ceil(participant_count / 2),
    )
