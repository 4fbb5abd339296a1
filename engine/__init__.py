"""
Bracketry Bracket Engine

Core single-elimination logic: topology, building, seeding, result
recording and winner advancement. Operates on ORM objects and performs no
session handling of its own.
"""

from engine.errors import (
    BracketError,
    NotFoundError,
    InvalidStateError,
    AlreadyExistsError,
    AlreadyCompletedError,
    MatchCancelledError,
    InsufficientParticipantsError,
    InvalidScoreError,
    InconsistentWinnerError,
)
from engine.topology import RoundTopology, calculate_topology, rounds_for
from engine.builder import BracketBuilder
from engine.seeding import apply_seeding
from engine.results import MatchResultRecorder, RecordOutcome
from engine.advancement import AdvancementEngine, AdvancementResult

__all__ = [
    "BracketError",
    "NotFoundError",
    "InvalidStateError",
    "AlreadyExistsError",
    "AlreadyCompletedError",
    "MatchCancelledError",
    "InsufficientParticipantsError",
    "InvalidScoreError",
    "InconsistentWinnerError",
    "RoundTopology",
    "calculate_topology",
    "rounds_for",
    "BracketBuilder",
    "apply_seeding",
    "MatchResultRecorder",
    "RecordOutcome",
    "AdvancementEngine",
    "AdvancementResult",
]
