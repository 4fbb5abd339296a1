"""
Pydantic schemas for data validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, StrictInt, field_validator

from config import BRACKET_SETTINGS
from models.rounds import RoundName
from models.tournament import TournamentStatus
from models.bracket import BracketStatus, NodeStatus
from models.match import MatchStatus, SetWinner


# ============ Tournament Schemas ============

class TournamentCreate(BaseModel):
    """Schema for creating a new tournament."""
    name: str = Field(..., min_length=1, max_length=100)
    max_participants: int = Field(
        default=BRACKET_SETTINGS.max_participants,
        ge=BRACKET_SETTINGS.min_participants,
        le=BRACKET_SETTINGS.max_participants,
    )

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()


class TournamentResponse(BaseModel):
    """Schema for tournament response."""
    id: int
    name: str
    max_participants: int
    status: TournamentStatus
    champion_id: Optional[int]
    runner_up_id: Optional[int]
    created_at: datetime
    started_at: Optional[datetime]
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


# ============ Result Schemas ============

class SetScore(BaseModel):
    """
    Scores of one set, player 1 first.

    Only the type is checked here; the range depends on the service's
    configured maximum and is enforced by MatchResultRecorder.
    """
    player1_score: StrictInt
    player2_score: StrictInt


class MatchResultCreate(BaseModel):
    """Schema for recording a node result."""
    winner_id: int
    sets: Optional[list[SetScore]] = None
    walkover: bool = False
    walkover_reason: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("sets", mode="before")
    @classmethod
    def accept_score_pairs(cls, v):
        # (11, 9) is shorthand for {"player1_score": 11, "player2_score": 9}
        if v is None:
            return v
        return [
            {"player1_score": s[0], "player2_score": s[1]}
            if isinstance(s, (tuple, list)) and len(s) == 2 else s
            for s in v
        ]


# ============ Bracket Schemas ============

class ParticipantRef(BaseModel):
    """A participant identity, with a display name when one is known."""
    id: int
    name: Optional[str] = None


class MatchSetResponse(BaseModel):
    """Schema for set response."""
    sequence: int
    player1_score: int
    player2_score: int
    winner: SetWinner

    class Config:
        from_attributes = True


class MatchResponse(BaseModel):
    """Schema for match record response."""
    id: int
    round: RoundName
    match_number: int
    player1_id: Optional[int]
    player2_id: Optional[int]
    status: MatchStatus
    winner_id: Optional[int]
    loser_id: Optional[int]
    is_walkover: bool
    walkover_reason: Optional[str]
    notes: Optional[str]
    sets_to_win: int
    match_format: str
    player1_set_wins: int
    player2_set_wins: int
    sets: list[MatchSetResponse] = []
    started_at: Optional[datetime]
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


class NodeResponse(BaseModel):
    """Schema for a bracket node."""
    id: int
    round: RoundName
    match_number: int
    position_x: int
    position_y: int
    player1: Optional[ParticipantRef] = None
    player2: Optional[ParticipantRef] = None
    winner: Optional[ParticipantRef] = None
    match_id: Optional[int] = None
    status: NodeStatus
    is_bye: bool


class BracketResponse(BaseModel):
    """Schema for a full bracket."""
    id: int
    tournament_id: int
    round_names: list[RoundName]
    total_rounds: int
    current_round: RoundName
    status: BracketStatus
    is_seeded: bool
    generated_at: datetime
    total_matches: int
    first_round_matches: int
    nodes: list[NodeResponse] = []


class RoundStats(BaseModel):
    """Node counts for one round."""
    total: int = 0
    completed: int = 0
    pending: int = 0
    in_progress: int = 0


class BracketStats(BaseModel):
    """Aggregate completion statistics for a bracket."""
    bracket_id: int
    total_matches: int
    completed_matches: int
    pending_matches: int
    in_progress_matches: int
    current_round: RoundName
    total_rounds: int
    is_seeded: bool
    status: BracketStatus
    round_stats: dict[str, RoundStats] = {}


class RecordedResult(BaseModel):
    """Outcome of recording a node result."""
    node: NodeResponse
    match: Optional[MatchResponse] = None
    advanced_to_node_id: Optional[int] = None
    current_round: RoundName
    bracket_status: BracketStatus
