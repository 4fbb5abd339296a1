"""
Match and MatchSet models.

A match record is the authoritative result of one bracket node: who played,
the sets, and the derived winner and loser.
"""

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Integer, ForeignKey, DateTime, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base
from models.rounds import RoundName, SETS_TO_WIN, MATCH_FORMATS

if TYPE_CHECKING:
    from models.tournament import Tournament


class MatchStatus(enum.Enum):
    """Match lifecycle states."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SetWinner(enum.Enum):
    """Outcome of a single set."""
    PLAYER1 = "player1"
    PLAYER2 = "player2"
    DRAW = "draw"

    @classmethod
    def from_scores(cls, player1_score: int, player2_score: int) -> "SetWinner":
        if player1_score > player2_score:
            return cls.PLAYER1
        if player2_score > player1_score:
            return cls.PLAYER2
        return cls.DRAW


class Match(Base):
    """
    A contest between the two participants of a bracket node.

    Format depends on the round:
    - Round of 128 through Round of 16: 1 set knockout
    - Quarter-finals: best of 3 sets
    - Semi-finals: best of 5 sets
    - Final: best of 7 sets
    """
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(
        ForeignKey("tournaments.id"),
        nullable=False
    )

    round: Mapped[RoundName] = mapped_column(SAEnum(RoundName), nullable=False)
    match_number: Mapped[int] = mapped_column(Integer, nullable=False)

    player1_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player2_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    status: Mapped[MatchStatus] = mapped_column(
        SAEnum(MatchStatus),
        default=MatchStatus.SCHEDULED
    )

    # Result
    winner_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    loser_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_walkover: Mapped[bool] = mapped_column(default=False)
    walkover_reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Timing
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc)
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    tournament: Mapped["Tournament"] = relationship(back_populates="matches")
    sets: Mapped[list["MatchSet"]] = relationship(
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchSet.sequence"
    )

    def __repr__(self) -> str:
        return (
            f"<Match(id={self.id}, #{self.match_number} {self.round.value}, "
            f"status={self.status})>"
        )

    @property
    def sets_to_win(self) -> int:
        """Set wins required to take this match."""
        return SETS_TO_WIN[self.round]

    @property
    def match_format(self) -> str:
        return MATCH_FORMATS[self.round]

    @property
    def player1_set_wins(self) -> int:
        return sum(1 for s in self.sets if s.winner == SetWinner.PLAYER1)

    @property
    def player2_set_wins(self) -> int:
        return sum(1 for s in self.sets if s.winner == SetWinner.PLAYER2)

    @property
    def is_decided(self) -> bool:
        """True once either side has reached the required set wins."""
        required = self.sets_to_win
        return self.player1_set_wins >= required or self.player2_set_wins >= required


class MatchSet(Base):
    """
    One set of a match.

    Scores run from 0 to 11. Equal scores are recorded as a draw and count
    towards neither player.
    """
    __tablename__ = "match_sets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(
        ForeignKey("matches.id"),
        nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    player1_score: Mapped[int] = mapped_column(Integer, nullable=False)
    player2_score: Mapped[int] = mapped_column(Integer, nullable=False)
    winner: Mapped[SetWinner] = mapped_column(SAEnum(SetWinner), nullable=False)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    match: Mapped["Match"] = relationship(back_populates="sets")

    def __repr__(self) -> str:
        return f"<MatchSet(match={self.match_id}, #{self.sequence}, {self.player1_score}-{self.player2_score})>"
