"""
Tournament model.

A tournament owns at most one bracket and the match records played in it.
Registration, payments and accounts live outside this package; the
tournament only tracks the phase it is in and the final placings.
"""

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Integer, DateTime, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base

if TYPE_CHECKING:
    from models.bracket import Bracket
    from models.match import Match


class TournamentStatus(enum.Enum):
    """Tournament lifecycle phases."""
    REGISTRATION = "registration"
    SEEDING = "seeding"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Tournament(Base):
    """
    A single-elimination tournament.

    Phases: registration -> seeding (bracket built) -> active (bracket
    seeded or first result in) -> completed (final decided).
    """
    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    max_participants: Mapped[int] = mapped_column(Integer, default=128)

    status: Mapped[TournamentStatus] = mapped_column(
        SAEnum(TournamentStatus),
        default=TournamentStatus.REGISTRATION
    )

    # Placings
    champion_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    runner_up_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc)
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    bracket: Mapped[Optional["Bracket"]] = relationship(
        back_populates="tournament",
        uselist=False,
        cascade="all, delete-orphan"
    )
    matches: Mapped[list["Match"]] = relationship(
        back_populates="tournament",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Tournament(id={self.id}, name='{self.name}', status={self.status})>"

    def mark_started(self) -> None:
        """Leave the pre-play phases."""
        if self.status in (TournamentStatus.REGISTRATION, TournamentStatus.SEEDING):
            self.status = TournamentStatus.ACTIVE
            self.started_at = datetime.now(timezone.utc)

    def mark_completed(self, champion_id: int, runner_up_id: Optional[int]) -> None:
        """Record the final placings."""
        self.status = TournamentStatus.COMPLETED
        self.champion_id = champion_id
        self.runner_up_id = runner_up_id
        self.completed_at = datetime.now(timezone.utc)
