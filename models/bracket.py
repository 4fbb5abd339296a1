"""
Bracket and BracketNode models.

A bracket belongs to exactly one tournament and owns a fixed set of nodes,
one per match slot, created in bulk when the bracket is generated.
"""

import enum
import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    String, Integer, DateTime, Text, ForeignKey, UniqueConstraint,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base
from models.rounds import RoundName

if TYPE_CHECKING:
    from models.tournament import Tournament
    from models.match import Match


class BracketStatus(enum.Enum):
    """Bracket lifecycle states."""
    GENERATING = "generating"
    GENERATED = "generated"
    ACTIVE = "active"
    COMPLETED = "completed"


class NodeStatus(enum.Enum):
    """Bracket node states."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Bracket(Base):
    """
    Single-elimination bracket for one tournament.

    ``current_round`` only ever moves forward through ``round_names`` and
    only once every node of the round it leaves is completed.
    """
    __tablename__ = "brackets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(
        ForeignKey("tournaments.id"),
        nullable=False,
        unique=True
    )

    # Round window: JSON list of RoundName values, first round first
    round_names_json: Mapped[str] = mapped_column(Text, nullable=False)
    total_rounds: Mapped[int] = mapped_column(Integer, nullable=False)
    current_round: Mapped[RoundName] = mapped_column(SAEnum(RoundName), nullable=False)

    status: Mapped[BracketStatus] = mapped_column(
        SAEnum(BracketStatus),
        default=BracketStatus.GENERATING
    )
    is_seeded: Mapped[bool] = mapped_column(default=False)

    # Timestamps
    generated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc)
    )
    activated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    tournament: Mapped["Tournament"] = relationship(back_populates="bracket")
    nodes: Mapped[list["BracketNode"]] = relationship(
        back_populates="bracket",
        cascade="all, delete-orphan",
        order_by="BracketNode.match_number"
    )

    def __repr__(self) -> str:
        return (
            f"<Bracket(id={self.id}, tournament={self.tournament_id}, "
            f"round={self.current_round}, status={self.status})>"
        )

    @property
    def round_names(self) -> list[RoundName]:
        """Rounds played in this bracket, first round first."""
        if self.round_names_json:
            return [RoundName(value) for value in json.loads(self.round_names_json)]
        return []

    @round_names.setter
    def round_names(self, value: list[RoundName]) -> None:
        self.round_names_json = json.dumps([r.value for r in value])
        self.total_rounds = len(value)

    @property
    def first_round(self) -> RoundName:
        return self.round_names[0]

    @property
    def last_round(self) -> RoundName:
        return self.round_names[-1]

    def nodes_in_round(self, round_name: RoundName) -> list["BracketNode"]:
        """Nodes of one round ordered by horizontal slot."""
        return sorted(
            (n for n in self.nodes if n.round == round_name),
            key=lambda n: n.position_x
        )

    def get_node(self, node_id: int) -> Optional["BracketNode"]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def next_round(self, round_name: RoundName) -> Optional[RoundName]:
        """Round following ``round_name`` in the fixed order, if this bracket plays it."""
        following = round_name.next()
        if following is not None and following in self.round_names:
            return following
        return None

    def previous_round(self, round_name: RoundName) -> Optional[RoundName]:
        rounds = self.round_names
        position = rounds.index(round_name)
        return rounds[position - 1] if position > 0 else None

    def feeder_nodes(
        self,
        node: "BracketNode"
    ) -> tuple[Optional["BracketNode"], Optional["BracketNode"]]:
        """
        The previous-round nodes whose winners fill ``node``'s two slots.

        Slot 1 is fed from x = 2 * node.x, slot 2 from x = 2 * node.x + 1.
        A missing feeder means the slot can never be filled.
        """
        previous = self.previous_round(node.round)
        if previous is None:
            return None, None
        sources = self.nodes_in_round(previous)
        left = 2 * node.position_x
        right = left + 1
        return (
            sources[left] if left < len(sources) else None,
            sources[right] if right < len(sources) else None,
        )

    def open_slots(self, node: "BracketNode") -> list[int]:
        """
        Empty slots (1 or 2) still waiting on an undecided feeder match.

        A node with no open slots is ready to be played, or advanced as a
        bye when only one participant will ever arrive.
        """
        waiting = []
        for side, feeder in enumerate(self.feeder_nodes(node), start=1):
            if node.slot(side) is not None or feeder is None:
                continue
            if feeder.status not in (NodeStatus.COMPLETED, NodeStatus.CANCELLED):
                waiting.append(side)
        return waiting

    def is_round_complete(self, round_name: RoundName) -> bool:
        """A round is complete when every one of its nodes is completed."""
        round_nodes = self.nodes_in_round(round_name)
        return bool(round_nodes) and all(
            n.status == NodeStatus.COMPLETED for n in round_nodes
        )

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def mark_generated(self) -> None:
        self.status = BracketStatus.GENERATED
        self.current_round = self.first_round

    def mark_active(self) -> bool:
        """Activate a generated bracket. Returns True if the status changed."""
        if self.status == BracketStatus.GENERATED:
            self.status = BracketStatus.ACTIVE
            self.activated_at = datetime.now(timezone.utc)
            return True
        return False

    def advance_current_round(self) -> Optional[RoundName]:
        """
        Move ``current_round`` one step forward if the current round is complete.

        Returns the new current round, or None when the round is still open
        or already the last one.
        """
        if not self.is_round_complete(self.current_round):
            return None
        following = self.next_round(self.current_round)
        if following is None:
            return None
        self.current_round = following
        return following

    def mark_completed(self) -> None:
        self.status = BracketStatus.COMPLETED
        self.completed_at = datetime.now(timezone.utc)


class BracketNode(Base):
    """
    One match slot in a bracket.

    ``position_y`` is the round index and ``position_x`` the slot within the
    round; the winner moves to slot ``x // 2`` of the next round, into
    participant 1 when ``x`` is even and participant 2 when it is odd.
    """
    __tablename__ = "bracket_nodes"
    __table_args__ = (
        UniqueConstraint("bracket_id", "match_number", name="uq_bracket_match_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    bracket_id: Mapped[int] = mapped_column(
        ForeignKey("brackets.id"),
        nullable=False
    )

    round: Mapped[RoundName] = mapped_column(SAEnum(RoundName), nullable=False)
    match_number: Mapped[int] = mapped_column(Integer, nullable=False)
    position_x: Mapped[int] = mapped_column(Integer, nullable=False)
    position_y: Mapped[int] = mapped_column(Integer, nullable=False)

    # Participant identities (owned by the registration system)
    player1_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player2_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    winner_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    match_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("matches.id"),
        nullable=True
    )

    status: Mapped[NodeStatus] = mapped_column(
        SAEnum(NodeStatus),
        default=NodeStatus.PENDING
    )
    is_bye: Mapped[bool] = mapped_column(default=False)

    # Relationships
    bracket: Mapped["Bracket"] = relationship(back_populates="nodes")
    match: Mapped[Optional["Match"]] = relationship()

    def __repr__(self) -> str:
        return (
            f"<BracketNode(#{self.match_number}, {self.round.value}, "
            f"x={self.position_x}, {self.player1_id} v {self.player2_id}, "
            f"status={self.status})>"
        )

    @property
    def position(self) -> tuple[int, int]:
        return self.position_x, self.position_y

    @property
    def participants(self) -> list[int]:
        """Filled participant slots, slot 1 first."""
        return [p for p in (self.player1_id, self.player2_id) if p is not None]

    def has_participant(self, participant_id: int) -> bool:
        return participant_id in self.participants

    def opponent_of(self, participant_id: int) -> Optional[int]:
        if participant_id == self.player1_id:
            return self.player2_id
        if participant_id == self.player2_id:
            return self.player1_id
        return None

    def slot(self, side: int) -> Optional[int]:
        return self.player1_id if side == 1 else self.player2_id

    def set_slot(self, side: int, participant_id: Optional[int]) -> None:
        if side == 1:
            self.player1_id = participant_id
        else:
            self.player2_id = participant_id
