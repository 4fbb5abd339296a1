"""
Bracket Builder

Creates the complete node set for a tournament's bracket in one pass:
first-round matches filled from the participant list, then empty
placeholder nodes for every later round.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from config import BRACKET_SETTINGS
from engine.errors import (
    AlreadyExistsError,
    InsufficientParticipantsError,
    InvalidStateError,
)
from engine.topology import RoundTopology, calculate_topology
from models.bracket import Bracket, BracketNode, BracketStatus, NodeStatus
from models.tournament import Tournament, TournamentStatus

logger = logging.getLogger(__name__)


class BracketBuilder:
    """
    Builds brackets from an ordered list of confirmed participants.

    Match numbers run 1..N across the whole bracket in round order; they are
    not reset per round.

    Usage:
        builder = BracketBuilder()
        bracket = builder.build(tournament, participant_ids)
    """

    def __init__(self, min_participants: Optional[int] = None):
        self.min_participants = (
            BRACKET_SETTINGS.min_participants
            if min_participants is None else min_participants
        )

    def validate(self, tournament: Tournament, participant_ids: Sequence[int]) -> None:
        """Raise if a bracket cannot be built for ``tournament``."""
        if tournament.bracket is not None:
            raise AlreadyExistsError(
                f"Tournament {tournament.id} already has a bracket"
            )

        if tournament.status != TournamentStatus.REGISTRATION:
            raise InvalidStateError(
                f"Tournament {tournament.id} is not in registration phase "
                f"(status: {tournament.status.value})"
            )

        if len(participant_ids) < self.min_participants:
            raise InsufficientParticipantsError(
                f"Minimum {self.min_participants} participants required to "
                f"generate bracket, got {len(participant_ids)}"
            )

    def build(self, tournament: Tournament, participant_ids: Sequence[int]) -> Bracket:
        """
        Build and attach a bracket to ``tournament``.

        Args:
            tournament: Tournament in registration phase without a bracket
            participant_ids: Confirmed participants in registration order

        Returns:
            Bracket in GENERATED status, current round set to the first round
        """
        self.validate(tournament, participant_ids)

        topology = calculate_topology(len(participant_ids))

        bracket = Bracket(
            status=BracketStatus.GENERATING,
            generated_at=datetime.now(timezone.utc),
            is_seeded=False,
        )
        bracket.round_names = list(topology.round_names)
        bracket.current_round = topology.round_names[0]
        bracket.nodes = self._build_nodes(topology, list(participant_ids))

        bracket.mark_generated()
        tournament.bracket = bracket

        logger.info(
            "Generated bracket for tournament %s: %d participants, %d rounds, "
            "%d matches (%d in %s)",
            tournament.id, topology.participant_count, topology.total_rounds,
            topology.total_matches, topology.first_round_matches,
            topology.round_names[0].value,
        )
        return bracket

    def _build_nodes(
        self,
        topology: RoundTopology,
        participant_ids: list[int]
    ) -> list[BracketNode]:
        """Create nodes for every round, first round first."""
        nodes = []
        match_number = 1

        # First round: pair participants 2i and 2i+1
        first_round = topology.round_names[0]
        for i in range(topology.first_round_matches):
            player1 = participant_ids[2 * i] if 2 * i < len(participant_ids) else None
            player2 = (
                participant_ids[2 * i + 1]
                if 2 * i + 1 < len(participant_ids) else None
            )
            nodes.append(BracketNode(
                round=first_round,
                match_number=match_number,
                position_x=i,
                position_y=0,
                player1_id=player1,
                player2_id=player2,
                winner_id=None,
                status=NodeStatus.PENDING,
                is_bye=player1 is None or player2 is None,
            ))
            match_number += 1

        # Later rounds: empty placeholders filled in by advancement
        for round_index in range(1, topology.total_rounds):
            round_name = topology.round_names[round_index]
            for i in range(topology.matches_in_round(round_index)):
                nodes.append(BracketNode(
                    round=round_name,
                    match_number=match_number,
                    position_x=i,
                    position_y=round_index,
                    player1_id=None,
                    player2_id=None,
                    winner_id=None,
                    status=NodeStatus.PENDING,
                    is_bye=False,
                ))
                match_number += 1

        return nodes
