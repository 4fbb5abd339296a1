"""
Read-only views over a bracket.
"""

from typing import Callable, Optional

from models.bracket import Bracket, BracketNode, NodeStatus
from models.rounds import RoundName
from models.schemas import (
    BracketResponse,
    BracketStats,
    NodeResponse,
    ParticipantRef,
    RoundStats,
)

NameResolver = Callable[[int], Optional[str]]


def _count(nodes: list[BracketNode], status: NodeStatus) -> int:
    return sum(1 for n in nodes if n.status == status)


def compute_stats(bracket: Bracket) -> BracketStats:
    """Overall and per-round node counts. Rounds the bracket does not play are skipped."""
    nodes = list(bracket.nodes)

    round_stats = {}
    for round_name in RoundName.ordered():
        round_nodes = [n for n in nodes if n.round == round_name]
        if not round_nodes:
            continue
        round_stats[round_name.value] = RoundStats(
            total=len(round_nodes),
            completed=_count(round_nodes, NodeStatus.COMPLETED),
            pending=_count(round_nodes, NodeStatus.PENDING),
            in_progress=_count(round_nodes, NodeStatus.IN_PROGRESS),
        )

    return BracketStats(
        bracket_id=bracket.id,
        total_matches=len(nodes),
        completed_matches=_count(nodes, NodeStatus.COMPLETED),
        pending_matches=_count(nodes, NodeStatus.PENDING),
        in_progress_matches=_count(nodes, NodeStatus.IN_PROGRESS),
        current_round=bracket.current_round,
        total_rounds=bracket.total_rounds,
        is_seeded=bracket.is_seeded,
        status=bracket.status,
        round_stats=round_stats,
    )


def upcoming_nodes(bracket: Bracket) -> list[BracketNode]:
    """Nodes of the current round that still need a result."""
    return [
        n for n in bracket.nodes_in_round(bracket.current_round)
        if n.status in (NodeStatus.PENDING, NodeStatus.IN_PROGRESS)
    ]


def _ref(participant_id: Optional[int], resolve: Optional[NameResolver]) -> Optional[ParticipantRef]:
    if participant_id is None:
        return None
    return ParticipantRef(
        id=participant_id,
        name=resolve(participant_id) if resolve else None,
    )


def node_to_response(node: BracketNode, resolve: Optional[NameResolver] = None) -> NodeResponse:
    """Convert a BracketNode to its response schema."""
    return NodeResponse(
        id=node.id,
        round=node.round,
        match_number=node.match_number,
        position_x=node.position_x,
        position_y=node.position_y,
        player1=_ref(node.player1_id, resolve),
        player2=_ref(node.player2_id, resolve),
        winner=_ref(node.winner_id, resolve),
        match_id=node.match_id,
        status=node.status,
        is_bye=node.is_bye,
    )


def bracket_to_response(
    bracket: Bracket,
    resolve: Optional[NameResolver] = None,
    round_filter: Optional[RoundName] = None,
) -> BracketResponse:
    """Convert a Bracket, optionally limited to one round, to its response schema."""
    nodes = bracket.nodes_in_round(round_filter) if round_filter else list(bracket.nodes)
    return BracketResponse(
        id=bracket.id,
        tournament_id=bracket.tournament_id,
        round_names=bracket.round_names,
        total_rounds=bracket.total_rounds,
        current_round=bracket.current_round,
        status=bracket.status,
        is_seeded=bracket.is_seeded,
        generated_at=bracket.generated_at,
        total_matches=len(bracket.nodes),
        first_round_matches=len(bracket.nodes_in_round(bracket.first_round)),
        nodes=[node_to_response(n, resolve) for n in nodes],
    )
