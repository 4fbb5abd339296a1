"""
Advancement Engine

Moves a completed node's winner into its slot in the next round and closes
rounds. Both steps run after every recorded result.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from engine.errors import InvalidStateError
from models.bracket import Bracket, BracketNode, BracketStatus, NodeStatus
from models.rounds import RoundName

logger = logging.getLogger(__name__)


@dataclass
class AdvancementResult:
    """What advancing one winner changed."""
    node: BracketNode
    winner_id: int
    destination: Optional[BracketNode] = None
    destination_slot: Optional[int] = None  # 1 or 2
    skipped: bool = False  # destination index outside the next round
    completed_rounds: list[RoundName] = field(default_factory=list)
    current_round: Optional[RoundName] = None
    round_changed: bool = False
    bracket_completed: bool = False
    champion_id: Optional[int] = None
    runner_up_id: Optional[int] = None


class AdvancementEngine:
    """
    Propagates winners through a bracket.

    Usage:
        engine = AdvancementEngine()
        result = engine.advance(bracket, node)
    """

    @staticmethod
    def destination_for(node: BracketNode) -> tuple[int, int]:
        """(index in next round, slot 1 or 2) for ``node``'s winner."""
        return node.position_x // 2, node.position_x % 2 + 1

    def advance(self, bracket: Bracket, node: BracketNode) -> AdvancementResult:
        """
        Place ``node``'s winner and check for round completion.

        Args:
            bracket: Bracket owning the node
            node: A node that has just been completed with a winner

        Returns:
            AdvancementResult describing the placement and any round change
        """
        if node.status != NodeStatus.COMPLETED or node.winner_id is None:
            raise InvalidStateError(
                f"Match {node.match_number} has no winner to advance"
            )

        result = AdvancementResult(node=node, winner_id=node.winner_id)
        self._place_winner(bracket, node, result)
        self._close_rounds(bracket, result)
        return result

    def _place_winner(
        self,
        bracket: Bracket,
        node: BracketNode,
        result: AdvancementResult
    ) -> None:
        next_round = bracket.next_round(node.round)
        if next_round is None:
            return

        next_round_nodes = bracket.nodes_in_round(next_round)
        index, slot = self.destination_for(node)

        if index >= len(next_round_nodes):
            # Non-fatal: leaves the winner unplaced
            result.skipped = True
            logger.warning(
                "Bracket %s: no %s node at index %d for winner of match %d "
                "(round has %d nodes)",
                bracket.id, next_round.value, index, node.match_number,
                len(next_round_nodes),
            )
            return

        destination = next_round_nodes[index]
        destination.set_slot(slot, node.winner_id)
        destination.status = NodeStatus.PENDING

        result.destination = destination
        result.destination_slot = slot
        logger.debug(
            "Winner %s of match %d -> match %d slot %d",
            node.winner_id, node.match_number, destination.match_number, slot,
        )

    def _close_rounds(self, bracket: Bracket, result: AdvancementResult) -> None:
        """Advance ``current_round`` past every completed round."""
        while bracket.is_round_complete(bracket.current_round):
            closed = bracket.current_round
            result.completed_rounds.append(closed)

            if bracket.advance_current_round() is None:
                # Last round closed
                self._complete_bracket(bracket, result)
                break

            result.round_changed = True
            logger.info(
                "Bracket %s: %s complete, now playing %s",
                bracket.id, closed.value, bracket.current_round.value,
            )

        result.current_round = bracket.current_round

    def _complete_bracket(self, bracket: Bracket, result: AdvancementResult) -> None:
        if bracket.status == BracketStatus.COMPLETED:
            return

        final_nodes = bracket.nodes_in_round(bracket.last_round)
        final = final_nodes[0] if final_nodes else None

        bracket.mark_completed()
        result.bracket_completed = True
        if final is not None:
            result.champion_id = final.winner_id
            result.runner_up_id = final.opponent_of(final.winner_id)

        logger.info(
            "Bracket %s completed, champion %s", bracket.id, result.champion_id
        )
