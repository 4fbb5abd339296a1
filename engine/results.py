"""
Match Result Recorder

Validates and stores the outcome of one bracket node. The match record is
the single authority on who won: a node's winner is only ever copied from
its completed match record (or, for a bye, from its sole participant).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from config import BRACKET_SETTINGS
from engine.errors import (
    AlreadyCompletedError,
    InconsistentWinnerError,
    InvalidScoreError,
    InvalidStateError,
    MatchCancelledError,
)
from models.bracket import Bracket, BracketNode, BracketStatus, NodeStatus
from models.match import Match, MatchSet, MatchStatus, SetWinner
from models.rounds import SETS_TO_WIN

logger = logging.getLogger(__name__)


@dataclass
class RecordOutcome:
    """What recording a result changed."""
    node: BracketNode
    match: Optional[Match]
    sets_added: int = 0
    completed: bool = False
    bracket_activated: bool = False


class MatchResultRecorder:
    """
    Records results into bracket nodes.

    A result either carries set scores, which are appended to the node's
    match record until one side reaches the round's required set wins, or
    carries none, in which case the declared winner takes the match directly
    (optionally as a walkover). A node with a single participant that can
    never receive an opponent is a bye and advances without a match record.
    """

    def __init__(self, max_set_score: Optional[int] = None):
        self.max_set_score = (
            BRACKET_SETTINGS.max_set_score if max_set_score is None else max_set_score
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(
        self,
        bracket: Bracket,
        node: BracketNode,
        winner_id: int,
        sets: Optional[Sequence[Any]] = None,
        walkover: bool = False,
    ) -> list[tuple[int, int]]:
        """
        Check a result without changing anything.

        Returns:
            The set scores as (player1, player2) pairs
        """
        if node.status == NodeStatus.COMPLETED:
            raise AlreadyCompletedError(f"Match {node.match_number} is already completed")
        if node.status == NodeStatus.CANCELLED:
            raise MatchCancelledError(f"Match {node.match_number} is cancelled")
        if bracket.status not in (BracketStatus.GENERATED, BracketStatus.ACTIVE):
            raise InvalidStateError(
                f"Bracket does not accept results (status: {bracket.status.value})"
            )

        waiting = bracket.open_slots(node)
        if waiting:
            raise InvalidStateError(
                f"Match {node.match_number} is still waiting for participant "
                f"{' and '.join(str(side) for side in waiting)}"
            )
        if not node.participants:
            raise InvalidStateError(f"Match {node.match_number} has no participants")

        if not node.has_participant(winner_id):
            raise InconsistentWinnerError(
                f"Winner {winner_id} is not a participant of match {node.match_number}"
            )

        scores = self._normalize_sets(sets)

        if len(node.participants) == 1:
            if scores:
                raise InvalidScoreError("A bye is advanced without set scores")
            return scores

        if walkover and scores:
            raise InvalidScoreError("A walkover cannot carry set scores")

        match = node.match
        if not scores:
            if match is not None and match.sets:
                raise InvalidStateError(
                    f"Match {node.match_number} is being decided by sets; "
                    f"submit the remaining sets"
                )
            return scores

        self._check_tally(node, match, winner_id, scores)
        return scores

    def _normalize_sets(self, sets: Optional[Sequence[Any]]) -> list[tuple[int, int]]:
        """Turn set inputs (pairs, dicts or SetScore objects) into validated pairs."""
        if not sets:
            return []

        scores = []
        for number, item in enumerate(sets, start=1):
            if isinstance(item, dict):
                pair = (item.get("player1_score"), item.get("player2_score"))
            elif isinstance(item, (tuple, list)) and len(item) == 2:
                pair = (item[0], item[1])
            elif hasattr(item, "player1_score") and hasattr(item, "player2_score"):
                pair = (item.player1_score, item.player2_score)
            else:
                raise InvalidScoreError(f"Set {number} is malformed: {item!r}")

            for score in pair:
                if not isinstance(score, int) or isinstance(score, bool):
                    raise InvalidScoreError(f"Set {number} has a non-integer score: {score!r}")
                if score < 0 or score > self.max_set_score:
                    raise InvalidScoreError(
                        f"Invalid scores in set {number}. "
                        f"Scores must be between 0 and {self.max_set_score}"
                    )
            scores.append(pair)
        return scores

    def _check_tally(
        self,
        node: BracketNode,
        match: Optional[Match],
        winner_id: int,
        scores: list[tuple[int, int]],
    ) -> None:
        """Replay new sets on top of recorded ones and confirm the declared winner."""
        required = SETS_TO_WIN[node.round]
        p1_wins = match.player1_set_wins if match is not None else 0
        p2_wins = match.player2_set_wins if match is not None else 0

        for number, (p1_score, p2_score) in enumerate(scores, start=1):
            if p1_wins >= required or p2_wins >= required:
                raise InvalidScoreError(
                    f"Set {number} was supplied after the match was decided"
                )
            outcome = SetWinner.from_scores(p1_score, p2_score)
            if outcome == SetWinner.PLAYER1:
                p1_wins += 1
            elif outcome == SetWinner.PLAYER2:
                p2_wins += 1

        if p1_wins >= required or p2_wins >= required:
            decided_by = node.player1_id if p1_wins >= required else node.player2_id
            if decided_by != winner_id:
                raise InconsistentWinnerError(
                    f"Sets give match {node.match_number} to {decided_by}, "
                    f"not {winner_id}"
                )

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(
        self,
        bracket: Bracket,
        node: BracketNode,
        winner_id: int,
        sets: Optional[Sequence[Any]] = None,
        walkover: bool = False,
        walkover_reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> RecordOutcome:
        """
        Record a result into ``node``.

        Args:
            bracket: Bracket owning the node
            node: Node to record into
            winner_id: Declared winner, one of the node's participants
            sets: Optional set scores, player 1 first
            walkover: Result decided without play
            walkover_reason: Why the walkover was awarded
            notes: Free-form referee notes

        Returns:
            RecordOutcome; ``completed`` is True when the node now has a winner
        """
        scores = self.validate(bracket, node, winner_id, sets, walkover)
        outcome = RecordOutcome(node=node, match=node.match)
        outcome.bracket_activated = bracket.mark_active()

        if len(node.participants) == 1:
            node.is_bye = True
            self._complete_node(node, winner_id)
            outcome.completed = True
            logger.debug("Match %d advanced as a bye", node.match_number)
            return outcome

        match = node.match or self._open_match(bracket, node)
        outcome.match = match
        if notes:
            match.notes = notes

        if scores:
            self._append_sets(match, scores)
            outcome.sets_added = len(scores)
            if match.is_decided:
                winner = (
                    match.player1_id
                    if match.player1_set_wins >= match.sets_to_win
                    else match.player2_id
                )
                self._close_match(match, winner)
            else:
                node.status = NodeStatus.IN_PROGRESS
        else:
            self._close_match(match, winner_id, walkover, walkover_reason)

        if match.status == MatchStatus.COMPLETED:
            self._complete_node(node, match.winner_id)
            outcome.completed = True

        logger.debug(
            "Recorded %d set(s) for match %d (%s); completed=%s",
            outcome.sets_added, node.match_number, match.match_format, outcome.completed,
        )
        return outcome

    def cancel(self, node: BracketNode, reason: Optional[str] = None) -> BracketNode:
        """Cancel a node that has not been decided."""
        if node.status == NodeStatus.COMPLETED:
            raise AlreadyCompletedError(f"Match {node.match_number} is already completed")
        if node.status == NodeStatus.CANCELLED:
            raise MatchCancelledError(f"Match {node.match_number} is already cancelled")

        node.status = NodeStatus.CANCELLED
        if node.match is not None:
            node.match.status = MatchStatus.CANCELLED
            if reason:
                node.match.notes = reason

        logger.info("Cancelled match %d (%s)", node.match_number, reason or "no reason given")
        return node

    def _open_match(self, bracket: Bracket, node: BracketNode) -> Match:
        """Create the match record for ``node`` on its first result."""
        match = Match(
            tournament=bracket.tournament,
            round=node.round,
            match_number=node.match_number,
            player1_id=node.player1_id,
            player2_id=node.player2_id,
            status=MatchStatus.SCHEDULED,
            is_walkover=False,
            scheduled_at=datetime.now(timezone.utc),
        )
        node.match = match
        return match

    def _append_sets(self, match: Match, scores: list[tuple[int, int]]) -> None:
        now = datetime.now(timezone.utc)
        for p1_score, p2_score in scores:
            match.sets.append(MatchSet(
                sequence=len(match.sets) + 1,
                player1_score=p1_score,
                player2_score=p2_score,
                winner=SetWinner.from_scores(p1_score, p2_score),
                recorded_at=now,
            ))
        if match.status == MatchStatus.SCHEDULED:
            match.status = MatchStatus.IN_PROGRESS
            match.started_at = now

    def _close_match(
        self,
        match: Match,
        winner_id: int,
        walkover: bool = False,
        walkover_reason: Optional[str] = None,
    ) -> None:
        match.status = MatchStatus.COMPLETED
        match.winner_id = winner_id
        match.loser_id = (
            match.player2_id if winner_id == match.player1_id else match.player1_id
        )
        match.is_walkover = walkover
        match.walkover_reason = walkover_reason if walkover else None
        match.completed_at = datetime.now(timezone.utc)

    def _complete_node(self, node: BracketNode, winner_id: int) -> None:
        node.winner_id = winner_id
        node.status = NodeStatus.COMPLETED
