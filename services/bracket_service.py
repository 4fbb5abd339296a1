"""
Bracket Service

Session-backed entry point for every bracket mutation. Each operation runs
inside one transaction and, for an existing bracket, under an exclusive
lock scoped to that bracket, so the node, match record and round pointer
it touches stay consistent with each other.
"""

import logging
import threading
from datetime import datetime, timezone
from contextlib import contextmanager
from typing import Any, Generator, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from config import BRACKET_SETTINGS, BracketSettings
from engine.advancement import AdvancementEngine, AdvancementResult
from engine.builder import BracketBuilder
from engine.errors import InvalidScoreError, InvalidStateError, NotFoundError
from engine.queries import bracket_to_response, node_to_response
from engine.results import MatchResultRecorder
from engine.seeding import apply_seeding
from models.base import get_session
from models.bracket import Bracket, BracketNode, BracketStatus, NodeStatus
from models.schemas import (
    BracketResponse,
    MatchResponse,
    MatchResultCreate,
    RecordedResult,
    TournamentCreate,
    TournamentResponse,
)
from models.tournament import Tournament, TournamentStatus
from services.event_bus import EventBus

logger = logging.getLogger(__name__)


class _KeyLock:
    """A lock plus the number of callers holding or waiting on it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class BracketLocks:
    """
    Registry of one exclusive lock per key (bracket or tournament id).

    A key is only registered while some caller holds or waits on its lock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, int], _KeyLock] = {}

    @contextmanager
    def hold(self, scope: str, key: int) -> Generator[None, None, None]:
        name = (scope, key)
        with self._guard:
            entry = self._locks.get(name)
            if entry is None:
                entry = self._locks[name] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[name]


class BracketService:
    """
    Builds, seeds and advances brackets.

    Signals go out on the EventBus only after the transaction that caused
    them has been committed; a failed operation emits nothing and leaves
    the bracket as it was.

    Usage:
        service = BracketService(event_bus=bus)
        tournament = service.create_tournament("Spring Open")
        bracket = service.build_bracket(tournament.id, participant_ids)
        service.seed_bracket(bracket.id, seed_order)
        service.record_result(bracket.id, node_id, winner_id, sets=[(11, 7)])
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        event_bus: Optional[EventBus] = None,
        settings: BracketSettings = BRACKET_SETTINGS,
    ):
        self._session_factory = session_factory
        self.event_bus = event_bus or EventBus()
        self.settings = settings

        self.builder = BracketBuilder(min_participants=settings.min_participants)
        self.recorder = MatchResultRecorder(max_set_score=settings.max_set_score)
        self.advancement = AdvancementEngine()
        self.locks = BracketLocks()

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        with get_session(self._session_factory) as session:
            yield session

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_tournament(self, session: Session, tournament_id: int) -> Tournament:
        tournament = session.get(Tournament, tournament_id)
        if tournament is None:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        return tournament

    def _lock_bracket(self, session: Session, bracket_id: int) -> Bracket:
        """Load a bracket, taking a row lock where the database supports it."""
        bracket = session.scalars(
            select(Bracket).where(Bracket.id == bracket_id).with_for_update()
        ).first()
        if bracket is None:
            raise NotFoundError(f"Tournament bracket {bracket_id} not found")
        return bracket

    def _get_node(self, bracket: Bracket, node_id: int) -> BracketNode:
        node = bracket.get_node(node_id)
        if node is None:
            raise NotFoundError(f"Match node {node_id} not found in bracket {bracket.id}")
        return node

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    def create_tournament(self, name: str, max_participants: Optional[int] = None) -> TournamentResponse:
        """Create a tournament in registration phase."""
        data = TournamentCreate(
            name=name,
            max_participants=max_participants or self.settings.max_participants,
        )
        with self._session() as session:
            tournament = Tournament(
                name=data.name,
                max_participants=data.max_participants,
                status=TournamentStatus.REGISTRATION,
                created_at=datetime.now(timezone.utc),
            )
            session.add(tournament)
            session.flush()
            response = TournamentResponse.model_validate(tournament)

        logger.info("Created tournament %s (%s)", response.id, response.name)
        self.event_bus.tournament_created.emit({
            "tournament_id": response.id,
            "name": response.name,
            "max_participants": response.max_participants,
        })
        return response

    def get_tournament(self, tournament_id: int) -> TournamentResponse:
        with self._session() as session:
            return TournamentResponse.model_validate(self._get_tournament(session, tournament_id))

    # ------------------------------------------------------------------
    # Build and seed
    # ------------------------------------------------------------------

    def build_bracket(self, tournament_id: int, participant_ids: Sequence[int]) -> BracketResponse:
        """
        Generate the bracket for a tournament.

        Args:
            tournament_id: Tournament in registration phase
            participant_ids: Confirmed participants in registration order

        Raises:
            NotFoundError, AlreadyExistsError, InvalidStateError,
            InsufficientParticipantsError
        """
        with self.locks.hold("tournament", tournament_id):
            with self._session() as session:
                tournament = self._get_tournament(session, tournament_id)
                bracket = self.builder.build(tournament, list(participant_ids))
                tournament.status = TournamentStatus.SEEDING
                session.flush()
                response = bracket_to_response(bracket)

        self.event_bus.bracket_generated.emit({
            "bracket_id": response.id,
            "tournament_id": response.tournament_id,
            "total_rounds": response.total_rounds,
            "current_round": response.current_round.value,
            "total_matches": response.total_matches,
            "first_round_matches": response.first_round_matches,
        })
        return response

    def seed_bracket(self, bracket_id: int, seed_order: Optional[Sequence[int]] = None) -> BracketResponse:
        """
        Apply an optional seed order and activate the bracket.

        Raises:
            NotFoundError, InvalidStateError
        """
        with self.locks.hold("bracket", bracket_id):
            with self._session() as session:
                bracket = self._lock_bracket(session, bracket_id)
                apply_seeding(bracket, list(seed_order) if seed_order else None)
                bracket.tournament.mark_started()
                session.flush()
                response = bracket_to_response(bracket)

        self.event_bus.bracket_seeded.emit({
            "bracket_id": response.id,
            "tournament_id": response.tournament_id,
            "is_seeded": response.is_seeded,
            "status": response.status.value,
        })
        return response

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def record_result(
        self,
        bracket_id: int,
        node_id: int,
        winner_id: int,
        sets: Optional[Sequence[Any]] = None,
        walkover: bool = False,
        walkover_reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> RecordedResult:
        """
        Record a node result and advance the bracket.

        Args:
            bracket_id: Bracket owning the node
            node_id: Node to record into
            winner_id: Declared winner
            sets: Optional set scores as (player1, player2) pairs or dicts
            walkover: Award the match without play
            walkover_reason: Why the walkover was awarded
            notes: Free-form referee notes

        Raises:
            NotFoundError, AlreadyCompletedError, MatchCancelledError,
            InvalidStateError, InvalidScoreError, InconsistentWinnerError
        """
        try:
            data = MatchResultCreate(
                winner_id=winner_id,
                sets=list(sets) if sets else None,
                walkover=walkover,
                walkover_reason=walkover_reason,
                notes=notes,
            )
        except ValidationError as e:
            raise InvalidScoreError(f"Invalid result: {e}") from e

        advancement: Optional[dict] = None
        completion: Optional[dict] = None

        with self.locks.hold("bracket", bracket_id):
            with self._session() as session:
                bracket = self._lock_bracket(session, bracket_id)
                node = self._get_node(bracket, node_id)

                outcome = self.recorder.record(
                    bracket, node, data.winner_id, data.sets,
                    walkover=data.walkover,
                    walkover_reason=data.walkover_reason,
                    notes=data.notes,
                )
                if outcome.bracket_activated:
                    bracket.tournament.mark_started()

                result: Optional[AdvancementResult] = None
                if outcome.completed:
                    result = self.advancement.advance(bracket, node)
                    if result.bracket_completed:
                        bracket.tournament.mark_completed(result.champion_id, result.runner_up_id)

                session.flush()

                if result is not None:
                    advancement = self._summarize(result)
                    if result.bracket_completed:
                        completion = {
                            "bracket_id": bracket.id,
                            "tournament_id": bracket.tournament_id,
                            "champion_id": result.champion_id,
                            "runner_up_id": result.runner_up_id,
                        }

                response = RecordedResult(
                    node=node_to_response(node),
                    match=MatchResponse.model_validate(outcome.match) if outcome.match else None,
                    advanced_to_node_id=advancement["destination_node_id"] if advancement else None,
                    current_round=bracket.current_round,
                    bracket_status=bracket.status,
                )

        self.event_bus.match_result_recorded.emit({
            "bracket_id": bracket_id,
            "node_id": node_id,
            "match_id": response.match.id if response.match else None,
            "winner_id": response.node.winner.id if response.node.winner else None,
            "completed": response.node.status == NodeStatus.COMPLETED,
            "sets_added": outcome.sets_added,
        })
        if advancement is not None:
            self.event_bus.emit_advancement(bracket_id, advancement)
        if completion is not None:
            self.event_bus.bracket_completed.emit(completion)
        return response

    def advance_byes(self, bracket_id: int) -> list[RecordedResult]:
        """
        Advance every playable node that has exactly one participant.

        Byes that only become playable after another bye advances are
        picked up in the same call.
        """
        results = []
        while True:
            node_id, winner_id = self._next_bye(bracket_id)
            if node_id is None:
                return results
            results.append(self.record_result(bracket_id, node_id, winner_id))

    def _next_bye(self, bracket_id: int) -> tuple[Optional[int], Optional[int]]:
        with self._session() as session:
            bracket = session.get(Bracket, bracket_id)
            if bracket is None:
                raise NotFoundError(f"Tournament bracket {bracket_id} not found")
            if bracket.status not in (BracketStatus.GENERATED, BracketStatus.ACTIVE):
                return None, None
            for node in bracket.nodes:
                if (node.status == NodeStatus.PENDING
                        and len(node.participants) == 1
                        and not bracket.open_slots(node)):
                    return node.id, node.participants[0]
        return None, None

    def cancel_node(self, bracket_id: int, node_id: int, reason: Optional[str] = None) -> RecordedResult:
        """Cancel an undecided node; later results into it are rejected."""
        with self.locks.hold("bracket", bracket_id):
            with self._session() as session:
                bracket = self._lock_bracket(session, bracket_id)
                if bracket.status == BracketStatus.COMPLETED:
                    raise InvalidStateError(f"Bracket {bracket_id} is already completed")
                node = self._get_node(bracket, node_id)
                self.recorder.cancel(node, reason)
                session.flush()
                response = RecordedResult(
                    node=node_to_response(node),
                    match=MatchResponse.model_validate(node.match) if node.match else None,
                    current_round=bracket.current_round,
                    bracket_status=bracket.status,
                )

        self.event_bus.node_cancelled.emit({
            "bracket_id": bracket_id,
            "node_id": node_id,
            "reason": reason,
        })
        return response

    @staticmethod
    def _summarize(result: AdvancementResult) -> dict:
        return {
            "node_id": result.node.id,
            "winner_id": result.winner_id,
            "destination_node_id": result.destination.id if result.destination else None,
            "slot": result.destination_slot,
            "skipped": result.skipped,
            "completed_rounds": [r.value for r in result.completed_rounds],
            "round_changed": result.round_changed,
            "current_round": result.current_round.value if result.current_round else None,
        }
