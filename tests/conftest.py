"""
Shared fixtures: in-memory database, services and detached brackets.
"""

import pytest
from sqlalchemy.pool import StaticPool

from engine.advancement import AdvancementEngine
from engine.builder import BracketBuilder
from engine.results import MatchResultRecorder
from models.base import create_session_factory
from models.bracket import NodeStatus
from models.tournament import Tournament, TournamentStatus
from services.bracket_queries import BracketQueryService
from services.bracket_service import BracketService
from services.event_bus import EventBus


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database per test."""
    return create_session_factory("sqlite://", poolclass=StaticPool)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def service(session_factory, event_bus):
    return BracketService(session_factory=session_factory, event_bus=event_bus)


@pytest.fixture
def queries(session_factory):
    return BracketQueryService(session_factory=session_factory)


@pytest.fixture
def make_bracket():
    """Factory for brackets that are not attached to a session."""
    def _make(participant_count: int = 16, min_participants: int = 16):
        tournament = Tournament(
            id=1,
            name="Test Open",
            max_participants=128,
            status=TournamentStatus.REGISTRATION,
        )
        builder = BracketBuilder(min_participants=min_participants)
        return builder.build(tournament, list(range(1, participant_count + 1)))
    return _make


@pytest.fixture
def play_node():
    """Record a result for a node and advance its winner, player 1 winning unless told otherwise."""
    recorder = MatchResultRecorder()
    advancement = AdvancementEngine()

    def _play(bracket, node, winner_id=None, sets=None):
        if winner_id is None:
            winner_id = node.player1_id if node.player1_id is not None else node.player2_id
        outcome = recorder.record(bracket, node, winner_id, sets)
        if outcome.node.status == NodeStatus.COMPLETED:
            return advancement.advance(bracket, node)
        return None
    return _play
