"""
Tests for the session-backed Bracket Service and Bracket Query Service.
"""

import threading
from unittest.mock import MagicMock

import pytest

from config import BracketSettings
from engine.errors import (
    AlreadyCompletedError,
    AlreadyExistsError,
    InconsistentWinnerError,
    InsufficientParticipantsError,
    InvalidScoreError,
    InvalidStateError,
    MatchCancelledError,
    NotFoundError,
)
from models.bracket import BracketStatus, NodeStatus
from models.match import MatchStatus
from models.rounds import RoundName
from models.tournament import TournamentStatus
from services.bracket_queries import BracketQueryService
from services.bracket_service import BracketLocks, BracketService


R16 = RoundName.ROUND_OF_16
QF = RoundName.QUARTER_FINALS


def _first_round(bracket):
    first = bracket.round_names[0]
    return sorted((n for n in bracket.nodes if n.round == first), key=lambda n: n.position_x)


def _play_out(service, queries, bracket):
    """Play every remaining node, slot 1 winning."""
    for round_name in bracket.round_names:
        for node in queries.get_round(round_name, bracket_id=bracket.id):
            if node.status == NodeStatus.COMPLETED:
                continue
            winner = node.player1 or node.player2
            service.record_result(bracket.id, node.id, winner.id)


class TestBuildAndSeed:
    """Tests for tournament creation, bracket generation and seeding."""

    def setup_method(self):
        self.created_mock = MagicMock()
        self.generated_mock = MagicMock()
        self.seeded_mock = MagicMock()

    def _connect(self, event_bus):
        event_bus.tournament_created.connect(self.created_mock)
        event_bus.bracket_generated.connect(self.generated_mock)
        event_bus.bracket_seeded.connect(self.seeded_mock)

    def test_create_tournament(self, service, event_bus):
        self._connect(event_bus)

        tournament = service.create_tournament("  Spring Open  ")

        assert tournament.name == "Spring Open"
        assert tournament.status == TournamentStatus.REGISTRATION
        assert tournament.max_participants == 128
        self.created_mock.assert_called_once()
        assert self.created_mock.call_args[0][0]["tournament_id"] == tournament.id

    def test_build_bracket(self, service, event_bus):
        self._connect(event_bus)
        tournament = service.create_tournament("Spring Open")

        bracket = service.build_bracket(tournament.id, range(101, 117))

        assert bracket.status == BracketStatus.GENERATED
        assert bracket.total_matches == 15
        assert bracket.first_round_matches == 8
        assert bracket.current_round == R16
        assert service.get_tournament(tournament.id).status == TournamentStatus.SEEDING

        payload = self.generated_mock.call_args[0][0]
        assert payload["bracket_id"] == bracket.id
        assert payload["current_round"] == "round_of_16"
        assert payload["total_rounds"] == 4

    def test_build_unknown_tournament(self, service):
        with pytest.raises(NotFoundError):
            service.build_bracket(999, range(1, 17))

    def test_build_twice_rejected(self, service):
        tournament = service.create_tournament("Spring Open")
        service.build_bracket(tournament.id, range(1, 17))

        with pytest.raises(AlreadyExistsError):
            service.build_bracket(tournament.id, range(1, 17))

    def test_build_too_few_leaves_nothing(self, service, queries, event_bus):
        self._connect(event_bus)
        tournament = service.create_tournament("Spring Open")

        with pytest.raises(InsufficientParticipantsError):
            service.build_bracket(tournament.id, range(1, 16))

        with pytest.raises(NotFoundError):
            queries.get_bracket(tournament_id=tournament.id)
        assert service.get_tournament(tournament.id).status == TournamentStatus.REGISTRATION
        self.generated_mock.assert_not_called()

    def test_seed_bracket(self, service, event_bus):
        self._connect(event_bus)
        tournament = service.create_tournament("Spring Open")
        bracket = service.build_bracket(tournament.id, range(1, 17))

        seeded = service.seed_bracket(bracket.id, list(range(16, 0, -1)))

        first = _first_round(seeded)[0]
        assert (first.player1.id, first.player2.id) == (16, 15)
        assert seeded.is_seeded
        assert seeded.status == BracketStatus.ACTIVE
        assert service.get_tournament(tournament.id).status == TournamentStatus.ACTIVE
        self.seeded_mock.assert_called_once()

    def test_seed_twice_rejected(self, service):
        tournament = service.create_tournament("Spring Open")
        bracket = service.build_bracket(tournament.id, range(1, 17))
        service.seed_bracket(bracket.id)

        with pytest.raises(InvalidStateError):
            service.seed_bracket(bracket.id, list(range(16, 0, -1)))

    def test_seed_unknown_bracket(self, service):
        with pytest.raises(NotFoundError):
            service.seed_bracket(999)


class TestRecordResult:
    """Tests for recording results through the service."""

    @pytest.fixture(autouse=True)
    def _bracket(self, service, event_bus):
        self.recorded_mock = MagicMock()
        self.advanced_mock = MagicMock()
        self.round_completed_mock = MagicMock()
        self.round_changed_mock = MagicMock()
        event_bus.match_result_recorded.connect(self.recorded_mock)
        event_bus.winner_advanced.connect(self.advanced_mock)
        event_bus.round_completed.connect(self.round_completed_mock)
        event_bus.current_round_changed.connect(self.round_changed_mock)

        self.tournament = service.create_tournament("Spring Open")
        self.bracket = service.build_bracket(self.tournament.id, range(1, 17))
        self.first_round = _first_round(self.bracket)

    def test_result_advances_winner(self, service, queries):
        node = self.first_round[0]

        result = service.record_result(self.bracket.id, node.id, 2, sets=[(8, 11)])

        assert result.node.status == NodeStatus.COMPLETED
        assert result.node.winner.id == 2
        assert result.match.status == MatchStatus.COMPLETED
        assert result.match.loser_id == 1
        assert result.bracket_status == BracketStatus.ACTIVE

        destination = queries.get_node(self.bracket.id, result.advanced_to_node_id)
        assert destination.round == QF
        assert destination.player1.id == 2

    def test_first_result_starts_tournament(self, service):
        service.record_result(self.bracket.id, self.first_round[0].id, 1)

        assert service.get_tournament(self.tournament.id).status == TournamentStatus.ACTIVE

    def test_events_follow_result(self, service):
        node = self.first_round[0]

        result = service.record_result(self.bracket.id, node.id, 1)

        payload = self.recorded_mock.call_args[0][0]
        assert payload["node_id"] == node.id
        assert payload["match_id"] == result.match.id
        assert payload["winner_id"] == 1
        assert payload["completed"] is True

        advanced = self.advanced_mock.call_args[0][0]
        assert advanced["destination_node_id"] == result.advanced_to_node_id
        assert advanced["slot"] == 1
        self.round_completed_mock.assert_not_called()

    def test_round_completion_events(self, service):
        for node in self.first_round:
            result = service.record_result(self.bracket.id, node.id, node.player1.id)

        assert result.current_round == QF
        self.round_completed_mock.assert_called_once_with(self.bracket.id, "round_of_16")
        self.round_changed_mock.assert_called_once_with(self.bracket.id, "quarter_finals")

    def test_double_submission_rejected(self, service):
        node = self.first_round[0]
        service.record_result(self.bracket.id, node.id, 1)

        with pytest.raises(AlreadyCompletedError):
            service.record_result(self.bracket.id, node.id, 2)

        assert self.recorded_mock.call_count == 1

    def test_unknown_bracket_and_node(self, service):
        with pytest.raises(NotFoundError):
            service.record_result(999, self.first_round[0].id, 1)
        with pytest.raises(NotFoundError):
            service.record_result(self.bracket.id, 999, 1)

    def test_out_of_range_score_rejected(self, service, queries):
        node = self.first_round[0]

        with pytest.raises(InvalidScoreError):
            service.record_result(self.bracket.id, node.id, 1, sets=[(12, 3)])

        assert queries.get_node(self.bracket.id, node.id).status == NodeStatus.PENDING
        self.recorded_mock.assert_not_called()

    @pytest.mark.parametrize("scores", [("11", "7"), (11, True), (11.0, 3), (-1, 11)])
    def test_malformed_score_rejected(self, service, queries, scores):
        node = self.first_round[0]

        with pytest.raises(InvalidScoreError):
            service.record_result(self.bracket.id, node.id, 1, sets=[scores])

        stored = queries.get_node(self.bracket.id, node.id)
        assert stored.status == NodeStatus.PENDING
        assert stored.match_id is None
        self.recorded_mock.assert_not_called()

    def test_rejected_result_changes_nothing(self, service, queries):
        node = self.first_round[0]

        with pytest.raises(InconsistentWinnerError):
            service.record_result(self.bracket.id, node.id, 1, sets=[(3, 11)])

        stored = queries.get_node(self.bracket.id, node.id)
        assert stored.status == NodeStatus.PENDING
        assert stored.match_id is None
        assert queries.get_bracket(bracket_id=self.bracket.id).status == BracketStatus.GENERATED

    def test_failure_during_advancement_rolls_back(self, service, queries):
        node = self.first_round[0]
        service.advancement = MagicMock()
        service.advancement.advance.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            service.record_result(self.bracket.id, node.id, 1)

        stored = queries.get_node(self.bracket.id, node.id)
        assert stored.status == NodeStatus.PENDING
        assert stored.winner is None
        assert stored.match_id is None
        self.recorded_mock.assert_not_called()

    def test_walkover(self, service):
        node = self.first_round[3]

        result = service.record_result(
            self.bracket.id, node.id, node.player2.id,
            walkover=True, walkover_reason="Opponent injured",
        )

        assert result.match.is_walkover
        assert result.match.walkover_reason == "Opponent injured"
        assert result.match.sets == []

    def test_multi_set_match_stays_open(self, service, queries):
        for node in self.first_round:
            service.record_result(self.bracket.id, node.id, node.player1.id)
        quarter_final = queries.get_round(QF, bracket_id=self.bracket.id)[0]

        result = service.record_result(self.bracket.id, quarter_final.id, 1, sets=[(11, 6)])

        assert result.node.status == NodeStatus.IN_PROGRESS
        assert result.match.sets_to_win == 2
        assert result.match.match_format == "Best of 3 sets"
        assert result.advanced_to_node_id is None

        result = service.record_result(self.bracket.id, quarter_final.id, 1, sets=[(11, 10)])

        assert result.node.status == NodeStatus.COMPLETED
        assert [s.sequence for s in result.match.sets] == [1, 2]

    def test_cancel_node(self, service, event_bus):
        cancelled_mock = MagicMock()
        event_bus.node_cancelled.connect(cancelled_mock)
        node = self.first_round[0]

        result = service.cancel_node(self.bracket.id, node.id, "Venue flooded")

        assert result.node.status == NodeStatus.CANCELLED
        cancelled_mock.assert_called_once()
        with pytest.raises(MatchCancelledError):
            service.record_result(self.bracket.id, node.id, 1)


class TestFullTournament:
    """Tests for playing a tournament to its champion."""

    def test_sixteen_players(self, service, queries, event_bus):
        completed_mock = MagicMock()
        event_bus.bracket_completed.connect(completed_mock)
        tournament = service.create_tournament("Spring Open")
        bracket = service.build_bracket(tournament.id, range(1, 17))
        service.seed_bracket(bracket.id)

        _play_out(service, queries, bracket)

        stored = service.get_tournament(tournament.id)
        assert stored.status == TournamentStatus.COMPLETED
        assert stored.champion_id == 1
        assert stored.runner_up_id == 9
        assert queries.get_bracket(bracket_id=bracket.id).status == BracketStatus.COMPLETED
        completed_mock.assert_called_once()
        assert completed_mock.call_args[0][0]["champion_id"] == 1

    def test_completed_bracket_rejects_cancellation(self, service, queries):
        tournament = service.create_tournament("Spring Open")
        bracket = service.build_bracket(tournament.id, range(1, 17))
        _play_out(service, queries, bracket)
        final = queries.get_round(RoundName.FINAL, bracket_id=bracket.id)[0]

        with pytest.raises(InvalidStateError):
            service.cancel_node(bracket.id, final.id)

    def test_advance_byes_walks_the_ghost_slots(self, service, queries):
        tournament = service.create_tournament("Odd Open")
        bracket = service.build_bracket(tournament.id, range(1, 18))

        results = service.advance_byes(bracket.id)

        assert [r.node.round for r in results] == [
            RoundName.ROUND_OF_32, R16, QF, RoundName.SEMI_FINALS,
        ]
        assert all(r.node.winner.id == 17 for r in results)
        assert all(r.match is None for r in results)

        final = queries.get_round(RoundName.FINAL, bracket_id=bracket.id)[0]
        assert final.player2.id == 17
        assert final.player1 is None

        _play_out(service, queries, bracket)
        stored = service.get_tournament(tournament.id)
        assert stored.champion_id == 1
        assert stored.runner_up_id == 17

    def test_advance_byes_without_byes(self, service):
        tournament = service.create_tournament("Spring Open")
        bracket = service.build_bracket(tournament.id, range(1, 17))

        assert service.advance_byes(bracket.id) == []


class TestConfiguredSettings:
    """Tests for services built with non-default settings."""

    def setup_method(self):
        self.settings = BracketSettings(min_participants=4, max_set_score=21)

    def _first_node(self, service, participants=8):
        tournament = service.create_tournament("Club Night", max_participants=16)
        bracket = service.build_bracket(tournament.id, range(1, participants + 1))
        return bracket, _first_round(bracket)[0]

    def test_higher_set_score_cap_accepted(self, session_factory):
        service = BracketService(session_factory=session_factory, settings=self.settings)
        bracket, node = self._first_node(service)

        result = service.record_result(bracket.id, node.id, 1, sets=[(21, 19)])

        assert result.node.status == NodeStatus.COMPLETED
        assert result.match.sets[0].player1_score == 21

    def test_configured_cap_still_enforced(self, session_factory):
        service = BracketService(session_factory=session_factory, settings=self.settings)
        bracket, node = self._first_node(service)

        with pytest.raises(InvalidScoreError):
            service.record_result(bracket.id, node.id, 1, sets=[(22, 19)])

    def test_lower_minimum_field(self, session_factory):
        service = BracketService(session_factory=session_factory, settings=self.settings)

        bracket, _ = self._first_node(service, participants=5)

        assert bracket.first_round_matches == 3


class TestQueries:
    """Tests for the read-only query service."""

    @pytest.fixture(autouse=True)
    def _bracket(self, service):
        self.tournament = service.create_tournament("Spring Open")
        self.bracket = service.build_bracket(self.tournament.id, range(1, 18))
        service.advance_byes(self.bracket.id)

    def test_get_bracket_by_tournament_or_id(self, queries):
        by_tournament = queries.get_bracket(tournament_id=self.tournament.id)
        by_id = queries.get_bracket(bracket_id=self.bracket.id)

        assert by_tournament.id == by_id.id == self.bracket.id
        assert len(by_id.nodes) == 20

    def test_round_filter(self, queries):
        response = queries.get_bracket(bracket_id=self.bracket.id, round_filter=R16)

        assert [n.position_x for n in response.nodes] == [0, 1, 2, 3, 4]
        assert response.total_matches == 20

    def test_round_not_played(self, queries):
        assert queries.get_round(RoundName.ROUND_OF_128, bracket_id=self.bracket.id) == []

    def test_lookup_requires_an_id(self, queries):
        with pytest.raises(ValueError):
            queries.get_bracket()

    def test_unknown_ids(self, queries):
        with pytest.raises(NotFoundError):
            queries.get_bracket(tournament_id=999)
        with pytest.raises(NotFoundError):
            queries.get_node(self.bracket.id, 999)
        with pytest.raises(NotFoundError):
            queries.get_match(999)

    def test_stats(self, queries):
        stats = queries.get_stats(bracket_id=self.bracket.id)

        assert stats.total_matches == 20
        assert stats.completed_matches == 4
        assert stats.pending_matches == 16
        assert list(stats.round_stats) == [
            "round_of_32", "round_of_16", "quarter_finals", "semi_finals", "final",
        ]
        assert stats.round_stats["round_of_32"].total == 9
        assert stats.round_stats["round_of_32"].completed == 1
        assert stats.round_stats["final"].pending == 1

    def test_upcoming(self, queries):
        upcoming = queries.get_upcoming(bracket_id=self.bracket.id)

        assert len(upcoming) == 8
        assert all(n.round == RoundName.ROUND_OF_32 for n in upcoming)

    def test_display_names(self, session_factory):
        named = BracketQueryService(
            session_factory=session_factory,
            resolve_name=lambda pid: f"Player {pid}",
        )

        node = named.get_round(RoundName.ROUND_OF_32, bracket_id=self.bracket.id)[0]

        assert node.player1.name == "Player 1"
        assert node.player2.name == "Player 2"

    def test_match_lookup(self, service, queries):
        node = queries.get_round(RoundName.ROUND_OF_32, bracket_id=self.bracket.id)[0]
        result = service.record_result(self.bracket.id, node.id, 1, sets=[(11, 4)])

        match = queries.get_match(result.match.id)

        assert match.winner_id == 1
        assert match.player1_set_wins == 1
        assert match.sets[0].player1_score == 11


class TestBracketLocks:
    """Tests for the per-key lock registry."""

    def test_same_key_shares_lock(self):
        locks = BracketLocks()

        with locks.hold("bracket", 1):
            entry = locks._locks[("bracket", 1)]
            assert entry.lock.locked()
            with locks.hold("tournament", 1):
                assert len(locks._locks) == 2

    def test_waiting_caller_shares_entry(self):
        locks = BracketLocks()
        acquired = threading.Event()

        def contend():
            with locks.hold("bracket", 1):
                acquired.set()

        with locks.hold("bracket", 1):
            worker = threading.Thread(target=contend)
            worker.start()
            assert not acquired.wait(0.1)
        worker.join(timeout=5)

        assert acquired.is_set()
        assert locks._locks == {}

    def test_registry_empties_after_use(self):
        locks = BracketLocks()

        for bracket_id in range(50):
            with locks.hold("bracket", bracket_id):
                pass

        assert locks._locks == {}

    def test_lock_released_after_error(self):
        locks = BracketLocks()

        with pytest.raises(RuntimeError):
            with locks.hold("bracket", 1):
                raise RuntimeError("boom")

        assert locks._locks == {}
        with locks.hold("bracket", 1):
            pass
