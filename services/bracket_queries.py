"""
Bracket Query Service

Read-only views over stored brackets. Queries take no locks and may observe
a bracket while a result is being advanced.
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from engine.errors import NotFoundError
from engine.queries import (
    NameResolver,
    bracket_to_response,
    compute_stats,
    node_to_response,
    upcoming_nodes,
)
from models.base import get_session
from models.bracket import Bracket
from models.match import Match
from models.rounds import RoundName
from models.schemas import BracketResponse, BracketStats, MatchResponse, NodeResponse


class BracketQueryService:
    """
    Fetches brackets, rounds, nodes and statistics.

    Args:
        session_factory: Session factory, defaults to the application database
        resolve_name: Optional lookup from participant id to display name
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        resolve_name: Optional[NameResolver] = None,
    ):
        self._session_factory = session_factory
        self.resolve_name = resolve_name

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        with get_session(self._session_factory) as session:
            yield session

    def _find(
        self,
        session: Session,
        tournament_id: Optional[int] = None,
        bracket_id: Optional[int] = None,
    ) -> Bracket:
        if bracket_id is not None:
            bracket = session.get(Bracket, bracket_id)
        elif tournament_id is not None:
            bracket = session.scalars(
                select(Bracket).where(Bracket.tournament_id == tournament_id)
            ).first()
        else:
            raise ValueError("Either tournament_id or bracket_id is required")

        if bracket is None:
            raise NotFoundError("Tournament bracket not found")
        return bracket

    def get_bracket(
        self,
        tournament_id: Optional[int] = None,
        bracket_id: Optional[int] = None,
        round_filter: Optional[RoundName] = None,
    ) -> BracketResponse:
        """Full bracket, or only the nodes of ``round_filter``."""
        with self._session() as session:
            bracket = self._find(session, tournament_id, bracket_id)
            return bracket_to_response(bracket, self.resolve_name, round_filter)

    def get_round(
        self,
        round_name: RoundName,
        tournament_id: Optional[int] = None,
        bracket_id: Optional[int] = None,
    ) -> list[NodeResponse]:
        """Nodes of one round ordered by slot; empty if the bracket does not play it."""
        with self._session() as session:
            bracket = self._find(session, tournament_id, bracket_id)
            return [
                node_to_response(n, self.resolve_name)
                for n in bracket.nodes_in_round(round_name)
            ]

    def get_node(self, bracket_id: int, node_id: int) -> NodeResponse:
        with self._session() as session:
            bracket = self._find(session, bracket_id=bracket_id)
            node = bracket.get_node(node_id)
            if node is None:
                raise NotFoundError(f"Match node {node_id} not found")
            return node_to_response(node, self.resolve_name)

    def get_match(self, match_id: int) -> MatchResponse:
        with self._session() as session:
            match = session.get(Match, match_id)
            if match is None:
                raise NotFoundError(f"Match {match_id} not found")
            return MatchResponse.model_validate(match)

    def get_stats(
        self,
        tournament_id: Optional[int] = None,
        bracket_id: Optional[int] = None,
    ) -> BracketStats:
        with self._session() as session:
            return compute_stats(self._find(session, tournament_id, bracket_id))

    def get_upcoming(
        self,
        tournament_id: Optional[int] = None,
        bracket_id: Optional[int] = None,
    ) -> list[NodeResponse]:
        """Undecided nodes of the current round."""
        with self._session() as session:
            bracket = self._find(session, tournament_id, bracket_id)
            return [node_to_response(n, self.resolve_name) for n in upcoming_nodes(bracket)]
