"""
Bracketry Database Models

SQLAlchemy ORM models for the single-elimination bracket engine.
"""

from models.base import (
    Base, engine, SessionLocal, get_session, init_db, create_session_factory,
)
from models.rounds import RoundName, SETS_TO_WIN, MATCH_FORMATS
from models.tournament import Tournament, TournamentStatus
from models.match import Match, MatchSet, MatchStatus, SetWinner
from models.bracket import Bracket, BracketNode, BracketStatus, NodeStatus

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_session",
    "init_db",
    "create_session_factory",
    "RoundName",
    "SETS_TO_WIN",
    "MATCH_FORMATS",
    "Tournament",
    "TournamentStatus",
    "Match",
    "MatchSet",
    "MatchStatus",
    "SetWinner",
    "Bracket",
    "BracketNode",
    "BracketStatus",
    "NodeStatus",
]
