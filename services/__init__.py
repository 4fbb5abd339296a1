"""
Bracketry Services

Application services for events, bracket mutation and bracket queries.
"""

from services.event_bus import EventBus
from services.bracket_service import BracketService, BracketLocks
from services.bracket_queries import BracketQueryService

__all__ = ["EventBus", "BracketService", "BracketLocks", "BracketQueryService"]
