"""
Bracketry Application Controller

Top-level controller that wires together the event bus and bracket services.
"""

import logging
from typing import Optional

from PySide6.QtCore import QObject
from sqlalchemy.orm import sessionmaker

from services.event_bus import EventBus
from services.bracket_service import BracketService
from services.bracket_queries import BracketQueryService
from engine.queries import NameResolver
from models.base import init_db
from config import BRACKET_SETTINGS

logger = logging.getLogger(__name__)


class BracketryApp(QObject):
    """
    Top-level application controller.
    Wires together all application components.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        resolve_name: Optional[NameResolver] = None,
    ):
        super().__init__()

        # Default database needs its tables; custom factories create their own
        if session_factory is None:
            init_db()

        # Core services
        self.event_bus = EventBus()
        self.brackets = BracketService(
            session_factory=session_factory,
            event_bus=self.event_bus,
            settings=BRACKET_SETTINGS,
        )
        self.queries = BracketQueryService(
            session_factory=session_factory,
            resolve_name=resolve_name,
        )

        # Log lifecycle events
        self.event_bus.bracket_generated.connect(self._on_bracket_generated)
        self.event_bus.round_completed.connect(self._on_round_completed)
        self.event_bus.bracket_completed.connect(self._on_bracket_completed)
        self.event_bus.system_message.connect(self._on_system_message)

    def _on_bracket_generated(self, data: dict) -> None:
        logger.info(
            "Bracket %s ready: %s matches over %s rounds",
            data["bracket_id"], data["total_matches"], data["total_rounds"],
        )

    def _on_round_completed(self, bracket_id: int, round_name: str) -> None:
        logger.info("Bracket %s: %s closed", bracket_id, round_name)

    def _on_bracket_completed(self, data: dict) -> None:
        logger.info(
            "Tournament %s won by %s (runner-up %s)",
            data["tournament_id"], data["champion_id"], data["runner_up_id"],
        )

    def _on_system_message(self, level: str, message: str) -> None:
        logger.log(logging.getLevelName(level.upper()), message)
