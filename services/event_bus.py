"""
Event Bus - Central signal hub for bracket lifecycle events.

Collaborators (schedulers, notifiers, displays) connect to this single
object rather than to the services that mutate brackets.
"""

from PySide6.QtCore import QObject, Signal


class EventBus(QObject):
    """
    Central signal hub for Bracketry.

    Signals are emitted by BracketService after the mutation that caused
    them has been committed.

    Usage:
        # In BracketService
        self.event_bus.round_completed.emit(bracket_id, "round_of_16")

        # In a notifier
        self.event_bus.bracket_completed.connect(self._announce_champion)
    """

    # ============ Tournament Lifecycle ============
    tournament_created = Signal(dict)       # {tournament_id, name, max_participants}

    # ============ Bracket Lifecycle ============
    bracket_generated = Signal(dict)        # {bracket_id, tournament_id, total_rounds, current_round, total_matches, first_round_matches}
    bracket_seeded = Signal(dict)           # {bracket_id, tournament_id, is_seeded, status}
    bracket_completed = Signal(dict)        # {bracket_id, tournament_id, champion_id, runner_up_id}

    # ============ Match Events ============
    match_result_recorded = Signal(dict)    # {bracket_id, node_id, match_id, winner_id, completed, sets_added}
    node_cancelled = Signal(dict)           # {bracket_id, node_id, reason}

    # ============ Advancement Events ============
    winner_advanced = Signal(dict)          # {bracket_id, node_id, winner_id, destination_node_id, slot}
    advancement_skipped = Signal(dict)      # {bracket_id, node_id, winner_id}
    round_completed = Signal(int, str)      # bracket_id, round name
    current_round_changed = Signal(int, str)  # bracket_id, new round name

    # ============ System Events ============
    system_message = Signal(str, str)       # (level, message) - e.g., ("warning", "Destination missing")

    def __init__(self):
        super().__init__()

    def emit_advancement(self, bracket_id: int, advancement: dict) -> None:
        """
        Emit every signal implied by one advancement.

        Args:
            bracket_id: Bracket the winner advanced in
            advancement: {node_id, winner_id, destination_node_id, slot,
                skipped, completed_rounds, round_changed, current_round}
        """
        if advancement["destination_node_id"] is not None:
            self.winner_advanced.emit({
                "bracket_id": bracket_id,
                "node_id": advancement["node_id"],
                "winner_id": advancement["winner_id"],
                "destination_node_id": advancement["destination_node_id"],
                "slot": advancement["slot"],
            })
        if advancement["skipped"]:
            self.advancement_skipped.emit({
                "bracket_id": bracket_id,
                "node_id": advancement["node_id"],
                "winner_id": advancement["winner_id"],
            })
            self.emit_message(
                "warning",
                f"Winner of node {advancement['node_id']} has no destination "
                f"in the next round",
            )
        for round_name in advancement["completed_rounds"]:
            self.round_completed.emit(bracket_id, round_name)
        if advancement["round_changed"]:
            self.current_round_changed.emit(bracket_id, advancement["current_round"])

    def emit_message(self, level: str, message: str) -> None:
        """Emit a system message (info, warning, error)."""
        self.system_message.emit(level, message)
