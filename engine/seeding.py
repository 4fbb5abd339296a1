"""
Seeding Assigner

Places participants into first-round slots before play starts. Seeds are
taken as given; no ranking is computed here.
"""

import logging
from typing import Optional, Sequence

from engine.errors import InvalidStateError
from models.bracket import Bracket, BracketStatus

logger = logging.getLogger(__name__)


def apply_seeding(bracket: Bracket, seed_order: Optional[Sequence[int]] = None) -> Bracket:
    """
    Seed a generated bracket and activate it.

    With a seed order, first-round node i receives seed_order[2i] in slot 1
    and seed_order[2i + 1] in slot 2, replacing whatever the builder placed
    there. Slots beyond the end of the seed order are left untouched.
    Without one, the builder's placement stands.

    Args:
        bracket: Bracket in GENERATED status
        seed_order: Participant identities, top seed first

    Returns:
        The same bracket, seeded and ACTIVE
    """
    if bracket.status != BracketStatus.GENERATED:
        raise InvalidStateError(
            f"Bracket must be in generated status to seed "
            f"(status: {bracket.status.value})"
        )

    if seed_order:
        first_round_nodes = bracket.nodes_in_round(bracket.first_round)
        for i, node in enumerate(first_round_nodes):
            if 2 * i < len(seed_order):
                node.player1_id = seed_order[2 * i]
            if 2 * i + 1 < len(seed_order):
                node.player2_id = seed_order[2 * i + 1]
            node.is_bye = node.player1_id is None or node.player2_id is None

        logger.debug(
            "Applied %d seeds to %d first-round nodes",
            len(seed_order), len(first_round_nodes),
        )

    bracket.is_seeded = True
    bracket.mark_active()

    logger.info("Seeded bracket %s (explicit order: %s)", bracket.id, bool(seed_order))
    return bracket
