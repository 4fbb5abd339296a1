"""
Bracketry - Single-elimination bracket engine

Entry point: database setup and an end-to-end tournament simulation.
"""

import argparse
import logging
import random
import sys
from typing import Optional

from config import init_config, APP_NAME, APP_VERSION, BRACKET_SETTINGS
from engine.errors import BracketError
from models.rounds import SETS_TO_WIN

logger = logging.getLogger(__name__)


def simulate(participants: int, seed: Optional[int] = None, shuffle: bool = False) -> int:
    """
    Play a full tournament with random winners.

    Returns:
        The champion's participant id
    """
    from app import BracketryApp

    rng = random.Random(seed)
    app = BracketryApp()

    tournament = app.brackets.create_tournament(f"Simulated {participants}-player open")
    participant_ids = list(range(1, participants + 1))
    bracket = app.brackets.build_bracket(tournament.id, participant_ids)

    seed_order = rng.sample(participant_ids, len(participant_ids)) if shuffle else None
    app.brackets.seed_bracket(bracket.id, seed_order)
    app.brackets.advance_byes(bracket.id)

    while True:
        upcoming = app.queries.get_upcoming(bracket_id=bracket.id)
        if not upcoming:
            break
        for node in upcoming:
            if node.player2 is None or node.player1 is None:
                continue
            winner = rng.choice([node.player1.id, node.player2.id])
            winner_is_p1 = winner == node.player1.id
            sets = []
            for _ in range(SETS_TO_WIN[node.round]):
                loser_score = rng.randint(0, 9)
                sets.append((11, loser_score) if winner_is_p1 else (loser_score, 11))
            app.brackets.record_result(bracket.id, node.id, winner, sets=sets)
        app.brackets.advance_byes(bracket.id)

    result = app.brackets.get_tournament(tournament.id)
    print(f"Champion: {result.champion_id} (runner-up {result.runner_up_id})")
    return result.champion_id


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for Bracketry."""
    parser = argparse.ArgumentParser(prog=APP_NAME.lower(), description=__doc__)
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")

    sim = subparsers.add_parser("simulate", help="Play a random tournament end to end")
    sim.add_argument(
        "--participants", type=int, default=BRACKET_SETTINGS.min_participants,
        help="Number of participants (default: %(default)s)",
    )
    sim.add_argument("--seed", type=int, default=None, help="Random seed")
    sim.add_argument("--shuffle", action="store_true", help="Apply a random seed order")

    args = parser.parse_args(argv)

    # Initialize configuration and directories
    init_config(level=args.log_level)

    if args.command == "init-db":
        from models.base import init_db
        init_db()
        logger.info("Database initialized")
        return 0

    try:
        simulate(args.participants, seed=args.seed, shuffle=args.shuffle)
    except BracketError as e:
        logger.error("Simulation failed: %s", e.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
