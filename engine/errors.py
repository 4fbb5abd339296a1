"""
Bracket engine errors.

Every failure is recoverable and reported with a machine-readable ``kind``.
No engine operation mutates a bracket before it has raised one of these.
"""


class BracketError(Exception):
    """Base class for all bracket engine failures."""
    kind = "bracket_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(BracketError, LookupError):
    """Tournament, bracket or node does not exist."""
    kind = "not_found"


class InvalidStateError(BracketError):
    """The target is in the wrong status for the requested operation."""
    kind = "invalid_state"


class AlreadyExistsError(InvalidStateError):
    kind = "already_exists"


class AlreadyCompletedError(InvalidStateError):
    kind = "already_completed"


class MatchCancelledError(InvalidStateError):
    kind = "cancelled"


class InsufficientParticipantsError(BracketError, ValueError):
    """Fewer confirmed participants than the configured minimum."""
    kind = "insufficient_participants"


class InvalidScoreError(BracketError, ValueError):
    """Set scores are malformed or out of range."""
    kind = "invalid_score"


class InconsistentWinnerError(BracketError, ValueError):
    """The declared winner is not a participant, or disagrees with the sets."""
    kind = "inconsistent_winner"
