"""Exception types shared by the round engine, session controller and clients."""


class GameError(Exception):
    """Base class for rejected game operations."""


class PhaseError(GameError):
    """Raised when an operation is not allowed in the current game phase."""


class InvalidGuessError(GameError):
    """Raised for empty or whitespace-only guesses. Never counts as a wrong guess."""


class RoundFinishedError(GameError):
    """Raised when a mutating operation targets a round that already has a result."""


class UnknownNpcError(GameError):
    """Raised when an NPC id does not belong to the current location."""


class TurnInProgressError(GameError):
    """Raised when a second driver turn is sent before the first one returned."""


class SessionStartError(GameError):
    """Raised when no scenario can be obtained, from the generator or the fallback pool."""


class UnknownTranslationError(GameError):
    """Raised when a translation target is neither a logged line nor an NPC of the location."""


class CollaboratorError(RuntimeError):
    """Raised when an external AI service cannot be reached or returns garbage."""
