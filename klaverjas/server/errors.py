"""Game errors for Klaverjas.

All of these are expected, recoverable conditions. The HTTP layer turns them
into a 400 response carrying ``code`` and the message; the game document is
never written when one is raised.
"""


class GameError(Exception):
    """Base exception for game errors."""
    code = "game_error"


class InvalidPhaseError(GameError):
    """Raised when an action is attempted in the wrong phase."""
    code = "wrong_phase"


class NoActiveRound(InvalidPhaseError):
    code = "no_active_round"


class WrongPhase(InvalidPhaseError):
    pass


class InvalidMoveError(GameError):
    """Raised when a player makes an invalid move."""
    code = "invalid_move"


class NotYourTurn(InvalidMoveError):
    code = "not_your_turn"


class CardNotInHand(InvalidMoveError):
    code = "card_not_in_hand"


class IllegalMove(InvalidMoveError):
    code = "illegal_move"


class InvalidRoemClaim(InvalidMoveError):
    code = "invalid_roem_claim"


class RoemAlreadyClaimed(InvalidMoveError):
    code = "roem_already_claimed"


class InsufficientPriorPlay(InvalidMoveError):
    """Verzaakt called before two cards were played in the trick."""
    code = "insufficient_prior_play"


class InsufficientCards(GameError):
    code = "insufficient_cards"


class EmptyTrick(GameError):
    code = "empty_trick"
