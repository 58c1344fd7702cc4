"""Game engine for Klaverjas - handles all game logic.

``GameEngine`` applies actions to a ``GameState`` in place. ``transition`` is the
pure entry point used by the synchronization layer: it works on a deep copy and
returns the new state, so a failed action leaves the caller's state untouched.
"""
import copy
import random
from dataclasses import dataclass
from typing import Optional

from .deck import create_deck, shuffle, deal, sort_hand
from .errors import (
    GameError, InvalidPhaseError, InvalidMoveError, NoActiveRound, WrongPhase,
    NotYourTurn, CardNotInHand, IllegalMove, InvalidRoemClaim, RoemAlreadyClaimed,
    InsufficientPriorPlay, InsufficientCards, EmptyTrick,
)
from .models import (
    Card, GameState, Notification, NotificationType, Phase, PlayedCard,
    CompletedTrick, RoundState, RoundSummary, Suit, Team,
    SEATS, SUIT_NAMES, next_seat, other_team, parse_suit, team_of,
)
from .roem import RoemClaim, available_cards_for, detect_all_roem, validate_roem_claim
from .rules import find_illegal_moves, legal_moves, trick_winner
from .scoring import LAST_TRICK_BONUS, round_result, trick_points

TOTAL_ROUNDS = 16
TRICKS_PER_ROUND = 8

__all__ = [
    "GameEngine", "transition", "new_game", "game_result", "legal_cards_for",
    "trick_winner_seat", "describe_action",
    "ChooseTrump", "PlayCard", "ClaimRoem", "CallVerzaakt", "CompleteTrick",
    "StartNextRound", "VoteSkip", "VerzaaktResult",
    "GameError", "InvalidPhaseError", "InvalidMoveError", "NoActiveRound",
    "WrongPhase", "NotYourTurn", "CardNotInHand", "IllegalMove", "InvalidRoemClaim",
    "RoemAlreadyClaimed", "InsufficientPriorPlay", "InsufficientCards", "EmptyTrick",
]


# === Actions ===

@dataclass(frozen=True)
class ChooseTrump:
    seat: int
    suit: Suit


@dataclass(frozen=True)
class PlayCard:
    seat: int
    card: Card


@dataclass(frozen=True)
class ClaimRoem:
    """Claim roem; without ``claim`` the roem in the current trick is detected."""
    seat: int
    claim: Optional[RoemClaim] = None


@dataclass(frozen=True)
class CallVerzaakt:
    seat: int


@dataclass(frozen=True)
class CompleteTrick:
    pass


@dataclass(frozen=True)
class StartNextRound:
    pass


@dataclass(frozen=True)
class VoteSkip:
    seat: int


@dataclass(frozen=True)
class VerzaaktResult:
    found: bool
    guilty_seat: Optional[int] = None
    guilty_team: Optional[Team] = None
    trick_index: Optional[int] = None
    card: Optional[Card] = None


class GameEngine:
    """Manages game state and enforces rules for Klaverjas."""

    def __init__(self, game: GameState, rng: Optional[random.Random] = None):
        self.game = game
        self.rng = rng or random.Random()

    # === Round Setup ===

    def start_new_round(self):
        """Shuffle, deal and wait for the seat left of the dealer to pick trump."""
        hands = deal(shuffle(create_deck(), self.rng))
        chooser = next_seat(self.game.dealer)

        rnd = RoundState(
            hands={seat: sort_hand(hand) for seat, hand in zip(SEATS, hands)},
            trump_chooser=chooser,
            current_player=chooser,
        )
        rnd.hand_snapshots = [rnd.snapshot_hands()]

        self.game.round = rnd
        self.game.phase = Phase.TRUMP_SELECTION
        self.game.skip_votes = []

    # === Trump Selection ===

    def choose_trump(self, seat: int, suit):
        self._validate_phase(Phase.TRUMP_SELECTION)
        rnd = self.game.round

        if seat != rnd.trump_chooser:
            raise NotYourTurn(f"Seat {seat} cannot choose trump; it is seat {rnd.trump_chooser}'s turn")

        try:
            trump = parse_suit(suit)
        except ValueError as e:
            raise InvalidMoveError(str(e)) from e

        rnd.trump = trump
        rnd.playing_team = team_of(seat)
        rnd.current_player = seat
        self.game.phase = Phase.PLAYING

    # === Playing Phase ===

    def play_card(self, seat: int, card: Card) -> dict:
        """Play a card.

        During trick end only the trick winner may play; doing so first finalizes
        the completed trick and then leads the next one. After the eighth trick
        the hands are empty, so the winner's move only closes the round (the
        card is ignored), exactly like CompleteTrick.
        """
        self._validate_phase(Phase.PLAYING, Phase.TRICK_END)
        rnd = self.game.round
        result = {"card": card.to_dict(), "trick_complete": False}

        if self.game.phase == Phase.TRICK_END:
            if seat != rnd.current_player:
                raise NotYourTurn(f"Seat {seat} cannot lead; seat {rnd.current_player} won the trick")
            if rnd.trick_index + 1 >= TRICKS_PER_ROUND:
                self.complete_trick()
                result["round_complete"] = True
                return result
            if card not in rnd.hands[seat]:
                raise CardNotInHand(f"Card {card.id} not in hand")
            result["completed_trick"] = self._finalize_trick().to_dict()

        if seat != rnd.current_player:
            raise NotYourTurn(f"Seat {seat} cannot play; it is seat {rnd.current_player}'s turn")

        hand = rnd.hands[seat]
        if card not in hand:
            raise CardNotInHand(f"Card {card.id} not in hand")

        if self.game.enforce_legal_moves and card not in legal_moves(hand, rnd.current_trick, rnd.trump):
            raise IllegalMove(f"Card {card.id} is not a legal move")

        hand.remove(card)
        rnd.current_trick.append(PlayedCard(seat, card))

        if len(rnd.current_trick) == 4:
            winner = trick_winner(rnd.current_trick, rnd.trump)
            rnd.current_player = winner
            self.game.phase = Phase.TRICK_END
            result["trick_complete"] = True
            result["trick_winner"] = winner
        else:
            rnd.current_player = next_seat(seat)

        return result

    def complete_trick(self) -> bool:
        """Finalize a completed trick. A no-op (returns False) unless in trick end."""
        if self.game.phase != Phase.TRICK_END:
            return False

        self._finalize_trick()
        if self.game.round.trick_index == TRICKS_PER_ROUND:
            self._end_round()
        return True

    def _finalize_trick(self) -> CompletedTrick:
        rnd = self.game.round
        winner = trick_winner(rnd.current_trick, rnd.trump)
        team = team_of(winner)

        points = trick_points(rnd.trick_cards(), rnd.trump)
        if rnd.trick_index == TRICKS_PER_ROUND - 1:
            points += LAST_TRICK_BONUS

        # Roem is only committed once the trick's winner is known
        roem = rnd.roem_pending
        rnd.points[team] += points
        rnd.roem[team] += roem
        rnd.tricks_won[team] += 1

        completed = CompletedTrick(cards=list(rnd.current_trick), winner=winner, points=points, roem=roem)
        rnd.completed_tricks.append(completed)

        rnd.current_trick = []
        rnd.roem_pending = 0
        rnd.roem_claimed = False
        rnd.current_player = winner

        if rnd.trick_index < TRICKS_PER_ROUND:
            del rnd.hand_snapshots[rnd.trick_index:]
            rnd.hand_snapshots.append(rnd.snapshot_hands())

        self.game.phase = Phase.PLAYING
        return completed

    # === Roem ===

    def claim_roem(self, seat: int, claim: Optional[RoemClaim] = None) -> Notification:
        """Claim roem on the cards of the current trick.

        One claim per trick. A claim that finds nothing is answered with a
        rejected notification rather than an error. An explicit ``claim`` is
        checked against the cards the seat can show (hand plus its card in the
        trick) and raises InvalidRoemClaim when they do not back it.
        """
        self._validate_phase(Phase.PLAYING, Phase.TRICK_END)
        self._validate_seat(seat)
        rnd = self.game.round

        if rnd.roem_claimed:
            raise RoemAlreadyClaimed("Roem has already been claimed this trick")
        if not rnd.current_trick:
            raise EmptyTrick("Cannot claim roem before a card is played")

        if claim is not None:
            available = available_cards_for(seat, rnd.hands[seat], rnd.current_trick)
            if not validate_roem_claim(claim, available, rnd.trump):
                raise InvalidRoemClaim(f"Invalid {claim.type.value} claim")
            points = claim.points
        else:
            points = detect_all_roem(rnd.trick_cards(), rnd.trump).total_points
        rnd.roem_claimed = True

        if points > 0:
            rnd.roem_pending = points
            return self._notify(NotificationType.ROEM_CLAIMED, seat, points=points)
        return self._notify(NotificationType.ROEM_REJECTED, seat)

    # === Verzaakt ===

    def call_verzaakt(self, caller: int) -> VerzaaktResult:
        """Re-check every move of the round and end it on the first illegal one."""
        self._validate_phase(Phase.PLAYING, Phase.TRICK_END)
        self._validate_seat(caller)
        rnd = self.game.round

        if len(rnd.current_trick) < 2:
            raise InsufficientPriorPlay("Cannot call verzaakt before at least 2 cards are played")

        tricks = [t.cards for t in rnd.completed_tricks] + [rnd.current_trick]
        illegal = find_illegal_moves(tricks, rnd.hand_snapshots, rnd.trump)

        if not illegal:
            self._notify(NotificationType.VERZAAKT_NOT_FOUND, caller)
            return VerzaaktResult(found=False)

        first = illegal[0]
        result = VerzaaktResult(
            found=True,
            guilty_seat=first.seat,
            guilty_team=team_of(first.seat),
            trick_index=first.trick_index,
            card=first.card,
        )
        # Pending roem is forfeited along with the rest of the round
        rnd.roem_pending = 0
        self._notify(NotificationType.VERZAAKT_FOUND, caller,
                     guilty_seat=result.guilty_seat, guilty_team=result.guilty_team)
        self._end_round(verzaakt=result)
        return result

    # === Scoring Phase ===

    def _end_round(self, verzaakt: Optional[VerzaaktResult] = None):
        """Score the round into the game totals."""
        rnd = self.game.round
        playing = rnd.playing_team
        defending = other_team(playing)

        result = round_result(
            playing_team_points=rnd.points[playing],
            defending_team_points=rnd.points[defending],
            playing_team_roem=rnd.roem[playing],
            defending_team_roem=rnd.roem[defending],
            playing_team_tricks=rnd.tricks_won[playing],
            is_verzaakt=verzaakt is not None,
            verzaakt_by_playing_team=verzaakt.guilty_team == playing if verzaakt else None,
        )
        round_scores = {playing: result.playing_team_score, defending: result.defending_team_score}
        for team, score in round_scores.items():
            self.game.scores[team] += score

        self.game.last_round_result = RoundSummary(
            round_number=self.game.round_number,
            playing_team=playing,
            scores=round_scores,
            is_nat=result.is_nat,
            is_pit=result.is_pit,
            is_verzaakt=result.is_verzaakt,
            guilty_seat=verzaakt.guilty_seat if verzaakt else None,
        )
        self.game.skip_votes = []
        if self.game.round_number >= self.game.total_rounds:
            self.game.phase = Phase.GAME_END
        else:
            self.game.phase = Phase.ROUND_END

    def start_next_round(self) -> bool:
        """Deal the next round. A no-op (returns False) unless in round end."""
        if self.game.phase != Phase.ROUND_END:
            return False

        if self.game.round_number + 1 > self.game.total_rounds:
            self.game.phase = Phase.GAME_END
            return True

        self.game.round_number += 1
        self.game.dealer = next_seat(self.game.dealer)
        self.start_new_round()
        return True

    def vote_skip(self, seat: int) -> list[int]:
        """Vote to move on from the round summary; all four votes start the next round."""
        self._validate_phase(Phase.ROUND_END)
        self._validate_seat(seat)

        if seat not in self.game.skip_votes:
            self.game.skip_votes = sorted(self.game.skip_votes + [seat])
        votes = list(self.game.skip_votes)
        if len(votes) == len(SEATS):
            self.start_next_round()
        return votes

    # === Helper Methods ===

    def _validate_phase(self, *expected: Phase):
        """Validate the game is in one of the expected phases."""
        if not self.game.round:
            raise NoActiveRound("No active round")
        if self.game.phase not in expected:
            names = ", ".join(p.value for p in expected)
            raise WrongPhase(f"Expected phase {names}, but in {self.game.phase.value}")

    def _validate_seat(self, seat: int):
        if seat not in SEATS:
            raise NotYourTurn(f"Seat {seat!r} is not a playing seat")

    def _notify(self, kind: NotificationType, seat: int, **kwargs) -> Notification:
        self.game.notification_seq += 1
        notification = Notification(type=kind, seat=seat, seq=self.game.notification_seq, **kwargs)
        self.game.last_notification = notification
        return notification

    # === Game State Queries ===

    def get_legal_cards(self, seat: int) -> list[Card]:
        """Cards the seat may play right now (empty when it is not their turn)."""
        rnd = self.game.round
        if not rnd or seat != rnd.current_player:
            return []
        if self.game.phase == Phase.PLAYING:
            return legal_moves(rnd.hands[seat], rnd.current_trick, rnd.trump)
        if self.game.phase == Phase.TRICK_END and rnd.trick_index + 1 < TRICKS_PER_ROUND:
            return list(rnd.hands[seat])
        return []

    def get_game_state(self, viewer_seat: Optional[int] = None) -> dict:
        """Game document, optionally as seen from one seat (other hands hidden)."""
        state = self.game.to_document()
        rnd = self.game.round

        if viewer_seat is not None and rnd:
            hidden = {}
            for seat in SEATS:
                key = str(seat)
                if seat != viewer_seat:
                    hidden[key] = len(rnd.hands[seat])
                    state["hands"][key] = []
                    state["handsAtTrickStart"][key] = []
            state["handCounts"] = hidden
            state["handSnapshots"] = []
            state["legalCards"] = [c.to_dict() for c in self.get_legal_cards(viewer_seat)]

        if self.game.phase == Phase.GAME_END:
            winner = game_result(self.game)
            state["winner"] = winner.value if winner else "tie"

        return state


def new_game(rng: Optional[random.Random] = None, enforce_legal_moves: bool = True,
             total_rounds: int = TOTAL_ROUNDS) -> GameState:
    """Create a game with the first round dealt; seat 0 deals, seat 1 picks trump."""
    game = GameState(dealer=0, round_number=1, total_rounds=total_rounds,
                     enforce_legal_moves=enforce_legal_moves)
    GameEngine(game, rng).start_new_round()
    return game


def game_result(game: GameState) -> Optional[Team]:
    """Team with the higher total, or None on a tie."""
    if game.scores[Team.NS] > game.scores[Team.WE]:
        return Team.NS
    if game.scores[Team.WE] > game.scores[Team.NS]:
        return Team.WE
    return None


def legal_cards_for(game: GameState, seat: int) -> list[Card]:
    return GameEngine(game).get_legal_cards(seat)


def trick_winner_seat(game: GameState) -> Optional[int]:
    """Winner of the trick on the table, or None while it is incomplete."""
    rnd = game.round
    if not rnd or len(rnd.current_trick) < 4:
        return None
    return trick_winner(rnd.current_trick, rnd.trump)


_HANDLERS = {
    ChooseTrump: lambda engine, a: engine.choose_trump(a.seat, a.suit),
    PlayCard: lambda engine, a: engine.play_card(a.seat, a.card),
    ClaimRoem: lambda engine, a: engine.claim_roem(a.seat, a.claim),
    CallVerzaakt: lambda engine, a: engine.call_verzaakt(a.seat),
    CompleteTrick: lambda engine, a: engine.complete_trick(),
    StartNextRound: lambda engine, a: engine.start_next_round(),
    VoteSkip: lambda engine, a: engine.vote_skip(a.seat),
}


def transition(state: GameState, action, rng: Optional[random.Random] = None) -> GameState:
    """Apply one action to a copy of ``state`` and return the copy."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise GameError(f"Unknown action: {action!r}")

    game = copy.deepcopy(state)
    handler(GameEngine(game, rng), action)
    return game


def describe_action(action) -> str:
    """One-line description of an action for the game log."""
    name = type(action).__name__
    if isinstance(action, ChooseTrump):
        return f"{name} seat={action.seat} suit={SUIT_NAMES[parse_suit(action.suit)]}"
    if isinstance(action, PlayCard):
        return f"{name} seat={action.seat} card={action.card.id}"
    if hasattr(action, "seat"):
        return f"{name} seat={action.seat}"
    return name
