"""Legal-move and trick-winner rules (Rotterdam variant)."""
from dataclasses import dataclass
from typing import Optional

from .errors import EmptyTrick
from .models import Card, PlayedCard, Rank, Suit

# Trump order (high to low): J-9-A-10-K-Q-8-7
TRUMP_STRENGTH = {
    Rank.JACK: 7,
    Rank.NINE: 6,
    Rank.ACE: 5,
    Rank.TEN: 4,
    Rank.KING: 3,
    Rank.QUEEN: 2,
    Rank.EIGHT: 1,
    Rank.SEVEN: 0,
}

# Non-trump order (high to low): A-10-K-Q-J-9-8-7
NON_TRUMP_STRENGTH = {
    Rank.ACE: 7,
    Rank.TEN: 6,
    Rank.KING: 5,
    Rank.QUEEN: 4,
    Rank.JACK: 3,
    Rank.NINE: 2,
    Rank.EIGHT: 1,
    Rank.SEVEN: 0,
}


@dataclass(frozen=True)
class IllegalMoveRecord:
    """A move that was not in the legal set for the hand held at the time."""
    trick_index: int
    seat: int
    card: Card
    legal: tuple


def card_strength(card: Card, trump: Suit) -> int:
    if card.suit == trump:
        return TRUMP_STRENGTH[card.rank]
    return NON_TRUMP_STRENGTH[card.rank]


def _cards(trick) -> list[Card]:
    return [pc.card if isinstance(pc, PlayedCard) else pc for pc in trick]


def legal_moves(hand: list[Card], trick, trump: Suit) -> list[Card]:
    """Return the cards from hand that may be played onto the trick.

    ``trick`` may hold plain cards or PlayedCard entries.
    """
    played = _cards(trick)

    # Leading: anything goes
    if not played:
        return list(hand)

    led_suit = played[0].suit

    # Must follow suit
    following = [c for c in hand if c.suit == led_suit]
    if following:
        return following

    trumps = [c for c in hand if c.suit == trump]
    if not trumps:
        return list(hand)

    # Rotterdam: must trump, even when partner is winning the trick
    trumps_in_trick = [c for c in played if c.suit == trump]
    if not trumps_in_trick:
        return trumps

    highest = max(card_strength(c, trump) for c in trumps_in_trick)
    over = [c for c in trumps if card_strength(c, trump) > highest]
    if over:
        return over

    # Cannot over-trump: under-trumping is allowed
    return trumps


def is_legal_move(card: Card, hand: list[Card], trick, trump: Suit) -> bool:
    return card in legal_moves(hand, trick, trump)


def winning_index(cards: list[Card], trump: Suit) -> int:
    """Index of the winning card in a trick of plain cards."""
    if not cards:
        raise EmptyTrick("Cannot determine the winner of an empty trick")

    led_suit = cards[0].suit
    best_index = 0
    best_is_trump = cards[0].suit == trump
    best_strength = card_strength(cards[0], trump)

    for i, card in enumerate(cards[1:], start=1):
        is_trump = card.suit == trump
        if not is_trump and card.suit != led_suit:
            continue
        strength = card_strength(card, trump)
        if is_trump and not best_is_trump:
            best_index, best_is_trump, best_strength = i, True, strength
        elif is_trump == best_is_trump and strength > best_strength:
            best_index, best_strength = i, strength

    return best_index


def trick_winner(trick: list[PlayedCard], trump: Suit) -> int:
    """Seat that wins the trick."""
    if not trick:
        raise EmptyTrick("Cannot determine the winner of an empty trick")
    return trick[winning_index(_cards(trick), trump)].seat


def find_illegal_moves(tricks: list[list[PlayedCard]], snapshots: list[Optional[dict]],
                       trump: Suit) -> list[IllegalMoveRecord]:
    """Re-check every move against the hand its player held when the trick began.

    ``tricks`` is the chronological list of tricks (the last one may be in
    progress) and ``snapshots[i]`` maps seat -> hand at the start of trick i.
    Tricks without a snapshot are skipped. Results are in play order.
    """
    illegal = []
    for index, trick in enumerate(tricks):
        snapshot = snapshots[index] if index < len(snapshots) else None
        if snapshot is None:
            continue
        played = []
        for pc in trick:
            hand = snapshot.get(pc.seat, [])
            legal = legal_moves(hand, played, trump)
            if pc.card not in legal:
                illegal.append(IllegalMoveRecord(index, pc.seat, pc.card, tuple(legal)))
            played.append(pc.card)
    return illegal
