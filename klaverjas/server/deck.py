"""Deck construction, shuffling and dealing."""
import random
from typing import Optional

from .errors import InsufficientCards
from .models import Card, Suit, Rank

DECK_SIZE = 32
HAND_SIZE = 8

# Display order for hands: spades, hearts, clubs, diamonds
SUIT_SORT_ORDER = {
    Suit.SPADES: 0,
    Suit.HEARTS: 1,
    Suit.CLUBS: 2,
    Suit.DIAMONDS: 3,
}

# High to low within a suit
NON_TRUMP_SORT_ORDER = {
    Rank.ACE: 0,
    Rank.TEN: 1,
    Rank.KING: 2,
    Rank.QUEEN: 3,
    Rank.JACK: 4,
    Rank.NINE: 5,
    Rank.EIGHT: 6,
    Rank.SEVEN: 7,
}

TRUMP_SORT_ORDER = {
    Rank.JACK: 0,
    Rank.NINE: 1,
    Rank.ACE: 2,
    Rank.TEN: 3,
    Rank.KING: 4,
    Rank.QUEEN: 5,
    Rank.EIGHT: 6,
    Rank.SEVEN: 7,
}


def create_deck() -> list[Card]:
    """Create the 32-card Klaverjas deck."""
    deck = []
    for suit in Suit:
        for rank in Rank:
            deck.append(Card(suit=suit, rank=rank))
    return deck


def shuffle(deck: list[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """Return a shuffled copy of the deck (Fisher-Yates); the input is left alone."""
    rng = rng or random.Random()
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def deal(deck: list[Card]) -> tuple[list[Card], list[Card], list[Card], list[Card]]:
    """Deal four hands of 8 cards in blocks: [0:8], [8:16], [16:24], [24:32]."""
    if len(deck) < DECK_SIZE:
        raise InsufficientCards(f"Need {DECK_SIZE} cards to deal, got {len(deck)}")
    return tuple(list(deck[i * HAND_SIZE:(i + 1) * HAND_SIZE]) for i in range(4))


def sort_hand(hand: list[Card], trump: Optional[Suit] = None) -> list[Card]:
    """Sort a hand for display: by suit, then high to low within the suit."""
    def key(card):
        order = TRUMP_SORT_ORDER if card.suit == trump else NON_TRUMP_SORT_ORDER
        return SUIT_SORT_ORDER[card.suit], order[card.rank]

    return sorted(hand, key=key)
