"""Tests for deck creation, shuffling and dealing."""
import random

import pytest

from klaverjas.server.deck import create_deck, deal, shuffle, sort_hand
from klaverjas.server.errors import InsufficientCards
from klaverjas.server.models import Card, Rank, Suit


def cards(*ids):
    return [Card.from_id(i) for i in ids]


class TestCreateDeck:

    def test_has_32_unique_cards(self):
        deck = create_deck()
        assert len(deck) == 32
        assert len(set(deck)) == 32

    def test_eight_cards_per_suit(self):
        deck = create_deck()
        for suit in Suit:
            assert len([c for c in deck if c.suit == suit]) == 8


class TestShuffle:

    def test_does_not_mutate_input(self):
        deck = create_deck()
        original = list(deck)
        shuffle(deck, random.Random(1))
        assert deck == original

    def test_keeps_the_same_cards(self):
        deck = create_deck()
        shuffled = shuffle(deck, random.Random(7))
        assert sorted(shuffled, key=lambda c: (c.suit, c.rank)) == sorted(deck, key=lambda c: (c.suit, c.rank))

    def test_same_seed_same_order(self):
        deck = create_deck()
        assert shuffle(deck, random.Random(42)) == shuffle(deck, random.Random(42))


class TestDeal:

    def test_four_hands_of_eight(self):
        hands = deal(shuffle(create_deck(), random.Random(3)))
        assert len(hands) == 4
        assert all(len(h) == 8 for h in hands)
        assert len({c for h in hands for c in h}) == 32

    def test_deals_in_blocks(self):
        deck = create_deck()
        hands = deal(deck)
        assert hands[0] == deck[0:8]
        assert hands[3] == deck[24:32]

    def test_short_deck_raises(self):
        with pytest.raises(InsufficientCards):
            deal(create_deck()[:31])


class TestSortHand:

    def test_sorted_by_suit_then_high_to_low(self):
        hand = cards('7_hearts', 'A_hearts', 'K_spades', '10_hearts')
        assert sort_hand(hand) == cards('K_spades', 'A_hearts', '10_hearts', '7_hearts')

    def test_trump_suit_uses_trump_order(self):
        hand = cards('A_clubs', '9_clubs', 'J_clubs')
        assert sort_hand(hand, Suit.CLUBS) == cards('J_clubs', '9_clubs', 'A_clubs')
        assert sort_hand(hand)[0] == Card(Suit.CLUBS, Rank.ACE)
