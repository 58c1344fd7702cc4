"""Roem (bonus combination) detection and claim validation.

Roem types:
  sequence3    three consecutive cards of one suit        20
  sequence4    four or more consecutive cards of one suit  50
  stuk         king and queen of trump                     20
  fourOfAKind  all four cards of 9, 10, J, Q, K or A        100

Stacking is allowed: Q-K-A of trump scores a sequence and stuk.
Sequences use the positional order 7-8-9-10-J-Q-K-A, never trick strength.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .models import Card, PlayedCard, Rank, Suit


class RoemType(Enum):
    SEQUENCE3 = "sequence3"
    SEQUENCE4 = "sequence4"
    STUK = "stuk"
    FOUR_OF_A_KIND = "fourOfAKind"


ROEM_POINTS = {
    RoemType.SEQUENCE3: 20,
    RoemType.SEQUENCE4: 50,
    RoemType.STUK: 20,
    RoemType.FOUR_OF_A_KIND: 100,
}

# Four 7s or four 8s are worth nothing
FOUR_OF_A_KIND_RANKS = (Rank.NINE, Rank.TEN, Rank.JACK, Rank.QUEEN, Rank.KING, Rank.ACE)


@dataclass(frozen=True)
class RoemClaim:
    type: RoemType
    cards: tuple

    @property
    def points(self) -> int:
        return ROEM_POINTS[self.type]

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "points": self.points,
            "cards": [c.to_dict() for c in self.cards],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RoemClaim":
        return cls(type=RoemType(data["type"]),
                   cards=tuple(Card.from_dict(c) for c in data.get("cards") or []))


@dataclass
class DetectedRoem:
    claims: list = field(default_factory=list)

    @property
    def total_points(self) -> int:
        return sum(c.points for c in self.claims)


def _positional(cards) -> list[Card]:
    return sorted(cards, key=lambda c: c.rank.value)


def detect_sequences(cards: list[Card]) -> list[RoemClaim]:
    """Find maximal runs of 3+ consecutive cards per suit."""
    claims = []
    for suit in Suit:
        run = _positional({c for c in cards if c.suit == suit})
        if len(run) < 3:
            continue
        start = 0
        for i in range(1, len(run) + 1):
            if i < len(run) and run[i].rank.value == run[i - 1].rank.value + 1:
                continue
            length = i - start
            if length >= 4:
                # Longer runs still count once; the claim names the top four cards
                claims.append(RoemClaim(RoemType.SEQUENCE4, tuple(run[i - 4:i])))
            elif length == 3:
                claims.append(RoemClaim(RoemType.SEQUENCE3, tuple(run[start:i])))
            start = i
    return claims


def detect_stuk(cards: list[Card], trump: Suit) -> Optional[RoemClaim]:
    king = Card(trump, Rank.KING)
    queen = Card(trump, Rank.QUEEN)
    if king in cards and queen in cards:
        return RoemClaim(RoemType.STUK, (king, queen))
    return None


def detect_four_of_a_kind(cards: list[Card]) -> list[RoemClaim]:
    claims = []
    for rank in FOUR_OF_A_KIND_RANKS:
        matching = [Card(suit, rank) for suit in Suit if Card(suit, rank) in cards]
        if len(matching) == 4:
            claims.append(RoemClaim(RoemType.FOUR_OF_A_KIND, tuple(matching)))
    return claims


def detect_all_roem(cards: list[Card], trump: Suit) -> DetectedRoem:
    """All roem in a set of cards, stacked."""
    detected = DetectedRoem()
    detected.claims.extend(detect_sequences(cards))
    stuk = detect_stuk(cards, trump)
    if stuk:
        detected.claims.append(stuk)
    detected.claims.extend(detect_four_of_a_kind(cards))
    return detected


def available_cards_for(seat: int, hand: list[Card], trick: list[PlayedCard]) -> list[Card]:
    """Cards a seat can build a claim from: its hand plus what it already played in the trick."""
    return list(hand) + [pc.card for pc in trick if pc.seat == seat]


def validate_roem_claim(claim: RoemClaim, available_cards: list[Card], trump: Suit) -> bool:
    """Check a claim against the cards the claimant can show.

    The declared type must match the cards exactly: claiming sequence3 with four
    consecutive cards, or sequence4 with three, is rejected.
    """
    cards = list(claim.cards)
    if not cards or len(set(cards)) != len(cards):
        return False
    if any(c not in available_cards for c in cards):
        return False

    if claim.type == RoemType.SEQUENCE3:
        return _is_sequence(cards, 3)
    if claim.type == RoemType.SEQUENCE4:
        return _is_sequence(cards, 4)
    if claim.type == RoemType.STUK:
        return set(cards) == {Card(trump, Rank.KING), Card(trump, Rank.QUEEN)}
    if claim.type == RoemType.FOUR_OF_A_KIND:
        return _is_four_of_a_kind(cards)
    return False


def _is_sequence(cards: list[Card], length: int) -> bool:
    if len(cards) != length:
        return False
    if len({c.suit for c in cards}) != 1:
        return False
    ordered = _positional(cards)
    return all(b.rank.value == a.rank.value + 1 for a, b in zip(ordered, ordered[1:]))


def _is_four_of_a_kind(cards: list[Card]) -> bool:
    if len(cards) != 4:
        return False
    rank = cards[0].rank
    if rank not in FOUR_OF_A_KIND_RANKS:
        return False
    if any(c.rank != rank for c in cards):
        return False
    return len({c.suit for c in cards}) == 4
