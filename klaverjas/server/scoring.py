"""Card points and round scoring."""
from typing import Optional

from .models import Card, Rank, RoundResult, Suit

# Trump: J=20, 9=14, A=11, 10=10, K=4, Q=3, 8=0, 7=0
TRUMP_POINTS = {
    Rank.JACK: 20,
    Rank.NINE: 14,
    Rank.ACE: 11,
    Rank.TEN: 10,
    Rank.KING: 4,
    Rank.QUEEN: 3,
    Rank.EIGHT: 0,
    Rank.SEVEN: 0,
}

# Non-trump: A=11, 10=10, K=4, Q=3, J=2, 9=0, 8=0, 7=0
NON_TRUMP_POINTS = {
    Rank.ACE: 11,
    Rank.TEN: 10,
    Rank.KING: 4,
    Rank.QUEEN: 3,
    Rank.JACK: 2,
    Rank.NINE: 0,
    Rank.EIGHT: 0,
    Rank.SEVEN: 0,
}

CARD_POINTS_TOTAL = 152
LAST_TRICK_BONUS = 10
BASE_POINTS = CARD_POINTS_TOTAL + LAST_TRICK_BONUS  # 162
PIT_BONUS = 100


def card_points(card: Card, trump: Suit) -> int:
    if card.suit == trump:
        return TRUMP_POINTS[card.rank]
    return NON_TRUMP_POINTS[card.rank]


def trick_points(cards: list[Card], trump: Suit) -> int:
    return sum(card_points(c, trump) for c in cards)


def majority_threshold(total_roem: int) -> int:
    """Points the playing team needs to avoid going nat."""
    return (BASE_POINTS + total_roem) // 2 + 1


def round_result(playing_team_points: int, defending_team_points: int,
                 playing_team_roem: int, defending_team_roem: int,
                 playing_team_tricks: int, is_verzaakt: bool = False,
                 verzaakt_by_playing_team: Optional[bool] = None) -> RoundResult:
    """Score a finished round.

    Verzaakt hands everything (162 plus all roem) to the innocent team. Otherwise
    the playing team goes nat when its card points, roem left out, do not reach
    the majority threshold of 162 plus all roem claimed; nat hands everything to
    the defenders. A pit (all 8 tricks) earns the playing team 100 extra.
    """
    total_roem = playing_team_roem + defending_team_roem

    if is_verzaakt:
        if verzaakt_by_playing_team:
            return RoundResult(0, BASE_POINTS + total_roem, is_verzaakt=True)
        return RoundResult(BASE_POINTS + total_roem, 0, is_verzaakt=True)

    if playing_team_points <= majority_threshold(total_roem) - 1:
        return RoundResult(0, BASE_POINTS + total_roem, is_nat=True)

    playing = playing_team_points + playing_team_roem
    defending = defending_team_points + defending_team_roem
    is_pit = playing_team_tricks == 8
    if is_pit:
        playing += PIT_BONUS
    return RoundResult(playing, defending, is_pit=is_pit)
