"""Game models for Klaverjas."""
from enum import IntEnum, Enum
from dataclasses import dataclass, field
from typing import Optional


# === Enums ===

class Suit(IntEnum):
    SPADES = 1
    HEARTS = 2
    CLUBS = 3
    DIAMONDS = 4


class Rank(IntEnum):
    """Ranks in sequence order (used for roem runs, not for trick strength)."""
    SEVEN = 1
    EIGHT = 2
    NINE = 3
    TEN = 4
    JACK = 5
    QUEEN = 6
    KING = 7
    ACE = 8


class Team(Enum):
    NS = "ns"   # seats 0 and 2
    WE = "we"   # seats 1 and 3


class Phase(Enum):
    TRUMP_SELECTION = "trump"
    PLAYING = "playing"
    TRICK_END = "trickEnd"
    ROUND_END = "roundEnd"
    GAME_END = "gameEnd"


class NotificationType(Enum):
    ROEM_CLAIMED = "roemClaimed"
    ROEM_REJECTED = "roemRejected"
    VERZAAKT_FOUND = "verzaaktFound"
    VERZAAKT_NOT_FOUND = "verzaaktNotFound"


# === Mappings ===

SUIT_NAMES = {
    Suit.SPADES: "spades",
    Suit.HEARTS: "hearts",
    Suit.CLUBS: "clubs",
    Suit.DIAMONDS: "diamonds",
}

SUIT_SYMBOLS = {
    Suit.SPADES: "♠",
    Suit.HEARTS: "♥",
    Suit.CLUBS: "♣",
    Suit.DIAMONDS: "♦",
}

RANK_NAMES = {
    Rank.SEVEN: "7",
    Rank.EIGHT: "8",
    Rank.NINE: "9",
    Rank.TEN: "10",
    Rank.JACK: "J",
    Rank.QUEEN: "Q",
    Rank.KING: "K",
    Rank.ACE: "A",
}

NAME_TO_SUIT = {v: k for k, v in SUIT_NAMES.items()}
NAME_TO_SUIT.update({v: k for k, v in SUIT_SYMBOLS.items()})
NAME_TO_RANK = {v: k for k, v in RANK_NAMES.items()}

SEATS = (0, 1, 2, 3)


def parse_suit(value) -> Suit:
    """Accept a Suit, a suit name ("hearts") or a symbol ("♥")."""
    if isinstance(value, Suit):
        return value
    suit = NAME_TO_SUIT.get(str(value).lower()) or NAME_TO_SUIT.get(str(value))
    if suit is None:
        raise ValueError(f"Unknown suit: {value!r}")
    return suit


def team_of(seat: int) -> Team:
    return Team.NS if seat % 2 == 0 else Team.WE


def other_team(team: Team) -> Team:
    return Team.WE if team == Team.NS else Team.NS


def next_seat(seat: int) -> int:
    """Seat immediately clockwise."""
    return (seat + 1) % 4


def empty_team_counter() -> dict:
    return {Team.NS: 0, Team.WE: 0}


# === Models ===

@dataclass(frozen=True)
class Card:
    suit: Suit
    rank: Rank

    @property
    def id(self) -> str:
        return f"{RANK_NAMES[self.rank]}_{SUIT_NAMES[self.suit]}"

    def __str__(self) -> str:
        return RANK_NAMES[self.rank] + SUIT_SYMBOLS[self.suit]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "suit": SUIT_NAMES[self.suit],
            "rank": RANK_NAMES[self.rank],
        }

    @classmethod
    def from_id(cls, card_id: str) -> "Card":
        try:
            rank_str, suit_str = str(card_id).split("_")
            return cls(suit=parse_suit(suit_str), rank=NAME_TO_RANK[rank_str.upper()])
        except (KeyError, ValueError) as e:
            raise ValueError(f"Invalid card id: {card_id!r}") from e

    @classmethod
    def from_dict(cls, data) -> "Card":
        """Build a card from a document value: a dict with suit/rank, or a card id."""
        if isinstance(data, Card):
            return data
        if isinstance(data, str):
            return cls.from_id(data)
        try:
            return cls(suit=parse_suit(data["suit"]), rank=NAME_TO_RANK[str(data["rank"]).upper()])
        except KeyError as e:
            raise ValueError(f"Invalid card: {data!r}") from e


def cards_to_list(cards) -> list:
    return [c.to_dict() for c in cards]


def cards_from_list(data) -> list:
    return [Card.from_dict(c) for c in (data or [])]


def hands_to_dict(hands: dict) -> dict:
    return {str(seat): cards_to_list(hands.get(seat, [])) for seat in SEATS}


def hands_from_dict(data) -> dict:
    data = data or {}
    return {seat: cards_from_list(data.get(str(seat), data.get(seat))) for seat in SEATS}


@dataclass(frozen=True)
class PlayedCard:
    seat: int
    card: Card

    def to_dict(self) -> dict:
        return {"seat": self.seat, "card": self.card.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "PlayedCard":
        return cls(seat=int(data["seat"]), card=Card.from_dict(data["card"]))


@dataclass
class CompletedTrick:
    cards: list[PlayedCard]
    winner: int
    points: int = 0
    roem: int = 0

    def to_dict(self) -> dict:
        return {
            "cards": [pc.to_dict() for pc in self.cards],
            "winner": self.winner,
            "points": self.points,
            "roem": self.roem,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompletedTrick":
        return cls(
            cards=[PlayedCard.from_dict(pc) for pc in data.get("cards") or []],
            winner=int(data["winner"]),
            points=data.get("points", 0),
            roem=data.get("roem", 0),
        )


@dataclass
class Notification:
    type: NotificationType
    seat: int
    seq: int
    points: int = 0
    guilty_seat: Optional[int] = None
    guilty_team: Optional[Team] = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "seat": self.seat,
            "seq": self.seq,
            "points": self.points,
            "guiltySeat": self.guilty_seat,
            "guiltyTeam": self.guilty_team.value if self.guilty_team else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["Notification"]:
        if not data:
            return None
        return cls(
            type=NotificationType(data["type"]),
            seat=data["seat"],
            seq=data.get("seq", 0),
            points=data.get("points", 0),
            guilty_seat=data.get("guiltySeat"),
            guilty_team=Team(data["guiltyTeam"]) if data.get("guiltyTeam") else None,
        )


@dataclass
class RoundResult:
    """Outcome of one round from the playing team's point of view."""
    playing_team_score: int
    defending_team_score: int
    is_nat: bool = False
    is_pit: bool = False
    is_verzaakt: bool = False


@dataclass
class RoundSummary:
    """What a finished round added to the game scores."""
    round_number: int
    playing_team: Team
    scores: dict
    is_nat: bool = False
    is_pit: bool = False
    is_verzaakt: bool = False
    guilty_seat: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "round": self.round_number,
            "playingTeam": self.playing_team.value,
            "scores": {t.value: s for t, s in self.scores.items()},
            "isNat": self.is_nat,
            "isPit": self.is_pit,
            "isVerzaakt": self.is_verzaakt,
            "guiltySeat": self.guilty_seat,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["RoundSummary"]:
        if not data:
            return None
        return cls(
            round_number=data["round"],
            playing_team=Team(data["playingTeam"]),
            scores={Team(t): s for t, s in data["scores"].items()},
            is_nat=data.get("isNat", False),
            is_pit=data.get("isPit", False),
            is_verzaakt=data.get("isVerzaakt", False),
            guilty_seat=data.get("guiltySeat"),
        )


@dataclass
class RoundState:
    hands: dict
    trump_chooser: int
    current_player: int
    trump: Optional[Suit] = None
    playing_team: Optional[Team] = None
    current_trick: list[PlayedCard] = field(default_factory=list)
    completed_tricks: list[CompletedTrick] = field(default_factory=list)
    # hand_snapshots[i] holds every seat's hand at the instant trick i began
    hand_snapshots: list[dict] = field(default_factory=list)
    points: dict = field(default_factory=empty_team_counter)
    roem: dict = field(default_factory=empty_team_counter)
    tricks_won: dict = field(default_factory=empty_team_counter)
    roem_claimed: bool = False
    roem_pending: int = 0

    @property
    def trick_index(self) -> int:
        return len(self.completed_tricks)

    @property
    def led_suit(self) -> Optional[Suit]:
        if self.current_trick:
            return self.current_trick[0].card.suit
        return None

    def trick_cards(self) -> list[Card]:
        return [pc.card for pc in self.current_trick]

    def snapshot_hands(self) -> dict:
        return {seat: list(self.hands[seat]) for seat in SEATS}

    def current_snapshot(self) -> dict:
        """Hands at the start of the trick in progress (or the last one)."""
        if not self.hand_snapshots:
            return {seat: [] for seat in SEATS}
        index = min(self.trick_index, len(self.hand_snapshots) - 1)
        snapshot = self.hand_snapshots[index]
        return snapshot if snapshot is not None else {seat: [] for seat in SEATS}


@dataclass
class GameState:
    dealer: int = 0
    round_number: int = 1
    total_rounds: int = 16
    scores: dict = field(default_factory=empty_team_counter)
    round: Optional[RoundState] = None
    phase: Phase = Phase.TRUMP_SELECTION
    last_notification: Optional[Notification] = None
    notification_seq: int = 0
    skip_votes: list[int] = field(default_factory=list)
    last_round_result: Optional[RoundSummary] = None
    enforce_legal_moves: bool = True

    def to_document(self) -> dict:
        """Serialize to the replicated game document.

        Every key is always written; absent values are written as None so that a
        full overwrite never leaves stale fields behind.
        """
        rnd = self.round
        doc = {
            "phase": self.phase.value,
            "round": self.round_number,
            "trick": None,
            "totalRounds": self.total_rounds,
            "dealer": self.dealer,
            "trump": None,
            "trumpChooser": None,
            "playingTeam": None,
            "currentPlayer": None,
            "hands": None,
            "handsAtTrickStart": None,
            "handSnapshots": [],
            "currentTrick": [],
            "completedTricks": [],
            "scores": {t.value: {"base": 0, "roem": 0} for t in Team},
            "tricksWon": {t.value: 0 for t in Team},
            "gameScores": {t.value: s for t, s in self.scores.items()},
            "roemClaimed": False,
            "roemClaimPending": 0,
            "lastNotification": self.last_notification.to_dict() if self.last_notification else None,
            "notificationSeq": self.notification_seq,
            "skipVotes": list(self.skip_votes),
            "lastRoundResult": self.last_round_result.to_dict() if self.last_round_result else None,
            "enforceLegalMoves": self.enforce_legal_moves,
        }
        if rnd is None:
            return doc

        doc.update({
            "trick": min(rnd.trick_index + 1, 8),
            "trump": SUIT_NAMES[rnd.trump] if rnd.trump else None,
            "trumpChooser": rnd.trump_chooser,
            "playingTeam": rnd.playing_team.value if rnd.playing_team else None,
            "currentPlayer": rnd.current_player,
            "hands": hands_to_dict(rnd.hands),
            "handsAtTrickStart": hands_to_dict(rnd.current_snapshot()),
            "handSnapshots": [hands_to_dict(s) if s is not None else None for s in rnd.hand_snapshots],
            "currentTrick": [pc.to_dict() for pc in rnd.current_trick],
            "completedTricks": [t.to_dict() for t in rnd.completed_tricks],
            "scores": {t.value: {"base": rnd.points[t], "roem": rnd.roem[t]} for t in Team},
            "tricksWon": {t.value: rnd.tricks_won[t] for t in Team},
            "roemClaimed": rnd.roem_claimed,
            "roemClaimPending": rnd.roem_pending,
        })
        return doc

    @classmethod
    def from_document(cls, doc: dict) -> "GameState":
        """Rebuild a game from its document, tolerating missing (dropped) keys."""
        rnd = None
        if doc.get("hands") is not None:
            scores = doc.get("scores") or {}
            tricks_won = doc.get("tricksWon") or {}
            completed = [CompletedTrick.from_dict(t) for t in doc.get("completedTricks") or []]
            snapshots = [hands_from_dict(s) if s is not None else None
                         for s in doc.get("handSnapshots") or []]
            if not snapshots and doc.get("handsAtTrickStart"):
                # Only the current trick's snapshot survived; earlier ones are unknown
                snapshots = [None] * len(completed) + [hands_from_dict(doc["handsAtTrickStart"])]
            rnd = RoundState(
                hands=hands_from_dict(doc.get("hands")),
                trump_chooser=doc["trumpChooser"],
                current_player=doc["currentPlayer"],
                trump=parse_suit(doc["trump"]) if doc.get("trump") else None,
                playing_team=Team(doc["playingTeam"]) if doc.get("playingTeam") else None,
                current_trick=[PlayedCard.from_dict(pc) for pc in doc.get("currentTrick") or []],
                completed_tricks=completed,
                hand_snapshots=snapshots,
                points={t: (scores.get(t.value) or {}).get("base", 0) for t in Team},
                roem={t: (scores.get(t.value) or {}).get("roem", 0) for t in Team},
                tricks_won={t: tricks_won.get(t.value, 0) for t in Team},
                roem_claimed=bool(doc.get("roemClaimed")),
                roem_pending=doc.get("roemClaimPending") or 0,
            )

        game_scores = doc.get("gameScores") or {}
        return cls(
            dealer=doc.get("dealer", 0),
            round_number=doc.get("round", 1),
            total_rounds=doc.get("totalRounds", 16),
            scores={t: game_scores.get(t.value, 0) for t in Team},
            round=rnd,
            phase=Phase(doc["phase"]),
            last_notification=Notification.from_dict(doc.get("lastNotification")),
            notification_seq=doc.get("notificationSeq", 0),
            skip_votes=list(doc.get("skipVotes") or []),
            last_round_result=RoundSummary.from_dict(doc.get("lastRoundResult")),
            enforce_legal_moves=doc.get("enforceLegalMoves", True),
        )
