"""Game synchronization through the shared document store.

Every action follows the same cycle: read the lobby document, rebuild the
``GameState`` from its ``game`` sub-document, run one pure ``transition`` and
write the full resulting document back in a single update conditional on the
lobby ``version``. Losing a race raises ``VersionConflict``; nothing is retried
here, the caller re-reads and decides.
"""
import random
from typing import Callable, Optional

from .config import ENFORCE_LEGAL_MOVES, LOGS_DIR, TOTAL_ROUNDS
from .engine import (
    CallVerzaakt, ChooseTrump, ClaimRoem, CompleteTrick, GameEngine, NoActiveRound,
    NotYourTurn, PlayCard, StartNextRound, VoteSkip, describe_action, new_game, transition,
)
from .game_logger import GameLogger
from .lobby import FINISHED, PLAYING, lobby_path, normalize_code
from .models import SEATS, Card, GameState, Phase
from .roem import RoemClaim
from .store import DocumentNotFound, DocumentStore, VersionConflict


class GameService:
    """Applies game actions to lobby documents."""

    def __init__(self, store: DocumentStore, rng: Optional[random.Random] = None,
                 logs_dir: Optional[str] = None, enforce_legal_moves: bool = ENFORCE_LEGAL_MOVES,
                 total_rounds: int = TOTAL_ROUNDS):
        self.store = store
        self.rng = rng or random.Random()
        self.logs_dir = LOGS_DIR if logs_dir is None else logs_dir
        self.enforce_legal_moves = enforce_legal_moves
        self.total_rounds = total_rounds
        self._loggers = {}

    def _logger(self, code: str) -> GameLogger:
        if code not in self._loggers:
            self._loggers[code] = GameLogger(code, self.logs_dir)
        return self._loggers[code]

    # === Reading ===

    def _load_lobby(self, code: str) -> dict:
        code = normalize_code(code)
        lobby = self.store.get(lobby_path(code))
        if not lobby:
            raise DocumentNotFound(f"Lobby {code} not found")
        return lobby

    def _load(self, code: str):
        lobby = self._load_lobby(code)
        if not lobby.get('game'):
            raise NoActiveRound("Game not started")
        return lobby, GameState.from_document(lobby['game'])

    @staticmethod
    def seat_of(lobby: dict, player_id: str) -> int:
        player = (lobby.get('players') or {}).get(player_id)
        if not player or player.get('seat') not in SEATS:
            raise NotYourTurn(f"Player {player_id} is not seated at a playing seat")
        return player['seat']

    # === Writing ===

    def _commit(self, lobby: dict, before: GameState, after: GameState, action) -> GameState:
        document = after.to_document()
        version = lobby.get('version', 0)
        if document == lobby.get('game'):
            # Repeated finalization; nothing to write
            return after

        values = {'game': document, 'version': version + 1}
        if after.phase == Phase.GAME_END and lobby.get('status') != FINISHED:
            values['status'] = FINISHED
        self.store.update(lobby_path(lobby['code']), values, if_match={'version': version})

        self._logger(lobby['code']).log_action(
            before.round_number, document['trick'], before.phase.value, after.phase.value,
            describe_action(action))
        return after

    def _apply(self, code: str, make_action: Callable, player_id: Optional[str] = None) -> GameState:
        lobby, state = self._load(code)
        seat = self.seat_of(lobby, player_id) if player_id is not None else None
        action = make_action(seat)
        return self._commit(lobby, state, transition(state, action, self.rng), action)

    # === Operations ===

    def initialize_game(self, code: str, expected_version: Optional[int] = None) -> dict:
        """Deal the first round and mark the lobby as playing."""
        lobby = self._load_lobby(code)
        version = lobby.get('version', 0)
        if expected_version is not None and version != expected_version:
            raise VersionConflict(f"Lobby {lobby['code']} changed before the game could start")

        game = new_game(self.rng, enforce_legal_moves=self.enforce_legal_moves,
                        total_rounds=self.total_rounds)
        document = game.to_document()
        self.store.update(lobby_path(lobby['code']),
                          {'status': PLAYING, 'game': document, 'version': version + 1},
                          if_match={'version': version})
        self._logger(lobby['code']).log_event(f"new game, dealer {game.dealer}")
        return document

    def choose_trump(self, code: str, player_id: str, suit) -> GameState:
        return self._apply(code, lambda seat: ChooseTrump(seat, suit), player_id)

    def play_card(self, code: str, player_id: str, card) -> GameState:
        card = Card.from_dict(card)
        return self._apply(code, lambda seat: PlayCard(seat, card), player_id)

    def claim_roem(self, code: str, player_id: str, claim=None) -> GameState:
        if claim is not None and not isinstance(claim, RoemClaim):
            claim = RoemClaim.from_dict(claim)
        return self._apply(code, lambda seat: ClaimRoem(seat, claim), player_id)

    def call_verzaakt(self, code: str, player_id: str) -> GameState:
        return self._apply(code, lambda seat: CallVerzaakt(seat), player_id)

    def complete_trick(self, code: str) -> GameState:
        return self._apply(code, lambda seat: CompleteTrick())

    def start_next_round(self, code: str) -> GameState:
        return self._apply(code, lambda seat: StartNextRound())

    def vote_skip(self, code: str, player_id: str) -> GameState:
        return self._apply(code, lambda seat: VoteSkip(seat), player_id)

    # === Queries ===

    def get_game(self, code: str, player_id: Optional[str] = None) -> dict:
        """Game document; with a seated ``player_id`` the other hands are hidden."""
        lobby, state = self._load(code)
        viewer = None
        if player_id is not None:
            player = (lobby.get('players') or {}).get(player_id) or {}
            viewer = player.get('seat') if player.get('seat') in SEATS else None
        return GameEngine(state).get_game_state(viewer)

    def legal_cards(self, code: str, player_id: str) -> list[Card]:
        lobby, state = self._load(code)
        return GameEngine(state).get_legal_cards(self.seat_of(lobby, player_id))

    def subscribe_game(self, code: str, callback: Callable[[Optional[GameState]], None]) -> Callable[[], None]:
        """Call back with the rebuilt GameState (or None) whenever the game document changes."""
        def on_change(document):
            callback(GameState.from_document(document) if document else None)

        return self.store.subscribe(f"{lobby_path(normalize_code(code))}/game", on_change)
