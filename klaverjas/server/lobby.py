"""Lobby directory and player presence.

A lobby document lives at ``lobbies/<code>``::

    {
        "code": "K7QX2M",
        "host": "<player id>",
        "createdAt": 1760000000000,       # milliseconds
        "status": "waiting" | "playing" | "finished",
        "players": {"<player id>": {"name", "seat", "connected", "lastSeen"}},
        "game": null | <game document>,
        "version": 0
    }

Seats are 0..3 or "spectator". Every structural change is a conditional write
on ``version``, the same guard the game service uses for game actions.
"""
import random
import time
import uuid
from typing import Callable, Optional

from .config import LOBBY_MAX_AGE_DAYS
from .models import SEATS
from .store import DELETE, SERVER_TIMESTAMP, DocumentStore

LOBBY_CODE_CHARS = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
LOBBY_CODE_LENGTH = 6
MAX_NAME_LENGTH = 20
SPECTATOR = 'spectator'

WAITING = 'waiting'
PLAYING = 'playing'
FINISHED = 'finished'


class LobbyError(Exception):
    """Lobby operation refused; ``code`` is one of the stable codes below."""

    NOT_FOUND = 'not_found'
    NAME_TAKEN = 'name_taken'
    INVALID_NAME = 'invalid_name'
    SEAT_TAKEN = 'seat_taken'
    NOT_HOST = 'not_host'
    NOT_FULL = 'not_full'
    IN_PROGRESS = 'in_progress'
    NOT_FINISHED = 'not_finished'
    NOT_IN_LOBBY = 'not_in_lobby'

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def lobby_path(code: str) -> str:
    return f'lobbies/{code}'


def normalize_code(code: str) -> str:
    return str(code or '').strip().upper()


def generate_lobby_code(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return ''.join(rng.choice(LOBBY_CODE_CHARS) for _ in range(LOBBY_CODE_LENGTH))


def validate_player_name(name) -> str:
    """Return the trimmed name or raise LobbyError(invalid_name)."""
    trimmed = (name or '').strip() if isinstance(name, str) else ''
    if not trimmed:
        raise LobbyError(LobbyError.INVALID_NAME, 'Name is required')
    if len(trimmed) > MAX_NAME_LENGTH:
        raise LobbyError(LobbyError.INVALID_NAME, f'Name must be at most {MAX_NAME_LENGTH} characters')
    return trimmed


def parse_seat(value):
    if value == SPECTATOR:
        return SPECTATOR
    try:
        seat = int(value)
    except (TypeError, ValueError):
        raise LobbyError(LobbyError.SEAT_TAKEN, f'Invalid seat: {value!r}') from None
    if seat not in SEATS:
        raise LobbyError(LobbyError.SEAT_TAKEN, f'Invalid seat: {value!r}')
    return seat


def players_by_seat(lobby: dict) -> dict:
    """Map each occupied playing seat to ``(player_id, player)``."""
    seats = {}
    for player_id, player in (lobby.get('players') or {}).items():
        if player.get('seat') in SEATS:
            seats[player['seat']] = (player_id, player)
    return seats


def is_lobby_full(lobby: dict) -> bool:
    return len(players_by_seat(lobby)) == len(SEATS)


def get_new_host(players: dict, leaving_id: str) -> Optional[str]:
    """Lowest seated remaining player, else any remaining player."""
    remaining = [(pid, p) for pid, p in players.items() if pid != leaving_id]
    if not remaining:
        return None
    seated = sorted((p['seat'], pid) for pid, p in remaining if p.get('seat') in SEATS)
    if seated:
        return seated[0][1]
    return remaining[0][0]


def find_player_by_name(lobby: dict, name: str):
    for player_id, player in (lobby.get('players') or {}).items():
        if player.get('name', '').lower() == name.lower():
            return player_id, player
    return None, None


class LobbyService:
    """Create, join and leave lobbies; start games through a GameService."""

    def __init__(self, store: DocumentStore, games=None, rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.games = games
        self.rng = rng or random.Random()
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock() * 1000)

    # === Queries ===

    def get_lobby(self, code: str) -> dict:
        code = normalize_code(code)
        lobby = self.store.get(lobby_path(code))
        if not lobby:
            raise LobbyError(LobbyError.NOT_FOUND, f'Lobby {code} not found')
        return lobby

    def subscribe_lobby(self, code: str, callback: Callable[[Optional[dict]], None]) -> Callable[[], None]:
        return self.store.subscribe(lobby_path(normalize_code(code)), callback)

    def _player(self, lobby: dict, player_id: str) -> dict:
        player = (lobby.get('players') or {}).get(player_id)
        if player is None:
            raise LobbyError(LobbyError.NOT_IN_LOBBY, f'Player {player_id} is not in lobby {lobby["code"]}')
        return player

    def _write(self, lobby: dict, values: dict):
        """Conditional write; raises VersionConflict if the lobby changed since it was read."""
        values = dict(values)
        values['version'] = lobby.get('version', 0) + 1
        self.store.update(lobby_path(lobby['code']), values, if_match={'version': lobby.get('version', 0)})

    def _watch_presence(self, code: str, player_id: str):
        self.store.on_disconnect(player_id, f'{lobby_path(code)}/players/{player_id}',
                                 {'connected': False, 'lastSeen': SERVER_TIMESTAMP})

    # === Lobby lifecycle ===

    def create_lobby(self, name: str) -> tuple[str, str]:
        """Create a lobby with the caller as host on seat 0. Returns ``(code, player_id)``."""
        name = validate_player_name(name)
        player_id = uuid.uuid4().hex
        now = self._now()

        code = generate_lobby_code(self.rng)
        while self.store.exists(lobby_path(code)):
            code = generate_lobby_code(self.rng)

        self.store.set(lobby_path(code), {
            'code': code,
            'host': player_id,
            'createdAt': now,
            'status': WAITING,
            'players': {player_id: {'name': name, 'seat': 0, 'connected': True, 'lastSeen': now}},
            'game': None,
            'version': 0,
        })
        self._watch_presence(code, player_id)
        return code, player_id

    def join_lobby(self, code: str, name: str, preferred_seat=None) -> str:
        """Join a lobby and return the player id.

        A name matching a disconnected player reclaims that player's seat, even
        mid-game. New players can only join a waiting lobby; they get the
        preferred seat, else the first free seat, else a spectator slot.
        """
        name = validate_player_name(name)
        lobby = self.get_lobby(code)
        code = lobby['code']

        existing_id, existing = find_player_by_name(lobby, name)
        if existing is not None:
            if existing.get('connected'):
                raise LobbyError(LobbyError.NAME_TAKEN, f'Name {name} is already in use')
            self.mark_connected(code, existing_id)
            return existing_id

        if lobby['status'] != WAITING:
            raise LobbyError(LobbyError.IN_PROGRESS, 'Game already started')

        occupied = players_by_seat(lobby)
        if preferred_seat is not None:
            seat = parse_seat(preferred_seat)
            if seat in occupied:
                raise LobbyError(LobbyError.SEAT_TAKEN, f'Seat {seat} is taken')
        else:
            free = [s for s in SEATS if s not in occupied]
            seat = free[0] if free else SPECTATOR

        player_id = uuid.uuid4().hex
        now = self._now()
        self._write(lobby, {
            f'players/{player_id}': {'name': name, 'seat': seat, 'connected': True, 'lastSeen': now},
        })
        self._watch_presence(code, player_id)
        return player_id

    def leave_lobby(self, code: str, player_id: str):
        """Remove the player; the last one out deletes the lobby."""
        self.store.cancel_on_disconnect(player_id)
        try:
            lobby = self.get_lobby(code)
        except LobbyError:
            return

        players = lobby.get('players') or {}
        if player_id not in players:
            return
        if len(players) <= 1:
            self.store.delete(lobby_path(lobby['code']))
            return

        # Only the leaver's entry is removed; presence writes to the others stay
        values = {f'players/{player_id}': DELETE}
        if lobby.get('host') == player_id:
            values['host'] = get_new_host(players, player_id)
        self._write(lobby, values)

    def change_seat(self, code: str, player_id: str, new_seat):
        """Move to another seat, swapping with whoever sits there."""
        lobby = self.get_lobby(code)
        player = self._player(lobby, player_id)
        if lobby['status'] != WAITING:
            raise LobbyError(LobbyError.IN_PROGRESS, 'Cannot change seats during a game')

        seat = parse_seat(new_seat)
        values = {f'players/{player_id}/seat': seat}
        if seat in SEATS:
            occupant = players_by_seat(lobby).get(seat)
            if occupant and occupant[0] != player_id:
                values[f'players/{occupant[0]}/seat'] = player['seat']
        self._write(lobby, values)

    # === Presence ===

    def mark_connected(self, code: str, player_id: str):
        code = normalize_code(code)
        if self.store.get(f'{lobby_path(code)}/players/{player_id}') is None:
            return
        self.store.update(f'{lobby_path(code)}/players/{player_id}',
                          {'connected': True, 'lastSeen': self._now()})
        self._watch_presence(code, player_id)

    def mark_disconnected(self, code: str, player_id: str):
        code = normalize_code(code)
        self.store.cancel_on_disconnect(player_id)
        if self.store.get(f'{lobby_path(code)}/players/{player_id}') is None:
            return
        self.store.update(f'{lobby_path(code)}/players/{player_id}',
                          {'connected': False, 'lastSeen': self._now()})

    # === Games ===

    def start_game(self, code: str, player_id: str) -> dict:
        """Host starts the game once all four seats are taken."""
        lobby = self.get_lobby(code)
        if lobby.get('host') != player_id:
            raise LobbyError(LobbyError.NOT_HOST, 'Only the host can start the game')
        if lobby['status'] != WAITING:
            raise LobbyError(LobbyError.IN_PROGRESS, 'Game already started')
        if not is_lobby_full(lobby):
            raise LobbyError(LobbyError.NOT_FULL, 'Not all seats are taken')
        return self.games.initialize_game(lobby['code'], expected_version=lobby.get('version', 0))

    def request_rematch(self, code: str, player_id: str):
        """Back to the waiting room once a game has finished."""
        lobby = self.get_lobby(code)
        self._player(lobby, player_id)
        if lobby['status'] != FINISHED:
            raise LobbyError(LobbyError.NOT_FINISHED, 'The game has not finished')
        self._write(lobby, {'status': WAITING, 'game': None})

    def cleanup_old_lobbies(self, max_age_days: int = LOBBY_MAX_AGE_DAYS) -> list[str]:
        """Delete lobbies created more than ``max_age_days`` ago; returns their codes."""
        cutoff = self._now() - max_age_days * 24 * 60 * 60 * 1000
        deleted = []
        for code, lobby in (self.store.get('lobbies') or {}).items():
            created = (lobby or {}).get('createdAt')
            if created and created < cutoff:
                self.store.delete(lobby_path(code))
                deleted.append(code)
        return deleted


__all__ = [
    'LobbyService', 'LobbyError', 'generate_lobby_code',
    'validate_player_name', 'players_by_seat', 'is_lobby_full', 'get_new_host',
    'lobby_path', 'SPECTATOR', 'WAITING', 'PLAYING', 'FINISHED',
]
