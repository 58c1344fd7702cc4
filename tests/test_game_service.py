"""Tests for game synchronization through the document store."""
import os
import random

import pytest

from klaverjas.server.engine import ChooseTrump, NoActiveRound, NotYourTurn, WrongPhase, transition
from klaverjas.server.game_service import GameService
from klaverjas.server.lobby import FINISHED, PLAYING, LobbyService
from klaverjas.server.models import GameState, Phase
from klaverjas.server.store import DocumentNotFound, VersionConflict


@pytest.fixture
def started(full_lobby, lobby_service):
    code, players = full_lobby
    lobby_service.start_game(code, players[0])
    return code, players


def play_until(game_service, code, players, phases):
    """Play lowest legal cards until the game reaches one of ``phases``."""
    state = GameState.from_document(game_service.get_game(code))
    while state.phase not in phases:
        if state.phase == Phase.TRUMP_SELECTION:
            state = game_service.choose_trump(code, players[state.round.trump_chooser], 'hearts')
        elif state.phase == Phase.TRICK_END:
            state = game_service.complete_trick(code)
        elif state.phase == Phase.ROUND_END:
            state = game_service.start_next_round(code)
        else:
            player_id = players[state.round.current_player]
            card = game_service.legal_cards(code, player_id)[0]
            state = game_service.play_card(code, player_id, card.id)
    return state


class TestInitialize:

    def test_writes_game_and_bumps_version(self, started, store):
        code, _ = started
        lobby = store.read(f'lobbies/{code}')
        assert lobby['status'] == PLAYING
        assert lobby['version'] == 4  # three joins plus the deal
        assert lobby['game']['phase'] == 'trump'

    def test_document_carries_every_key(self, started, store):
        code, _ = started
        game = store.read(f'lobbies/{code}/game')
        for key in ('trump', 'playingTeam', 'lastNotification', 'lastRoundResult'):
            assert key in game
            assert game[key] is None

    def test_unknown_lobby(self, game_service):
        with pytest.raises(DocumentNotFound):
            game_service.initialize_game('NOPE00')

    def test_actions_before_start(self, full_lobby, game_service):
        code, players = full_lobby
        with pytest.raises(NoActiveRound):
            game_service.choose_trump(code, players[1], 'hearts')


class TestActions:

    def test_choose_trump_by_player_id(self, started, game_service, store):
        code, players = started
        state = game_service.choose_trump(code, players[1], 'spades')
        assert state.phase == Phase.PLAYING
        assert store.read(f'lobbies/{code}/game/trump') == 'spades'

    def test_wrong_player(self, started, game_service):
        code, players = started
        with pytest.raises(NotYourTurn):
            game_service.choose_trump(code, players[2], 'spades')

    def test_spectators_cannot_act(self, started, game_service, store):
        code, _ = started
        store.update(f'lobbies/{code}', {'players/watcher': {'name': 'W', 'seat': 'spectator', 'connected': True}})
        with pytest.raises(NotYourTurn):
            game_service.choose_trump(code, 'watcher', 'spades')

    def test_failed_action_writes_nothing(self, started, game_service, store):
        code, players = started
        before = store.read(f'lobbies/{code}')
        with pytest.raises(WrongPhase):
            game_service.vote_skip(code, players[0])
        # Finalizing outside its phase is a no-op, not an error
        game_service.complete_trick(code)
        game_service.start_next_round(code)
        assert store.read(f'lobbies/{code}') == before

    def test_repeated_complete_trick_writes_once(self, started, game_service, store):
        code, players = started
        play_until(game_service, code, players, (Phase.TRICK_END,))
        game_service.complete_trick(code)
        version = store.read(f'lobbies/{code}/version')
        game_service.complete_trick(code)
        assert store.read(f'lobbies/{code}/version') == version

    def test_view_hides_other_hands(self, started, game_service):
        code, players = started
        view = game_service.get_game(code, players[2])
        assert len(view['hands']['2']) == 8
        assert view['hands']['0'] == []


class TestConcurrency:

    def test_stale_writer_conflicts(self, started, game_service, store):
        code, players = started
        stale_lobby = store.read(f'lobbies/{code}')
        stale_state = GameState.from_document(stale_lobby['game'])

        game_service.choose_trump(code, players[1], 'clubs')

        action = ChooseTrump(1, 'hearts')
        with pytest.raises(VersionConflict):
            game_service._commit(stale_lobby, stale_state, transition(stale_state, action), action)
        assert store.read(f'lobbies/{code}/game/trump') == 'clubs'

    def test_two_services_share_one_store(self, started, store):
        code, players = started
        first = GameService(store, rng=random.Random(1), logs_dir='')
        second = GameService(store, rng=random.Random(2), logs_dir='')
        first.choose_trump(code, players[1], 'diamonds')
        state = second.play_card(code, players[1], second.legal_cards(code, players[1])[0])
        assert state.round.trump.name == 'DIAMONDS'
        assert len(state.round.current_trick) == 1


class TestGameEnd:

    def test_last_round_finishes_lobby(self, store, rng, tmp_path):
        games = GameService(store, rng=rng, logs_dir=str(tmp_path), total_rounds=1)
        lobbies = LobbyService(store, games, rng=rng)
        code, host = lobbies.create_lobby('Anna')
        players = {0: host}
        for name in ('Bram', 'Cor', 'Door'):
            player_id = lobbies.join_lobby(code, name)
            players[lobbies.get_lobby(code)['players'][player_id]['seat']] = player_id
        lobbies.start_game(code, host)

        state = play_until(games, code, players, (Phase.GAME_END,))
        assert state.phase == Phase.GAME_END
        assert store.read(f'lobbies/{code}/status') == FINISHED
        assert 'winner' in games.get_game(code)

        with open(os.path.join(str(tmp_path), f'lobby_{code}.log'), encoding='utf-8') as f:
            lines = f.read().splitlines()
        assert lines[0].startswith('# new game')
        assert any('PlayCard' in line for line in lines)


class TestSubscribe:

    def test_subscriber_gets_game_state(self, started, game_service):
        code, players = started
        seen = []
        unsubscribe = game_service.subscribe_game(code, seen.append)
        game_service.choose_trump(code, players[1], 'hearts')
        unsubscribe()
        game_service.play_card(code, players[1], game_service.legal_cards(code, players[1])[0])
        assert len(seen) == 1
        assert seen[0].phase == Phase.PLAYING
