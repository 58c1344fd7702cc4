"""Pytest fixtures for Klaverjas tests."""
import random

import pytest

from klaverjas.server.app import app as flask_app, configure
from klaverjas.server.game_service import GameService
from klaverjas.server.lobby import LobbyService
from klaverjas.server.store import MemoryDocumentStore


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def game_service(store, rng, tmp_path):
    return GameService(store, rng=rng, logs_dir=str(tmp_path / 'logs'))


@pytest.fixture
def lobby_service(store, game_service, rng):
    clock = iter(range(1_700_000_000, 1_800_000_000))
    return LobbyService(store, game_service, rng=rng, clock=lambda: next(clock))


@pytest.fixture
def full_lobby(lobby_service):
    """A waiting lobby with four seated players → (code, {seat: player_id})."""
    code, host = lobby_service.create_lobby('Anna')
    players = {0: host}
    for seat, name in ((1, 'Bram'), (2, 'Cor'), (3, 'Door')):
        players[seat] = lobby_service.join_lobby(code, name)
    return code, players


@pytest.fixture
def app(store, rng, tmp_path):
    """Create Flask app for testing."""
    flask_app.config.update({
        'TESTING': True,
    })
    configure(flask_app, store=store, rng=rng, logs_dir=str(tmp_path / 'logs'))
    yield flask_app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def started_game(client):
    """A lobby with four players and a dealt first round."""
    response = client.post('/api/lobbies', json={'name': 'Anna'})
    assert response.status_code == 200
    data = response.get_json()
    code = data['code']
    players = {0: data['player_id']}
    for seat, name in ((1, 'Bram'), (2, 'Cor'), (3, 'Door')):
        response = client.post(f'/api/lobbies/{code}/join', json={'name': name})
        assert response.status_code == 200
        players[seat] = response.get_json()['player_id']

    response = client.post(f'/api/lobbies/{code}/start', json={'player_id': players[0]})
    assert response.status_code == 200
    return code, players, response.get_json()['state']
