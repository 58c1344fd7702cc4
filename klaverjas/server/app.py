from flask import Flask, current_app, jsonify, request
from flask_cors import CORS

from .config import FLASK_HOST, FLASK_PORT, STORE_BACKEND
from .engine import GameError
from .game_service import GameService
from .lobby import LobbyError, LobbyService
from .roem import RoemClaim
from .store import DocumentNotFound, MemoryDocumentStore, StoreFailure, VersionConflict

app = Flask(__name__)
CORS(app)

LOBBY_ERROR_STATUS = {
    LobbyError.NOT_FOUND: 404,
    LobbyError.NOT_HOST: 403,
    LobbyError.NOT_IN_LOBBY: 403,
}


def build_store(backend: str = STORE_BACKEND):
    if backend == 'postgres':
        from .db import PostgresDocumentStore
        return PostgresDocumentStore()
    return MemoryDocumentStore()


def configure(flask_app, store=None, rng=None, **game_options):
    """Attach a store and the services built on it to the app."""
    store = store if store is not None else build_store()
    games = GameService(store, rng=rng, **game_options)
    flask_app.config['STORE'] = store
    flask_app.config['GAMES'] = games
    flask_app.config['LOBBIES'] = LobbyService(store, games, rng=rng)
    return flask_app


def games() -> GameService:
    if 'GAMES' not in current_app.config:
        configure(current_app)
    return current_app.config['GAMES']


def lobbies() -> LobbyService:
    if 'LOBBIES' not in current_app.config:
        configure(current_app)
    return current_app.config['LOBBIES']


def request_data() -> dict:
    return request.get_json(silent=True) or {}


def game_response(code, player_id=None, **extra):
    return jsonify({
        'success': True,
        **extra,
        'state': games().get_game(code, player_id),
    })


# Error handling

@app.errorhandler(GameError)
def handle_game_error(e):
    return jsonify({'error': str(e), 'code': e.code}), 400


@app.errorhandler(LobbyError)
def handle_lobby_error(e):
    return jsonify({'error': e.message, 'code': e.code}), LOBBY_ERROR_STATUS.get(e.code, 400)


@app.errorhandler(DocumentNotFound)
def handle_not_found(e):
    return jsonify({'error': str(e), 'code': e.code}), 404


@app.errorhandler(VersionConflict)
def handle_conflict(e):
    return jsonify({'error': str(e), 'code': e.code}), 409


@app.errorhandler(StoreFailure)
def handle_store_failure(e):
    return jsonify({'error': str(e), 'code': e.code}), 503


@app.route('/api/health')
def health():
    return {'status': 'ok'}


# Lobby API

@app.route('/api/lobbies', methods=['POST'])
def create_lobby():
    """Create a lobby; the caller becomes host on seat 0."""
    data = request_data()
    code, player_id = lobbies().create_lobby(data.get('name'))
    return jsonify({
        'success': True,
        'code': code,
        'player_id': player_id,
        'lobby': lobbies().get_lobby(code)
    })


@app.route('/api/lobbies/<code>')
def get_lobby(code):
    return jsonify(lobbies().get_lobby(code))


@app.route('/api/lobbies/<code>/join', methods=['POST'])
def join_lobby(code):
    """Join (or reclaim a seat in) a lobby."""
    data = request_data()
    player_id = lobbies().join_lobby(code, data.get('name'), data.get('seat'))
    return jsonify({
        'success': True,
        'player_id': player_id,
        'lobby': lobbies().get_lobby(code)
    })


@app.route('/api/lobbies/<code>/leave', methods=['POST'])
def leave_lobby(code):
    lobbies().leave_lobby(code, request_data().get('player_id'))
    return jsonify({'success': True})


@app.route('/api/lobbies/<code>/seat', methods=['POST'])
def change_seat(code):
    data = request_data()
    lobbies().change_seat(code, data.get('player_id'), data.get('seat'))
    return jsonify({'success': True, 'lobby': lobbies().get_lobby(code)})


@app.route('/api/lobbies/<code>/connected', methods=['POST'])
def update_presence(code):
    """Heartbeat from a client: connected true/false."""
    data = request_data()
    if data.get('connected', True):
        lobbies().mark_connected(code, data.get('player_id'))
    else:
        lobbies().mark_disconnected(code, data.get('player_id'))
    return jsonify({'success': True})


@app.route('/api/sessions/<player_id>/disconnect', methods=['POST'])
def disconnect_session(player_id):
    """Apply the fallback writes registered for a session that dropped."""
    lobbies().store.disconnect(player_id)
    return jsonify({'success': True})


@app.route('/api/lobbies/<code>/start', methods=['POST'])
def start_game(code):
    """Host deals the first round."""
    player_id = request_data().get('player_id')
    lobbies().start_game(code, player_id)
    return game_response(code, player_id)


@app.route('/api/lobbies/<code>/rematch', methods=['POST'])
def request_rematch(code):
    lobbies().request_rematch(code, request_data().get('player_id'))
    return jsonify({'success': True, 'lobby': lobbies().get_lobby(code)})


# Game API

@app.route('/api/lobbies/<code>/game')
def game_state(code):
    """Game state; pass ?player_id= to see it from that player's seat."""
    return jsonify(games().get_game(code, request.args.get('player_id')))


@app.route('/api/lobbies/<code>/game/legal')
def legal_cards(code):
    cards = games().legal_cards(code, request.args.get('player_id'))
    return jsonify([c.to_dict() for c in cards])


@app.route('/api/lobbies/<code>/game/trump', methods=['POST'])
def choose_trump(code):
    data = request_data()
    games().choose_trump(code, data.get('player_id'), data.get('suit'))
    return game_response(code, data.get('player_id'))


@app.route('/api/lobbies/<code>/game/play', methods=['POST'])
def play_card(code):
    """Play a card to the current trick (card_id like "J_hearts")."""
    data = request_data()
    card = data.get('card_id') or data.get('card')
    if not card:
        return jsonify({'error': 'card_id is required', 'code': 'invalid_move'}), 400
    try:
        games().play_card(code, data.get('player_id'), card)
    except ValueError as e:
        return jsonify({'error': str(e), 'code': 'invalid_move'}), 400
    return game_response(code, data.get('player_id'))


@app.route('/api/lobbies/<code>/game/complete-trick', methods=['POST'])
def complete_trick(code):
    games().complete_trick(code)
    return game_response(code, request_data().get('player_id'))


@app.route('/api/lobbies/<code>/game/roem', methods=['POST'])
def claim_roem(code):
    data = request_data()
    try:
        claim = RoemClaim.from_dict(data['claim']) if data.get('claim') else None
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({'error': f'Invalid roem claim: {e}', 'code': 'invalid_roem_claim'}), 400
    state = games().claim_roem(code, data.get('player_id'), claim)
    notification = state.last_notification.to_dict() if state.last_notification else None
    return game_response(code, data.get('player_id'), notification=notification)


@app.route('/api/lobbies/<code>/game/verzaakt', methods=['POST'])
def call_verzaakt(code):
    data = request_data()
    state = games().call_verzaakt(code, data.get('player_id'))
    notification = state.last_notification.to_dict() if state.last_notification else None
    return game_response(code, data.get('player_id'), notification=notification)


@app.route('/api/lobbies/<code>/game/next-round', methods=['POST'])
def next_round(code):
    """Start the next round after scoring."""
    games().start_next_round(code)
    return game_response(code, request_data().get('player_id'))


@app.route('/api/lobbies/<code>/game/skip', methods=['POST'])
def vote_skip(code):
    data = request_data()
    games().vote_skip(code, data.get('player_id'))
    return game_response(code, data.get('player_id'))


def main():
    configure(app)
    app.run(debug=True, host=FLASK_HOST, port=FLASK_PORT)


if __name__ == '__main__':
    main()
