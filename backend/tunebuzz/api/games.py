from flask import Blueprint, jsonify, request, current_app
from tunebuzz.api import json_body
from tunebuzz.errors import InvalidInput
from tunebuzz.services import game_engine
from tunebuzz.socketio_events import broadcast_game_state, broadcast_guess_result


games = Blueprint('games', __name__)


@games.route('', methods=['POST'])
def create_game():
    data = json_body()
    state = game_engine().create(
        room_code=data.get('roomCode'),
        genre=data.get('genre'),
        users=data.get('usersInGame'),
        num_rounds=data.get('numRounds'),
    )
    return jsonify({'gameState': state}), 201


@games.route('', methods=['GET'])
def find_games():
    room_code = request.args.get('roomCode', '').strip()
    if not room_code:
        raise InvalidInput('roomCode query parameter is required')
    return jsonify({'games': game_engine().find_by_room_code(room_code)})


@games.route('/<string:game_id>', methods=['GET'])
def get_game(game_id):
    return jsonify({'gameState': game_engine().get_state(game_id)})


@games.route('/<string:game_id>', methods=['PUT'])
def update_game(game_id):
    engine = game_engine()
    with engine.exclusive(game_id):
        updated = engine.overwrite(game_id, json_body())
        broadcast_game_state(engine.get_state(game_id))
    return jsonify({'updatedGame': updated})


@games.route('/<string:game_id>/round-status', methods=['POST'])
def update_round_status(game_id):
    status = json_body().get('roundStatus')
    engine = game_engine()
    with engine.exclusive(game_id):
        state = engine.set_round_status(game_id, status)
        broadcast_game_state(state)
    return jsonify({'gameState': state})


@games.route('/<string:game_id>/buzz-in', methods=['POST'])
def buzz_in(game_id):
    user_id = json_body().get('userId')
    if not user_id:
        raise InvalidInput('userId is required')
    engine = game_engine()
    with engine.exclusive(game_id):
        state = engine.buzz_in(game_id, user_id)
        broadcast_game_state(state)
    return jsonify({'gameState': state})


@games.route('/<string:game_id>/buzz-in', methods=['DELETE'])
def clear_buzz_in(game_id):
    engine = game_engine()
    with engine.exclusive(game_id):
        state = engine.clear_buzz_in(game_id)
        broadcast_game_state(state)
    return jsonify({'gameState': state})


@games.route('/<string:game_id>/guesses', methods=['POST'])
def submit_guess(game_id):
    data = json_body()
    player_id = data.get('playerId')
    if not player_id:
        raise InvalidInput('playerId is required')
    engine = game_engine()
    with engine.exclusive(game_id):
        outcome = engine.apply_guess(game_id, player_id, data.get('guess'))
        broadcast_game_state(outcome.state)
        if outcome.correct is not None:
            player = next((s for s in outcome.state['userScores'] if s['userId'] == player_id), {})
            broadcast_guess_result(
                outcome.state['roomCode'],
                {'id': player_id, 'displayName': player.get('userName', ''), 'isHost': player.get('isHost', False)},
                outcome.correct,
            )
    current_app.logger.debug(f"[http-guess] game={game_id} player={player_id} correct={outcome.correct}")
    return jsonify({'gameState': outcome.state, 'isGuessCorrect': outcome.correct})


@games.route('/<string:game_id>/advance', methods=['POST'])
def advance_round(game_id):
    engine = game_engine()
    with engine.exclusive(game_id):
        state = engine.advance_round(game_id)
        broadcast_game_state(state)
    return jsonify({'gameState': state})


@games.route('/<string:game_id>/answers/<string:round_num>', methods=['GET'])
def round_answers(game_id, round_num):
    return jsonify(game_engine().round_answers(game_id, round_num))
