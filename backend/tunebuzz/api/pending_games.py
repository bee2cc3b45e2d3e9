from flask import Blueprint, jsonify, current_app
from tunebuzz.api import json_body
from tunebuzz.services import lobby_manager


pending_games = Blueprint('pending_games', __name__)


@pending_games.route('', methods=['POST'])
def create_pending_game():
    data = json_body()
    lobby = lobby_manager().create_lobby(data.get('roomCode'), data.get('hostPlayer'))
    return jsonify({'pendingGame': lobby.to_dict()}), 201


@pending_games.route('', methods=['PUT'])
def join_pending_game():
    data = json_body()
    lobby = lobby_manager().join_lobby(data.get('roomCode'), data.get('player'))
    return jsonify({'pendingGame': lobby.to_dict()})


@pending_games.route('/<string:pending_game_id>', methods=['DELETE'])
def delete_pending_game(pending_game_id):
    lobby_manager().delete_lobby(pending_game_id)
    return '', 204


@pending_games.route('/<string:pending_game_id>/<string:player_id>/<string:room_code>', methods=['GET'])
def find_pending_game(pending_game_id, player_id, room_code):
    lobby = lobby_manager().find_lobby(pending_game_id, room_code, player_id)
    current_app.logger.debug(f"[lobby-find] lobby={pending_game_id} player={player_id} ok")
    return jsonify({'pendingGame': lobby.to_dict()})
