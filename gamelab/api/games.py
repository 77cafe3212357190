from flask import Blueprint, jsonify
from gamelab.services.games.registry import get_game_by_id, get_game_options


games = Blueprint('games', __name__)


@games.route('', methods=['GET'])
def list_games():
    return jsonify(get_game_options())


@games.route('/<string:game_id>', methods=['GET'])
def get_game(game_id):
    game = get_game_by_id(game_id)
    if not game:
        return jsonify({'error': 'Game not found'}), 404
    return jsonify(game.to_dict())
