from flask import Blueprint, jsonify, request
from gamelab.identity import current_display_name, current_player_id
from gamelab.services import sessions as svc


sessions = Blueprint('sessions', __name__)


def _body():
    return request.get_json(silent=True) or {}


@sessions.route('', methods=['POST'])
def create_session():
    data = _body()
    session = svc.create_session(
        current_player_id(),
        current_display_name(),
        data.get('name'),
        data.get('game_id'),
        is_tournament=bool(data.get('is_tournament')),
        max_rounds=data.get('max_rounds'),
    )
    return jsonify(session.to_dict()), 201


@sessions.route('', methods=['GET'])
def list_sessions():
    status = request.args.get('status')
    return jsonify([s.to_dict(include_game_state=False) for s in svc.list_sessions(status)])


@sessions.route('/<string:session_id>', methods=['GET'])
def get_session(session_id):
    return jsonify(svc.get_session(session_id).to_dict())


@sessions.route('/<string:session_id>', methods=['PATCH'])
def update_session(session_id):
    updates = {k: v for k, v in _body().items() if k not in ('player_id', 'display_name')}
    session = svc.update_session_metadata(session_id, current_player_id(), updates)
    return jsonify(session.to_dict())


@sessions.route('/<string:session_id>', methods=['DELETE'])
def delete_session(session_id):
    svc.delete_session(session_id, current_player_id())
    return jsonify({'message': 'Session deleted'})


@sessions.route('/<string:session_id>/join', methods=['POST'])
def join_session(session_id):
    session = svc.join_session(session_id, current_player_id(), current_display_name())
    return jsonify(session.to_dict())


@sessions.route('/<string:session_id>/leave', methods=['POST'])
def leave_session(session_id):
    session = svc.leave_session(session_id, current_player_id())
    if session is None:
        return jsonify({'message': 'Session deleted'})
    return jsonify(session.to_dict())


@sessions.route('/<string:session_id>/start', methods=['POST'])
def start_game(session_id):
    return jsonify(svc.start_game(session_id, current_player_id()).to_dict())


@sessions.route('/<string:session_id>/reset', methods=['POST'])
def reset_game(session_id):
    clear_results = bool(_body().get('clear_results'))
    session = svc.reset_game(session_id, current_player_id(), clear_results=clear_results)
    return jsonify(session.to_dict())


@sessions.route('/<string:session_id>/shuffle', methods=['POST'])
def shuffle_matches(session_id):
    return jsonify(svc.shuffle_matches(session_id, current_player_id()).to_dict())


@sessions.route('/<string:session_id>/finish', methods=['POST'])
def finish_game(session_id):
    return jsonify(svc.finish_game(session_id, current_player_id()).to_dict())


@sessions.route('/<string:session_id>/state', methods=['GET'])
def get_game_state(session_id):
    player_id = request.headers.get('X-Player-Id') or request.args.get('player_id')
    return jsonify(svc.get_game_state(session_id, player_id))


@sessions.route('/<string:session_id>/decision', methods=['POST'])
def submit_decision(session_id):
    data = _body()
    if 'decision' not in data:
        return jsonify({'error': 'decision is required'}), 400
    expected_round = data.get('round')
    if expected_round is not None:
        try:
            expected_round = int(expected_round)
        except (TypeError, ValueError):
            return jsonify({'error': 'round must be a whole number'}), 400
    outcome = svc.submit_decision(session_id, current_player_id(), data['decision'], expected_round)
    return jsonify(outcome)


@sessions.route('/<string:session_id>/leaderboard', methods=['GET'])
def leaderboard(session_id):
    return jsonify(svc.get_leaderboard(session_id))
