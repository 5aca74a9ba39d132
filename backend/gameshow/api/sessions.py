from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user, login_required
from gameshow.models import GameSession
from gameshow.services.sessions import lifecycle, pins, roster, scoring, store
from gameshow.services.sessions.results import QuizNotFound, Result
from gameshow.services.sessions.settings import SessionSettings


sessions = Blueprint('sessions', __name__)


def _respond(result: Result, status: int = 200):
    if not result.ok:
        return jsonify(result.to_error()), result.http_status
    value = result.value
    if isinstance(value, GameSession):
        return jsonify(_session_payload(value)), status
    if hasattr(value, 'to_dict'):
        return jsonify(value.to_dict()), status
    return jsonify(value), status


def _session_payload(gs: GameSession) -> dict:
    # host_id stays server-side; callers only learn whether they are the host
    payload = gs.to_dict()
    payload['is_host'] = _caller_id() == gs.host_id
    payload['question'] = lifecycle.question_snapshot(gs)
    return payload


def _caller_id():
    return current_user.id if current_user.is_authenticated else None


@sessions.route('', methods=['POST'])
@login_required
def host_session():
    data = request.get_json(silent=True) or {}
    game_id = data.get('game_id')
    if not game_id:
        return jsonify({'error': 'game_id is required'}), 400
    try:
        settings = SessionSettings.from_dict(data.get('settings'), current_app.config)
    except ValueError as exc:
        return jsonify({'error': str(exc)}), 400
    try:
        gs = store.create_session(game_id, current_user.id, settings)
    except QuizNotFound:
        return jsonify({'error': 'Quiz not found'}), 404
    return jsonify(_session_payload(gs)), 201


@sessions.route('/<string:session_id>', methods=['GET'])
def get_session_state(session_id):
    gs = GameSession.query.filter_by(id=session_id).first_or_404()
    return jsonify(_session_payload(gs))


@sessions.route('/<string:session_id>/settings', methods=['PATCH'])
@login_required
def update_settings(session_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'A JSON object of settings is required'}), 400
    try:
        result = lifecycle.update_settings(session_id, current_user.id, data)
    except ValueError as exc:
        return jsonify({'error': str(exc)}), 400
    return _respond(result)


@sessions.route('/pin/<string:pin>', methods=['GET'])
def resolve_pin(pin):
    result = pins.resolve_pin(pin)
    if not result.ok:
        return _respond(result)
    return jsonify({'session_id': result.value})


@sessions.route('/<string:session_id>/players', methods=['POST'])
@login_required
def join_session(session_id):
    data = request.get_json(silent=True) or {}
    result = roster.join(session_id, data.get('display_name'), client_ref=current_user.id)
    return _respond(result, 201)


@sessions.route('/<string:session_id>/players/<string:player_id>/rejoin', methods=['POST'])
@login_required
def rejoin_session(session_id, player_id):
    return _respond(roster.rejoin(session_id, player_id, client_ref=current_user.id))


@sessions.route('/<string:session_id>/start', methods=['POST'])
@login_required
def start_game(session_id):
    return _respond(lifecycle.start_game(session_id, current_user.id))


@sessions.route('/<string:session_id>/advance', methods=['POST'])
@login_required
def advance(session_id):
    return _respond(lifecycle.advance(session_id, current_user.id))


@sessions.route('/<string:session_id>/abandon', methods=['POST'])
@login_required
def abandon(session_id):
    return _respond(lifecycle.abandon(session_id, current_user.id))


@sessions.route('/<string:session_id>/answers', methods=['POST'])
@login_required
def submit_answer(session_id):
    data = request.get_json(silent=True) or {}
    player_id = data.get('player_id')
    question_index = data.get('question_index')
    if not player_id or not isinstance(question_index, int) or isinstance(question_index, bool):
        return jsonify({'error': 'player_id and an integer question_index are required'}), 400
    if 'choice' not in data:
        return jsonify({'error': 'choice is required'}), 400
    # Submission time is taken from the server clock only
    result = scoring.submit_answer(session_id, player_id, question_index, data['choice'],
                                   client_ref=current_user.id)
    return _respond(result, 201)


@sessions.route('/<string:session_id>/leaderboard', methods=['GET'])
def get_leaderboard(session_id):
    return _respond(scoring.leaderboard(session_id))
