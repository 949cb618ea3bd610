from flask import Blueprint, jsonify, request, current_app
from duelroom import get_lobby
from duelroom.errors import InvalidCode, InvalidPassword, InvalidToken, NotAuthorized, SessionNotFound


sessions = Blueprint('sessions', __name__)


@sessions.route('/new', methods=['POST'])
def create_session():
    data = request.get_json(silent=True) or {}
    name = data.get('name')
    password = data.get('password')
    nickname = data.get('nickname')
    if not all([name, password, nickname]):
        return jsonify({'error': 'name, password and nickname are required'}), 400

    token = get_lobby().create_session(name, password, nickname)
    current_app.logger.info(f"[new] session '{name}' created by {nickname}")
    return jsonify({'token': token}), 201


@sessions.route('/spectate', methods=['POST'])
def spectate():
    data = request.get_json(silent=True) or {}
    code = data.get('code')
    if not code:
        return jsonify({'error': 'code is required'}), 400
    return jsonify({'token': get_lobby().spectate(code)}), 200


@sessions.route('/join', methods=['POST'])
def join_session():
    data = request.get_json(silent=True) or {}
    code = data.get('code')
    nickname = data.get('nickname')
    if not all([code, nickname]):
        return jsonify({'error': 'code and nickname are required'}), 400

    try:
        token = get_lobby().join(code, data.get('password'), nickname)
    except InvalidCode:
        return jsonify({'error': 'invalid code'}), 404
    except InvalidPassword:
        current_app.logger.info(f"[join] wrong password for code={code.upper()}")
        return jsonify({'error': 'invalid password'}), 403
    return jsonify({'token': token}), 200


@sessions.route('/bind', methods=['POST'])
def bind():
    """Exchange a pre-auth token for an access token (HTTP twin of bind-events)."""
    data = request.get_json(silent=True) or {}
    try:
        _, token = get_lobby().bind(data.get('token'))
    except InvalidToken as exc:
        current_app.logger.warning(f"[bind] rejected token: {exc}")
        return jsonify({'error': 'invalid token'}), 401
    except SessionNotFound:
        return jsonify({'error': "game doesn't exist"}), 404
    return jsonify({'token': token}), 200


@sessions.route('/end', methods=['POST'])
def end_session():
    data = request.get_json(silent=True) or {}
    lobby = get_lobby()
    try:
        identity = lobby.tokens.verify_access(data.get('token'))
        lobby.end_session(identity)
    except InvalidToken as exc:
        current_app.logger.warning(f"[end] rejected token: {exc}")
        return jsonify({'error': 'invalid token'}), 401
    except NotAuthorized:
        return jsonify({'error': 'admin only'}), 403
    except SessionNotFound:
        return jsonify({'error': "game doesn't exist"}), 404
    return jsonify({'message': 'Session ended'}), 200
