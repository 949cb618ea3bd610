from flask import Blueprint, jsonify
from duelroom import get_lobby

main = Blueprint('main', __name__)


@main.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'sessions': len(get_lobby().registry)}), 200
