import time

from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Classroom quiz server is running!'})


@main.route('/healthz')
def healthz():
    return jsonify({'ok': True, 'ts': int(time.time() * 1000)})


@main.route('/api/rooms/<string:room_code>/state')
def room_state(room_code):
    """Read-only snapshot of a room. Never creates one."""
    snapshot = current_app.extensions['quizcast'].snapshot(room_code)
    if snapshot is None:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(snapshot)
