import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)


def _allowed_origins(raw):
    if not raw or raw == '*':
        return '*'
    return [o.strip() for o in raw.split(',') if o.strip()]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    allowed_origins = _allowed_origins(flask_app.config.get('CORS_ORIGINS'))
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Room state lives for the lifetime of this app instance
    from quizcast.socketio_events import build_machine, register_socketio_handlers
    flask_app.extensions['quizcast'] = build_machine(flask_app, socketio)

    from quizcast.main import main
    flask_app.register_blueprint(main)

    register_socketio_handlers(socketio, namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/'))

    return flask_app
