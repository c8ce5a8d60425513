import os
import sys
from collections import defaultdict

import pytest

# Ensure the backend root (containing the `quizcast` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quizcast import create_app, socketio
from quizcast.services.rooms.machine import RoomStateMachine
from quizcast.services.rooms.presence import SessionStore
from quizcast.services.rooms.registry import RoomRegistry
from quizcast.services.rooms.timer import RoundTimer


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = '*'
    SOCKETIO_NAMESPACE = '/'
    LOG_LEVEL = 'DEBUG'
    DEFAULT_DURATION_SEC = 20
    MIN_DURATION_SEC = 5
    MAX_DURATION_SEC = 120
    TICK_INTERVAL_SEC = 1
    HOST_DISPLAY_NAME = 'HOST'
    DEFAULT_PLAYER_NAME = 'Student'
    MAX_NAME_LENGTH = 40
    MAX_QUESTION_LENGTH = 300
    MAX_CHOICE_LENGTH = 120
    ROOM_IDLE_TIMEOUT_SEC = 0
    ROOM_SWEEP_INTERVAL_SEC = 60


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class DeferredSpawner:
    """Collects background tasks so a test decides when they run."""

    def __init__(self):
        self.tasks = []

    def __call__(self, fn, *args):
        self.tasks.append((fn, args))

    def run(self, index=-1):
        fn, args = self.tasks[index]
        fn(*args)


class RecordingBroadcaster:
    """Stands in for Socket.IO: tracks room membership and per-connection inboxes."""

    def __init__(self):
        self.subscribers = defaultdict(list)
        self.inboxes = defaultdict(list)
        self.room_log = []

    def subscribe(self, conn_id, code):
        if conn_id not in self.subscribers[code]:
            self.subscribers[code].append(conn_id)

    def unsubscribe(self, conn_id, code):
        if conn_id in self.subscribers[code]:
            self.subscribers[code].remove(conn_id)

    def to_room(self, code, event, payload=None):
        self.room_log.append((code, event, payload))
        for conn_id in self.subscribers[code]:
            self.inboxes[conn_id].append((event, payload))

    def to_conn(self, conn_id, event, payload=None):
        self.inboxes[conn_id].append((event, payload))

    def received(self, conn_id, event):
        return [p for e, p in self.inboxes[conn_id] if e == event]

    def broadcasts(self, code, event):
        return [p for c, e, p in self.room_log if c == code and e == event]

    def clear(self):
        self.inboxes.clear()
        self.room_log.clear()


class Harness:
    def __init__(self):
        self.clock = FakeClock()
        self.spawner = DeferredSpawner()
        self.out = RecordingBroadcaster()
        self.registry = RoomRegistry()
        self.sessions = SessionStore()
        self.config = {
            key: getattr(TestConfig, key) for key in dir(TestConfig) if key.isupper()
        }
        self.timer = RoundTimer(
            emit=self.out.to_room,
            spawn=self.spawner,
            sleep=self.clock.advance,
            clock=self.clock,
            interval=1.0,
            lock=self.registry.lock,
        )
        self.machine = RoomStateMachine(
            self.registry,
            self.sessions,
            self.out,
            self.timer,
            config=self.config,
            clock=self.clock,
        )

    def room(self, code):
        return self.registry.get(code)


@pytest.fixture()
def harness():
    return Harness()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/'
        )
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            if test_client.is_connected('/'):
                test_client.disconnect(namespace='/')
        except Exception:
            pass
