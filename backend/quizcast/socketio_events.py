from flask import current_app, request
from flask_socketio import emit
import threading

from quizcast.services.rooms.machine import RoomStateMachine
from quizcast.services.rooms.presence import SessionStore
from quizcast.services.rooms.registry import RoomRegistry
from quizcast.services.rooms.timer import RoundTimer


class SocketIOBroadcaster:
    """Delivers state machine output through Flask-SocketIO.

    Room codes are user supplied, so they are prefixed to never collide
    with the per-connection rooms Socket.IO keeps for every sid.
    """

    def __init__(self, sio, namespace: str = '/'):
        self.sio = sio
        self.namespace = namespace

    @staticmethod
    def channel(code: str) -> str:
        return f"room:{code}"

    def to_room(self, code: str, event: str, payload=None) -> None:
        self._emit(event, payload, self.channel(code))

    def to_conn(self, conn_id: str, event: str, payload=None) -> None:
        self._emit(event, payload, conn_id)

    def subscribe(self, conn_id: str, code: str) -> None:
        self.sio.server.enter_room(conn_id, self.channel(code), namespace=self.namespace)

    def unsubscribe(self, conn_id: str, code: str) -> None:
        self.sio.server.leave_room(conn_id, self.channel(code), namespace=self.namespace)

    def _emit(self, event: str, payload, to: str) -> None:
        # Use socketio.emit since this may be called from a background task
        if payload is None:
            self.sio.emit(event, to=to, namespace=self.namespace)
        else:
            self.sio.emit(event, payload, to=to, namespace=self.namespace)


def _noop_spawn(*args, **kwargs):
    return None


def build_machine(flask_app, sio) -> RoomStateMachine:
    """Wire registry, sessions, timer and broadcaster for one app instance.

    In TESTING mode the countdown worker is not spawned unless
    ENABLE_TIMER_IN_TESTS is set; the timer handle is still tracked.
    """
    cfg = flask_app.config
    out = SocketIOBroadcaster(sio, namespace=cfg.get('SOCKETIO_NAMESPACE', '/'))
    registry = RoomRegistry()
    spawn = sio.start_background_task
    if cfg.get('TESTING') and not cfg.get('ENABLE_TIMER_IN_TESTS'):
        spawn = _noop_spawn
    timer = RoundTimer(
        emit=out.to_room,
        spawn=spawn,
        sleep=sio.sleep,
        interval=float(cfg.get('TICK_INTERVAL_SEC', 1)),
        lock=registry.lock,
        logger=flask_app.logger,
    )
    return RoomStateMachine(
        registry,
        SessionStore(),
        out,
        timer,
        config=cfg,
        logger=flask_app.logger,
    )


def _machine() -> RoomStateMachine:
    return current_app.extensions['quizcast']


def _payload(data) -> dict:
    return data if isinstance(data, dict) else {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    _start_sweeper(current_app._get_current_object())
    emit('connected', {'message': 'Connected'})


def handle_disconnect(reason=None):
    _machine().disconnect(_get_sid())


def handle_player_join(data=None):
    data = _payload(data)
    _machine().join(_get_sid(), data.get('room'), data.get('name'))


def handle_player_answer(data=None):
    data = _payload(data)
    index = data.get('index', data.get('idx'))
    _machine().submit_answer(_get_sid(), index)


def handle_player_leave(data=None):
    _machine().leave(_get_sid())


def handle_host_create(data=None):
    data = _payload(data)
    _machine().host_create(_get_sid(), data.get('room'))


def handle_host_start(data=None):
    data = _payload(data)
    _machine().host_start(data.get('room'), data.get('question'), data.get('choices'), data.get('duration'))


def handle_host_reveal(data=None):
    data = _payload(data)
    _machine().host_reveal(data.get('room'), data.get('correct'))


def handle_host_next(data=None):
    data = _payload(data)
    _machine().host_next(data.get('room'))


def handle_ping(data=None):
    emit('pong', data or {})


# ---- Idle room eviction ----

def _start_sweeper(app) -> None:
    machine = app.extensions['quizcast']
    interval = int(app.config.get('ROOM_SWEEP_INTERVAL_SEC', 60))
    if int(app.config.get('ROOM_IDLE_TIMEOUT_SEC', 0)) <= 0 or interval <= 0:
        return
    with machine.registry.lock:
        if 'quizcast_sweeper' in app.extensions:
            return
        stopped = threading.Event()
        app.extensions['quizcast_sweeper'] = stopped
    sio = app.extensions['socketio']

    def _runner():
        while not stopped.is_set():
            sio.sleep(interval)
            if not stopped.is_set():
                machine.evict_idle()
        app.logger.info("[sweeper-stop]")

    sio.start_background_task(_runner)
    app.logger.info(f"[sweeper-start] interval={interval}s idle_timeout={app.config.get('ROOM_IDLE_TIMEOUT_SEC')}s")


def stop_sweeper(app) -> None:
    """Ask the idle-room sweeper of this app to exit after its current sleep."""
    stopped = app.extensions.pop('quizcast_sweeper', None)
    if stopped is not None:
        stopped.set()


def register_socketio_handlers(sio, namespace: str = '/') -> None:
    """Register Socket.IO event handlers on the configured namespace."""
    sio.on_event('connect', handle_connect, namespace=namespace)
    sio.on_event('disconnect', handle_disconnect, namespace=namespace)
    sio.on_event('player:join', handle_player_join, namespace=namespace)
    sio.on_event('player:answer', handle_player_answer, namespace=namespace)
    sio.on_event('player:leave', handle_player_leave, namespace=namespace)
    sio.on_event('host:create', handle_host_create, namespace=namespace)
    sio.on_event('host:start', handle_host_start, namespace=namespace)
    sio.on_event('host:reveal', handle_host_reveal, namespace=namespace)
    sio.on_event('host:next', handle_host_next, namespace=namespace)
    sio.on_event('ping', handle_ping, namespace=namespace)
