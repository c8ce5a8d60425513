import logging
import math
import time
from typing import Callable, List, Mapping, Optional

from quizcast.models import (
    LOBBY,
    QUESTION,
    REVEAL,
    Accepted,
    Answer,
    Rejected,
    Room,
)
from .presence import SessionStore, list_presence
from .registry import RoomRegistry
from .scoring import award_correct_answers, compute_standings
from .timer import RoundTimer, remaining_seconds


def normalize_room(value) -> Optional[str]:
    if value is None or isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    text = str(value).strip()
    return text or None


def normalize_name(value, default: str = 'Student', limit: int = 40) -> str:
    if value is None or isinstance(value, (dict, list)):
        text = ''
    else:
        text = str(value).strip()
    return text[:limit].rstrip() or default


def coerce_index(value) -> Optional[int]:
    """Integer view of a client supplied choice index, None if it has none.

    Fractions are truncated toward zero (``1.5`` and ``"1.5"`` become 1).
    Booleans are not indices, a stray ``true`` from a client is dropped.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                return None
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    return None


def parse_duration(value, default: int = 20, lo: int = 5, hi: int = 120) -> int:
    """Seconds for the answer window, clamped to [lo, hi]."""
    if value is None or isinstance(value, bool):
        return default
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(seconds):
        return default
    return int(max(lo, min(hi, seconds)))


class RoomStateMachine:
    """Per-room quiz lifecycle: lobby -> question -> reveal -> lobby.

    Every operation is total: it returns ``Accepted(effect)`` or
    ``Rejected(reason)`` and never raises on bad client input. Output goes
    through ``out``, which must provide ``to_room(code, event, payload)``,
    ``to_conn(conn_id, event, payload)``, ``subscribe(conn_id, code)`` and
    ``unsubscribe(conn_id, code)``.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        sessions: SessionStore,
        out,
        timer: RoundTimer,
        config: Optional[Mapping] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.sessions = sessions
        self.out = out
        self.timer = timer
        self.config = config if config is not None else {}
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    # ---- player operations ----

    def join(self, conn_id: str, raw_room, raw_name) -> Accepted | Rejected:
        code = normalize_room(raw_room)
        if not code:
            return self._reject('join', 'missing_room', conn_id=conn_id)
        nick = normalize_name(
            raw_name,
            default=self.config.get('DEFAULT_PLAYER_NAME', 'Student'),
            limit=int(self.config.get('MAX_NAME_LENGTH', 40)),
        )
        with self.registry.lock:
            now = self.clock()
            self._bind(conn_id, code, nick)
            room = self._room(code, now)
            room.players[conn_id] = nick
            if nick not in room.scores:
                room.scores[nick] = 0

            self.out.to_room(code, 'system', {'type': 'join', 'text': f'{nick} joined'})
            self._broadcast_presence(code)
            self._broadcast_scoreboard(room)

            # Late joiners and reconnecting screens resync without waiting for the next event
            if room.state == QUESTION:
                self.out.to_conn(conn_id, 'question', self._question_payload(room, now))
            elif room.state == REVEAL:
                self.out.to_conn(conn_id, 'reveal', {'correct': room.correct})
        self.logger.info(f"[join] room={code} conn={conn_id} name={nick} state={room.state}")
        return Accepted('joined')

    def submit_answer(self, conn_id: str, raw_index) -> Accepted | Rejected:
        with self.registry.lock:
            session = self.sessions.get(conn_id)
            room = self.registry.get(session.room) if session else None
            if room is None:
                return self._reject('answer', 'not_joined', conn_id=conn_id)
            if room.state != QUESTION:
                return self._reject('answer', 'not_in_question', room.code, conn_id)
            now = self.clock()
            if now > room.deadline:
                return self._reject('answer', 'deadline_passed', room.code, conn_id)
            if conn_id in room.answers:
                return self._reject('answer', 'already_answered', room.code, conn_id)
            index = coerce_index(raw_index)
            if index is None:
                return self._reject('answer', 'invalid_index', room.code, conn_id)

            room.answers[conn_id] = Answer(name=session.name, index=index, at=now)
            room.last_activity = now
            self.out.to_conn(conn_id, 'answer:ack', {'accepted': True, 'index': index})
        return Accepted('answer_recorded')

    def leave(self, conn_id: str) -> Accepted | Rejected:
        """Explicit leave: also drops the transport subscription."""
        with self.registry.lock:
            session = self._detach(conn_id, unsubscribe=True)
        if session is None:
            return self._reject('leave', 'not_joined', conn_id=conn_id)
        return Accepted('left')

    def disconnect(self, conn_id: str) -> Accepted | Rejected:
        # Answers already recorded this round still count at reveal
        with self.registry.lock:
            session = self._detach(conn_id, unsubscribe=False)
        if session is None:
            return self._reject('disconnect', 'not_joined', conn_id=conn_id)
        return Accepted('disconnected')

    # ---- host operations ----

    def host_create(self, conn_id: str, raw_room) -> Accepted | Rejected:
        code = normalize_room(raw_room)
        if not code:
            return self._reject('host_create', 'missing_room', conn_id=conn_id)
        with self.registry.lock:
            now = self.clock()
            self._bind(conn_id, code, self.config.get('HOST_DISPLAY_NAME', 'HOST'))
            room = self._room(code, now)
            self.out.to_conn(conn_id, 'host:ready', {'room': code})
            self._broadcast_presence(code)
            self._broadcast_scoreboard(room)
        self.logger.info(f"[host-create] room={code} conn={conn_id} state={room.state}")
        return Accepted('host_ready')

    def host_start(self, raw_room, question, choices, duration=None) -> Accepted | Rejected:
        code = normalize_room(raw_room)
        if not code:
            return self._reject('host_start', 'missing_room')
        text = '' if question is None or isinstance(question, (dict, list)) else str(question).strip()
        if not text:
            return self._reject('host_start', 'invalid_question', code)
        if not isinstance(choices, (list, tuple)) or len(choices) < 2:
            return self._reject('host_start', 'invalid_choices', code)

        choice_limit = int(self.config.get('MAX_CHOICE_LENGTH', 120))
        seconds = parse_duration(
            duration,
            default=int(self.config.get('DEFAULT_DURATION_SEC', 20)),
            lo=int(self.config.get('MIN_DURATION_SEC', 5)),
            hi=int(self.config.get('MAX_DURATION_SEC', 120)),
        )
        with self.registry.lock:
            now = self.clock()
            room = self._room(code, now)
            self.timer.stop(room)
            room.reset_round()
            room.state = QUESTION
            room.question = text[:int(self.config.get('MAX_QUESTION_LENGTH', 300))]
            room.choices = ['' if c is None else str(c)[:choice_limit] for c in choices]
            room.deadline = now + seconds

            self.out.to_room(code, 'question', {
                'question': room.question,
                'choices': list(room.choices),
                'endsIn': seconds,
            })
            self.timer.start(room, room.deadline)
        self.logger.info(f"[round-start] room={code} choices={len(room.choices)} duration={seconds}s deadline={room.deadline:.3f}")
        return Accepted('question_started')

    def host_reveal(self, raw_room, raw_correct) -> Accepted | Rejected:
        code = normalize_room(raw_room)
        if not code:
            return self._reject('host_reveal', 'missing_room')
        with self.registry.lock:
            room = self.registry.get(code)
            if room is None:
                return self._reject('host_reveal', 'unknown_room', code)
            # Only from an open question, so a repeated reveal cannot award twice
            if room.state != QUESTION:
                return self._reject('host_reveal', 'not_in_question', code)
            correct = coerce_index(raw_correct)
            if correct is None or not 0 <= correct < len(room.choices):
                return self._reject('host_reveal', 'invalid_correct_index', code)

            self.timer.stop(room)
            room.state = REVEAL
            room.correct = correct
            room.last_activity = self.clock()
            awarded = award_correct_answers(room)

            self.out.to_room(code, 'reveal', {'correct': correct})
            self._broadcast_scoreboard(room)
        self.logger.info(f"[reveal] room={code} correct={correct} answers={len(room.answers)} awarded={len(awarded)}")
        return Accepted('revealed')

    def host_next(self, raw_room) -> Accepted | Rejected:
        code = normalize_room(raw_room)
        if not code:
            return self._reject('host_next', 'missing_room')
        with self.registry.lock:
            room = self._room(code, self.clock())
            self.timer.stop(room)
            room.state = LOBBY
            room.reset_round()
            # Scores carry over to the next round
            self.out.to_room(code, 'system', {'type': 'info', 'text': 'Next round starting soon'})
        self.logger.info(f"[next] room={code} -> lobby")
        return Accepted('lobby')

    # ---- housekeeping ----

    def evict_idle(self, now: Optional[float] = None) -> List[str]:
        """Drop rooms nobody is connected to once idle past ROOM_IDLE_TIMEOUT_SEC."""
        timeout = float(self.config.get('ROOM_IDLE_TIMEOUT_SEC', 0) or 0)
        if timeout <= 0:
            return []
        evicted = []
        with self.registry.lock:
            now = self.clock() if now is None else now
            for code in self.registry.codes():
                room = self.registry.get(code)
                if self.sessions.in_room(code) or now - room.last_activity < timeout:
                    continue
                self.timer.stop(room)
                self.registry.remove(code)
                evicted.append(code)
        for code in evicted:
            self.logger.info(f"[evict] room={code} idle>={timeout:g}s")
        return evicted

    def snapshot(self, raw_room) -> Optional[dict]:
        code = normalize_room(raw_room)
        with self.registry.lock:
            room = self.registry.get(code) if code else None
            if room is None:
                return None
            now = self.clock()
            return {
                'room': room.code,
                'state': room.state,
                'question': room.question,
                'choices': list(room.choices),
                'correct': room.correct,
                'endsIn': remaining_seconds(room.deadline, now) if room.state == QUESTION else 0,
                'timerActive': room.timer_handle is not None,
                'answerCount': len(room.answers),
                'presence': list_presence(self.sessions, code),
                'scoreboard': compute_standings(room),
            }

    # ---- helpers ----

    def _room(self, code: str, now: float) -> Room:
        room = self.registry.get_or_create(code, now)
        room.last_activity = now
        return room

    def _bind(self, conn_id: str, code: str, name: str) -> None:
        previous = self.sessions.get(conn_id)
        if previous is not None and previous.room != code:
            self._detach(conn_id, unsubscribe=True)
        elif previous is not None:
            # Same room under a new role or name
            room = self.registry.get(code)
            if room is not None:
                room.players.pop(conn_id, None)
        self.out.subscribe(conn_id, code)
        self.sessions.bind(conn_id, code, name)

    def _detach(self, conn_id: str, unsubscribe: bool):
        session = self.sessions.unbind(conn_id)
        if session is None:
            return None
        room = self.registry.get(session.room)
        if room is not None:
            room.players.pop(conn_id, None)
            room.last_activity = self.clock()
        if unsubscribe:
            self.out.unsubscribe(conn_id, session.room)
        self.out.to_room(session.room, 'system', {'type': 'leave', 'text': f'{session.name} disconnected'})
        self._broadcast_presence(session.room)
        self.logger.info(f"[leave] room={session.room} conn={conn_id} name={session.name}")
        return session

    def _broadcast_presence(self, code: str) -> None:
        self.out.to_room(code, 'presence', list_presence(self.sessions, code))

    def _broadcast_scoreboard(self, room: Room) -> None:
        self.out.to_room(room.code, 'scoreboard', compute_standings(room))

    def _question_payload(self, room: Room, now: float) -> dict:
        return {
            'question': room.question,
            'choices': list(room.choices),
            'endsIn': remaining_seconds(room.deadline, now),
        }

    def _reject(self, op: str, reason: str, code: Optional[str] = None, conn_id: Optional[str] = None) -> Rejected:
        self.logger.debug(f"[rejected] op={op} reason={reason} room={code} conn={conn_id}")
        return Rejected(reason)
