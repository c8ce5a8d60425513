import logging
import math
import threading
import time
from typing import Callable, Optional

from quizcast.models import Room, TimerHandle


def remaining_seconds(deadline: float, now: float) -> int:
    """Whole seconds left until ``deadline``, never negative."""
    return max(0, math.ceil(deadline - now))


class RoundTimer:
    """Per-room countdown that broadcasts ``tick`` once per interval.

    - At most one live handle per room (``Room.timer_handle``); ``start`` stops the old one
    - ``timeup`` fires exactly once, after which the worker exits
    - Expiry does not change the room state, the host still has to reveal
    - A stopped handle never fires again, even if its worker is mid-sleep

    ``spawn`` and ``sleep`` are ``socketio.start_background_task`` and
    ``socketio.sleep`` in the running server.
    """

    def __init__(
        self,
        emit: Callable[..., None],
        spawn: Callable[..., object],
        sleep: Callable[[float], None],
        clock: Callable[[], float] = time.time,
        interval: float = 1.0,
        lock: Optional[threading.RLock] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.emit = emit
        self.spawn = spawn
        self.sleep = sleep
        self.clock = clock
        self.interval = interval
        self.lock = lock or threading.RLock()
        self.logger = logger or logging.getLogger(__name__)

    def start(self, room: Room, deadline: float) -> TimerHandle:
        with self.lock:
            self.stop(room)
            handle = TimerHandle(room_code=room.code, deadline=deadline)
            room.timer_handle = handle
        self.logger.info(
            f"[timer-set] room={room.code} deadline={deadline:.3f} remaining={remaining_seconds(deadline, self.clock())}s"
        )
        self.spawn(self._worker, room, handle)
        return handle

    def stop(self, room: Room) -> bool:
        with self.lock:
            handle = room.timer_handle
            if handle is None:
                return False
            handle.cancel()
            room.timer_handle = None
        self.logger.info(f"[timer-stop] room={room.code}")
        return True

    def fire(self, room: Room, handle: TimerHandle) -> bool:
        """Run one tick. Returns False once the handle is finished."""
        with self.lock:
            if handle.cancelled or room.timer_handle is not handle:
                return False
            left = remaining_seconds(handle.deadline, self.clock())
            self.emit(room.code, 'tick', left)
            if left > 0:
                return True
            self.stop(room)
            self.emit(room.code, 'timeup')
        self.logger.info(f"[timer-fire] room={room.code} timeup")
        return False

    def _worker(self, room: Room, handle: TimerHandle) -> None:
        while True:
            self.sleep(self.interval)
            if not self.fire(room, handle):
                return
