import threading
from typing import Dict, List, Optional

from quizcast.models import Room


class RoomRegistry:
    """In-memory store of rooms keyed by room code.

    Owns the re-entrant lock that serialises every state machine operation
    and timer fire step.
    """

    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self.lock = threading.RLock()

    def get_or_create(self, code: str, now: float = 0.0) -> Room:
        room = self._rooms.get(code)
        if room is None:
            room = Room(code=code, last_activity=now)
            self._rooms[code] = room
        return room

    def get(self, code: str) -> Optional[Room]:
        return self._rooms.get(code)

    def remove(self, code: str) -> Optional[Room]:
        return self._rooms.pop(code, None)

    def codes(self) -> List[str]:
        return list(self._rooms)

    def __contains__(self, code) -> bool:
        return code in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
