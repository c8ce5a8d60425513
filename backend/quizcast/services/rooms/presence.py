from typing import Dict, List, Optional

from quizcast.models import Session


class SessionStore:
    """connection id -> {room, display name}, in connection order."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def bind(self, conn_id: str, room: str, name: str) -> Optional[Session]:
        """Attach a connection to a room, returning the session it replaced."""
        previous = self._sessions.pop(conn_id, None)
        self._sessions[conn_id] = Session(room=room, name=name)
        return previous

    def unbind(self, conn_id: str) -> Optional[Session]:
        return self._sessions.pop(conn_id, None)

    def get(self, conn_id: str) -> Optional[Session]:
        return self._sessions.get(conn_id)

    def in_room(self, room: str) -> List[str]:
        return [cid for cid, s in self._sessions.items() if s.room == room]

    def __len__(self) -> int:
        return len(self._sessions)


def list_presence(sessions: SessionStore, room: str) -> List[dict]:
    """Live connections of a room that carry a display name."""
    presence = []
    for conn_id in sessions.in_room(room):
        session = sessions.get(conn_id)
        if session and session.name:
            presence.append({'id': conn_id, 'name': session.name})
    return presence
