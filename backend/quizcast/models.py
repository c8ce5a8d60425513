from dataclasses import dataclass, field
from typing import Dict, List, Optional

LOBBY = 'lobby'
QUESTION = 'question'
REVEAL = 'reveal'


@dataclass
class Answer:
    name: str
    index: int
    at: float

    def to_dict(self):
        return {'name': self.name, 'index': self.index, 'at': self.at}


@dataclass
class TimerHandle:
    """Ownership token for a room's countdown. Once cancelled it never fires again."""
    room_code: str
    deadline: float
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class Room:
    code: str
    state: str = LOBBY
    # connection id -> display name, only connections that joined as players
    players: Dict[str, str] = field(default_factory=dict)
    # display name -> score, kept for the lifetime of the room
    scores: Dict[str, int] = field(default_factory=dict)
    question: Optional[str] = None
    choices: List[str] = field(default_factory=list)
    correct: Optional[int] = None
    deadline: float = 0.0
    # connection id -> answer for the current round
    answers: Dict[str, Answer] = field(default_factory=dict)
    timer_handle: Optional[TimerHandle] = None
    last_activity: float = 0.0

    def reset_round(self) -> None:
        self.question = None
        self.choices = []
        self.correct = None
        self.deadline = 0.0
        self.answers.clear()


@dataclass
class Session:
    """What the gateway knows about one live connection."""
    room: str
    name: str


@dataclass(frozen=True)
class Accepted:
    effect: str

    def __bool__(self):
        return True


@dataclass(frozen=True)
class Rejected:
    reason: str

    def __bool__(self):
        return False
