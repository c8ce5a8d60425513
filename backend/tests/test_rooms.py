import pytest

from quizcast.models import LOBBY, Answer, Room
from quizcast.services.rooms.machine import coerce_index, normalize_name, normalize_room, parse_duration
from quizcast.services.rooms.presence import SessionStore, list_presence
from quizcast.services.rooms.registry import RoomRegistry
from quizcast.services.rooms.scoring import award_correct_answers, compute_standings


def test_registry_creates_lazily_and_reuses():
    registry = RoomRegistry()
    assert registry.get('c1') is None
    room = registry.get_or_create('c1')
    assert room.state == LOBBY
    assert registry.get_or_create('c1') is room
    assert 'c1' in registry and len(registry) == 1
    assert registry.remove('c1') is room
    assert registry.remove('c1') is None


def test_standings_order_by_score_then_name():
    room = Room(code='c1', scores={'Alice': 2, 'Bob': 2, 'Carol': 3})
    assert compute_standings(room) == [
        {'name': 'Carol', 'score': 3},
        {'name': 'Alice', 'score': 2},
        {'name': 'Bob', 'score': 2},
    ]
    # Read only
    assert room.scores == {'Alice': 2, 'Bob': 2, 'Carol': 3}


def test_award_only_matching_answers():
    room = Room(code='c1', scores={'A': 0, 'B': 3, 'C': 1}, correct=1)
    room.answers = {
        's1': Answer(name='A', index=1, at=1.0),
        's2': Answer(name='B', index=0, at=2.0),
    }
    assert award_correct_answers(room) == ['A']
    assert room.scores == {'A': 1, 'B': 3, 'C': 1}


def test_presence_lists_named_connections_of_one_room():
    sessions = SessionStore()
    sessions.bind('s1', 'c1', 'Alice')
    sessions.bind('s2', 'c2', 'Bob')
    sessions.bind('s3', 'c1', '')
    sessions.bind('s4', 'c1', 'HOST')
    assert list_presence(sessions, 'c1') == [
        {'id': 's1', 'name': 'Alice'},
        {'id': 's4', 'name': 'HOST'},
    ]
    sessions.unbind('s1')
    assert list_presence(sessions, 'c1') == [{'id': 's4', 'name': 'HOST'}]
    assert list_presence(sessions, 'nowhere') == []


@pytest.mark.parametrize('raw, expected', [
    (None, 'Student'),
    ('', 'Student'),
    ('   ', 'Student'),
    ('  Ann  ', 'Ann'),
    ('x' * 60, 'x' * 40),
    (42, '42'),
])
def test_normalize_name(raw, expected):
    assert normalize_name(raw) == expected


@pytest.mark.parametrize('raw, expected', [
    (0, 0), (2, 2), ('1', 1), (' 3 ', 3), (1.0, 1),
    # fractions truncate toward zero
    (1.5, 1), ('2.7', 2), (-0.5, 0),
    ('abc', None), (None, None), ([1], None), (float('inf'), None), ('nan', None),
    # a JSON true is not an index even though Python treats it as 1
    (True, None), (False, None),
])
def test_coerce_index(raw, expected):
    assert coerce_index(raw) == expected


@pytest.mark.parametrize('raw, expected', [
    (10, 10), (1, 5), (0, 5), (-3, 5), (500, 120), ('30', 30), (7.9, 7),
    (None, 20), ('', 20), ('soon', 20), (float('nan'), 20), (True, 20),
])
def test_parse_duration_clamps(raw, expected):
    assert parse_duration(raw) == expected


def test_normalize_room():
    assert normalize_room(' c1 ') == 'c1'
    assert normalize_room(7) == '7'
    assert normalize_room('') is None
    assert normalize_room(None) is None
    assert normalize_room({'room': 'c1'}) is None
