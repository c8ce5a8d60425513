from typing import List

from quizcast.models import Room


def compute_standings(room: Room) -> List[dict]:
    """Scores ordered by descending score, ties broken by name."""
    rows = [{'name': name, 'score': score} for name, score in room.scores.items()]
    rows.sort(key=lambda r: (-r['score'], r['name']))
    return rows


def award_correct_answers(room: Room) -> List[str]:
    """Apply scoring for the current round.

    +1 to the display name behind every recorded answer matching
    ``room.correct``. Wrong answers cost nothing. Returns the awarded names
    in answer order (a name answering from two connections appears twice).
    """
    if room.correct is None:
        return []
    awarded = []
    for answer in room.answers.values():
        if answer.index == room.correct:
            room.scores[answer.name] = room.scores.get(answer.name, 0) + 1
            awarded.append(answer.name)
    return awarded
