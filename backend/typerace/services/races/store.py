"""Race store: the only place that touches the database.

Pure data access. No timing decisions are made here; callers pass in the
timestamps they want recorded. Every write commits on its own and rolls the
session back before re-raising if the commit fails. Reads always go to the
database so a session never serves rows another worker has since changed.
"""
import random
from datetime import datetime
from typing import List, Optional

from typerace import db
from typerace.models import (
    Race,
    RaceParticipant,
    TextPassage,
    RACE_ACTIVE,
    RACE_FINISHED,
    RACE_WAITING,
)
from .errors import PassageNotFound


DEFAULT_PASSAGES = [
    {
        'content': "The quick brown fox jumps over the lazy dog. This pangram contains every letter of the alphabet at least once.",
        'difficulty': 'easy',
    },
    {
        'content': "In a hole in the ground there lived a hobbit. Not a nasty, dirty, wet hole, filled with the ends of worms and an oozy smell, nor yet a dry, bare, sandy hole with nothing in it to sit down on or to eat: it was a hobbit-hole, and that means comfort.",
        'difficulty': 'medium',
    },
    {
        'content': "It was the best of times, it was the worst of times, it was the age of wisdom, it was the age of foolishness, it was the epoch of belief, it was the epoch of incredulity, it was the season of Light, it was the season of Darkness, it was the spring of hope, it was the winter of despair.",
        'difficulty': 'hard',
    },
]


def _commit() -> None:
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


class RaceStore:
    """Races, participants and the passage corpus."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    # ---- races ----

    def create_race(self, name: str, max_players: int, difficulty: str, time_limit: int) -> Race:
        passage = self.pick_passage(difficulty)
        if passage is None:
            raise PassageNotFound(difficulty)
        race = Race(
            name=name,
            text_passage=passage.content,
            max_players=max_players,
            difficulty=difficulty,
            time_limit=time_limit,
            status=RACE_WAITING,
        )
        db.session.add(race)
        _commit()
        return race

    def get_race(self, race_id: int) -> Optional[Race]:
        return db.session.get(Race, race_id, populate_existing=True)

    def list_races(self, status: Optional[str] = None) -> List[Race]:
        query = Race.query
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Race.id).all()

    def mark_started(self, race: Race, at: datetime) -> Race:
        race.status = RACE_ACTIVE
        race.started_at = at
        db.session.add(race)
        _commit()
        return race

    def mark_finished(self, race: Race, at: datetime) -> Race:
        race.status = RACE_FINISHED
        race.finished_at = at
        db.session.add(race)
        _commit()
        return race

    # ---- participants ----

    def add_participant(self, race_id: int, player_id: str, player_name: str) -> RaceParticipant:
        participant = RaceParticipant(
            race_id=race_id,
            player_id=player_id,
            player_name=player_name,
            progress=0,
            wpm=0,
            accuracy=100,
            errors=0,
            finished=False,
        )
        db.session.add(participant)
        _commit()
        return participant

    def get_participant(self, race_id: int, player_id: str) -> Optional[RaceParticipant]:
        return (
            RaceParticipant.query.filter_by(race_id=race_id, player_id=player_id)
            .populate_existing()
            .first()
        )

    def remove_participant(self, race_id: int, player_id: str) -> bool:
        removed = RaceParticipant.query.filter_by(race_id=race_id, player_id=player_id).delete()
        _commit()
        return bool(removed)

    def participants_of(self, race_id: int) -> List[RaceParticipant]:
        return (
            RaceParticipant.query.filter_by(race_id=race_id)
            .order_by(RaceParticipant.id)
            .populate_existing()
            .all()
        )

    def count_participants(self, race_id: int) -> int:
        return RaceParticipant.query.filter_by(race_id=race_id).count()

    def record_progress(
        self,
        race_id: int,
        player_id: str,
        progress: int,
        wpm: int,
        accuracy: int,
        errors: int,
        finished_at: Optional[datetime] = None,
    ) -> Optional[RaceParticipant]:
        """Last-write-wins progress update; marks the participant finished when
        ``finished_at`` is given and they have not finished yet."""
        participant = self.get_participant(race_id, player_id)
        if participant is None:
            return None
        participant.progress = progress
        participant.wpm = wpm
        participant.accuracy = accuracy
        participant.errors = errors
        if finished_at is not None and not participant.finished:
            participant.finished = True
            participant.finished_at = finished_at
        db.session.add(participant)
        _commit()
        return participant

    def assign_ranks(self, race_id: int) -> List[RaceParticipant]:
        """Dense ranks 1..N over finished participants by finish time; equal
        timestamps keep join order."""
        participants = self.participants_of(race_id)
        finished = sorted(
            (p for p in participants if p.finished),
            key=lambda p: (p.finished_at or datetime.min, p.id),
        )
        for rank, participant in enumerate(finished, start=1):
            participant.rank = rank
            db.session.add(participant)
        _commit()
        return participants

    # ---- passages ----

    def pick_passage(self, difficulty: str) -> Optional[TextPassage]:
        passages = TextPassage.query.filter_by(difficulty=difficulty).order_by(TextPassage.id).all()
        if not passages:
            return None
        return self._rng.choice(passages)

    def list_passages(self) -> List[TextPassage]:
        return TextPassage.query.order_by(TextPassage.id).all()

    def add_passage(self, content: str, difficulty: str) -> TextPassage:
        passage = TextPassage(content=content, difficulty=difficulty, length=len(content))
        db.session.add(passage)
        _commit()
        return passage

    def seed_default_passages(self) -> int:
        """Insert the built-in corpus when the table is empty. Returns rows added."""
        if TextPassage.query.count():
            return 0
        for entry in DEFAULT_PASSAGES:
            db.session.add(TextPassage(
                content=entry['content'],
                difficulty=entry['difficulty'],
                length=len(entry['content']),
            ))
        _commit()
        return len(DEFAULT_PASSAGES)
