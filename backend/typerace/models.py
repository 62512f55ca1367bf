from datetime import datetime, timezone

from typerace import db
from typerace.schemas import RaceOut, ParticipantOut, PassageOut


RACE_WAITING = 'waiting'
RACE_ACTIVE = 'active'
RACE_FINISHED = 'finished'
RACE_STATUSES = (RACE_WAITING, RACE_ACTIVE, RACE_FINISHED)


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo so everything is stored naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Race(db.Model):
    __tablename__ = 'race'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    text_passage = db.Column(db.Text, nullable=False)
    max_players = db.Column(db.Integer, nullable=False, default=4)
    difficulty = db.Column(db.String(32), nullable=False, default='medium')
    time_limit = db.Column(db.Integer, nullable=False, default=180)  # seconds
    status = db.Column(db.String(16), nullable=False, default=RACE_WAITING, index=True)  # waiting, active, finished
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    started_at = db.Column(db.DateTime, nullable=True)
    finished_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return RaceOut.model_validate(self).to_wire()


class RaceParticipant(db.Model):
    __tablename__ = 'race_participant'
    __table_args__ = (
        db.UniqueConstraint('race_id', 'player_id', name='uq_race_participant_player'),
    )
    id = db.Column(db.Integer, primary_key=True)
    race_id = db.Column(db.Integer, db.ForeignKey('race.id'), nullable=False, index=True)
    player_id = db.Column(db.String(32), nullable=False)  # connection-scoped id
    player_name = db.Column(db.String(64), nullable=False)
    progress = db.Column(db.Integer, nullable=False, default=0)  # characters typed
    wpm = db.Column(db.Integer, nullable=False, default=0)
    accuracy = db.Column(db.Integer, nullable=False, default=100)
    errors = db.Column(db.Integer, nullable=False, default=0)
    finished = db.Column(db.Boolean, nullable=False, default=False)
    finished_at = db.Column(db.DateTime, nullable=True)
    rank = db.Column(db.Integer, nullable=True)

    def to_dict(self):
        return ParticipantOut.model_validate(self).to_wire()


class TextPassage(db.Model):
    __tablename__ = 'text_passage'
    id = db.Column(db.Integer, primary_key=True)
    content = db.Column(db.Text, nullable=False)
    difficulty = db.Column(db.String(32), nullable=False, index=True)
    length = db.Column(db.Integer, nullable=False)

    def to_dict(self):
        return PassageOut.model_validate(self).to_wire()
