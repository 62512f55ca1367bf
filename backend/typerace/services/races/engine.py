"""Room lifecycle engine.

Owns the room registry, the connection sessions and the fan-out, and drives a
race through ``waiting -> active -> finished``:

- join: admit a player, send the snapshot, maybe schedule the start countdown
- countdown fires: re-check and go active, then (optionally) arm the time limit
- typing_update: record progress, broadcast, then evaluate the finish condition

Every event and timer callback runs under one re-entrant lock, so the engine
processes one thing at a time no matter how many worker threads the socket
server uses. Store calls are the only suspension points and nothing is
broadcast until the store has committed.
"""
import threading
from contextlib import nullcontext
from typing import Callable, Optional

from flask import has_app_context
from sqlalchemy.exc import SQLAlchemyError

from typerace import db
from typerace.models import RACE_ACTIVE, RACE_WAITING, utcnow
from typerace.schemas import (
    JoinRace,
    LeaveRace,
    TypingUpdate,
    error_message,
    parse_inbound,
    player_joined,
    player_left,
    race_finished,
    race_started,
    race_update,
)
from .broadcast import Broadcaster
from .errors import InternalFailure, MalformedMessage, RaceError, RaceFull, RaceUnavailable
from .registry import RoomRegistry
from .sessions import ConnectionSession, SessionTable
from .store import RaceStore


MIN_PLAYERS_TO_START = 2
START_TASK = 'start'
DEADLINE_TASK = 'deadline'


class RaceEngine:
    def __init__(
        self,
        app,
        transport,
        scheduler,
        store: Optional[RaceStore] = None,
        registry: Optional[RoomRegistry] = None,
        sessions: Optional[SessionTable] = None,
        clock: Callable = utcnow,
    ):
        self.app = app
        self.store = store or RaceStore()
        self.registry = registry or RoomRegistry()
        self.sessions = sessions or SessionTable()
        self.fanout = Broadcaster(self.registry, self.sessions, transport, on_stale=self._drop_stale)
        self.scheduler = scheduler
        self.clock = clock
        self.countdown_sec = float(app.config.get('RACE_START_COUNTDOWN_SEC', 5))
        self.enforce_time_limit = bool(app.config.get('ENFORCE_TIME_LIMIT', True))
        self._lock = threading.RLock()

    @property
    def log(self):
        return self.app.logger

    # ---- connections ----

    def connect(self, sid: str) -> ConnectionSession:
        with self._lock:
            session = self.sessions.open(sid)
        self.log.info(f"[connect] sid={sid} player={session.player_id}")
        return session

    def disconnect(self, sid: str) -> None:
        """Leave whatever race the connection was in, then forget it."""
        with self._lock:
            session = self.sessions.get(sid)
            race_id = session.race_id if session else self.registry.room_of(sid)
            try:
                if session is not None and race_id is not None:
                    self.leave(sid, race_id)
            except Exception:
                # Nobody left to tell; keep the cleanup below going
                db.session.rollback()
                self.log.exception(f"[disconnect-error] sid={sid} race={race_id}")
            finally:
                self.registry.detach(sid)
                self.sessions.close(sid)
        self.log.info(f"[disconnect] sid={sid} race={race_id}")

    def handle_message(self, sid: str, payload) -> None:
        """Entry point for every inbound socket message.

        Failures are reported to ``sid`` only, as an ``error`` message.
        """
        with self._lock:
            try:
                message = parse_inbound(payload)
                self._dispatch(sid, message)
            except RaceError as exc:
                self.log.info(f"[rejected] sid={sid} reason={exc.__class__.__name__}")
                self._reject(sid, exc)
            except SQLAlchemyError:
                db.session.rollback()
                self.log.exception(f"[store-error] sid={sid}")
                self._reject(sid, InternalFailure())
            except Exception:
                db.session.rollback()
                self.log.exception(f"[handler-error] sid={sid}")
                self._reject(sid, InternalFailure())

    def shutdown(self) -> None:
        self.scheduler.cancel_all()

    def _dispatch(self, sid: str, message) -> None:
        if isinstance(message, JoinRace):
            self.join(sid, message.data.race_id, message.data.player_name)
        elif isinstance(message, LeaveRace):
            self.leave(sid, message.data.race_id)
        elif isinstance(message, TypingUpdate):
            data = message.data
            self.typing_update(sid, data.race_id, data.progress, data.wpm, data.accuracy, data.errors)
        else:
            raise MalformedMessage()

    def _reject(self, sid: str, exc: RaceError) -> None:
        self.fanout.send_to(sid, error_message(exc.client_message))

    # ---- events ----

    def join(self, sid: str, race_id: int, player_name: str):
        with self._lock:
            session = self.sessions.open(sid)
            self.log.info(f"[race-join] race={race_id} player={session.player_id} name={player_name}")

            race = self.store.get_race(race_id)
            if race is None or race.status != RACE_WAITING:
                self.log.info(f"[join-rejected] race={race_id} status={race.status if race else 'missing'}")
                raise RaceUnavailable()
            if self.store.get_participant(race_id, session.player_id) is not None:
                raise RaceUnavailable('Already joined this race')
            if self.store.count_participants(race_id) >= race.max_players:
                self.log.info(f"[join-rejected] race={race_id} full max={race.max_players}")
                raise RaceFull()

            if session.race_id is not None and session.race_id != race_id:
                self.leave(sid, session.race_id)

            participant = self.store.add_participant(race_id, session.player_id, player_name)
            self.registry.attach(sid, race_id)
            session.race_id = race_id

            self.fanout.send_to(sid, race_update(race, self.store.participants_of(race_id)))
            self.fanout.broadcast(race_id, player_joined(race_id, participant), exclude=sid)
            # Re-read: the fan-out above may have dropped stale members
            participants = self.store.participants_of(race_id)
            self.fanout.broadcast(race_id, race_update(race, participants))
            self.log.info(f"[race-join] race={race_id} participants={len(participants)}")

            self._check_start(race_id)
            return participant

    def leave(self, sid: str, race_id: int) -> None:
        """Idempotent: leaving a race you are not in still succeeds."""
        with self._lock:
            session = self.sessions.open(sid)
            removed = self.store.remove_participant(race_id, session.player_id)
            if self.registry.room_of(sid) == race_id:
                self.registry.detach(sid)
            if session.race_id == race_id:
                session.race_id = None
            self.log.info(f"[race-leave] race={race_id} player={session.player_id} removed={removed}")

            self.fanout.broadcast(race_id, player_left(race_id, session.player_id))
            if not self.registry.has_room(race_id):
                self.scheduler.cancel((START_TASK, race_id))

    def _drop_stale(self, race_id: int, sid: str) -> None:
        """Fan-out hook for a member whose socket is already gone.

        Treated as a disconnect: the participant row goes now, while the
        session still knows the player id.
        """
        with self._lock:
            if self.sessions.get(sid) is None:
                self.registry.detach(sid)
                return
            try:
                self.leave(sid, race_id)
            except SQLAlchemyError:
                db.session.rollback()
                self.log.exception(f"[stale-cleanup-error] race={race_id} sid={sid}")
            finally:
                self.registry.detach(sid)
                self.sessions.close(sid)

    def typing_update(self, sid: str, race_id: int, progress: int, wpm: int, accuracy: int, errors: int) -> bool:
        """Record reported progress. Ignored unless the race is active."""
        with self._lock:
            session = self.sessions.open(sid)
            race = self.store.get_race(race_id)
            if race is None or race.status != RACE_ACTIVE:
                self.log.debug(f"[typing-ignored] race={race_id} status={race.status if race else 'missing'}")
                return False

            now = self.clock()
            completed = progress >= len(race.text_passage)
            participant = self.store.record_progress(
                race_id,
                session.player_id,
                progress,
                wpm,
                accuracy,
                errors,
                finished_at=now if completed else None,
            )
            if participant is not None and completed and participant.finished_at == now:
                self.log.info(f"[player-finish] race={race_id} player={session.player_id} wpm={wpm}")

            participants = self.store.participants_of(race_id)
            self.fanout.broadcast(race_id, race_update(race, participants))
            self._check_finish(race_id, now)
            return True

    # ---- transitions ----

    def _check_start(self, race_id: int) -> bool:
        race = self.store.get_race(race_id)
        if race is None or race.status != RACE_WAITING:
            return False
        count = self.store.count_participants(race_id)
        if count < MIN_PLAYERS_TO_START:
            return False
        scheduled = self.scheduler.schedule(
            (START_TASK, race_id),
            self.countdown_sec,
            self._timer(self._start_if_ready, race_id),
        )
        if scheduled:
            self.log.info(f"[countdown] race={race_id} starts in {self.countdown_sec}s with {count} players")
        return scheduled

    def _start_if_ready(self, race_id: int) -> bool:
        race = self.store.get_race(race_id)
        if race is None or race.status != RACE_WAITING:
            self.log.info(f"[countdown-abort] race={race_id} status={race.status if race else 'missing'}")
            return False
        participants = self.store.participants_of(race_id)
        if len(participants) < MIN_PLAYERS_TO_START:
            self.log.info(f"[countdown-abort] race={race_id} participants={len(participants)}")
            return False

        race = self.store.mark_started(race, self.clock())
        self.log.info(f"[race-start] race={race_id} participants={len(participants)}")
        self.fanout.broadcast(race_id, race_started(race_id))
        self.fanout.broadcast(race_id, race_update(race, self.store.participants_of(race_id)))

        if self.enforce_time_limit:
            self.scheduler.schedule(
                (DEADLINE_TASK, race_id),
                race.time_limit,
                self._timer(self._finish_on_deadline, race_id),
            )
        return True

    def _finish_on_deadline(self, race_id: int) -> bool:
        return self._check_finish(race_id, deadline_reached=True)

    def _check_finish(self, race_id: int, now=None, deadline_reached: bool = False) -> bool:
        race = self.store.get_race(race_id)
        if race is None or race.status != RACE_ACTIVE:
            return False
        now = now or self.clock()
        participants = self.store.participants_of(race_id)
        everyone_done = bool(participants) and all(p.finished for p in participants)
        elapsed = (now - race.started_at).total_seconds() if race.started_at else 0.0
        timed_out = deadline_reached or elapsed >= race.time_limit
        if not (everyone_done or timed_out):
            return False

        # Ranks first: if this fails the race stays active and can finish later
        results = self.store.assign_ranks(race_id)
        self.store.mark_finished(race, now)
        self.scheduler.cancel((DEADLINE_TASK, race_id))
        self.log.info(
            f"[race-finish] race={race_id} finished={sum(1 for p in results if p.finished)}/{len(results)} "
            f"elapsed={elapsed:.1f}s timed_out={timed_out and not everyone_done}"
        )
        self.fanout.broadcast(race_id, race_finished(race_id, results))
        return True

    def _timer(self, fn, race_id: int):
        def fire():
            context = nullcontext() if has_app_context() else self.app.app_context()
            with context, self._lock:
                try:
                    fn(race_id)
                except SQLAlchemyError:
                    db.session.rollback()
                    raise
        return fire
