import os
import sys
from datetime import datetime, timedelta

import pytest

# Ensure the backend root (containing the `typerace` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from typerace import create_app, db, socketio
from typerace.services.races.engine import RaceEngine
from typerace.services.races.store import RaceStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = 'DEBUG'
    CORS_ORIGINS = '*'
    RACE_START_COUNTDOWN_SEC = 0.2
    ENFORCE_TIME_LIMIT = False
    DEFAULT_MAX_PLAYERS = 4
    DEFAULT_DIFFICULTY = 'medium'
    DEFAULT_TIME_LIMIT_SEC = 180
    MAX_PLAYERS_LIMIT = 8
    MAX_TIME_LIMIT_SEC = 600


class FakeTransport:
    """Records sends instead of emitting; tracks which sids count as open."""

    def __init__(self):
        self.open = set()
        self.broken = set()
        self.sent = []

    def is_open(self, sid):
        return sid in self.open

    def send(self, sid, payload):
        if sid in self.broken:
            raise ConnectionError(f'socket {sid} is gone')
        self.sent.append((sid, payload))

    def messages(self, sid=None, type_=None):
        return [
            payload for to, payload in self.sent
            if (sid is None or to == sid) and (type_ is None or payload['type'] == type_)
        ]

    def clear(self):
        self.sent.clear()


class ManualScheduler:
    """Holds scheduled callbacks until a test fires them."""

    def __init__(self):
        self.pending = {}

    def schedule(self, key, delay, callback):
        if key in self.pending:
            return False
        self.pending[key] = (delay, callback)
        return True

    def cancel(self, key):
        return self.pending.pop(key, None) is not None

    def cancel_all(self):
        self.pending.clear()

    def is_pending(self, key):
        return key in self.pending

    def delay_of(self, key):
        return self.pending[key][0]

    def fire(self, key):
        _, callback = self.pending.pop(key)
        callback()


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture()
def flask_app(tmp_path):
    # File-backed SQLite so timer threads get their own connection
    config = type('FileTestConfig', (TestConfig,), {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'races.db'}",
    })
    application = create_app(config)
    with application.app_context():
        db.create_all()
        RaceStore().seed_default_passages()
        yield application
        application.extensions['race_engine'].shutdown()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def store(flask_app):
    return RaceStore()


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def engine(flask_app, transport, scheduler, clock, store):
    flask_app.config['RACE_START_COUNTDOWN_SEC'] = 5
    flask_app.config['ENFORCE_TIME_LIMIT'] = True
    return RaceEngine(flask_app, transport=transport, scheduler=scheduler, store=store, clock=clock)


@pytest.fixture()
def connect(engine, transport):
    """Open a fake connection and return its session."""
    def _connect(sid):
        transport.open.add(sid)
        return engine.connect(sid)
    return _connect


@pytest.fixture()
def make_race(store):
    def _make(name='Lunch sprint', max_players=4, difficulty='easy', time_limit=180):
        return store.create_race(name=name, max_players=max_players, difficulty=difficulty, time_limit=time_limit)
    return _make
