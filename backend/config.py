import os


def _flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///typerace.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Comma separated; used by Flask-CORS and Socket.IO
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',') if o.strip()]
    # Delay between the second join and the race going active (seconds)
    RACE_START_COUNTDOWN_SEC = float(os.environ.get('RACE_START_COUNTDOWN_SEC', '5'))
    # Finish races on their time limit even when nobody is typing
    ENFORCE_TIME_LIMIT = _flag('ENFORCE_TIME_LIMIT', True)
    # Create-race defaults and bounds
    DEFAULT_MAX_PLAYERS = int(os.environ.get('DEFAULT_MAX_PLAYERS', '4'))
    DEFAULT_DIFFICULTY = os.environ.get('DEFAULT_DIFFICULTY', 'medium')
    DEFAULT_TIME_LIMIT_SEC = int(os.environ.get('DEFAULT_TIME_LIMIT_SEC', '180'))
    MAX_PLAYERS_LIMIT = int(os.environ.get('MAX_PLAYERS_LIMIT', '8'))
    MAX_TIME_LIMIT_SEC = int(os.environ.get('MAX_TIME_LIMIT_SEC', '600'))
