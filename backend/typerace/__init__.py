import logging

import click
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

WS_NAMESPACE = '/ws'


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Models must be imported before create_all / migrations see the metadata
    from typerace import models  # noqa: F401

    from typerace.main import main
    flask_app.register_blueprint(main)

    from typerace.api.races import races
    flask_app.register_blueprint(races, url_prefix='/api')

    # One engine per app: it owns room membership, sessions and timers
    from typerace.services.races.broadcast import SocketIOTransport
    from typerace.services.races.engine import RaceEngine
    from typerace.services.races.scheduler import TaskScheduler
    engine = RaceEngine(
        flask_app,
        transport=SocketIOTransport(socketio, namespace=WS_NAMESPACE),
        scheduler=TaskScheduler(socketio),
    )
    flask_app.extensions['race_engine'] = engine

    from typerace.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=WS_NAMESPACE)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from typerace.services.races.store import RaceStore
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            added = RaceStore().seed_default_passages()
        click.echo(f'Database has been reset and seeded with {added} passages!')

    @click.command('seed-passages')
    def seed_passages_command():
        """Seeds the default text passages if the table is empty."""
        from typerace.services.races.store import RaceStore
        with flask_app.app_context():
            added = RaceStore().seed_default_passages()
        click.echo(f'Seeded {added} passages.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(seed_passages_command)

    return flask_app


def get_engine():
    from flask import current_app
    return current_app.extensions['race_engine']
