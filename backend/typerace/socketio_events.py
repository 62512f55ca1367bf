from flask import request
from flask_socketio import emit

from typerace import socketio, get_engine


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    session = get_engine().connect(_get_sid())
    emit('connected', {'message': 'Connected to /ws', 'playerId': session.player_id})


def handle_disconnect(*args):
    get_engine().disconnect(_get_sid())


def handle_message(data):
    get_engine().handle_message(_get_sid(), data)


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers on ``namespace``.

    Race traffic is a single ``message`` event carrying ``{type, data}``.
    """
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('message', handle_message, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
