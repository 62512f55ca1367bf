"""Room fan-out over Socket.IO.

Delivery is best-effort and unordered across members: a failed send is logged
and the loop moves on. Members the registry still lists but the socket server
no longer considers connected are pruned on the way. When an ``on_stale``
hook is given it owns that cleanup, otherwise the member is detached and its
session closed here.
"""
import logging
from typing import Callable, Optional

from .registry import RoomRegistry
from .sessions import SessionTable


logger = logging.getLogger(__name__)

MESSAGE_EVENT = 'message'


class SocketIOTransport:
    """Sends wire dicts to single sids through a Flask-SocketIO instance."""

    def __init__(self, socketio, namespace: str = '/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def is_open(self, sid: str) -> bool:
        server = getattr(self.socketio, 'server', None)
        if server is None:
            return False
        return server.manager.is_connected(sid, self.namespace)

    def send(self, sid: str, payload: dict) -> None:
        self.socketio.emit(MESSAGE_EVENT, payload, to=sid, namespace=self.namespace)


class Broadcaster:
    def __init__(
        self,
        registry: RoomRegistry,
        sessions: SessionTable,
        transport,
        on_stale: Optional[Callable[[int, str], None]] = None,
    ):
        self.registry = registry
        self.sessions = sessions
        self.transport = transport
        self.on_stale = on_stale

    def send_to(self, sid: str, message) -> bool:
        """Deliver one message to one connection. Returns False on failure."""
        try:
            self.transport.send(sid, message.to_wire())
            return True
        except Exception:
            logger.exception(f"[send-failed] sid={sid} type={message.type}")
            return False

    def broadcast(self, race_id: int, message, exclude: Optional[str] = None) -> int:
        """Send ``message`` to every open member of ``race_id`` but ``exclude``.

        Returns the number of connections the message was handed to.
        """
        payload = message.to_wire()
        sent = 0
        for sid in self.registry.members_of(race_id):
            if sid == exclude:
                continue
            if not self.transport.is_open(sid):
                self._prune(race_id, sid)
                continue
            try:
                self.transport.send(sid, payload)
                sent += 1
            except Exception:
                logger.exception(f"[send-failed] race={race_id} sid={sid} type={message.type}")
        logger.debug(f"[broadcast] race={race_id} type={message.type} sent={sent}")
        return sent

    def _prune(self, race_id: int, sid: str) -> None:
        logger.info(f"[stale-connection] race={race_id} sid={sid} removed")
        if self.on_stale is not None:
            self.on_stale(race_id, sid)
            return
        self.registry.detach(sid)
        self.sessions.close(sid)
