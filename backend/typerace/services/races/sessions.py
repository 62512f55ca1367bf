import random
import string
from dataclasses import dataclass
from typing import Dict, Optional


def generate_player_id(length: int = 13) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return ''.join(random.choices(alphabet, k=length))


@dataclass
class ConnectionSession:
    """Ephemeral identity of one live connection. Never persisted."""
    sid: str
    player_id: str
    race_id: Optional[int] = None


class SessionTable:
    """Connection sessions keyed by Socket.IO sid."""

    def __init__(self) -> None:
        self._sessions: Dict[str, ConnectionSession] = {}

    def open(self, sid: str) -> ConnectionSession:
        session = self._sessions.get(sid)
        if session is None:
            session = ConnectionSession(sid=sid, player_id=generate_player_id())
            self._sessions[sid] = session
        return session

    def get(self, sid: str) -> Optional[ConnectionSession]:
        return self._sessions.get(sid)

    def close(self, sid: str) -> Optional[ConnectionSession]:
        return self._sessions.pop(sid, None)

    def __contains__(self, sid: str) -> bool:
        return sid in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
