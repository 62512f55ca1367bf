from typing import Dict, FrozenSet, Optional, Set


class RoomRegistry:
    """Which live connections are attached to which race.

    A connection belongs to at most one race. Empty rooms are evicted as soon
    as their last member detaches; the Race row itself is untouched.
    """

    def __init__(self) -> None:
        self._members: Dict[int, Set[str]] = {}
        self._room_of: Dict[str, int] = {}

    def attach(self, sid: str, race_id: int) -> None:
        current = self._room_of.get(sid)
        if current == race_id:
            return
        if current is not None:
            self.detach(sid)
        self._members.setdefault(race_id, set()).add(sid)
        self._room_of[sid] = race_id

    def detach(self, sid: str) -> Optional[int]:
        """Remove ``sid`` from its room. Returns the race it left, if any."""
        race_id = self._room_of.pop(sid, None)
        if race_id is None:
            return None
        members = self._members.get(race_id)
        if members is not None:
            members.discard(sid)
            if not members:
                del self._members[race_id]
        return race_id

    def members_of(self, race_id: int) -> FrozenSet[str]:
        return frozenset(self._members.get(race_id, ()))

    def room_of(self, sid: str) -> Optional[int]:
        return self._room_of.get(sid)

    def has_room(self, race_id: int) -> bool:
        return race_id in self._members

    def __len__(self) -> int:
        return len(self._members)
