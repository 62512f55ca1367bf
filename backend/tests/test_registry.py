from typerace.services.races.registry import RoomRegistry
from typerace.services.races.sessions import SessionTable


def test_attach_and_members():
    registry = RoomRegistry()
    registry.attach('a', 1)
    registry.attach('b', 1)
    registry.attach('c', 2)
    assert registry.members_of(1) == frozenset({'a', 'b'})
    assert registry.members_of(2) == frozenset({'c'})
    assert registry.members_of(3) == frozenset()


def test_connection_belongs_to_one_room():
    registry = RoomRegistry()
    registry.attach('a', 1)
    registry.attach('a', 2)
    assert registry.room_of('a') == 2
    assert registry.members_of(1) == frozenset()
    assert not registry.has_room(1)


def test_detach_unattached_is_noop():
    registry = RoomRegistry()
    assert registry.detach('ghost') is None
    assert len(registry) == 0


def test_last_member_evicts_room():
    registry = RoomRegistry()
    registry.attach('a', 7)
    registry.attach('b', 7)
    assert registry.detach('a') == 7
    assert registry.has_room(7)
    registry.detach('b')
    assert not registry.has_room(7)
    assert len(registry) == 0


def test_sessions_get_stable_player_ids():
    sessions = SessionTable()
    first = sessions.open('sid-1')
    assert sessions.open('sid-1') is first
    other = sessions.open('sid-2')
    assert first.player_id != other.player_id
    assert first.race_id is None
    assert sessions.close('sid-1') is first
    assert 'sid-1' not in sessions
    assert sessions.close('sid-1') is None
