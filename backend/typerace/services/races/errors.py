"""Race coordination errors.

Every error carries the text that is sent back to the originating connection
as an ``error`` message. None of them are ever broadcast to a room.
"""


class RaceError(Exception):
    """Base class for errors reported to a single connection."""

    client_message = 'Request failed'

    def __init__(self, message=None):
        self.client_message = message or self.client_message
        super().__init__(self.client_message)


class RaceUnavailable(RaceError):
    """Race is missing or no longer accepting players."""

    client_message = 'Race not available for joining'


class RaceFull(RaceError):
    """Race already holds max_players participants."""

    client_message = 'Race is full'


class MalformedMessage(RaceError):
    """Payload could not be parsed or names an unknown event."""

    client_message = 'Invalid message format'


class InternalFailure(RaceError):
    client_message = 'Internal server error'


class PassageNotFound(Exception):
    """No passage exists for the requested difficulty."""

    def __init__(self, difficulty):
        self.difficulty = difficulty
        super().__init__(f"No text passages found for difficulty: {difficulty}")
