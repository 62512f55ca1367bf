"""Wire schemas for the race protocol.

Socket messages travel as ``{"type": ..., "data": {...}}`` on the ``message``
event. Each event name is its own model; inbound payloads are parsed through a
discriminated union so an unknown ``type`` is rejected up front.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from typerace.services.races.errors import MalformedMessage


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode='json')


# ---- Snapshots ----

class RaceOut(WireModel):
    id: int
    name: str
    text_passage: str
    max_players: int
    difficulty: str
    time_limit: int
    status: str
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class ParticipantOut(WireModel):
    id: int
    race_id: int
    player_id: str
    player_name: str
    progress: int
    wpm: int
    accuracy: int
    errors: int
    finished: bool
    finished_at: Optional[datetime] = None
    rank: Optional[int] = None


class PassageOut(WireModel):
    id: int
    content: str
    difficulty: str
    length: int


# ---- HTTP bodies ----

class CreateRaceRequest(WireModel):
    name: str = Field(min_length=1, max_length=128)
    max_players: int = Field(default=4, ge=2)
    difficulty: str = 'medium'
    time_limit: int = Field(default=180, ge=1)


# ---- Inbound (client -> server) ----

class JoinRaceData(WireModel):
    race_id: int
    player_name: str = Field(min_length=1, max_length=64)


class LeaveRaceData(WireModel):
    race_id: int


class TypingUpdateData(WireModel):
    race_id: int
    progress: int
    wpm: int
    accuracy: int
    errors: int


class JoinRace(WireModel):
    type: Literal['join_race']
    data: JoinRaceData


class LeaveRace(WireModel):
    type: Literal['leave_race']
    data: LeaveRaceData


class TypingUpdate(WireModel):
    type: Literal['typing_update']
    data: TypingUpdateData


InboundMessage = Annotated[Union[JoinRace, LeaveRace, TypingUpdate], Field(discriminator='type')]

_inbound_adapter = TypeAdapter(InboundMessage)


def parse_inbound(payload) -> Union[JoinRace, LeaveRace, TypingUpdate]:
    """Parse a raw socket payload (dict or JSON text) into an inbound message."""
    try:
        if isinstance(payload, (str, bytes)):
            return _inbound_adapter.validate_json(payload)
        return _inbound_adapter.validate_python(payload)
    except ValidationError as exc:
        raise MalformedMessage() from exc


# ---- Outbound (server -> client) ----

class RaceUpdateData(WireModel):
    race: RaceOut
    participants: List[ParticipantOut]


class RaceStartedData(WireModel):
    race_id: int


class RaceFinishedData(WireModel):
    race_id: int
    results: List[ParticipantOut]


class PlayerJoinedData(WireModel):
    race_id: int
    participant: ParticipantOut


class PlayerLeftData(WireModel):
    race_id: int
    player_id: str


class ErrorData(WireModel):
    message: str


class RaceUpdate(WireModel):
    type: Literal['race_update'] = 'race_update'
    data: RaceUpdateData


class RaceStarted(WireModel):
    type: Literal['race_started'] = 'race_started'
    data: RaceStartedData


class RaceFinished(WireModel):
    type: Literal['race_finished'] = 'race_finished'
    data: RaceFinishedData


class PlayerJoined(WireModel):
    type: Literal['player_joined'] = 'player_joined'
    data: PlayerJoinedData


class PlayerLeft(WireModel):
    type: Literal['player_left'] = 'player_left'
    data: PlayerLeftData


class ErrorMessage(WireModel):
    type: Literal['error'] = 'error'
    data: ErrorData


OutboundMessage = Union[RaceUpdate, RaceStarted, RaceFinished, PlayerJoined, PlayerLeft, ErrorMessage]


def race_update(race, participants) -> RaceUpdate:
    return RaceUpdate(data=RaceUpdateData(
        race=RaceOut.model_validate(race),
        participants=[ParticipantOut.model_validate(p) for p in participants],
    ))


def race_started(race_id: int) -> RaceStarted:
    return RaceStarted(data=RaceStartedData(race_id=race_id))


def race_finished(race_id: int, results) -> RaceFinished:
    return RaceFinished(data=RaceFinishedData(
        race_id=race_id,
        results=[ParticipantOut.model_validate(p) for p in results],
    ))


def player_joined(race_id: int, participant) -> PlayerJoined:
    return PlayerJoined(data=PlayerJoinedData(
        race_id=race_id,
        participant=ParticipantOut.model_validate(participant),
    ))


def player_left(race_id: int, player_id: str) -> PlayerLeft:
    return PlayerLeft(data=PlayerLeftData(race_id=race_id, player_id=player_id))


def error_message(message: str) -> ErrorMessage:
    return ErrorMessage(data=ErrorData(message=message))
