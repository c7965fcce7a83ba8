"""Wire models: inbound intents, outbound events and the snapshot shape."""

from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .errors import GameError
from .game import MetaGame, Player


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


# ---------- Snapshot ----------


class SubBoardSnapshot(WireModel):
    cells: List[Literal["", "X", "O"]]
    won: bool
    winner: Optional[Player] = None


class LastMove(WireModel):
    player: Player
    board_index: int = Field(alias="boardIndex")
    cell_index: int = Field(alias="cellIndex")


class GameSnapshot(WireModel):
    boards: List[SubBoardSnapshot]
    turn: Player
    allowed_boards: Union[List[int], Literal["all"]] = Field(alias="allowedBoards")
    over: bool
    winner: Optional[Player] = None
    last_move: Optional[LastMove] = Field(default=None, alias="lastMove")

    @classmethod
    def of(cls, game: MetaGame) -> "GameSnapshot":
        return cls.model_validate(game.snapshot())


# ---------- Inbound intents ----------


class JoinRoom(WireModel):
    type: Literal["joinRoom"] = "joinRoom"
    room: str


class SubmitMove(WireModel):
    type: Literal["submitMove"] = "submitMove"
    room: str
    # JSON booleans and numeric strings are not indices
    board_index: int = Field(alias="boardIndex", strict=True)
    cell_index: int = Field(alias="cellIndex", strict=True)
    player: str


class Leave(WireModel):
    type: Literal["leave"] = "leave"


Intent = Annotated[Union[JoinRoom, SubmitMove, Leave], Field(discriminator="type")]
INTENT_ADAPTER: TypeAdapter = TypeAdapter(Intent)


def parse_intent(raw: Union[str, bytes]) -> Union[JoinRoom, SubmitMove, Leave]:
    """Decode one JSON message; raises ``pydantic.ValidationError``."""
    return INTENT_ADAPTER.validate_json(raw)


# ---------- Outbound events ----------


class RoleAssigned(WireModel):
    type: Literal["roleAssigned"] = "roleAssigned"
    role: Player
    room: str


class GameStarted(WireModel):
    type: Literal["gameStarted"] = "gameStarted"
    snapshot: GameSnapshot


class StateUpdated(WireModel):
    type: Literal["stateUpdated"] = "stateUpdated"
    snapshot: GameSnapshot


class GameEnded(WireModel):
    type: Literal["gameOver"] = "gameOver"
    winner: Optional[Player] = None


class OpponentLeft(WireModel):
    type: Literal["opponentLeft"] = "opponentLeft"


class Rejected(WireModel):
    type: Literal["rejected"] = "rejected"
    reason: str
    message: str

    @classmethod
    def of(cls, error: GameError) -> "Rejected":
        return cls(reason=error.code, message=error.message)


class MoveAccepted(WireModel):
    type: Literal["moveAccepted"] = "moveAccepted"
    board_index: int = Field(alias="boardIndex")
    cell_index: int = Field(alias="cellIndex")


Event = Annotated[
    Union[
        RoleAssigned,
        GameStarted,
        StateUpdated,
        GameEnded,
        OpponentLeft,
        Rejected,
        MoveAccepted,
    ],
    Field(discriminator="type"),
]
EVENT_ADAPTER: TypeAdapter = TypeAdapter(Event)
