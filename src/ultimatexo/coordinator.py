"""In-memory room table and the authoritative two-player session logic."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .errors import (
    AlreadyJoined,
    GameError,
    InternalError,
    InvalidRequest,
    InvalidRoom,
    NotAParticipant,
    RoleMismatch,
    RoomFull,
    RoomNotFound,
    WaitingForOpponent,
)
from .events import (
    GameEnded,
    GameSnapshot,
    GameStarted,
    JoinRoom,
    Leave,
    MoveAccepted,
    OpponentLeft,
    Rejected,
    RoleAssigned,
    StateUpdated,
    SubmitMove,
    WireModel,
)
from .game import PLAYERS, MetaGame, MoveResult, Player, apply_move

logger = logging.getLogger(__name__)


class Mailbox:
    """Outbound event queue for one connection.

    Posting never blocks; the transport drains the queue in its own task. A
    bounded mailbox that fills up is flagged as overflowed: its backlog is
    discarded and a ``None`` marker tells the transport to drop the socket.
    """

    def __init__(self, connection_id: str, maxsize: int = 0) -> None:
        self.connection_id = connection_id
        self.overflowed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize)

    def post(self, event: WireModel) -> bool:
        if self.overflowed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.overflowed = True
            self.drain()
            self._queue.put_nowait(None)
            return False
        return True

    async def get(self) -> Optional[WireModel]:
        return await self._queue.get()

    def drain(self) -> List[WireModel]:
        events: List[WireModel] = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    def __len__(self) -> int:
        return self._queue.qsize()


@dataclass
class Room:
    """One game table: a seat per role and the authoritative game."""

    code: str
    game: MetaGame = field(default_factory=MetaGame)
    seats: Dict[Player, Optional[str]] = field(
        default_factory=lambda: {role: None for role in PLAYERS}
    )
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    # Set once the room has been evicted from the table
    closed: bool = False

    def role_of(self, connection_id: str) -> Optional[Player]:
        for role, occupant in self.seats.items():
            if occupant == connection_id:
                return role
        return None

    def participants(self) -> List[str]:
        return [c for c in self.seats.values() if c is not None]

    def free_role(self) -> Optional[Player]:
        for role in PLAYERS:
            if self.seats[role] is None:
                return role
        return None

    def is_full(self) -> bool:
        return all(c is not None for c in self.seats.values())

    def is_empty(self) -> bool:
        return all(c is None for c in self.seats.values())

    @property
    def status(self) -> str:
        if self.game.over:
            return "over"
        if self.is_full():
            return "active"
        if self.is_empty():
            return "empty"
        return "waiting"


@dataclass(frozen=True)
class JoinResult:
    role: Player
    snapshot: Optional[GameSnapshot] = None


class SessionCoordinator:
    """Owns every live room and routes client intents into the board engine.

    The table lock only guards insertion and eviction of rooms; each room's
    own lock serializes its seats, its moves and the connection index entries
    pointing at it. The two are never held together: a room is resolved under
    the table lock, then locked on its own and checked for ``closed``.
    """

    def __init__(self, mailbox_size: int = 0) -> None:
        self._rooms: Dict[str, Room] = {}
        # connection id -> room code, kept in step with Room.seats
        self._memberships: Dict[str, str] = {}
        self._mailboxes: Dict[str, Mailbox] = {}
        self._mailbox_size = mailbox_size
        self._table_lock = asyncio.Lock()

    # ---- connections ----

    def connect(self, connection_id: str) -> Mailbox:
        mailbox = Mailbox(connection_id, self._mailbox_size)
        self._mailboxes[connection_id] = mailbox
        return mailbox

    async def disconnect(self, connection_id: str) -> None:
        await self.leave(connection_id)
        self._mailboxes.pop(connection_id, None)

    def reject(self, connection_id: str, error: GameError) -> None:
        self._post(connection_id, Rejected.of(error))

    # ---- queries ----

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def get_room(self, room_code: str) -> Optional[Room]:
        return self._rooms.get(room_code)

    def room_of(self, connection_id: str) -> Optional[str]:
        return self._memberships.get(connection_id)

    def describe_room(self, room_code: str) -> Dict[str, object]:
        room = self._rooms.get(room_code)
        if room is None or room.closed:
            raise RoomNotFound()
        return {
            "roomId": room.code,
            "status": room.status,
            "availableRoles": [r for r in PLAYERS if room.seats[r] is None],
            "players": [r for r in PLAYERS if room.seats[r] is not None],
        }

    # ---- intents ----

    async def dispatch(
        self, connection_id: str, intent: Union[JoinRoom, SubmitMove, Leave]
    ) -> None:
        """Handle one intent; failures are reported to the caller only."""
        try:
            if isinstance(intent, JoinRoom):
                await self.join_room(intent.room, connection_id)
            elif isinstance(intent, SubmitMove):
                await self.submit_move(
                    connection_id,
                    intent.room,
                    intent.board_index,
                    intent.cell_index,
                    intent.player,
                )
            elif isinstance(intent, Leave):
                await self.leave(connection_id)
            else:
                raise InvalidRequest()
        except GameError as exc:
            logger.debug("Rejected %r from %s: %s", intent, connection_id, exc.code)
            self.reject(connection_id, exc)
        except Exception:
            logger.exception(
                "Unexpected error handling %r from %s", intent, connection_id
            )
            self.reject(connection_id, InternalError())

    async def join_room(self, room_code: str, connection_id: str) -> JoinResult:
        if not isinstance(room_code, str) or not room_code.strip():
            raise InvalidRoom()

        while True:
            room = await self._resolve_room(room_code, connection_id)
            async with room.lock:
                if room.closed:
                    # Evicted between lookup and lock; resolve again
                    continue
                if connection_id in self._memberships:
                    raise AlreadyJoined()
                role = room.free_role()
                if role is None:
                    raise RoomFull()
                room.seats[role] = connection_id
                self._memberships[connection_id] = room_code
                logger.info(
                    "Connection %s seated as %s in room %s",
                    connection_id,
                    role,
                    room_code,
                )
                self._post(connection_id, RoleAssigned(role=role, room=room_code))

                snapshot: Optional[GameSnapshot] = None
                if room.is_full():
                    snapshot = GameSnapshot.of(room.game)
                    self._broadcast(room, GameStarted(snapshot=snapshot))
                    logger.info("Game started in room %s", room_code)
                return JoinResult(role=role, snapshot=snapshot)

    async def submit_move(
        self,
        connection_id: str,
        room_code: str,
        board_index: int,
        cell_index: int,
        claimed_player: str,
    ) -> MoveResult:
        room = self._rooms.get(room_code)
        if room is None:
            raise RoomNotFound()

        async with room.lock:
            if room.closed:
                raise RoomNotFound()
            role = room.role_of(connection_id)
            if role is None:
                raise NotAParticipant()
            if claimed_player != role:
                raise RoleMismatch()
            if not room.game.over and not room.is_full():
                raise WaitingForOpponent()

            # Work on a copy so a failure at any point leaves the room untouched
            candidate = room.game.clone()
            result = apply_move(candidate, board_index, cell_index, role)
            snapshot = GameSnapshot.of(candidate)
            room.game = candidate
            logger.debug(
                "Room %s: %s played board %d cell %d",
                room_code,
                role,
                board_index,
                cell_index,
            )

            if result.over:
                logger.info(
                    "Game over in room %s, winner: %s",
                    room_code,
                    result.winner or "none",
                )
                self._broadcast(room, GameEnded(winner=result.winner))
            self._broadcast(room, StateUpdated(snapshot=snapshot))
            self._post(
                connection_id,
                MoveAccepted(board_index=board_index, cell_index=cell_index),
            )
            return result

    async def leave(self, connection_id: str) -> None:
        room_code = self._memberships.get(connection_id)
        if room_code is None:
            return
        room = self._rooms.get(room_code)
        if room is None:
            self._memberships.pop(connection_id, None)
            return

        async with room.lock:
            if self._memberships.get(connection_id) != room_code:
                return
            del self._memberships[connection_id]
            role = room.role_of(connection_id)
            if role is not None:
                room.seats[role] = None
            logger.info("Connection %s left room %s", connection_id, room_code)
            evicted = room.is_empty()
            if evicted:
                room.closed = True
            else:
                self._broadcast(room, OpponentLeft())

        if evicted:
            async with self._table_lock:
                if self._rooms.get(room_code) is room:
                    del self._rooms[room_code]
                    logger.info("Room %s deleted (empty)", room_code)

    async def _resolve_room(self, room_code: str, connection_id: str) -> Room:
        """Return the live room for ``room_code``, creating it if needed."""
        async with self._table_lock:
            if connection_id in self._memberships:
                raise AlreadyJoined()
            room = self._rooms.get(room_code)
            if room is None or room.closed:
                room = Room(code=room_code)
                self._rooms[room_code] = room
                logger.info("Room %s created", room_code)
            return room

    # ---- delivery ----

    def _post(self, connection_id: str, event: WireModel) -> None:
        mailbox = self._mailboxes.get(connection_id)
        if mailbox is None:
            logger.debug(
                "Dropping %s for unknown connection %s", event.type, connection_id
            )
            return
        was_overflowed = mailbox.overflowed
        if not mailbox.post(event) and not was_overflowed:
            logger.warning(
                "Mailbox for %s overflowed; dropping connection", connection_id
            )

    def _broadcast(self, room: Room, event: WireModel) -> None:
        for connection_id in room.participants():
            self._post(connection_id, event)
