"""Core rules for UltimateXO: sub-boards, the meta-board and move application."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from .errors import (
    BoardNotAllowed,
    BoardUnavailable,
    CellOccupied,
    GameOver,
    InvalidMove,
    NotYourTurn,
)

Player = str  # "X" or "O"

PLAYERS: Tuple[Player, Player] = ("X", "O")
EMPTY = " "
ALL_BOARDS: FrozenSet[int] = frozenset(range(9))

WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


def opponent(player: Player) -> Player:
    return "O" if player == "X" else "X"


def check_winner(cells: Sequence[Optional[str]]) -> Optional[Player]:
    """Return the player owning one of the eight lines in ``cells``, if any."""

    for a, b, c in WINNING_LINES:
        v = cells[a]
        if v in PLAYERS and v == cells[b] == cells[c]:
            return v
    return None


def _valid_index(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 8


# ---------- Sub-board ----------


@dataclass
class SubBoard:
    # 'X', 'O', or ' ' (space) for empty
    cells: List[str] = field(default_factory=lambda: [EMPTY] * 9)
    won: bool = False
    winner: Optional[Player] = None

    def is_full(self) -> bool:
        return all(c != EMPTY for c in self.cells)

    def is_open(self) -> bool:
        """True when the board still accepts moves."""
        return not self.won and not self.is_full()

    def place(self, player: Player, idx: int) -> bool:
        """Write ``player`` into ``idx`` and report whether it captured the board."""
        if self.won:
            raise BoardUnavailable()
        if self.cells[idx] != EMPTY:
            raise CellOccupied()
        self.cells[idx] = player
        if check_winner(self.cells) == player:
            self.won = True
            self.winner = player
        return self.won

    def to_dict(self) -> Dict[str, object]:
        return {
            "cells": [c if c in PLAYERS else "" for c in self.cells],
            "won": self.won,
            "winner": self.winner,
        }


# ---------- Game ----------


@dataclass(frozen=True)
class Move:
    player: Player
    board_index: int
    cell_index: int


@dataclass(frozen=True)
class MoveResult:
    """Outcome of an accepted move."""

    move: Move
    captured: bool
    over: bool
    winner: Optional[Player]

    @property
    def drawn(self) -> bool:
        return self.over and self.winner is None


@dataclass
class MetaGame:
    boards: List[SubBoard] = field(
        default_factory=lambda: [SubBoard() for _ in range(9)]
    )
    turn: Player = "X"
    # None means "unrestricted": any open board may be played
    allowed_boards: Optional[FrozenSet[int]] = ALL_BOARDS
    over: bool = False
    winner: Optional[Player] = None
    last_move: Optional[Move] = None

    def playable_boards(self) -> FrozenSet[int]:
        """Concrete set of boards the side to move may play on."""
        if self.over:
            return frozenset()
        candidates = ALL_BOARDS if self.allowed_boards is None else self.allowed_boards
        return frozenset(i for i in candidates if self.boards[i].is_open())

    def meta_state(self) -> List[Optional[Player]]:
        return [b.winner for b in self.boards]

    def move_count(self) -> int:
        return sum(1 for b in self.boards for c in b.cells if c != EMPTY)

    def clone(self) -> "MetaGame":
        return MetaGame(
            boards=[
                SubBoard(cells=b.cells.copy(), won=b.won, winner=b.winner)
                for b in self.boards
            ],
            turn=self.turn,
            allowed_boards=self.allowed_boards,
            over=self.over,
            winner=self.winner,
            last_move=self.last_move,
        )

    def snapshot(self) -> Dict[str, object]:
        """Self-contained serialization sent to participants."""
        allowed: object
        if self.over:
            # Nothing is playable once the game has ended
            allowed = []
        elif self.allowed_boards is None:
            allowed = "all"
        else:
            allowed = sorted(self.allowed_boards)
        last_move = None
        if self.last_move is not None:
            last_move = {
                "player": self.last_move.player,
                "boardIndex": self.last_move.board_index,
                "cellIndex": self.last_move.cell_index,
            }
        return {
            "boards": [b.to_dict() for b in self.boards],
            "turn": self.turn,
            "allowedBoards": allowed,
            "over": self.over,
            "winner": self.winner,
            "lastMove": last_move,
        }


def validate_move(
    game: MetaGame, board_index: int, cell_index: int, player: Player
) -> None:
    """Raise the first violated precondition for the move, if any."""
    if game.over:
        raise GameOver()
    if not _valid_index(board_index) or not _valid_index(cell_index):
        raise InvalidMove()
    if game.turn != player:
        raise NotYourTurn()
    board = game.boards[board_index]
    if board.won:
        raise BoardUnavailable()
    if board.cells[cell_index] != EMPTY:
        raise CellOccupied()
    if game.allowed_boards is not None and board_index not in game.allowed_boards:
        raise BoardNotAllowed()


def apply_move(
    game: MetaGame, board_index: int, cell_index: int, player: Player
) -> MoveResult:
    """Validate and apply a move in place.

    Validation completes before the first write, so a rejected move leaves
    ``game`` untouched. The forced board is recomputed from scratch after
    every accepted move: the board mirrored by ``cell_index`` if it is still
    open, otherwise no restriction.
    """
    validate_move(game, board_index, cell_index, player)

    captured = game.boards[board_index].place(player, cell_index)
    game.last_move = Move(player, board_index, cell_index)

    target = game.boards[cell_index]
    game.allowed_boards = frozenset((cell_index,)) if target.is_open() else None

    if check_winner(game.meta_state()) == player:
        game.over = True
        game.winner = player
    else:
        game.turn = opponent(player)
        if not any(b.is_open() for b in game.boards):
            # Surface exhausted without a meta line: draw
            game.over = True
            game.winner = None

    return MoveResult(
        move=game.last_move, captured=captured, over=game.over, winner=game.winner
    )
