"""Board representation and terminal-state detection for 3x3 tic-tac-toe."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

Mark = str  # "X", "O", or EMPTY
Move = Tuple[int, int]  # (row, col)

X: Mark = "X"
O: Mark = "O"
EMPTY: Mark = "-"
MARKS: Tuple[Mark, ...] = (X, O, EMPTY)

SIZE = 3

Grid = Sequence[Sequence[Mark]]


class GameError(Exception):
    """Base class for errors raised by the game engine."""


class InvalidBoard(GameError, ValueError):
    """A board snapshot that cannot be read as a 3x3 grid of marks."""


class IllegalMove(GameError, ValueError):
    """A move on an occupied cell, off the board, or out of turn."""


class InvalidState(GameError, RuntimeError):
    """The engine or session was driven into a state it should never reach."""


def other(mark: Mark) -> Mark:
    if mark == X:
        return O
    if mark == O:
        return X
    raise ValueError(f"No opponent for mark {mark!r}")


# ---------- Board ----------


def _empty_cells() -> Tuple[Tuple[Mark, ...], ...]:
    return tuple(tuple(EMPTY for _ in range(SIZE)) for _ in range(SIZE))


@dataclass(frozen=True)
class Board:
    """Immutable snapshot of the grid, read fresh for every turn."""

    cells: Tuple[Tuple[Mark, ...], ...] = field(default_factory=_empty_cells)

    def __post_init__(self) -> None:
        if len(self.cells) != SIZE or any(len(row) != SIZE for row in self.cells):
            raise InvalidBoard("Board must be a 3x3 grid")
        for row in self.cells:
            for cell in row:
                if cell not in MARKS:
                    raise InvalidBoard(f"Unreadable cell value {cell!r}")

    @classmethod
    def empty(cls) -> "Board":
        return cls()

    @classmethod
    def from_rows(cls, rows: Grid) -> "Board":
        try:
            cells = tuple(tuple(row) for row in rows)
        except TypeError as exc:
            raise InvalidBoard("Board rows must be sequences of marks") from exc
        return cls(cells=cells)

    def __getitem__(self, move: Move) -> Mark:
        row, col = move
        return self.cells[row][col]

    def empty_cells(self) -> List[Move]:
        """Empty coordinates in row-major order."""
        return [
            (i, j)
            for i in range(SIZE)
            for j in range(SIZE)
            if self.cells[i][j] == EMPTY
        ]

    def is_full(self) -> bool:
        return all(c != EMPTY for row in self.cells for c in row)

    def count(self, mark: Mark) -> int:
        return sum(row.count(mark) for row in self.cells)

    def place(self, mark: Mark, row: int, col: int) -> "Board":
        if mark not in (X, O):
            raise ValueError(f"Cannot place mark {mark!r}")
        if not (0 <= row < SIZE and 0 <= col < SIZE):
            raise IllegalMove("Move is off the board")
        if self.cells[row][col] != EMPTY:
            raise IllegalMove("Cell already occupied")
        grid = self.to_grid()
        grid[row][col] = mark
        return Board.from_rows(grid)

    def to_grid(self) -> List[List[Mark]]:
        """Mutable copy for in-place search."""
        return [list(row) for row in self.cells]

    def __str__(self) -> str:
        return "\n".join("".join(row) for row in self.cells)


# ---------- Outcome ----------


class Status(str, Enum):
    WIN = "win"
    TIE = "tie"
    ONGOING = "ongoing"


@dataclass(frozen=True)
class GameOutcome:
    status: Status
    winner: Optional[Mark] = None

    @classmethod
    def win(cls, mark: Mark) -> "GameOutcome":
        return cls(Status.WIN, mark)

    @classmethod
    def tie(cls) -> "GameOutcome":
        return cls(Status.TIE)

    @classmethod
    def ongoing(cls) -> "GameOutcome":
        return cls(Status.ONGOING)

    @property
    def is_terminal(self) -> bool:
        return self.status is not Status.ONGOING


_ONGOING = GameOutcome.ongoing()
_TIE = GameOutcome.tie()


def determine_outcome(board: Union[Board, Grid]) -> GameOutcome:
    """Return the outcome of ``board``.

    Lines are checked rows first, then columns, then the main diagonal and
    finally the anti-diagonal; the first complete line decides the winner.
    """
    b = board.cells if isinstance(board, Board) else board

    # horizontal
    for i in range(SIZE):
        v = b[i][0]
        if v != EMPTY and v == b[i][1] == b[i][2]:
            return GameOutcome.win(v)

    # vertical
    for i in range(SIZE):
        v = b[0][i]
        if v != EMPTY and v == b[1][i] == b[2][i]:
            return GameOutcome.win(v)

    # diagonals
    v = b[1][1]
    if v != EMPTY:
        if b[0][0] == v == b[2][2]:
            return GameOutcome.win(v)
        if b[2][0] == v == b[0][2]:
            return GameOutcome.win(v)

    for row in b:
        for cell in row:
            if cell == EMPTY:
                return _ONGOING
    return _TIE
