from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

SIZE = 9


class InvalidMove(ValueError):
    """Index out of range or cell already occupied."""


class Cell(str, Enum):
    EMPTY = "EMPTY"
    X = "X"
    O = "O"

    @property
    def glyph(self) -> str:
        return " " if self is Cell.EMPTY else self.value


@dataclass(frozen=True, slots=True)
class Board:
    """
    Row-major 3x3 snapshot, indices 0..8.

    Boards are never mutated; `with_move` returns a new one so older snapshots
    stay valid.
    """

    cells: tuple[Cell, ...] = (Cell.EMPTY,) * SIZE

    def __post_init__(self) -> None:
        # Cell(...) raises ValueError for anything but EMPTY/X/O.
        cells = tuple(Cell(c) for c in self.cells)
        if len(cells) != SIZE:
            raise ValueError(f"board must have {SIZE} cells, got {len(cells)}")
        object.__setattr__(self, "cells", cells)

    @classmethod
    def from_cells(cls, cells: Iterable[Cell | str]) -> Board:
        out: list[Cell] = []
        for c in cells:
            if isinstance(c, Cell):
                out.append(c)
            elif c in ("", " ", ".", "EMPTY"):
                out.append(Cell.EMPTY)
            else:
                out.append(Cell(c))
        return cls(tuple(out))

    @classmethod
    def from_string(cls, s: str) -> Board:
        """Parse e.g. "XO.X....O" ('.', ' ' or '-' for empty)."""
        return cls.from_cells("" if ch in ".-" else ch for ch in s.replace("\n", ""))

    def __getitem__(self, index: int) -> Cell:
        return cell_at(self, index)

    def to_wire(self) -> list[str]:
        return [c.value for c in self.cells]


def _check_index(index: int) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or not (0 <= index < SIZE):
        raise InvalidMove(f"index out of range: {index!r}")


def cell_at(board: Board, index: int) -> Cell:
    _check_index(index)
    return board.cells[index]


def with_move(board: Board, index: int, symbol: Cell) -> Board:
    if symbol is Cell.EMPTY:
        raise ValueError("symbol must be X or O")
    _check_index(index)
    if board.cells[index] is not Cell.EMPTY:
        raise InvalidMove(f"cell {index} is occupied by {board.cells[index].value}")
    cells = list(board.cells)
    cells[index] = symbol
    return Board(tuple(cells))


def empty_indices(board: Board) -> list[int]:
    return [i for i, c in enumerate(board.cells) if c is Cell.EMPTY]


def render(board: Board, highlight: Iterable[int] = ()) -> str:
    """ASCII grid; empty cells show their index, highlighted cells are bracketed."""
    marked = set(highlight)
    rows = []
    for r in range(3):
        parts = []
        for c in range(3):
            i = 3 * r + c
            cell = board.cells[i]
            text = str(i) if cell is Cell.EMPTY else cell.value
            parts.append(f"[{text}]" if i in marked else f" {text} ")
        rows.append("|".join(parts))
    return "\n---+---+---\n".join(rows)
