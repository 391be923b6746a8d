from __future__ import annotations

from dataclasses import dataclass

from .board import Board, Cell

# Rows, columns, diagonals. Order decides which line is reported when
# several are complete at once.
WIN_LINES: tuple[tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


@dataclass(frozen=True, slots=True)
class Win:
    symbol: Cell
    line: tuple[int, int, int]


def find_win(board: Board) -> Win | None:
    cells = board.cells
    for a, b, c in WIN_LINES:
        v = cells[a]
        if v is not Cell.EMPTY and v is cells[b] and v is cells[c]:
            return Win(symbol=v, line=(a, b, c))
    return None


def is_draw(board: Board) -> bool:
    if any(c is Cell.EMPTY for c in board.cells):
        return False
    return find_win(board) is None
