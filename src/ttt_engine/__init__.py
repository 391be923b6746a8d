from __future__ import annotations

__all__ = [
    "Board",
    "Cell",
    "GameEngine",
    "InvalidMove",
    "Mode",
    "MoveOracle",
    "OracleFailure",
    "Session",
    "Status",
    "StatusKind",
    "Win",
    "find_win",
    "is_draw",
]

from .board import Board, Cell, InvalidMove
from .engine import GameEngine
from .oracle import MoveOracle, OracleFailure
from .outcome import Win, find_win, is_draw
from .session import Mode, Session, Status, StatusKind
