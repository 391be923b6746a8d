"""
Game session value and its transitions.

Every function here is pure: it takes a `Session` and returns a new one (or
the same object when the request is ignored). `GameEngine` owns the current
value and serializes calls into this module.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from .board import Board, Cell, InvalidMove, cell_at, with_move
from .outcome import Win, find_win, is_draw
from .oracle import AUTOMATED_SYMBOL


class Mode(str, Enum):
    NONE = "none"
    HUMAN_VS_HUMAN = "pvp"
    HUMAN_VS_AUTOMATED = "pve"


class StatusKind(str, Enum):
    IN_PROGRESS = "in_progress"
    WON = "won"
    DRAWN = "drawn"


@dataclass(frozen=True, slots=True)
class Status:
    kind: StatusKind = StatusKind.IN_PROGRESS
    win: Win | None = None

    @classmethod
    def won(cls, win: Win) -> Status:
        return cls(kind=StatusKind.WON, win=win)

    @classmethod
    def drawn(cls) -> Status:
        return cls(kind=StatusKind.DRAWN)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not StatusKind.IN_PROGRESS

    @property
    def winner(self) -> Cell | None:
        return self.win.symbol if self.win else None

    @property
    def line(self) -> tuple[int, ...]:
        return self.win.line if self.win else ()


@dataclass(frozen=True, slots=True)
class Session:
    mode: Mode = Mode.NONE
    board: Board = Board()
    active: Cell = Cell.X
    status: Status = Status()
    score_x: int = 0
    score_o: int = 0
    thinking: bool = False

    @property
    def scores(self) -> tuple[int, int]:
        return (self.score_x, self.score_o)


def _fresh(session: Session, mode: Mode) -> Session:
    return replace(session, mode=mode, board=Board(), active=Cell.X, status=Status(), thinking=False)


def start_game(session: Session, mode: Mode) -> Session:
    if mode is Mode.NONE:
        raise ValueError("start_game needs a playable mode")
    return _fresh(session, mode)


def restart(session: Session) -> Session:
    return _fresh(session, session.mode)


def return_to_menu(session: Session) -> Session:
    return replace(_fresh(session, Mode.NONE), score_x=0, score_o=0)


def set_thinking(session: Session, thinking: bool) -> Session:
    if session.thinking == thinking:
        return session
    return replace(session, thinking=thinking)


def is_automated_turn(session: Session) -> bool:
    return (
        session.mode is Mode.HUMAN_VS_AUTOMATED
        and session.status.kind is StatusKind.IN_PROGRESS
        and session.active is AUTOMATED_SYMBOL
    )


def accepts_human_move(session: Session, index: int) -> bool:
    if session.mode is Mode.NONE or session.status.is_terminal or session.thinking:
        return False
    if is_automated_turn(session):
        return False
    try:
        return cell_at(session.board, index) is Cell.EMPTY
    except InvalidMove:
        return False


def apply_move(session: Session, index: int, symbol: Cell) -> Session:
    """
    Place `symbol` at `index` and settle the outcome.

    Raises InvalidMove for an out-of-range or occupied cell. A win bumps the
    winner's score; otherwise the turn passes unless the board is full.
    """
    if session.status.is_terminal:
        raise InvalidMove("game is over")
    board = with_move(session.board, index, symbol)

    win = find_win(board)
    if win is not None:
        if win.symbol is Cell.X:
            return replace(session, board=board, status=Status.won(win), score_x=session.score_x + 1)
        return replace(session, board=board, status=Status.won(win), score_o=session.score_o + 1)

    if is_draw(board):
        return replace(session, board=board, status=Status.drawn())

    nxt = Cell.O if session.active is Cell.X else Cell.X
    return replace(session, board=board, active=nxt)


def submit_move(session: Session, index: int) -> Session:
    """Human move for the side to play; ignored (same object back) when not allowed."""
    if not accepts_human_move(session, index):
        return session
    return apply_move(session, index, session.active)


def status_text(session: Session) -> str:
    pve = session.mode is Mode.HUMAN_VS_AUTOMATED
    if session.mode is Mode.NONE:
        return "Choose a mode"

    winner = session.status.winner
    if winner is not None:
        if pve:
            return "You win!" if winner is Cell.X else "AI wins"
        return "Player 1 (X) wins" if winner is Cell.X else "Player 2 (O) wins"
    if session.status.kind is StatusKind.DRAWN:
        return "Draw!"
    if session.thinking:
        return "AI is thinking..."

    if pve:
        return "Your turn (X)" if session.active is Cell.X else "AI's turn (O)"
    return "Player 1's turn (X)" if session.active is Cell.X else "Player 2's turn (O)"
