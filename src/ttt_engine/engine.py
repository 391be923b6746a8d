from __future__ import annotations

import logging
import threading
from typing import Callable

from .board import Board, InvalidMove, empty_indices
from .events import Actor, AudioSink, Notification, NullAudio, SoundEvent
from .oracle import AUTOMATED_SYMBOL, MoveOracle
from .session import (
    Mode,
    Session,
    StatusKind,
    apply_move,
    is_automated_turn,
    restart,
    return_to_menu,
    set_thinking,
    start_game,
    submit_move,
)

logger = logging.getLogger(__name__)

Job = Callable[[], None]
Dispatch = Callable[[Job], None]
Observer = Callable[[Session], None]


def thread_dispatch(job: Job) -> None:
    threading.Thread(target=job, name="ttt-oracle", daemon=True).start()


def inline_dispatch(job: Job) -> None:
    job()


class GameEngine:
    """
    Owns the live `Session` and applies transitions one at a time.

    The automated player's move is resolved through `dispatch` (a background
    thread by default). Each accepted transition bumps a turn token; an oracle
    result whose token no longer matches is dropped on arrival.
    """

    def __init__(
        self,
        oracle: MoveOracle | None = None,
        *,
        audio: AudioSink | None = None,
        dispatch: Dispatch | None = None,
    ) -> None:
        self._oracle = oracle if oracle is not None else MoveOracle()
        self._audio: AudioSink = audio if audio is not None else NullAudio()
        self._dispatch: Dispatch = dispatch if dispatch is not None else thread_dispatch
        self._lock = threading.RLock()
        self._changed = threading.Condition(self._lock)
        self._session = Session()
        self._token = 0
        self._observers: list[Observer] = []

    @property
    def session(self) -> Session:
        with self._lock:
            return self._session

    @property
    def thinking(self) -> bool:
        return self.session.thinking

    @property
    def token(self) -> int:
        with self._lock:
            return self._token

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    # -- commands -----------------------------------------------------------

    def start_game(self, mode: Mode) -> None:
        with self._lock:
            self._commit(start_game(self._session, mode), advance=True)
            self._sound(Notification(SoundEvent.UI_INTERACTION))
            self._maybe_dispatch()

    def restart(self) -> None:
        with self._lock:
            self._commit(restart(self._session), advance=True)
            self._sound(Notification(SoundEvent.UI_INTERACTION))
            self._maybe_dispatch()

    def return_to_menu(self) -> None:
        with self._lock:
            self._commit(return_to_menu(self._session), advance=True)
            self._sound(Notification(SoundEvent.UI_INTERACTION))

    def submit_move(self, index: int) -> bool:
        """Apply a human move; returns False when the request was ignored."""
        with self._lock:
            before = self._session
            after = submit_move(before, index)
            if after is before:
                logger.debug("ignored move %r (status=%s, thinking=%s)", index, before.status.kind.value, before.thinking)
                return False
            logger.debug("human played %s at %d", before.active.value, index)
            self._after_move(after, Actor.HUMAN)
            return True

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no oracle call is outstanding; False on timeout."""
        with self._changed:
            return self._changed.wait_for(lambda: not self._session.thinking, timeout=timeout)

    def close(self) -> None:
        self._oracle.close()

    # -- internals ----------------------------------------------------------

    def _after_move(self, after: Session, actor: Actor) -> None:
        self._commit(after, advance=True)
        self._announce(after, actor)
        self._maybe_dispatch()

    def _maybe_dispatch(self) -> None:
        s = self._session
        if s.thinking or not is_automated_turn(s):
            return

        token = self._token
        board = s.board
        self._commit(set_thinking(s, True), advance=False)

        def job() -> None:
            move: int | None
            try:
                move = self._oracle.resolve_move(board)
            except Exception:
                logger.exception("move oracle raised; using a random move")
                move = None
            self._complete(token, board, move)

        self._dispatch(job)

    def _complete(self, token: int, board: Board, move: int | None) -> None:
        with self._lock:
            if token != self._token:
                logger.debug("discarding stale oracle move %r (token %d, now %d)", move, token, self._token)
                return

            s = set_thinking(self._session, False)
            if move == -1:
                self._commit(s, advance=False)
                return

            legal = empty_indices(board)
            if move not in legal:
                move = self._oracle.random_move(legal)
                if move == -1:
                    self._commit(s, advance=False)
                    return

            try:
                after = apply_move(s, move, AUTOMATED_SYMBOL)
            except InvalidMove:
                logger.exception("oracle move %d could not be applied", move)
                self._commit(s, advance=False)
                return

            logger.debug("automated player played O at %d", move)
            self._after_move(after, Actor.AUTOMATED)

    def _commit(self, session: Session, *, advance: bool) -> None:
        self._session = session
        if advance:
            self._token += 1
        self._changed.notify_all()
        for observer in list(self._observers):
            try:
                observer(session)
            except Exception:
                logger.exception("session observer failed")

    def _announce(self, after: Session, actor: Actor) -> None:
        self._sound(Notification(SoundEvent.MOVE_MADE, actor))
        status = after.status
        if status.kind is StatusKind.WON:
            lost = after.mode is Mode.HUMAN_VS_AUTOMATED and status.winner is AUTOMATED_SYMBOL
            self._sound(Notification(SoundEvent.LOSE if lost else SoundEvent.WIN))
        elif status.kind is StatusKind.DRAWN:
            self._sound(Notification(SoundEvent.DRAW))

    def _sound(self, note: Notification) -> None:
        try:
            self._audio.notify(note)
        except Exception:
            logger.exception("audio sink failed on %s", note.event.value)
