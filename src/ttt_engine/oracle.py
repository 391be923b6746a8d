from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from .board import Board, Cell, empty_indices

logger = logging.getLogger(__name__)

AUTOMATED_SYMBOL = Cell.O
HUMAN_SYMBOL = Cell.X


class OracleFailure(RuntimeError):
    """The remote backend could not produce a usable move."""


@runtime_checkable
class MoveBackend(Protocol):
    """
    Remote move recommender.

    Backends return whatever the remote side answered; validation happens in
    `MoveOracle`. Any exception raised here is treated as an oracle failure.
    """

    name: str

    def suggest_move(self, board: Board, legal_moves: list[int]) -> Any: ...


def describe_board(board: Board) -> list[dict[str, Any]]:
    return [{"index": i, "value": c.value} for i, c in enumerate(board.cells)]


def build_prompt(board: Board, legal_moves: list[int]) -> str:
    return (
        f"You are an expert Tic Tac Toe player playing as '{AUTOMATED_SYMBOL.value}'.\n"
        f"The opponent is '{HUMAN_SYMBOL.value}'.\n"
        "Cells are indexed 0-8, row by row. 'EMPTY' means the cell is available.\n\n"
        f"board_json={json.dumps(describe_board(board), separators=(',', ':'))}\n"
        f"legal_moves_json={json.dumps(legal_moves)}\n\n"
        f"If you can win this turn, take the winning cell. Otherwise block '{HUMAN_SYMBOL.value}' "
        "from winning on their next turn.\n"
        'Output ONLY a JSON object: {"move": <index>}\n'
        "The move must be one of legal_moves. Do not explain.\n"
    )


def validate_move(raw: Any, legal_moves: list[int]) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise OracleFailure(f"move is not an integer: {raw!r}")
    if raw not in legal_moves:
        raise OracleFailure(f"move {raw} is not an empty cell")
    return raw


@dataclass(slots=True)
class MoveOracle:
    """
    Picks the automated player's (O) move.

    Asks `backend` when one is configured and falls back to a uniform random
    empty cell on any failure, so `resolve_move` always returns a legal index
    (or -1 when the board is full).
    """

    backend: MoveBackend | None = None
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def seeded(cls, seed: int | None, backend: MoveBackend | None = None) -> MoveOracle:
        return cls(backend=backend, rng=random.Random(seed))

    def resolve_move(self, board: Board) -> int:
        legal = empty_indices(board)
        if not legal:
            return -1

        if self.backend is not None:
            try:
                raw = self.backend.suggest_move(board, list(legal))
                move = validate_move(raw, legal)
                logger.debug("backend %s chose %d", self.backend.name, move)
                return move
            except Exception as e:  # includes TimeoutError and SDK errors
                logger.warning(
                    "backend %s failed (%s: %s); falling back to a random move",
                    self.backend.name,
                    type(e).__name__,
                    e,
                )

        return self.random_move(legal)

    def random_move(self, legal_moves: list[int]) -> int:
        if not legal_moves:
            return -1
        return self.rng.choice(legal_moves)

    def close(self) -> None:
        close = getattr(self.backend, "close", None)
        if callable(close):
            close()
