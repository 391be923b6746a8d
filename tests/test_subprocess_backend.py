from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest

from ttt_engine.backends.subprocess_backend import SubprocessBackend
from ttt_engine.board import Board, empty_indices
from ttt_engine.oracle import MoveOracle, OracleFailure


def _write_bot(tmp_path: Path, body: list[str]) -> list[str]:
    bot = tmp_path / "bot.py"
    bot.write_text(
        "\n".join(
            [
                "import json, sys, time",
                "for line in sys.stdin:",
                "    msg = json.loads(line)",
                "    if msg.get('type') != 'turn':",
                "        continue",
                *body,
                "    sys.stdout.flush()",
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    return [sys.executable, "-u", str(bot)]


def test_subprocess_backend_returns_bot_move(tmp_path: Path) -> None:
    cmd = _write_bot(
        tmp_path,
        [
            "    print('thinking...')",
            "    legal = msg['legal_moves']",
            "    sys.stdout.write(json.dumps({'type': 'move', 'seq': msg['seq'], 'move': legal[-1]}) + '\\n')",
        ],
    )
    backend = SubprocessBackend(command=cmd, timeout_s=5.0)
    try:
        board = Board.from_string("XO.......")
        assert backend.suggest_move(board, empty_indices(board)) == 8
        # the process is reused between turns
        board = Board.from_string("XO.X....O")
        assert backend.suggest_move(board, empty_indices(board)) == 7
    finally:
        backend.close()


def test_subprocess_backend_error_message_raises(tmp_path: Path) -> None:
    cmd = _write_bot(tmp_path, ["    sys.stdout.write(json.dumps({'type': 'error', 'error': 'no key'}) + '\\n')"])
    backend = SubprocessBackend(command=cmd, timeout_s=5.0)
    try:
        with pytest.raises(OracleFailure):
            backend.suggest_move(Board(), list(range(9)))
    finally:
        backend.close()


def test_slow_bot_times_out_and_oracle_falls_back(tmp_path: Path) -> None:
    cmd = _write_bot(
        tmp_path,
        [
            "    time.sleep(3)",
            "    sys.stdout.write(json.dumps({'type': 'move', 'move': 0}) + '\\n')",
        ],
    )
    backend = SubprocessBackend(command=cmd, timeout_s=0.3)
    try:
        with pytest.raises(TimeoutError):
            backend.suggest_move(Board(), list(range(9)))

        board = Board.from_string("XOXOX....")
        oracle = MoveOracle(backend=backend)
        assert oracle.resolve_move(board) in empty_indices(board)
    finally:
        backend.close()


def test_dead_bot_falls_back(tmp_path: Path) -> None:
    bot = tmp_path / "dead.py"
    bot.write_text("import sys\nsys.exit(0)\n", encoding="utf-8")
    backend = SubprocessBackend(command=[sys.executable, "-u", str(bot)], timeout_s=2.0)
    try:
        oracle = MoveOracle(backend=backend)
        board = Board.from_string("XO.......")
        assert oracle.resolve_move(board) in empty_indices(board)
    finally:
        backend.close()


def test_overlapping_calls_each_get_their_own_reply(tmp_path: Path) -> None:
    cmd = _write_bot(
        tmp_path,
        [
            "    time.sleep(0.3)",
            "    legal = msg['legal_moves']",
            "    sys.stdout.write(json.dumps({'type': 'move', 'seq': msg['seq'], 'move': legal[0]}) + '\\n')",
        ],
    )
    backend = SubprocessBackend(command=cmd, timeout_s=3.0)
    results: dict[str, object] = {}

    def call(key: str, board: Board) -> None:
        try:
            results[key] = backend.suggest_move(board, empty_indices(board))
        except Exception as e:
            results[key] = e

    try:
        first = threading.Thread(target=call, args=("first", Board.from_string("X........")))
        second = threading.Thread(target=call, args=("second", Board()))
        first.start()
        time.sleep(0.05)
        second.start()
        first.join(10)
        second.join(10)
        assert results == {"first": 1, "second": 0}
    finally:
        backend.close()


def test_unsequenced_late_reply_is_not_used_for_the_next_turn(tmp_path: Path) -> None:
    cmd = _write_bot(
        tmp_path,
        [
            "    legal = msg['legal_moves']",
            "    if msg['seq'] == 1:",
            "        time.sleep(1.0)",
            "        sys.stdout.write(json.dumps({'type': 'move', 'move': legal[0]}) + '\\n')",
            "    else:",
            "        sys.stdout.write(json.dumps({'type': 'move', 'move': legal[-1]}) + '\\n')",
        ],
    )
    backend = SubprocessBackend(command=cmd, timeout_s=0.3)
    try:
        with pytest.raises(TimeoutError):
            backend.suggest_move(Board(), list(range(9)))

        backend.timeout_s = 5.0
        board = Board.from_string("XO.......")
        assert backend.suggest_move(board, empty_indices(board)) == 8
    finally:
        backend.close()
