from __future__ import annotations

import json
import os
import selectors
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import IO, Any

from ..board import Board
from ..oracle import OracleFailure


@dataclass(slots=True)
class SubprocessBackend:
    """
    JSONL bot protocol.

    The bot is a long-running process that reads one JSON object per line from stdin and
    writes one JSON object per line to stdout:

      -> {"type": "turn", "seq": 1, "board": ["X", "EMPTY", ...], "legal_moves": [1, ...], "ts_ms": ...}
      <- {"type": "move", "move": 4}

    Bots should echo "seq"; replies carrying a different one are ignored. A bot that
    omits it must answer requests in order: after a timeout, that many unsequenced
    replies are dropped as belonging to the timed-out turns.
    """

    command: list[str]
    name: str = "subprocess"
    timeout_s: float = 10.0
    _proc: subprocess.Popen[bytes] = field(init=False, repr=False)
    _stdin: IO[bytes] = field(init=False, repr=False)
    _stdout_fd: int = field(init=False, repr=False)
    _sel: selectors.BaseSelector = field(init=False, repr=False)
    _pending: bytearray = field(init=False, repr=False, default_factory=bytearray)
    _seq: int = field(init=False, default=0, repr=False)
    _unanswered: int = field(init=False, default=0, repr=False)
    _lock: threading.Lock = field(init=False, repr=False, default_factory=threading.Lock)

    def __post_init__(self) -> None:
        self._proc = subprocess.Popen(
            self.command,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            bufsize=0,
        )
        assert self._proc.stdin is not None
        assert self._proc.stdout is not None
        self._stdin = self._proc.stdin
        self._stdout_fd = self._proc.stdout.fileno()
        self._sel = selectors.DefaultSelector()
        self._sel.register(self._stdout_fd, selectors.EVENT_READ)

    def close(self) -> None:
        try:
            if self._proc.poll() is None:
                self._proc.terminate()
                try:
                    self._proc.wait(timeout=1)
                except subprocess.TimeoutExpired:
                    self._proc.kill()
        finally:
            self._sel.close()

    def _next_line(self, deadline: float) -> str:
        while b"\n" not in self._pending:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError(f"bot timed out after {self.timeout_s}s")
            if not self._sel.select(timeout=min(0.25, remaining)):
                continue
            chunk = os.read(self._stdout_fd, 65536)
            if not chunk:
                raise OracleFailure("bot stdout closed")
            self._pending += chunk
        line, _, rest = self._pending.partition(b"\n")
        self._pending = bytearray(rest)
        return line.decode("utf-8", errors="replace").strip()

    def suggest_move(self, board: Board, legal_moves: list[int]) -> Any:
        # One request/response exchange at a time; the engine may dispatch a
        # new turn while a superseded one is still waiting on the bot.
        with self._lock:
            return self._exchange(board, legal_moves)

    def _exchange(self, board: Board, legal_moves: list[int]) -> Any:
        if self._proc.poll() is not None:
            raise OracleFailure(f"bot process exited with code {self._proc.returncode}")

        self._seq += 1
        msg = {
            "type": "turn",
            "seq": self._seq,
            "board": board.to_wire(),
            "legal_moves": legal_moves,
            "ts_ms": int(time.time() * 1000),
        }
        try:
            self._stdin.write((json.dumps(msg) + "\n").encode("utf-8"))
            self._stdin.flush()
        except BrokenPipeError as e:
            raise OracleFailure("bot stdin closed") from e

        deadline = time.monotonic() + self.timeout_s
        while True:
            try:
                line = self._next_line(deadline)
            except TimeoutError:
                self._unanswered += 1
                raise
            if not line:
                continue
            try:
                resp = json.loads(line)
            except json.JSONDecodeError:
                # Bots may print debug output on stdout.
                continue

            if not isinstance(resp, dict) or resp.get("type") not in ("move", "error"):
                continue
            if "seq" in resp:
                if resp["seq"] != self._seq:
                    # Late reply to an earlier, timed-out turn.
                    continue
            elif self._unanswered:
                # Unsequenced bots answer in order: this belongs to a timed-out turn.
                self._unanswered -= 1
                continue

            if resp["type"] == "error":
                raise OracleFailure(f"bot error: {resp.get('error')!r}")
            if "move" not in resp:
                raise OracleFailure(f"bot move message missing 'move': {resp!r}")
            return resp["move"]
