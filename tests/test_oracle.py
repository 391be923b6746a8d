from __future__ import annotations

import random
from typing import Any

import pytest

from ttt_engine.backends.gemini import GeminiBackend, extract_move
from ttt_engine.board import Board, empty_indices
from ttt_engine.oracle import MoveOracle, OracleFailure, build_prompt, describe_board, validate_move

BOARD = Board.from_string("XO.X.O...")  # empty: 2, 4, 6, 7, 8


class FixedBackend:
    name = "fixed"

    def __init__(self, answer: Any) -> None:
        self.answer = answer
        self.calls: list[tuple[Board, list[int]]] = []

    def suggest_move(self, board: Board, legal_moves: list[int]) -> Any:
        self.calls.append((board, legal_moves))
        return self.answer


class RaisingBackend:
    name = "boom"

    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def suggest_move(self, board: Board, legal_moves: list[int]) -> Any:
        raise self.exc


def test_backend_answer_is_used_when_legal() -> None:
    backend = FixedBackend(6)
    oracle = MoveOracle(backend=backend)
    assert oracle.resolve_move(BOARD) == 6
    assert backend.calls == [(BOARD, [2, 4, 6, 7, 8])]


@pytest.mark.parametrize("answer", [0, 1, 9, -1, "4", 4.0, True, None, {"move": 4}])
def test_bad_answers_fall_back_to_an_empty_cell(answer: Any) -> None:
    oracle = MoveOracle(backend=FixedBackend(answer), rng=random.Random(0))
    for _ in range(20):
        assert oracle.resolve_move(BOARD) in empty_indices(BOARD)


@pytest.mark.parametrize(
    "exc",
    [TimeoutError("slow"), ConnectionError("down"), ValueError("bad json"), OracleFailure("nope")],
)
def test_backend_errors_fall_back(exc: Exception) -> None:
    oracle = MoveOracle(backend=RaisingBackend(exc))
    assert oracle.resolve_move(BOARD) in empty_indices(BOARD)


def test_no_backend_uses_random_choice() -> None:
    oracle = MoveOracle.seeded(1234)
    seen = {oracle.resolve_move(BOARD) for _ in range(200)}
    assert seen == {2, 4, 6, 7, 8}


def test_full_board_returns_minus_one_without_calling_backend() -> None:
    backend = FixedBackend(0)
    oracle = MoveOracle(backend=backend)
    assert oracle.resolve_move(Board.from_string("XOXXOOOXX")) == -1
    assert backend.calls == []


def test_seeded_oracle_is_reproducible() -> None:
    a = MoveOracle.seeded(7)
    b = MoveOracle.seeded(7)
    assert [a.resolve_move(BOARD) for _ in range(10)] == [b.resolve_move(BOARD) for _ in range(10)]


def test_validate_move() -> None:
    assert validate_move(4, [2, 4]) == 4
    with pytest.raises(OracleFailure):
        validate_move(3, [2, 4])
    with pytest.raises(OracleFailure):
        validate_move(False, [0, 4])


def test_prompt_describes_board_and_goal() -> None:
    desc = describe_board(BOARD)
    assert desc[0] == {"index": 0, "value": "X"}
    assert desc[2] == {"index": 2, "value": "EMPTY"}
    prompt = build_prompt(BOARD, [2, 4, 6, 7, 8])
    assert "playing as 'O'" in prompt
    assert "win" in prompt and "block" in prompt
    assert '{"move": <index>}' in prompt


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('{"move": 4}', 4),
        ('```json\n{"move": 7}\n```', 7),
        ('Sure! I pick {"move": 2} because it blocks.', 2),
    ],
)
def test_extract_move(raw: str, expected: int) -> None:
    assert extract_move(raw) == expected


def test_extract_move_rejects_garbage() -> None:
    with pytest.raises(OracleFailure):
        extract_move("I think the centre is best")


class _Response:
    def __init__(self, text: str | None) -> None:
        self.text = text


class _Models:
    def __init__(self, text: str | None) -> None:
        self.text = text
        self.kwargs: dict[str, Any] = {}

    def generate_content(self, **kwargs: Any) -> _Response:
        self.kwargs = kwargs
        return _Response(self.text)


class FakeClient:
    def __init__(self, text: str | None) -> None:
        self.models = _Models(text)


def test_gemini_backend_sends_prompt_and_parses_reply() -> None:
    client = FakeClient('{"move": 8}')
    backend = GeminiBackend(model="test-model", client=client)
    oracle = MoveOracle(backend=backend)
    assert oracle.resolve_move(BOARD) == 8
    assert client.models.kwargs["model"] == "test-model"
    assert "legal_moves_json=[2, 4, 6, 7, 8]" in client.models.kwargs["contents"]
    assert client.models.kwargs["config"]["response_mime_type"] == "application/json"


@pytest.mark.parametrize("text", [None, "", "not json", '{"move": 0}', '{"move": 42}', '{"mv": 4}'])
def test_gemini_backend_failures_fall_back(text: str | None) -> None:
    oracle = MoveOracle(backend=GeminiBackend(client=FakeClient(text)))
    assert oracle.resolve_move(BOARD) in empty_indices(BOARD)


def test_gemini_backend_needs_a_key_without_client() -> None:
    with pytest.raises(ValueError):
        GeminiBackend(api_key="")
