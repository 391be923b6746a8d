from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from google import genai

from ..board import Board
from ..oracle import OracleFailure, build_prompt

DEFAULT_MODEL = "gemini-2.5-flash"

_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {"move": {"type": "INTEGER"}},
    "required": ["move"],
}


def extract_move(raw: str) -> Any:
    """
    Pull the `move` value out of a model reply.

    Accepts a bare JSON object, one wrapped in markdown fences, or one embedded
    in surrounding prose.
    """
    raw = raw.strip()

    if "```" in raw:
        parts = raw.split("```")
        for part in parts[1::2]:
            part = part.strip()
            if part.startswith("json"):
                part = part[4:].strip()
            try:
                payload = json.loads(part)
            except json.JSONDecodeError:
                continue
            if isinstance(payload, dict) and "move" in payload:
                return payload["move"]

    try:
        payload = json.loads(raw)
        if isinstance(payload, dict) and "move" in payload:
            return payload["move"]
    except json.JSONDecodeError:
        pass

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            payload = json.loads(raw[start:end])
            if isinstance(payload, dict) and "move" in payload:
                return payload["move"]
        except json.JSONDecodeError:
            pass

    raise OracleFailure(f"could not parse gemini output: {raw[:500]}")


@dataclass(slots=True)
class GeminiBackend:
    """Asks a Google Gemini model for O's move."""

    api_key: str = ""
    model: str = DEFAULT_MODEL
    timeout_s: float = 10.0
    name: str = "gemini"
    client: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.client is None:
            if not self.api_key:
                raise ValueError("gemini backend requires an API key")
            self.client = genai.Client(
                api_key=self.api_key,
                http_options={"timeout": int(self.timeout_s * 1000)},
            )

    def suggest_move(self, board: Board, legal_moves: list[int]) -> Any:
        response = self.client.models.generate_content(
            model=self.model,
            contents=build_prompt(board, legal_moves),
            config={
                "response_mime_type": "application/json",
                "response_schema": _RESPONSE_SCHEMA,
            },
        )
        text = response.text
        if not text:
            raise OracleFailure("empty response from gemini")
        return extract_move(text)
