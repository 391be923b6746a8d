from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class Actor(str, Enum):
    HUMAN = "human"
    AUTOMATED = "automated"


class SoundEvent(str, Enum):
    MOVE_MADE = "move_made"
    WIN = "win"
    LOSE = "lose"
    DRAW = "draw"
    UI_INTERACTION = "ui_interaction"


@dataclass(frozen=True, slots=True)
class Notification:
    event: SoundEvent
    actor: Actor | None = None  # only set for MOVE_MADE


@runtime_checkable
class AudioSink(Protocol):
    """Fire-and-forget receiver for game sound cues."""

    def notify(self, note: Notification) -> None: ...


class NullAudio:
    def notify(self, note: Notification) -> None:
        pass


class RecordingAudio:
    """Keeps every notification; handy for tests and headless shells."""

    def __init__(self) -> None:
        self.notes: list[Notification] = []

    def notify(self, note: Notification) -> None:
        self.notes.append(note)

    @property
    def events(self) -> list[SoundEvent]:
        return [n.event for n in self.notes]
