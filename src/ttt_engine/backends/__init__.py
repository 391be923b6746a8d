from __future__ import annotations

__all__ = ["GeminiBackend", "SubprocessBackend"]

from .gemini import GeminiBackend
from .subprocess_backend import SubprocessBackend
