from __future__ import annotations

import logging
import os
import shlex
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from .backends.gemini import DEFAULT_MODEL, GeminiBackend
from .backends.subprocess_backend import SubprocessBackend
from .loading import load_symbol
from .oracle import MoveBackend, MoveOracle

logger = logging.getLogger(__name__)

_ENV_KEYS = {
    "TTT_BACKEND": "backend",
    "TTT_MODEL": "model",
    "TTT_TIMEOUT_S": "timeout_s",
    "TTT_SEED": "seed",
    "TTT_LOG_FILE": "log_file",
    "TTT_LOG_LEVEL": "log_level",
}
_API_KEY_ENV = ("GOOGLE_API_KEY", "API_KEY")


@dataclass(frozen=True, slots=True)
class Settings:
    backend: str = "auto"  # auto | none | gemini | subprocess:<cmd> | <path.py or module>:<symbol>
    model: str = DEFAULT_MODEL
    api_key: str = ""
    timeout_s: float = 10.0
    seed: int | None = None
    log_file: Path | None = None
    log_level: str = "WARNING"


def load_config(path: Path) -> dict[str, Any]:
    data = tomllib.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Config must be a TOML table")
    table = data.get("ttt", data)
    if not isinstance(table, dict):
        raise ValueError("[ttt] must be a TOML table")
    return table


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name == "timeout_s":
        if isinstance(value, bool):
            raise ValueError(f"invalid timeout_s: {value!r}")
        try:
            timeout = float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid timeout_s: {value!r}") from e
        if timeout <= 0:
            raise ValueError(f"timeout_s must be positive, got {value!r}")
        return timeout
    if name == "seed":
        if isinstance(value, (bool, float)):
            raise ValueError(f"invalid seed: {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid seed: {value!r}") from e
    if name == "log_file":
        return Path(str(value)).expanduser()
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {value!r}")
    if name == "log_level":
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value!r}")
        return level
    return value


def load_settings(
    path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> Settings:
    """
    Merge defaults, an optional TOML file, environment variables and explicit
    overrides (highest wins). Overrides set to None are ignored.
    """
    env = os.environ if env is None else env
    known = {f.name for f in fields(Settings)}
    merged: dict[str, Any] = {}

    if path is not None:
        for key, value in load_config(path).items():
            if key not in known:
                raise ValueError(f"unknown config key: {key!r}")
            merged[key] = value

    for var in _API_KEY_ENV:
        if env.get(var):
            merged["api_key"] = env[var]
            break
    for var, key in _ENV_KEYS.items():
        if env.get(var):
            merged[key] = env[var]

    for key, value in overrides.items():
        if key not in known:
            raise ValueError(f"unknown setting: {key!r}")
        if value is not None:
            merged[key] = value

    return replace(Settings(), **{k: _coerce(k, v) for k, v in merged.items()})


def build_backend(settings: Settings) -> MoveBackend | None:
    spec = settings.backend.strip()
    if spec == "none":
        return None
    if spec == "auto":
        if not settings.api_key:
            logger.warning("no API key found; the automated player will use random moves")
            return None
        spec = "gemini"
    if spec == "gemini":
        logger.info("using gemini backend (model=%s)", settings.model)
        return GeminiBackend(api_key=settings.api_key, model=settings.model, timeout_s=settings.timeout_s)
    if spec.startswith("subprocess:"):
        cmd = shlex.split(spec.removeprefix("subprocess:").strip())
        if not cmd:
            raise ValueError("subprocess backend requires a command, e.g. subprocess:python3 -u bot.py")
        logger.info("using subprocess backend: %s", cmd)
        return SubprocessBackend(cmd, timeout_s=settings.timeout_s)

    obj = load_symbol(spec)
    backend = obj() if callable(obj) else obj
    logger.info("using backend %s from %s", getattr(backend, "name", type(backend).__name__), spec)
    return backend


def build_oracle(settings: Settings) -> MoveOracle:
    return MoveOracle.seeded(settings.seed, backend=build_backend(settings))
