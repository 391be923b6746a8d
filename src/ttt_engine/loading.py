"""Resolve backend specs of the form "<path.py>:<symbol>" or "<package.module>:<symbol>"."""
from __future__ import annotations

import importlib
import importlib.util
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any


@dataclass(frozen=True, slots=True)
class PluginRef:
    target: str
    symbol: str

    @property
    def is_path(self) -> bool:
        return self.target.endswith(".py") or "/" in self.target or "\\" in self.target


def parse_plugin_ref(spec: str) -> PluginRef:
    """
    Examples:
      - "bots/minimax.py:MinimaxBackend"
      - "my_bots.remote:make_backend"
    """
    if ":" not in spec:
        raise ValueError(f"Expected '<path-or-module>:<symbol>', got: {spec!r}")
    target, symbol = spec.rsplit(":", 1)
    if not target:
        raise ValueError(f"Missing module or path in spec: {spec!r}")
    if not symbol:
        raise ValueError(f"Missing symbol in spec: {spec!r}")
    return PluginRef(target=target, symbol=symbol)


def _module_from_file(path: Path) -> ModuleType:
    name = f"ttt_engine_plugin_{abs(hash(str(path)))}"
    if name in sys.modules:
        return sys.modules[name]
    spec = importlib.util.spec_from_file_location(name, str(path))
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load module from: {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        del sys.modules[name]
        raise
    return module


def load_symbol(spec: str) -> Any:
    ref = parse_plugin_ref(spec)
    if ref.is_path:
        path = Path(ref.target).expanduser().resolve()
        if not path.exists():
            raise FileNotFoundError(path)
        module = _module_from_file(path)
        where = str(path)
    else:
        module = importlib.import_module(ref.target)
        where = ref.target
    try:
        return getattr(module, ref.symbol)
    except AttributeError as e:
        raise AttributeError(f"{where} has no symbol {ref.symbol!r}") from e
