from __future__ import annotations

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, TextIO

from .board import render
from .config import Settings, build_oracle, load_settings
from .engine import GameEngine
from .events import Notification, SoundEvent
from .session import Mode, Session, status_text

_MODES = {"pvp": Mode.HUMAN_VS_HUMAN, "pve": Mode.HUMAN_VS_AUTOMATED}
_MODE_HELP = {
    "pvp": "two humans share the keyboard",
    "pve": "you (X) against the automated player (O)",
}
_HELP = "0-8: move   r: restart   m: menu   s: sound on/off   q: quit"


class TerminalBell:
    """Rings the terminal bell on wins, losses and draws."""

    def __init__(self, out: TextIO, muted: bool = False) -> None:
        self._out = out
        self.muted = muted

    def toggle(self) -> bool:
        self.muted = not self.muted
        return self.muted

    def notify(self, note: Notification) -> None:
        if self.muted:
            return
        if note.event in (SoundEvent.WIN, SoundEvent.LOSE, SoundEvent.DRAW):
            self._out.write("\a")
            self._out.flush()


def configure_logging(settings: Settings) -> None:
    root = logging.getLogger("ttt_engine")
    root.setLevel(settings.log_level)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(fmt)
    root.addHandler(stream)

    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(settings.log_file, maxBytes=200_000, backupCount=3, encoding="utf-8", delay=True)
        handler.setFormatter(fmt)
        root.addHandler(handler)
    root.propagate = False


def _print_session(session: Session, out: TextIO) -> None:
    if session.mode is Mode.NONE:
        out.write(f"{status_text(session)}: {' | '.join(_MODES)}\n")
        return
    out.write(render(session.board, highlight=session.status.line) + "\n")
    out.write(f"X {session.score_x} - {session.score_o} O   {status_text(session)}\n")


def run_shell(
    engine: GameEngine,
    *,
    mode: Mode | None = None,
    bell: TerminalBell | None = None,
    read: Callable[[str], str] = input,
    out: TextIO = sys.stdout,
    oracle_timeout_s: float = 60.0,
) -> int:
    if mode is not None:
        engine.start_game(mode)
    out.write(_HELP + "\n")

    while True:
        engine.wait_idle(timeout=oracle_timeout_s)
        _print_session(engine.session, out)
        try:
            raw = read("> ").strip().lower()
        except EOFError:
            return 0

        if raw == "q":
            return 0
        if raw == "s" and bell is not None:
            out.write("sound off\n" if bell.toggle() else "sound on\n")
        elif raw == "r":
            engine.restart()
        elif raw == "m":
            engine.return_to_menu()
        elif raw in _MODES:
            engine.start_game(_MODES[raw])
        elif raw.isdigit():
            if not engine.submit_move(int(raw)):
                out.write("move ignored\n")
        else:
            out.write(_HELP + "\n")


def cmd_modes(_: argparse.Namespace) -> int:
    for name, text in _MODE_HELP.items():
        print(f"{name}: {text}")
    return 0


def cmd_play(args: argparse.Namespace) -> int:
    settings = load_settings(
        Path(args.config).expanduser() if args.config else None,
        backend=args.backend,
        model=args.model,
        timeout_s=args.timeout,
        seed=args.seed,
        log_file=args.log_file,
        log_level=args.log_level,
    )
    configure_logging(settings)

    bell = TerminalBell(sys.stdout, muted=args.mute)
    engine = GameEngine(build_oracle(settings), audio=bell)
    try:
        return run_shell(engine, mode=_MODES.get(args.mode), bell=bell, oracle_timeout_s=settings.timeout_s * 2)
    finally:
        engine.close()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ttt-engine")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_modes = sub.add_parser("modes", help="List game modes")
    p_modes.set_defaults(func=cmd_modes)

    p_play = sub.add_parser("play", help="Play in the terminal")
    p_play.add_argument("--mode", choices=sorted(_MODES), help="Skip the menu and start this mode")
    p_play.add_argument("--config", help="Path to a TOML config file")
    p_play.add_argument("--backend", help="auto|none|gemini|subprocess:<cmd>|<path.py or module>:<symbol>")
    p_play.add_argument("--model", help="Gemini model name")
    p_play.add_argument("--timeout", type=float, help="Seconds to wait for the backend per move")
    p_play.add_argument("--seed", type=int, help="Seed for the random fallback")
    p_play.add_argument("--log-file", help="Also write logs to this file")
    p_play.add_argument("--log-level", help="DEBUG|INFO|WARNING|ERROR")
    p_play.add_argument("--mute", action="store_true", help="Start with sound off")
    p_play.set_defaults(func=cmd_play)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except (ValueError, FileNotFoundError, ImportError, AttributeError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
