"""Interactive terminal process monitor.

Samples host and per-process usage every refresh interval, shows a sortable
process table in curses, and lets the operator inspect a process or send it
SIGTERM/SIGKILL after confirming.

Usage:
    proctop
    proctop -i 5 -s mem
    proctop --config path/to/config.toml --log-file /tmp/proctop.log
"""

from __future__ import annotations

import argparse
import curses
import logging
import sys
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from proctop.config import DEFAULT_CONFIG, dump_default_config, load_config
from proctop.inspect_process import SignalKind, SignalResult, send_signal
from proctop.render import (
    Frame,
    confirm_lines,
    detail_lines,
    fit_lines,
    modal_geometry,
    render_frame,
    result_lines,
    truncate,
)
from proctop.sampler import ProcessSample, Sampler, Snapshot, SystemSample
from proctop.table import (
    SortMode,
    UiState,
    clamp_interval,
    clamp_selection,
    move_selection,
    sort_processes,
)

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────────

POLL_SLICE_MS = 100
NO_KEY = -1

# Curses colour-pair IDs
C_NORMAL = 1
C_WARNING = 2
C_CRITICAL = 3
C_TITLE = 4
C_DIM = 5
C_STATUS = 6

_ENTER_KEYS = {10, 13, curses.KEY_ENTER}
_QUIT_KEYS = {ord("q"), ord("Q")}
_CONFIRM_KEYS = {ord("y"), ord("Y")}
_SORT_KEYS = {
    ord("c"): SortMode.CPU,
    ord("C"): SortMode.CPU,
    ord("m"): SortMode.MEM,
    ord("M"): SortMode.MEM,
    ord("p"): SortMode.PID,
    ord("P"): SortMode.PID,
}
_SIGNAL_KEYS = {
    ord("k"): SignalKind.TERMINATE,
    ord("K"): SignalKind.KILL,
}


# ── Colour helpers ─────────────────────────────────────────────────────────


def _init_colors() -> None:
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(C_NORMAL, curses.COLOR_GREEN, -1)
    curses.init_pair(C_WARNING, curses.COLOR_YELLOW, -1)
    curses.init_pair(C_CRITICAL, curses.COLOR_RED, -1)
    curses.init_pair(C_TITLE, curses.COLOR_CYAN, -1)
    curses.init_pair(C_DIM, curses.COLOR_WHITE, -1)
    curses.init_pair(C_STATUS, curses.COLOR_BLUE, -1)


def _style_attr(style: str) -> int:
    if style == "title":
        return curses.color_pair(C_TITLE) | curses.A_REVERSE | curses.A_BOLD
    if style == "header":
        return curses.color_pair(C_TITLE) | curses.A_BOLD
    if style == "metrics":
        return curses.A_BOLD
    if style == "status":
        return curses.color_pair(C_STATUS) | curses.A_BOLD
    if style == "selected":
        return curses.A_REVERSE
    if style == "warning":
        return curses.color_pair(C_WARNING)
    if style == "critical":
        return curses.color_pair(C_CRITICAL) | curses.A_BOLD
    if style == "dim":
        return curses.color_pair(C_DIM)
    return curses.A_NORMAL


# ── Terminal surface ───────────────────────────────────────────────────────


def _safe(win: curses.window, *args: Any) -> None:
    """addstr wrapper that swallows out-of-bounds errors."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


class Terminal(Protocol):
    def size(self) -> tuple[int, int]: ...

    def draw(self, frame: Frame) -> None: ...

    def clear(self) -> None: ...

    def poll_key(self, timeout_ms: int) -> int: ...

    def modal(self, title: str, lines: list[str]) -> int: ...


class CursesTerminal:
    """The curses screen, driven by frames from ``proctop.render``."""

    def __init__(self, stdscr: curses.window) -> None:
        self.stdscr = stdscr
        _init_colors()
        try:
            curses.curs_set(0)
        except curses.error:
            pass  # Terminal can't hide the cursor
        stdscr.keypad(True)
        stdscr.nodelay(True)

    def size(self) -> tuple[int, int]:
        height, width = self.stdscr.getmaxyx()
        return height, width

    def clear(self) -> None:
        self.stdscr.clear()

    def draw(self, frame: Frame) -> None:
        self.stdscr.erase()
        for op in frame.ops:
            _safe(self.stdscr, op.row, op.col, op.text, _style_attr(op.style))
        self.stdscr.refresh()

    def poll_key(self, timeout_ms: int) -> int:
        """Wait up to timeout_ms for a key; NO_KEY when none arrives."""
        self.stdscr.timeout(timeout_ms)
        return self.stdscr.getch()

    def modal(self, title: str, lines: list[str]) -> int:
        """Show a boxed window over the table and block for one key."""
        height, width = self.size()
        geometry = modal_geometry(height, width, len(lines))
        if geometry is None:
            self.stdscr.timeout(-1)
            return self.stdscr.getch()

        y, x, h, w = geometry
        try:
            win = curses.newwin(h, w, y, x)
        except curses.error:
            # Screen shrank since size() was read
            logger.debug("modal %r does not fit, reading key from main screen", title)
            self.stdscr.timeout(-1)
            return self.stdscr.getch()
        win.keypad(True)
        win.box()
        if title and len(title) + 4 < w:
            _safe(win, 0, 2, f" {title} ", curses.color_pair(C_TITLE) | curses.A_BOLD)
        for i, line in enumerate(fit_lines(lines, h - 2)):
            _safe(win, 1 + i, 2, truncate(line, w - 4))
        win.refresh()

        key = win.getch()
        del win
        self.stdscr.touchwin()
        return key


# ── Controller ─────────────────────────────────────────────────────────────


class Mode(Enum):
    RUNNING = "running"
    CONFIRM_SIGNAL = "confirm_signal"
    DETAIL_VIEW = "detail_view"
    STOPPED = "stopped"


class Dashboard:
    """Runs the capture → render → poll-input cycle and owns the UI state.

    Signals always target the ``ProcessSample`` captured when the key was
    pressed. The selection itself is an index into the sorted rows: it
    survives refreshes (clamped), so after a re-sort it may sit on a
    different process, and it goes back to 0 whenever the sort mode changes.
    """

    def __init__(
        self,
        terminal: Terminal,
        sampler: Sampler,
        state: UiState,
        thresholds: dict[str, Any],
        signal_sender: Callable[[int, SignalKind], SignalResult] = send_signal,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.terminal = terminal
        self.sampler = sampler
        self.state = state
        self.thresholds = thresholds
        self._send = signal_sender
        self._clock = clock

        self.mode = Mode.RUNNING
        self.snapshot: Snapshot | None = None
        self.rows: list[ProcessSample] = []
        self.target: ProcessSample | None = None
        self.pending_kind: SignalKind | None = None
        self.status = ""

    # ── Loop ───────────────────────────────────────────────────────────

    def run(self) -> None:
        while self.state.running:
            self.refresh()
            self.poll_input()

    def refresh(self) -> None:
        self.snapshot = self.sampler.capture()
        self.resort()
        self.redraw()

    def poll_input(self) -> None:
        """Handle keys until the refresh interval has elapsed or we stop.

        The deadline is fixed on entry, so +/- only affects the next cycle.
        """
        deadline = self._clock() + self.state.refresh_interval
        while self.state.running and self._clock() < deadline:
            key = self.terminal.poll_key(POLL_SLICE_MS)
            if key == NO_KEY:
                continue
            self.handle_key(key)
            if self.mode is Mode.DETAIL_VIEW:
                self.show_detail()
            if self.mode is Mode.CONFIRM_SIGNAL:
                self.confirm_signal()
            if self.mode is Mode.RUNNING:
                self.redraw()

    def resort(self) -> None:
        processes = self.snapshot.processes if self.snapshot is not None else ()
        self.rows = sort_processes(processes, self.state.sort_mode)
        self.state.selected_index = clamp_selection(
            self.state.selected_index, len(self.rows)
        )

    def redraw(self) -> None:
        height, width = self.terminal.size()
        system = (
            self.snapshot.system
            if self.snapshot is not None
            else SystemSample(0.0, 0, 0)
        )
        frame = render_frame(
            self.rows,
            system,
            self.state,
            height,
            width,
            self.thresholds,
            status=self.status,
            clock=time.strftime("%H:%M:%S"),
        )
        self.state.scroll_offset = frame.scroll_offset
        self.terminal.draw(frame)

    # ── Input ──────────────────────────────────────────────────────────

    def selected(self) -> ProcessSample | None:
        idx = self.state.selected_index
        if 0 <= idx < len(self.rows):
            return self.rows[idx]
        return None

    def handle_key(self, key: int) -> None:
        if self.mode is not Mode.RUNNING:
            return

        if key in _QUIT_KEYS:
            self.stop()
        elif key == curses.KEY_UP:
            self.state.selected_index = move_selection(
                self.state.selected_index, -1, len(self.rows)
            )
        elif key == curses.KEY_DOWN:
            self.state.selected_index = move_selection(
                self.state.selected_index, 1, len(self.rows)
            )
        elif key in _SORT_KEYS:
            self.set_sort(_SORT_KEYS[key])
        elif key == ord("+"):
            self.state.refresh_interval = clamp_interval(self.state.refresh_interval + 1)
        elif key == ord("-"):
            self.state.refresh_interval = clamp_interval(self.state.refresh_interval - 1)
        elif key in _ENTER_KEYS:
            proc = self.selected()
            if proc is not None:
                self.target = proc
                self.mode = Mode.DETAIL_VIEW
        elif key in _SIGNAL_KEYS:
            self.request_signal(_SIGNAL_KEYS[key])
        elif key == curses.KEY_RESIZE:
            self.terminal.clear()

    def set_sort(self, mode: SortMode) -> None:
        self.state.sort_mode = mode
        self.state.selected_index = 0
        self.state.scroll_offset = 0
        self.resort()

    def request_signal(self, kind: SignalKind) -> None:
        proc = self.target if self.mode is Mode.DETAIL_VIEW else self.selected()
        if proc is None:
            return
        self.target = proc
        self.pending_kind = kind
        self.mode = Mode.CONFIRM_SIGNAL

    def stop(self) -> None:
        self.mode = Mode.STOPPED
        self.state.running = False

    # ── Sub-views ──────────────────────────────────────────────────────

    def show_detail(self) -> None:
        if self.target is None:
            self.mode = Mode.RUNNING
            return
        key = self.terminal.modal(f"PID {self.target.pid}", detail_lines(self.target))
        if key in _SIGNAL_KEYS:
            self.request_signal(_SIGNAL_KEYS[key])
        else:
            self.target = None
            self.mode = Mode.RUNNING

    def confirm_signal(self) -> None:
        target, kind = self.target, self.pending_kind
        if target is None or kind is None:
            self.mode = Mode.RUNNING
            return

        key = self.terminal.modal("Confirm", confirm_lines(target, kind))
        if key in _CONFIRM_KEYS:
            result = self._send(target.pid, kind)
            self.status = result.message
            self.terminal.modal(kind.value, result_lines(result))
        else:
            self.status = f"{kind.value} to PID {target.pid} cancelled."

        self.target = None
        self.pending_kind = None
        self.mode = Mode.RUNNING


# ── CLI entry point ────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proctop",
        description="Interactive process monitor for the terminal.",
    )
    parser.add_argument(
        "-i",
        dest="interval",
        type=int,
        default=None,
        metavar="SECONDS",
        help="Seconds between refreshes, 1-30 (default: 2)",
    )
    parser.add_argument(
        "-s",
        dest="sort",
        default=None,
        metavar="cpu|mem|pid",
        help="Initial sort order (default: cpu; unknown values sort by pid)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to TOML config file",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Print the default configuration as TOML and exit",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        metavar="PATH",
        help="Write debug logging to this file",
    )
    return parser


def initial_state(args: argparse.Namespace, config: dict[str, Any]) -> UiState:
    """UI state at startup: CLI flags win over config values."""
    interval = args.interval
    if interval is None:
        interval = int(config.get("refresh_interval", DEFAULT_CONFIG["refresh_interval"]))
    sort = args.sort if args.sort is not None else str(config.get("sort", "cpu"))
    return UiState(
        sort_mode=SortMode.parse(sort),
        refresh_interval=clamp_interval(interval),
    )


def _configure_logging(path: Path | None) -> None:
    # Anything on stderr would be painted over the curses screen
    if path is None:
        logging.basicConfig(handlers=[logging.NullHandler()])
        return
    logging.basicConfig(
        filename=path,
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _dashboard_loop(
    stdscr: curses.window, state: UiState, config: dict[str, Any]
) -> None:
    terminal = CursesTerminal(stdscr)
    thresholds: dict[str, Any] = config.get("thresholds", DEFAULT_CONFIG["thresholds"])
    Dashboard(terminal, Sampler(), state, thresholds).run()


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if args.print_config:
        print(dump_default_config(), end="")
        return

    config = load_config(args.config)
    _configure_logging(args.log_file)
    state = initial_state(args, config)
    logger.debug(
        "starting: interval=%ds sort=%s", state.refresh_interval, state.sort_mode.value
    )

    try:
        curses.wrapper(_dashboard_loop, state, config)
    except KeyboardInterrupt:
        pass
    except curses.error as e:
        print(f"proctop: terminal error: {e}", file=sys.stderr)
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
