"""Screen layout for the dashboard.

Nothing in here touches curses: ``render_frame`` turns the sorted rows, the
system sample and the UI state into a list of ``DrawOp`` instructions, and
the terminal in ``proctop.dashboard`` paints them. Styles are plain names the
terminal maps to colour pairs.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from proctop.inspect_process import SignalKind, SignalResult
from proctop.sampler import ProcessSample, SystemSample
from proctop.table import UiState, clamp_selection

# ── Layout constants ───────────────────────────────────────────────────────

TITLE_ROW = 0
METRICS_ROW = 1
STATUS_ROW = 2
COLUMNS_ROW = 3
FIRST_DATA_ROW = 4
FIXED_OVERHEAD = 5  # four header rows + footer
MIN_WIDTH = 60
MIN_HEIGHT = FIXED_OVERHEAD + 1
MODAL_MAX_WIDTH = 80
ELLIPSIS = "..."

COLUMN_HEADER = (
    f"{'No.':>4} {'PID':>7} {'USER':<9} {'CPU%':>6} {'TIME+':>9} "
    f"{'MEM(KB)':>10} {'THR':>4} COMMAND"
)
FOOTER = "↑/↓ select  Enter details  c/m/p sort  +/- speed  k/K signal  q quit"

_SEVERITY_RANK = {"normal": 0, "warning": 1, "critical": 2}


class DrawOp(NamedTuple):
    row: int
    col: int
    text: str
    style: str


@dataclass
class Frame:
    ops: list[DrawOp] = field(default_factory=lambda: list[DrawOp]())
    scroll_offset: int = 0


# ── Formatting helpers ─────────────────────────────────────────────────────


def fmt_bytes(n: int | float) -> str:
    """Human-readable byte count (binary prefixes)."""
    v = float(n)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if abs(v) < 1024:
            return f"{v:.1f} {unit}"
        v /= 1024
    return f"{v:.1f} TiB"


def truncate(text: str, width: int) -> str:
    """Cut text to width, marking the cut with a trailing ellipsis."""
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width <= len(ELLIPSIS):
        return ELLIPSIS[:width]
    return text[: width - len(ELLIPSIS)] + ELLIPSIS


def fmt_hms(seconds: float) -> str:
    """CPU time as m:ss, or h:mm:ss once it passes an hour."""
    total = int(round(seconds))
    hrs, rem = divmod(total, 3600)
    mins, secs = divmod(rem, 60)
    if hrs:
        return f"{hrs}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


def _pad(text: str, width: int) -> str:
    return text[:width].ljust(width)


def severity(value: float, warn: float, crit: float) -> str:
    if value >= crit:
        return "critical"
    if value >= warn:
        return "warning"
    return "normal"


def _limits(thresholds: dict[str, Any], metric: str, warn: float, crit: float) -> tuple[float, float]:
    levels = thresholds.get(metric, {})
    return float(levels.get("warning", warn)), float(levels.get("critical", crit))


# ── Table window ───────────────────────────────────────────────────────────


def scroll_window(selected: int, offset: int, visible: int, count: int) -> int:
    """First row of the visible window, moved only as far as needed to show the selection."""
    if visible <= 0:
        return 0
    if selected < offset:
        offset = selected
    elif selected >= offset + visible:
        offset = selected - visible + 1
    return max(0, min(offset, max(0, count - visible)))


def format_row(index: int, proc: ProcessSample, width: int) -> str:
    prefix = (
        f"{index + 1:>4} {proc.pid:>7} {proc.owner[:9]:<9} {proc.cpu_percent:>6.2f} "
        f"{fmt_hms(proc.cumulative_cpu_seconds):>9} {proc.resident_memory_kb:>10} "
        f"{proc.thread_count:>4} "
    )
    return prefix + truncate(proc.display_name, width - len(prefix))


def _title_line(state: UiState, clock: str, width: int) -> str:
    left = (
        f"proctop  Refresh: {state.refresh_interval}s  "
        f"Sort: {state.sort_mode.name}"
    )
    right = f"{clock}  q: quit" if clock else "q: quit"
    gap = width - len(left) - len(right)
    if gap < 1:
        return left
    return left + " " * gap + right


def _metrics_line(
    system: SystemSample, count: int, thresholds: dict[str, Any]
) -> tuple[str, str]:
    used = system.memory_used_kb
    total = system.memory_total_kb
    text = (
        f"CPU: {system.cpu_percent_overall:.2f}%   "
        f"Mem: {fmt_bytes(used * 1024)} / {fmt_bytes(total * 1024)} "
        f"({system.memory_percent:.1f}%)   Tasks: {count}"
    )
    cpu_style = severity(
        system.cpu_percent_overall, *_limits(thresholds, "cpu_percent", 80.0, 95.0)
    )
    mem_style = severity(
        system.memory_percent, *_limits(thresholds, "ram_percent", 85.0, 95.0)
    )
    style = max(cpu_style, mem_style, key=_SEVERITY_RANK.__getitem__)
    return text, "metrics" if style == "normal" else style


def render_frame(
    rows: Sequence[ProcessSample],
    system: SystemSample,
    state: UiState,
    height: int,
    width: int,
    thresholds: dict[str, Any],
    status: str = "",
    clock: str = "",
) -> Frame:
    """Lay out one full screen.

    ``rows`` must already be sorted. The returned frame carries the scroll
    offset to keep the selection on screen; the caller stores it for the
    next render.
    """
    # The bottom-right cell can't be written without a curses error
    usable = width - 1

    if height < MIN_HEIGHT or width < MIN_WIDTH:
        msg = f"Terminal too small (need {MIN_WIDTH}x{MIN_HEIGHT}+)"
        return Frame([DrawOp(0, 0, truncate(msg, usable), "normal")], state.scroll_offset)

    ops = [
        DrawOp(TITLE_ROW, 0, _pad(_title_line(state, clock, usable), usable), "title"),
    ]
    metrics, metrics_style = _metrics_line(system, len(rows), thresholds)
    ops.append(DrawOp(METRICS_ROW, 0, _pad(metrics, usable), metrics_style))
    ops.append(DrawOp(STATUS_ROW, 0, _pad(status, usable), "status"))
    ops.append(DrawOp(COLUMNS_ROW, 0, _pad(COLUMN_HEADER, usable), "header"))

    visible = height - FIXED_OVERHEAD
    selected = clamp_selection(state.selected_index, len(rows))
    offset = scroll_window(selected, state.scroll_offset, visible, len(rows))
    warn, crit = _limits(thresholds, "process_cpu", 20.0, 50.0)

    for i in range(visible):
        idx = offset + i
        row = FIRST_DATA_ROW + i
        if idx >= len(rows):
            ops.append(DrawOp(row, 0, " " * usable, "normal"))
            continue
        proc = rows[idx]
        style = "selected" if idx == selected else severity(proc.cpu_percent, warn, crit)
        ops.append(DrawOp(row, 0, _pad(format_row(idx, proc, usable), usable), style))

    ops.append(DrawOp(height - 1, 0, _pad(FOOTER, usable), "dim"))
    return Frame(ops, offset)


# ── Modal contents ─────────────────────────────────────────────────────────


def modal_geometry(
    height: int, width: int, line_count: int
) -> tuple[int, int, int, int] | None:
    """Centered (y, x, h, w) for a boxed window, or None if it can't fit."""
    w = min(MODAL_MAX_WIDTH, width - 4)
    h = min(line_count + 2, height - 2)
    if h < 3 or w < 10:
        return None
    return (height - h) // 2, (width - w) // 2, h, w


def fit_lines(lines: list[str], rows: int) -> list[str]:
    """Cut lines to the rows available, always keeping the last (key hint) line."""
    if rows <= 0:
        return []
    if len(lines) <= rows:
        return lines
    return lines[: rows - 1] + lines[-1:]


def process_details(sample: ProcessSample) -> list[tuple[str, str]]:
    """Label/value pairs describing a captured process."""
    if sample.started_at is not None:
        started = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(sample.started_at))
    else:
        started = "(not available)"

    kb = sample.resident_memory_kb
    return [
        ("PID", str(sample.pid)),
        ("User", sample.owner),
        ("Name", sample.display_name),
        ("Command", sample.command_path),
        ("CPU", f"{sample.cpu_percent:.2f}%"),
        ("TIME+", fmt_hms(sample.cumulative_cpu_seconds)),
        ("Memory", f"{kb} KB ({fmt_bytes(kb * 1024)})"),
        ("Threads", str(sample.thread_count)),
        ("Nice", str(sample.nice_value)),
        ("Started", started),
    ]


def detail_lines(sample: ProcessSample) -> list[str]:
    lines = [f"{label:<8} {value}" for label, value in process_details(sample)]
    lines.append("")
    lines.append("k: SIGTERM  K: SIGKILL  any other key: close")
    return lines


def confirm_lines(sample: ProcessSample, kind: SignalKind) -> list[str]:
    return [
        f"Send {kind.value} to PID {sample.pid} ({sample.display_name})?",
        "",
        "y: confirm  any other key: cancel",
    ]


def result_lines(result: SignalResult) -> list[str]:
    return [result.message, "", "Press any key to continue."]
