"""Process table model: sort order, selection and refresh-interval bounds."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from proctop.sampler import ProcessSample

MIN_INTERVAL = 1
MAX_INTERVAL = 30


class SortMode(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"

    @classmethod
    def parse(cls, text: str) -> SortMode:
        """Map a CLI/config value to a mode. Unknown values sort by PID."""
        try:
            return cls(text.strip().lower())
        except ValueError:
            return cls.PID


@dataclass
class UiState:
    sort_mode: SortMode = SortMode.CPU
    selected_index: int = 0
    refresh_interval: int = 2
    running: bool = True
    scroll_offset: int = 0


def sort_processes(
    processes: Iterable[ProcessSample], mode: SortMode
) -> list[ProcessSample]:
    """Return the processes in display order. Ties fall back to ascending pid."""
    if mode is SortMode.CPU:
        return sorted(processes, key=lambda p: (-p.cpu_percent, p.pid))
    if mode is SortMode.MEM:
        return sorted(processes, key=lambda p: (-p.resident_memory_kb, p.pid))
    return sorted(processes, key=lambda p: p.pid)


def clamp_selection(index: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(index, count - 1))


def move_selection(index: int, delta: int, count: int) -> int:
    """Move the selection by delta rows without wrapping around."""
    return clamp_selection(index + delta, count)


def clamp_interval(seconds: int) -> int:
    return max(MIN_INTERVAL, min(seconds, MAX_INTERVAL))
