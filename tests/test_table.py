"""Tests for proctop.table."""

from __future__ import annotations

import pytest

from proctop.sampler import ProcessSample
from proctop.table import (
    MAX_INTERVAL,
    MIN_INTERVAL,
    SortMode,
    UiState,
    clamp_interval,
    clamp_selection,
    move_selection,
    sort_processes,
)


def _proc(pid: int, cpu: float, mem_kb: int) -> ProcessSample:
    return ProcessSample(
        pid=pid,
        owner="user",
        display_name=f"p{pid}",
        command_path=f"/bin/p{pid}",
        resident_memory_kb=mem_kb,
        cumulative_cpu_seconds=0.0,
        cpu_percent=cpu,
        thread_count=1,
        nice_value=0,
    )


THREE = [_proc(10, 5.0, 200), _proc(20, 50.0, 100), _proc(30, 10.0, 500)]


# ── sort_processes ────────────────────────────────────────────────────────


class TestSortProcesses:
    def test_by_cpu(self) -> None:
        assert [p.pid for p in sort_processes(THREE, SortMode.CPU)] == [20, 30, 10]

    def test_by_mem(self) -> None:
        assert [p.pid for p in sort_processes(THREE, SortMode.MEM)] == [30, 10, 20]

    def test_by_pid(self) -> None:
        assert [p.pid for p in sort_processes(THREE, SortMode.PID)] == [10, 20, 30]

    def test_cpu_ties_by_ascending_pid(self) -> None:
        procs = [_proc(9, 1.0, 1), _proc(3, 1.0, 1), _proc(5, 2.0, 1)]
        assert [p.pid for p in sort_processes(procs, SortMode.CPU)] == [5, 3, 9]

    def test_mem_ties_by_ascending_pid(self) -> None:
        procs = [_proc(9, 0.0, 7), _proc(3, 0.0, 7)]
        assert [p.pid for p in sort_processes(procs, SortMode.MEM)] == [3, 9]

    def test_empty(self) -> None:
        assert sort_processes((), SortMode.CPU) == []

    @pytest.mark.parametrize("mode", list(SortMode))
    def test_orderings_hold(self, mode: SortMode) -> None:
        procs = [_proc(pid, float(pid * 7 % 13), pid * 11 % 17) for pid in range(1, 40)]
        ordered = sort_processes(procs, mode)
        pairs = list(zip(ordered, ordered[1:]))
        if mode is SortMode.CPU:
            assert all(a.cpu_percent >= b.cpu_percent for a, b in pairs)
        elif mode is SortMode.MEM:
            assert all(a.resident_memory_kb >= b.resident_memory_kb for a, b in pairs)
        else:
            assert all(a.pid < b.pid for a, b in pairs)


class TestSortModeParse:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("cpu", SortMode.CPU),
            ("MEM", SortMode.MEM),
            ("pid", SortMode.PID),
            (" Cpu ", SortMode.CPU),
            ("bogus", SortMode.PID),
            ("", SortMode.PID),
        ],
    )
    def test_parse(self, text: str, expected: SortMode) -> None:
        assert SortMode.parse(text) is expected


# ── selection ─────────────────────────────────────────────────────────────


class TestClampSelection:
    def test_within_range(self) -> None:
        assert clamp_selection(2, 5) == 2

    def test_past_end(self) -> None:
        assert clamp_selection(9, 5) == 4

    def test_negative(self) -> None:
        assert clamp_selection(-3, 5) == 0

    def test_empty(self) -> None:
        assert clamp_selection(4, 0) == 0


class TestMoveSelection:
    def test_down(self) -> None:
        assert move_selection(0, 1, 3) == 1

    def test_no_wrap_at_bottom(self) -> None:
        assert move_selection(2, 1, 3) == 2

    def test_no_wrap_at_top(self) -> None:
        assert move_selection(0, -1, 3) == 0

    def test_empty_list(self) -> None:
        assert move_selection(0, 1, 0) == 0


# ── refresh interval ──────────────────────────────────────────────────────


class TestClampInterval:
    def test_bounds(self) -> None:
        assert clamp_interval(0) == MIN_INTERVAL
        assert clamp_interval(-5) == MIN_INTERVAL
        assert clamp_interval(31) == MAX_INTERVAL
        assert clamp_interval(12) == 12

    def test_repeated_increments_stop_at_max(self) -> None:
        interval = 2
        for _ in range(15):
            interval = clamp_interval(interval + 1)
        assert interval == 17
        for _ in range(30):
            interval = clamp_interval(interval + 1)
        assert interval == 30

    def test_repeated_decrements_stop_at_min(self) -> None:
        interval = 5
        for _ in range(50):
            interval = clamp_interval(interval - 1)
        assert interval == 1


def test_ui_state_defaults() -> None:
    state = UiState()
    assert state.sort_mode is SortMode.CPU
    assert state.selected_index == 0
    assert state.refresh_interval == 2
    assert state.running is True
