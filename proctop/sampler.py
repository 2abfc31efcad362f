"""Host and process sampling for proctop.

Every ``Sampler.capture()`` call returns an immutable ``Snapshot``. CPU
percentages are rates, so they are derived from the cumulative counters of
the previous capture, which the sampler keeps in its ``RateState``. The first
capture has nothing to compare against and reports 0%.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import NamedTuple

import psutil

logger = logging.getLogger(__name__)


# ── Data types ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProcessSample:
    """One process as observed at a sampling instant."""

    pid: int
    owner: str
    display_name: str
    command_path: str
    resident_memory_kb: int
    cumulative_cpu_seconds: float
    cpu_percent: float
    thread_count: int
    nice_value: int
    started_at: float | None = None


@dataclass(frozen=True)
class SystemSample:
    cpu_percent_overall: float
    memory_total_kb: int
    memory_used_kb: int

    @property
    def memory_percent(self) -> float:
        if self.memory_total_kb <= 0:
            return 0.0
        return 100.0 * self.memory_used_kb / self.memory_total_kb


@dataclass(frozen=True)
class Snapshot:
    system: SystemSample
    processes: tuple[ProcessSample, ...]
    taken_at: float


class CpuTicks(NamedTuple):
    total: float
    idle: float


@dataclass
class RateState:
    """Counters from the previous capture, needed to turn totals into rates."""

    ticks: CpuTicks | None = None
    process_cpu: dict[int, float] = field(default_factory=lambda: dict[int, float]())
    taken_at: float | None = None


# ── Host counters ───────────────────────────────────────────────────────────

_PROC_ATTRS = [
    "pid",
    "name",
    "username",
    "uids",
    "exe",
    "memory_info",
    "cpu_times",
    "num_threads",
    "nice",
    "create_time",
]


def read_cpu_ticks() -> CpuTicks | None:
    """Read aggregate host CPU time (user + system + idle + nice)."""
    try:
        times = psutil.cpu_times()
    except (OSError, psutil.Error) as e:
        logger.debug("cpu_times failed: %s", e)
        return None
    total = times.user + times.system + times.idle + times.nice
    return CpuTicks(total=total, idle=times.idle)


def cpu_percent_between(prev: CpuTicks | None, curr: CpuTicks | None) -> float:
    """Overall CPU% from two tick samples. 0.0 without a usable pair."""
    if prev is None or curr is None:
        return 0.0
    diff_total = curr.total - prev.total
    diff_idle = curr.idle - prev.idle
    if diff_total <= 0:
        return 0.0
    return 100.0 * (1.0 - diff_idle / diff_total)


def read_memory_total_kb() -> int:
    try:
        return int(psutil.virtual_memory().total // 1024)
    except (OSError, psutil.Error) as e:
        logger.debug("virtual_memory failed: %s", e)
        return 0


def read_memory_used_kb() -> int:
    """Used memory as active + inactive + wired pages, in KB.

    ``wired`` only exists on BSD/macOS; elsewhere it counts as zero.
    """
    try:
        mem = psutil.virtual_memory()
    except (OSError, psutil.Error) as e:
        logger.debug("virtual_memory failed: %s", e)
        return 0
    used = (
        getattr(mem, "active", 0)
        + getattr(mem, "inactive", 0)
        + getattr(mem, "wired", 0)
    )
    return int(used // 1024)


# ── Process enumeration ─────────────────────────────────────────────────────


def _owner(info: dict) -> str:
    username = info.get("username")
    if username:
        return str(username)
    uids = info.get("uids")
    if uids is not None:
        return str(uids.real)
    return "?"


def read_processes() -> list[ProcessSample]:
    """Read every live process. Processes that can't be read are left out.

    ``cpu_percent`` is 0.0 here; the sampler fills it in from the previous
    capture.
    """
    samples: list[ProcessSample] = []

    for proc in psutil.process_iter(attrs=_PROC_ATTRS, ad_value=None):
        try:
            info = proc.info
            pid = info.get("pid") or 0
            if pid <= 0:
                continue

            mem_info = info.get("memory_info")
            cpu_times = info.get("cpu_times")
            if mem_info is None or cpu_times is None:
                logger.debug("dropping pid %s: counters unreadable", pid)
                continue

            name = info.get("name") or ""
            samples.append(
                ProcessSample(
                    pid=pid,
                    owner=_owner(info),
                    display_name=name,
                    command_path=info.get("exe") or name,
                    resident_memory_kb=int(mem_info.rss // 1024),
                    cumulative_cpu_seconds=cpu_times.user + cpu_times.system,
                    cpu_percent=0.0,
                    thread_count=info.get("num_threads") or 0,
                    nice_value=info.get("nice") or 0,
                    started_at=info.get("create_time"),
                )
            )
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            # Exited or became unreadable between enumeration and read
            continue

    return samples


# ── Sampler ─────────────────────────────────────────────────────────────────


class Sampler:
    """Produces snapshots and owns the state that turns counters into rates.

    The readers default to the psutil-backed functions above; tests pass
    their own.
    """

    def __init__(
        self,
        state: RateState | None = None,
        cpu_ticks: Callable[[], CpuTicks | None] = read_cpu_ticks,
        memory_total_kb: Callable[[], int] = read_memory_total_kb,
        memory_used_kb: Callable[[], int] = read_memory_used_kb,
        processes: Callable[[], Iterable[ProcessSample]] = read_processes,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.state = state if state is not None else RateState()
        self._cpu_ticks = cpu_ticks
        self._memory_total_kb = memory_total_kb
        self._memory_used_kb = memory_used_kb
        self._processes = processes
        self._clock = clock
        self._total_kb: int | None = None

    def _memory_total(self) -> int:
        # Constant for the life of the host; a failed read is retried next time
        if not self._total_kb:
            self._total_kb = self._memory_total_kb()
        return self._total_kb

    def capture(self) -> Snapshot:
        now = self._clock()

        ticks = self._cpu_ticks()
        cpu_overall = cpu_percent_between(self.state.ticks, ticks)
        if ticks is not None:
            self.state.ticks = ticks

        system = SystemSample(
            cpu_percent_overall=cpu_overall,
            memory_total_kb=self._memory_total(),
            memory_used_kb=self._memory_used_kb(),
        )

        processes = self._with_process_rates(list(self._processes()), now)
        self.state.taken_at = now
        return Snapshot(system=system, processes=tuple(processes), taken_at=now)

    def _with_process_rates(
        self, processes: list[ProcessSample], now: float
    ) -> list[ProcessSample]:
        prev_at = self.state.taken_at
        elapsed = now - prev_at if prev_at is not None else 0.0
        previous = self.state.process_cpu

        rated: list[ProcessSample] = []
        current: dict[int, float] = {}
        for sample in processes:
            current[sample.pid] = sample.cumulative_cpu_seconds
            before = previous.get(sample.pid)
            pct = 0.0
            # A lower total than last time means the pid was reused
            if before is not None and elapsed > 0 and sample.cumulative_cpu_seconds >= before:
                pct = 100.0 * (sample.cumulative_cpu_seconds - before) / elapsed
            rated.append(replace(sample, cpu_percent=pct))

        self.state.process_cpu = current
        return rated
