"""Sending a termination signal to a single process.

The dashboard captures a ``ProcessSample`` when the operator presses a key;
everything here works from that captured value, so a refresh that reorders
the table in the meantime cannot redirect the signal to another row.
"""

from __future__ import annotations

import logging
import signal
from dataclasses import dataclass
from enum import Enum

import psutil

logger = logging.getLogger(__name__)


class SignalKind(Enum):
    """Graceful terminate or forced kill."""

    TERMINATE = "SIGTERM"
    KILL = "SIGKILL"

    @property
    def signum(self) -> int:
        return int(getattr(signal, self.value))


@dataclass(frozen=True)
class SignalResult:
    pid: int
    kind: SignalKind
    ok: bool
    message: str


def send_signal(pid: int, kind: SignalKind) -> SignalResult:
    """Deliver ``kind`` to ``pid``. Failures are returned, never raised."""
    try:
        psutil.Process(pid).send_signal(kind.signum)
    except psutil.NoSuchProcess:
        message = f"Failed to send {kind.value} to PID {pid}: no such process"
    except psutil.AccessDenied:
        message = f"Failed to send {kind.value} to PID {pid}: permission denied"
    except OSError as e:
        message = f"Failed to send {kind.value} to PID {pid}: {e.strerror or e}"
    else:
        logger.info("sent %s to pid %d", kind.value, pid)
        return SignalResult(pid, kind, True, f"Signal {kind.value} sent to PID {pid}.")

    logger.warning(message)
    return SignalResult(pid, kind, False, message)

