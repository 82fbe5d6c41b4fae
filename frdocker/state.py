"""Response-time state of a container, scored with TEDA as traces complete."""

from __future__ import annotations

import math
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from frdocker import config
from frdocker.http_info import HttpInfo
from frdocker.teda import calculate_with_history

NANOSECONDS = 1_000_000_000
DEFAULT_MAX_TIME = 60 * NANOSECONDS

MonitorStateCallback = Callable[[str, "ContainerState"], None]


class TaskPool(Protocol):
    """Anything that runs submitted callables, such as a thread pool executor."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any: ...


@dataclass(eq=False)
class Pending:
    """A trace waiting for the message that closes the state."""

    trace_id: str
    start: float
    end: float | None = None
    channel: queue.Queue = field(default_factory=lambda: queue.Queue(maxsize=1), repr=False)


def _default_mean() -> list[float]:
    return [0.0] * config.TEDA_DATA_LEN


@dataclass(eq=False)
class ContainerState:
    """Running statistics of the time a container spends in one state.

    Times are in nanoseconds.
    """

    id: str
    mean: list[float] = field(default_factory=_default_mean)
    sigma: float = 0.0
    ecc: float = 0.0
    thresh: float = 0.0
    max_time: int = DEFAULT_MAX_TIME
    min_time: int = 0
    cnt: int = 0
    callback: MonitorStateCallback | None = field(default=None, repr=False)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _pending: dict[str, Pending] = field(default_factory=dict, init=False, repr=False)
    _pending_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    def ensure_callback(self, callback: MonitorStateCallback | None) -> None:
        """Set the anomaly callback unless one is already set."""
        if self.callback is None:
            self.callback = callback

    def ensure_pending(self) -> None:
        """Start with no traces waiting."""
        with self._pending_lock:
            self._pending = {}

    def update(self, http_info: HttpInfo, pool: TaskPool) -> None:
        """Open a state for the trace, or close the one already open."""
        trace_id = http_info.trace_id
        with self._pending_lock:
            pending = self._pending.pop(trace_id, None)
            if pending is None:
                pending = Pending(trace_id, http_info.timestamp)
                self._pending[trace_id] = pending
                opened = True
            else:
                opened = False
        if opened:
            pool.submit(self._watch, pending)
        else:
            pending.channel.put_nowait(http_info.timestamp)

    def _watch(self, pending: Pending) -> None:
        with self.lock:
            timeout_ns = self.max_time * config.TEDA_TIMEOUT_FACTOR
        try:
            end = pending.channel.get(timeout=max(timeout_ns / NANOSECONDS, 0.0))
        except queue.Empty:
            self.update_state(float(timeout_ns))
        else:
            pending.end = end
            self.update_state(abs(end - pending.start) * NANOSECONDS)
        self._invoke_callback(pending.trace_id)

    def update_state(self, interval: float) -> None:
        """Fold one measured interval (nanoseconds) into the statistics."""
        with self.lock:
            self.cnt += 1
            data = [interval]
            if self.cnt == 1:
                self.mean[: len(data)] = data[: len(self.mean)]
                self.thresh = (config.TEDA_N_SIGMA**2 + 1) / (2 * self.cnt)
                return
            self.ecc, self.thresh, self.mean, self.sigma = calculate_with_history(
                data, self.mean, self.sigma, self.cnt
            )
            spread = config.TEDA_N_SIGMA * math.sqrt(self.sigma)
            self.max_time = int(self.mean[0] + spread)
            self.min_time = int(self.mean[0] - spread)

    def _invoke_callback(self, trace_id: str) -> None:
        if self.callback is not None:
            self.callback(trace_id, self)

    def to_dict(self) -> dict[str, Any]:
        with self.lock:
            return {
                "id": self.id,
                "mean": list(self.mean),
                "sigma": self.sigma,
                "ecc": self.ecc,
                "thresh": self.thresh,
                "maxtime": self.max_time,
                "mintime": self.min_time,
                "cnt": self.cnt,
            }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ContainerState:
        mean = data.get("mean")
        return ContainerState(
            id=data.get("id") or "",
            mean=[float(x) for x in mean] if mean else _default_mean(),
            sigma=float(data.get("sigma") or 0.0),
            ecc=float(data.get("ecc") or 0.0),
            thresh=float(data.get("thresh") or 0.0),
            max_time=int(data.get("maxtime", DEFAULT_MAX_TIME)),
            min_time=int(data.get("mintime") or 0),
            cnt=int(data.get("cnt") or 0),
        )