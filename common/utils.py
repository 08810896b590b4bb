from __future__ import annotations

from typing import Any, Deque, Dict, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
from collections import deque
import math
import time


def iso_now_ms() -> str:
    """UTC ISO-8601 timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def elapsed_ms(t0: float) -> float:
    """Milliseconds since a `time.perf_counter()` reading."""
    return (time.perf_counter() - t0) * 1e3


@dataclass(slots=True)
class CadenceMeter:
    """
    Tracks the achieved rate of a fixed-cadence loop.

    Usage:
        meter = CadenceMeter(period=1 / 30)
        while True:
            t0 = meter.start()
            # work...
            time.sleep(meter.stop(t0))

    A cycle whose work took longer than `period` counts as an overrun and the
    next cycle starts immediately; missed ticks are not replayed.
    """
    period: float
    window: int = 50
    overruns: int = 0
    _starts: Deque[float] = field(default_factory=deque, repr=False)

    def __post_init__(self) -> None:
        if self.period <= 0:
            raise ValueError("period must be > 0")
        self._starts = deque(maxlen=max(2, self.window))

    def start(self) -> float:
        t = time.perf_counter()
        self._starts.append(t)
        return t

    def stop(self, t0: float) -> float:
        """End a cycle started at `t0`; returns seconds to sleep before the next one."""
        remaining = self.period - (time.perf_counter() - t0)
        if remaining < 0:
            self.overruns += 1
            return 0.0
        return remaining

    @property
    def hz(self) -> float:
        if len(self._starts) < 2:
            return 0.0
        dt = (self._starts[-1] - self._starts[0]) / (len(self._starts) - 1)
        return 0.0 if dt <= 0 else 1.0 / dt


@dataclass(slots=True)
class LatencyStats:
    """
    Online mean/std/min/max of per-cycle latencies (Welford).
    """
    n: int = 0
    mean: float = 0.0
    m2: float = 0.0
    lo: Optional[float] = None
    hi: Optional[float] = None

    def add(self, x: float) -> None:
        self.n += 1
        d = x - self.mean
        self.mean += d / self.n
        self.m2 += d * (x - self.mean)
        self.lo = x if self.lo is None else min(self.lo, x)
        self.hi = x if self.hi is None else max(self.hi, x)

    @property
    def std(self) -> float:
        return math.sqrt(self.m2 / (self.n - 1)) if self.n > 1 else 0.0

    def summary(self, ndigits: int = 2) -> Dict[str, Any]:
        def r(v):
            return None if v is None else round(v, ndigits)
        return {"n": self.n, "mean": r(self.mean), "std": r(self.std), "min": r(self.lo), "max": r(self.hi)}
