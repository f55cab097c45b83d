"""
Pipeline performance monitor.

Observer only: it is handed timings and never touches the samples. One
instance is passed by reference to whoever reports timings.
"""

from __future__ import annotations

import functools
import logging
import math
import time
from collections import deque
from dataclasses import asdict, dataclass
from enum import Enum
from threading import Lock
from typing import Any, Callable, Deque, Dict, List, Optional

from inkpipe.core.filters import LowPass
from inkpipe.core.timers import now_ms

log = logging.getLogger("inkpipe.perf")

# Acceptance limits (relative to target_delay_ms unless noted)
P95_FACTOR = 1.5
MAX_AVG_PROCESSING_MS = 1.0
MAX_VIOLATION_RATE = 0.05

STAGE_ALPHA = 0.1


@dataclass(frozen=True)
class PerformanceSample:
    input_delay_ms: float
    pressure_ms: float
    smoothing_ms: float
    total_ms: float
    points: int
    t_ms: float


@dataclass(frozen=True)
class PerformanceStatistics:
    count: int = 0
    average_delay_ms: float = 0.0
    max_delay_ms: float = 0.0
    p95_delay_ms: float = 0.0
    average_processing_ms: float = 0.0
    max_processing_ms: float = 0.0
    violations: int = 0
    violation_rate: float = 0.0
    throughput: float = 0.0  # points / second over the recorded span


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"


@dataclass(frozen=True)
class BenchmarkResult:
    label: str
    iterations: int
    total_ms: float
    avg_ms: float
    min_ms: float
    max_ms: float
    ops_per_sec: float


def _p95(values: List[float]) -> float:
    xs = sorted(values)
    k = min(len(xs) * 95 // 100, len(xs) - 1)
    return xs[k]


def _mean(values) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


class PerformanceMonitor:
    def __init__(self, max_history: int = 1000, target_delay_ms: float = 16.0) -> None:
        if max_history <= 0:
            raise ValueError("max_history must be positive")
        self.max_history = max_history
        self.target_delay_ms = target_delay_ms

        self._samples: Deque[PerformanceSample] = deque(maxlen=max_history)
        self._stages: Dict[str, LowPass] = {}
        # fed from the flush timer thread too
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._samples)

    # ---- recording ----

    def record(
        self,
        input_delay_ms: float,
        pressure_ms: float = 0.0,
        smoothing_ms: float = 0.0,
        total_ms: float = 0.0,
        points: int = 1,
        t_ms: Optional[float] = None,
    ) -> PerformanceSample:
        s = PerformanceSample(
            input_delay_ms=float(input_delay_ms),
            pressure_ms=float(pressure_ms),
            smoothing_ms=float(smoothing_ms),
            total_ms=float(total_ms),
            points=int(points),
            t_ms=now_ms() if t_ms is None else float(t_ms),
        )
        with self._lock:
            self._samples.append(s)
        return s

    def observe_stage(self, name: str, ms: float) -> float:
        """Update the running average for one named stage; returns the new average."""
        with self._lock:
            lp = self._stages.get(name)
            if lp is None:
                lp = self._stages[name] = LowPass(STAGE_ALPHA)
            return lp.apply(ms)

    def measure(self, label: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator: time every call of the wrapped function under `label`."""
        def deco(fn):
            @functools.wraps(fn)
            def wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return fn(*args, **kwargs)
                finally:
                    self.observe_stage(label, (time.perf_counter() - start) * 1000.0)
            return wrapper
        return deco

    # ---- derived views ----

    def samples(self) -> List[PerformanceSample]:
        with self._lock:
            return list(self._samples)

    def statistics(self) -> PerformanceStatistics:
        samples = self.samples()
        if not samples:
            return PerformanceStatistics()

        delays = [s.input_delay_ms for s in samples]
        processing = [s.total_ms for s in samples]
        violations = sum(1 for d in delays if d > self.target_delay_ms)

        span_ms = samples[-1].t_ms - samples[0].t_ms
        points = sum(s.points for s in samples)
        throughput = points / span_ms * 1000.0 if span_ms > 0 else 0.0

        return PerformanceStatistics(
            count=len(samples),
            average_delay_ms=_mean(delays),
            max_delay_ms=max(delays),
            p95_delay_ms=_p95(delays),
            average_processing_ms=_mean(processing),
            max_processing_ms=max(processing),
            violations=violations,
            violation_rate=violations / len(samples),
            throughput=throughput,
        )

    def is_acceptable(self) -> bool:
        st = self.statistics()
        if st.count == 0:
            return True
        return (
            st.average_delay_ms <= self.target_delay_ms
            and st.p95_delay_ms <= self.target_delay_ms * P95_FACTOR
            and st.average_processing_ms <= MAX_AVG_PROCESSING_MS
            and st.violation_rate < MAX_VIOLATION_RATE
        )

    def trend(self, window: int = 100, threshold: float = 0.1) -> Trend:
        """
        Average delay of the newest `window` samples against the `window`
        before them. Relative changes within +-threshold count as stable.
        """
        samples = self.samples()
        if window <= 0 or len(samples) < 2 * window:
            return Trend.STABLE

        recent = _mean(s.input_delay_ms for s in samples[-window:])
        prior = _mean(s.input_delay_ms for s in samples[-2 * window:-window])
        if prior <= 0:
            return Trend.DEGRADING if recent > 0 else Trend.STABLE

        change = (recent - prior) / prior
        if change > threshold:
            return Trend.DEGRADING
        if change < -threshold:
            return Trend.IMPROVING
        return Trend.STABLE

    def stage_stats(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            return {
                name: {"avg_ms": lp.x, "last_ms": lp.last, "count": lp.count}
                for name, lp in self._stages.items()
            }

    def report(self) -> str:
        st = self.statistics()
        lines = [
            f"samples: {st.count} (target {self.target_delay_ms:.1f}ms)",
            f"delay avg/p95/max: {st.average_delay_ms:.2f} / {st.p95_delay_ms:.2f} / {st.max_delay_ms:.2f} ms",
            f"processing avg/max: {st.average_processing_ms:.3f} / {st.max_processing_ms:.3f} ms",
            f"violations: {st.violations} ({st.violation_rate * 100:.1f}%)",
            f"throughput: {st.throughput:.1f} points/s",
            f"trend: {self.trend().value}",
            f"acceptable: {'yes' if self.is_acceptable() else 'no'}",
        ]
        for name, s in sorted(self.stage_stats().items()):
            lines.append(f"stage {name}: avg {s['avg_ms']:.3f}ms over {s['count']} call(s)")
        return "\n".join(lines)

    def export(self) -> Dict[str, Any]:
        return {
            "target_delay_ms": self.target_delay_ms,
            "statistics": asdict(self.statistics()),
            "trend": self.trend().value,
            "stages": self.stage_stats(),
            "samples": [asdict(s) for s in self.samples()],
        }

    def reset(self) -> None:
        with self._lock:
            self._samples.clear()
            self._stages.clear()


def benchmark(fn: Callable[[], Any], iterations: int = 100, label: str = "benchmark") -> BenchmarkResult:
    """Call `fn` synchronously `iterations` times and summarise the timings."""
    if iterations <= 0:
        raise ValueError("iterations must be positive")

    times: List[float] = []
    for _ in range(iterations):
        start = time.perf_counter()
        fn()
        times.append((time.perf_counter() - start) * 1000.0)

    total = sum(times)
    result = BenchmarkResult(
        label=label,
        iterations=iterations,
        total_ms=total,
        avg_ms=total / iterations,
        min_ms=min(times),
        max_ms=max(times),
        ops_per_sec=iterations / total * 1000.0 if total > 0 else math.inf,
    )
    log.info("%s: %d iterations, avg %.4fms (min %.4f, max %.4f)",
             label, iterations, result.avg_ms, result.min_ms, result.max_ms)
    return result
