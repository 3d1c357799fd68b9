"""Resource profiling for conversion runs."""

import json
import time
import logging
import threading
import psutil
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional

_MB = 1024 * 1024


@dataclass
class ConversionMetrics:
    """Resource usage and output counters of one conversion."""
    label: str
    started_at: float
    duration: float
    input_bytes: int
    memory_start_mb: float
    memory_peak_mb: float
    memory_end_mb: float
    cpu_percent: float
    throughput_mbps: float
    patterns_found: int = 0
    levels: int = 0
    tables_created: int = 0
    rows_created: int = 0


@dataclass
class ProfileSession:
    """Handle of one profiled run, owned by the caller that started it."""
    label: str
    input_bytes: int
    started_at: float
    clock: float
    memory_start_mb: float
    memory_peak_mb: float
    cpu_samples: List[float] = field(default_factory=list)
    closed: bool = False


def _rss_mb(process: psutil.Process) -> float:
    return process.memory_info().rss / _MB


class PerformanceProfiler:
    """
    Measures duration, memory, CPU and throughput of conversions.

    The converter samples once per level so that peak memory reflects the
    largest intermediate table set, not just the final one. Every run gets
    its own ``ProfileSession``, so concurrent conversions on one converter
    never share state; finished sessions are kept in ``history``. Memory
    and CPU figures are process-wide.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.history: List[ConversionMetrics] = []
        self._process = psutil.Process()
        self._lock = threading.Lock()

    @contextmanager
    def session(self, label: str, input_bytes: int = 0) -> Iterator[ProfileSession]:
        """
        Profile the enclosed block.

        Call ``stop`` inside the block to record counters; a session still
        open on exit is closed without them.
        """
        handle = self.start(label, input_bytes)
        try:
            yield handle
        finally:
            if not handle.closed:
                self.stop(handle)

    def start(self, label: str, input_bytes: int = 0) -> ProfileSession:
        """Open a session and return its handle."""
        memory = _rss_mb(self._process)
        self._process.cpu_percent()
        self.logger.debug(f"Profiling {label} ({input_bytes} bytes)")
        return ProfileSession(
            label=label,
            input_bytes=input_bytes,
            started_at=time.time(),
            clock=time.perf_counter(),
            memory_start_mb=memory,
            memory_peak_mb=memory
        )

    def sample(self, handle: ProfileSession) -> None:
        """Record current memory and CPU usage into ``handle``."""
        if handle.closed:
            return

        try:
            memory = _rss_mb(self._process)
            cpu = self._process.cpu_percent()
        except psutil.Error as e:
            self.logger.warning(f"Performance sampling failed: {e}")
            return

        handle.memory_peak_mb = max(handle.memory_peak_mb, memory)
        handle.cpu_samples.append(cpu)

    def stop(self, handle: ProfileSession, **counters: int) -> ConversionMetrics:
        """
        Close a session.

        Args:
            handle: Session returned by ``start``
            **counters: ``patterns_found``, ``levels``, ``tables_created``
                and ``rows_created`` of the run

        Returns:
            The recorded ConversionMetrics

        Raises:
            ValueError: If the session is already closed
        """
        if handle.closed:
            raise ValueError(f"Profiling session {handle.label} is already closed")

        self.sample(handle)
        handle.closed = True
        duration = time.perf_counter() - handle.clock

        try:
            memory_end = _rss_mb(self._process)
        except psutil.Error as e:
            self.logger.warning(f"Final memory sample failed: {e}")
            memory_end = handle.memory_start_mb

        samples = handle.cpu_samples
        metrics = ConversionMetrics(
            label=handle.label,
            started_at=handle.started_at,
            duration=duration,
            input_bytes=handle.input_bytes,
            memory_start_mb=handle.memory_start_mb,
            memory_peak_mb=handle.memory_peak_mb,
            memory_end_mb=memory_end,
            cpu_percent=sum(samples) / len(samples) if samples else 0.0,
            throughput_mbps=handle.input_bytes / _MB / duration if duration > 0 else 0.0,
            **counters
        )
        with self._lock:
            self.history.append(metrics)

        self.logger.info(
            f"{metrics.label}: {metrics.duration:.2f}s, {metrics.throughput_mbps:.2f} MB/s, "
            f"peak {metrics.memory_peak_mb:.1f} MB, {metrics.tables_created} table(s), "
            f"{metrics.rows_created} row(s)"
        )
        return metrics

    def summary(self) -> Dict[str, Any]:
        """Aggregate every recorded session."""
        with self._lock:
            history = list(self.history)
        runs = len(history)
        if not runs:
            return {"runs": 0}

        def total(name: str) -> float:
            return sum(getattr(m, name) for m in history)

        return {
            "runs": runs,
            "duration": total("duration"),
            "input_mb": total("input_bytes") / _MB,
            "tables_created": total("tables_created"),
            "rows_created": total("rows_created"),
            "mean_throughput_mbps": total("throughput_mbps") / runs,
            "mean_memory_peak_mb": total("memory_peak_mb") / runs,
            "mean_cpu_percent": total("cpu_percent") / runs,
        }

    def export(self, fmt: str = "json") -> str:
        """Render the history as JSON or as a short text report."""
        if fmt == "json":
            with self._lock:
                return json.dumps([asdict(m) for m in self.history], indent=2)
        if fmt != "text":
            raise ValueError(f"Unsupported export format: {fmt}")

        stats = self.summary()
        if not stats["runs"]:
            return "Profile: no conversions recorded"
        return "\n".join([
            f"Profile: {stats['runs']} conversion(s) in {stats['duration']:.2f}s",
            f"  Input {stats['input_mb']:.2f} MB at {stats['mean_throughput_mbps']:.2f} MB/s",
            f"  Peak memory {stats['mean_memory_peak_mb']:.1f} MB, "
            f"CPU {stats['mean_cpu_percent']:.0f}%",
            f"  Output {stats['tables_created']:.0f} table(s), {stats['rows_created']:.0f} row(s)",
        ])
