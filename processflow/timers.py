"""Opt-in timing of processors and steps within one run."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class Trace:
    start: float
    end: Optional[float] = None

    @property
    def duration_ms(self) -> float:
        if self.end is None:
            return 0.0
        return (self.end - self.start) * 1000.0


@dataclass
class RunTracer:
    """Collects named traces for one run and reports them as a batch.

    Disabled tracers record nothing, so callers never need to check
    ``enabled`` themselves.
    """

    batch_name: str
    enabled: bool = False
    min_duration_ms: float = 0.0
    log: logging.Logger = logger
    traces: dict[str, Trace] = field(default_factory=dict)
    _started: Optional[float] = None
    _finished: Optional[float] = None

    def begin(self) -> None:
        if self.enabled:
            self._started = time.perf_counter()

    def start(self, name: str) -> None:
        if self.enabled:
            self.traces[name] = Trace(start=time.perf_counter())

    def end(self, name: str) -> None:
        if not self.enabled:
            return
        trace = self.traces.get(name)
        if trace is None:
            self.log.warning("Missing timer trace for: %s", name)
            return
        trace.end = time.perf_counter()

    @property
    def total_ms(self) -> float:
        if self._started is not None and self._finished is not None:
            return (self._finished - self._started) * 1000.0
        return sum(trace.duration_ms for trace in self.traces.values())

    def report(self) -> str:
        lines = [f"Timer: {self.batch_name} ({self.total_ms:,.0f}ms)", "-" * 23]
        for name, trace in self.traces.items():
            lines.append(f"{trace.duration_ms:>7,.1f}ms - {name}")
        return "\n".join(lines)

    def write(self) -> Optional[str]:
        """Close the batch and log its report; returns the report if logged."""
        if not self.enabled:
            return None
        self._finished = time.perf_counter()
        if self.total_ms < self.min_duration_ms:
            return None
        text = self.report()
        self.log.info("%s", text)
        return text
