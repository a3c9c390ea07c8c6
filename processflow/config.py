"""Runtime configuration for processflow."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

TRACE_TIME_ENV = "TRACE_TIME"


@dataclass
class ProcessflowConfig:
    """Configuration shared by the processes of one application.

    Attributes:
        trace_time: Record per-processor timings for every run and log a
            report when the run completes (default: False)
        trace_min_duration_ms: Runs faster than this are not reported
            (default: 0.0)
    """

    trace_time: bool = False
    trace_min_duration_ms: float = 0.0

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        load_env_file: bool = True,
    ) -> "ProcessflowConfig":
        """Build a config from ``TRACE_TIME``.

        ``TRACE_TIME=true`` enables tracing; a positive number enables it
        and only reports runs taking at least that many milliseconds.
        """
        if environ is None:
            if load_env_file:
                env_path = Path.cwd() / ".env"
                if env_path.exists():
                    load_dotenv(env_path, override=False)
            environ = os.environ

        raw = (environ.get(TRACE_TIME_ENV) or "").strip()
        if raw.lower() == "true":
            return cls(trace_time=True)
        try:
            min_duration = float(raw)
        except ValueError:
            return cls()
        if min_duration > 0:
            return cls(trace_time=True, trace_min_duration_ms=min_duration)
        return cls()
