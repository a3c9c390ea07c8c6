"""Per-invocation run state: the two accumulators and the outcome log."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .protocol import Accumulator, ProcessorFailure, StepOutcome

COOKIES_KEY = "cookies"


@dataclass
class RunState:
    """Mutable state of one run of a process.

    ``data`` is the response-facing accumulator and ``context`` the
    process-facing one.  Both are handed by reference to every processor,
    so the dict objects themselves are never replaced during a run; the
    merge step only overlays onto them.

    A fresh ``RunState`` is built by :meth:`begin` for every invocation and
    is never shared between runs.
    """

    process_name: str
    data: Accumulator = field(default_factory=lambda: {COOKIES_KEY: {}})
    context: Accumulator = field(default_factory=dict)
    errors: list[ProcessorFailure] = field(default_factory=list)
    completed_steps: list[StepOutcome] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.publish_errors()

    @classmethod
    def begin(
        cls, process_name: str, starting_context: Optional[Mapping[str, Any]] = None
    ) -> "RunState":
        context = dict(starting_context or {})
        context["process_name"] = process_name
        return cls(process_name=process_name, context=context)

    def record(self, name: str, ok: bool) -> None:
        self.completed_steps.append(StepOutcome(name=name, ok=ok))
        self.publish_errors()

    def publish_errors(self) -> None:
        """Refresh the read-only snapshot of failures processors see in the context.

        ``errors`` itself is never handed out, so no processor can remove a
        recorded failure; a snapshot replaced or dropped by a processor is
        restored the next time an outcome is recorded.
        """
        self.context["errors"] = tuple(self.errors)

    def record_failure(self, name: str, exc: BaseException) -> ProcessorFailure:
        failure = ProcessorFailure(occurred_in=name, message=str(exc), exc=exc)
        self.errors.append(failure)
        self.record(name, ok=False)
        return failure

    def failed(self, name: str) -> bool:
        """True if a processor called *name* already ran and failed."""
        return any(o.name == name and not o.ok for o in self.completed_steps)

    def ensure_cookies(self, processor_name: str, logger: logging.Logger) -> bool:
        """Reset ``data["cookies"]`` if *processor_name* broke its shape.

        Returns True when a correction was needed.
        """
        if isinstance(self.data.get(COOKIES_KEY), dict):
            return False
        logger.error(
            "Processor '%s' invalidly changed data.cookies. Resetting to normal object.",
            processor_name,
        )
        self.data[COOKIES_KEY] = {}
        return True

    def drop_empty_cookies(self) -> None:
        if self.data.get(COOKIES_KEY) == {}:
            del self.data[COOKIES_KEY]
