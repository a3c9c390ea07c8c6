"""Runs one pipeline step against a run's state."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Optional

from .branch import Parallel, Step, step_label, step_members
from .context import RunState
from .errors import is_logged, mark_logged
from .merge import apply_result
from .protocol import ProcessorDefinition
from .timers import RunTracer

logger = logging.getLogger(__name__)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class StepExecutor:
    """Executes a single processor or a parallel group.

    Every member's failure is captured as a :class:`ProcessorFailure` on the
    run state; nothing raised by a processor escapes :meth:`run_step`, and
    one member failing never stops its siblings.
    """

    def __init__(
        self,
        process_name: str,
        *,
        log: Optional[logging.Logger] = None,
        tracer: Optional[RunTracer] = None,
    ) -> None:
        self.process_name = process_name
        self.log = log or logger
        self.tracer = tracer or RunTracer(batch_name=process_name)

    def runnable_members(
        self, step: Step, state: RunState
    ) -> list[ProcessorDefinition]:
        """Drop members whose prerequisite already ran in this run and failed."""
        runnable = []
        for processor in step_members(step):
            failed = [name for name in processor.prerequisites if state.failed(name)]
            if failed:
                for prerequisite in failed:
                    self.log.warning(
                        "Processor '%s' requires '%s' to run first, but it failed "
                        "with an error. Skipping '%s'...",
                        processor.name,
                        prerequisite,
                        processor.name,
                    )
                state.skipped.append(processor.name)
                continue
            runnable.append(processor)
        return runnable

    async def run_step(self, step: Step, state: RunState) -> None:
        members = self.runnable_members(step, state)
        if not members:
            return

        label = step_label(step)
        self.tracer.start(label)
        self.log.debug("Executing '%s' processor...", label)
        try:
            if isinstance(step, Parallel):
                await asyncio.gather(
                    *(self.run_processor(processor, state) for processor in members)
                )
            else:
                await self.run_processor(members[0], state)
        finally:
            self.tracer.end(label)

    async def run_processor(self, processor: ProcessorDefinition, state: RunState) -> None:
        self.tracer.start(processor.name)
        try:
            if await _resolve(processor.run_if(state.data, state.context)):
                result = await _resolve(processor.process(state.data, state.context))
                apply_result(state, result)
            else:
                self.log.debug(
                    "Skipping processor '%s' of '%s': run_if was falsy.",
                    processor.name,
                    self.process_name,
                )
        except Exception as exc:
            self.tracer.end(processor.name)
            self._handle_failure(processor.name, exc, state)
            return

        self.tracer.end(processor.name)
        state.record(processor.name, ok=True)
        state.ensure_cookies(processor.name, self.log)

    def _handle_failure(self, name: str, exc: Exception, state: RunState) -> None:
        state.record_failure(name, exc)
        state.ensure_cookies(name, self.log)

        if not is_logged(exc):
            self.log.error(
                "Processor '%s' for '%s' process exception: %s",
                name,
                self.process_name,
                exc,
                exc_info=exc,
            )
            mark_logged(exc)
