"""Pipeline scheduler: runs the steps of a process in order."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from .branch import Step, step_label
from .context import RunState
from .errors import InvalidProcessError, ProcessError, SchedulerError, mark_logged
from .executor import StepExecutor
from .protocol import ConfigurationIssue, ProcessResult
from .timers import RunTracer

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Scheduler:
    """Drives one run of a pipeline.

    ``IDLE -> VALIDATING -> RUNNING -> SUCCEEDED | FAILED``

    Steps never overlap: step N+1 starts only after every member of step N
    has settled.  Before each step, and once more after the last one, any
    recorded failure stops the run unless ``continue_on_error`` is set.

    A scheduler is built per invocation; it owns the :class:`RunState` of
    that invocation and nothing else.
    """

    def __init__(
        self,
        process_name: str,
        steps: Sequence[Step],
        *,
        configuration_errors: Sequence[ConfigurationIssue] = (),
        log: Optional[logging.Logger] = None,
        tracer: Optional[RunTracer] = None,
    ) -> None:
        self.process_name = process_name
        self.steps = tuple(steps)
        self.configuration_errors = tuple(configuration_errors)
        self.log = log or logger
        self.tracer = tracer or RunTracer(batch_name=process_name)
        self.phase = RunPhase.IDLE
        self.state: Optional[RunState] = None

    async def run(
        self,
        starting_context: Optional[Mapping[str, Any]] = None,
        continue_on_error: bool = False,
    ) -> ProcessResult:
        self.phase = RunPhase.VALIDATING
        # Invalid composition fails every run, before any state exists
        if self.configuration_errors:
            self.phase = RunPhase.FAILED
            raise InvalidProcessError(self.process_name, self.configuration_errors)

        state = RunState.begin(self.process_name, starting_context)
        self.state = state
        executor = StepExecutor(self.process_name, log=self.log, tracer=self.tracer)

        self.phase = RunPhase.RUNNING
        self.tracer.begin()
        try:
            for step in self.steps:
                self._check_errors(state, starting_context, continue_on_error)
                try:
                    await executor.run_step(step, state)
                except Exception as exc:
                    raise SchedulerError(self.process_name, step_label(step)) from exc

            state.drop_empty_cookies()
            self._check_errors(state, starting_context, continue_on_error)
        except ProcessError:
            self.phase = RunPhase.FAILED
            raise
        except Exception as exc:
            self.phase = RunPhase.FAILED
            self.log.error(
                "Unexpected error in process '%s' start.",
                self.process_name,
                exc_info=exc,
            )
            mark_logged(exc)
            raise
        finally:
            self.tracer.write()

        self.phase = RunPhase.SUCCEEDED
        return ProcessResult(
            data=state.data, context=state.context, errors=list(state.errors)
        )

    def _check_errors(
        self,
        state: RunState,
        starting_context: Optional[Mapping[str, Any]],
        continue_on_error: bool,
    ) -> None:
        if state.errors and not continue_on_error:
            raise ProcessError(self.process_name, starting_context, state.errors)
