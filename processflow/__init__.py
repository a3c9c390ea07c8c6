"""Request-processing pipelines built from named processors.

Public surface::

    from processflow import (
        compose,
        single,
        parallel,
        Process,
        ProcessorDefinition,
        ProcessResult,
        ProcessError,
        ProcessorError,
        InvalidProcessError,
        SchedulerError,
        CookieWithOptions,
    )
"""

import logging

from .branch import Parallel, parallel
from .config import ProcessflowConfig
from .context import RunState
from .cookies import CookieWithOptions
from .errors import (
    InvalidProcessError,
    ProcessError,
    ProcessflowError,
    ProcessorError,
    ResponseInfo,
    SchedulerError,
)
from .process import Process, compose, single
from .protocol import (
    ConfigurationIssue,
    ProcessorDefinition,
    ProcessorFailure,
    ProcessorProtocol,
    ProcessResult,
    StepOutcome,
    create_processor,
)
from .response import ResponseWriter
from .scheduler import RunPhase, Scheduler

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "compose",
    "single",
    "parallel",
    "Parallel",
    "Process",
    "ProcessflowConfig",
    "RunState",
    "RunPhase",
    "Scheduler",
    "CookieWithOptions",
    "ProcessorDefinition",
    "ProcessorProtocol",
    "ProcessorFailure",
    "ProcessResult",
    "StepOutcome",
    "ConfigurationIssue",
    "create_processor",
    "ProcessflowError",
    "ProcessError",
    "ProcessorError",
    "InvalidProcessError",
    "SchedulerError",
    "ResponseInfo",
    "ResponseWriter",
]
