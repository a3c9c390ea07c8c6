"""Process façade: composition, registration and the three run modes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

from .branch import Parallel, Step, flatten_steps, parallel, remove_processor
from .config import ProcessflowConfig
from .context import COOKIES_KEY
from .cookies import CookieDefaults, supports_cookies, write_cookies
from .errors import (
    InvalidProcessError,
    ProcessError,
    ProcessorError,
    is_logged,
    status_code_of,
)
from .loader import ProcessorLoader, load_module, module_name
from .prerequisites import check_prerequisites, validate_pipeline
from .protocol import (
    ConfigurationIssue,
    ProcessorDefinition,
    ProcessResult,
    RunIfFn,
    create_processor,
)
from .response import ResponseWriter, send_errors, send_ok
from .scheduler import Scheduler
from .timers import RunTracer

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Could not complete request."

HttpHandler = Callable[..., Awaitable[None]]


class Process:
    """A named pipeline of processors.

    The step list is fixed at composition (apart from :meth:`register` and
    :meth:`deregister`) and validated right away.  Problems found there make
    the process permanently invalid: every run raises
    :class:`InvalidProcessError` until the process is rebuilt.

    Runs never share state; :meth:`start` may be awaited concurrently.

    Example::

        process = compose("checkout", processors=[
            authenticate,
            parallel(load_cart, load_user),
            price_cart,
        ])
        result = await process.start({"params": params})
    """

    def __init__(
        self,
        process_name: Any,
        *,
        processors_path: Union[str, Path, None] = None,
        pipeline: Optional[Sequence[Any]] = None,
        processors: Optional[Sequence[Any]] = None,
        cookie_options: CookieDefaults = None,
        config: Optional[ProcessflowConfig] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.process_name = str(process_name or "Unknown")
        self.cookie_options = cookie_options
        self.config = config or ProcessflowConfig.from_env()
        self.log = log or logger
        self._static_issues: list[ConfigurationIssue] = []
        self._steps: list[Step] = []
        self._background: set[asyncio.Task] = set()

        self.log.debug("Compose process: %s", self.process_name)
        tracer = self._tracer(f"Compose {self.process_name}")
        tracer.begin()

        if processors_path is not None:
            loader = ProcessorLoader(self.process_name, processors_path)
            self._steps = self._dedupe(loader.load(pipeline))
            self._static_issues.extend(loader.issues)
        elif processors is not None:
            self._steps = self._dedupe(self._normalise_steps(processors))

        tracer.write()
        for issue in self.configuration_errors:
            self.log.error(
                "Process '%s' has invalid configuration: %s (processor: %s)",
                self.process_name,
                issue.reason,
                issue.processor_name,
            )

    # ------------------------------------------------------------------ #
    # Composition
    # ------------------------------------------------------------------ #

    def _normalise_steps(self, items: Any) -> list[Step]:
        if not isinstance(items, (list, tuple)):
            self._static_issues.append(
                ConfigurationIssue(
                    processor_name=None,
                    reason="Processor pipeline not valid. Must be a list.",
                )
            )
            return []

        steps: list[Step] = []
        for item in items:
            if isinstance(item, (Parallel, list, tuple)):
                members = [m for m in map(self._as_definition, parallel(*item)) if m]
                if members:
                    steps.append(Parallel(tuple(members)))
                continue
            definition = self._as_definition(item)
            if definition is not None:
                steps.append(definition)
        return steps

    def _as_definition(self, item: Any) -> Optional[ProcessorDefinition]:
        if isinstance(item, ProcessorDefinition):
            return item
        name = getattr(item, "name", None) or getattr(item, "__name__", None)
        try:
            return create_processor(name, item)
        except (TypeError, ValueError) as exc:
            self._static_issues.append(
                ConfigurationIssue(processor_name=name, reason=str(exc))
            )
            return None

    def _dedupe(self, steps: list[Step]) -> list[Step]:
        seen: set[str] = set()
        unique: list[Step] = []
        for step in steps:
            if isinstance(step, Parallel):
                members = tuple(m for m in step.members if self._first(m, seen))
                if members:
                    unique.append(Parallel(members))
            elif self._first(step, seen):
                unique.append(step)
        return unique

    def _first(self, processor: ProcessorDefinition, seen: set[str]) -> bool:
        if processor.name in seen:
            self.log.warning(
                "Processor with name '%s' already registered. Skipping.", processor.name
            )
            return False
        seen.add(processor.name)
        return True

    @property
    def steps(self) -> tuple[Step, ...]:
        return tuple(self._steps)

    @property
    def configuration_errors(self) -> tuple[ConfigurationIssue, ...]:
        return tuple(self._static_issues) + tuple(validate_pipeline(self._steps))

    @property
    def is_valid(self) -> bool:
        return not self.configuration_errors

    def register(
        self,
        name: str,
        processor: Any,
        *,
        run_if: Optional[RunIfFn] = None,
        prerequisites: Optional[Sequence[str]] = None,
    ) -> "Process":
        """Append *processor* as a new sequential step.

        Returns the process for chaining.  A name that is already registered
        is skipped with a warning.

        Raises:
            TypeError: If the processor does not have the expected shape.
                The problem is also recorded, so the process stays invalid.
        """
        try:
            definition = create_processor(
                name, processor, run_if=run_if, prerequisites=prerequisites
            )
        except (TypeError, ValueError) as exc:
            self._static_issues.append(
                ConfigurationIssue(processor_name=str(name), reason=str(exc))
            )
            raise

        loaded = {p.name for p in flatten_steps(self._steps)}
        if definition.name in loaded:
            self.log.warning(
                "Processor with name '%s' already registered. Skipping.", definition.name
            )
            return self

        for issue in check_prerequisites(definition, loaded):
            self.log.error(
                "Processor '%s' of '%s': %s", name, self.process_name, issue.reason
            )

        self.log.debug(
            "Adding processor '%s' to process '%s'.", definition.name, self.process_name
        )
        self._steps.append(definition)
        return self

    def deregister(self, name: str) -> "Process":
        """Remove every processor called *name*; returns the process."""
        self._steps = remove_processor(self._steps, name)
        self._static_issues = [
            issue for issue in self._static_issues if issue.processor_name != name
        ]
        return self

    # ------------------------------------------------------------------ #
    # Run modes
    # ------------------------------------------------------------------ #

    def _tracer(self, batch_name: str) -> RunTracer:
        return RunTracer(
            batch_name=batch_name,
            enabled=self.config.trace_time,
            min_duration_ms=self.config.trace_min_duration_ms,
            log=self.log,
        )

    async def start(
        self,
        starting_context: Optional[Mapping[str, Any]] = None,
        continue_on_error: bool = False,
    ) -> ProcessResult:
        """Run the process and return its ``data``, ``context`` and ``errors``.

        Args:
            starting_context: Initial context; a shallow copy is threaded
                through the processors.
            continue_on_error: Keep running after processor failures and
                report them in ``result.errors`` instead of raising.

        Raises:
            InvalidProcessError: The process composition is invalid.
            ProcessError: A processor failed and ``continue_on_error`` is off.
        """
        scheduler = Scheduler(
            self.process_name,
            self._steps,
            configuration_errors=self.configuration_errors,
            log=self.log,
            tracer=self._tracer(f"Start -> {self.process_name}"),
        )
        return await scheduler.run(starting_context, continue_on_error)

    async def send(
        self,
        response: Any,
        starting_context: Optional[Mapping[str, Any]] = None,
        continue_on_error: bool = False,
    ) -> None:
        """Run the process and write the outcome to *response*.

        Cookies in ``data["cookies"]`` are written as response cookies and
        removed from the body.  Any failure becomes an error response.
        """
        try:
            result = await self.start(starting_context, continue_on_error)
            if result.errors:
                raise ProcessError(self.process_name, starting_context, result.errors)

            data = result.data
            cookies = data.pop(COOKIES_KEY, None) or {}
            if cookies:
                if supports_cookies(response):
                    write_cookies(response, cookies, self.cookie_options)
                else:
                    self.log.warning(
                        "Response given to send for '%s' does not support cookies, "
                        "but cookies were attached to the data object. Cannot send cookies.",
                        self.process_name,
                    )
            send_ok(response, data)
        except Exception as exc:
            self.write_errors(response, exc)

    def fire_and_forget(
        self,
        starting_context: Optional[Mapping[str, Any]] = None,
        continue_on_error: bool = False,
    ) -> asyncio.Task:
        """Start the process in the background without waiting for it.

        Errors are logged once and never propagated.  Must be called with a
        running event loop.
        """
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run_detached(starting_context, continue_on_error))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _run_detached(
        self, starting_context: Optional[Mapping[str, Any]], continue_on_error: bool
    ) -> None:
        try:
            result = await self.start(starting_context, continue_on_error)
            if result.errors:
                raise ProcessError(self.process_name, starting_context, result.errors)
        except ProcessError as exc:
            if not exc.all_errors_logged():
                self.log.error("Error in process '%s': %s", self.process_name, exc, exc_info=exc)
        except Exception as exc:
            if not is_logged(exc):
                self.log.error("Error in process '%s': %s", self.process_name, exc, exc_info=exc)

    async def wait_for_background(self) -> None:
        """Wait until every :meth:`fire_and_forget` run has finished."""
        pending = [task for task in self._background if not task.done()]
        while pending:
            await asyncio.gather(*pending)
            pending = [task for task in self._background if not task.done()]

    def use(self) -> HttpHandler:
        """Return an ``async handler(request, response, next=None)``.

        The starting context is ``{"params": ..., "request": request}`` where
        params come from ``request.parameters`` or else the merge of
        ``body``, ``query``, ``params`` and ``cookies``.
        """

        async def handler(request: Any, response: Any, next: Optional[Callable] = None) -> None:
            if request is None:
                raise ValueError(
                    "request parameter is required and should be an HTTP request object."
                )
            if not (
                isinstance(response, ResponseWriter)
                and callable(response.status)
                and callable(response.send)
            ):
                raise TypeError(
                    "response parameter is required and should have a status "
                    "and send function defined."
                )

            context = {"params": request_parameters(request), "request": request}
            await self.send(response, context)

            if callable(next):
                next()

        return handler

    def write_errors(self, response: Any, exc: BaseException) -> None:
        """Write *exc* as an error response, logging it if nobody has yet."""
        if isinstance(exc, ProcessError):
            processor_error = (
                exc.get_most_severe_processor_error() or exc.first_processor_error()
            )
            text, errors = None, None
            if isinstance(processor_error, ProcessorError):
                info = processor_error.response_info
                text = info.text or processor_error.message
                errors = info.errors
            send_errors(
                response,
                text or str(exc),
                errors,
                status_code_of(processor_error),
            )
            should_log = not exc.all_errors_logged()
        elif isinstance(exc, InvalidProcessError):
            send_errors(response, str(exc), exc.details)
            should_log = True
        else:
            send_errors(response, UNEXPECTED_ERROR_MESSAGE)
            should_log = not is_logged(exc)

        if should_log:
            self.log.error("Error in process '%s': %s", self.process_name, exc, exc_info=exc)


def request_parameters(request: Any) -> dict[str, Any]:
    parameters = getattr(request, "parameters", None)
    if parameters is not None:
        return parameters
    merged: dict[str, Any] = {}
    for source in ("body", "query", "params", "cookies"):
        value = getattr(request, source, None)
        if isinstance(value, Mapping):
            merged.update(value)
    return merged


def compose(process_name: Any, **options: Any) -> Process:
    """Compose a process.

    Args:
        process_name: Distinct name used in logs and errors.
        processors_path: Directory of processor modules.  With ``pipeline``
            only the named modules are used, in that order; without it every
            module in the directory runs, in one parallel step.
        pipeline: Module names and ``parallel(...)`` groups of names.
        processors: Pre-built steps: processor definitions or processor-shaped
            objects, and ``parallel(...)`` groups of them.
        cookie_options: Default cookie options, or a callable returning them
            that is called for each cookie written.
        config: Explicit :class:`ProcessflowConfig`; read from the
            environment when omitted.
        log: Logger receiving this process's diagnostics.
    """
    return Process(process_name, **options)


def single(name: Any, path_to_processor: Union[str, Path]) -> HttpHandler:
    """Compose a one-processor process from a module file; return its handler."""
    process = compose(name)
    process.register(module_name(path_to_processor), load_module(path_to_processor))
    return process.use()
