"""Error types raised while composing and running a process."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

if TYPE_CHECKING:
    from .protocol import ConfigurationIssue, ProcessorFailure

logger = logging.getLogger(__name__)


def is_logged(exc: BaseException) -> bool:
    """Return True when *exc* carries the ``do_not_log`` marker."""
    return bool(getattr(exc, "do_not_log", False))


def mark_logged(exc: BaseException) -> None:
    """Flag *exc* so that outer handlers do not log it a second time."""
    try:
        exc.do_not_log = True  # type: ignore[attr-defined]
    except AttributeError:
        # Exceptions defining __slots__ cannot carry the marker
        pass


def status_code_of(exc: Optional[BaseException]) -> Optional[int]:
    """Return the response status code an exception opted into, if any."""
    if exc is None:
        return None
    if isinstance(exc, ProcessorError):
        return exc.response_info.status_code
    code = getattr(exc, "status_code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    return None


class ProcessflowError(Exception):
    """Base exception for all processflow errors."""


class ResponseInfo(BaseModel):
    """What a :class:`ProcessorError` contributes to an error response."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    text: Optional[str] = Field(
        default=None, description="Message sent to the client instead of the error message"
    )
    errors: Any = Field(default=None, description="Details serialized in the response")
    status_code: Optional[int] = Field(
        default=None, alias="statusCode", description="Response status code"
    )


def _response_info(value: Any) -> ResponseInfo:
    """Validate a processor's response info, dropping fields that do not fit.

    A malformed payload must not replace the error being raised, so each
    invalid field is logged and left out while the valid ones are kept.
    """
    if isinstance(value, ResponseInfo):
        return value
    raw = dict(value) if isinstance(value, Mapping) else {}
    try:
        return ResponseInfo.model_validate(raw)
    except ValidationError:
        kept = {}
        for key, item in raw.items():
            try:
                ResponseInfo.model_validate({key: item})
            except ValidationError:
                logger.warning("Ignoring invalid response info field %r: %r", key, item)
                continue
            kept[key] = item
        return ResponseInfo.model_validate(kept)


class ProcessorError(ProcessflowError):
    """Raise from a processor to shape the error response.

    Example::

        raise ProcessorError(
            "Could not do the thing",
            {"text": "Thing was bad.", "errors": {"code": "BAD"}, "status_code": 400},
        )
    """

    def __init__(
        self,
        message: str,
        response_info: ResponseInfo | Mapping[str, Any] | None = None,
    ) -> None:
        self.response_info = _response_info(response_info)
        self.message = message
        super().__init__(message)


class InvalidProcessError(ProcessflowError):
    """Raised on every run of a process whose composition is invalid."""

    def __init__(
        self, process_name: str, configuration_errors: Sequence["ConfigurationIssue"]
    ) -> None:
        self.process_name = process_name
        self.configuration_errors = tuple(configuration_errors)
        super().__init__(
            f"Process '{process_name}' has invalid configuration. See logs for details."
        )

    @property
    def details(self) -> dict[str, Any]:
        return {
            "configuration_errors": [asdict(issue) for issue in self.configuration_errors]
        }


class ProcessError(ProcessflowError):
    """Raised when one or more processors failed during a run.

    Attributes:
        process_name: Name of the failed process.
        starting_context: The context the run was started with, kept for
            diagnostics and reproduction.
        errors_from_processors: Every :class:`ProcessorFailure` recorded
            during the run, in the order they settled.  Parallel steps can
            contribute more than one.
    """

    def __init__(
        self,
        process_name: str,
        starting_context: Optional[Mapping[str, Any]],
        errors_from_processors: Sequence["ProcessorFailure"],
    ) -> None:
        self.process_name = process_name
        self.starting_context = dict(starting_context or {})
        self.errors_from_processors = list(errors_from_processors or [])
        super().__init__(f"Error executing process '{process_name}'.")

    def get_most_severe_processor_error(self) -> Optional[BaseException]:
        """Return the wrapped error with the highest response status code.

        Failures are not meaningfully ordered in time when they come from a
        parallel step, so the numerically highest status code decides.  Ties
        go to the first one recorded.  Returns ``None`` when no wrapped error
        carries a status code.
        """
        most_severe: Optional[BaseException] = None
        highest: Optional[int] = None
        for failure in self.errors_from_processors:
            code = status_code_of(failure.exc)
            if code is None:
                continue
            if highest is None or code > highest:
                most_severe, highest = failure.exc, code
        return most_severe

    def first_processor_error(self) -> Optional[ProcessorError]:
        for failure in self.errors_from_processors:
            if isinstance(failure.exc, ProcessorError):
                return failure.exc
        return None

    def all_errors_logged(self) -> bool:
        return all(is_logged(failure.exc) for failure in self.errors_from_processors)


class SchedulerError(ProcessflowError):
    """A step failed outside the per-processor error capture.

    Unlike a :class:`ProcessorFailure` this is not attributable to a single
    processor; the original exception is chained as ``__cause__``.
    """

    def __init__(self, process_name: str, step_name: str) -> None:
        self.process_name = process_name
        self.step_name = step_name
        super().__init__(
            f"Unexpected error executing step {step_name} of process '{process_name}'."
        )
