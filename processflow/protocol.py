"""Processor contract and the records produced while running one."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

Accumulator = dict[str, Any]
ProcessFn = Callable[[Accumulator, Accumulator], Any]
RunIfFn = Callable[[Accumulator, Accumulator], Union[bool, Awaitable[bool], Any]]


def _always(data: Accumulator, context: Accumulator) -> bool:
    return True


@runtime_checkable
class ProcessorProtocol(Protocol):
    """Structural shape of a user-authored processor.

    ``process(data, context)`` may mutate both accumulators in place and/or
    return a partial result ``{"data": {...}, "context": {...}}``.  Both
    ``process`` and the optional ``run_if(data, context)`` predicate may be
    coroutine functions.  Optional ``prerequisites`` names processors that
    must appear earlier in the pipeline.

    Example::

        class LoadUser:
            prerequisites = ("authenticate",)

            async def process(self, data, context):
                data["user"] = await fetch_user(context["params"]["id"])
    """

    def process(self, data: Accumulator, context: Accumulator) -> Any: ...


@dataclass(frozen=True)
class ProcessorDefinition:
    """Immutable, named unit of work.

    Built once at composition time and never mutated; ``name`` is the
    identity key within one process.
    """

    name: str
    process: ProcessFn
    run_if: RunIfFn = _always
    prerequisites: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise TypeError("Processor 'name' must be a string.")
        if not callable(self.process):
            raise TypeError(f"Processor '{self.name}' process must be a function.")
        if not callable(self.run_if):
            raise TypeError(f"Processor '{self.name}' run_if must be a function.")
        prerequisites = self.prerequisites
        if isinstance(prerequisites, (str, bytes)) or not isinstance(
            prerequisites, (list, tuple, set, frozenset)
        ):
            raise TypeError(
                "Processor prerequisites must be a list of string names of "
                "processors that are expected to run before it."
            )
        if not all(isinstance(name, str) for name in prerequisites):
            raise TypeError(
                "Processor prerequisites must be a list of string names of "
                "processors that are expected to run before it."
            )
        # Coerce to a tuple so the definition stays hashable and immutable
        if not isinstance(prerequisites, tuple):
            object.__setattr__(self, "prerequisites", tuple(prerequisites))


def create_processor(
    name: str,
    processor: Any,
    *,
    run_if: Optional[RunIfFn] = None,
    prerequisites: Optional[Any] = None,
) -> ProcessorDefinition:
    """Build a :class:`ProcessorDefinition` from a function or processor object.

    *processor* may be a plain ``(data, context)`` function, an existing
    definition, or any object (a module, a class instance) exposing a
    ``process`` callable and optionally ``run_if`` and ``prerequisites``.
    Keyword options take precedence over attributes of *processor*.

    Raises:
        TypeError: If the name is not a string or the processor does not
            have the expected shape.
    """
    if not isinstance(name, str):
        raise TypeError("Processor 'name' must be a string.")

    process = getattr(processor, "process", None)
    if process is None and callable(processor):
        process = processor
    if process is None:
        raise TypeError(
            "Processors must be a function or an object with a 'process' function."
        )

    if run_if is None:
        run_if = getattr(processor, "run_if", None)
        if run_if is None:
            run_if = _always
    if prerequisites is None:
        prerequisites = getattr(processor, "prerequisites", None) or ()

    return ProcessorDefinition(
        name=name, process=process, run_if=run_if, prerequisites=prerequisites
    )


@dataclass(frozen=True)
class ConfigurationIssue:
    """One problem found while composing a process."""

    processor_name: Optional[str]
    reason: str


@dataclass(frozen=True)
class StepOutcome:
    """Whether a processor that ran in this invocation succeeded."""

    name: str
    ok: bool


@dataclass
class ProcessorFailure:
    """A processor's ``process`` or ``run_if`` raised."""

    occurred_in: str
    message: str
    exc: BaseException


@dataclass
class ProcessResult:
    """Outcome of a completed run."""

    data: Accumulator
    context: Accumulator
    errors: list[ProcessorFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
