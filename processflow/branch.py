"""Parallel groups and helpers for walking a pipeline's steps."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterator, Sequence, Union

from .protocol import ProcessorDefinition


@dataclass(frozen=True)
class Parallel:
    """A pipeline step whose members run concurrently.

    Members are unordered relative to each other: none of them can satisfy
    another member's prerequisites.  Members are processor definitions once
    a process is composed, or module names when passed to ``compose`` with a
    ``processors_path``.
    """

    members: tuple[Any, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.members, tuple):
            object.__setattr__(self, "members", tuple(self.members))

    def __iter__(self) -> Iterator[Any]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)

    @property
    def names(self) -> list[str]:
        return [getattr(member, "name", member) for member in self.members]

    @property
    def name(self) -> str:
        return f"Parallel: {json.dumps(self.names)}"


def parallel(*processors: Any) -> Parallel:
    """Declare that *processors* can run independently, in one step.

    Nested groups are flattened into the enclosing one::

        compose("checkout", processors=[
            authenticate,
            parallel(load_cart, load_user),
            price_cart,
        ])
    """
    members: list[Any] = []
    for processor in processors:
        if isinstance(processor, (Parallel, list, tuple)):
            members.extend(parallel(*processor).members)
        else:
            members.append(processor)
    return Parallel(tuple(members))


Step = Union[ProcessorDefinition, Parallel]


def step_members(step: Step) -> tuple[ProcessorDefinition, ...]:
    if isinstance(step, Parallel):
        return step.members
    return (step,)


def step_label(step: Step) -> str:
    return step.name


def flatten_steps(steps: Sequence[Step]) -> list[ProcessorDefinition]:
    """Return every processor of *steps* in pipeline order."""
    return [member for step in steps for member in step_members(step)]


def remove_processor(steps: Sequence[Step], name: str) -> list[Step]:
    """Return *steps* without any processor called *name*.

    Parallel groups left empty are dropped.
    """
    remaining: list[Step] = []
    for step in steps:
        if isinstance(step, Parallel):
            members = tuple(m for m in step.members if m.name != name)
            if members:
                remaining.append(Parallel(members))
        elif step.name != name:
            remaining.append(step)
    return remaining
