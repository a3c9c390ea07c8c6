"""Static prerequisite validation of a composed pipeline."""

from __future__ import annotations

from typing import Iterable, Sequence

from .branch import Parallel, Step
from .protocol import ConfigurationIssue, ProcessorDefinition


def missing_prerequisites(
    processor: ProcessorDefinition, available: Iterable[str]
) -> list[str]:
    available = set(available)
    return [name for name in processor.prerequisites if name not in available]


def check_prerequisites(
    processor: ProcessorDefinition, available: Iterable[str]
) -> list[ConfigurationIssue]:
    missing = missing_prerequisites(processor, available)
    if not missing:
        return []
    return [
        ConfigurationIssue(
            processor_name=processor.name,
            reason=(
                "Prerequisites not found before processor in pipeline: "
                + ", ".join(missing)
            ),
        )
    ]


def validate_pipeline(steps: Sequence[Step]) -> list[ConfigurationIssue]:
    """Check that every prerequisite names a processor from an earlier step.

    Members of one parallel group only become available to the steps after
    the group, never to each other.
    """
    issues: list[ConfigurationIssue] = []
    available: set[str] = set()

    for step in steps:
        if isinstance(step, Parallel):
            level = []
            for member in step.members:
                issues.extend(check_prerequisites(member, available))
                level.append(member.name)
            available.update(level)
            continue

        issues.extend(check_prerequisites(step, available))
        available.add(step.name)

    return issues
