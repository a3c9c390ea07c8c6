"""Folding a processor's partial result back into the run accumulators.

Processors get the run's own ``data`` and ``context`` dicts, so in-place
edits are visible immediately.  A processor may additionally return
``{"data": {...}, "context": {...}}`` (or an object with ``data`` and
``context`` attributes); those are shallow-overlaid onto the canonical
dicts, key by key.  Nested values are replaced, not deep-merged.

The canonical dicts are never swapped for a returned object.  Inside a
parallel step a slow sibling returning a fresh ``data`` dict therefore
cannot erase what a faster sibling wrote in place; only keys the slow
sibling returned explicitly win, because it settled last.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .context import RunState


def _part(result: Any, key: str) -> Optional[Any]:
    if isinstance(result, Mapping):
        return result.get(key)
    return getattr(result, key, None)


def apply_overlay(target: dict[str, Any], overlay: Optional[Any], label: str) -> None:
    """Shallow-merge *overlay* onto *target* in place."""
    if overlay is None or overlay is target:
        return
    if not isinstance(overlay, Mapping):
        raise TypeError(
            f"Processor result '{label}' must be a mapping, got {type(overlay).__name__}."
        )
    target.update(overlay)


def apply_result(state: RunState, result: Any) -> None:
    """Merge a processor's return value into *state*.

    ``None`` (a processor that only mutated in place) is a no-op.

    Raises:
        TypeError: If the result or one of its parts is not a mapping.
    """
    if result is None:
        return
    if not isinstance(result, Mapping) and not (
        hasattr(result, "data") or hasattr(result, "context")
    ):
        raise TypeError(
            "Processors must return None or a mapping with optional "
            f"'data' and 'context' keys, got {type(result).__name__}."
        )

    apply_overlay(state.data, _part(result, "data"), "data")
    apply_overlay(state.context, _part(result, "context"), "context")
    state.publish_errors()
