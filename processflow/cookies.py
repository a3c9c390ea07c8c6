"""Translating ``data["cookies"]`` into cookie writes on a response.

``data["cookies"]`` maps cookie names to either a plain value, sent with the
process's default options, or to the options form: a mapping with exactly
the keys ``value`` and ``options`` (or a :class:`CookieWithOptions`), whose
options are merged over the defaults.  A value of ``None`` clears the
cookie instead of setting it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

logger = logging.getLogger(__name__)

CookieOptions = Optional[Mapping[str, Any]]
CookieDefaults = Union[CookieOptions, Callable[[], CookieOptions]]

_OPTIONS_FORM_KEYS = frozenset({"value", "options"})


@dataclass(frozen=True)
class CookieWithOptions:
    """Explicit per-cookie options, unambiguous with respect to the value."""

    value: Any
    options: CookieOptions = None


def merge_options(options: CookieOptions, defaults: CookieOptions) -> CookieOptions:
    """Fill keys missing from *options* with non-``None`` *defaults*."""
    if not defaults:
        return options
    merged = dict(options or {})
    for key, value in defaults.items():
        if value is not None and merged.get(key) is None:
            merged[key] = value
    return merged


def split_cookie(value: Any) -> tuple[Any, CookieOptions, bool]:
    """Return ``(value, options, has_options)`` for one cookie entry."""
    if isinstance(value, CookieWithOptions):
        return value.value, value.options, True
    if isinstance(value, Mapping) and set(value.keys()) == _OPTIONS_FORM_KEYS:
        return value["value"], value["options"], True
    return value, None, False


def supports_cookies(response: Any) -> bool:
    return callable(getattr(response, "cookie", None)) and callable(
        getattr(response, "clear_cookie", None)
    )


def resolve_defaults(defaults: CookieDefaults) -> CookieOptions:
    if callable(defaults):
        return defaults()
    return defaults


def write_cookies(
    response: Any,
    cookies: Mapping[str, Any],
    defaults: CookieDefaults = None,
) -> None:
    """Set or clear every cookie in *cookies* on *response*."""
    for name, entry in cookies.items():
        options = resolve_defaults(defaults)
        value, own_options, has_options = split_cookie(entry)
        if has_options:
            options = merge_options(own_options, options)

        if value is None:
            response.clear_cookie(name, options)
            continue
        response.cookie(name, value, options)
