"""Response payloads and the response-writer contract."""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Unable to Complete Request"


@runtime_checkable
class ResponseWriter(Protocol):
    """What a process needs from an HTTP response object.

    ``status(code)`` returns the response so calls chain as
    ``response.status(200).send(payload)``.  ``cookie`` and
    ``clear_cookie`` are optional; without them cookies are dropped.
    """

    def status(self, code: int) -> "ResponseWriter": ...

    def send(self, payload: Any) -> Any: ...


class OkContent(BaseModel):
    """Body of a successful response."""

    ok: Literal[True] = True
    meta: Any = Field(default=None, description="Optional response metadata")
    data: Any = Field(default=None, description="Data accumulated by the process")


class ErrorContent(BaseModel):
    """Body of an error response."""

    ok: Literal[False] = False
    message: str = Field(..., description="Message for the client")
    errors: Any = Field(default=None, description="Optional error details")


def _dump(model: BaseModel) -> dict[str, Any]:
    # None stands for "not sent", so those keys are left out of the body
    return model.model_dump(exclude={name for name, value in model if value is None})


def get_ok_content(data: Any = None, meta: Any = None) -> dict[str, Any]:
    return _dump(OkContent(data=data, meta=meta))


def get_error_content(message: str, errors: Any = None) -> dict[str, Any]:
    return _dump(ErrorContent(message=message, errors=errors))


def send_ok(response: Any, data: Any = None, meta: Any = None) -> None:
    """Send a 200 with the given data and an ``ok`` flag."""
    try:
        response.status(200).send(get_ok_content(data, meta))
    except Exception as exc:
        logger.error("Could not write OK response: %s", exc, exc_info=exc)
        if not getattr(response, "headers_sent", False):
            send_errors(response, "Could not send OK response.")


def send_errors(
    response: Any,
    message: Optional[str] = None,
    errors: Any = None,
    status_code: Optional[int] = None,
) -> None:
    """Send an error body; status defaults to 500."""
    message = message or DEFAULT_ERROR_MESSAGE
    status_code = status_code or 500
    try:
        response.status(status_code).send(get_error_content(message, errors))
    except Exception as exc:
        logger.error("Could not write error response: %s", exc, exc_info=exc)
        if not getattr(response, "headers_sent", False):
            response.status(500).send(message)
