"""Shared fixtures for processflow tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from processflow import ProcessflowConfig, ProcessorDefinition

FIXTURES = Path(__file__).parent / "fixtures"


class HttpResponse:
    """Response double recording status, body and cookie calls."""

    def __init__(self) -> None:
        self.cookie = MagicMock()
        self.clear_cookie = MagicMock()
        self.status = MagicMock(return_value=self)
        self.send = MagicMock()
        self.headers_sent = False


class NoCookieResponse:
    def __init__(self) -> None:
        self.status = MagicMock(return_value=self)
        self.send = MagicMock()


def mock_processor(
    name: str,
    process: Optional[Callable[..., Any]] = None,
    run_if: Optional[Callable[..., Any]] = None,
    prerequisites: tuple[str, ...] = (),
) -> ProcessorDefinition:
    """Processor whose ``process``/``run_if`` are AsyncMocks wrapping the given callables."""
    return ProcessorDefinition(
        name=name,
        process=AsyncMock(side_effect=process, return_value=None),
        run_if=AsyncMock(side_effect=run_if, return_value=True),
        prerequisites=prerequisites,
    )


@pytest.fixture
def response() -> HttpResponse:
    return HttpResponse()


@pytest.fixture
def no_cookie_response() -> NoCookieResponse:
    return NoCookieResponse()


@pytest.fixture
def make_processor() -> Callable[..., ProcessorDefinition]:
    return mock_processor


@pytest.fixture
def config() -> ProcessflowConfig:
    return ProcessflowConfig()


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES
