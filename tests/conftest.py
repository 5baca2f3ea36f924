"""Shared fixtures for module runtime tests."""

from collections.abc import Callable
from typing import Any

import pytest
from rich.text import Text

from module_runtime.models import ModuleConfig, ModuleDefinition
from module_runtime.registry import ModuleRegistry
from module_runtime.settings import Settings


class SleepRecorder:
    """Awaitable stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def render_text(text: str = "ok") -> Callable[..., Any]:
    """Component that renders a fixed text."""

    def component(**_props: Any) -> Text:
        return Text(text)

    return component


def make_definition(module_id: str, *dependencies: str, **kwargs: Any) -> ModuleDefinition:
    """Definition with a trivial component."""
    return ModuleDefinition(
        config=ModuleConfig(id=module_id, dependencies=list(dependencies)),
        component=kwargs.pop("component", render_text(module_id)),
        **kwargs,
    )


@pytest.fixture
def settings() -> Settings:
    """Settings that ignore the environment and any .env file."""
    return Settings(_env_file=None, environment="test")


@pytest.fixture
def registry(settings: Settings) -> ModuleRegistry:
    return ModuleRegistry(settings=settings)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
