import asyncio
from pathlib import Path
from typing import List

import pytest
from typer.testing import CliRunner

from genbatch.infrastructure.config.settings import clear_test_config


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays and returns immediately."""

    def __init__(self, clock: FakeClock = None):
        self.calls: List[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)
        await asyncio.sleep(0)


async def settle(rounds: int = 5) -> None:
    """Lets every ready task run until it blocks again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper(clock):
    return RecordingSleep(clock)


@pytest.fixture(autouse=True)
def reset_test_config():
    yield
    clear_test_config()


@pytest.fixture
def downloads_dir(tmp_path: Path) -> Path:
    path = tmp_path / "downloads"
    path.mkdir()
    return path


@pytest.fixture(name="settle")
def settle_fixture():
    return settle
