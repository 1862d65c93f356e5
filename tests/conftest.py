"""Shared pytest configuration and fixtures for the gp3_attention test suite."""

import asyncio
from typing import Any, Callable, Optional, Sequence

import pytest
import pytest_asyncio

from gp3_attention.sim import SimulatedGazepointServer


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "hardware: mark test as requiring a running Gazepoint Control"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as using real sockets and wall-clock time"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that need Gazepoint Control on 127.0.0.1:4242",
    )


def pytest_collection_modifyitems(config, items):
    """Skip hardware tests unless --run-hardware is specified."""
    if config.getoption("--run-hardware"):
        return

    skip_hardware = pytest.mark.skip(reason="Need --run-hardware option to run")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


# =============================================================================
# Test Doubles
# =============================================================================

class FakeClock:
    """Simulated time. `sleep` advances the clock and yields to the loop once."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeHost:
    """
    Scripted HostUI. `answers` is consumed by prompts that offer choices:
    True picks the first (confirming) choice, False the last (Cancel).
    """

    def __init__(self, answers: Sequence[bool] = (), active: bool = True, lose_context_on_open: bool = False):
        self.answers = list(answers)
        self.active = active
        self.lose_context_on_open = lose_context_on_open
        self.notices: list[tuple[str, tuple[str, ...]]] = []
        self.lines: list[str] = []
        self.opened: list[str] = []
        self.restored: list[Any] = []

    @property
    def messages(self) -> list[str]:
        return [message for message, _ in self.notices]

    async def notify(self, message: str, choices: Sequence[str] = ()) -> Optional[str]:
        self.notices.append((message, tuple(choices)))
        if not choices:
            return None
        if not self.answers:
            return None
        return choices[0] if self.answers.pop(0) else choices[-1]

    def log(self, line: str) -> None:
        self.lines.append(line)

    def has_active_context(self) -> bool:
        return self.active

    async def open_material(self, content: str) -> Any:
        self.opened.append(content)
        if self.lose_context_on_open:
            self.active = False
        return f"handle-{len(self.opened)}"

    async def restore_material(self, handle: Any) -> None:
        self.restored.append(handle)


class FakeClient:
    """Stands in for GazepointClient where only begin/stare/close matter."""

    host = "127.0.0.1"
    port = 4242
    telemetry = None
    is_connected = False

    def __init__(self, begin_ok: bool = True, point: Optional[tuple[float, float]] = (0.1, 0.2)):
        self.begin_ok = begin_ok
        self.point = point
        self.calls: list[Any] = []

    async def begin(self) -> bool:
        self.calls.append("begin")
        return self.begin_ok

    async def stare(self, duration_s: float) -> Optional[tuple[float, float]]:
        self.calls.append(("stare", duration_s))
        return self.point

    async def close(self) -> None:
        self.calls.append("close")


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_host() -> Callable[..., FakeHost]:
    return FakeHost


@pytest.fixture
def make_client() -> Callable[..., FakeClient]:
    return FakeClient


@pytest.fixture
def wait_until():
    """Polls a predicate on the running loop; fails the test after `timeout`."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                pytest.fail("condition not met within %.1fs" % timeout)
            await asyncio.sleep(0.01)

    return _wait


@pytest_asyncio.fixture
async def sim_server():
    """A started simulated Gazepoint server on a free port."""
    server = SimulatedGazepointServer(port=0, frequency=120)
    await server.start()
    yield server
    await server.stop()
