"""
Global test configuration: markers, environment isolation and a fake clock.
"""

import asyncio
import logging
import os

import pytest

from robust_genai.client import throttle
from robust_genai.client.throttle import ThrottleGate
from robust_genai.pipeline import orchestrator

_PROVIDER_KEY_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "GROQ_API_KEY", "OPENAI_API_KEY")


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading .env files during tests.

    Opt-in escape hatch: mark a test with @pytest.mark.allow_dotenv.
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    monkeypatch.setattr(
        "robust_genai.config.env_loader.load_dotenv",
        lambda *_args, **_kwargs: False,
    )


@pytest.fixture(autouse=True)
def isolate_robust_genai_env(request, monkeypatch):
    """Ensure a clean ROBUST_GENAI_* and provider-key environment for each test.

    Escape hatches:
      - @pytest.mark.allow_env_pollution: keep current env unchanged
      - tests marked with @pytest.mark.api bypass isolation
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith("ROBUST_GENAI_") or key in _PROVIDER_KEY_VARS:
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("DEBUG", raising=False)


@pytest.fixture(autouse=True)
def fresh_process_singletons(monkeypatch):
    """Each test starts without a shared gate or default caller."""
    monkeypatch.setattr(throttle, "_default_gate", None)
    monkeypatch.setattr(orchestrator, "_default_caller", None)


def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "integration: Component integration tests with mocked providers",
        "api: Real API integration tests (requires API key)",
        "allow_dotenv: Permit python-dotenv to load .env files",
        "allow_env_pollution: Keep the real ROBUST_GENAI_* environment",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


def pytest_collection_modifyitems(config, items):  # noqa: ARG001
    """Automatically skip API tests when no key is available."""
    if not (os.getenv("ROBUST_GENAI_API_KEY") and os.getenv("ENABLE_API_TESTS")):
        skip_api = pytest.mark.skip(
            reason="API tests require ROBUST_GENAI_API_KEY and ENABLE_API_TESTS=1",
        )
        for item in items:
            if "api" in item.keywords:
                item.add_marker(skip_api)


# --- Time Fixtures ---


class FakeClock:
    """Manual clock whose ``sleep`` yields once, then advances time."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        await asyncio.sleep(0)
        self.now += max(seconds, 0.0)


class RecordingSleep:
    """Sleep that records its own calls and advances a shared FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await self.clock.sleep(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gate(clock) -> ThrottleGate:
    """A 5 s cooldown gate driven by the fake clock."""
    return ThrottleGate(5.0, clock=clock, sleep=clock.sleep)


@pytest.fixture
def backoff_sleep(clock) -> RecordingSleep:
    return RecordingSleep(clock)


# --- Logging Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Sets the log level for noisy external libraries to WARNING."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
