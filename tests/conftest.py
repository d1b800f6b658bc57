"""Shared fixtures for tests."""

import pytest

from efkcheck.config import HarnessConfig


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds

    async def async_sleep(self, seconds: float):
        self.sleep(seconds)


class ScriptedProbe:
    """Probe returning (or raising) scripted values, repeating the last one."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = 0
        self.call_times = []
        self.clock = None

    def __call__(self):
        if self.clock is not None:
            self.call_times.append(self.clock())
        index = min(self.calls, len(self.script) - 1)
        self.calls += 1
        value = self.script[index]
        if isinstance(value, BaseException):
            raise value
        return value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def probe_factory(clock):
    """Build ScriptedProbes that record call times on the fake clock."""

    def _make(*script) -> ScriptedProbe:
        probe = ScriptedProbe(*script)
        probe.clock = clock
        return probe

    return _make


@pytest.fixture
def config(tmp_path) -> HarnessConfig:
    """Harness config with fast timings and a temporary log directory."""
    return HarnessConfig(
        namespace="efk-test",
        helm_timeout=30,
        retry_frequency=2,
        http_timeout=1.0,
        log_dir=str(tmp_path / "logs"),
    )
