import asyncio
import functools

import pytest

from gpio_pin import OutputPin
from tone_controller import ToneController


class FakeClock:
    """Monotonic clock that only moves when sleep() is awaited"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []
        self.gate = None

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        if self.gate is not None:
            await self.gate.wait()
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)

    def hold(self):
        """Block every sleep until release() is called"""
        self.gate = asyncio.Event()

    def release(self):
        if self.gate is not None:
            self.gate.set()


class RecordingLine:
    def __init__(self, pin, initial_level, clock):
        self.pin = pin
        self.initial_level = initial_level
        self.clock = clock
        self.writes = []
        self.releases = 0
        self.fail_writes = False

    @property
    def levels(self):
        return [level for _, level in self.writes]

    @property
    def level(self):
        return self.writes[-1][1] if self.writes else self.initial_level

    def write(self, level):
        if self.fail_writes:
            raise OSError("write failed")
        self.writes.append((self.clock(), level))

    def release(self):
        self.releases += 1


class FakeGpio:
    """Line factory handing out RecordingLines, or failing like missing hardware"""

    def __init__(self, clock):
        self.clock = clock
        self.lines = []
        self.unavailable = False

    def __call__(self, pin, initial_level):
        if self.unavailable:
            raise RuntimeError("This module can only be run on a Raspberry Pi!")
        line = RecordingLine(pin, initial_level, self.clock)
        self.lines.append(line)
        return line

    @property
    def line(self):
        return self.lines[-1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gpio(clock):
    return FakeGpio(clock)


@pytest.fixture
def make_controller(clock, gpio):
    def _make(pin=18, active_low=False):
        pin_factory = functools.partial(OutputPin, pin, active_low=active_low, line_factory=gpio)
        return ToneController(pin_factory, clock=clock, sleep=clock.sleep, shutdown_timeout_s=1.0)
    return _make


@pytest.fixture
def config():
    return {
        "pin": 18,
        "active_low": False,
        "default_duration_ms": 200,
        "default_frequency_hz": 1500,
        "default_method": "simple",
        "max_duration_ms": 10000,
        "host": "127.0.0.1",
        "port": 8080,
        "shutdown_timeout_s": 1.0,
    }
