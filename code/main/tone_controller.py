# tone_controller.py
"""
Buzzer tone generation and pattern playback.

Everything runs on the asyncio event loop: each toggle and each pause is an
await on the injected sleep function, so the server keeps accepting requests
while a tone is playing. A single busy flag keeps two emissions from driving
the pin at the same time; a request that finds the buzzer busy is skipped,
never queued.
"""

import asyncio
import enum
import logging
import time
from collections import namedtuple

logger = logging.getLogger(__name__)

# Emission methods
SIMPLE = "simple"
TONE = "tone"
PWM = "pwm"
METHODS = (SIMPLE, TONE, PWM)
OSCILLATING_METHODS = (TONE, PWM)

MIN_HALF_PERIOD_MS = 1.0

SOS_FREQUENCY_HZ = 1500
SOS_SHORT_MS = 200
SOS_LONG_MS = 600
SOS_GAP_MS = 100
SOS_SECTION_GAP_MS = 200

DIAGNOSTIC_FREQUENCIES_HZ = (200, 300, 500)  # low / medium / high, all at or below the 1 ms clamp
DIAGNOSTIC_TONE_MS = 300
DIAGNOSTIC_GAP_MS = 100

Tone = namedtuple("Tone", ["duration_ms", "frequency_hz"])
Pause = namedtuple("Pause", ["duration_ms"])


class ControllerState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    UNAVAILABLE = "unavailable"
    CLOSED = "closed"


class EmitOutcome(enum.Enum):
    PLAYED = "played"
    BUSY = "busy"
    UNAVAILABLE = "unavailable"


def half_period_ms(frequency_hz):
    """Half of one oscillation period in ms, never below MIN_HALF_PERIOD_MS"""
    return max(MIN_HALF_PERIOD_MS, 1000.0 / (2.0 * frequency_hz))


def sos_pattern(frequency_hz=None):
    """... --- ... as Tone/Pause steps"""
    steps = []
    for section, length_ms in enumerate((SOS_SHORT_MS, SOS_LONG_MS, SOS_SHORT_MS)):
        if section:
            steps.append(Pause(SOS_SECTION_GAP_MS))
        for i in range(3):
            if i:
                steps.append(Pause(SOS_GAP_MS))
            steps.append(Tone(length_ms, frequency_hz))
    return steps


def diagnostic_pattern():
    """Low, medium, high tone"""
    steps = []
    for i, frequency_hz in enumerate(DIAGNOSTIC_FREQUENCIES_HZ):
        if i:
            steps.append(Pause(DIAGNOSTIC_GAP_MS))
        steps.append(Tone(DIAGNOSTIC_TONE_MS, frequency_hz))
    return steps


def pattern_method(name, method=SIMPLE):
    """Method a pattern actually plays with; the diagnostic pattern always oscillates"""
    if name == "test" and method not in OSCILLATING_METHODS:
        return TONE
    return method


def build_pattern(name, method=SIMPLE):
    """Steps for a named pattern, or None for an unknown name"""
    if name == "sos":
        return sos_pattern(SOS_FREQUENCY_HZ if method in OSCILLATING_METHODS else None)
    if name == "test":
        return diagnostic_pattern()
    return None


class ToneController:
    """
    Owns the buzzer OutputPin and the playback busy flag.

    pin_factory is called (with no arguments) to acquire the pin during
    initialize(); it must return an OutputPin-like object. clock and sleep are
    injectable for tests.
    """

    def __init__(self, pin_factory, clock=time.monotonic, sleep=asyncio.sleep, shutdown_timeout_s=15.0):
        self._pin_factory = pin_factory
        self._clock = clock
        self._sleep = sleep
        self._shutdown_timeout_s = shutdown_timeout_s

        self.pin = None
        self.state = ControllerState.UNINITIALIZED
        self.last_error = None

        self._busy = False
        self._init_future = None
        self._tasks = set()

    @property
    def busy(self):
        return self._busy

    @property
    def ready(self):
        return self.state is ControllerState.READY and self.pin is not None and self.pin.available

    # --- Lifecycle ---
    async def initialize(self, retry=False):
        """Acquire the pin once; concurrent callers share the same attempt"""
        if self.state is ControllerState.CLOSED:
            return self.state
        if retry and self.state is ControllerState.UNAVAILABLE:
            self._init_future = None
        if self._init_future is None:
            self._init_future = asyncio.ensure_future(self._acquire_pin())
        await self._init_future
        return self.state

    async def _acquire_pin(self):
        if self.pin is not None:
            self.pin.close()
        self.pin = self._pin_factory()
        if self.pin.available:
            self.state = ControllerState.READY
            self.last_error = None
        else:
            self.state = ControllerState.UNAVAILABLE
            logger.warning(f"Buzzer unavailable: {self.pin.error}")

    async def wait_idle(self, timeout=None):
        """Wait for running patterns; returns the tasks still pending"""
        if not self._tasks:
            return set()
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return pending

    async def close(self):
        """Let running patterns finish, then switch off and release the pin"""
        if self.state is ControllerState.CLOSED:
            return
        pending = await self.wait_idle(self._shutdown_timeout_s)
        if pending:
            logger.warning(f"Cancelling {len(pending)} pattern(s) still running at shutdown")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        self.state = ControllerState.CLOSED
        if self.pin is not None:
            self.pin.close()
        logger.info("Tone controller closed")

    # --- Emission ---
    async def emit(self, duration_ms, frequency_hz=None, method=SIMPLE):
        """
        Play one beep or tone and wait for it to finish.

        Returns an EmitOutcome. Write errors propagate after the pin has been
        switched off.
        """
        if duration_ms <= 0:
            raise ValueError(f"duration must be positive, got {duration_ms}")
        if self.state is ControllerState.UNINITIALIZED:
            await self.initialize()
        if not self.ready:
            return EmitOutcome.UNAVAILABLE
        if self._busy:
            logger.info(f"Buzzer busy, skipping {duration_ms}ms {method} request")
            return EmitOutcome.BUSY

        self._busy = True
        try:
            await self._play(duration_ms, frequency_hz, method)
        finally:
            self._busy = False
        return EmitOutcome.PLAYED

    async def _play(self, duration_ms, frequency_hz, method):
        try:
            if frequency_hz and method in OSCILLATING_METHODS:
                await self._oscillate(duration_ms, frequency_hz)
            else:
                self.pin.activate()
                await self._sleep(duration_ms / 1000.0)
        finally:
            self.pin.deactivate()

    async def _oscillate(self, duration_ms, frequency_hz):
        # Bounded by elapsed clock time, not by cycle count
        half_period_s = half_period_ms(frequency_hz) / 1000.0
        duration_s = duration_ms / 1000.0
        started = self._clock()
        while self._clock() - started < duration_s:
            self.pin.activate()
            await self._sleep(half_period_s)
            self.pin.deactivate()
            await self._sleep(half_period_s)

    # --- Patterns ---
    async def start_pattern(self, name, method=SIMPLE):
        """
        Schedule a named pattern in the background and return immediately.

        The busy flag is taken before this returns and held until the last
        step has played. Running patterns cannot be cancelled by callers.
        """
        method = pattern_method(name, method)
        steps = build_pattern(name, method)
        if steps is None:
            raise ValueError(f"Unknown pattern: {name}")
        if self.state is ControllerState.UNINITIALIZED:
            await self.initialize()
        if not self.ready:
            return EmitOutcome.UNAVAILABLE
        if self._busy:
            logger.info(f"Buzzer busy, skipping {name} pattern")
            return EmitOutcome.BUSY

        self._busy = True
        task = asyncio.ensure_future(self._run_pattern(name, steps, method))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return EmitOutcome.PLAYED

    async def _run_pattern(self, name, steps, method):
        logger.info(f"Playing {name} pattern ({len(steps)} steps, {method})")
        try:
            for step in steps:
                if not self.ready:
                    logger.warning(f"Buzzer unavailable, {name} pattern aborted")
                    self.last_error = f"{name} pattern aborted: buzzer unavailable"
                    return
                if isinstance(step, Pause):
                    await self._sleep(step.duration_ms / 1000.0)
                else:
                    await self._play(step.duration_ms, step.frequency_hz, method)
            self.last_error = None
            logger.info(f"{name} pattern finished")
        except Exception as e:
            logger.warning(f"{name} pattern aborted: {e}")
            self.last_error = f"{name} pattern aborted: {e}"
        finally:
            self._busy = False

    def status(self):
        return {
            "state": self.state.value,
            "busy": self._busy,
            "pin": self.pin.pin_number if self.pin is not None else None,
            "active_low": self.pin.active_low if self.pin is not None else None,
            "last_error": self.last_error,
        }
