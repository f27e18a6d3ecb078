import pytest

from gpio_pin import OutputPin


def test_active_high_levels(gpio):
    pin = OutputPin(18, line_factory=gpio)
    assert pin.available
    assert gpio.line.initial_level == 0

    pin.activate()
    pin.deactivate()
    assert gpio.line.levels == [1, 0]


def test_active_low_inverts_levels(gpio):
    pin = OutputPin(76, active_low=True, line_factory=gpio)
    assert gpio.line.initial_level == 1

    pin.activate()
    pin.deactivate()
    assert gpio.line.levels == [0, 1]


def test_acquisition_failure_reports_unavailable(gpio):
    gpio.unavailable = True
    pin = OutputPin(18, line_factory=gpio)

    assert not pin.available
    assert "Raspberry Pi" in pin.error
    # writes on an unavailable pin are ignored
    pin.activate()
    pin.deactivate()
    pin.close()


def test_close_switches_off_and_releases_once(gpio):
    pin = OutputPin(18, active_low=True, line_factory=gpio)
    pin.activate()

    pin.close()
    pin.close()

    assert gpio.line.levels == [0, 1]
    assert gpio.line.releases == 1
    assert not pin.available


def test_writes_after_close_are_ignored(gpio):
    pin = OutputPin(18, line_factory=gpio)
    pin.close()
    pin.activate()
    assert gpio.line.levels == [0]


def test_close_survives_failing_line(gpio):
    pin = OutputPin(18, line_factory=gpio)
    gpio.line.fail_writes = True

    pin.close()

    assert gpio.line.releases == 1


def test_write_errors_propagate(gpio):
    pin = OutputPin(18, line_factory=gpio)
    gpio.line.fail_writes = True
    with pytest.raises(OSError):
        pin.activate()
