# gpio_pin.py
import logging

logger = logging.getLogger(__name__)


class RPiGpioLine:
    """Single BCM output line driven through RPi.GPIO"""

    def __init__(self, pin, initial_level):
        import RPi.GPIO as GPIO

        GPIO.setmode(GPIO.BCM)
        GPIO.setwarnings(False)
        GPIO.setup(pin, GPIO.OUT, initial=initial_level)
        self._GPIO = GPIO
        self.pin = pin

    def write(self, level):
        self._GPIO.output(self.pin, level)

    def release(self):
        self._GPIO.cleanup(self.pin)


class OutputPin:
    """
    Buzzer control line with the wiring polarity hidden behind
    activate()/deactivate().

    active_low=True is the PNP transistor convention: driving the line low
    energizes the buzzer. Acquisition never raises; a pin that could not be
    acquired reports available == False and ignores writes.

    line_factory(pin, initial_level) must return an object with
    write(level) and release(). Defaults to RPi.GPIO.
    """

    def __init__(self, pin_number, active_low=False, line_factory=None):
        self.pin_number = pin_number
        self.active_low = bool(active_low)
        self.error = None
        self._line = None
        self._released = False

        factory = line_factory or RPiGpioLine
        try:
            self._line = factory(pin_number, self.inactive_level)
            logger.info(f"GPIO {pin_number} ready (active {'LOW' if self.active_low else 'HIGH'})")
        except Exception as e:
            self.error = str(e)
            logger.warning(f"GPIO not available: {e}")

    @property
    def active_level(self):
        return 0 if self.active_low else 1

    @property
    def inactive_level(self):
        return 1 if self.active_low else 0

    @property
    def available(self):
        return self._line is not None and not self._released

    def activate(self):
        if self.available:
            self._line.write(self.active_level)

    def deactivate(self):
        if self.available:
            self._line.write(self.inactive_level)

    def close(self):
        """Force the buzzer off and release the line (idempotent)"""
        if self._released:
            return
        try:
            self.deactivate()
        except Exception as e:
            logger.warning(f"Could not switch GPIO {self.pin_number} off: {e}")
        self._released = True
        if self._line is None:
            return
        try:
            self._line.release()
            logger.info(f"GPIO {self.pin_number} released")
        except Exception as e:
            logger.warning(f"Error releasing GPIO {self.pin_number}: {e}")
