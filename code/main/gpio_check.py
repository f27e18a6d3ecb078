# gpio_check.py
import argparse
import logging
import sys
import time

from gpio_pin import OutputPin

logger = logging.getLogger(__name__)


def toggle_pin(pin, toggles, interval_s, sleep=time.sleep):
    """Square wave on the pin; always ends switched off"""
    active = False
    try:
        for _ in range(toggles):
            active = not active
            if active:
                pin.activate()
            else:
                pin.deactivate()
            sleep(interval_s)
    finally:
        pin.deactivate()


def run_check(pin_number, toggles=2000, interval_ms=1.0, active_low=False, line_factory=None, sleep=time.sleep):
    """Acquire, toggle and release one pin; returns True on success"""
    logger.info(f"Testing GPIO {pin_number}...")
    pin = OutputPin(pin_number, active_low=active_low, line_factory=line_factory)
    if not pin.available:
        logger.error(f"GPIO error: {pin.error}")
        return False

    logger.info(f"GPIO {pin_number} initialized successfully")
    try:
        toggle_pin(pin, toggles, interval_ms / 1000.0, sleep)
    finally:
        pin.close()
    logger.info("Test complete!")
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(description="Toggle a buzzer GPIO to check the wiring")
    parser.add_argument("--pin", type=int, required=True, help="BCM pin number")
    parser.add_argument("--toggles", type=int, default=2000, help="Number of level changes (default: 2000)")
    parser.add_argument("--interval-ms", type=float, default=1.0, help="Time between level changes (default: 1)")
    parser.add_argument("--active-low", action="store_true", help="Buzzer is on when the line is low")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    try:
        ok = run_check(args.pin, args.toggles, args.interval_ms, args.active_low)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 1
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
