# beep_request.py
import logging

from tone_controller import METHODS

logger = logging.getLogger(__name__)

PATTERNS = ("sos", "test")


class BeepRequest:
    """Parsed /beep parameters"""

    def __init__(self, duration_ms, frequency_hz, method, pattern=None):
        self.duration_ms = duration_ms
        self.frequency_hz = frequency_hz
        self.method = method
        self.pattern = pattern

    def __repr__(self):
        return (f"BeepRequest(duration_ms={self.duration_ms}, frequency_hz={self.frequency_hz}, "
                f"method={self.method!r}, pattern={self.pattern!r})")


def parse_positive_int(params, key, default):
    """Positive integer from params[key]; default when missing or invalid"""
    raw = params.get(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(float(raw))
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"Invalid {key} {raw!r}, using default {default}")
        return default
    if value <= 0:
        logger.warning(f"Non-positive {key} {raw!r}, using default {default}")
        return default
    return value


def parse_choice(params, key, choices):
    raw = params.get(key)
    if raw is None:
        return None
    value = str(raw).strip().lower()
    return value if value in choices else None


def parse_beep_request(params, config):
    """
    Interpret free-form request parameters.

    Unknown patterns mean "no pattern"; unknown methods fall back to the
    configured default method.
    """
    duration_ms = parse_positive_int(params, "duration", config["default_duration_ms"])
    if duration_ms > config["max_duration_ms"]:
        logger.warning(f"Duration {duration_ms}ms capped at {config['max_duration_ms']}ms")
        duration_ms = config["max_duration_ms"]

    frequency_hz = parse_positive_int(params, "frequency", config["default_frequency_hz"])
    method = parse_choice(params, "method", METHODS) or config["default_method"]
    pattern = parse_choice(params, "pattern", PATTERNS)

    return BeepRequest(duration_ms, frequency_hz, method, pattern)
