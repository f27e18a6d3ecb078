# config_manager.py
import json
import logging
import os

from tone_controller import METHODS

logger = logging.getLogger(__name__)

# Configuration file path
CONFIG_FILE = "buzzer_config.json"

# Wiring and defaults differ between boards; set them per deployment
DEFAULT_CONFIG = {
    "pin": 18,
    "active_low": False,
    "default_duration_ms": 200,
    "default_frequency_hz": 1500,
    "default_method": "simple",
    "max_duration_ms": 10000,
    "host": "0.0.0.0",
    "port": 8080,
    "shutdown_timeout_s": 15,
}

TRUE_STRINGS = ("1", "true", "yes", "on")


def parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_STRINGS


def load_config_file(path=CONFIG_FILE):
    """Load the JSON config file; returns {} when missing or unreadable"""
    try:
        if os.path.exists(path):
            with open(path, "r") as file:
                data = json.load(file)
            if not isinstance(data, dict):
                logger.warning(f"Ignoring {path}: expected a JSON object")
                return {}
            logger.info(f"Loaded buzzer configuration from {path}")
            return data
        logger.info(f"No configuration file found at {path}, using defaults")
    except (OSError, ValueError) as e:
        logger.error(f"Error loading configuration from {path}: {e}")
    return {}


def apply_env_overrides(config, environ=None):
    environ = os.environ if environ is None else environ
    if environ.get("BUZZER_GPIO"):
        config["pin"] = environ["BUZZER_GPIO"]
    if environ.get("BUZZER_ACTIVE_LOW"):
        config["active_low"] = parse_bool(environ["BUZZER_ACTIVE_LOW"])
    return config


def validate_config(config):
    """Coerce types and reject values the buzzer cannot work with"""
    for key in ("pin", "default_duration_ms", "default_frequency_hz", "max_duration_ms", "port"):
        try:
            config[key] = int(config[key])
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be an integer, got {config[key]!r}")
        if config[key] < 0 or (key != "pin" and config[key] == 0):
            raise ValueError(f"{key} out of range: {config[key]}")

    try:
        config["shutdown_timeout_s"] = float(config["shutdown_timeout_s"])
    except (TypeError, ValueError):
        raise ValueError(f"shutdown_timeout_s must be a number, got {config['shutdown_timeout_s']!r}")
    if not config["shutdown_timeout_s"] >= 0:
        raise ValueError(f"shutdown_timeout_s out of range: {config['shutdown_timeout_s']}")
    config["active_low"] = parse_bool(config["active_low"])
    config["default_method"] = str(config["default_method"]).lower()
    if config["default_method"] not in METHODS:
        raise ValueError(f"default_method must be one of {', '.join(METHODS)}")
    if config["default_duration_ms"] > config["max_duration_ms"]:
        raise ValueError("default_duration_ms exceeds max_duration_ms")
    return config


def load_buzzer_config(path=CONFIG_FILE, overrides=None, environ=None):
    """
    Build the effective configuration.

    Precedence, lowest first: DEFAULT_CONFIG, config file, BUZZER_GPIO /
    BUZZER_ACTIVE_LOW environment variables, explicit overrides (CLI flags).
    """
    config = dict(DEFAULT_CONFIG)
    for key, value in load_config_file(path).items():
        if key in DEFAULT_CONFIG:
            config[key] = value
        else:
            logger.warning(f"Unknown configuration key ignored: {key}")

    apply_env_overrides(config, environ)

    for key, value in (overrides or {}).items():
        if value is not None:
            config[key] = value

    return validate_config(config)
