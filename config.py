"""
Runtime settings for simkl-cli.

Every value can be overridden with an environment variable of the same name.
"""

import os

import click


def _env_float(name, default):
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


# Simkl API
SIMKL_API_BASE_URL = os.environ.get("SIMKL_API_BASE_URL", "https://api.simkl.com")
SIMKL_API_TIMEOUT = _env_float("SIMKL_API_TIMEOUT", 30.0)
USER_AGENT = os.environ.get("SIMKL_USER_AGENT", "simkl-cli/0.2.0")

# Where the client id and access token are kept
SIMKL_CONFIG_PATH = os.environ.get(
    "SIMKL_CONFIG_PATH", os.path.join(click.get_app_dir("simkl-cli"), "config.json")
)

# PIN authentication
SIMKL_PIN_DEFAULT_INTERVAL = _env_float("SIMKL_PIN_DEFAULT_INTERVAL", 5.0)
SIMKL_PIN_MIN_INTERVAL = _env_float("SIMKL_PIN_MIN_INTERVAL", 1.0)

# Logging. LOG_FILENAME=None logs to stderr.
LOG_LEVEL = os.environ.get("SIMKL_LOG_LEVEL", "WARNING").upper()
LOG_FILENAME = os.environ.get("SIMKL_LOG_FILE") or None
