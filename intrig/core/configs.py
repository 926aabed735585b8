"""Configuration management for the Intrig discovery client.

Loads user settings from ~/.config/intrig/config.cfg, merges a project-level
.env file and INTRIG_* environment variables on top.
Provides Settings (timeouts, retry policy, daemon start command, registry location).
"""

import configparser
import math
from dataclasses import dataclass
import os
import shlex
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import dotenv_values

# Default location for user configuration.
CONFIG_PATH = Path.home() / ".config" / "intrig" / "config.cfg"

# Maps INTRIG_* environment names onto raw config keys.
ENV_KEYS = {
    "INTRIG_DISCOVERY_DIR": "discovery_dir",
    "INTRIG_DAEMON_COMMAND": "daemon_command",
    "INTRIG_DAEMON_URL": "daemon_url",
    "INTRIG_READY_TIMEOUT_S": "ready_timeout",
    "INTRIG_POLL_INTERVAL_S": "poll_interval",
    "INTRIG_PROBE_TIMEOUT_S": "probe_timeout",
    "INTRIG_REQUEST_TIMEOUT_S": "request_timeout",
    "INTRIG_RETRY_COUNT": "retry_count",
    "INTRIG_RETRY_DELAY_S": "retry_delay",
    "INTRIG_GENERATE_TIMEOUT_S": "generate_timeout",
    "INTRIG_DEBUG": "debug",
}


@dataclass
class Settings:
    discovery_dir: Optional[str] = None
    daemon_command: str = "intrig daemon up"
    daemon_url: Optional[str] = None
    ready_timeout: float = 10.0
    poll_interval: float = 0.5
    probe_timeout: float = 0.5
    request_timeout: float = 5.0
    retry_count: int = 2
    retry_delay: float = 0.5
    generate_timeout: float = 300.0
    debug: bool = False

    @property
    def daemon_argv(self) -> List[str]:
        """Daemon start command split into argv form."""
        return shlex.split(self.daemon_command)


def load_raw_config(
    path: Path = CONFIG_PATH,
    env_file: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """
    Load configuration values with lowercase keys.

    Precedence (lowest to highest): config.cfg [DEFAULT], .env file, process
    environment.
    """
    cfg = configparser.ConfigParser()
    data: Dict[str, str] = {}

    if path.exists():
        cfg.read(path)
        if "DEFAULT" in cfg:
            data.update({k.lower(): v for k, v in cfg["DEFAULT"].items()})

    env_file = env_file if env_file is not None else Path.cwd() / ".env"
    if env_file.exists():
        for key, value in dotenv_values(env_file).items():
            if key in ENV_KEYS and value is not None:
                data[ENV_KEYS[key]] = value

    environ = os.environ if environ is None else environ
    for env_name, key in ENV_KEYS.items():
        value = environ.get(env_name)
        if value is not None and str(value).strip() != "":
            data[key] = value

    if "debug" not in data and "intrig" in environ.get("DEBUG", ""):
        data["debug"] = "true"

    return data


def _get_bool(raw: Dict[str, str], key: str, default: bool = False) -> bool:
    value = raw.get(key, "")
    if isinstance(value, bool):
        return value
    if value is None or str(value).strip() == "":
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_float(raw: Dict[str, str], key: str, default: float) -> float:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        number = float(value)
    except ValueError:
        raise ValueError(f"Invalid number for '{key}': {value!r}")
    if not math.isfinite(number):
        raise ValueError(f"'{key}' must be a finite number (got {value!r}).")
    if number < 0:
        raise ValueError(f"'{key}' must not be negative (got {value!r}).")
    return number


def get_settings(raw: Optional[Dict[str, str]] = None) -> Settings:
    """
    Build Settings from raw configuration values.
    Raises ValueError on malformed numeric values.
    """
    raw = load_raw_config() if raw is None else raw
    defaults = Settings()

    daemon_command = raw.get("daemon_command", "").strip() or defaults.daemon_command

    return Settings(
        discovery_dir=raw.get("discovery_dir", "").strip() or None,
        daemon_command=daemon_command,
        daemon_url=raw.get("daemon_url", "").strip() or None,
        ready_timeout=_get_float(raw, "ready_timeout", defaults.ready_timeout),
        poll_interval=_get_float(raw, "poll_interval", defaults.poll_interval),
        probe_timeout=_get_float(raw, "probe_timeout", defaults.probe_timeout),
        request_timeout=_get_float(raw, "request_timeout", defaults.request_timeout),
        retry_count=int(_get_float(raw, "retry_count", defaults.retry_count)),
        retry_delay=_get_float(raw, "retry_delay", defaults.retry_delay),
        generate_timeout=_get_float(raw, "generate_timeout", defaults.generate_timeout),
        debug=_get_bool(raw, "debug", False),
    )
