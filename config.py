"""Configuration for Album Art Hue Sync.

Bridge address and credentials come from the environment (or a .env file
next to this module). Leave them unset on first run: the bridge is
auto-discovered and paired, and the values to add are printed.
"""

import os
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv


ROOT_DIR = Path(__file__).parent
ENV_FILE = ROOT_DIR / ".env"

# Polling interval in seconds (1x per second)
POLL_INTERVAL = 1.0
POLL_JITTER = 0.0

# Upper bound for any single osascript / HTTP / bridge call
CALL_TIMEOUT = 10.0

# Hue settings
DEFAULT_LIGHT_NAME = "Office Monitor"
APP_NAME = "spotify-album-art-hue-sync"
DISCOVERY_URL = "https://discovery.meethue.com"

# Artwork is downscaled to at most this edge before averaging
SAMPLE_SIZE = 100

LOG_LEVEL = "INFO"


class ConfigError(ValueError):
    """Raised when an environment value cannot be used."""


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the environment."""

    bridge_ip: Optional[str] = None
    username: Optional[str] = None
    client_key: Optional[str] = None
    light_name: str = DEFAULT_LIGHT_NAME
    app_name: str = APP_NAME
    device_name: str = ""
    poll_interval: float = POLL_INTERVAL
    poll_jitter: float = POLL_JITTER
    call_timeout: float = CALL_TIMEOUT
    log_level: str = LOG_LEVEL
    log_file: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.client_key)


def _text(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(key, "").strip()
    return value or None


def _seconds(env: Mapping[str, str], key: str, default: float, allow_zero: bool = False) -> float:
    raw = _text(env, key)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number of seconds, got {raw!r}") from None
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{key} must be {'>= 0' if allow_zero else '> 0'}, got {raw!r}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None, env_file: Optional[Path] = ENV_FILE) -> Settings:
    """Build Settings from the environment.

    When ``environ`` is None the process environment is used, after loading
    ``env_file`` if it exists. Values already in the environment win over
    the file.
    """
    if environ is None:
        if env_file is not None and env_file.exists():
            load_dotenv(env_file)
        environ = os.environ

    return Settings(
        bridge_ip=_text(environ, "HUE_BRIDGE_IP"),
        username=_text(environ, "HUE_USERNAME"),
        client_key=_text(environ, "HUE_CLIENT_KEY"),
        light_name=_text(environ, "HUE_LIGHT_NAME") or DEFAULT_LIGHT_NAME,
        app_name=_text(environ, "HUE_APP_NAME") or APP_NAME,
        device_name=_text(environ, "HUE_DEVICE_NAME") or socket.gethostname(),
        poll_interval=_seconds(environ, "POLL_INTERVAL", POLL_INTERVAL),
        poll_jitter=_seconds(environ, "POLL_JITTER", POLL_JITTER, allow_zero=True),
        call_timeout=_seconds(environ, "CALL_TIMEOUT", CALL_TIMEOUT),
        log_level=(_text(environ, "LOG_LEVEL") or LOG_LEVEL).upper(),
        log_file=_text(environ, "LOG_FILE"),
    )
