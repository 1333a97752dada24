"""Philips Hue bridge discovery, pairing and session handling."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
from phue import Bridge, PhueException

from config import CALL_TIMEOUT, DISCOVERY_URL, Settings

logger = logging.getLogger(__name__)

# Hue API error types
UNAUTHORIZED_USER = 1
LINK_BUTTON_NOT_PRESSED = 101


class HueBridgeError(Exception):
    """Base class for bridge session failures."""


class NoBridgeFoundError(HueBridgeError):
    """Discovery returned no bridge on the local network."""


class BridgeAuthError(HueBridgeError):
    """Pairing or connecting with credentials failed."""

    def __init__(self, message: str, error_type: Optional[int] = None):
        super().__init__(message)
        self.error_type = error_type


@dataclass(frozen=True)
class BridgeCredentials:
    """Username / client key pair issued by the bridge."""

    username: str
    client_key: str


def hue_error(response: Any) -> Optional[dict]:
    """Return the first error entry of a Hue v1 API response, if any.

    The bridge answers failures with a list like
    ``[{"error": {"type": 1, "address": "/", "description": "..."}}]``.
    """
    if isinstance(response, dict):
        response = [response]
    if not isinstance(response, list):
        return None
    for item in response:
        if isinstance(item, list):
            nested = hue_error(item)
            if nested:
                return nested
        elif isinstance(item, dict) and isinstance(item.get("error"), dict):
            return item["error"]
    return None


def discover_bridges(timeout: float = CALL_TIMEOUT) -> list[str]:
    """Find bridge addresses via the Philips N-UPnP discovery endpoint."""
    logger.info("Searching for Hue Bridge...")
    try:
        response = requests.get(DISCOVERY_URL, timeout=timeout)
        response.raise_for_status()
        bridges = response.json()
    except (requests.RequestException, ValueError) as e:
        raise NoBridgeFoundError(f"Bridge discovery failed: {e}") from e

    if not isinstance(bridges, list):
        raise NoBridgeFoundError(f"Bridge discovery returned unexpected data: {bridges!r}")

    addresses = [b["internalipaddress"] for b in bridges if isinstance(b, dict) and b.get("internalipaddress")]
    logger.debug("Discovery returned %d bridge(s): %s", len(addresses), addresses)
    return addresses


def pair_with_bridge(bridge_ip: str, app_name: str, device_name: str, timeout: float = CALL_TIMEOUT) -> BridgeCredentials:
    """Create a new bridge user.

    Only succeeds within 30 seconds of the link button on the bridge being
    pressed. The bridge limits the application name to 20 characters and the
    device name to 19.
    """
    payload = {
        "devicetype": f"{app_name[:20]}#{device_name[:19]}",
        "generateclientkey": True,
    }
    try:
        response = requests.post(f"http://{bridge_ip}/api", json=payload, timeout=timeout)
        response.raise_for_status()
        result = response.json()
    except (requests.RequestException, ValueError) as e:
        raise BridgeAuthError(f"Pairing request to {bridge_ip} failed: {e}") from e

    error = hue_error(result)
    if error:
        if error.get("type") == LINK_BUTTON_NOT_PRESSED:
            raise BridgeAuthError("Press the link button on the Hue Bridge to pair", LINK_BUTTON_NOT_PRESSED)
        raise BridgeAuthError(f"Pairing rejected: {error.get('description')}", error.get("type"))

    try:
        success = result[0]["success"]
        return BridgeCredentials(username=success["username"], client_key=success["clientkey"])
    except (LookupError, TypeError) as e:
        raise BridgeAuthError(f"Unexpected pairing response: {result!r}") from e


def connect_bridge(bridge_ip: str, credentials: BridgeCredentials) -> Bridge:
    """Open a phue Bridge and check the credentials against the light list."""
    try:
        bridge = Bridge(bridge_ip, username=credentials.username)
        bridge.connect()
        result = bridge.get_light()
    except (PhueException, OSError, ValueError) as e:
        raise BridgeAuthError(f"Could not connect to Hue Bridge at {bridge_ip}: {e}") from e

    error = hue_error(result)
    if error:
        raise BridgeAuthError(f"Hue Bridge refused credentials: {error.get('description')}", error.get("type"))
    return bridge


def print_env_hint(**values: str) -> None:
    """Show values the operator should persist in their .env file."""
    print("\n" + "=" * 50)
    print("Add these environment variables to your .env file:\n")
    for key, value in values.items():
        print(f"{key}={value}")
    print("=" * 50 + "\n")


class BridgeSession:
    """Owns the single authenticated connection to the Hue Bridge.

    The bridge is discovered when no address is configured and paired when
    no credentials are configured. A successful bootstrap is cached for the
    process lifetime; a failed one leaves nothing behind, so the next
    ``get_session()`` starts over.

    ``get_session()`` is single-flight: callers arriving while a bootstrap
    is in progress wait for that same attempt instead of starting another
    one, so the bridge never sees two pairing requests from us at once.
    """

    def __init__(
        self,
        bridge_ip: Optional[str] = None,
        credentials: Optional[BridgeCredentials] = None,
        app_name: str = "",
        device_name: str = "",
        timeout: float = CALL_TIMEOUT,
    ):
        self._address = bridge_ip
        self._credentials = credentials
        self.app_name = app_name
        self.device_name = device_name
        self.timeout = timeout
        self._bridge: Optional[Bridge] = None
        self._pending: Optional[asyncio.Future] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "BridgeSession":
        credentials = None
        if settings.has_credentials:
            credentials = BridgeCredentials(settings.username, settings.client_key)
        return cls(
            bridge_ip=settings.bridge_ip,
            credentials=credentials,
            app_name=settings.app_name,
            device_name=settings.device_name,
            timeout=settings.call_timeout,
        )

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def credentials(self) -> Optional[BridgeCredentials]:
        return self._credentials

    @property
    def is_ready(self) -> bool:
        return self._bridge is not None

    async def get_session(self) -> Bridge:
        """Return the connected bridge, bootstrapping it if needed."""
        if self._bridge is not None:
            return self._bridge

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._establish())
            self._pending.add_done_callback(self._attempt_finished)
        return await asyncio.shield(self._pending)

    def invalidate(self) -> None:
        """Forget the cached connection; credentials are kept."""
        if self._bridge is not None:
            logger.info("Dropping cached Hue Bridge session")
        self._bridge = None

    def _attempt_finished(self, future: asyncio.Future) -> None:
        self._pending = None
        if not future.cancelled() and future.exception() is not None:
            logger.debug("Bridge bootstrap failed: %s", future.exception())

    async def _call(self, func: Callable, *args):
        # requests and phue bound their own I/O; the thread is done on return
        return await asyncio.to_thread(func, *args)

    async def _establish(self) -> Bridge:
        address = self._address
        if address is None:
            addresses = await self._call(discover_bridges, self.timeout)
            if not addresses:
                raise NoBridgeFoundError("No Hue bridges found on the network")
            address = addresses[0]
            logger.info("Found Hue Bridge at %s", address)
            print_env_hint(HUE_BRIDGE_IP=address)

        credentials = self._credentials
        if credentials is None:
            logger.info("No Hue credentials configured, pairing with bridge at %s", address)
            credentials = await self._call(
                pair_with_bridge, address, self.app_name, self.device_name, self.timeout
            )
            print_env_hint(HUE_USERNAME=credentials.username, HUE_CLIENT_KEY=credentials.client_key)

        bridge = await self._call(connect_bridge, address, credentials)

        self._address = address
        self._credentials = credentials
        self._bridge = bridge
        logger.info("Connected to Hue Bridge at %s", address)
        return bridge
