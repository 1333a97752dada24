"""Sets the color of a named Hue light."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from phue import Bridge, PhueException, PhueRequestTimeout

from hue_bridge import UNAUTHORIZED_USER, hue_error
from mapper import XY, Color, Gamut, parse_gamut, rgb_to_xy

logger = logging.getLogger(__name__)


@dataclass
class LightTarget:
    """A light resolved by name on the bridge."""

    light_id: int
    name: str
    gamut: Optional[Gamut] = None
    reachable: bool = True


@dataclass
class LightUpdated:
    target: LightTarget
    xy: XY

    ok = True


@dataclass
class LightNotFoundWarning:
    light_name: str

    ok = False

    def __str__(self) -> str:
        return f'No light found with the name "{self.light_name}"'


@dataclass
class BridgeCommandError:
    message: str
    unauthorized: bool = False

    ok = False

    def __str__(self) -> str:
        return self.message


SetLightResult = Union[LightUpdated, LightNotFoundWarning, BridgeCommandError]


class _CommandFailed(Exception):
    def __init__(self, message: str, error: Optional[dict] = None):
        super().__init__(message)
        self.unauthorized = bool(error) and error.get("type") == UNAUTHORIZED_USER


def _check(response, action: str):
    error = hue_error(response)
    if error:
        raise _CommandFailed(f"{action} failed: {error.get('description')}", error)
    return response


def find_lights(bridge: Bridge, light_name: str) -> list[LightTarget]:
    """All lights with exactly this name, in the order the bridge lists them."""
    lights = _check(bridge.get_light(), "Light lookup")
    if not isinstance(lights, dict):
        raise _CommandFailed(f"Light lookup returned unexpected data: {lights!r}")

    matches = []
    for light_id, light_data in lights.items():
        if light_data.get("name") != light_name:
            continue
        control = light_data.get("capabilities", {}).get("control", {})
        matches.append(LightTarget(
            light_id=int(light_id),
            name=light_name,
            gamut=parse_gamut(control.get("colorgamut")),
            reachable=light_data.get("state", {}).get("reachable", True),
        ))
    return matches


class LightController:
    """Resolves the target light every call and sends it a color."""

    def _set_light_color_sync(self, bridge: Bridge, light_name: str, color: Color) -> SetLightResult:
        try:
            matches = find_lights(bridge, light_name)
            if not matches:
                return LightNotFoundWarning(light_name)
            if len(matches) > 1:
                logger.debug("%d lights named %r, using id %d", len(matches), light_name, matches[0].light_id)

            target = matches[0]
            if not target.reachable:
                logger.debug("Light %r (id %d) reported unreachable", light_name, target.light_id)

            xy = rgb_to_xy(color, target.gamut) if target.gamut else rgb_to_xy(color)
            command = {"on": True, "xy": list(xy)}
            _check(bridge.set_light(target.light_id, command), f"Setting light {target.light_id}")
        except _CommandFailed as e:
            return BridgeCommandError(str(e), unauthorized=e.unauthorized)
        except PhueRequestTimeout:
            return BridgeCommandError(f"Setting light {light_name!r} timed out")
        except (AttributeError, TypeError) as e:
            return BridgeCommandError(f"Unexpected light data from Hue Bridge: {e}")
        except (PhueException, OSError, ValueError) as e:
            return BridgeCommandError(f"Hue Bridge request failed: {e}")

        return LightUpdated(target, xy)

    async def set_light_color(self, bridge: Bridge, light_name: str, color: Color) -> SetLightResult:
        """Turn the named light on with the given color.

        Never raises for bridge-side problems; they come back as
        LightNotFoundWarning or BridgeCommandError. Each bridge request is
        bounded by phue's own socket timeout, so the worker thread is done
        when this returns.
        """
        return await asyncio.to_thread(self._set_light_color_sync, bridge, light_name, color)
