#!/usr/bin/env python3
"""Debug script to list the lights the bridge knows, to pick HUE_LIGHT_NAME."""

import asyncio

from config import load_settings
from hue_bridge import BridgeSession, HueBridgeError, hue_error
from logging_config import setup_logging
from mapper import parse_gamut


async def list_lights(session: BridgeSession) -> dict:
    bridge = await session.get_session()
    return await asyncio.to_thread(bridge.get_light)


def main():
    settings = load_settings()
    setup_logging(console_level=settings.log_level)

    try:
        lights = asyncio.run(list_lights(BridgeSession.from_settings(settings)))
    except HueBridgeError as e:
        print(f"Could not connect: {e}")
        return

    error = hue_error(lights)
    if error:
        print(f"Light lookup failed: {error.get('description')}")
        return

    print("=" * 70)
    print("HUE LIGHTS")
    print("=" * 70)
    print(f"\n{'ID':<5} {'Name':<25} {'Type':<24} {'Reach':<6} {'Gamut'}")
    print("-" * 70)

    for light_id, data in lights.items():
        control = data.get("capabilities", {}).get("control", {})
        gamut = "yes" if parse_gamut(control.get("colorgamut")) else "-"
        reachable = "yes" if data.get("state", {}).get("reachable") else "no"
        marker = " <" if data.get("name") == settings.light_name else ""
        print(f"{light_id:<5} {data.get('name', '?'):<25} {data.get('type', '?'):<24} {reachable:<6} {gamut}{marker}")

    print(f"\nTarget light: {settings.light_name}")


if __name__ == "__main__":
    main()
