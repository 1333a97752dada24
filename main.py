#!/usr/bin/env python3
"""Album Art Hue Sync - Colors a Philips Hue light after the Spotify album art."""

import argparse
import asyncio
import sys

from artwork_source import ArtworkSource
from color_sampler import ColorSampler
from config import ConfigError, load_settings
from hue_bridge import BridgeSession
from light_controller import LightController
from logging_config import setup_logging
from sync_loop import SyncLoop


def build_loop(settings) -> SyncLoop:
    return SyncLoop(
        artwork_source=ArtworkSource(timeout=settings.call_timeout),
        color_sampler=ColorSampler(timeout=settings.call_timeout),
        bridge_session=BridgeSession.from_settings(settings),
        light_controller=LightController(),
        light_name=settings.light_name,
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Sync a Philips Hue light to the Spotify album art")
    parser.add_argument("--light", help="Name of the Hue light to color (default: HUE_LIGHT_NAME)")
    parser.add_argument("--interval", type=float, help="Seconds between polls (default: POLL_INTERVAL)")
    parser.add_argument("--jitter", type=float, help="Random extra seconds per poll (default: POLL_JITTER)")
    parser.add_argument("--once", action="store_true", help="Push the current album art color once and exit")
    parser.add_argument("--log-level", help="Console log level (default: LOG_LEVEL)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.interval is not None and args.interval <= 0:
        print("--interval must be > 0", file=sys.stderr)
        return 2
    if args.jitter is not None and args.jitter < 0:
        print("--jitter must be >= 0", file=sys.stderr)
        return 2

    try:
        setup_logging(console_level=args.log_level or settings.log_level, log_file=settings.log_file)
    except ValueError as e:
        print(e, file=sys.stderr)
        return 2

    loop = build_loop(settings)
    if args.light:
        loop.light_name = args.light

    try:
        if args.once:
            asyncio.run(loop.sync_now())
        else:
            asyncio.run(loop.run_forever(
                interval=args.interval or settings.poll_interval,
                jitter=settings.poll_jitter if args.jitter is None else args.jitter,
            ))
    except KeyboardInterrupt:
        print("\nStopping...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
