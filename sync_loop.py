"""Polling loop that pushes album art colors to a Hue light."""

import asyncio
import enum
import logging
import random
from typing import Awaitable, Callable, Optional

from artwork_source import ArtworkSource
from color_sampler import ColorSampler, SamplingError
from hue_bridge import BridgeSession, HueBridgeError
from light_controller import BridgeCommandError, LightController, LightUpdated

logger = logging.getLogger(__name__)


class TickOutcome(enum.Enum):
    IDLE = "idle"            # nothing playing
    BASELINE = "baseline"    # first artwork since start, light untouched
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    FAILED = "failed"


class TickGate:
    """Runs at most one tick at a time.

    ``submit()`` starts the job when idle. While it runs, one further
    submission is remembered and run right after; any others are dropped.
    """

    def __init__(self, job: Callable[[], Awaitable]):
        self._job = job
        self._running: Optional[asyncio.Task] = None
        self._queued = False
        self.dropped = 0

    @property
    def busy(self) -> bool:
        return self._running is not None

    def submit(self) -> bool:
        """Schedule the job. Returns False when the submission was dropped."""
        if self._running is None:
            self._running = asyncio.ensure_future(self._drain())
            return True
        if not self._queued:
            self._queued = True
            return True
        self.dropped += 1
        logger.debug("Tick still running, dropped submission (%d so far)", self.dropped)
        return False

    async def _drain(self) -> None:
        try:
            while True:
                try:
                    await self._job()
                except Exception:
                    logger.exception("Tick raised")
                if not self._queued:
                    break
                self._queued = False
        finally:
            self._running = None

    async def wait_idle(self) -> None:
        while self._running is not None:
            await asyncio.shield(self._running)


class SyncLoop:
    """Watches the artwork and recolors the light when the track art changes.

    The first artwork seen after startup only sets the baseline. After that
    the light is updated once per artwork change, never once per tick.
    """

    def __init__(
        self,
        artwork_source: ArtworkSource,
        color_sampler: ColorSampler,
        bridge_session: BridgeSession,
        light_controller: LightController,
        light_name: str,
    ):
        self.artwork_source = artwork_source
        self.color_sampler = color_sampler
        self.bridge_session = bridge_session
        self.light_controller = light_controller
        self.light_name = light_name
        self.previous_artwork: Optional[str] = None
        self.gate = TickGate(self.tick)

    async def tick(self) -> TickOutcome:
        try:
            return await self._tick()
        except (SamplingError, HueBridgeError) as e:
            logger.warning("Skipping update: %s", e)
        except Exception:
            logger.exception("Unexpected error during sync")
        return TickOutcome.FAILED

    async def _tick(self) -> TickOutcome:
        artwork = await self.artwork_source.fetch_current_artwork()

        if artwork is None:
            logger.debug("Spotify is not running or has no artwork")
            return TickOutcome.IDLE
        if self.previous_artwork is None:
            logger.info("Baseline artwork: %s", artwork)
            self.previous_artwork = artwork
            return TickOutcome.BASELINE
        if artwork == self.previous_artwork:
            return TickOutcome.UNCHANGED

        # Recorded before the update so a failure is not retried for the same art
        self.previous_artwork = artwork
        logger.info("New artwork: %s", artwork)
        return await self._apply(artwork)

    async def _apply(self, artwork: str) -> TickOutcome:
        color = await self.color_sampler.sample_average_color(artwork)
        bridge = await self.bridge_session.get_session()
        result = await self.light_controller.set_light_color(bridge, self.light_name, color)

        if isinstance(result, LightUpdated):
            logger.info("Set %r (id %d) to %s, xy=%s", result.target.name, result.target.light_id, color, result.xy)
            return TickOutcome.UPDATED

        logger.warning("%s", result)
        if isinstance(result, BridgeCommandError) and result.unauthorized:
            self.bridge_session.invalidate()
        return TickOutcome.FAILED

    async def sync_now(self) -> TickOutcome:
        """Push the current artwork color once, ignoring the baseline rule."""
        try:
            artwork = await self.artwork_source.fetch_current_artwork()
            if artwork is None:
                logger.info("Spotify is not running or has no artwork")
                return TickOutcome.IDLE
            self.previous_artwork = artwork
            return await self._apply(artwork)
        except (SamplingError, HueBridgeError) as e:
            logger.warning("Skipping update: %s", e)
        except Exception:
            logger.exception("Unexpected error during sync")
        return TickOutcome.FAILED

    async def run_forever(self, interval: float, jitter: float = 0.0) -> None:
        """Submit a tick every ``interval`` (+ up to ``jitter``) seconds.

        The timer keeps its pace regardless of how long ticks take; the gate
        decides whether a submission runs.
        """
        logger.info("Syncing album art to %r every %gs", self.light_name, interval)
        while True:
            self.gate.submit()
            await asyncio.sleep(interval + (random.uniform(0, jitter) if jitter else 0))
