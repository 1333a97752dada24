"""Tests for the album art polling loop"""
import asyncio
import threading
import time
from unittest.mock import AsyncMock

import pytest

from color_sampler import SamplingError
from hue_bridge import BridgeAuthError, NoBridgeFoundError
from light_controller import BridgeCommandError, LightController, LightNotFoundWarning
from sync_loop import TickGate, TickOutcome


async def run_ticks(loop, count):
    return [await loop.tick() for _ in range(count)]


async def test_updates_once_per_artwork_change(loop_factory):
    loop = loop_factory(["a", "a", "a", "b", "b", "c"])

    outcomes = await run_ticks(loop, 6)

    assert outcomes == [
        TickOutcome.BASELINE,
        TickOutcome.UNCHANGED,
        TickOutcome.UNCHANGED,
        TickOutcome.UPDATED,
        TickOutcome.UNCHANGED,
        TickOutcome.UPDATED,
    ]
    sampled = [c.args[0] for c in loop.color_sampler.sample_average_color.await_args_list]
    assert sampled == ["b", "c"]
    assert loop.light_controller.set_light_color.await_count == 2


async def test_first_artwork_only_sets_baseline(loop_factory):
    loop = loop_factory(["a"])

    assert await loop.tick() == TickOutcome.BASELINE

    assert loop.previous_artwork == "a"
    loop.color_sampler.sample_average_color.assert_not_awaited()
    loop.light_controller.set_light_color.assert_not_awaited()
    loop.bridge_session.get_session.assert_not_awaited()


async def test_nothing_playing_then_change(loop_factory):
    loop = loop_factory([None, "url1", "url1", "url2"])

    outcomes = await run_ticks(loop, 4)

    assert outcomes[0] == TickOutcome.IDLE
    loop.color_sampler.sample_average_color.assert_awaited_once_with("url2")
    loop.light_controller.set_light_color.assert_awaited_once()
    assert loop.light_controller.set_light_color.await_args.args[1] == "Office Monitor"


async def test_no_artwork_keeps_previous_state(loop_factory):
    loop = loop_factory(["a", None, "a"])

    outcomes = await run_ticks(loop, 3)

    assert outcomes == [TickOutcome.BASELINE, TickOutcome.IDLE, TickOutcome.UNCHANGED]
    assert loop.previous_artwork == "a"


async def test_missing_light_still_records_artwork(loop_factory):
    loop = loop_factory(["a", "b"], result=LightNotFoundWarning("Office Monitor"))

    outcomes = await run_ticks(loop, 2)

    assert outcomes[1] == TickOutcome.FAILED
    assert loop.previous_artwork == "b"
    loop.bridge_session.invalidate.assert_not_called()


async def test_sampling_failure_is_isolated(loop_factory):
    loop = loop_factory(["a", "b", "b", "c"])
    loop.color_sampler.sample_average_color.side_effect = [SamplingError("timeout"), loop.color_sampler.sample_average_color.return_value]

    outcomes = await run_ticks(loop, 4)

    assert outcomes == [TickOutcome.BASELINE, TickOutcome.FAILED, TickOutcome.UNCHANGED, TickOutcome.UPDATED]
    assert loop.previous_artwork == "c"
    loop.light_controller.set_light_color.assert_awaited_once()


async def test_no_bridge_found_retries_on_next_change(loop_factory):
    loop = loop_factory(["a", "b", "c"])
    bridge = loop.bridge_session.get_session.return_value
    loop.bridge_session.get_session = AsyncMock(side_effect=[NoBridgeFoundError("none"), bridge])

    outcomes = await run_ticks(loop, 3)

    assert outcomes == [TickOutcome.BASELINE, TickOutcome.FAILED, TickOutcome.UPDATED]
    assert loop.bridge_session.get_session.await_count == 2


async def test_auth_error_does_not_escape(loop_factory):
    loop = loop_factory(["a", "b"])
    loop.bridge_session.get_session = AsyncMock(side_effect=BridgeAuthError("link button"))

    assert await run_ticks(loop, 2) == [TickOutcome.BASELINE, TickOutcome.FAILED]


async def test_unexpected_error_does_not_escape(loop_factory):
    loop = loop_factory(["a"])
    loop.artwork_source.fetch_current_artwork.side_effect = RuntimeError("boom")

    assert await loop.tick() == TickOutcome.FAILED


async def test_unauthorized_command_invalidates_session(loop_factory):
    loop = loop_factory(["a", "b"], result=BridgeCommandError("unauthorized user", unauthorized=True))

    await run_ticks(loop, 2)

    loop.bridge_session.invalidate.assert_called_once()


async def test_other_command_error_keeps_session(loop_factory):
    loop = loop_factory(["a", "b"], result=BridgeCommandError("connection refused"))

    await run_ticks(loop, 2)

    loop.bridge_session.invalidate.assert_not_called()


async def test_sync_now_skips_baseline(loop_factory):
    loop = loop_factory(["a"])

    assert await loop.sync_now() == TickOutcome.UPDATED
    loop.color_sampler.sample_average_color.assert_awaited_once_with("a")


async def test_gate_never_overlaps_and_queues_one():
    release = asyncio.Event()
    running = 0
    peak = 0
    runs = 0

    async def job():
        nonlocal running, peak, runs
        running += 1
        peak = max(peak, running)
        await release.wait()
        runs += 1
        running -= 1

    gate = TickGate(job)
    assert gate.submit() is True   # starts
    assert gate.submit() is True   # queued
    assert gate.submit() is False  # dropped
    assert gate.submit() is False
    assert gate.busy

    await asyncio.sleep(0)
    release.set()
    await gate.wait_idle()

    assert runs == 2
    assert peak == 1
    assert gate.dropped == 2
    assert not gate.busy


async def test_gate_survives_failing_job():
    calls = []

    async def job():
        calls.append(1)
        raise RuntimeError("boom")

    gate = TickGate(job)
    gate.submit()
    await gate.wait_idle()
    gate.submit()
    await gate.wait_idle()

    assert len(calls) == 2


async def test_run_forever_drops_overlapping_ticks(loop_factory):
    loop = loop_factory([])
    release = asyncio.Event()
    started = 0

    async def slow_tick():
        nonlocal started
        started += 1
        await release.wait()

    loop.gate = TickGate(slow_tick)
    task = asyncio.ensure_future(loop.run_forever(interval=0.01))
    await asyncio.sleep(0.1)

    assert started == 1
    assert loop.gate.dropped > 0

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    release.set()
    await loop.gate.wait_idle()
    assert started == 2


async def test_slow_light_command_never_overlaps_next_tick(loop_factory):
    loop = loop_factory(["a", "b", "c", "c", "c"])
    loop.light_controller = LightController()
    bridge = loop.bridge_session.get_session.return_value
    bridge.get_light.return_value = {"2": {"name": "Office Monitor", "state": {"reachable": True}}}

    in_flight = 0
    peak = 0
    lock = threading.Lock()

    def slow_set_light(light_id, command):
        nonlocal in_flight, peak
        with lock:
            in_flight += 1
            peak = max(peak, in_flight)
        time.sleep(0.1)
        with lock:
            in_flight -= 1
        return [[{"success": {"/lights/2/state/on": True}}]]

    bridge.set_light.side_effect = slow_set_light

    for _ in range(4):
        loop.gate.submit()
        await asyncio.sleep(0.02)
    await loop.gate.wait_idle()

    assert peak == 1
    assert bridge.set_light.call_count == 2
    assert loop.previous_artwork == "c"


async def test_sync_now_absorbs_unexpected_errors(loop_factory):
    loop = loop_factory(["a"])
    loop.light_controller.set_light_color.side_effect = RuntimeError("boom")

    assert await loop.sync_now() == TickOutcome.FAILED
