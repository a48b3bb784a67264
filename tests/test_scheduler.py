# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

import asyncio

import pytest

from coreason_relay.scheduler import PeriodicTask


@pytest.mark.asyncio
async def test_first_tick_runs_inline() -> None:
    calls: list[float] = []

    async def tick() -> None:
        calls.append(asyncio.get_running_loop().time())

    task = PeriodicTask(tick, 10.0)
    await task.start()

    assert len(calls) == 1
    assert task.running
    await task.stop()


@pytest.mark.asyncio
async def test_ticks_follow_period() -> None:
    calls: list[float] = []

    async def tick() -> None:
        calls.append(asyncio.get_running_loop().time())

    task = PeriodicTask(tick, 0.05)
    await task.start()
    await asyncio.sleep(0.23)
    await task.stop()

    assert len(calls) >= 4
    deltas = [later - earlier for earlier, later in zip(calls, calls[1:])]
    assert all(0.04 <= delta <= 0.15 for delta in deltas)


@pytest.mark.asyncio
async def test_slow_ticks_never_overlap() -> None:
    in_flight = 0
    max_in_flight = 0
    calls = 0

    async def tick() -> None:
        nonlocal in_flight, max_in_flight, calls
        in_flight += 1
        max_in_flight = max(max_in_flight, in_flight)
        await asyncio.sleep(0.07)
        calls += 1
        in_flight -= 1

    task = PeriodicTask(tick, 0.02)
    await task.start()
    await asyncio.sleep(0.25)
    await task.stop()

    assert max_in_flight == 1
    assert calls >= 3


@pytest.mark.asyncio
async def test_failing_tick_does_not_stop_schedule() -> None:
    calls = 0

    async def tick() -> None:
        nonlocal calls
        calls += 1
        raise RuntimeError("upstream hiccup")

    task = PeriodicTask(tick, 0.02)
    await task.start()
    await asyncio.sleep(0.09)

    assert task.running
    assert calls >= 3
    await task.stop()


@pytest.mark.asyncio
async def test_stop_is_idempotent() -> None:
    async def tick() -> None:
        pass

    task = PeriodicTask(tick, 0.01)
    await task.start()
    await task.stop()
    await task.stop()

    assert not task.running


@pytest.mark.asyncio
async def test_stop_before_start_prevents_schedule() -> None:
    calls = 0

    async def tick() -> None:
        nonlocal calls
        calls += 1

    task = PeriodicTask(tick, 0.01)
    await task.stop()
    await task.start()

    assert not task.running
    assert calls == 0


@pytest.mark.asyncio
async def test_stop_during_first_tick_prevents_schedule() -> None:
    entered = asyncio.Event()
    release = asyncio.Event()
    calls = 0

    async def tick() -> None:
        nonlocal calls
        calls += 1
        entered.set()
        await release.wait()

    task = PeriodicTask(tick, 0.01)
    starting = asyncio.create_task(task.start())
    await entered.wait()

    await task.stop()
    release.set()
    await starting
    await asyncio.sleep(0.05)

    assert not task.running
    assert calls == 1


def test_interval_must_be_positive() -> None:
    async def tick() -> None:
        pass

    with pytest.raises(ValueError, match="Interval must be positive"):
        PeriodicTask(tick, 0)
