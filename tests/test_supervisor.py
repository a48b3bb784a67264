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
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from coreason_relay.config import RelayConfig
from coreason_relay.models import SubscriptionRequest
from coreason_relay.supervisor import SubscriptionSupervisor

from .conftest import drain


@pytest.fixture
def ok_upstream(make_upstream: Any) -> Any:
    return make_upstream(lambda r: httpx.Response(200, json={"state": "started"}))


@pytest.mark.asyncio
async def test_start_records_stop_callback(ok_upstream: Any, channel_pair: Any, relay_config: RelayConfig) -> None:
    emitter, receive = channel_pair
    supervisor = SubscriptionSupervisor(SubscriptionRequest(sandboxId="sbx-1"), ok_upstream, emitter, relay_config)

    await supervisor.start()

    assert supervisor.active
    assert drain(receive)[0][0] == "sandbox-status"
    await supervisor.teardown()
    assert not supervisor.active


@pytest.mark.asyncio
async def test_logs_without_ids_emits_error_only(
    ok_upstream: Any, channel_pair: Any, relay_config: RelayConfig
) -> None:
    emitter, receive = channel_pair
    request = SubscriptionRequest(sandboxId="sbx-1", eventType="logs", sessionId="sess-1")
    supervisor = SubscriptionSupervisor(request, ok_upstream, emitter, relay_config)

    await supervisor.start()

    assert drain(receive) == [("error", {"message": "sessionId and commandId required for logs streaming"})]
    assert not supervisor.active
    assert not emitter.closed


@pytest.mark.asyncio
async def test_unknown_kind_emits_error(ok_upstream: Any, channel_pair: Any, relay_config: RelayConfig) -> None:
    emitter, receive = channel_pair
    request = SubscriptionRequest(sandboxId="sbx-1", eventType="metrics")
    supervisor = SubscriptionSupervisor(request, ok_upstream, emitter, relay_config)

    await supervisor.start()

    assert drain(receive) == [("error", {"message": "Unknown event type: metrics"})]


@pytest.mark.asyncio
async def test_driver_crash_is_reported_not_raised(
    ok_upstream: Any, channel_pair: Any, relay_config: RelayConfig
) -> None:
    emitter, receive = channel_pair
    supervisor = SubscriptionSupervisor(SubscriptionRequest(sandboxId="sbx-1"), ok_upstream, emitter, relay_config)

    with patch("coreason_relay.supervisor.start_driver", AsyncMock(side_effect=RuntimeError("driver exploded"))):
        await supervisor.start()

    assert drain(receive) == [("error", {"message": "Stream error", "error": "driver exploded"})]
    assert not supervisor.active
    assert not emitter.closed


@pytest.mark.asyncio
async def test_teardown_is_idempotent(ok_upstream: Any, channel_pair: Any, relay_config: RelayConfig) -> None:
    emitter, _ = channel_pair
    stop = AsyncMock()
    supervisor = SubscriptionSupervisor(SubscriptionRequest(sandboxId="sbx-1"), ok_upstream, emitter, relay_config)

    with patch("coreason_relay.supervisor.start_driver", AsyncMock(return_value=stop)):
        await supervisor.start()

    await supervisor.teardown()
    await supervisor.teardown()

    stop.assert_awaited_once()
    assert supervisor.torn_down


@pytest.mark.asyncio
async def test_teardown_without_driver_is_noop(
    ok_upstream: Any, channel_pair: Any, relay_config: RelayConfig
) -> None:
    emitter, _ = channel_pair
    supervisor = SubscriptionSupervisor(SubscriptionRequest(sandboxId="sbx-1"), ok_upstream, emitter, relay_config)

    await supervisor.teardown()

    assert supervisor.torn_down
    assert not supervisor.active


@pytest.mark.asyncio
async def test_teardown_failure_is_logged_not_raised(
    ok_upstream: Any, channel_pair: Any, relay_config: RelayConfig
) -> None:
    emitter, _ = channel_pair
    stop = AsyncMock(side_effect=RuntimeError("already gone"))
    supervisor = SubscriptionSupervisor(SubscriptionRequest(sandboxId="sbx-1"), ok_upstream, emitter, relay_config)

    with patch("coreason_relay.supervisor.start_driver", AsyncMock(return_value=stop)):
        await supervisor.start()
    await supervisor.teardown()

    stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_teardown_cancels_pending_start(
    make_upstream: Any, channel_pair: Any, relay_config: RelayConfig
) -> None:
    emitter, receive = channel_pair
    fetch_started = asyncio.Event()

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        fetch_started.set()
        await asyncio.sleep(10)
        return httpx.Response(200, json={})

    supervisor = SubscriptionSupervisor(
        SubscriptionRequest(sandboxId="sbx-1"), make_upstream(slow_handler), emitter, relay_config
    )
    task = supervisor.launch()
    await asyncio.wait_for(fetch_started.wait(), timeout=1.0)

    await supervisor.teardown()

    assert task.done()
    assert not supervisor.active
    assert drain(receive) == []


@pytest.mark.asyncio
async def test_stop_arriving_after_teardown_is_invoked(
    ok_upstream: Any, channel_pair: Any, relay_config: RelayConfig
) -> None:
    emitter, _ = channel_pair
    stop = AsyncMock()
    supervisor = SubscriptionSupervisor(SubscriptionRequest(sandboxId="sbx-1"), ok_upstream, emitter, relay_config)
    await supervisor.teardown()

    with patch("coreason_relay.supervisor.start_driver", AsyncMock(return_value=stop)):
        await supervisor.start()

    stop.assert_awaited_once()
    assert not supervisor.active
