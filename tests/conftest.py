# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

import json
from collections.abc import AsyncGenerator, Callable
from typing import Any

import anyio
import httpx
import pytest
import pytest_asyncio

from coreason_relay.client import UpstreamClient
from coreason_relay.config import RelayConfig
from coreason_relay.emitter import EventEmitter

Handler = Callable[[httpx.Request], Any]


def decode_frame(frame: bytes) -> tuple[str | None, Any]:
    """Split one SSE frame into its event name and JSON payload."""
    name, data = None, None
    for line in frame.decode("utf-8").splitlines():
        if line.startswith("event: "):
            name = line[len("event: ") :]
        elif line.startswith("data: "):
            data = json.loads(line[len("data: ") :])
    return name, data


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(
        api_url="https://upstream.test/api",
        api_key="test-key",
        status_poll_interval=0.05,
        sessions_poll_interval=0.05,
        request_timeout=2.0,
        public_base_url="https://relay.test",
    )


@pytest_asyncio.fixture
async def make_upstream(relay_config: RelayConfig) -> AsyncGenerator[Callable[[Handler], UpstreamClient], None]:
    """Build UpstreamClients whose traffic is answered by an in-process handler."""
    clients: list[httpx.AsyncClient] = []

    def factory(handler: Handler) -> UpstreamClient:
        http = httpx.AsyncClient(
            base_url=relay_config.api_url,
            headers={"Authorization": f"Bearer {relay_config.api_key}"},
            transport=httpx.MockTransport(handler),
        )
        clients.append(http)
        return UpstreamClient(relay_config, client=http)

    yield factory

    for http in clients:
        await http.aclose()


def drain(receive: Any) -> list[tuple[str | None, Any]]:
    """Decode every frame currently buffered on a channel without waiting."""
    frames = []
    while True:
        try:
            frames.append(decode_frame(receive.receive_nowait()))
        except (anyio.WouldBlock, anyio.EndOfStream):
            return frames


@pytest.fixture
def channel_pair() -> tuple[EventEmitter, Any]:
    send, receive = anyio.create_memory_object_stream(max_buffer_size=1000)
    return EventEmitter(send), receive
