# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

import anyio
import pytest

from coreason_relay.emitter import EventEmitter, encode_event
from coreason_relay.models import OutboundEvent

from .conftest import decode_frame


def test_encode_event_frame() -> None:
    frame = encode_event(OutboundEvent(name="log", payload={"data": "a\nb"}))

    assert frame.startswith(b"event: log\r\n")
    assert frame.endswith(b"\r\n\r\n")
    assert decode_frame(frame) == ("log", {"data": "a\nb"})


@pytest.mark.asyncio
async def test_emit_preserves_order() -> None:
    send, receive = anyio.create_memory_object_stream(max_buffer_size=10)
    emitter = EventEmitter(send)

    for index in range(3):
        assert await emitter.emit("tick", {"index": index})
    await emitter.aclose()

    frames = [decode_frame(frame) async for frame in receive]
    assert frames == [("tick", {"index": 0}), ("tick", {"index": 1}), ("tick", {"index": 2})]


@pytest.mark.asyncio
async def test_emit_after_close_is_noop() -> None:
    send, receive = anyio.create_memory_object_stream(max_buffer_size=10)
    emitter = EventEmitter(send)

    await emitter.aclose()
    await emitter.aclose()

    assert emitter.closed
    assert await emitter.emit("late", {}) is False


@pytest.mark.asyncio
async def test_emit_when_receiver_gone_is_noop() -> None:
    send, receive = anyio.create_memory_object_stream(max_buffer_size=10)
    emitter = EventEmitter(send)
    await receive.aclose()

    assert await emitter.emit("orphan", {}) is False
