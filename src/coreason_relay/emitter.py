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
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectSendStream
from loguru import logger
from sse_starlette import ServerSentEvent

from coreason_relay.models import OutboundEvent


def encode_event(event: OutboundEvent) -> bytes:
    """Serialize an event into a single SSE frame."""
    return ServerSentEvent(data=json.dumps(event.payload), event=event.name).encode()


class EventEmitter:
    """Writes named events onto one channel.

    The channel is the send side of a memory object stream drained by the HTTP
    response. Writes after the channel has closed are dropped.
    """

    def __init__(self, channel: MemoryObjectSendStream[bytes]):
        self._channel = channel
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, name: str, payload: dict[str, Any]) -> bool:
        """Send one event.

        Returns:
            bool: True if the event was written, False if the channel was already closed.
        """
        if self._closed:
            logger.debug(f"Dropping '{name}' event on closed channel")
            return False

        event = OutboundEvent(name=name, payload=payload)
        try:
            await self._channel.send(encode_event(event))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug(f"Dropping '{name}' event, channel receiver is gone")
            return False
        return True

    async def aclose(self) -> None:
        """Close the channel. Idempotent."""
        if self._closed:
            return
        self._closed = True
        await self._channel.aclose()
