# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

import math
from collections.abc import AsyncIterator

import anyio
from loguru import logger

from coreason_relay.client import UpstreamClient
from coreason_relay.config import RelayConfig
from coreason_relay.emitter import EventEmitter
from coreason_relay.models import EventName, SubscriptionRequest
from coreason_relay.supervisor import SubscriptionSupervisor


class Channel:
    """One subscriber's ordered event channel.

    Emits `connected` on open, hands the request to a SubscriptionSupervisor and
    on disconnect tears the driver down, emits `disconnected` and closes.
    """

    def __init__(self, request: SubscriptionRequest, client: UpstreamClient, config: RelayConfig):
        self.request = request
        buffer_size = config.channel_buffer_size if config.channel_buffer_size > 0 else math.inf
        send, self._receive = anyio.create_memory_object_stream(max_buffer_size=buffer_size)
        self.emitter = EventEmitter(send)
        self.supervisor = SubscriptionSupervisor(request, client, self.emitter, config)
        self._opened = False
        self._disconnected = False

    async def open(self) -> None:
        """Send the handshake and start the supervisor in the background."""
        if self._opened:
            return
        self._opened = True
        logger.info(
            "Subscription opened",
            sandbox_id=self.request.sandbox_id,
            event_type=self.request.event_type,
        )
        await self.emitter.emit(
            EventName.CONNECTED.value,
            {"message": "SSE connection established", **self.request.echo()},
        )
        self.supervisor.launch()

    async def disconnect(self) -> None:
        """Tear down the driver, acknowledge and close. Idempotent."""
        if self._disconnected:
            return
        self._disconnected = True
        await self.supervisor.teardown()
        await self.emitter.emit(EventName.DISCONNECTED.value, {"message": "Client disconnected"})
        await self.emitter.aclose()
        logger.info("Subscription closed", sandbox_id=self.request.sandbox_id)

    async def events(self) -> AsyncIterator[bytes]:
        """Encoded SSE frames for this channel, ending once it is closed.

        Leaving the iterator for any reason, including cancellation on client
        disconnect, runs the disconnect path.
        """
        await self.open()
        try:
            async with self._receive:
                async for frame in self._receive:
                    yield frame
        finally:
            with anyio.CancelScope(shield=True):
                await self.disconnect()
