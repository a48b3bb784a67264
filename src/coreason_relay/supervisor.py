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

from loguru import logger

from coreason_relay.client import UpstreamClient
from coreason_relay.config import RelayConfig
from coreason_relay.drivers import InvalidSubscriptionError, StopCallback, resolve_driver, start_driver
from coreason_relay.emitter import EventEmitter
from coreason_relay.models import EventName, SubscriptionRequest


class SubscriptionSupervisor:
    """Owns the single driver serving one channel.

    Starts the driver selected by the request, keeps its stop callback and tears
    it down exactly once. Failures while starting are reported on the channel as
    `error` events and never propagate.
    """

    def __init__(
        self,
        request: SubscriptionRequest,
        client: UpstreamClient,
        emitter: EventEmitter,
        config: RelayConfig,
    ):
        self.request = request
        self.client = client
        self.emitter = emitter
        self.config = config
        self._stop: StopCallback | None = None
        self._start_task: asyncio.Task[None] | None = None
        self._torn_down = False

    @property
    def active(self) -> bool:
        """True while a driver is running under this supervisor."""
        return self._stop is not None

    @property
    def torn_down(self) -> bool:
        return self._torn_down

    def launch(self) -> asyncio.Task[None]:
        """Start the driver in the background and return the starting task."""
        if self._start_task is None:
            self._start_task = asyncio.create_task(self.start(), name=f"supervisor:{self.request.sandbox_id}")
        return self._start_task

    async def start(self) -> None:
        """Resolve and start the driver for the request."""
        try:
            spec = resolve_driver(self.request)
        except InvalidSubscriptionError as e:
            logger.warning(f"Rejected subscription for sandbox {self.request.sandbox_id}: {e}")
            await self.emitter.emit(EventName.ERROR.value, {"message": str(e)})
            return

        logger.info(f"Starting {type(spec).__name__} driver for sandbox {self.request.sandbox_id}")
        try:
            stop = await start_driver(spec, self.client, self.emitter, self.config)
        except Exception as e:
            logger.exception(f"Driver failed to start for sandbox {self.request.sandbox_id}")
            await self.emitter.emit(
                EventName.ERROR.value,
                {"message": "Stream error", "error": str(e) or type(e).__name__},
            )
            return

        if stop is None:
            return
        if self._torn_down:
            # Teardown won the race against a slow start
            await stop()
            return
        self._stop = stop

    async def teardown(self) -> None:
        """Stop the driver. Idempotent; a no-op if no driver ever started."""
        if self._torn_down:
            return
        self._torn_down = True

        start_task, self._start_task = self._start_task, None
        if start_task is not None and not start_task.done():
            start_task.cancel()
            try:
                await start_task
            except asyncio.CancelledError:
                pass

        stop, self._stop = self._stop, None
        if stop is None:
            return
        try:
            await stop()
        except Exception as e:
            logger.error(f"Error stopping driver for sandbox {self.request.sandbox_id}: {e}")
        logger.info(f"Driver for sandbox {self.request.sandbox_id} stopped")
