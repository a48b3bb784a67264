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
from collections.abc import Awaitable, Callable

from loguru import logger


class PeriodicTask:
    """Runs an async callable on a fixed-rate schedule until stopped.

    Ticks never overlap: the next tick is not started before the previous one
    has returned. If a tick overruns its period, the deadlines it missed are
    skipped instead of being replayed back to back.
    """

    def __init__(self, func: Callable[[], Awaitable[None]], interval: float, name: str = "periodic"):
        if interval <= 0:
            raise ValueError("Interval must be positive")
        self.func = func
        self.interval = interval
        self.name = name
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, run_immediately: bool = True) -> None:
        """Start the schedule.

        Args:
            run_immediately: Run the first tick inline before scheduling the rest,
                so the caller resumes only once it has completed.
        """
        if self.running or self._stopped:
            return
        if run_immediately:
            await self._tick()
            if self._stopped:
                return
        self._task = asyncio.create_task(self._loop(), name=self.name)

    async def _tick(self) -> None:
        try:
            await self.func()
        except Exception as e:
            logger.exception(f"Tick of {self.name} failed: {e}")

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.interval
        try:
            while True:
                await asyncio.sleep(max(0.0, deadline - loop.time()))
                await self._tick()

                deadline += self.interval
                now = loop.time()
                while deadline <= now:
                    deadline += self.interval
        except asyncio.CancelledError:
            logger.debug(f"{self.name} cancelled")
            raise

    async def stop(self) -> None:
        """Stop the schedule for good. Safe to call repeatedly.

        Calling it before start(), or while start() is still running the first
        tick, keeps the schedule from ever starting.
        """
        self._stopped = True
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
