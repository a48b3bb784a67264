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
from typing import Any

from loguru import logger

from coreason_relay.client import UpstreamClient, UpstreamError, UpstreamStream
from coreason_relay.config import RelayConfig
from coreason_relay.emitter import EventEmitter
from coreason_relay.models import (
    DriverSpec,
    EventName,
    LogStream,
    SessionsPoll,
    StatusPoll,
    SubscriptionKind,
    SubscriptionRequest,
    utc_timestamp,
)
from coreason_relay.scheduler import PeriodicTask

StopCallback = Callable[[], Awaitable[None]]


class InvalidSubscriptionError(ValueError):
    """The subscription parameters cannot be served."""


def resolve_driver(request: SubscriptionRequest) -> DriverSpec:
    """Map a subscription request onto the driver variant that serves it.

    Raises:
        InvalidSubscriptionError: If the kind is unknown or its required ids are missing.
    """
    kind = request.event_type
    if kind == SubscriptionKind.LOGS.value:
        if not (request.session_id and request.command_id):
            raise InvalidSubscriptionError("sessionId and commandId required for logs streaming")
        return LogStream(request.sandbox_id, request.session_id, request.command_id)
    if kind == SubscriptionKind.SANDBOX_STATUS.value:
        return StatusPoll(request.sandbox_id)
    if kind == SubscriptionKind.SESSIONS.value:
        return SessionsPoll(request.sandbox_id)
    raise InvalidSubscriptionError(f"Unknown event type: {kind}")


def sandbox_path(sandbox_id: str) -> str:
    return f"/sandbox/{sandbox_id}"


def sessions_path(sandbox_id: str) -> str:
    return f"/toolbox/{sandbox_id}/toolbox/process/session"


def command_logs_path(sandbox_id: str, session_id: str, command_id: str) -> str:
    return f"{sessions_path(sandbox_id)}/{session_id}/command/{command_id}/logs"


async def _start_poll(
    client: UpstreamClient,
    emitter: EventEmitter,
    *,
    sandbox_id: str,
    path: str,
    event: EventName,
    payload_key: str,
    failure_message: str,
    interval: float,
) -> StopCallback:
    async def tick() -> None:
        try:
            data: Any = await client.get(path)
        except UpstreamError as e:
            logger.warning(f"{failure_message} for {sandbox_id}: {e}")
            await emitter.emit(EventName.ERROR.value, {"message": failure_message, "error": str(e)})
            return
        await emitter.emit(
            event.value,
            {"sandboxId": sandbox_id, payload_key: data, "timestamp": utc_timestamp()},
        )

    poller = PeriodicTask(tick, interval, name=f"{event.value}:{sandbox_id}")
    await poller.start()
    logger.info(f"Polling {path} every {interval}s")
    return poller.stop


async def start_status_poll(
    spec: StatusPoll, client: UpstreamClient, emitter: EventEmitter, config: RelayConfig
) -> StopCallback:
    return await _start_poll(
        client,
        emitter,
        sandbox_id=spec.sandbox_id,
        path=sandbox_path(spec.sandbox_id),
        event=EventName.SANDBOX_STATUS,
        payload_key="status",
        failure_message="Failed to get sandbox status",
        interval=config.status_poll_interval,
    )


async def start_sessions_poll(
    spec: SessionsPoll, client: UpstreamClient, emitter: EventEmitter, config: RelayConfig
) -> StopCallback:
    return await _start_poll(
        client,
        emitter,
        sandbox_id=spec.sandbox_id,
        path=sessions_path(spec.sandbox_id),
        event=EventName.SESSIONS_UPDATE,
        payload_key="sessions",
        failure_message="Failed to get sessions",
        interval=config.sessions_poll_interval,
    )


async def _relay_log_stream(spec: LogStream, stream: UpstreamStream, emitter: EventEmitter) -> None:
    ids = spec.identifiers()
    try:
        async for chunk in stream.iter_text():
            await emitter.emit(EventName.LOG.value, {**ids, "data": chunk, "timestamp": utc_timestamp()})
    except UpstreamError as e:
        logger.warning(f"Log stream for command {spec.command_id} broke: {e}")
        await emitter.emit(EventName.LOG_ERROR.value, {**ids, "error": str(e)})
    else:
        logger.info(f"Log stream for command {spec.command_id} ended")
        await emitter.emit(EventName.LOG_COMPLETE.value, {**ids, "message": "Log stream ended"})
    finally:
        await stream.aclose()


async def start_log_stream(
    spec: LogStream, client: UpstreamClient, emitter: EventEmitter, config: RelayConfig
) -> StopCallback | None:
    """Open the command's live output and relay it chunk by chunk.

    Returns:
        StopCallback | None: Cancels the reader and releases the upstream
        connection, or None if the stream could not be opened.
    """
    try:
        stream = await client.open_stream(
            command_logs_path(spec.sandbox_id, spec.session_id, spec.command_id),
            params={"follow": True},
        )
    except UpstreamError as e:
        logger.error(f"Failed to open log stream for command {spec.command_id}: {e}")
        await emitter.emit(EventName.ERROR.value, {"message": "Failed to stream command logs", "error": str(e)})
        return None

    reader = asyncio.create_task(_relay_log_stream(spec, stream, emitter), name=f"logs:{spec.command_id}")

    async def stop() -> None:
        if not reader.done():
            reader.cancel()
        try:
            await reader
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Log reader for command {spec.command_id} failed: {e!r}")
        # The reader may have been cancelled before its first step
        await stream.aclose()

    return stop


async def start_driver(
    spec: DriverSpec, client: UpstreamClient, emitter: EventEmitter, config: RelayConfig
) -> StopCallback | None:
    """Start the driver for a variant and return its stop callback, if it has one."""
    if isinstance(spec, StatusPoll):
        return await start_status_poll(spec, client, emitter, config)
    elif isinstance(spec, SessionsPoll):
        return await start_sessions_poll(spec, client, emitter, config)
    elif isinstance(spec, LogStream):
        return await start_log_stream(spec, client, emitter, config)
    else:
        raise TypeError(f"Unsupported driver: {spec!r}")  # pragma: no cover
