# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from loguru import logger
from sse_starlette import EventSourceResponse

from coreason_relay.channel import Channel
from coreason_relay.client import UpstreamClient
from coreason_relay.config import RelayConfig
from coreason_relay.models import SubscriptionKind, SubscriptionRequest
from coreason_relay.tools import SandboxTools, build_mcp


def create_app(config: RelayConfig | None = None, client: UpstreamClient | None = None) -> FastAPI:
    """Build the ASGI app serving the event stream at /sse and MCP tools at /mcp.

    Args:
        config: Relay configuration. Read from the environment if not provided.
        client: Upstream client shared by every channel and tool call.
    """
    config = config or RelayConfig()
    upstream = client or UpstreamClient(config)
    mcp = build_mcp(SandboxTools(upstream, config))
    mcp_app = mcp.streamable_http_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(f"Relay starting against {config.api_url}")
        async with mcp.session_manager.run():
            try:
                yield
            finally:
                await upstream.aclose()
                logger.info("Relay stopped")

    app = FastAPI(title="coreason-relay", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.state.config = config
    app.state.upstream = upstream

    @app.get("/sse", response_model=None)
    async def subscribe(
        sandboxId: str | None = Query(None, description="ID of the sandbox to watch"),
        sessionId: str | None = Query(None, description="Session ID, required for logs"),
        commandId: str | None = Query(None, description="Command ID, required for logs"),
        eventType: str = Query(SubscriptionKind.SANDBOX_STATUS.value, description="logs, sandbox-status or sessions"),
    ) -> Response:
        """Subscribe to live events about one sandbox."""
        if not sandboxId:
            return PlainTextResponse("Missing sandboxId parameter", status_code=400)

        request = SubscriptionRequest(
            sandboxId=sandboxId,
            sessionId=sessionId,
            commandId=commandId,
            eventType=eventType or SubscriptionKind.SANDBOX_STATUS.value,
        )
        channel = Channel(request, upstream, config)
        return EventSourceResponse(
            channel.events(),
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    app.mount("/", mcp_app)
    return app
