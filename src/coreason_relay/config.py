# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class RelayConfig(BaseSettings):
    """
    Process-wide configuration for the relay.
    Built once at startup and never mutated afterwards.
    """

    # Upstream sandbox API
    api_url: str = "https://app.daytona.io/api"
    api_key: str | None = None
    request_timeout: float = 30.0

    # Subscription drivers
    status_poll_interval: float = 5.0
    sessions_poll_interval: float = 10.0
    channel_buffer_size: int = 128

    # Advertised address for SSE URLs handed out by tools
    public_base_url: str = "http://localhost:3000"

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="COREASON_RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )
