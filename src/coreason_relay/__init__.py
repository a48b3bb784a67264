# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

"""
coreason-relay
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .channel import Channel
from .client import (
    UpstreamClient,
    UpstreamConnectionError,
    UpstreamError,
    UpstreamProtocolError,
    UpstreamRequestError,
    UpstreamResponseError,
)
from .config import RelayConfig
from .emitter import EventEmitter
from .models import EventName, SubscriptionKind, SubscriptionRequest
from .server import create_app
from .supervisor import SubscriptionSupervisor

__all__ = [
    "Channel",
    "EventEmitter",
    "EventName",
    "RelayConfig",
    "SubscriptionKind",
    "SubscriptionRequest",
    "SubscriptionSupervisor",
    "UpstreamClient",
    "UpstreamConnectionError",
    "UpstreamError",
    "UpstreamProtocolError",
    "UpstreamRequestError",
    "UpstreamResponseError",
    "create_app",
]
