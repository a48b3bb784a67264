# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionKind(str, Enum):
    """Known values of the `eventType` subscription parameter."""

    LOGS = "logs"
    SANDBOX_STATUS = "sandbox-status"
    SESSIONS = "sessions"


class EventName(str, Enum):
    """Vocabulary of outbound event names."""

    CONNECTED = "connected"
    SANDBOX_STATUS = "sandbox-status"
    SESSIONS_UPDATE = "sessions-update"
    LOG = "log"
    LOG_COMPLETE = "log-complete"
    LOG_ERROR = "log-error"
    ERROR = "error"
    DISCONNECTED = "disconnected"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2025-01-01T00:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SubscriptionRequest(BaseModel):
    """Parameters of one inbound subscription.

    Attributes:
        sandbox_id: The target sandbox.
        session_id: Session owning the command; required for log streaming.
        command_id: Command whose output is streamed; required for log streaming.
        event_type: Requested subscription kind. Kept as a free string so that
            unknown kinds can be reported on the open channel.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    sandbox_id: str = Field(alias="sandboxId", min_length=1)
    session_id: str | None = Field(default=None, alias="sessionId")
    command_id: str | None = Field(default=None, alias="commandId")
    event_type: str = Field(default=SubscriptionKind.SANDBOX_STATUS.value, alias="eventType")

    def echo(self) -> dict[str, Any]:
        """The request parameters as sent back in the `connected` event."""
        return self.model_dump(by_alias=True)


class OutboundEvent(BaseModel):
    """A named event with a JSON payload, as written to a channel."""

    model_config = ConfigDict(frozen=True)

    name: str
    payload: dict[str, Any]
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class StatusPoll:
    sandbox_id: str


@dataclass(frozen=True)
class SessionsPoll:
    sandbox_id: str


@dataclass(frozen=True)
class LogStream:
    sandbox_id: str
    session_id: str
    command_id: str

    def identifiers(self) -> dict[str, str]:
        return {
            "sandboxId": self.sandbox_id,
            "sessionId": self.session_id,
            "commandId": self.command_id,
        }


DriverSpec = StatusPoll | SessionsPoll | LogStream
