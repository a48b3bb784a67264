# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

import pytest
from pydantic import ValidationError

from coreason_relay.config import RelayConfig


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("COREASON_RELAY_API_KEY", raising=False)
    config = RelayConfig(_env_file=None)

    assert config.api_url == "https://app.daytona.io/api"
    assert config.api_key is None
    assert config.status_poll_interval == 5.0
    assert config.sessions_poll_interval == 10.0
    assert config.public_base_url == "http://localhost:3000"


def test_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COREASON_RELAY_API_URL", "https://daytona.internal/api")
    monkeypatch.setenv("COREASON_RELAY_API_KEY", "dtn_test")
    monkeypatch.setenv("COREASON_RELAY_STATUS_POLL_INTERVAL", "2.5")

    config = RelayConfig(_env_file=None)

    assert config.api_url == "https://daytona.internal/api"
    assert config.api_key == "dtn_test"
    assert config.status_poll_interval == 2.5


def test_config_is_immutable() -> None:
    config = RelayConfig(_env_file=None)

    with pytest.raises(ValidationError):
        config.api_key = "changed"


def test_invalid_log_level() -> None:
    with pytest.raises(ValidationError):
        RelayConfig(_env_file=None, log_level="LOUD")
