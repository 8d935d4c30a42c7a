"""Tests for the structlog processors."""

import pytest
from asgi_correlation_id.context import correlation_id

from paygate.core.logging import REDACTED, add_correlation_id, redact_secrets

pytestmark = pytest.mark.unit


def test_redacts_credentials_at_any_casing():
    event = redact_secrets(None, "info", {"event": "login_failed", "password": "hunter2", "Authorization": "Bearer x"})

    assert event == {"event": "login_failed", "password": REDACTED, "Authorization": REDACTED}


def test_leaves_ordinary_keys_alone():
    event = {"event": "user_entitled", "user_id": "u-1", "payment_id": "PAY1"}

    assert redact_secrets(None, "info", dict(event)) == event


def test_correlation_id_added_only_inside_a_request():
    assert "correlation_id" not in add_correlation_id(None, "info", {"event": "x"})

    reset = correlation_id.set("req-123")
    try:
        assert add_correlation_id(None, "info", {"event": "x"})["correlation_id"] == "req-123"
    finally:
        correlation_id.reset(reset)
