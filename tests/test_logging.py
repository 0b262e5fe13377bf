"""Tests for the structlog setup."""

from promptbyme.utils.logging import redact_secrets
from promptbyme.utils.security import API_KEY_PLACEHOLDER


def test_redact_secrets_masks_string_fields():
    event = {
        "event": "provider.error_response",
        "detail": "Incorrect API key provided: sk-abcdefghijklmnopqrstuvwxyz",
        "status": 401,
    }
    out = redact_secrets(None, "warning", event)
    assert out["detail"] == f"Incorrect API key provided: {API_KEY_PLACEHOLDER}"
    assert out["status"] == 401
    assert out["event"] == "provider.error_response"
