"""Tests for redaction, password hashing, and key generation."""

import re

from promptbyme.utils.security import (
    API_KEY_PLACEHOLDER,
    PASSWORD_MASK,
    content_warnings,
    generate_api_key,
    hash_password,
    mask_secrets,
    redact_request_body,
    scan_for_secrets,
    verify_password,
)


class TestRedaction:
    def test_request_body_redacted(self):
        body = {"prompt_id": "p", "api_key": "sk-live", "password": "pw", "variables": {"a": "b"}}
        redacted = redact_request_body(body)
        assert redacted == {
            "prompt_id": "p",
            "api_key": API_KEY_PLACEHOLDER,
            "password": PASSWORD_MASK,
            "variables": {"a": "b"},
        }
        # Original untouched
        assert body["api_key"] == "sk-live"

    def test_nested_secrets_masked(self):
        body = {"variables": {"ctx": ["use gsk_abcdefghijklmnopqrstuvwxyz please"]}}
        redacted = redact_request_body(body)
        assert redacted["variables"]["ctx"] == [f"use {API_KEY_PLACEHOLDER} please"]

    def test_absent_fields_not_added(self):
        assert redact_request_body({"flow_id": "f"}) == {"flow_id": "f"}

    def test_scan_and_mask(self):
        text = "key sk-ant-REDACTED here"
        assert scan_for_secrets(text) == ["Anthropic API key"]
        assert "sk-ant" not in mask_secrets(text)
        assert scan_for_secrets("nothing to see") == []

    def test_content_warnings(self):
        assert content_warnings("Use gsk_abcdefghijklmnopqrstuvwxyz for Groq") == [
            "Potential secrets detected: Groq API key"
        ]
        assert content_warnings("Hello {{name}}") == []


class TestPasswords:
    def test_round_trip(self):
        hashed = hash_password("correct horse")
        assert hashed.startswith("$2")
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash(self):
        assert verify_password("pw", "not-a-bcrypt-hash") is False
        assert verify_password("pw", None) is False
        assert verify_password("", hash_password("x")) is False


def test_generate_api_key_format():
    key = generate_api_key()
    assert re.fullmatch(r"pbm_[0-9a-f]{8}-[0-9a-f]{8}-[0-9a-f]{8}-[0-9a-f]{8}", key)
    assert generate_api_key() != key
