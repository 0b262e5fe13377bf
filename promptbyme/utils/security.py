"""Security utilities — secret scanning, request redaction, API key generation."""

from __future__ import annotations

import re
import secrets
from typing import Any

import bcrypt

API_KEY_PLACEHOLDER = "sk_...redacted..."
PASSWORD_MASK = "********"

# Patterns that might indicate leaked secrets
SECRET_PATTERNS = [
    ("Anthropic API key", re.compile(r"sk-ant-[a-zA-Z0-9-]{20,}")),
    ("OpenAI API key", re.compile(r"sk-[a-zA-Z0-9]{20,}")),
    ("Groq API key", re.compile(r"gsk_[a-zA-Z0-9]{20,}")),
    ("Google API key", re.compile(r"AIza[0-9A-Za-z_-]{35}")),
    ("promptby.me API key", re.compile(r"pbm_[0-9a-f]{8}(?:-[0-9a-f]{8}){3}")),
    ("JWT token", re.compile(r"eyJ[a-zA-Z0-9_-]{50,}")),
]


def scan_for_secrets(text: str) -> list[str]:
    """Scan text for potential secrets. Returns list of detected pattern names."""
    return [name for name, pattern in SECRET_PATTERNS if pattern.search(text)]


def content_warnings(text: str) -> list[str]:
    """Warnings for saved prompt content that looks like it holds credentials."""
    found = scan_for_secrets(text)
    return [f"Potential secrets detected: {', '.join(found)}"] if found else []


def mask_secrets(text: str) -> str:
    """Replace anything that looks like a credential with the redaction marker."""
    for _, pattern in SECRET_PATTERNS:
        text = pattern.sub(API_KEY_PLACEHOLDER, text)
    return text


def _mask_value(value: Any) -> Any:
    if isinstance(value, str):
        return mask_secrets(value)
    if isinstance(value, dict):
        return {k: _mask_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_mask_value(v) for v in value]
    return value


def redact_request_body(body: dict[str, Any]) -> dict[str, Any]:
    """Copy of a request body safe to persist in the audit log.

    The provider ``api_key`` is replaced by a placeholder, the ``password`` by
    asterisks, and any other string that looks like a credential is masked.
    """
    redacted = _mask_value(dict(body))
    if body.get("api_key"):
        redacted["api_key"] = API_KEY_PLACEHOLDER
    if body.get("password"):
        redacted["password"] = PASSWORD_MASK
    return redacted


def hash_password(password: str) -> str:
    """Bcrypt hash of a prompt password."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Constant-time bcrypt comparison; malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_api_key() -> str:
    """New caller API key: ``pbm_`` plus 32 hex chars in four dash-separated groups."""
    raw = secrets.token_hex(16)
    return "pbm_" + "-".join(raw[i : i + 8] for i in range(0, 32, 8))
