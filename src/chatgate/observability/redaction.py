"""Redaction helpers for upstream diagnostics. Everything logged about provider
traffic must pass through these."""

import hashlib
import re
from typing import Any

# WhatsApp JIDs carry the phone number before the suffix
_JID_PATTERN = re.compile(r"\b[\w.:-]+@(?:s\.whatsapp\.net|c\.us|g\.us|lid|broadcast)\b")
_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_BEARER_PATTERN = re.compile(r"(?i)bearer\s+[\w\-.~+/=]+")

_REDACTED = "[REDACTED]"


def redact_string(value: str) -> str:
    """Redact JIDs, phones, e-mails and bearer tokens from a string."""
    result = _JID_PATTERN.sub(_REDACTED, value)
    result = _BEARER_PATTERN.sub(_REDACTED, result)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # Structure only, never values
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def hash_identifier(value: str) -> str:
    """Non-reversible short hash (first 12 hex chars of sha256) for contact ids."""
    return hashlib.sha256(value.encode()).hexdigest()[:12]


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}
