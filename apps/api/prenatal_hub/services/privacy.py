from __future__ import annotations

import re
from typing import Any


_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b")
_PHONE_RE = re.compile(r"(?<!\d)(?:\+?\d{1,3}[-.\s]?)?(?:\d{2,4}[-.\s]?\d{3,4}[-.\s]?\d{4})(?!\d)")
_LONG_DIGIT_RE = re.compile(r"\b\d{12,19}\b")

_BEARER_RE = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9\-._~+/]+=*")
_JWT_RE = re.compile(r"\b[A-Za-z0-9\-_]{20,}\.[A-Za-z0-9\-_]{20,}\.[A-Za-z0-9\-_]{20,}\b")
_SUPABASE_KEY_RE = re.compile(r"\bsb_(?:secret|publishable)_[A-Za-z0-9\-_]{16,}\b")

# Free-text fields written by the user; never copied into audit rows.
_PRIVATE_KEYS = frozenset({"content", "note", "name", "title", "password"})
_MAX_TEXT = 1200


def mask_pii_text(text: str) -> str:
    if not text:
        return text
    out = text
    out = _EMAIL_RE.sub("[REDACTED_EMAIL]", out)
    out = _PHONE_RE.sub("[REDACTED_PHONE]", out)
    out = _LONG_DIGIT_RE.sub("[REDACTED_NUMBER]", out)
    return out


def redact_secrets_text(text: str) -> str:
    if not text:
        return text
    out = text
    out = _BEARER_RE.sub("Bearer [REDACTED_TOKEN]", out)
    out = _JWT_RE.sub("[REDACTED_JWT]", out)
    out = _SUPABASE_KEY_RE.sub("[REDACTED_SUPABASE_KEY]", out)
    return out


def sanitize_for_log(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return redact_secrets_text(mask_pii_text(value))[:_MAX_TEXT]
    if isinstance(value, list):
        return [sanitize_for_log(v) for v in value]
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)[:128]
            if key.lower() in _PRIVATE_KEYS and v is not None:
                out[key] = "[REDACTED_TEXT]"
            else:
                out[key] = sanitize_for_log(v)
        return out
    if isinstance(value, (int, float, bool)):
        return value
    return str(value)[:_MAX_TEXT]
