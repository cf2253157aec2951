from __future__ import annotations

import asyncio
import hashlib
import json
import re
import time
from dataclasses import dataclass
from typing import Any, Literal


IdempotencyState = Literal["acquired", "processing", "done"]

_KEY_RE = re.compile(r"^[A-Za-z0-9._:\-]{8,128}$")


@dataclass
class _Entry:
    state: Literal["processing", "done"]
    expires_at: float


_lock = asyncio.Lock()
_entries: dict[str, _Entry] = {}
_MAX_KEYS = 20_000


def reset() -> None:
    _entries.clear()


def normalize_idempotency_key(value: str | None) -> str | None:
    if not value:
        return None
    key = value.strip()
    if not _KEY_RE.fullmatch(key):
        return None
    return key


def fingerprint_payload(payload: Any) -> str:
    """Stable digest of a JSON-able payload, used when the client sends no key."""
    blob = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()[:32]


def _cleanup(now: float) -> None:
    expired = [k for k, v in _entries.items() if v.expires_at <= now]
    for k in expired:
        _entries.pop(k, None)
    if len(_entries) > _MAX_KEYS:
        _entries.clear()


async def claim_idempotency_key(
    *, key: str, processing_ttl_seconds: int = 120
) -> IdempotencyState:
    now = time.time()
    async with _lock:
        _cleanup(now)
        current = _entries.get(key)
        if current is None:
            _entries[key] = _Entry(
                state="processing", expires_at=now + max(processing_ttl_seconds, 30)
            )
            return "acquired"
        return current.state


async def mark_idempotency_done(*, key: str, done_ttl_seconds: int = 600) -> None:
    now = time.time()
    async with _lock:
        _entries[key] = _Entry(state="done", expires_at=now + max(done_ttl_seconds, 60))


async def clear_idempotency_key(*, key: str) -> None:
    async with _lock:
        _entries.pop(key, None)
