from __future__ import annotations

import time
from typing import Any

from prenatal_hub.core.config import settings
from prenatal_hub.services.supabase_rest import get_http

_USER_CACHE: dict[str, tuple[float, dict[str, Any]]] = {}
_CACHE_TTL_SECONDS = 30.0
_CACHE_MAX_ENTRIES = 2048


def _auth_base() -> str:
    return str(settings.supabase_url).rstrip("/") + "/auth/v1"


def _cache_get(token: str) -> dict[str, Any] | None:
    entry = _USER_CACHE.get(token)
    if not entry:
        return None
    expires_at, user = entry
    if expires_at <= time.time():
        _USER_CACHE.pop(token, None)
        return None
    return user


def _cache_set(token: str, user: dict[str, Any]) -> None:
    if len(_USER_CACHE) >= _CACHE_MAX_ENTRIES:
        _USER_CACHE.clear()
    _USER_CACHE[token] = (time.time() + _CACHE_TTL_SECONDS, user)


def forget_user(user_id: str) -> None:
    """Drop cached identities for a user whose account was just purged."""
    stale = [t for t, (_, user) in _USER_CACHE.items() if user.get("id") == user_id]
    for token in stale:
        _USER_CACHE.pop(token, None)


async def get_current_user(
    *, access_token: str, use_cache: bool = True
) -> dict[str, Any]:
    """
    Fetches the current user from Supabase Auth using the user's access token.

    Guest (anonymous) sessions are never cached so that an upgrade to an
    email account is visible on the very next request.
    """
    if use_cache:
        cached = _cache_get(access_token)
        if cached is not None:
            return cached

    headers = {
        "apikey": settings.supabase_anon_key,
        "authorization": f"Bearer {access_token}",
        "accept": "application/json",
    }
    resp = await get_http().get(_auth_base() + "/user", headers=headers)
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, dict):
        raise ValueError("Unexpected Supabase user response")

    is_anonymous = bool(data.get("is_anonymous") or False)
    email = data.get("email")
    if use_cache and (not is_anonymous) and isinstance(email, str) and email.strip():
        _cache_set(access_token, data)

    return data


async def delete_auth_user(user_id: str) -> bool:
    """Remove the Supabase Auth identity. Returns False when it was already gone."""
    service_token = settings.supabase_service_role_key
    resp = await get_http().delete(
        f"{_auth_base()}/admin/users/{user_id}",
        headers={
            "apikey": service_token,
            "authorization": f"Bearer {service_token}",
        },
    )
    if resp.status_code == 404:
        return False
    resp.raise_for_status()
    forget_user(user_id)
    return True
