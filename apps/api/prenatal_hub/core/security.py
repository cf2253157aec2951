from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from prenatal_hub.core.config import settings
from prenatal_hub.core.rate_limit import consume
from prenatal_hub.services.supabase_auth import get_current_user

CRON_TOKEN_HEADER = "X-Account-Cron-Token"


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    email: str | None
    is_anonymous: bool
    access_token: str


def _get_bearer_token(request: Request) -> str:
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token"
        )
    token = auth.split(" ", 1)[1].strip()
    if (not token) or (" " in token) or (len(token) < 20):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token"
        )
    return token


async def get_auth_context(request: Request) -> AuthContext:
    token = _get_bearer_token(request)

    # Pre-auth IP throttling keeps floods away from Supabase Auth.
    ip = request.client.host if request.client else "unknown"
    await consume(
        key=f"ip:{ip}", limit=settings.auth_ip_per_minute_limit, window_seconds=60
    )

    try:
        user = await get_current_user(access_token=token, use_cache=True)
    except Exception:
        # Invalid, expired and unverifiable tokens all look the same to callers.
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )

    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )

    await consume(
        key=f"user:{user_id}",
        limit=settings.auth_user_per_minute_limit,
        window_seconds=60,
    )

    email = user.get("email")
    return AuthContext(
        user_id=user_id,
        email=email if isinstance(email, str) and email.strip() else None,
        is_anonymous=bool(user.get("is_anonymous") or False),
        access_token=token,
    )


async def verify_token(request: Request) -> AuthContext:
    return await get_auth_context(request)


AuthDep = Annotated[AuthContext, Depends(verify_token)]


def verify_cron_token(request: Request) -> None:
    expected = (settings.account_cron_token or "").strip()
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Account cron token is not configured",
        )
    provided = (request.headers.get(CRON_TOKEN_HEADER) or "").strip()
    if not provided or not secrets.compare_digest(provided, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )


CronDep = Annotated[None, Depends(verify_cron_token)]
