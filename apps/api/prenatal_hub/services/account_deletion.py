from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from prenatal_hub.core.config import settings
from prenatal_hub.services.error_log import log_system_error
from prenatal_hub.services.kick_stats import parse_timestamp
from prenatal_hub.services.supabase_auth import delete_auth_user
from prenatal_hub.services.supabase_rest import SupabaseRest, SupabaseRestError

logger = logging.getLogger(__name__)

_DELETE_ATTEMPTS = 2

# Rows keyed by user_id; the profile row (keyed by id) goes last.
USER_DATA_TABLES: tuple[str, ...] = (
    "journal_entries",
    "kick_events",
    "topic_progress",
    "streaks",
    "user_preferences",
)


@dataclass(frozen=True)
class PurgeResult:
    scanned: int
    deleted: int
    failed: int


def permanent_deletion_at(requested_at: datetime, *, grace_days: int) -> datetime:
    return requested_at + timedelta(days=grace_days)


def deletion_requested_at(profile: dict[str, Any] | None) -> datetime | None:
    if not profile:
        return None
    return parse_timestamp(profile.get("deletion_requested_at"))


def is_grace_expired(
    requested_at: datetime | None, *, now: datetime, grace_days: int
) -> bool:
    if requested_at is None:
        return False
    return now >= permanent_deletion_at(requested_at, grace_days=grace_days)


def _is_ignorable_delete_failure(exc: SupabaseRestError) -> bool:
    msg = str(exc).lower()
    return (
        exc.status_code == 404
        or exc.code in {"PGRST116", "42P01"}
        or ("relation" in msg and "does not exist" in msg)
    )


def _is_retryable_exception(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exc, SupabaseRestError):
        return exc.status_code >= 500
    return False


def _before_sleep_log(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "user data delete retrying after %s (attempt %s)",
        type(exc).__name__ if exc else "error",
        retry_state.attempt_number,
    )


async def _delete_rows(
    sb: SupabaseRest, table: str, *, bearer_token: str, params: dict[str, str]
) -> None:
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(_DELETE_ATTEMPTS),
            wait=wait_exponential_jitter(initial=0.2, max=1.0),
            retry=retry_if_exception(_is_retryable_exception),
            reraise=True,
            before_sleep=_before_sleep_log,
        ):
            with attempt:
                await sb.delete(table, bearer_token=bearer_token, params=params)
    except SupabaseRestError as exc:
        if not _is_ignorable_delete_failure(exc):
            raise


async def delete_user_data(
    sb: SupabaseRest,
    *,
    user_id: str,
    bearer_token: str,
    tables: tuple[str, ...] = USER_DATA_TABLES,
) -> None:
    params = {"user_id": f"eq.{user_id}"}
    await asyncio.gather(
        *(
            _delete_rows(sb, table, bearer_token=bearer_token, params=params)
            for table in tables
        )
    )


async def permanently_delete_account(sb: SupabaseRest, *, user_id: str) -> None:
    service_token = settings.supabase_service_role_key
    await delete_user_data(sb, user_id=user_id, bearer_token=service_token)
    await _delete_rows(
        sb, "profiles", bearer_token=service_token, params={"id": f"eq.{user_id}"}
    )
    await delete_auth_user(user_id)
    logger.info("account permanently deleted user=%s", user_id)


async def purge_expired_accounts(*, now: datetime) -> PurgeResult:
    """Delete every account whose deletion grace period has elapsed.

    One failing account does not stop the batch; it is recorded in
    `system_errors` and retried on the next run.
    """
    service_token = settings.supabase_service_role_key
    sb = SupabaseRest(str(settings.supabase_url), service_token)
    cutoff = now - timedelta(days=settings.account_deletion_grace_days)

    rows = await sb.select(
        "profiles",
        bearer_token=service_token,
        params={
            "select": "id,deletion_requested_at",
            "deletion_requested_at": f"lte.{cutoff.isoformat()}",
            "order": "deletion_requested_at.asc",
            "limit": settings.account_purge_batch_size,
        },
    )

    deleted = 0
    failed = 0
    for row in rows:
        user_id = row.get("id")
        if not isinstance(user_id, str) or not user_id:
            continue
        try:
            await permanently_delete_account(sb, user_id=user_id)
        except (SupabaseRestError, httpx.HTTPError) as exc:
            failed += 1
            await log_system_error(
                route="/api/account/cron/purge-expired",
                message="Account purge failed",
                user_id=user_id,
                err=exc,
            )
            continue
        deleted += 1

    logger.info(
        "account purge finished scanned=%d deleted=%d failed=%d",
        len(rows),
        deleted,
        failed,
    )
    return PurgeResult(scanned=len(rows), deleted=deleted, failed=failed)
