from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Header, HTTPException, status

from prenatal_hub.core.config import settings
from prenatal_hub.core.idempotency import (
    claim_idempotency_key,
    clear_idempotency_key,
    fingerprint_payload,
    mark_idempotency_done,
    normalize_idempotency_key,
)
from prenatal_hub.core.rate_limit import consume
from prenatal_hub.core.security import AuthContext, AuthDep, CronDep
from prenatal_hub.schemas.account import (
    AccountProfile,
    AccountResponse,
    DeletionScheduleResponse,
    MigratedItems,
    MigrateRequest,
    MigrateResponse,
    PurgeResponse,
    UpdateAccountRequest,
)
from prenatal_hub.services.account_deletion import (
    deletion_requested_at,
    is_grace_expired,
    permanent_deletion_at,
    purge_expired_accounts,
)
from prenatal_hub.services.migration import migrate_guest_data
from prenatal_hub.services.supabase_rest import SupabaseRest

logger = logging.getLogger(__name__)

router = APIRouter()

PROFILE_COLUMNS = "id,email,name,due_date,deletion_requested_at"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _client() -> SupabaseRest:
    return SupabaseRest(str(settings.supabase_url), settings.supabase_anon_key)


def _to_profile(auth: AuthContext, row: dict[str, Any] | None) -> AccountProfile:
    data: dict[str, Any] = {"id": auth.user_id, "email": auth.email, **(row or {})}
    requested = deletion_requested_at(row)
    if requested is not None:
        data["permanent_deletion_at"] = permanent_deletion_at(
            requested, grace_days=settings.account_deletion_grace_days
        )
    return AccountProfile.model_validate(data)


async def _load_profile(sb: SupabaseRest, *, auth: AuthContext) -> dict[str, Any] | None:
    rows = await sb.select(
        "profiles",
        bearer_token=auth.access_token,
        params={"select": PROFILE_COLUMNS, "id": f"eq.{auth.user_id}", "limit": 1},
    )
    return rows[0] if rows else None


def _ensure_not_expired(profile: dict[str, Any] | None) -> None:
    if is_grace_expired(
        deletion_requested_at(profile),
        now=_utc_now(),
        grace_days=settings.account_deletion_grace_days,
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account no longer exists",
        )


@router.get("/account", response_model=AccountResponse)
async def get_account(auth: AuthDep) -> AccountResponse:
    profile = await _load_profile(_client(), auth=auth)
    _ensure_not_expired(profile)
    return AccountResponse(user=_to_profile(auth, profile))


@router.put("/account", response_model=AccountResponse)
async def update_account(body: UpdateAccountRequest, auth: AuthDep) -> AccountResponse:
    sb = _client()
    profile = await _load_profile(sb, auth=auth)
    _ensure_not_expired(profile)

    changes: dict[str, Any] = {}
    if body.name is not None:
        changes["name"] = body.name
    if "due_date" in body.model_fields_set:
        changes["due_date"] = body.due_date.isoformat() if body.due_date else None
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update"
        )

    row = {
        "id": auth.user_id,
        "email": auth.email,
        **changes,
        "updated_at": _utc_now().isoformat(),
    }
    saved = await sb.upsert_one(
        "profiles", bearer_token=auth.access_token, on_conflict="id", row=row
    )
    return AccountResponse(
        message="Account updated successfully",
        user=_to_profile(auth, saved or {**(profile or {}), **row}),
    )


@router.delete("/account", response_model=DeletionScheduleResponse)
async def request_account_deletion(auth: AuthDep) -> DeletionScheduleResponse:
    sb = _client()
    profile = await _load_profile(sb, auth=auth)
    grace_days = settings.account_deletion_grace_days

    requested = deletion_requested_at(profile)
    if requested is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "Account deletion already requested",
                "deletion_requested_at": requested.isoformat(),
                "permanent_deletion_at": permanent_deletion_at(
                    requested, grace_days=grace_days
                ).isoformat(),
            },
        )

    now = _utc_now()
    await sb.upsert_one(
        "profiles",
        bearer_token=auth.access_token,
        on_conflict="id",
        row={
            "id": auth.user_id,
            "email": auth.email,
            "deletion_requested_at": now.isoformat(),
            "updated_at": now.isoformat(),
        },
    )
    logger.info("account deletion requested user=%s", auth.user_id)
    return DeletionScheduleResponse(
        message=(
            f"Account deletion requested. Your account will be permanently deleted "
            f"in {grace_days} days. You can recover your account before then."
        ),
        deletion_requested_at=now,
        permanent_deletion_at=permanent_deletion_at(now, grace_days=grace_days),
    )


@router.post("/account/recover", response_model=AccountResponse)
async def recover_account(auth: AuthDep) -> AccountResponse:
    sb = _client()
    profile = await _load_profile(sb, auth=auth)
    requested = deletion_requested_at(profile)
    if requested is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Account is not pending deletion",
        )
    if is_grace_expired(
        requested, now=_utc_now(), grace_days=settings.account_deletion_grace_days
    ):
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Account has been permanently deleted and cannot be recovered",
        )

    rows = await sb.patch(
        "profiles",
        bearer_token=auth.access_token,
        params={"id": f"eq.{auth.user_id}"},
        row={"deletion_requested_at": None, "updated_at": _utc_now().isoformat()},
    )
    logger.info("account recovered user=%s", auth.user_id)
    restored = rows[0] if rows else {**(profile or {}), "deletion_requested_at": None}
    return AccountResponse(
        message="Account recovered successfully. Your account is no longer scheduled for deletion.",
        user=_to_profile(auth, restored),
    )


@router.post("/account/migrate", response_model=MigrateResponse)
async def migrate_account_data(
    body: MigrateRequest,
    auth: AuthDep,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
) -> MigrateResponse:
    await consume(
        key=f"migrate:{auth.user_id}",
        limit=settings.migrate_per_minute_limit,
        window_seconds=60,
    )
    sb = _client()
    _ensure_not_expired(await _load_profile(sb, auth=auth))

    raw_key = normalize_idempotency_key(idempotency_key) or fingerprint_payload(
        body.model_dump(mode="json")
    )
    idem_key = f"account:migrate:{auth.user_id}:{raw_key}"
    state = await claim_idempotency_key(key=idem_key, processing_ttl_seconds=300)
    if state == "processing":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Migration already in progress",
        )
    if state == "done":
        return MigrateResponse(
            message="Data already migrated",
            migrated_items=MigratedItems(),
            replayed=True,
        )

    try:
        items = await migrate_guest_data(
            sb,
            user_id=auth.user_id,
            bearer_token=auth.access_token,
            data=body.data,
            now=_utc_now(),
        )
    except Exception:
        await clear_idempotency_key(key=idem_key)
        raise
    await mark_idempotency_done(key=idem_key)
    return MigrateResponse(message="Data migrated successfully", migrated_items=items)


@router.post("/account/cron/purge-expired", response_model=PurgeResponse)
async def purge_expired(_: CronDep) -> PurgeResponse:
    result = await purge_expired_accounts(now=_utc_now())
    return PurgeResponse(
        scanned=result.scanned, deleted=result.deleted, failed=result.failed
    )
