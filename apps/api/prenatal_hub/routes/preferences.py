from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, status

from prenatal_hub.core.config import settings
from prenatal_hub.core.security import AuthDep
from prenatal_hub.schemas.preferences import (
    PreferencesResponse,
    UpdatePreferencesRequest,
    UserPreferences,
)
from prenatal_hub.services.account_deletion import delete_user_data
from prenatal_hub.services.supabase_rest import SupabaseRest, SupabaseRestError


router = APIRouter()

PREFERENCE_COLUMNS = (
    "user_id,theme,font_size,reading_mode,notifications,accessibility,"
    "due_date,topic_progress,completed_stories,updated_at"
)
# Journal, kicks, progress and streaks; preferences and profile stay.
_RESETTABLE_TABLES = ("journal_entries", "kick_events", "topic_progress", "streaks")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_rls_write_failure(exc: SupabaseRestError) -> bool:
    msg = str(exc).lower()
    return exc.code == "42501" or "row-level security policy" in msg


def _to_row(user_id: str, prefs: UserPreferences) -> dict[str, Any]:
    row = prefs.model_dump(mode="json", exclude={"updated_at"})
    return {"user_id": user_id, **row, "updated_at": _utc_now_iso()}


def apply_preference_update(
    current: UserPreferences, body: UpdatePreferencesRequest
) -> UserPreferences:
    """Overlay a partial update; nested notification/accessibility flags merge key by key."""
    sent = body.model_fields_set
    merged = current.model_dump()
    for key in ("theme", "font_size", "reading_mode"):
        value = getattr(body, key)
        if value is not None:
            merged[key] = value
    if body.notifications is not None:
        merged["notifications"].update(body.notifications.model_dump(exclude_none=True))
    if body.accessibility is not None:
        merged["accessibility"].update(body.accessibility.model_dump(exclude_none=True))
    # These three accept an explicit null to clear them.
    for key in ("due_date", "topic_progress", "completed_stories"):
        if key in sent:
            value = getattr(body, key)
            if key == "topic_progress" and value is not None:
                value = {k: v.model_dump() for k, v in value.items()}
            merged[key] = value
    return UserPreferences.model_validate(merged)


async def _load_preferences(
    sb: SupabaseRest, *, user_id: str, bearer_token: str
) -> dict[str, Any] | None:
    rows = await sb.select(
        "user_preferences",
        bearer_token=bearer_token,
        params={
            "select": PREFERENCE_COLUMNS,
            "user_id": f"eq.{user_id}",
            "limit": 1,
        },
    )
    return rows[0] if rows else None


async def _save_preferences(
    row: dict[str, Any], *, bearer_token: str
) -> dict[str, Any]:
    sb = SupabaseRest(str(settings.supabase_url), settings.supabase_anon_key)
    try:
        return await sb.upsert_one(
            "user_preferences",
            bearer_token=bearer_token,
            on_conflict="user_id",
            row=row,
        )
    except SupabaseRestError as exc:
        # Fallback for environments where preference RLS policies lag behind.
        if not _is_rls_write_failure(exc):
            raise
        service = SupabaseRest(
            str(settings.supabase_url), settings.supabase_service_role_key
        )
        return await service.upsert_one(
            "user_preferences",
            bearer_token=settings.supabase_service_role_key,
            on_conflict="user_id",
            row=row,
        )


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(auth: AuthDep) -> PreferencesResponse:
    sb = SupabaseRest(str(settings.supabase_url), settings.supabase_anon_key)
    row = await _load_preferences(
        sb, user_id=auth.user_id, bearer_token=auth.access_token
    )
    if row is not None:
        return PreferencesResponse(preferences=UserPreferences.model_validate(row))

    saved = await _save_preferences(
        _to_row(auth.user_id, UserPreferences()), bearer_token=auth.access_token
    )
    return PreferencesResponse(
        preferences=UserPreferences.model_validate(saved or {})
    )


@router.put("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    body: UpdatePreferencesRequest, auth: AuthDep
) -> PreferencesResponse:
    sb = SupabaseRest(str(settings.supabase_url), settings.supabase_anon_key)
    existing = await _load_preferences(
        sb, user_id=auth.user_id, bearer_token=auth.access_token
    )
    current = (
        UserPreferences.model_validate(existing) if existing else UserPreferences()
    )
    updated = apply_preference_update(current, body)

    saved = await _save_preferences(
        _to_row(auth.user_id, updated), bearer_token=auth.access_token
    )
    if not saved:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save preferences",
        )
    return PreferencesResponse(preferences=UserPreferences.model_validate(saved))


@router.delete("/preferences/data")
async def delete_my_data(auth: AuthDep) -> dict[str, bool]:
    sb = SupabaseRest(str(settings.supabase_url), settings.supabase_anon_key)
    await delete_user_data(
        sb,
        user_id=auth.user_id,
        bearer_token=auth.access_token,
        tables=_RESETTABLE_TABLES,
    )
    return {"ok": True}
