from __future__ import annotations

import logging
from datetime import date as Date
from datetime import datetime, time, timedelta, timezone
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from prenatal_hub.core.config import settings
from prenatal_hub.core.security import AuthContext, AuthDep
from prenatal_hub.schemas.kicks import (
    DailyKicksResponse,
    KickListResponse,
    KickPatternsResponse,
    KickResponse,
    KickStatsResponse,
    LogKickRequest,
    UpdateKickRequest,
)
from prenatal_hub.services.kick_stats import (
    daily_series,
    extract_timestamps,
    hourly_patterns,
    summarize_kicks,
)
from prenatal_hub.services.supabase_rest import SupabaseRest


logger = logging.getLogger(__name__)
router = APIRouter()

KICK_COLUMNS = "id,timestamp,note,created_at,updated_at"
_NOT_FOUND = "Kick event not found"
# Upper bound on rows pulled for in-process aggregation.
_STATS_ROW_LIMIT = 20000


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _client() -> SupabaseRest:
    return SupabaseRest(str(settings.supabase_url), settings.supabase_anon_key)


def _day_start(day: Date) -> str:
    return datetime.combine(day, time.min, tzinfo=timezone.utc).isoformat()


def _day_end(day: Date) -> str:
    return datetime.combine(day, time.max, tzinfo=timezone.utc).isoformat()


async def _load_timestamps(
    sb: SupabaseRest, *, auth: AuthContext, since: str | None = None
) -> list[datetime]:
    params: dict[str, str | int] = {
        "select": "timestamp",
        "user_id": f"eq.{auth.user_id}",
        "order": "timestamp.asc",
        "limit": _STATS_ROW_LIMIT,
    }
    if since:
        params["timestamp"] = f"gte.{since}"
    rows = await sb.select("kick_events", bearer_token=auth.access_token, params=params)
    return extract_timestamps(rows)


@router.get("/kicks", response_model=KickListResponse)
async def list_kicks(
    auth: AuthDep,
    start_date: Date | None = Query(default=None),
    end_date: Date | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> KickListResponse:
    params: dict[str, str | int] = {
        "select": KICK_COLUMNS,
        "user_id": f"eq.{auth.user_id}",
        "order": "timestamp.desc",
        "offset": offset,
        "limit": limit,
    }
    if start_date and end_date:
        params["and"] = (
            f"(timestamp.gte.{_day_start(start_date)},timestamp.lte.{_day_end(end_date)})"
        )
    elif start_date:
        params["timestamp"] = f"gte.{_day_start(start_date)}"
    elif end_date:
        params["timestamp"] = f"lte.{_day_end(end_date)}"

    rows, total = await _client().select_with_count(
        "kick_events", bearer_token=auth.access_token, params=params
    )
    return KickListResponse.model_validate(
        {
            "kicks": rows,
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + len(rows) < total,
            },
        }
    )


@router.post("/kicks", response_model=KickResponse, status_code=status.HTTP_201_CREATED)
async def log_kick(body: LogKickRequest, auth: AuthDep) -> KickResponse:
    now = _utc_now()
    kick_at = body.timestamp or now
    if kick_at.tzinfo is None:
        kick_at = kick_at.replace(tzinfo=timezone.utc)

    row = await _client().insert_one(
        "kick_events",
        bearer_token=auth.access_token,
        row={
            "user_id": auth.user_id,
            "timestamp": kick_at.astimezone(timezone.utc).isoformat(),
            "note": body.note or None,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        },
    )
    if not row:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to log kick",
        )
    logger.info("kick logged id=%s user=%s", row.get("id"), auth.user_id)
    return KickResponse.model_validate(
        {"message": "Kick logged successfully", "kick": row}
    )


@router.get("/kicks/stats", response_model=KickStatsResponse)
async def get_kick_stats(auth: AuthDep) -> KickStatsResponse:
    timestamps = await _load_timestamps(_client(), auth=auth)
    return KickStatsResponse.model_validate(
        summarize_kicks(timestamps, now=_utc_now())
    )


@router.get("/kicks/daily", response_model=DailyKicksResponse)
async def get_daily_kicks(
    auth: AuthDep,
    days: int = Query(default=7, ge=1, le=365),
) -> DailyKicksResponse:
    today = _utc_now().date()
    start = today - timedelta(days=days - 1)
    timestamps = await _load_timestamps(_client(), auth=auth, since=_day_start(start))
    return DailyKicksResponse.model_validate(
        daily_series(timestamps, days=days, today=today)
    )


@router.get("/kicks/patterns", response_model=KickPatternsResponse)
async def get_kick_patterns(auth: AuthDep) -> KickPatternsResponse:
    timestamps = await _load_timestamps(_client(), auth=auth)
    return KickPatternsResponse.model_validate(hourly_patterns(timestamps))


@router.put("/kicks/{kick_id}", response_model=KickResponse)
async def update_kick(
    kick_id: UUID, body: UpdateKickRequest, auth: AuthDep
) -> KickResponse:
    rows = await _client().patch(
        "kick_events",
        bearer_token=auth.access_token,
        params={"id": f"eq.{kick_id}", "user_id": f"eq.{auth.user_id}"},
        row={"note": body.note or None, "updated_at": _utc_now().isoformat()},
    )
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return KickResponse.model_validate(
        {"message": "Kick updated successfully", "kick": rows[0]}
    )


@router.delete("/kicks/{kick_id}")
async def delete_kick(kick_id: UUID, auth: AuthDep) -> dict[str, str]:
    deleted = await _client().delete(
        "kick_events",
        bearer_token=auth.access_token,
        params={"id": f"eq.{kick_id}", "user_id": f"eq.{auth.user_id}"},
    )
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    logger.info("kick deleted id=%s user=%s", kick_id, auth.user_id)
    return {"message": "Kick deleted successfully"}
