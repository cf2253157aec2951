from __future__ import annotations

import logging
from datetime import date as Date
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from prenatal_hub.core.config import settings
from prenatal_hub.core.security import AuthContext, AuthDep
from prenatal_hub.schemas.journal import (
    CalendarResponse,
    CreateJournalEntryRequest,
    JournalDateResponse,
    JournalEntry,
    JournalListResponse,
    MoodStatsResponse,
    StreakResponse,
    UpdateJournalEntryRequest,
)
from prenatal_hub.services.catalog import JOURNEYS, TOPICS
from prenatal_hub.services.error_log import log_system_error
from prenatal_hub.services.journal_stats import (
    build_calendar,
    month_bounds,
    mood_window,
    summarize_moods,
)
from prenatal_hub.services.references import (
    extract_references,
    merge_journey_references,
    merge_topic_references,
    validate_journey_references,
    validate_topic_references,
)
from prenatal_hub.services.streaks import compute_streaks, extract_journal_dates
from prenatal_hub.services.supabase_rest import SupabaseRest, SupabaseRestError


logger = logging.getLogger(__name__)
router = APIRouter()

JOURNAL_COLUMNS = (
    "id,journal_date,content,mood,kick_count,entry_type,"
    "topic_references,journey_references,voice_note_ids,created_at,updated_at"
)
_NOT_FOUND = "Journal entry not found"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _client() -> SupabaseRest:
    return SupabaseRest(str(settings.supabase_url), settings.supabase_anon_key)


def _date_range(column: str, start: Date | None, end: Date | None) -> dict[str, str]:
    if start and end:
        return {"and": f"({column}.gte.{start.isoformat()},{column}.lte.{end.isoformat()})"}
    if start:
        return {column: f"gte.{start.isoformat()}"}
    if end:
        return {column: f"lte.{end.isoformat()}"}
    return {}


async def _get_owned_entry(
    sb: SupabaseRest, *, auth: AuthContext, entry_id: UUID
) -> dict[str, Any]:
    rows = await sb.select(
        "journal_entries",
        bearer_token=auth.access_token,
        params={
            "select": JOURNAL_COLUMNS,
            "id": f"eq.{entry_id}",
            "user_id": f"eq.{auth.user_id}",
            "limit": 1,
        },
    )
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return rows[0]


async def _refresh_streak(sb: SupabaseRest, *, auth: AuthContext, today: Date) -> None:
    # Auxiliary write: never fail the journal save because of it.
    try:
        rows = await sb.select(
            "journal_entries",
            bearer_token=auth.access_token,
            params={
                "select": "journal_date",
                "user_id": f"eq.{auth.user_id}",
                "journal_date": f"lte.{today.isoformat()}",
                "order": "journal_date.asc",
                "limit": 5000,
            },
        )
        dates = extract_journal_dates(rows)
        current, longest = compute_streaks(log_dates=dates, anchor_date=today)
        await sb.upsert_one(
            "streaks",
            bearer_token=auth.access_token,
            on_conflict="user_id",
            row={
                "user_id": auth.user_id,
                "current_streak": current,
                "longest_streak": longest,
                "last_activity_date": max(dates).isoformat() if dates else None,
                "updated_at": _utc_now().isoformat(),
            },
        )
    except SupabaseRestError as exc:
        await log_system_error(
            route="/api/journal",
            message="streak refresh failed (non-blocking)",
            user_id=auth.user_id,
            err=exc,
            meta={"code": exc.code, "status_code": exc.status_code},
        )


@router.get("/journal", response_model=JournalListResponse)
async def list_journal_entries(
    auth: AuthDep,
    start_date: Date | None = Query(default=None),
    end_date: Date | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> JournalListResponse:
    rows, total = await _client().select_with_count(
        "journal_entries",
        bearer_token=auth.access_token,
        params={
            "select": JOURNAL_COLUMNS,
            "user_id": f"eq.{auth.user_id}",
            **_date_range("journal_date", start_date, end_date),
            "order": "journal_date.desc,created_at.desc",
            "offset": offset,
            "limit": limit,
        },
    )
    return JournalListResponse.model_validate(
        {
            "entries": rows,
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + len(rows) < total,
            },
        }
    )


@router.get("/journal/moods", response_model=MoodStatsResponse)
async def get_mood_stats(
    auth: AuthDep,
    days: int = Query(default=30, ge=1, le=365),
) -> MoodStatsResponse:
    today = _utc_now().date()
    start, end = mood_window(days=days, today=today)
    rows = await _client().select(
        "journal_entries",
        bearer_token=auth.access_token,
        params={
            "select": "id,journal_date,mood",
            "user_id": f"eq.{auth.user_id}",
            "mood": "not.is.null",
            **_date_range("journal_date", start, end),
            "order": "journal_date.asc,created_at.asc",
        },
    )
    return MoodStatsResponse.model_validate(
        summarize_moods(rows, days=days, today=today)
    )


@router.get("/journal/date/{day}", response_model=JournalDateResponse)
async def get_entries_for_date(
    auth: AuthDep,
    day: Date = Path(..., description="YYYY-MM-DD"),
) -> JournalDateResponse:
    rows = await _client().select(
        "journal_entries",
        bearer_token=auth.access_token,
        params={
            "select": JOURNAL_COLUMNS,
            "user_id": f"eq.{auth.user_id}",
            "journal_date": f"eq.{day.isoformat()}",
            "order": "created_at.asc",
        },
    )
    return JournalDateResponse.model_validate(
        {"date": day, "entries": rows, "count": len(rows)}
    )


@router.get("/journal/calendar", response_model=CalendarResponse)
async def get_calendar(
    auth: AuthDep,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
) -> CalendarResponse:
    first, last = month_bounds(year=year, month=month)
    rows = await _client().select(
        "journal_entries",
        bearer_token=auth.access_token,
        params={
            "select": "id,journal_date,mood",
            "user_id": f"eq.{auth.user_id}",
            **_date_range("journal_date", first, last),
            "order": "journal_date.asc,created_at.asc",
        },
    )
    return CalendarResponse.model_validate(
        build_calendar(rows, year=year, month=month)
    )


@router.get("/journal/streak", response_model=StreakResponse)
async def get_journal_streak(auth: AuthDep) -> StreakResponse:
    today = _utc_now().date()
    rows = await _client().select(
        "journal_entries",
        bearer_token=auth.access_token,
        params={
            "select": "journal_date",
            "user_id": f"eq.{auth.user_id}",
            "journal_date": f"lte.{today.isoformat()}",
            "order": "journal_date.asc",
            "limit": 5000,
        },
    )
    dates = extract_journal_dates(rows)
    current, longest = compute_streaks(log_dates=dates, anchor_date=today)
    return StreakResponse(
        current_streak=current,
        longest_streak=longest,
        last_activity_date=max(dates) if dates else None,
    )


@router.post(
    "/journal", response_model=JournalEntry, status_code=status.HTTP_201_CREATED
)
async def create_journal_entry(
    body: CreateJournalEntryRequest, auth: AuthDep
) -> JournalEntry:
    sb = _client()
    now_iso = _utc_now().isoformat()

    scanned = extract_references(body.content, TOPICS, JOURNEYS)
    topic_refs = merge_topic_references(
        scanned.topic_references,
        validate_topic_references(body.topic_references, TOPICS),
    )
    journey_refs = merge_journey_references(
        scanned.journey_references,
        validate_journey_references(body.journey_references, JOURNEYS),
    )

    row = await sb.insert_one(
        "journal_entries",
        bearer_token=auth.access_token,
        row={
            "user_id": auth.user_id,
            "journal_date": body.journal_date.isoformat(),
            "content": body.content,
            "mood": body.mood,
            "kick_count": body.kick_count if body.kick_count else None,
            "entry_type": body.entry_type,
            "topic_references": [r.model_dump() for r in topic_refs],
            "journey_references": [r.model_dump() for r in journey_refs],
            "voice_note_ids": [],
            "created_at": now_iso,
            "updated_at": now_iso,
        },
    )
    if not row:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save journal entry",
        )

    await _refresh_streak(sb, auth=auth, today=_utc_now().date())
    logger.info("journal entry created id=%s user=%s", row.get("id"), auth.user_id)
    return JournalEntry.model_validate(row)


@router.get("/journal/{entry_id}", response_model=JournalEntry)
async def get_journal_entry(entry_id: UUID, auth: AuthDep) -> JournalEntry:
    row = await _get_owned_entry(_client(), auth=auth, entry_id=entry_id)
    return JournalEntry.model_validate(row)


@router.put("/journal/{entry_id}", response_model=JournalEntry)
async def update_journal_entry(
    entry_id: UUID, body: UpdateJournalEntryRequest, auth: AuthDep
) -> JournalEntry:
    sb = _client()
    await _get_owned_entry(sb, auth=auth, entry_id=entry_id)

    sent = body.model_fields_set
    updates: dict[str, Any] = {"updated_at": _utc_now().isoformat()}

    explicit_topics = (
        validate_topic_references(body.topic_references, TOPICS)
        if body.topic_references is not None
        else None
    )
    explicit_journeys = (
        validate_journey_references(body.journey_references, JOURNEYS)
        if body.journey_references is not None
        else None
    )

    if body.content is not None:
        # New text: references are re-derived from it, explicit ones fill gaps.
        updates["content"] = body.content
        scanned = extract_references(body.content, TOPICS, JOURNEYS)
        updates["topic_references"] = [
            r.model_dump()
            for r in merge_topic_references(
                scanned.topic_references, explicit_topics or []
            )
        ]
        updates["journey_references"] = [
            r.model_dump()
            for r in merge_journey_references(
                scanned.journey_references, explicit_journeys or []
            )
        ]
    else:
        if explicit_topics is not None:
            updates["topic_references"] = [r.model_dump() for r in explicit_topics]
        if explicit_journeys is not None:
            updates["journey_references"] = [r.model_dump() for r in explicit_journeys]

    if "mood" in sent:
        updates["mood"] = body.mood
    if "kick_count" in sent:
        updates["kick_count"] = body.kick_count if body.kick_count else None

    rows = await sb.patch(
        "journal_entries",
        bearer_token=auth.access_token,
        params={"id": f"eq.{entry_id}", "user_id": f"eq.{auth.user_id}"},
        row=updates,
    )
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)

    logger.info("journal entry updated id=%s user=%s", entry_id, auth.user_id)
    return JournalEntry.model_validate(rows[0])


@router.delete("/journal/{entry_id}")
async def delete_journal_entry(entry_id: UUID, auth: AuthDep) -> dict[str, str]:
    deleted = await _client().delete(
        "journal_entries",
        bearer_token=auth.access_token,
        params={"id": f"eq.{entry_id}", "user_id": f"eq.{auth.user_id}"},
    )
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    logger.info("journal entry deleted id=%s user=%s", entry_id, auth.user_id)
    return {"message": "Journal entry deleted successfully"}
