"""Move a guest's browser-stored data into their new account.

Guest kicks and journal entries are only copied when they are newer than the
account's most recent journal entry. That single timestamp cutoff keeps a
repeated login/logout cycle from importing the same data twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date as Date
from datetime import datetime, timezone
from typing import Any

from prenatal_hub.schemas.account import (
    GuestData,
    GuestJournalEntry,
    GuestKick,
    MigratedItems,
)
from prenatal_hub.services.catalog import JOURNEYS, TOPIC_IDS, TOPICS
from prenatal_hub.services.kick_stats import parse_timestamp
from prenatal_hub.services.references import extract_references
from prenatal_hub.services.streaks import merge_streak_rows
from prenatal_hub.services.supabase_rest import SupabaseRest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KickDay:
    journal_date: Date
    kick_count: int
    latest_at: datetime


def ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def cutoff_ms(latest_entry: dict[str, Any] | None) -> int:
    """Epoch millis of the newest journal entry's creation, 0 when there is none."""
    if not latest_entry:
        return 0
    created = parse_timestamp(latest_entry.get("created_at"))
    if created is None:
        return 0
    return int(created.timestamp() * 1000)


def group_kicks_by_day(kicks: list[GuestKick], *, after_ms: int) -> list[KickDay]:
    grouped: dict[Date, list[GuestKick]] = {}
    for kick in kicks:
        if kick.timestamp <= after_ms:
            continue
        grouped.setdefault(ms_to_datetime(kick.timestamp).date(), []).append(kick)

    return [
        KickDay(
            journal_date=day,
            kick_count=len(items),
            latest_at=ms_to_datetime(max(k.timestamp for k in items)),
        )
        for day, items in sorted(grouped.items())
    ]


def journal_entries_after(
    entries: list[GuestJournalEntry], *, after_ms: int
) -> list[GuestJournalEntry]:
    def _ms(entry: GuestJournalEntry) -> int:
        created = entry.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return int(created.timestamp() * 1000)

    return sorted((e for e in entries if _ms(e) > after_ms), key=_ms)


def new_story_ids(completed: list[int], existing: set[int]) -> list[int]:
    out: list[int] = []
    for story_id in completed:
        if story_id in TOPIC_IDS and story_id not in existing and story_id not in out:
            out.append(story_id)
    return out


def journal_row(
    *,
    user_id: str,
    journal_date: Date,
    content: str,
    mood: str | None,
    kick_count: int | None,
    now_iso: str,
    created_at: str | None = None,
) -> dict[str, Any]:
    """Build a journal row; `created_at` defaults to `now_iso`."""
    refs = extract_references(content, TOPICS, JOURNEYS)
    return {
        "user_id": user_id,
        "journal_date": journal_date.isoformat(),
        "content": content,
        "mood": mood,
        "kick_count": kick_count if kick_count else None,
        "entry_type": "text",
        "topic_references": [r.model_dump() for r in refs.topic_references],
        "journey_references": [r.model_dump() for r in refs.journey_references],
        "voice_note_ids": [],
        "created_at": created_at or now_iso,
        "updated_at": now_iso,
    }


async def migrate_guest_data(
    sb: SupabaseRest,
    *,
    user_id: str,
    bearer_token: str,
    data: GuestData,
    now: datetime,
) -> MigratedItems:
    """Copy guest data into the account, one record at a time."""
    items = MigratedItems()
    now_iso = now.isoformat()
    scope = {"user_id": f"eq.{user_id}"}

    if data.completed_stories:
        rows = await sb.select(
            "topic_progress",
            bearer_token=bearer_token,
            params={"select": "story_id", **scope},
        )
        existing = {int(r["story_id"]) for r in rows if r.get("story_id") is not None}
        for story_id in new_story_ids(data.completed_stories, existing):
            await sb.insert_one(
                "topic_progress",
                bearer_token=bearer_token,
                row={
                    "user_id": user_id,
                    "story_id": story_id,
                    "current_step": "completed",
                    "completed_steps": [],
                    "is_completed": True,
                    "completed_at": now_iso,
                    "created_at": now_iso,
                    "updated_at": now_iso,
                },
            )
            items.progress += 1

    if data.preferences is not None:
        updates = data.preferences.model_dump(exclude_none=True)
        rows = await sb.select(
            "user_preferences",
            bearer_token=bearer_token,
            params={"select": "user_id", **scope, "limit": 1},
        )
        # Guest preferences only refine an existing row; new accounts keep defaults.
        if rows and updates:
            await sb.patch(
                "user_preferences",
                bearer_token=bearer_token,
                params=scope,
                row={**updates, "updated_at": now_iso},
            )
            items.preferences = 1

    if data.streak_data is not None:
        incoming = data.streak_data.model_dump(exclude_none=True)
        rows = await sb.select(
            "streaks",
            bearer_token=bearer_token,
            params={
                "select": "current_streak,longest_streak,last_activity_date",
                **scope,
                "limit": 1,
            },
        )
        if rows:
            merged = merge_streak_rows(rows[0], incoming)
            await sb.patch(
                "streaks",
                bearer_token=bearer_token,
                params=scope,
                row={
                    "current_streak": merged["current_streak"],
                    "longest_streak": merged["longest_streak"],
                    "updated_at": now_iso,
                },
            )
        else:
            merged = merge_streak_rows(None, incoming)
            last_day = merged["last_activity_date"] or now.date()
            await sb.insert_one(
                "streaks",
                bearer_token=bearer_token,
                row={
                    "user_id": user_id,
                    "current_streak": merged["current_streak"],
                    "longest_streak": merged["longest_streak"],
                    "last_activity_date": last_day.isoformat(),
                    "updated_at": now_iso,
                },
            )
        items.streaks = 1

    if data.kick_data or data.journal_data:
        latest = await sb.select(
            "journal_entries",
            bearer_token=bearer_token,
            params={
                "select": "id,created_at",
                **scope,
                "order": "created_at.desc",
                "limit": 1,
            },
        )
        after_ms = cutoff_ms(latest[0] if latest else None)

        for day in group_kicks_by_day(data.kick_data, after_ms=after_ms):
            await sb.insert_one(
                "journal_entries",
                bearer_token=bearer_token,
                row=journal_row(
                    user_id=user_id,
                    journal_date=day.journal_date,
                    content="",
                    mood=None,
                    kick_count=day.kick_count,
                    now_iso=now_iso,
                    created_at=day.latest_at.isoformat(),
                ),
            )
            items.kicks += day.kick_count

        for entry in journal_entries_after(data.journal_data, after_ms=after_ms):
            await sb.insert_one(
                "journal_entries",
                bearer_token=bearer_token,
                row=journal_row(
                    user_id=user_id,
                    journal_date=entry.journal_date,
                    content=entry.content,
                    mood=entry.mood,
                    kick_count=entry.kick_count,
                    now_iso=now_iso,
                ),
            )
            items.journal_entries += 1

    logger.info(
        "guest data migrated user=%s progress=%d preferences=%d streaks=%d kicks=%d journal=%d",
        user_id,
        items.progress,
        items.preferences,
        items.streaks,
        items.kicks,
        items.journal_entries,
    )
    return items
