from __future__ import annotations

import calendar
import math
from collections import Counter
from datetime import date as Date
from datetime import timedelta
from typing import Any

from prenatal_hub.schemas.journal import to_utc_date


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def row_date(row: dict[str, Any]) -> Date | None:
    value = to_utc_date(row.get("journal_date"))
    if isinstance(value, Date):
        return value
    if isinstance(value, str):
        try:
            return Date.fromisoformat(value)
        except ValueError:
            return None
    return None


def mood_window(*, days: int, today: Date) -> tuple[Date, Date]:
    return today - timedelta(days=days), today


def month_bounds(*, year: int, month: int) -> tuple[Date, Date]:
    last_day = calendar.monthrange(year, month)[1]
    return Date(year, month, 1), Date(year, month, last_day)


def summarize_moods(
    rows: list[dict[str, Any]], *, days: int, today: Date
) -> dict[str, Any]:
    """Mood distribution and trend for rows already limited to the window.

    Rows are expected oldest first; ties in the distribution keep the order
    in which each mood first appeared.
    """
    start, end = mood_window(days=days, today=today)
    counts: Counter[str] = Counter()
    trend: list[dict[str, Any]] = []
    for row in rows:
        mood = row.get("mood")
        day = row_date(row)
        if not mood or day is None:
            continue
        counts[mood] += 1
        trend.append({"date": day, "mood": mood})

    total = len(trend)
    distribution = sorted(
        (
            {"mood": mood, "count": count, "percentage": percentage(count, total)}
            for mood, count in counts.items()
        ),
        key=lambda item: item["count"],
        reverse=True,
    )
    return {
        "period": {"days": days, "start_date": start, "end_date": end},
        "total_entries_with_mood": total,
        "most_common_mood": distribution[0]["mood"] if distribution else None,
        "mood_distribution": distribution,
        "mood_trend": trend,
    }


def build_calendar(
    rows: list[dict[str, Any]], *, year: int, month: int
) -> dict[str, Any]:
    days: dict[int, dict[str, Any]] = {}
    total = 0
    for row in rows:
        day = row_date(row)
        if day is None or day.year != year or day.month != month:
            continue
        total += 1
        bucket = days.setdefault(
            day.day,
            {"has_entry": True, "entry_count": 0, "moods": [], "entry_ids": []},
        )
        bucket["entry_count"] += 1
        bucket["entry_ids"].append(str(row.get("id")))
        if row.get("mood"):
            bucket["moods"].append(row["mood"])
    return {
        "month": month,
        "year": year,
        "days_with_entries": days,
        "total_entries": total,
    }
