from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from datetime import date as Date
from datetime import datetime, time, timedelta, timezone
from typing import Any


@dataclass(frozen=True)
class Milestone:
    count: int
    label: str


MILESTONES: tuple[Milestone, ...] = (
    Milestone(10, "First 10 kicks!"),
    Milestone(50, "50 kicks milestone!"),
    Milestone(100, "100 kicks achieved!"),
    Milestone(250, "250 kicks - Amazing!"),
    Milestone(500, "500 kicks - Incredible!"),
    Milestone(1000, "1000 kicks - Superstar!"),
)

# (key, first hour, end hour exclusive, label); night wraps past midnight.
TIME_PERIODS: tuple[tuple[str, int, int, str], ...] = (
    ("morning", 6, 12, "Morning (6am-12pm)"),
    ("afternoon", 12, 18, "Afternoon (12pm-6pm)"),
    ("evening", 18, 22, "Evening (6pm-10pm)"),
    ("night", 22, 6, "Night (10pm-6am)"),
)


def _round1(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def _pct(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return int(math.floor(part / whole * 100 + 0.5))


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def extract_timestamps(rows: list[dict[str, Any]] | None) -> list[datetime]:
    out: list[datetime] = []
    for row in rows or []:
        ts = parse_timestamp(row.get("timestamp"))
        if ts is not None:
            out.append(ts)
    return out


def hour_label(hour: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    display = 12 if hour == 0 else hour - 12 if hour > 12 else hour
    return f"{display}{suffix}"


def period_for_hour(hour: int) -> str:
    for key, start, end, _ in TIME_PERIODS:
        if start < end and start <= hour < end:
            return key
    return "night"


def milestone_progress(total: int) -> dict[str, Any]:
    achieved = [m for m in MILESTONES if total >= m.count]
    upcoming = next((m for m in MILESTONES if total < m.count), None)
    progress = 100
    if upcoming is not None:
        floor_count = achieved[-1].count if achieved else 0
        progress = _pct(total - floor_count, upcoming.count - floor_count)
    return {
        "achieved": [{"count": m.count, "label": m.label} for m in achieved],
        "next": {"count": upcoming.count, "label": upcoming.label} if upcoming else None,
        "progress_to_next": progress,
    }


def summarize_kicks(timestamps: list[datetime], *, now: datetime) -> dict[str, Any]:
    total = len(timestamps)
    first = min(timestamps) if timestamps else None
    last = max(timestamps) if timestamps else None

    days_tracking = 0
    if first is not None:
        elapsed = (now - first).total_seconds() / 86400
        days_tracking = max(0, math.ceil(elapsed))

    week_start = datetime.combine(
        (now - timedelta(days=7)).date(), time.min, tzinfo=timezone.utc
    )
    weekly = sum(1 for ts in timestamps if ts >= week_start)

    return {
        "total_kicks": total,
        "days_tracking": days_tracking,
        "average_per_day": _round1(total / days_tracking) if days_tracking > 0 else 0,
        "weekly_kicks": weekly,
        "weekly_average": _round1(weekly / 7),
        "first_kick_date": first,
        "last_kick_date": last,
        "milestones": milestone_progress(total),
    }


def daily_series(
    timestamps: list[datetime], *, days: int, today: Date
) -> dict[str, Any]:
    """Per-day counts for the last `days` days including today, zero-filled."""
    start = today - timedelta(days=days - 1)
    buckets: dict[Date, list[datetime]] = {}
    for ts in timestamps:
        day = ts.date()
        if start <= day <= today:
            buckets.setdefault(day, []).append(ts)

    rows: list[dict[str, Any]] = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        hits = buckets.get(day, [])
        rows.append(
            {
                "date": day,
                "count": len(hits),
                "first_kick": min(hits) if hits else None,
                "last_kick": max(hits) if hits else None,
            }
        )

    peak = rows[0] if rows else None
    for row in rows:
        if peak is not None and row["count"] > peak["count"]:
            peak = row
    total = sum(r["count"] for r in rows)
    with_kicks = sum(1 for r in rows if r["count"] > 0)
    return {
        "days": rows,
        "summary": {
            "total_kicks": total,
            "average_per_day": _round1(total / len(rows)) if rows else 0,
            "peak_day": {"date": peak["date"], "count": peak["count"]} if peak else None,
            "days_with_kicks": with_kicks,
            "days_without_kicks": len(rows) - with_kicks,
        },
    }


def hourly_patterns(timestamps: list[datetime]) -> dict[str, Any]:
    by_hour = Counter(ts.hour for ts in timestamps)
    hourly = [
        {"hour": h, "count": by_hour.get(h, 0), "label": hour_label(h)}
        for h in range(24)
    ]

    period_totals = {key: 0 for key, *_ in TIME_PERIODS}
    for item in hourly:
        period_totals[period_for_hour(item["hour"])] += item["count"]
    total = sum(period_totals.values())

    peak_period = None
    max_count = 0
    for key, count in period_totals.items():
        if count > max_count:
            max_count = count
            peak_period = {"period": key, "count": count, "percentage": _pct(count, total)}

    peak_hour = None
    for item in hourly:
        if peak_hour is None or item["count"] > peak_hour["count"]:
            peak_hour = item

    return {
        "hourly_distribution": hourly,
        "period_stats": [
            {
                "period": key,
                "label": label,
                "count": period_totals[key],
                "percentage": _pct(period_totals[key], total),
            }
            for key, _, _, label in TIME_PERIODS
        ],
        "peak_period": peak_period,
        "peak_hour": peak_hour,
        "total_kicks": total,
    }
