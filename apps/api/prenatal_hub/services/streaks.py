from __future__ import annotations

from datetime import date as Date
from datetime import timedelta
from typing import Any


def _coerce_date(value: Any) -> Date | None:
    if isinstance(value, Date):
        return value
    if isinstance(value, str):
        try:
            return Date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def extract_journal_dates(rows: list[dict[str, Any]] | None) -> list[Date]:
    if not rows:
        return []
    out: list[Date] = []
    for row in rows:
        dt = _coerce_date(row.get("journal_date"))
        if dt is not None:
            out.append(dt)
    return out


def compute_streaks(*, log_dates: list[Date], anchor_date: Date) -> tuple[int, int]:
    """(current, longest) runs of consecutive days.

    The current run counts back from `anchor_date`; a day with no entry yet
    does not break it as long as yesterday has one.
    """
    if not log_dates:
        return 0, 0

    unique_dates = sorted(set(log_dates))
    date_set = set(unique_dates)

    cursor = anchor_date
    if cursor not in date_set:
        cursor -= timedelta(days=1)
    current = 0
    while cursor in date_set:
        current += 1
        cursor -= timedelta(days=1)

    longest = 0
    run = 0
    prev: Date | None = None
    for day in unique_dates:
        if prev is None or day == prev + timedelta(days=1):
            run += 1
        else:
            run = 1
        prev = day
        longest = max(longest, run)

    return current, longest


def merge_streak_rows(
    existing: dict[str, Any] | None, incoming: dict[str, Any]
) -> dict[str, Any]:
    """Combine two streak records, keeping the larger counts and the later activity date."""
    if not existing:
        return {
            "current_streak": int(incoming.get("current_streak") or 0),
            "longest_streak": int(incoming.get("longest_streak") or 0),
            "last_activity_date": _coerce_date(incoming.get("last_activity_date")),
        }

    dates = [
        d
        for d in (
            _coerce_date(existing.get("last_activity_date")),
            _coerce_date(incoming.get("last_activity_date")),
        )
        if d is not None
    ]
    return {
        "current_streak": max(
            int(existing.get("current_streak") or 0),
            int(incoming.get("current_streak") or 0),
        ),
        "longest_streak": max(
            int(existing.get("longest_streak") or 0),
            int(incoming.get("longest_streak") or 0),
        ),
        "last_activity_date": max(dates) if dates else None,
    }
