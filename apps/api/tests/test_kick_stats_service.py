from __future__ import annotations

from datetime import date as Date
from datetime import datetime, timezone

import pytest

from prenatal_hub.services.kick_stats import (
    daily_series,
    extract_timestamps,
    hour_label,
    hourly_patterns,
    milestone_progress,
    period_for_hour,
    summarize_kicks,
)


def _ts(day: int, hour: int = 9, month: int = 3) -> datetime:
    return datetime(2026, month, day, hour, tzinfo=timezone.utc)


def test_extract_timestamps_normalizes_to_utc_and_skips_garbage() -> None:
    stamps = extract_timestamps(
        [
            {"timestamp": "2026-03-01T10:00:00Z"},
            {"timestamp": "2026-03-01T12:00:00+02:00"},
            {"timestamp": "not a date"},
            {"timestamp": None},
        ]
    )

    assert stamps == [_ts(1, 10), _ts(1, 10)]


@pytest.mark.parametrize(
    ("hour", "label", "period"),
    [
        (0, "12AM", "night"),
        (5, "5AM", "night"),
        (6, "6AM", "morning"),
        (12, "12PM", "afternoon"),
        (18, "6PM", "evening"),
        (21, "9PM", "evening"),
        (22, "10PM", "night"),
    ],
)
def test_hour_label_and_period(hour: int, label: str, period: str) -> None:
    assert hour_label(hour) == label
    assert period_for_hour(hour) == period


def test_milestone_progress_between_milestones() -> None:
    progress = milestone_progress(30)

    assert [m["count"] for m in progress["achieved"]] == [10]
    assert progress["next"] == {"count": 50, "label": "50 kicks milestone!"}
    assert progress["progress_to_next"] == 50


def test_milestone_progress_past_last_milestone() -> None:
    progress = milestone_progress(1200)

    assert len(progress["achieved"]) == 6
    assert progress["next"] is None
    assert progress["progress_to_next"] == 100


def test_summarize_kicks_counts_tracking_days_and_week() -> None:
    now = _ts(15, 12)
    stamps = [_ts(1), _ts(7), _ts(8, 0), _ts(14), _ts(15, 8)]

    summary = summarize_kicks(stamps, now=now)

    assert summary["total_kicks"] == 5
    # 14 days and 3 hours since the first kick.
    assert summary["days_tracking"] == 15
    assert summary["average_per_day"] == 0.3
    assert summary["weekly_kicks"] == 3
    assert summary["weekly_average"] == 0.4
    assert summary["first_kick_date"] == _ts(1)
    assert summary["last_kick_date"] == _ts(15, 8)


def test_summarize_kicks_without_history() -> None:
    summary = summarize_kicks([], now=_ts(15))

    assert summary["total_kicks"] == 0
    assert summary["days_tracking"] == 0
    assert summary["average_per_day"] == 0
    assert summary["first_kick_date"] is None
    assert summary["milestones"]["next"]["count"] == 10


def test_daily_series_zero_fills_and_picks_first_peak() -> None:
    stamps = [_ts(13, 8), _ts(13, 20), _ts(15, 7), _ts(15, 9), _ts(1)]

    series = daily_series(stamps, days=3, today=Date(2026, 3, 15))

    assert [d["date"] for d in series["days"]] == [
        Date(2026, 3, 13),
        Date(2026, 3, 14),
        Date(2026, 3, 15),
    ]
    assert [d["count"] for d in series["days"]] == [2, 0, 2]
    assert series["days"][0]["first_kick"] == _ts(13, 8)
    assert series["days"][0]["last_kick"] == _ts(13, 20)
    assert series["days"][1]["first_kick"] is None
    assert series["summary"] == {
        "total_kicks": 4,
        "average_per_day": 1.3,
        "peak_day": {"date": Date(2026, 3, 13), "count": 2},
        "days_with_kicks": 2,
        "days_without_kicks": 1,
    }


def test_hourly_patterns_reports_peaks() -> None:
    stamps = [_ts(1, 23), _ts(2, 2), _ts(3, 9), _ts(4, 9), _ts(5, 9), _ts(6, 14)]

    patterns = hourly_patterns(stamps)

    assert len(patterns["hourly_distribution"]) == 24
    assert patterns["peak_hour"] == {"hour": 9, "count": 3, "label": "9AM"}
    assert patterns["peak_period"] == {"period": "morning", "count": 3, "percentage": 50}
    stats = {s["period"]: s for s in patterns["period_stats"]}
    assert stats["night"]["count"] == 2
    assert stats["night"]["percentage"] == 33
    assert stats["evening"]["percentage"] == 0
    assert patterns["total_kicks"] == 6


def test_hourly_patterns_without_kicks_has_no_peak_period() -> None:
    patterns = hourly_patterns([])

    assert patterns["peak_period"] is None
    assert patterns["peak_hour"] == {"hour": 0, "count": 0, "label": "12AM"}
    assert all(s["percentage"] == 0 for s in patterns["period_stats"])
