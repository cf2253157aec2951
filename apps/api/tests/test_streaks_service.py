from __future__ import annotations

from datetime import date as Date

from prenatal_hub.services.streaks import (
    compute_streaks,
    extract_journal_dates,
    merge_streak_rows,
)


def test_compute_streaks_returns_five_for_five_consecutive_days() -> None:
    log_dates = [Date(2026, 2, d) for d in range(11, 16)]
    current, longest = compute_streaks(log_dates=log_dates, anchor_date=Date(2026, 2, 15))

    assert current == 5
    assert longest == 5


def test_compute_streaks_keeps_run_alive_until_today_is_written() -> None:
    log_dates = [Date(2026, 2, d) for d in range(10, 15)]
    current, longest = compute_streaks(log_dates=log_dates, anchor_date=Date(2026, 2, 15))

    assert current == 5
    assert longest == 5


def test_compute_streaks_resets_current_after_a_missed_day() -> None:
    log_dates = [Date(2026, 2, d) for d in range(8, 13)]
    current, longest = compute_streaks(log_dates=log_dates, anchor_date=Date(2026, 2, 15))

    assert current == 0
    assert longest == 5


def test_compute_streaks_counts_duplicate_days_once() -> None:
    log_dates = [Date(2026, 3, 1), Date(2026, 3, 1), Date(2026, 3, 2), Date(2026, 3, 4)]
    current, longest = compute_streaks(log_dates=log_dates, anchor_date=Date(2026, 3, 4))

    assert current == 1
    assert longest == 2


def test_compute_streaks_empty_history() -> None:
    assert compute_streaks(log_dates=[], anchor_date=Date(2026, 3, 4)) == (0, 0)


def test_extract_journal_dates_ignores_invalid_rows() -> None:
    dates = extract_journal_dates(
        [
            {"journal_date": "2026-02-10"},
            {"journal_date": "invalid"},
            {"journal_date": Date(2026, 2, 12)},
            {"journal_date": "2026-02-13T08:00:00+00:00"},
            {"not_date": "2026-02-14"},
        ]
    )

    assert dates == [Date(2026, 2, 10), Date(2026, 2, 12), Date(2026, 2, 13)]


def test_merge_streak_rows_keeps_larger_counts_and_latest_day() -> None:
    merged = merge_streak_rows(
        {"current_streak": 2, "longest_streak": 9, "last_activity_date": "2026-03-01"},
        {"current_streak": 4, "longest_streak": 5, "last_activity_date": "2026-03-03"},
    )

    assert merged == {
        "current_streak": 4,
        "longest_streak": 9,
        "last_activity_date": Date(2026, 3, 3),
    }


def test_merge_streak_rows_without_existing_row() -> None:
    merged = merge_streak_rows(None, {"current_streak": 3})

    assert merged == {"current_streak": 3, "longest_streak": 0, "last_activity_date": None}
