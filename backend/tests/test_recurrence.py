"""Next-occurrence date arithmetic."""

from datetime import date, datetime
from types import SimpleNamespace

import pytest

from taskhub.services.recurring_task import compute_next_occurrence


def task(start, due, frequency):
    return SimpleNamespace(start_date=start, due_date=due, repeat_frequency=frequency)


@pytest.mark.parametrize(
    "start,due,frequency,expected_start,expected_due",
    [
        (date(2025, 1, 10), date(2025, 1, 12), "daily", date(2025, 1, 13), date(2025, 1, 15)),
        (date(2025, 1, 1), date(2025, 1, 3), "weekly", date(2025, 1, 10), date(2025, 1, 12)),
        (date(2025, 1, 31), date(2025, 2, 1), "monthly", date(2025, 3, 1), date(2025, 3, 2)),
        (date(2025, 6, 1), date(2025, 6, 1), "yearly", date(2026, 6, 1), date(2026, 6, 1)),
    ],
)
def test_next_occurrence_steps_from_due_date(start, due, frequency, expected_start, expected_due):
    occurrence = compute_next_occurrence(task(start, due, frequency))

    assert occurrence.start_date == expected_start
    assert occurrence.due_date == expected_due


def test_month_overflow_clamps_to_last_day():
    occurrence = compute_next_occurrence(task(date(2025, 1, 30), date(2025, 1, 31), "monthly"))

    assert occurrence.start_date == date(2025, 2, 28)
    assert occurrence.due_date == date(2025, 3, 1)


def test_leap_day_yearly_clamps_to_feb_28():
    occurrence = compute_next_occurrence(task(date(2024, 2, 29), date(2024, 2, 29), "yearly"))

    assert occurrence.start_date == date(2025, 2, 28)
    assert occurrence.due_date == date(2025, 2, 28)


def test_duration_is_preserved():
    start, due = date(2025, 3, 3), date(2025, 3, 17)

    occurrence = compute_next_occurrence(task(start, due, "weekly"))

    assert occurrence.due_date - occurrence.start_date == due - start


@pytest.mark.parametrize(
    "start,due",
    [
        (None, date(2025, 1, 5)),
        (date(2025, 1, 5), None),
        ("not-a-date", "2025-01-05"),
    ],
)
def test_missing_dates_fall_back_to_today(start, due):
    today = date(2025, 4, 2)

    occurrence = compute_next_occurrence(task(start, due, "daily"), today=today)

    assert occurrence.start_date == today
    assert occurrence.due_date == date(2025, 4, 3)


def test_accepts_iso_strings_and_datetimes():
    occurrence = compute_next_occurrence(
        task("2025-01-01", datetime(2025, 1, 2, 18, 30), "daily")
    )

    assert occurrence.start_date == date(2025, 1, 3)
    assert occurrence.due_date == date(2025, 1, 4)


def test_unknown_frequency_steps_one_day():
    occurrence = compute_next_occurrence(task(date(2025, 1, 1), date(2025, 1, 1), "fortnightly"))

    assert occurrence.start_date == date(2025, 1, 2)
    assert occurrence.due_date == date(2025, 1, 2)
