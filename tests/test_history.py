from __future__ import annotations

from datetime import datetime, timedelta, timezone

from models.records import HistoryEntry, ShiftLabel
from services.history import HistoryPeriod, filter_history

NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)


def _entry(operator: str, days_ago: int) -> HistoryEntry:
    moment = NOW - timedelta(days=days_ago)
    return HistoryEntry(
        date=moment.date().isoformat(),
        timestamp=moment,
        operator_name=operator,
        shift=ShiftLabel.day,
        total_petrol_liters=0,
        total_diesel_liters=0,
        total_revenue=0,
        target_cash=0,
        shortage_excess=0,
    )


ENTRIES = [_entry("Akram", 40), _entry("Bilal", 2), _entry("akram khan", 10)]


def test_all_period_returns_everything_most_recent_first() -> None:
    result = filter_history(ENTRIES, now=NOW)

    assert [entry.operator_name for entry in result] == ["Bilal", "akram khan", "Akram"]


def test_week_and_month_windows() -> None:
    week = filter_history(ENTRIES, period=HistoryPeriod.week, now=NOW)
    month = filter_history(ENTRIES, period=HistoryPeriod.month, now=NOW)

    assert [entry.operator_name for entry in week] == ["Bilal"]
    assert [entry.operator_name for entry in month] == ["Bilal", "akram khan"]


def test_search_matches_name_case_insensitively() -> None:
    result = filter_history(ENTRIES, search="  AKRAM ", now=NOW)

    assert [entry.operator_name for entry in result] == ["akram khan", "Akram"]


def test_search_matches_date_fragment() -> None:
    result = filter_history(ENTRIES, search="2024-06-28", now=NOW)

    assert [entry.operator_name for entry in result] == ["Bilal"]


def test_search_and_period_combine() -> None:
    assert filter_history(ENTRIES, search="akram", period="WEEK", now=NOW) == []
