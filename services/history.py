"""History browsing filters."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, List, Optional

from models.records import HistoryEntry


class HistoryPeriod(str, Enum):
    all = "ALL"
    week = "WEEK"
    month = "MONTH"


_WINDOWS = {
    HistoryPeriod.week: timedelta(days=7),
    HistoryPeriod.month: timedelta(days=30),
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def filter_history(
    entries: Iterable[HistoryEntry],
    search: Optional[str] = None,
    period: HistoryPeriod = HistoryPeriod.all,
    now: Optional[datetime] = None,
) -> List[HistoryEntry]:
    """Entries matching the search text and time window, most recent first.

    The search matches the operator name case-insensitively or any part of the
    entry's date.
    """

    needle = (search or "").strip().lower()
    window = _WINDOWS.get(HistoryPeriod(period))
    cutoff = _as_utc(now or datetime.now(timezone.utc)) - window if window else None

    matched = []
    for entry in entries:
        if cutoff is not None and _as_utc(entry.timestamp) < cutoff:
            continue
        if needle and needle not in entry.operator_name.lower() and needle not in entry.date.lower():
            continue
        matched.append(entry)

    return sorted(matched, key=lambda entry: _as_utc(entry.timestamp), reverse=True)
