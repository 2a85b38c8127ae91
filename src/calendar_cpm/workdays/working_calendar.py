# calendar_cpm/workdays/working_calendar.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import FrozenSet, Iterable, Optional

import numpy as np
import pandas as pd

from calendar_cpm.config import settings
from calendar_cpm.errors import CalendarRangeExceeded

logger = logging.getLogger(__name__)

# Monday=0 ... Sunday=6
WEEKEND = frozenset({5, 6})
ONE_DAY = timedelta(days=1)


# ---------------------------------------------------------
# DATE PARSING
# ---------------------------------------------------------

def parse_date(value) -> Optional[date]:
    """
    Coerce an ISO string, date, datetime or pandas Timestamp to a date.

    Returns None for anything pandas cannot parse (or NaT/None), so callers
    can treat it as "not a usable day" instead of crashing.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, (str, np.datetime64)):
        return None
    if isinstance(value, str) and not value.strip():
        return None

    try:
        ts = pd.to_datetime(value, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    return ts.date()


def _require_date(value) -> date:
    day = parse_date(value)
    if day is None:
        raise ValueError(f"Invalid date: {value!r}")
    return day


# ---------------------------------------------------------
# CALENDAR VALUE
# ---------------------------------------------------------

@dataclass(frozen=True)
class WorkingDayCalendar:
    """
    Immutable working-day calendar: Saturday/Sunday weekends plus holidays.

    Every "find the next working day" search is capped at search_limit
    consecutive non-working days; a degenerate calendar (e.g. every day a
    holiday) raises CalendarRangeExceeded instead of looping forever.

    Duration convention: a task of d working days occupying [start, end]
    has end == add_working_days(start, d), so d=1 gives end == start.
    """

    holidays: FrozenSet[date] = frozenset()
    search_limit: int = 1000

    @classmethod
    def from_holidays(cls, holidays: Iterable = (), search_limit: Optional[int] = None) -> "WorkingDayCalendar":
        parsed = set()
        for raw in holidays or ():
            day = parse_date(raw)
            if day is None:
                logger.warning("Ignoring unparseable holiday %r", raw)
                continue
            parsed.add(day)

        limit = settings.CALENDAR_SEARCH_LIMIT if search_limit is None else int(search_limit)
        if limit < 1:
            raise ValueError(f"search_limit must be >= 1, got {limit}")
        return cls(holidays=frozenset(parsed), search_limit=limit)

    # -----------------------------------------------------
    # Predicates
    # -----------------------------------------------------
    def is_working_day(self, value) -> bool:
        day = parse_date(value)
        if day is None:
            return False
        return day.weekday() not in WEEKEND and day not in self.holidays

    # -----------------------------------------------------
    # Single-step search
    # -----------------------------------------------------
    def _step(self, day: date, direction: int) -> date:
        try:
            return day + direction * ONE_DAY
        except OverflowError:
            raise CalendarRangeExceeded(
                f"Calendar search ran off the supported date range at {day.isoformat()}"
            ) from None

    def _search(self, day: date, direction: int) -> date:
        current = day
        for _ in range(self.search_limit):
            current = self._step(current, direction)
            if self.is_working_day(current):
                return current
        where = "after" if direction > 0 else "before"
        raise CalendarRangeExceeded(
            f"No working day within {self.search_limit} days {where} {day.isoformat()}; "
            f"check the holiday calendar"
        )

    def next_working_day(self, value) -> date:
        return self._search(_require_date(value), +1)

    def previous_working_day(self, value) -> date:
        return self._search(_require_date(value), -1)

    def snap_forward(self, value) -> date:
        day = _require_date(value)
        return day if self.is_working_day(day) else self._search(day, +1)

    def snap_backward(self, value) -> date:
        day = _require_date(value)
        return day if self.is_working_day(day) else self._search(day, -1)

    # -----------------------------------------------------
    # Working-day arithmetic
    # -----------------------------------------------------
    def shift_working_days(self, value, k: int) -> date:
        """
        Move k working days from value (k may be negative).

        k=0 snaps forward; positive k starts from the forward-snapped day,
        negative k from the backward-snapped day.
        """
        if k >= 0:
            current = self.snap_forward(value)
            for _ in range(k):
                current = self._search(current, +1)
        else:
            current = self.snap_backward(value)
            for _ in range(-k):
                current = self._search(current, -1)
        return current

    def add_working_days(self, start, n: int) -> date:
        """Last day of an n-working-day span beginning at start (start counts)."""
        if n < 0:
            raise ValueError(f"n must be >= 0, got {n}")
        if n == 0:
            return self.snap_forward(start)
        return self.shift_working_days(start, n - 1)

    def subtract_working_days(self, end, n: int) -> date:
        """First day of an n-working-day span ending at end (end counts)."""
        if n < 0:
            raise ValueError(f"n must be >= 0, got {n}")
        last = self.snap_backward(end)
        if n == 0:
            return last
        return self.shift_working_days(last, -(n - 1))

    def offset_to_date(self, origin, offset: int) -> date:
        """Map a CPM day offset to a date; offset 0 is origin snapped forward."""
        return self.shift_working_days(origin, offset)

    def count_working_days(self, a, b) -> int:
        """
        Working days in (a, b]: exclusive of a, inclusive of b.

        Negative when b is before a, zero when they are equal.
        """
        start, end = _require_date(a), _require_date(b)
        if end < start:
            return -self.count_working_days(end, start)

        count = 0
        current = start
        while current < end:
            current = current + ONE_DAY
            if self.is_working_day(current):
                count += 1
        return count

    def lag_between(self, predecessor_end, successor_start) -> int:
        """
        FS lag that puts a successor on successor_start after a predecessor
        ending on predecessor_end.

        Overlaps count the shared working days inclusively, so a successor
        starting on the predecessor's last day has lag -1 and one starting
        the next working day has lag 0.
        """
        pred_end = _require_date(predecessor_end)
        succ_start = _require_date(successor_start)

        if succ_start > pred_end:
            return self.count_working_days(pred_end, self.snap_forward(succ_start)) - 1

        overlap = self.count_working_days(succ_start, pred_end)
        if self.is_working_day(succ_start):
            overlap += 1
        return -overlap
