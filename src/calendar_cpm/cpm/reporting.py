# calendar_cpm/cpm/reporting.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Union

from calendar_cpm.models import Schedule
from calendar_cpm.workdays.working_calendar import WorkingDayCalendar, parse_date


def _working_span(calendar: WorkingDayCalendar, start: date, end: date) -> int:
    """Working days in [start, end], both ends included."""
    span = calendar.count_working_days(start, end)
    if calendar.is_working_day(start):
        span += 1
    return span


# ---------------------------------------------------------
# SUMMARY
# ---------------------------------------------------------

def summarize_schedule(schedule: Schedule, calendar: Optional[WorkingDayCalendar] = None) -> str:
    """Short human-readable summary of a computed schedule."""
    calendar = calendar or WorkingDayCalendar()
    span = _working_span(calendar, schedule.project_start, schedule.project_end)

    total = len(schedule.tasks)
    critical = sum(1 for t in schedule.tasks.values() if t.is_critical)
    adjusted = sum(1 for t in schedule.tasks.values() if t.adjusted)

    lines = [
        "Timeline Summary:",
        f"- Start Date: {schedule.project_start.isoformat()}",
        f"- End Date: {schedule.project_end.isoformat()}",
        f"- Duration: {span} working days ({schedule.project_duration} day offsets)",
        f"- Total Tasks: {total}",
        f"- Critical Tasks: {critical}",
        f"- Flexibility: {total - critical} tasks with float time",
        f"- Critical Path: {' -> '.join(schedule.critical_path) or 'none'}",
    ]
    if adjusted:
        lines.append(f"- Adjusted Tasks: {adjusted}")
    if schedule.warnings:
        lines.append(f"- Warnings: {len(schedule.warnings)}")
    return "\n".join(lines)


# ---------------------------------------------------------
# COMPARISON
# ---------------------------------------------------------

def compare_schedules(a: Schedule, b: Schedule) -> List[str]:
    """Differences between two schedules; empty when they are identical."""
    differences: List[str] = []

    only_a = [tid for tid in a.tasks if tid not in b.tasks]
    only_b = [tid for tid in b.tasks if tid not in a.tasks]
    if only_a:
        differences.append(f"Tasks only in first schedule: {only_a}")
    if only_b:
        differences.append(f"Tasks only in second schedule: {only_b}")

    for tid, ta in a.tasks.items():
        tb = b.tasks.get(tid)
        if tb is None:
            continue
        if ta.start != tb.start:
            differences.append(f"Task {tid} start date: {ta.start.isoformat()} vs {tb.start.isoformat()}")
        if ta.end != tb.end:
            differences.append(f"Task {tid} end date: {ta.end.isoformat()} vs {tb.end.isoformat()}")
        if ta.duration != tb.duration:
            differences.append(f"Task {tid} duration: {ta.duration} vs {tb.duration}")

    if a.project_duration != b.project_duration:
        differences.append(f"Project duration: {a.project_duration} vs {b.project_duration}")
    if list(a.critical_path) != list(b.critical_path):
        differences.append(f"Critical path: {a.critical_path} vs {b.critical_path}")

    return differences


# ---------------------------------------------------------
# COMPRESSION
# ---------------------------------------------------------

def compression_savings(schedule: Schedule, calendar: WorkingDayCalendar, asset_id: Optional[str] = None) -> int:
    """
    Working days saved by overlaps and parallel work, compared with running
    every task back to back. Restricted to one asset when asset_id is given.
    """
    tasks = [t for t in schedule.tasks.values() if asset_id is None or t.asset_id == asset_id]
    if not tasks:
        return 0

    sequential = sum(t.duration for t in tasks)
    actual = _working_span(calendar, min(t.start for t in tasks), max(t.end for t in tasks))
    return max(0, sequential - actual)


# ---------------------------------------------------------
# GO-LIVE CONFLICTS
# ---------------------------------------------------------

@dataclass(frozen=True)
class AssetConflict:
    asset_id: str
    calculated_end: date
    live_date: date
    days_over: int        # working days past the live date
    days_needed: int      # working days to recover
    total_duration: int   # sum of task durations in the asset

    def to_dict(self) -> Dict:
        return {
            "assetId": self.asset_id,
            "calculatedEndDate": self.calculated_end.isoformat(),
            "liveDate": self.live_date.isoformat(),
            "daysOver": self.days_over,
            "daysNeeded": self.days_needed,
            "totalDuration": self.total_duration,
        }


def asset_conflicts(
    schedule: Schedule,
    live_dates: Union[Dict[str, object], object],
    calendar: WorkingDayCalendar,
    as_of=None,
) -> List[AssetConflict]:
    """
    Assets whose work cannot meet their go-live date.

    live_dates is either one date for every asset or {asset_id: date};
    assets without a usable live date are skipped.

    days_over counts working days in (live_date, calculated_end]. When as_of
    is given, days_needed is how far as_of lies past the latest start that
    would still fit the asset's working span before its live date; otherwise
    it equals days_over. Most urgent first.
    """
    today = None
    if as_of is not None:
        today = parse_date(as_of)
        if today is None:
            raise ValueError(f"Invalid as_of date: {as_of!r}")

    by_asset: Dict[str, list] = {}
    for st in schedule.tasks.values():
        by_asset.setdefault(st.asset_id, []).append(st)

    conflicts: List[AssetConflict] = []
    for asset, tasks in by_asset.items():
        raw = live_dates.get(asset) if isinstance(live_dates, dict) else live_dates
        live = parse_date(raw)
        if live is None:
            continue

        start = min(t.start for t in tasks)
        end = max(t.end for t in tasks)
        days_over = max(0, calendar.count_working_days(live, end))

        if today is None:
            days_needed = days_over
        else:
            latest_start = calendar.subtract_working_days(live, _working_span(calendar, start, end))
            days_needed = max(0, calendar.count_working_days(latest_start, today))

        if days_over <= 0 and days_needed <= 0:
            continue

        conflicts.append(AssetConflict(
            asset_id=asset,
            calculated_end=end,
            live_date=live,
            days_over=days_over,
            days_needed=days_needed,
            total_duration=sum(t.duration for t in tasks),
        ))

    return sorted(conflicts, key=lambda c: -c.days_needed)
