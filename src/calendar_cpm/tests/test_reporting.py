import pytest
from datetime import date

from calendar_cpm.cpm.engine import compute_schedule
from calendar_cpm.cpm.reporting import (
    asset_conflicts,
    compare_schedules,
    compression_savings,
    summarize_schedule,
)
from calendar_cpm.models import Dependency, Task
from calendar_cpm.workdays import WorkingDayCalendar


def two_step(b_duration=3, anchor="2025-01-06", extra=()):
    tasks = [Task("A", 2), Task("B", b_duration, dependencies=(Dependency("A"),)), *extra]
    return compute_schedule(tasks, anchor_date=anchor)


# ----------------------------------------------------------------
# 1. SUMMARY
# ----------------------------------------------------------------
def test_summary_lists_dates_and_counts():
    text = summarize_schedule(two_step())
    lines = text.splitlines()

    assert lines[0] == "Timeline Summary:"
    assert "- Start Date: 2025-01-06" in lines
    assert "- End Date: 2025-01-10" in lines
    assert "- Duration: 5 working days (5 day offsets)" in lines
    assert "- Total Tasks: 2" in lines
    assert "- Critical Tasks: 2" in lines
    assert "- Critical Path: A -> B" in lines
    assert not any(line.startswith("- Warnings") for line in lines)


def test_summary_mentions_warnings():
    schedule = two_step(extra=(Task("C", 1, dependencies=(Dependency("ghost"),)),))
    assert "- Warnings: 1" in summarize_schedule(schedule).splitlines()


# ----------------------------------------------------------------
# 2. COMPARISON
# ----------------------------------------------------------------
def test_identical_schedules_have_no_differences():
    assert compare_schedules(two_step(), two_step()) == []


def test_moved_anchor_shows_date_changes():
    diffs = compare_schedules(two_step(), two_step(anchor="2025-01-13"))
    assert "Task A start date: 2025-01-06 vs 2025-01-13" in diffs
    assert "Task B end date: 2025-01-10 vs 2025-01-17" in diffs
    assert not any(d.startswith("Project duration") for d in diffs)


def test_duration_and_task_set_changes():
    before = two_step()
    after = two_step(b_duration=4, extra=(Task("C", 1),))
    diffs = compare_schedules(before, after)

    assert "Tasks only in second schedule: ['C']" in diffs
    assert "Task B duration: 3 vs 4" in diffs
    assert "Project duration: 5 vs 6" in diffs


# ----------------------------------------------------------------
# 3. COMPRESSION SAVINGS
# ----------------------------------------------------------------
def overlapped():
    """t1 (5) Mon-Fri, t2 (3) overlapping its last two days; z on its own asset."""
    tasks = [
        Task("t1", 5, "x"),
        Task("t2", 3, "x", (Dependency("t1", -2),)),
        Task("z", 1, "y"),
    ]
    return compute_schedule(tasks, anchor_date="2025-01-06")


def test_overlap_saves_working_days_within_an_asset():
    assert compression_savings(overlapped(), WorkingDayCalendar(), asset_id="x") == 2


def test_parallel_assets_add_to_savings():
    assert compression_savings(overlapped(), WorkingDayCalendar()) == 3


def test_sequential_chain_saves_nothing():
    assert compression_savings(two_step(), WorkingDayCalendar()) == 0
    assert compression_savings(two_step(), WorkingDayCalendar(), asset_id="nope") == 0


# ----------------------------------------------------------------
# 4. GO-LIVE CONFLICTS
# ----------------------------------------------------------------
def two_assets():
    """x: A (5) Mon 6 - Fri 10; y: B (2) Mon 6 - Tue 7."""
    return compute_schedule([Task("A", 5, "x"), Task("B", 2, "y")], anchor_date="2025-01-06")


def test_asset_ending_after_live_date_is_a_conflict():
    conflicts = asset_conflicts(two_assets(), "2025-01-08", WorkingDayCalendar())
    assert [c.asset_id for c in conflicts] == ["x"]

    x = conflicts[0]
    assert x.calculated_end == date(2025, 1, 10)
    assert x.live_date == date(2025, 1, 8)
    assert x.days_over == 2
    assert x.days_needed == 2
    assert x.total_duration == 5
    assert x.to_dict()["daysOver"] == 2


def test_days_needed_counts_from_latest_feasible_start():
    # x needs 5 working days before Wed 8th, so it had to start Thu 2nd
    conflicts = asset_conflicts(two_assets(), "2025-01-08", WorkingDayCalendar(), as_of="2025-01-06")
    assert [(c.asset_id, c.days_needed) for c in conflicts] == [("x", 2)]


def test_per_asset_live_dates_skip_missing_assets():
    calendar = WorkingDayCalendar()
    assert asset_conflicts(two_assets(), {"x": "2025-01-10"}, calendar) == []
    assert [c.asset_id for c in asset_conflicts(two_assets(), {"y": "2025-01-06"}, calendar)] == ["y"]


def test_conflicts_respect_holidays():
    calendar = WorkingDayCalendar.from_holidays(["2025-01-09"])
    conflicts = asset_conflicts(two_assets(), "2025-01-08", calendar)
    assert conflicts[0].days_over == 1


def test_conflicts_need_a_real_as_of_date():
    with pytest.raises(ValueError, match="as_of"):
        asset_conflicts(two_assets(), "2025-01-08", WorkingDayCalendar(), as_of="later")
