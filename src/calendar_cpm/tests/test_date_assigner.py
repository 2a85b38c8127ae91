import pytest
from datetime import date

from calendar_cpm.cpm.critical_path import compute_cpm
from calendar_cpm.cpm.date_assigner import AnchorMode, assign_dates
from calendar_cpm.cpm.graph_builder import build_graph
from calendar_cpm.errors import AssignmentError, CalendarRangeExceeded, ErrorKind
from calendar_cpm.models import CPMResult, CriticalPathAnalysis, Dependency, Task
from calendar_cpm.workdays import WorkingDayCalendar


def chain(*durations, asset="default"):
    """T1 -> T2 -> ... with FS+0 links."""
    tasks = []
    for i, d in enumerate(durations, start=1):
        deps = (Dependency(f"T{i - 1}"),) if i > 1 else ()
        tasks.append(Task(id=f"T{i}", duration=d, asset_id=asset, dependencies=deps))
    return tasks


def assign(tasks, anchor, holidays=(), **kwargs):
    graph = build_graph(tasks)
    analysis = compute_cpm(graph)
    calendar = WorkingDayCalendar.from_holidays(holidays)
    return assign_dates(graph, analysis, anchor, calendar, **kwargs)


# ----------------------------------------------------------------
# 1. START ANCHOR
# ----------------------------------------------------------------
def test_fs_successor_starts_next_working_day():
    """
    A (1) -> B (1) anchored Friday 2025-01-10:
    B may not share A's last day, so it starts Monday.
    """
    result = assign(chain(1, 1), "2025-01-10")
    t1, t2 = result.tasks["T1"], result.tasks["T2"]

    assert t1.start == t1.end == date(2025, 1, 10)
    assert t2.start == date(2025, 1, 13)
    assert t2.start > t1.end


def test_holidays_are_never_occupied():
    result = assign(chain(3), "2024-12-23", holidays=["2024-12-25", "2024-12-26"])
    t1 = result.tasks["T1"]
    assert t1.start == date(2024, 12, 23)
    assert t1.end == date(2024, 12, 27)


def test_weekend_anchor_snaps_forward():
    result = assign(chain(2), "2025-01-11")
    assert result.project_start == date(2025, 1, 13)
    assert result.tasks["T1"].end == date(2025, 1, 14)


def test_allow_flag_has_no_effect_in_start_mode():
    plain = assign(chain(2, 1), "2025-01-11")
    flagged = assign(chain(2, 1), "2025-01-11", allow_anchor_on_non_working_day=True)
    assert plain.tasks == flagged.tasks


def test_negative_lag_overlaps_on_calendar():
    """
    T1 (5) -> T2 (3) with FS-2 from Monday 2025-01-06:
    T1 runs Mon-Fri, T2 starts Thursday (the last two days overlap).
    """
    tasks = [
        Task("T1", 5),
        Task("T2", 3, dependencies=(Dependency("T1", -2),)),
    ]
    result = assign(tasks, "2025-01-06")
    assert result.tasks["T1"].end == date(2025, 1, 10)
    assert result.tasks["T2"].start == date(2025, 1, 9)
    assert result.tasks["T2"].end == date(2025, 1, 13)


def test_tasks_are_returned_in_input_order():
    tasks = [
        Task("late", 1, dependencies=(Dependency("early"),)),
        Task("early", 1),
    ]
    result = assign(tasks, "2025-01-06")
    assert list(result.tasks) == ["late", "early"]


# ----------------------------------------------------------------
# 2. GO-LIVE ANCHOR
# ----------------------------------------------------------------
def test_go_live_ends_project_on_anchor():
    result = assign(chain(2, 3), "2025-01-17", anchor_mode=AnchorMode.GO_LIVE)
    assert result.tasks["T1"].start == date(2025, 1, 13)
    assert result.tasks["T2"].start == date(2025, 1, 15)
    assert result.project_end == date(2025, 1, 17)


def test_go_live_on_weekend_snaps_back_without_flag():
    result = assign(chain(2, 3), "2025-01-18", anchor_mode=AnchorMode.GO_LIVE)
    assert result.project_end == date(2025, 1, 17)


def test_go_live_on_weekend_pins_final_task_with_flag():
    result = assign(
        chain(2, 3),
        "2025-01-18",
        anchor_mode=AnchorMode.GO_LIVE,
        allow_anchor_on_non_working_day=True,
    )
    t2 = result.tasks["T2"]
    assert t2.end == date(2025, 1, 18)
    assert t2.start == date(2025, 1, 16)
    assert result.project_end == date(2025, 1, 18)
    assert t2.start > result.tasks["T1"].end


# ----------------------------------------------------------------
# 3. DEPENDENCY GUARD
# ----------------------------------------------------------------
def test_guard_moves_early_successors_and_cascades():
    """
    Offsets that would start B on A's first day are overridden;
    C follows B because it is visited later in the fold.
    """
    tasks = chain(2, 1, 1)
    graph = build_graph(tasks)
    stale = CriticalPathAnalysis(
        results={
            "T1": CPMResult(0, 2, 0, 2),
            "T2": CPMResult(0, 1, 0, 1),
            "T3": CPMResult(1, 2, 1, 2),
        },
        project_duration=2,
        critical_path=[],
        order=["T1", "T2", "T3"],
    )
    result = assign_dates(graph, stale, "2025-01-06", WorkingDayCalendar())

    assert result.tasks["T2"].start == date(2025, 1, 8)
    assert result.tasks["T3"].start == date(2025, 1, 9)
    assert result.tasks["T2"].adjusted and result.tasks["T3"].adjusted
    assert not result.tasks["T1"].adjusted
    assert result.adjusted == ("T2", "T3")


def test_dangling_dependency_falls_back_to_asset_sequence():
    tasks = [
        Task("t1", 5),
        Task("t2", 3, dependencies=(Dependency("t1", -2),)),
        Task("c1", 2, dependencies=(Dependency("ghost"),)),
    ]
    graph = build_graph(tasks)
    # CPM over the raw graph treats c1 as a free root
    analysis = compute_cpm(graph)
    result = assign_dates(graph, analysis, "2024-12-20", WorkingDayCalendar())

    assert result.tasks["c1"].start > result.tasks["t2"].end
    assert "c1" in result.adjusted
    assert result.graph.fallback_links == (("t2", "c1"),)


def test_fallback_placement_refreshes_float_and_flags():
    tasks = [
        Task("t1", 5),
        Task("t2", 3, dependencies=(Dependency("t1", -2),)),
        Task("c1", 2, dependencies=(Dependency("ghost"),)),
    ]
    graph = build_graph(tasks)
    result = assign_dates(graph, compute_cpm(graph), "2024-12-20", WorkingDayCalendar())
    c1 = result.tasks["c1"]

    # c1 now ends the project behind t2, so it carries no float
    assert c1.is_critical and c1.total_float == 0
    assert c1.start == date(2024, 12, 30)
    assert c1.adjusted
    assert [tid for tid, st in result.tasks.items() if st.adjusted] == list(result.adjusted)


# ----------------------------------------------------------------
# 4. ERRORS
# ----------------------------------------------------------------
def test_invalid_anchor_raises():
    with pytest.raises(AssignmentError, match="Invalid anchor date") as exc:
        assign(chain(1), "not-a-date")
    assert exc.value.issues[0].kind == ErrorKind.INVALID_ANCHOR_DATE


def test_all_holiday_calendar_raises_range_error():
    holidays = [date(2025, 1, d) for d in range(1, 32)]
    graph = build_graph(chain(1))
    calendar = WorkingDayCalendar.from_holidays(holidays, search_limit=5)
    with pytest.raises(CalendarRangeExceeded):
        assign_dates(graph, compute_cpm(graph), "2025-01-01", calendar)
