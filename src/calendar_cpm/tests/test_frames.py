import pytest
import numpy as np
import pandas as pd

from calendar_cpm.cpm.critical_path import compute_cpm
from calendar_cpm.cpm.engine import compute_schedule
from calendar_cpm.cpm.frames import (
    add_progress_metrics,
    parse_predecessor_cell,
    schedule_to_dataframe,
    tasks_from_dataframe,
)
from calendar_cpm.cpm.graph_builder import build_graph
from calendar_cpm.models import Dependency
from calendar_cpm.workdays import WorkingDayCalendar


def sample_df():
    return pd.DataFrame([
        {"TaskID": "A", "Name": "Design", "Duration": 2, "Predecessors": ""},
        {"TaskID": "B", "Name": "Build", "Duration": 3, "Predecessors": "A"},
        {"TaskID": "C", "Name": None, "Duration": 1, "Predecessors": "A"},
    ])


# ----------------------------------------------------------------
# 1. PARSING TESTS
# ----------------------------------------------------------------
def test_parse_predecessor_cell():
    # Standard FS
    assert parse_predecessor_cell("T1") == [Dependency("T1", 0)]
    assert parse_predecessor_cell("T1FS") == [Dependency("T1", 0)]

    # Lags (Positive/Negative)
    assert parse_predecessor_cell("T1FS+2d") == [Dependency("T1", 2)]
    assert parse_predecessor_cell("T1FS-2d") == [Dependency("T1", -2)]
    assert parse_predecessor_cell("10FS - 3 d") == [Dependency("10", -3)]

    # Multiple Dependencies
    assert parse_predecessor_cell("T1, T2+3") == [Dependency("T1", 0), Dependency("T2", 3)]
    assert parse_predecessor_cell("T1;T2") == [Dependency("T1", 0), Dependency("T2", 0)]


def test_parse_predecessor_cell_ids_ending_in_d():
    assert parse_predecessor_cell("build") == [Dependency("build", 0)]
    assert parse_predecessor_cell("build+1d") == [Dependency("build", 1)]


def test_parse_predecessor_cell_empty_values():
    assert parse_predecessor_cell(None) == []
    assert parse_predecessor_cell(np.nan) == []
    assert parse_predecessor_cell("   ") == []


def test_parse_predecessor_cell_rejects_other_link_types():
    with pytest.raises(ValueError, match="Unsupported link type 'SS'"):
        parse_predecessor_cell("T1SS+2")
    with pytest.raises(ValueError, match="Invalid predecessor entry"):
        parse_predecessor_cell("T1 ++ 2")


# ----------------------------------------------------------------
# 2. DATAFRAME -> TASKS
# ----------------------------------------------------------------
def test_tasks_from_dataframe():
    tasks = tasks_from_dataframe(sample_df())
    assert [t.id for t in tasks] == ["A", "B", "C"]
    assert tasks[0].name == "Design"
    assert tasks[2].name is None
    assert tasks[1].dependencies == (Dependency("A", 0),)
    assert all(t.asset_id == "default" for t in tasks)


def test_numeric_ids_become_strings():
    df = pd.DataFrame({"TaskID": [1, 2], "Duration": [5, 3], "Predecessors": ["", "1"]})
    tasks = tasks_from_dataframe(df)
    assert [t.id for t in tasks] == ["1", "2"]
    assert tasks[1].dependencies == (Dependency("1", 0),)


def test_missing_columns_raise():
    with pytest.raises(ValueError, match="TaskID"):
        tasks_from_dataframe(pd.DataFrame({"Duration": [1]}))
    with pytest.raises(ValueError, match="Duration column missing"):
        tasks_from_dataframe(pd.DataFrame({"TaskID": ["A"]}))


@pytest.mark.parametrize("bad", [0, -2, 2.5, "x"])
def test_bad_durations_raise(bad):
    df = pd.DataFrame({"TaskID": ["A", "B"], "Duration": [1, bad]})
    with pytest.raises(ValueError, match="positive whole working days"):
        tasks_from_dataframe(df)


def test_blank_ids_raise():
    df = pd.DataFrame({"TaskID": ["A", "  "], "Duration": [1, 1]})
    with pytest.raises(ValueError, match="Blank TaskID"):
        tasks_from_dataframe(df)


# ----------------------------------------------------------------
# 3. SCHEDULE -> DATAFRAME
# ----------------------------------------------------------------
def test_schedule_to_dataframe():
    tasks = tasks_from_dataframe(sample_df())
    schedule = compute_schedule(tasks, anchor_date="2025-01-06")
    analysis = compute_cpm(build_graph(tasks))
    df = schedule_to_dataframe(schedule, analysis)

    assert list(df["TaskID"]) == ["A", "B", "C"]
    assert pd.api.types.is_datetime64_any_dtype(df["Start"])
    assert df.loc[df.TaskID == "B", "Start"].iloc[0] == pd.Timestamp("2025-01-08")
    assert df.loc[df.TaskID == "B", "Finish"].iloc[0] == pd.Timestamp("2025-01-10")

    c = df[df.TaskID == "C"].iloc[0]
    assert c["Float"] == 2
    assert not c["Critical"]
    assert c["Name"] == "C"
    assert (c["ES"], c["EF"], c["LS"], c["LF"]) == (2, 3, 4, 5)
    assert list(df["OnCriticalPath"]) == [True, True, False]


def test_schedule_to_dataframe_without_analysis():
    schedule = compute_schedule(tasks_from_dataframe(sample_df()), anchor_date="2025-01-06")
    df = schedule_to_dataframe(schedule)
    assert "ES" not in df.columns
    assert not df["Adjusted"].any()


# ----------------------------------------------------------------
# 4. PROGRESS LAYER
# ----------------------------------------------------------------
def progress_frame(**extra):
    schedule = compute_schedule(
        tasks_from_dataframe(pd.DataFrame({"TaskID": ["A"], "Duration": [5]})),
        anchor_date="2025-01-06",
    )
    df = schedule_to_dataframe(schedule)
    for col, val in extra.items():
        df[col] = val
    return df


def test_progress_metrics_flag_late_tasks():
    df = add_progress_metrics(progress_frame(), "2025-01-08", WorkingDayCalendar())
    row = df.iloc[0]
    assert row["WorkingDaysElapsed"] == 3
    assert row["ExpectedPct"] == pytest.approx(0.6)
    assert row["PercentComplete"] == 0
    assert row["WorkingDaysBehind"] == 3
    assert row["BehindSchedule"]


def test_progress_metrics_on_track():
    df = add_progress_metrics(progress_frame(PercentComplete=100), "2025-01-08", WorkingDayCalendar())
    row = df.iloc[0]
    assert row["WorkingDaysBehind"] == 0
    assert not row["BehindSchedule"]


def test_progress_metrics_before_start():
    df = add_progress_metrics(progress_frame(), "2025-01-03", WorkingDayCalendar())
    assert df.iloc[0]["WorkingDaysElapsed"] == 0
    assert not df.iloc[0]["BehindSchedule"]


def test_progress_metrics_need_a_date():
    with pytest.raises(ValueError, match="as_of"):
        add_progress_metrics(progress_frame(), "someday", WorkingDayCalendar())
