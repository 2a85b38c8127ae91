import re

import numpy as np
import pandas as pd

from calendar_cpm.models import Dependency, Schedule, Task
from calendar_cpm.workdays.working_calendar import WorkingDayCalendar, parse_date

# ---------------------------------------------------------
# PREDECESSOR PARSING
# ---------------------------------------------------------

PRED_PATTERN = re.compile(
    r"""
    ^\s*
    (?P<pred>[A-Za-z0-9_.]+?)
    \s*
    (?P<type>FS|SS|FF|SF)?    # optional type (only FS is schedulable)
    \s*
    (?:
        (?P<lag>[+-]\s*\d+)   # optional +N or -N
        \s*[dD]?              # optional 'd' after the lag
    )?
    \s*$
    """,
    re.VERBOSE,
)


def parse_predecessor_cell(cell):
    """
    Parse a Predecessors cell like:
      "T1"
      "T1FS"
      "T1FS-2d"
      "T1, T2+3"
    into a list of Dependency values.

    Link types other than FS raise ValueError; the engine only schedules
    finish-to-start links.
    """
    if cell is None:
        return []
    if not isinstance(cell, str) and pd.isna(cell):
        return []

    text = str(cell).strip()
    if not text:
        return []

    results = []
    for raw in re.split(r"[;,]", text):
        s = raw.strip()
        if not s:
            continue
        m = PRED_PATTERN.match(s)
        if not m:
            raise ValueError(f"Invalid predecessor entry: '{s}'")

        dep_type = m.group("type") or "FS"
        if dep_type != "FS":
            raise ValueError(f"Unsupported link type '{dep_type}' in '{s}' (only FS)")

        lag_str = m.group("lag")
        lag = int(lag_str.replace(" ", "")) if lag_str else 0
        results.append(Dependency(predecessor_id=m.group("pred"), lag=lag))

    return results


# ---------------------------------------------------------
# DATAFRAME -> TASKS
# ---------------------------------------------------------

def tasks_from_dataframe(df_input: pd.DataFrame):
    """
    Clean and normalize a task table into Task values.

    Guarantees:
      - TaskID is a non-empty string
      - Duration is a positive integer (working days)
      - AssetID exists (defaults to "default")
      - Predecessors parsed into Dependency lists
      - Name optional
    """
    df = df_input.copy()

    # Normalize column names (strip whitespace)
    df.columns = [str(c).strip() for c in df.columns]

    # ---- TaskID ----
    if "TaskID" not in df.columns:
        raise ValueError("Missing required column: 'TaskID'")
    df["TaskID"] = df["TaskID"].astype(str).str.strip()
    bad_ids = df[df["TaskID"].isin(["", "nan", "None"])]
    if not bad_ids.empty:
        raise ValueError(
            "Blank TaskID values found at rows: "
            f"{bad_ids.index.tolist()}"
        )

    # ---- Duration ----
    if "Duration" not in df.columns:
        raise ValueError("Duration column missing; cannot compute CPM.")
    dur = pd.to_numeric(df["Duration"], errors="coerce")
    bad = df[dur.isna() | (dur < 1) | (dur != np.floor(dur))]
    if not bad.empty:
        raise ValueError(
            "Durations must be positive whole working days. Example rows:\n"
            f"{bad[['TaskID', 'Duration']].head().to_string(index=False)}"
        )
    df["Duration"] = dur.astype(np.int64)

    # ---- AssetID / Predecessors / Name (optional) ----
    if "AssetID" not in df.columns:
        df["AssetID"] = "default"
    df["AssetID"] = df["AssetID"].fillna("default").astype(str)

    if "Predecessors" not in df.columns:
        df["Predecessors"] = ""

    if "Name" not in df.columns:
        df["Name"] = None

    tasks = []
    for _, row in df.iterrows():
        name = row["Name"]
        tasks.append(Task(
            id=row["TaskID"],
            duration=int(row["Duration"]),
            asset_id=row["AssetID"],
            dependencies=tuple(parse_predecessor_cell(row["Predecessors"])),
            name=None if name is None or pd.isna(name) else str(name),
        ))
    return tasks


# ---------------------------------------------------------
# SCHEDULE -> DATAFRAME
# ---------------------------------------------------------

def schedule_to_dataframe(schedule: Schedule, analysis=None) -> pd.DataFrame:
    """
    One row per task, input order:
      TaskID, Name, AssetID, Duration, Start, Finish, Float, Critical,
      OnCriticalPath, Adjusted  (+ ES/EF/LS/LF when a CriticalPathAnalysis
      is passed)
    """
    rows = []
    on_path = set(schedule.critical_path)
    for tid, st in schedule.tasks.items():
        row = {
            "TaskID": tid,
            "Name": st.task.label,
            "AssetID": st.asset_id,
            "Duration": st.duration,
            "Start": st.start,
            "Finish": st.end,
            "Float": st.total_float,
            "Critical": st.is_critical,
            "OnCriticalPath": tid in on_path,
            "Adjusted": st.adjusted,
        }
        if analysis is not None:
            r = analysis.results[tid]
            row.update({"ES": r.early_start, "EF": r.early_finish, "LS": r.late_start, "LF": r.late_finish})
        rows.append(row)

    df = pd.DataFrame(rows)
    df["Start"] = pd.to_datetime(df["Start"])
    df["Finish"] = pd.to_datetime(df["Finish"])
    df["Duration"] = df["Duration"].astype(np.int64)
    df["Float"] = df["Float"].astype(np.int64)
    return df


# ---------------------------------------------------------
# PROGRESS LAYER
# ---------------------------------------------------------

def add_progress_metrics(df: pd.DataFrame, as_of, calendar: WorkingDayCalendar) -> pd.DataFrame:
    """
    Adds progress analytics on top of schedule_to_dataframe output:
      - WorkingDaysElapsed  (working days of the task already passed by as_of)
      - ExpectedPct         (0 to 1)
      - PercentComplete     (0 to 100, defaulted to 0 when absent)
      - BehindSchedule      (bool)
      - WorkingDaysBehind   (expected minus achieved working days, >= 0)

    as_of is required: the engine never reads the system clock.
    """
    today = parse_date(as_of)
    if today is None:
        raise ValueError(f"Invalid as_of date: {as_of!r}")

    df = df.copy()

    if "PercentComplete" in df.columns:
        df["PercentComplete"] = pd.to_numeric(df["PercentComplete"], errors="coerce").fillna(0.0)
    else:
        df["PercentComplete"] = 0.0
    df["PercentComplete"] = df["PercentComplete"].clip(lower=0.0, upper=100.0)

    def elapsed(row):
        start = row["Start"].date()
        # days before the start do not count; the start day itself does once reached
        passed = calendar.count_working_days(start, today)
        if today >= start and calendar.is_working_day(start):
            passed += 1
        return int(min(max(passed, 0), row["Duration"]))

    df["WorkingDaysElapsed"] = df.apply(elapsed, axis=1).astype(np.int64) if len(df) else pd.Series(dtype=np.int64)

    dur = df["Duration"].replace(0, np.nan)
    df["ExpectedPct"] = (df["WorkingDaysElapsed"] / dur).clip(lower=0, upper=1).fillna(0)

    achieved_days = df["PercentComplete"] / 100.0 * df["Duration"]
    behind = (df["WorkingDaysElapsed"] - achieved_days).clip(lower=0)
    df["WorkingDaysBehind"] = np.ceil(behind).astype(np.int64)
    df["BehindSchedule"] = df["PercentComplete"] / 100.0 < df["ExpectedPct"]

    return df
