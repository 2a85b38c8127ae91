# calendar_cpm/cpm/engine.py

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from calendar_cpm.config import settings
from calendar_cpm.cpm.critical_path import compute_cpm
from calendar_cpm.cpm.date_assigner import AnchorMode, assign_dates
from calendar_cpm.cpm.graph_builder import apply_sequential_fallback, build_graph
from calendar_cpm.errors import (
    ErrorKind,
    InvalidTaskError,
    ScheduleFailure,
    ScheduleIssue,
    SchedulingError,
    make_issue,
)
from calendar_cpm.models import Dependency, DependencyType, Schedule, Task
from calendar_cpm.validation.dependency_validator import validate_graph
from calendar_cpm.workdays.working_calendar import WorkingDayCalendar, parse_date

logger = logging.getLogger(__name__)


class DanglingPolicy(Enum):
    FALLBACK = "fallback"  # warn and place the task after the previous one in its asset
    REJECT = "reject"      # treat as a validation error


# ---------------------------------------------------------
# RECORD PARSING (dict contract -> Task)
# ---------------------------------------------------------

def _as_int(value, what: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{what} must be an integer, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("+-").isdigit():
        return int(value.strip())
    raise ValueError(f"{what} must be an integer, got {value!r}")


def _dependency_from_record(raw: Dict[str, Any]) -> Dependency:
    if not isinstance(raw, dict):
        raise ValueError(f"dependency must be an object, got {raw!r}")
    pred = raw.get("predecessorId")
    if pred is None or str(pred).strip() == "":
        raise ValueError("dependency is missing 'predecessorId'")

    dep_type = raw.get("type") or "FS"
    try:
        dep_type = DependencyType(str(dep_type).upper())
    except ValueError:
        raise ValueError(f"unsupported dependency type {dep_type!r} (only FS)") from None

    return Dependency(predecessor_id=str(pred), lag=_as_int(raw.get("lag", 0) or 0, "lag"), type=dep_type)


def tasks_from_records(records: Iterable[Dict[str, Any]]) -> List[Task]:
    """
    Turn contract records into Tasks:
      { id, duration, assetId, name?, dependencies?: [{predecessorId, type?, lag?}] }

    Every malformed record is reported (InvalidTaskError with one issue per
    problem), not just the first.
    """
    tasks: List[Task] = []
    issues: List[ScheduleIssue] = []

    for index, raw in enumerate(records or []):
        tid = raw.get("id") if isinstance(raw, dict) else None
        label = str(tid) if tid is not None else f"#{index}"
        try:
            if not isinstance(raw, dict):
                raise ValueError("task record must be an object")
            if tid is None or str(tid).strip() == "":
                raise ValueError("task is missing 'id'")

            duration = _as_int(raw.get("duration"), "duration")
            if duration < 1:
                raise ValueError(f"duration must be a positive number of working days, got {duration}")

            raw_deps = raw.get("dependencies") or []
            if not isinstance(raw_deps, (list, tuple)):
                raise ValueError(f"dependencies must be a list, got {raw_deps!r}")
            deps = tuple(_dependency_from_record(d) for d in raw_deps)
            asset = raw.get("assetId")
            tasks.append(Task(
                id=str(tid),
                duration=duration,
                asset_id=str(asset) if asset not in (None, "") else "default",
                dependencies=deps,
                name=raw.get("name"),
            ))
        except ValueError as e:
            ids = [str(tid)] if tid is not None else []
            issues.append(make_issue(ErrorKind.INVALID_TASK, f"Task {label}: {e}", ids))

    if issues:
        raise InvalidTaskError(issues[0].message, issues=issues)
    return tasks


# ---------------------------------------------------------
# ORCHESTRATION
# ---------------------------------------------------------

def _resolve_enum(enum_cls, value, default: str):
    if isinstance(value, enum_cls):
        return value
    raw = str(value if value is not None else default).lower()
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidTaskError(f"Unknown {enum_cls.__name__} {value!r} (expected one of: {allowed})") from None


def compute_schedule(
    tasks: Iterable[Task],
    holidays: Iterable = (),
    anchor_date=None,
    allow_anchor_on_non_working_day: bool = False,
    anchor_mode: Union[AnchorMode, str, None] = None,
    dangling_policy: Union[DanglingPolicy, str, None] = None,
    search_limit: Optional[int] = None,
) -> Union[Schedule, ScheduleFailure]:
    """
    Full pipeline:
      1. Build the working-day calendar and check the anchor
      2. Build the task graph
      3. Validate dependencies (all problems collected)
      4. Compute CPM offsets
      5. Assign calendar dates

    Returns a Schedule, or a ScheduleFailure listing every problem found
    by the stage that stopped the run. Nothing is scheduled over a graph
    that failed validation.
    """
    try:
        anchor_mode = _resolve_enum(AnchorMode, anchor_mode, settings.ANCHOR_MODE)
        dangling_policy = _resolve_enum(DanglingPolicy, dangling_policy, settings.DANGLING_POLICY)

        calendar = WorkingDayCalendar.from_holidays(holidays, search_limit=search_limit)

        if parse_date(anchor_date) is None:
            return ScheduleFailure(errors=(make_issue(
                ErrorKind.INVALID_ANCHOR_DATE, f"Invalid anchor date: {anchor_date!r}"
            ),))

        graph = build_graph(tasks)
        validation = validate_graph(graph)

        warnings: List[ScheduleIssue] = []
        errors = list(validation.errors)
        if dangling_policy == DanglingPolicy.FALLBACK:
            warnings = [e for e in errors if e.kind == ErrorKind.DANGLING_DEPENDENCY]
            errors = [e for e in errors if e.kind != ErrorKind.DANGLING_DEPENDENCY]

        if errors:
            return ScheduleFailure(errors=tuple(errors))

        if warnings:
            for w in warnings:
                logger.warning(w.message)
            graph = apply_sequential_fallback(graph)
            revalidation = validate_graph(graph)
            if not revalidation.valid:
                return ScheduleFailure(errors=revalidation.errors)

        analysis = compute_cpm(graph)
        assignment = assign_dates(
            graph,
            analysis,
            anchor_date,
            calendar,
            allow_anchor_on_non_working_day=allow_anchor_on_non_working_day,
            anchor_mode=anchor_mode,
        )
    except SchedulingError as e:
        logger.info("Scheduling failed: %s", e)
        return ScheduleFailure(errors=tuple(e.issues))

    return Schedule(
        tasks=assignment.tasks,
        project_duration=analysis.project_duration,
        critical_path=analysis.critical_path,
        project_start=assignment.project_start,
        project_end=assignment.project_end,
        warnings=tuple(warnings),
    )


# ---------------------------------------------------------
# EXPORTED ENTRY POINT (language-agnostic contract)
# ---------------------------------------------------------

def schedule_from_dict(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Input:
      { tasks: [...], holidays: [ISO date], anchorDate: ISO date,
        allowAnchorOnNonWorkingDay: bool, anchorMode?: "start"|"go_live",
        danglingPolicy?: "fallback"|"reject" }

    Output:
      { scheduledTasks, projectDuration, criticalPath, projectStart,
        projectEnd, warnings }  or  { errors: [{kind, message, involvedTaskIds}] }
    """
    try:
        tasks = tasks_from_records(payload.get("tasks") or [])
    except InvalidTaskError as e:
        return ScheduleFailure(errors=tuple(e.issues)).to_dict()

    outcome = compute_schedule(
        tasks,
        holidays=payload.get("holidays") or [],
        anchor_date=payload.get("anchorDate"),
        allow_anchor_on_non_working_day=bool(payload.get("allowAnchorOnNonWorkingDay", False)),
        anchor_mode=payload.get("anchorMode"),
        dangling_policy=payload.get("danglingPolicy"),
    )
    return outcome.to_dict()
