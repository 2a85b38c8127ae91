# calendar_cpm/cpm/date_assigner.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

from calendar_cpm.cpm.critical_path import compute_cpm, topological_order
from calendar_cpm.cpm.graph_builder import TaskGraph, apply_sequential_fallback
from calendar_cpm.errors import AssignmentError, ErrorKind, make_issue
from calendar_cpm.models import CriticalPathAnalysis, ScheduledTask
from calendar_cpm.workdays.working_calendar import WorkingDayCalendar, parse_date

logger = logging.getLogger(__name__)


class AnchorMode(Enum):
    START = "start"      # anchor is day offset 0
    GO_LIVE = "go_live"  # anchor is the project's last day


@dataclass(frozen=True)
class DateAssignment:
    tasks: Dict[str, ScheduledTask]
    project_start: date
    project_end: date
    adjusted: Tuple[str, ...] = ()
    graph: Optional[TaskGraph] = None


# ---------------------------------------------------------
# ANCHOR HANDLING
# ---------------------------------------------------------

def _terminal_task(analysis: CriticalPathAnalysis) -> str:
    # first task in topological order reaching the project end
    for tid in analysis.order:
        if analysis.results[tid].early_finish == analysis.project_duration:
            return tid
    return analysis.order[-1]


def _project_origin(anchor: date, analysis: CriticalPathAnalysis, calendar: WorkingDayCalendar,
                    anchor_mode: AnchorMode) -> date:
    if anchor_mode == AnchorMode.START:
        return calendar.snap_forward(anchor)
    last_day = calendar.snap_backward(anchor)
    return calendar.subtract_working_days(last_day, analysis.project_duration)


def _pinned_go_live_span(anchor: date, duration: int, calendar: WorkingDayCalendar) -> Tuple[date, date]:
    """Go-live task ending exactly on a non-working anchor: the anchor plus duration-1 working days before it."""
    if duration <= 1:
        return anchor, anchor
    return calendar.subtract_working_days(calendar.previous_working_day(anchor), duration - 1), anchor


# ---------------------------------------------------------
# DATE ASSIGNMENT
# ---------------------------------------------------------

def assign_dates(
    graph: TaskGraph,
    analysis: CriticalPathAnalysis,
    anchor_date,
    calendar: WorkingDayCalendar,
    allow_anchor_on_non_working_day: bool = False,
    anchor_mode: AnchorMode = AnchorMode.START,
) -> DateAssignment:
    """
    Translate CPM day offsets into calendar dates.

    Steps:
      1. resolve dangling dependencies by sequential placement and
         recompute CPM offsets over the resolved graph
      2. map offset 0 to the anchor (START) or back from it (GO_LIVE)
      3. place every task at its offset-mapped date
      4. fold over the topological order re-checking each dependency
         against the assigned predecessor dates; a successor that starts
         too early (FS(+0) on or before its predecessor's end) is moved to
         the first allowed working day, and the move carries on to its own
         successors because they are visited afterwards
      5. verify start <= end and the FS(+0) guard on the result
    """
    anchor = parse_date(anchor_date)
    if anchor is None:
        raise AssignmentError(f"Invalid anchor date: {anchor_date!r}")

    if graph.dangling_references():
        graph = apply_sequential_fallback(graph)
        # offsets from the unresolved graph no longer hold
        analysis = compute_cpm(graph)
    order = topological_order(graph)

    origin = _project_origin(anchor, analysis, calendar, anchor_mode)

    pinned: Optional[str] = None
    if anchor_mode == AnchorMode.GO_LIVE and allow_anchor_on_non_working_day and not calendar.is_working_day(anchor):
        pinned = _terminal_task(analysis)
    elif allow_anchor_on_non_working_day and anchor_mode == AnchorMode.START:
        logger.debug("allow_anchor_on_non_working_day has no effect when the anchor is the project start")

    assigned: Dict[str, ScheduledTask] = {}
    adjusted: List[str] = []
    for tid in order:
        node = graph.nodes[tid]
        cpm = analysis.results.get(tid)
        if cpm is None:
            raise AssignmentError(
                f"No CPM result for task '{tid}'",
                issues=[make_issue(ErrorKind.SCHEDULE_INVARIANT_VIOLATED, f"No CPM result for task '{tid}'", [tid])],
            )

        start = calendar.offset_to_date(origin, cpm.early_start)
        end = calendar.add_working_days(start, node.duration)
        if tid == pinned:
            start, end = _pinned_go_live_span(anchor, node.duration, calendar)

        required: Optional[date] = None
        for dep in graph.resolved_dependencies(tid):
            pred = assigned[dep.predecessor_id]
            candidate = calendar.shift_working_days(pred.end, dep.lag + 1)
            if required is None or candidate > required:
                required = candidate

        moved = False
        if required is not None and start < required:
            logger.debug("Task %s: start %s moved to %s by dependency guard", tid, start, required)
            start = required
            end = calendar.add_working_days(start, node.duration)
            moved = True
            if tid == pinned:
                logger.warning("Go-live task %s cannot end on %s; predecessors push it to %s", tid, anchor, end)

        fallback = any(link[1] == tid for link in graph.fallback_links)
        if moved or fallback:
            adjusted.append(tid)

        assigned[tid] = ScheduledTask(
            task=node.task,
            start=start,
            end=end,
            is_critical=cpm.is_critical,
            total_float=cpm.slack,
            adjusted=moved or fallback,
        )

    _check_invariants(graph, assigned)

    tasks = {tid: assigned[tid] for tid in graph.nodes}
    project_start = min(t.start for t in tasks.values())
    project_end = max(t.end for t in tasks.values())
    logger.info("Dates assigned: %s -> %s (%d tasks adjusted)", project_start, project_end, len(adjusted))

    return DateAssignment(
        tasks=tasks,
        project_start=project_start,
        project_end=project_end,
        adjusted=tuple(adjusted),
        graph=graph,
    )


def _check_invariants(graph: TaskGraph, assigned: Dict[str, ScheduledTask]) -> None:
    issues = []
    for tid, st in assigned.items():
        if st.start > st.end:
            issues.append(make_issue(
                ErrorKind.SCHEDULE_INVARIANT_VIOLATED,
                f"Task '{st.task.label}' starts {st.start} after it ends {st.end}",
                [tid],
            ))
    for pred, succ, dep in graph.edges():
        if dep.lag == 0 and assigned[succ.id].start <= assigned[pred.id].end:
            issues.append(make_issue(
                ErrorKind.SCHEDULE_INVARIANT_VIOLATED,
                f"Task '{succ.label}' starts {assigned[succ.id].start} on or before "
                f"predecessor '{pred.label}' ends {assigned[pred.id].end}",
                [succ.id, pred.id],
            ))
    if issues:
        raise AssignmentError(issues[0].message, issues=issues)
