# calendar_cpm/errors.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Tuple


class ErrorKind(Enum):
    DUPLICATE_TASK_ID = "DuplicateTaskId"
    DANGLING_DEPENDENCY = "DanglingDependency"
    CIRCULAR_DEPENDENCY = "CircularDependency"
    OVERLAP_EXCEEDS_DURATION = "OverlapExceedsDuration"
    CROSS_ASSET_DEPENDENCY = "CrossAssetDependency"
    INVALID_ANCHOR_DATE = "InvalidAnchorDate"
    CALENDAR_RANGE_EXCEEDED = "CalendarRangeExceeded"
    EMPTY_TASK_LIST = "EmptyTaskList"
    INVALID_TASK = "InvalidTask"
    SCHEDULE_INVARIANT_VIOLATED = "ScheduleInvariantViolated"


# ------------------------------------------------------------------
# Issue values
# ------------------------------------------------------------------
@dataclass(frozen=True)
class ScheduleIssue:
    """One diagnostic: what went wrong and which tasks are involved."""

    kind: ErrorKind
    message: str
    involved_task_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "involvedTaskIds": list(self.involved_task_ids),
        }


def make_issue(kind: ErrorKind, message: str, task_ids: Iterable[str] = ()) -> ScheduleIssue:
    # keep first-seen order, drop repeats (cycles name their start twice)
    seen: List[str] = []
    for tid in task_ids:
        if tid not in seen:
            seen.append(tid)
    return ScheduleIssue(kind=kind, message=message, involved_task_ids=tuple(seen))


@dataclass(frozen=True)
class ScheduleFailure:
    """Structured failure returned by the engine instead of a Schedule."""

    errors: Tuple[ScheduleIssue, ...] = field(default_factory=tuple)
    ok = False

    def kinds(self) -> List[ErrorKind]:
        return [e.kind for e in self.errors]

    def to_dict(self) -> Dict:
        return {"errors": [e.to_dict() for e in self.errors]}


# ------------------------------------------------------------------
# Typed exceptions raised by the pipeline stages
# ------------------------------------------------------------------
class SchedulingError(Exception):
    """Base class for every typed failure a pipeline stage can raise."""

    kind = ErrorKind.INVALID_TASK

    def __init__(self, message: str, task_ids: Iterable[str] = (), issues: Iterable[ScheduleIssue] = ()):
        super().__init__(message)
        issues = list(issues)
        if not issues:
            issues = [make_issue(self.kind, message, task_ids)]
        self.issues: List[ScheduleIssue] = issues


class GraphError(SchedulingError):
    kind = ErrorKind.DUPLICATE_TASK_ID


class InvalidTaskError(SchedulingError):
    kind = ErrorKind.INVALID_TASK


class CalculationError(SchedulingError):
    kind = ErrorKind.CIRCULAR_DEPENDENCY


class AssignmentError(SchedulingError):
    kind = ErrorKind.INVALID_ANCHOR_DATE


class CalendarRangeExceeded(SchedulingError):
    kind = ErrorKind.CALENDAR_RANGE_EXCEEDED
