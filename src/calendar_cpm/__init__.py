"""Calendar-aware critical path scheduling."""
import logging

from calendar_cpm.cpm.critical_path import compute_cpm, topological_order, trace_critical_path
from calendar_cpm.cpm.date_assigner import AnchorMode, assign_dates
from calendar_cpm.cpm.engine import DanglingPolicy, compute_schedule, schedule_from_dict, tasks_from_records
from calendar_cpm.cpm.graph_builder import TaskGraph, apply_sequential_fallback, build_graph
from calendar_cpm.errors import ErrorKind, ScheduleFailure, ScheduleIssue, SchedulingError
from calendar_cpm.models import CPMResult, Dependency, Schedule, ScheduledTask, Task
from calendar_cpm.validation.dependency_validator import validate_candidate, validate_graph
from calendar_cpm.workdays.working_calendar import WorkingDayCalendar, parse_date

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AnchorMode",
    "CPMResult",
    "DanglingPolicy",
    "Dependency",
    "ErrorKind",
    "Schedule",
    "ScheduleFailure",
    "ScheduleIssue",
    "ScheduledTask",
    "SchedulingError",
    "Task",
    "TaskGraph",
    "WorkingDayCalendar",
    "apply_sequential_fallback",
    "assign_dates",
    "build_graph",
    "compute_cpm",
    "compute_schedule",
    "parse_date",
    "schedule_from_dict",
    "tasks_from_records",
    "topological_order",
    "trace_critical_path",
    "validate_candidate",
    "validate_graph",
]
