# calendar_cpm/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

from calendar_cpm.errors import ScheduleIssue


# ---------------------------------------------------------
# TASKS & DEPENDENCIES
# ---------------------------------------------------------

class DependencyType(Enum):
    FS = "FS"  # Finish-to-Start


@dataclass(frozen=True)
class Dependency:
    predecessor_id: str
    lag: int = 0
    type: DependencyType = DependencyType.FS

    def to_dict(self) -> Dict:
        return {"predecessorId": self.predecessor_id, "type": self.type.value, "lag": self.lag}


@dataclass(frozen=True)
class Task:
    """
    One schedulable unit of work.

    duration is in working days; asset_id groups tasks into independent
    streams (dependencies never cross assets).
    """

    id: str
    duration: int
    asset_id: str = "default"
    dependencies: Tuple[Dependency, ...] = ()
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or self.id


# ---------------------------------------------------------
# CPM RESULTS
# ---------------------------------------------------------

@dataclass(frozen=True)
class CPMResult:
    early_start: int
    early_finish: int
    late_start: int
    late_finish: int

    @property
    def slack(self) -> int:
        return self.late_start - self.early_start

    @property
    def is_critical(self) -> bool:
        return self.slack == 0


@dataclass(frozen=True)
class CriticalPathAnalysis:
    results: Dict[str, CPMResult]
    project_duration: int
    critical_path: List[str]
    order: List[str]


# ---------------------------------------------------------
# CALENDAR OUTPUT
# ---------------------------------------------------------

@dataclass(frozen=True)
class ScheduledTask:
    task: Task
    start: date
    end: date
    is_critical: bool
    total_float: int
    adjusted: bool = False

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def duration(self) -> int:
        return self.task.duration

    @property
    def asset_id(self) -> str:
        return self.task.asset_id

    def to_dict(self) -> Dict:
        return {
            "id": self.task.id,
            "name": self.task.label,
            "assetId": self.task.asset_id,
            "duration": self.task.duration,
            "dependencies": [d.to_dict() for d in self.task.dependencies],
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "isCritical": self.is_critical,
            "totalFloat": self.total_float,
        }


@dataclass(frozen=True)
class Schedule:
    tasks: Dict[str, ScheduledTask]
    project_duration: int
    critical_path: List[str]
    project_start: date
    project_end: date
    warnings: Tuple[ScheduleIssue, ...] = field(default_factory=tuple)
    ok = True

    def __getitem__(self, task_id: str) -> ScheduledTask:
        return self.tasks[task_id]

    def to_dict(self) -> Dict:
        return {
            "scheduledTasks": [t.to_dict() for t in self.tasks.values()],
            "projectDuration": self.project_duration,
            "criticalPath": list(self.critical_path),
            "projectStart": self.project_start.isoformat(),
            "projectEnd": self.project_end.isoformat(),
            "warnings": [w.to_dict() for w in self.warnings],
        }
