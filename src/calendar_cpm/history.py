# calendar_cpm/history.py

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional, Tuple

from calendar_cpm.config import settings


@dataclass(frozen=True)
class ScheduleHistory:
    """
    Caller-owned undo/redo history.

    Every operation returns a new value; nothing is kept at module level.
    past is a bounded ring: pushing beyond limit drops the oldest entry.
    """

    present: Any
    past: Tuple[Any, ...] = ()
    future: Tuple[Any, ...] = ()
    limit: int = field(default_factory=lambda: settings.HISTORY_LIMIT)

    def __post_init__(self):
        if self.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self.limit}")

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    def push(self, state: Any) -> "ScheduleHistory":
        """Record a new present state; clears the redo branch."""
        if state == self.present:
            return self
        past = (self.past + (self.present,))[-self.limit:]
        return replace(self, present=state, past=past, future=())

    def undo(self) -> "ScheduleHistory":
        if not self.past:
            return self
        return replace(
            self,
            present=self.past[-1],
            past=self.past[:-1],
            future=(self.present,) + self.future,
        )

    def redo(self) -> "ScheduleHistory":
        if not self.future:
            return self
        return replace(
            self,
            present=self.future[0],
            past=(self.past + (self.present,))[-self.limit:],
            future=self.future[1:],
        )

    def clear(self, present: Optional[Any] = None) -> "ScheduleHistory":
        return replace(self, present=self.present if present is None else present, past=(), future=())
