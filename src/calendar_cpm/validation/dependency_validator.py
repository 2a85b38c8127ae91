# calendar_cpm/validation/dependency_validator.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

from calendar_cpm.cpm.graph_builder import TaskGraph
from calendar_cpm.errors import ErrorKind, ScheduleIssue, make_issue
from calendar_cpm.models import Dependency, Task

logger = logging.getLogger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2

Edge = Tuple[Task, Task, Dependency]


@dataclass(frozen=True)
class ValidationResult:
    errors: Tuple[ScheduleIssue, ...] = field(default_factory=tuple)

    @property
    def valid(self) -> bool:
        return not self.errors

    def errors_of(self, kind: ErrorKind) -> List[ScheduleIssue]:
        return [e for e in self.errors if e.kind == kind]


# ------------------------------------------------------------------
# 1. Dangling references
# ------------------------------------------------------------------
def find_dangling_references(graph: TaskGraph, only: Optional[Iterable[Tuple[str, str]]] = None) -> List[ScheduleIssue]:
    wanted = set(only) if only is not None else None
    issues = []
    for task_id, missing in graph.dangling_references():
        if wanted is not None and (missing, task_id) not in wanted:
            continue
        issues.append(make_issue(
            ErrorKind.DANGLING_DEPENDENCY,
            f"Task '{graph.nodes[task_id].task.label}' depends on non-existent task '{missing}'",
            [task_id, missing],
        ))
    return issues


# ------------------------------------------------------------------
# 2. Cycles
# ------------------------------------------------------------------
def _walk_cycles(graph: TaskGraph, starts: Iterable[str]) -> List[List[str]]:
    """
    Depth-first search with white/gray/black colouring.

    Every edge into a gray node (one still on the recursion stack) closes a
    cycle; the returned path starts and ends on that node. Iterative so deep
    chains do not hit the interpreter recursion limit.
    """
    colour = {tid: WHITE for tid in graph.nodes}
    cycles: List[List[str]] = []

    for start in starts:
        if colour.get(start, BLACK) != WHITE:
            continue
        stack: List[str] = [start]
        iters = [iter(graph.nodes[start].successors)]
        colour[start] = GRAY

        while stack:
            advanced = False
            for succ in iters[-1]:
                if colour[succ] == GRAY:
                    cycles.append(stack[stack.index(succ):] + [succ])
                elif colour[succ] == WHITE:
                    colour[succ] = GRAY
                    stack.append(succ)
                    iters.append(iter(graph.nodes[succ].successors))
                    advanced = True
                    break
            if not advanced:
                colour[stack.pop()] = BLACK
                iters.pop()

    return cycles


def _canonical(cycle: List[str]) -> Tuple[str, ...]:
    body = cycle[:-1]
    pivot = body.index(min(body))
    return tuple(body[pivot:] + body[:pivot])


def _cycle_issue(graph: TaskGraph, cycle: List[str]) -> ScheduleIssue:
    names = " -> ".join(graph.nodes[tid].task.label for tid in cycle)
    return make_issue(ErrorKind.CIRCULAR_DEPENDENCY, f"Circular dependency: {names}", cycle)


def find_cycles(graph: TaskGraph) -> List[ScheduleIssue]:
    seen: Set[Tuple[str, ...]] = set()
    issues = []
    for cycle in _walk_cycles(graph, graph.nodes):
        key = _canonical(cycle)
        if key in seen:
            continue
        seen.add(key)
        issues.append(_cycle_issue(graph, cycle))
    return issues


def _cycles_through(graph: TaskGraph, predecessor_id: str, successor_id: str) -> List[ScheduleIssue]:
    """Cycles that use the edge predecessor_id -> successor_id."""
    issues = []
    seen: Set[Tuple[str, ...]] = set()
    for cycle in _walk_cycles(graph, [successor_id]):
        hops = list(zip(cycle, cycle[1:]))
        if (predecessor_id, successor_id) not in hops:
            continue
        key = _canonical(cycle)
        if key not in seen:
            seen.add(key)
            issues.append(_cycle_issue(graph, cycle))
    return issues


# ------------------------------------------------------------------
# 3. Durations
# ------------------------------------------------------------------
def _valid_duration(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def check_durations(graph: TaskGraph) -> List[ScheduleIssue]:
    issues = []
    for node in graph.nodes.values():
        if not _valid_duration(node.duration):
            issues.append(make_issue(
                ErrorKind.INVALID_TASK,
                f"Task '{node.task.label}' has duration {node.duration!r}; "
                f"durations must be positive whole working days",
                [node.id],
            ))
    return issues


# ------------------------------------------------------------------
# 4. Overlap bounds
# ------------------------------------------------------------------
def check_overlap_bounds(graph: TaskGraph, edges: Optional[Iterable[Edge]] = None) -> List[ScheduleIssue]:
    issues = []
    for pred, succ, dep in (graph.edges() if edges is None else edges):
        if dep.lag >= 0 or not _valid_duration(pred.duration):
            continue
        overlap = -dep.lag
        if overlap >= pred.duration:
            issues.append(make_issue(
                ErrorKind.OVERLAP_EXCEEDS_DURATION,
                f"Task '{succ.label}' ({succ.duration} days) overlaps predecessor '{pred.label}' "
                f"by {overlap} days, but '{pred.label}' only lasts {pred.duration} days",
                [succ.id, pred.id],
            ))
    return issues


# ------------------------------------------------------------------
# 5. Asset boundaries
# ------------------------------------------------------------------
def check_asset_boundaries(graph: TaskGraph, edges: Optional[Iterable[Edge]] = None) -> List[ScheduleIssue]:
    issues = []
    for pred, succ, dep in (graph.edges() if edges is None else edges):
        if pred.asset_id != succ.asset_id:
            issues.append(make_issue(
                ErrorKind.CROSS_ASSET_DEPENDENCY,
                f"Task '{succ.label}' (asset {succ.asset_id}) cannot depend on task "
                f"'{pred.label}' from asset {pred.asset_id}",
                [succ.id, pred.id],
            ))
    return issues


# ------------------------------------------------------------------
# MAIN VALIDATION ENTRY POINTS
# ------------------------------------------------------------------
def validate_graph(graph: TaskGraph) -> ValidationResult:
    """
    Run every check and collect all violations:
      - durations that are not positive whole working days
      - dangling references
      - circular dependencies (full path per cycle)
      - overlaps consuming the whole predecessor
      - dependencies crossing asset boundaries
    """
    errors: List[ScheduleIssue] = []
    errors.extend(check_durations(graph))
    errors.extend(find_dangling_references(graph))
    errors.extend(find_cycles(graph))
    errors.extend(check_overlap_bounds(graph))
    errors.extend(check_asset_boundaries(graph))

    if errors:
        logger.info("Dependency validation found %d problem(s)", len(errors))
    return ValidationResult(errors=tuple(errors))


def validate_candidate(predecessor_id: str, successor_id: str, lag: int, graph: TaskGraph) -> ValidationResult:
    """
    Pre-check one dependency before it is added.

    The candidate is added to a hypothetical copy of the graph and the same
    checks as validate_graph run against it, restricted to the new edge.
    """
    candidate = Dependency(predecessor_id=predecessor_id, lag=lag)

    if successor_id not in graph:
        return ValidationResult(errors=(make_issue(
            ErrorKind.DANGLING_DEPENDENCY,
            f"Successor task '{successor_id}' not found",
            [successor_id],
        ),))

    hypothetical = graph.with_dependency(successor_id, candidate)
    if predecessor_id not in hypothetical:
        return ValidationResult(errors=tuple(
            find_dangling_references(hypothetical, only=[(predecessor_id, successor_id)])
        ))

    edge = [(hypothetical.nodes[predecessor_id].task, hypothetical.nodes[successor_id].task, candidate)]
    errors: List[ScheduleIssue] = []
    errors.extend(_cycles_through(hypothetical, predecessor_id, successor_id))
    errors.extend(check_overlap_bounds(hypothetical, edge))
    errors.extend(check_asset_boundaries(hypothetical, edge))
    return ValidationResult(errors=tuple(errors))
