# calendar_cpm/cpm/critical_path.py

from __future__ import annotations

import logging
from collections import deque
from typing import Dict, List

from calendar_cpm.cpm.graph_builder import TaskGraph
from calendar_cpm.errors import CalculationError, ErrorKind, make_issue
from calendar_cpm.models import CPMResult, CriticalPathAnalysis

logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# TOPOLOGICAL ORDER
# ---------------------------------------------------------

def topological_order(graph: TaskGraph) -> List[str]:
    """
    Kahn's algorithm over resolved edges.

    Ready nodes are released in input order, so the same graph always
    yields the same order. Raises CalculationError when a cycle leaves
    nodes unprocessed.
    """
    indeg = {
        tid: len({d.predecessor_id for d in graph.resolved_dependencies(tid)})
        for tid in graph.nodes
    }
    position = {tid: i for i, tid in enumerate(graph.nodes)}

    q = deque(tid for tid in graph.nodes if indeg[tid] == 0)
    topo: List[str] = []
    while q:
        n = q.popleft()
        topo.append(n)
        released = []
        for succ in graph.nodes[n].successors:
            indeg[succ] -= 1
            if indeg[succ] == 0:
                released.append(succ)
        q.extend(sorted(released, key=position.__getitem__))

    if len(topo) != len(graph.nodes):
        stuck = [tid for tid in graph.nodes if indeg[tid] > 0]
        message = f"Graph is not acyclic; cannot compute CPM (cycle involving: {', '.join(stuck)})"
        raise CalculationError(message, issues=[make_issue(ErrorKind.CIRCULAR_DEPENDENCY, message, stuck)])

    return topo


# ---------------------------------------------------------
# CPM ALGORITHM
# ---------------------------------------------------------

def compute_cpm(graph: TaskGraph) -> CriticalPathAnalysis:
    """
    Compute ES/EF/LS/LF/slack in the day-offset domain (no calendar yet).

    Offsets are half-open: a task occupies [ES, EF), so EF = ES + duration
    and an FS(+0) successor starts at the predecessor's EF.

    Returns a CriticalPathAnalysis with per-task results, the project
    duration and the reported critical path.

    project_duration is the latest EF over every task, not only sinks: an
    overlapped predecessor can finish after all of its successors.
    """
    topo = topological_order(graph)

    # Forward pass
    es: Dict[str, int] = {}
    ef: Dict[str, int] = {}
    for n in topo:
        start = 0
        for dep in graph.resolved_dependencies(n):
            start = max(start, ef[dep.predecessor_id] + dep.lag)
        es[n] = start
        ef[n] = start + graph.nodes[n].duration

    # A predecessor overlapped by a shorter successor can finish after every
    # sink, so the project end is the latest EF anywhere.
    project_duration = max(ef.values())

    # Backward pass
    lf: Dict[str, int] = {}
    ls: Dict[str, int] = {}
    for n in reversed(topo):
        finish = project_duration
        for succ in graph.nodes[n].successors:
            for dep in graph.nodes[succ].dependencies:
                if dep.predecessor_id == n:
                    finish = min(finish, ls[succ] - dep.lag)
        lf[n] = finish
        ls[n] = finish - graph.nodes[n].duration

    results = {
        n: CPMResult(early_start=es[n], early_finish=ef[n], late_start=ls[n], late_finish=lf[n])
        for n in graph.nodes
    }
    critical_path = trace_critical_path(graph, results, project_duration)

    logger.info(
        "CPM computed: %d tasks, project duration %d days, critical path %s",
        len(results), project_duration, critical_path,
    )
    return CriticalPathAnalysis(
        results=results,
        project_duration=project_duration,
        critical_path=critical_path,
        order=topo,
    )


# ---------------------------------------------------------
# CRITICAL PATH TRACE
# ---------------------------------------------------------

def trace_critical_path(graph: TaskGraph, results: Dict[str, CPMResult], project_duration: int) -> List[str]:
    """
    Report one root-to-end chain of zero-slack tasks.

    Starts from the zero-slack task finishing at project_duration (sinks
    first, then input order) and walks back through driving predecessors
    (EF + lag == successor ES), always preferring the latest EF; equal EFs
    fall back to input order. The choice is stable across runs.
    """
    position = {tid: i for i, tid in enumerate(graph.nodes)}
    sinks = set(graph.sinks)

    ends = [
        tid for tid, r in results.items()
        if r.is_critical and r.early_finish == project_duration
    ]
    if not ends:
        return []
    current = min(ends, key=lambda tid: (tid not in sinks, position[tid]))

    path = [current]
    visited = {current}
    while True:
        r = results[current]
        driving = [
            dep.predecessor_id
            for dep in graph.resolved_dependencies(current)
            if results[dep.predecessor_id].is_critical
            and results[dep.predecessor_id].early_finish + dep.lag == r.early_start
            and dep.predecessor_id not in visited
        ]
        if not driving:
            break
        current = min(driving, key=lambda tid: (-results[tid].early_finish, position[tid]))
        path.append(current)
        visited.add(current)

    path.reverse()
    return path
