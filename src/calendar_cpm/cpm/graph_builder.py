# calendar_cpm/cpm/graph_builder.py

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from calendar_cpm.errors import ErrorKind, GraphError, make_issue
from calendar_cpm.models import Dependency, Task

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# GRAPH TYPES
# ---------------------------------------------------------

@dataclass(frozen=True)
class TaskNode:
    task: Task
    successors: Tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def duration(self) -> int:
        return self.task.duration

    @property
    def dependencies(self) -> Tuple[Dependency, ...]:
        return self.task.dependencies


@dataclass(frozen=True)
class TaskGraph:
    """
    Indexed task network:

    nodes:          {task_id: TaskNode} in input order
    roots:          tasks declaring no dependencies
    sinks:          tasks nobody depends on
    fallback_links: (predecessor, task) pairs added by apply_sequential_fallback
    """

    nodes: Dict[str, TaskNode]
    roots: List[str]
    sinks: List[str]
    fallback_links: Tuple[Tuple[str, str], ...] = ()

    def __contains__(self, task_id: str) -> bool:
        return task_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def tasks(self) -> List[Task]:
        return [node.task for node in self.nodes.values()]

    def edges(self) -> Iterator[Tuple[Task, Task, Dependency]]:
        """Resolved (predecessor, successor, dependency) triples, input order."""
        for node in self.nodes.values():
            for dep in node.dependencies:
                pred = self.nodes.get(dep.predecessor_id)
                if pred is not None:
                    yield pred.task, node.task, dep

    def resolved_dependencies(self, task_id: str) -> List[Dependency]:
        return [d for d in self.nodes[task_id].dependencies if d.predecessor_id in self.nodes]

    def dangling_references(self) -> List[Tuple[str, str]]:
        """(task_id, missing_predecessor_id) for every unresolved dependency."""
        return [
            (node.id, dep.predecessor_id)
            for node in self.nodes.values()
            for dep in node.dependencies
            if dep.predecessor_id not in self.nodes
        ]

    def asset_sequence(self, asset_id: str) -> List[str]:
        return [tid for tid, node in self.nodes.items() if node.task.asset_id == asset_id]

    def with_dependency(self, successor_id: str, dependency: Dependency) -> "TaskGraph":
        """Hypothetical graph with one extra dependency on successor_id."""
        tasks = []
        for task in self.tasks():
            if task.id == successor_id:
                task = replace(task, dependencies=task.dependencies + (dependency,))
            tasks.append(task)
        return build_graph(tasks, fallback_links=self.fallback_links)


# ---------------------------------------------------------
# GRAPH CONSTRUCTION
# ---------------------------------------------------------

def build_graph(tasks: Iterable[Task], fallback_links: Tuple[Tuple[str, str], ...] = ()) -> TaskGraph:
    """
    Build the task network in two passes:
      1. index tasks by id
      2. wire each resolvable dependency as a successor back-reference

    Only structural problems (no tasks, duplicate ids) raise GraphError;
    dangling references, cycles and business rules are left for the
    validator so it can report them against a complete graph.
    """
    tasks = list(tasks)
    if not tasks:
        raise GraphError(
            "Cannot build a schedule from an empty task list",
            issues=[make_issue(ErrorKind.EMPTY_TASK_LIST, "Cannot build a schedule from an empty task list")],
        )

    # 1. Index
    by_id: Dict[str, Task] = {}
    duplicates: List[str] = []
    for task in tasks:
        if task.id in by_id:
            if task.id not in duplicates:
                duplicates.append(task.id)
            continue
        by_id[task.id] = task

    if duplicates:
        issues = [
            make_issue(ErrorKind.DUPLICATE_TASK_ID, f"Duplicate task id '{tid}'", [tid])
            for tid in duplicates
        ]
        raise GraphError(f"Duplicate task ids: {duplicates}", duplicates, issues=issues)

    # 2. Successor back-references
    successors: Dict[str, List[str]] = {tid: [] for tid in by_id}
    for task in by_id.values():
        for dep in task.dependencies:
            if dep.predecessor_id not in by_id:
                continue
            succ_list = successors[dep.predecessor_id]
            if task.id not in succ_list:
                succ_list.append(task.id)

    nodes = {tid: TaskNode(task=task, successors=tuple(successors[tid])) for tid, task in by_id.items()}
    roots = [tid for tid, task in by_id.items() if not task.dependencies]
    sinks = [tid for tid in by_id if not successors[tid]]

    logger.debug("Built task graph: %d nodes, %d roots, %d sinks", len(nodes), len(roots), len(sinks))
    return TaskGraph(nodes=nodes, roots=roots, sinks=sinks, fallback_links=tuple(fallback_links))


# ---------------------------------------------------------
# SEQUENTIAL FALLBACK FOR DANGLING DEPENDENCIES
# ---------------------------------------------------------

def _reaches(successors: Dict[str, List[str]], start: str, target: str) -> bool:
    seen = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        if current == target:
            return True
        for nxt in successors.get(current, ()):
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return False


def apply_sequential_fallback(graph: TaskGraph) -> TaskGraph:
    """
    Replace unresolvable dependencies with sequential placement.

    A task whose declared dependencies all point at ids missing from the
    graph (e.g. a stale id after an edit) is not treated as a free root:
    it gets an FS(+0) dependency on the previous task of the same asset.
    Candidates the task itself can reach are skipped, since linking them
    would close a cycle. Tasks with some resolvable dependencies only lose
    their dangling references.
    """
    dangling = graph.dangling_references()
    if not dangling:
        return graph

    successors: Dict[str, List[str]] = {tid: list(node.successors) for tid, node in graph.nodes.items()}
    links = list(graph.fallback_links)
    rebuilt: List[Task] = []

    for task in graph.tasks():
        resolved = tuple(d for d in task.dependencies if d.predecessor_id in graph.nodes)
        if len(resolved) == len(task.dependencies):
            rebuilt.append(task)
            continue

        missing = [d.predecessor_id for d in task.dependencies if d.predecessor_id not in graph.nodes]
        if resolved:
            logger.warning("Task %s: dropping unresolved dependencies %s", task.id, missing)
            rebuilt.append(replace(task, dependencies=resolved))
            continue

        previous: Optional[str] = None
        sequence = graph.asset_sequence(task.asset_id)
        for candidate in reversed(sequence[: sequence.index(task.id)]):
            if not _reaches(successors, task.id, candidate):
                previous = candidate
                break

        if previous is None:
            logger.warning(
                "Task %s: unresolved dependencies %s and no earlier task in asset %s; scheduling as a start task",
                task.id, missing, task.asset_id,
            )
            rebuilt.append(replace(task, dependencies=()))
            continue

        logger.warning(
            "Task %s: unresolved dependencies %s, placing sequentially after %s",
            task.id, missing, previous,
        )
        successors[previous].append(task.id)
        links.append((previous, task.id))
        rebuilt.append(replace(task, dependencies=(Dependency(predecessor_id=previous, lag=0),)))

    return build_graph(rebuilt, fallback_links=tuple(links))
