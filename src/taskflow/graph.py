"""Dependency graph between tasks: blocked_by / blocks edges.

Edges are stored on the tasks themselves as id lists and are kept
transposed: ``b in a.blocked_by`` iff ``a in b.blocks``. Every insertion is
checked for cycles. Ids that no longer resolve (the blocker was deleted)
are treated as dangling and skipped by every reader here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

import networkx as nx

from taskflow.index import TaskIndex
from taskflow.models import PRIORITY_RANK, Task

logger = logging.getLogger(__name__)


def would_create_cycle(index: TaskIndex, task_id: str, blocker_id: str) -> bool:
    """True if making *blocker_id* a blocker of *task_id* closes a loop.

    Walks ``blocked_by`` edges depth-first from the blocker. If the walk
    reaches *task_id*, the task already (transitively) blocks the blocker.
    The visited set keeps the walk finite on already-malformed data.
    """
    visited: set[str] = set()
    stack = [blocker_id]
    while stack:
        current = stack.pop()
        if current == task_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        node = index.task(current)
        if node is not None:
            stack.extend(node.blocked_by)
    return False


def add_dependency(index: TaskIndex, task_id: str, blocker_id: str) -> bool:
    """Record that *blocker_id* must finish before *task_id*.

    Returns False and changes nothing for self-edges, unknown ids, subtasks,
    and edges that would create a cycle. Re-adding an existing edge is a
    no-op that returns True.
    """
    if task_id == blocker_id:
        logger.debug("Rejected self-dependency on %s", task_id)
        return False
    task = index.task(task_id)
    blocker = index.task(blocker_id)
    if task is None or blocker is None:
        logger.debug("Rejected dependency %s <- %s: unknown task", task_id, blocker_id)
        return False
    if would_create_cycle(index, task_id, blocker_id):
        logger.debug("Rejected dependency %s <- %s: cycle", task_id, blocker_id)
        return False

    if blocker_id not in task.blocked_by:
        task.blocked_by.append(blocker_id)
    if task_id not in blocker.blocks:
        blocker.blocks.append(task_id)
    return True


def remove_dependency(index: TaskIndex, task_id: str, blocker_id: str) -> bool:
    """Drop the edge in both directions. Always succeeds."""
    task = index.task(task_id)
    blocker = index.task(blocker_id)
    if task is not None and blocker_id in task.blocked_by:
        task.blocked_by.remove(blocker_id)
    if blocker is not None and task_id in blocker.blocks:
        blocker.blocks.remove(task_id)
    return True


def is_blocked(index: TaskIndex, task: Task) -> bool:
    """True if any resolvable blocker is still open."""
    for blocker_id in task.blocked_by:
        blocker = index.task(blocker_id)
        if blocker is not None and not blocker.is_done:
            return True
    return False


def blocking_tasks(index: TaskIndex, task: Task, active_only: bool = False) -> list[Task]:
    """Tasks listed in ``task.blocked_by`` that still exist."""
    result = [t for t in (index.task(i) for i in task.blocked_by) if t is not None]
    if active_only:
        result = [t for t in result if not t.is_done]
    return result


def blocked_tasks(index: TaskIndex, task: Task) -> list[Task]:
    """Tasks listed in ``task.blocks`` that still exist."""
    return [t for t in (index.task(i) for i in task.blocks) if t is not None]


# ---------------------------------------------------------------------------
# Whole-graph helpers
# ---------------------------------------------------------------------------


def dependency_dag(index: TaskIndex, tasks: Iterable[Task] | None = None) -> nx.DiGraph:
    """Project the edges onto a networkx graph (blocker -> blocked).

    Only edges between tasks in *tasks* (default: every indexed task) are
    included; dangling ids are dropped.
    """
    members = {t.id: t for t in (index.tasks() if tasks is None else tasks)}
    G = nx.DiGraph()
    for tid, task in members.items():
        G.add_node(tid, task=task)
    for tid, task in members.items():
        for blocker_id in task.blocked_by:
            if blocker_id in members:
                G.add_edge(blocker_id, tid)
    return G


def find_cycles(index: TaskIndex) -> list[list[str]]:
    """Cycles present in loaded data. Empty when the graph is healthy."""
    return [list(c) for c in nx.simple_cycles(dependency_dag(index))]


def suggest_order(index: TaskIndex, tasks: Iterable[Task]) -> list[Task]:
    """Order *tasks* so blockers come first.

    Among tasks whose blockers are already placed, higher priority goes
    first, then earlier due date (no date last). Falls back to the priority
    ordering alone if the data contains a cycle.
    """
    tasks = list(tasks)

    def rank(tid: str) -> tuple:
        t = G.nodes[tid]["task"]
        return (PRIORITY_RANK[t.priority], t.due_date or date.max, t.name)

    G = dependency_dag(index, tasks)
    try:
        order = list(nx.lexicographical_topological_sort(G, key=rank))
    except nx.NetworkXUnfeasible:
        logger.warning("Dependency cycle found while ordering tasks")
        order = sorted(G.nodes, key=rank)
    return [G.nodes[tid]["task"] for tid in order]


@dataclass
class DependencySummary:
    ready: list[Task] = field(default_factory=list)
    blocked: list[Task] = field(default_factory=list)
    blocking: list[Task] = field(default_factory=list)


def dependency_summary(index: TaskIndex, tasks: Iterable[Task]) -> DependencySummary:
    """Partition open tasks that take part in a dependency.

    ``blocking`` overlaps the other two lists: a task can be ready and still
    hold up others.
    """
    summary = DependencySummary()
    for task in tasks:
        if task.is_done or not (task.blocked_by or task.blocks):
            continue
        if is_blocked(index, task):
            summary.blocked.append(task)
        else:
            summary.ready.append(task)
        if task.blocks:
            summary.blocking.append(task)
    return summary
