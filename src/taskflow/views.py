"""Derived task lists: views, filters, sorting and grouping.

Everything here is a pure function of the workspace, the index and the
current date. The returned lists are new lists holding the live task
records; callers must not restructure the workspace through them.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from taskflow.index import TaskIndex
from taskflow.models import (
    PRIORITY_RANK,
    STATUS_RANK,
    Priority,
    Task,
    TaskStatus,
    Workspace,
)

DEFAULT_ESTIMATE_MINUTES = 30


class SortKey(enum.StrEnum):
    DUE_DATE = "due-date"
    PRIORITY = "priority"
    NAME = "name"
    CREATED = "created"


class GroupKey(enum.StrEnum):
    NONE = "none"
    PROJECT = "project"
    PRIORITY = "priority"
    STATUS = "status"
    DUE_DATE = "due-date"


# Views that carry their own ordering when no sort is requested.
PRESORTED_VIEWS = {"upcoming", "overdue"}


@dataclass
class ViewQuery:
    """Filters, sort and grouping applied after view selection."""

    text: str | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    project_id: str | None = None
    hide_completed: bool = False
    sort: SortKey | None = None
    group: GroupKey = GroupKey.NONE


@dataclass
class TaskGroup:
    key: str
    label: str
    tasks: list[Task] = field(default_factory=list)


# ---------------------------------------------------------------------------
# View selection
# ---------------------------------------------------------------------------


def _inbox(workspace: Workspace, index: TaskIndex, today: date) -> list[Task]:
    inbox = workspace.get_inbox()
    if inbox is None:
        return []
    return [t for t in inbox.tasks if t.is_active]


def _today(workspace: Workspace, index: TaskIndex, today: date) -> list[Task]:
    return [t for t in index.tasks() if t.is_active and t.due_date == today]


def upcoming_sort_date(task: Task) -> date:
    """Earlier of the scheduled and due dates; missing dates sort last."""
    dates = [d for d in (task.scheduled_date, task.due_date) if d is not None]
    return min(dates) if dates else date.max


def _upcoming(workspace: Workspace, index: TaskIndex, today: date) -> list[Task]:
    tasks = [
        t
        for t in index.tasks()
        if t.is_active
        and (
            (t.scheduled_date is not None and t.scheduled_date >= today)
            or (t.due_date is not None and t.due_date >= today)
        )
    ]
    return sorted(tasks, key=upcoming_sort_date)


def _overdue(workspace: Workspace, index: TaskIndex, today: date) -> list[Task]:
    tasks = [t for t in index.tasks() if t.is_active and t.is_overdue(today)]
    return sorted(tasks, key=lambda t: t.due_date)


def _completed(workspace: Workspace, index: TaskIndex, today: date) -> list[Task]:
    return [t for t in index.tasks() if t.is_done]


def _waiting(workspace: Workspace, index: TaskIndex, today: date) -> list[Task]:
    return [t for t in index.tasks() if t.status == TaskStatus.WAITING]


def _ready(workspace: Workspace, index: TaskIndex, today: date) -> list[Task]:
    return [t for t in index.tasks() if t.status == TaskStatus.READY]


def _master_list(workspace: Workspace, index: TaskIndex, today: date) -> list[Task]:
    return index.tasks()


VIEWS: dict[str, Callable[[Workspace, TaskIndex, date], list[Task]]] = {
    "inbox": _inbox,
    "today": _today,
    "upcoming": _upcoming,
    "overdue": _overdue,
    "completed": _completed,
    "waiting": _waiting,
    "ready": _ready,
    "master-list": _master_list,
}


def select_view(workspace: Workspace, index: TaskIndex, view: str, today: date) -> list[Task]:
    """Apply the selection predicate of *view*. Unknown views select nothing."""
    if view in VIEWS:
        return VIEWS[view](workspace, index, today)
    if view.startswith("project-"):
        project = workspace.get_project(view.removeprefix("project-"))
        return list(project.tasks) if project else []
    if view.startswith("tag-"):
        tag_id = view.removeprefix("tag-")
        return [t for t in index.tasks() if tag_id in t.tags]
    return []


# ---------------------------------------------------------------------------
# Filtering and sorting
# ---------------------------------------------------------------------------


def matches_text(task: Task, text: str) -> bool:
    q = text.lower()
    return q in task.name.lower() or q in (task.description or "").lower()


def apply_filters(tasks: list[Task], query: ViewQuery) -> list[Task]:
    if query.text:
        tasks = [t for t in tasks if matches_text(t, query.text)]
    if query.hide_completed:
        tasks = [t for t in tasks if t.is_active]
    if query.status is not None:
        tasks = [t for t in tasks if t.status == query.status]
    if query.priority is not None:
        tasks = [t for t in tasks if t.priority == query.priority]
    if query.project_id is not None:
        tasks = [t for t in tasks if t.project_id == query.project_id]
    return tasks


def sort_tasks(tasks: list[Task], key: SortKey = SortKey.CREATED) -> list[Task]:
    """Stable sort by *key*. ``created`` is newest first."""
    if key == SortKey.DUE_DATE:
        return sorted(tasks, key=lambda t: (t.due_date is None, t.due_date or date.min))
    if key == SortKey.PRIORITY:
        return sorted(tasks, key=lambda t: PRIORITY_RANK[t.priority])
    if key == SortKey.NAME:
        return sorted(tasks, key=lambda t: t.name.casefold())
    return sorted(tasks, key=lambda t: t.created_at, reverse=True)


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


def due_bucket(task: Task, today: date) -> str:
    if task.due_date is None:
        return "no-date"
    if task.due_date < today:
        return "overdue"
    if task.due_date == today:
        return "today"
    return task.due_date.isoformat()


_DUE_LABELS = {"overdue": "Overdue", "today": "Today", "no-date": "No Due Date"}


def _due_order(key: str) -> tuple:
    if key == "overdue":
        return (0, "")
    if key == "today":
        return (1, "")
    if key == "no-date":
        return (3, "")
    return (2, key)


def group_tasks(
    tasks: list[Task],
    group: GroupKey,
    workspace: Workspace,
    today: date,
) -> list[TaskGroup]:
    """Partition *tasks* into labelled buckets; task order is kept inside each."""
    groups: dict[str, TaskGroup] = {}

    for task in tasks:
        if group == GroupKey.PROJECT:
            project = workspace.get_project(task.project_id)
            key = project.id if project else task.project_id
            label = project.name if project else "Inbox"
        elif group == GroupKey.PRIORITY:
            key = task.priority.value
            label = key.capitalize()
        elif group == GroupKey.STATUS:
            key = task.status.value
            label = key.replace("-", " ").title()
        elif group == GroupKey.DUE_DATE:
            key = due_bucket(task, today)
            label = _DUE_LABELS.get(key, key)
        else:
            key, label = "all", "All Tasks"
        groups.setdefault(key, TaskGroup(key=key, label=label)).tasks.append(task)

    if group == GroupKey.PRIORITY:
        order = lambda k: PRIORITY_RANK[Priority(k)]  # noqa: E731
    elif group == GroupKey.STATUS:
        order = lambda k: STATUS_RANK[TaskStatus(k)]  # noqa: E731
    elif group == GroupKey.DUE_DATE:
        order = _due_order
    elif group == GroupKey.PROJECT:
        positions = {p.id: i for i, p in enumerate(workspace.projects)}
        order = lambda k: positions.get(k, len(positions))  # noqa: E731
    else:
        order = lambda k: 0  # noqa: E731

    return [groups[k] for k in sorted(groups, key=order)]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def derive_view(
    workspace: Workspace,
    index: TaskIndex,
    view: str,
    query: ViewQuery | None = None,
    today: date | None = None,
) -> list[Task] | list[TaskGroup]:
    """Select, filter, sort and optionally group the tasks of *view*.

    Returns a flat list unless ``query.group`` asks for grouping, in which
    case a list of :class:`TaskGroup` is returned.
    """
    query = query or ViewQuery()
    today = today or date.today()

    tasks = apply_filters(select_view(workspace, index, view, today), query)
    if query.sort is not None:
        tasks = sort_tasks(tasks, query.sort)
    elif view not in PRESORTED_VIEWS:
        tasks = sort_tasks(tasks, SortKey.CREATED)

    if query.group != GroupKey.NONE:
        return group_tasks(tasks, query.group, workspace, today)
    return tasks


def time_budget(tasks: list[Task]) -> int:
    """Total estimated minutes, counting unestimated tasks as 30."""
    return sum(t.estimated_minutes or DEFAULT_ESTIMATE_MINUTES for t in tasks)
