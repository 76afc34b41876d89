"""Mutation API and read facade over a workspace.

:class:`TaskService` owns one workspace, its index and a persistence
backend. Every successful mutation rebuilds the index and saves. A failed
save is logged and recorded but never undoes the in-memory change.
Rejected input (empty names, unknown ids, cyclic dependencies) returns
``None`` or ``False`` and leaves the workspace untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Iterable

from taskflow import graph
from taskflow.index import TaskIndex
from taskflow.models import (
    DEFAULT_COLOR,
    INBOX_ID,
    Category,
    PersistenceError,
    Priority,
    Project,
    ProjectStatus,
    Subtask,
    Tag,
    Task,
    TaskStatus,
    Workspace,
    generate_id,
    now,
)
from taskflow.persistence import Persistence
from taskflow.scheduler import (
    FocusMode,
    RollResult,
    TimeBlock,
    build_focus_queue,
    day_timeline,
    roll_forward,
)
from taskflow.views import TaskGroup, ViewQuery, derive_view

logger = logging.getLogger(__name__)

WORK_ITEM_FIELDS = {
    "name",
    "description",
    "status",
    "priority",
    "due_date",
    "scheduled_date",
    "scheduled_time",
    "estimated_minutes",
}
TASK_ONLY_FIELDS = {"tags", "waiting_reason"}
PROJECT_FIELDS = {"name", "description", "color", "category_id", "status"}


def parse_date(value: date | str | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def parse_time(value: time | str | None) -> time | None:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    return time.fromisoformat(value)


@dataclass
class ProjectSummary:
    project: Project
    total: int
    active: int


class TaskService:
    """The only way the workspace changes."""

    def __init__(self, store: Persistence, workspace: Workspace | None = None):
        self.store = store
        self.workspace = workspace if workspace is not None else store.load()
        self.index = TaskIndex(self.workspace)
        self.last_save_ok = True
        self.save_errors: list[str] = []

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _commit(self) -> None:
        """Rebuild the index, then hand the workspace to the store."""
        self.index.rebuild(self.workspace)
        try:
            self.store.save(self.workspace)
        except PersistenceError as e:
            logger.error("Save failed, keeping in-memory changes: %s", e)
            self.last_save_ok = False
            self.save_errors.append(str(e))
        else:
            self.last_save_ok = True

    def refresh(self) -> None:
        """Reload the workspace from the store and rebuild the index."""
        self.workspace = self.store.load()
        self.index.rebuild(self.workspace)

    def get_task(self, item_id: str) -> Task | Subtask | None:
        return self.index.lookup(item_id)

    def _coerce_fields(self, fields: dict[str, Any], allowed: set[str]) -> dict[str, Any]:
        """Validate and normalise update fields.

        Unknown field names and malformed values are programming errors and
        raise; empty names and non-positive estimates are ordinary bad input
        and are signalled by returning an empty dict.
        """
        unknown = set(fields) - allowed
        if unknown:
            raise TypeError(f"Unknown field(s): {', '.join(sorted(unknown))}")

        out: dict[str, Any] = {}
        for key, value in fields.items():
            if key == "name":
                value = (value or "").strip()
                if not value:
                    return {}
            elif key == "description":
                value = value or ""
            elif key == "status":
                value = TaskStatus(value)
            elif key == "priority":
                value = Priority(value)
            elif key in ("due_date", "scheduled_date"):
                value = parse_date(value)
            elif key == "scheduled_time":
                value = parse_time(value)
            elif key == "estimated_minutes":
                if value is not None and (not isinstance(value, int) or value <= 0):
                    return {}
            out[key] = value
        # Resolving may create tags, so it waits until everything else passed.
        if "tags" in out:
            out["tags"] = self._resolve_tags(out["tags"] or [])
        return out

    @staticmethod
    def _apply_fields(item: Task | Subtask, fields: dict[str, Any]) -> None:
        for key, value in fields.items():
            setattr(item, key, value)
        # A time slot needs a date: clearing the date drops the slot, and a
        # slot without a date is booked for today.
        if "scheduled_date" in fields and item.scheduled_date is None and "scheduled_time" not in fields:
            item.scheduled_time = None
        if item.scheduled_time is not None and item.scheduled_date is None:
            item.scheduled_date = date.today()
        if "status" in fields:
            if item.status == TaskStatus.DONE:
                if item.completed_at is None:
                    item.completed_at = now()
            else:
                item.completed_at = None
        item.updated_at = now()

    def _allowed_fields(self, item: Task | Subtask) -> set[str]:
        return WORK_ITEM_FIELDS | TASK_ONLY_FIELDS if isinstance(item, Task) else WORK_ITEM_FIELDS

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(
        self,
        name: str,
        project_id: str | None = None,
        *,
        description: str = "",
        status: TaskStatus | str = TaskStatus.TODO,
        priority: Priority | str = Priority.NONE,
        due_date: date | str | None = None,
        scheduled_date: date | str | None = None,
        scheduled_time: time | str | None = None,
        estimated_minutes: int | None = None,
        tags: Iterable[str] | None = None,
        today: date | None = None,
    ) -> Task | None:
        """File a new task into *project_id*, or the Inbox when omitted.

        Tags may be given as ids or names; unknown names create tags. A
        scheduled date doubles as the due date when none is given, and a
        time slot without a date is booked for today.
        """
        if project_id is None or project_id == INBOX_ID:
            project = None
        else:
            project = self.workspace.get_project(project_id)
            if project is None:
                logger.debug("create_task: unknown project %s", project_id)
                return None

        name = (name or "").strip()
        if not name:
            logger.debug("create_task: empty name")
            return None
        if estimated_minutes is not None and (not isinstance(estimated_minutes, int) or estimated_minutes <= 0):
            logger.debug("create_task: bad estimate %r", estimated_minutes)
            return None

        status = TaskStatus(status)
        priority = Priority(priority)
        sched_time = parse_time(scheduled_time)
        sched_date = parse_date(scheduled_date)
        due = parse_date(due_date) or sched_date
        if sched_time is not None and sched_date is None:
            sched_date = today or date.today()

        if project is None:
            project = self.workspace.ensure_inbox()

        stamp = now()
        task = Task(
            id=generate_id(),
            name=name,
            description=description or "",
            status=status,
            priority=priority,
            due_date=due,
            scheduled_date=sched_date,
            scheduled_time=sched_time,
            estimated_minutes=estimated_minutes,
            created_at=stamp,
            updated_at=stamp,
            completed_at=stamp if status == TaskStatus.DONE else None,
            project_id=project.id,
            tags=self._resolve_tags(tags or []),
        )
        project.tasks.append(task)
        self._commit()
        logger.info("Created task %s in %s", task.id, project.name)
        return task

    def update_task(self, item_id: str, **fields: Any) -> Task | Subtask | None:
        """Apply field-level changes to a task or subtask.

        Setting ``status`` to done stamps ``completed_at``; any other status
        clears it. Returns None if the id is unknown or the input is invalid.
        """
        item = self.index.lookup(item_id)
        if item is None:
            logger.debug("update_task: unknown id %s", item_id)
            return None
        coerced = self._coerce_fields(fields, self._allowed_fields(item))
        if fields and not coerced:
            logger.debug("update_task: rejected input for %s", item_id)
            return None
        self._apply_fields(item, coerced)
        self._commit()
        return item

    def complete_task(self, item_id: str) -> Task | Subtask | None:
        return self.update_task(item_id, status=TaskStatus.DONE)

    def delete_task(self, item_id: str) -> bool:
        """Remove a task from its project, or a subtask from its parent.

        Dependency edges that point at the task are left in place; readers
        treat them as dangling.
        """
        item = self.index.lookup(item_id)
        if item is None:
            return False
        if isinstance(item, Subtask):
            parent = self.index.parent_of(item_id)
            parent.subtasks.remove(item)
        else:
            project = self.index.project_of(item_id)
            project.tasks.remove(item)
        self._commit()
        logger.info("Deleted %s", item_id)
        return True

    def move_task_to_project(self, task_id: str, project_id: str) -> bool:
        task = self.index.task(task_id)
        if task is None:
            logger.debug("move_task_to_project: unknown task %s", task_id)
            return False
        if project_id == INBOX_ID:
            target = self.workspace.ensure_inbox()
        else:
            target = self.workspace.get_project(project_id)
        if target is None:
            logger.debug("move_task_to_project: unknown project %s", project_id)
            return False
        source = self.index.project_of(task_id)
        if source is not target:
            source.tasks.remove(task)
            target.tasks.append(task)
            task.project_id = target.id
            task.updated_at = now()
        self._commit()
        logger.info("Moved %s from %s to %s", task_id, source.name, target.name)
        return True

    def create_subtasks(self, parent_id: str, names: Iterable[str]) -> list[Subtask] | None:
        parent = self.index.task(parent_id)
        if parent is None:
            return None
        cleaned = [n.strip() for n in names if n and n.strip()]
        if not cleaned:
            return None
        created = [Subtask(id=generate_id(), name=n) for n in cleaned]
        parent.subtasks.extend(created)
        parent.updated_at = now()
        self._commit()
        return created

    def duplicate_task(self, task_id: str) -> Task | None:
        task = self.index.task(task_id)
        if task is None:
            return None
        return self.create_task(
            f"{task.name} (copy)",
            task.project_id,
            description=task.description,
            priority=task.priority,
            due_date=task.due_date,
            estimated_minutes=task.estimated_minutes,
            tags=list(task.tags),
        )

    def bulk_update(self, task_ids: Iterable[str], **fields: Any) -> tuple[list[Task | Subtask], list[str]]:
        """Apply the same changes to many items. Returns (updated, missing ids)."""
        found: list[Task | Subtask] = []
        missing: list[str] = []
        for tid in task_ids:
            item = self.index.lookup(tid)
            if item is None:
                missing.append(tid)
            else:
                found.append(item)
        if not found:
            return [], missing

        allowed = WORK_ITEM_FIELDS if any(isinstance(i, Subtask) for i in found) else WORK_ITEM_FIELDS | TASK_ONLY_FIELDS
        coerced = self._coerce_fields(fields, allowed)
        if fields and not coerced:
            return [], missing
        for item in found:
            self._apply_fields(item, coerced)
        self._commit()
        return found, missing

    def delete_all_completed(self, project_id: str | None = None) -> int:
        """Drop done tasks (and done subtasks of the rest). Returns the count."""
        deleted = 0
        for project in self.workspace.projects:
            if project_id is not None and project.id != project_id:
                continue
            kept = [t for t in project.tasks if not t.is_done]
            deleted += len(project.tasks) - len(kept)
            project.tasks[:] = kept
            for task in kept:
                open_subtasks = [st for st in task.subtasks if not st.is_done]
                deleted += len(task.subtasks) - len(open_subtasks)
                task.subtasks[:] = open_subtasks
        if deleted:
            self._commit()
            logger.info("Deleted %d completed item(s)", deleted)
        return deleted

    # ------------------------------------------------------------------
    # Scheduling helpers
    # ------------------------------------------------------------------

    def reschedule_task(self, task_id: str, new_date: date | str | None) -> Task | None:
        """Move the scheduled date, dropping any time slot.

        Moving to a date counts as a snooze; clearing the date does not.
        """
        task = self.index.task(task_id)
        if task is None:
            return None
        new_date = parse_date(new_date)
        task.scheduled_date = new_date
        task.scheduled_time = None
        if new_date is not None:
            task.snooze_count += 1
        task.updated_at = now()
        self._commit()
        return task

    def set_scheduled_time(
        self,
        task_id: str,
        at: time | str,
        day: date | str | None = None,
        today: date | None = None,
    ) -> Task | None:
        task = self.index.task(task_id)
        if task is None:
            return None
        at = parse_time(at)
        if at is None:
            return None
        day = parse_date(day) or task.scheduled_date or task.due_date or today or date.today()
        task.scheduled_date = day
        task.scheduled_time = at
        task.updated_at = now()
        self._commit()
        return task

    def clear_scheduled_time(self, task_id: str) -> Task | None:
        task = self.index.task(task_id)
        if task is None:
            return None
        task.scheduled_time = None
        task.updated_at = now()
        self._commit()
        return task

    def schedule_today(self, task_ids: Iterable[str], today: date | None = None) -> list[Task]:
        today = today or date.today()
        tasks = [t for t in (self.index.task(i) for i in task_ids) if t is not None]
        if not tasks:
            return []
        for task in tasks:
            task.scheduled_date = today
            task.updated_at = now()
        self._commit()
        return tasks

    def set_waiting(self, task_id: str, reason: str | None = None) -> Task | None:
        if self.index.task(task_id) is None:
            return None
        return self.update_task(task_id, status=TaskStatus.WAITING, waiting_reason=reason or None)

    def clear_waiting(self, task_id: str) -> Task | None:
        if self.index.task(task_id) is None:
            return None
        return self.update_task(task_id, status=TaskStatus.READY, waiting_reason=None)

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def add_dependency(self, task_id: str, blocker_id: str) -> bool:
        if not graph.add_dependency(self.index, task_id, blocker_id):
            return False
        self._commit()
        return True

    def remove_dependency(self, task_id: str, blocker_id: str) -> bool:
        graph.remove_dependency(self.index, task_id, blocker_id)
        self._commit()
        return True

    def is_blocked(self, task_id: str) -> bool:
        task = self.index.task(task_id)
        return task is not None and graph.is_blocked(self.index, task)

    def blocking_tasks(self, task_id: str, active_only: bool = False) -> list[Task]:
        task = self.index.task(task_id)
        return graph.blocking_tasks(self.index, task, active_only) if task else []

    def blocked_tasks(self, task_id: str) -> list[Task]:
        task = self.index.task(task_id)
        return graph.blocked_tasks(self.index, task) if task else []

    def _project_tasks(self, project_id: str | None, include_completed: bool) -> list[Task]:
        tasks = self.index.tasks()
        if project_id is not None:
            tasks = [t for t in tasks if t.project_id == project_id]
        if not include_completed:
            tasks = [t for t in tasks if t.is_active]
        return tasks

    def suggest_order(self, project_id: str | None = None, include_completed: bool = False) -> list[Task]:
        return graph.suggest_order(self.index, self._project_tasks(project_id, include_completed))

    def dependency_summary(self, project_id: str | None = None) -> graph.DependencySummary:
        return graph.dependency_summary(self.index, self._project_tasks(project_id, True))

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def find_project(self, name_or_id: str) -> Project | None:
        """Look a project up by id or case-insensitive name.

        The Inbox always resolves, and is created on the way if missing.
        """
        project = self.workspace.get_project(name_or_id)
        if project is not None:
            return project
        q = name_or_id.strip().lower()
        if q in (INBOX_ID, "inbox"):
            return self.workspace.ensure_inbox()
        return next((p for p in self.workspace.projects if p.name.lower() == q), None)

    def create_project(
        self,
        name: str,
        *,
        description: str = "",
        color: str = DEFAULT_COLOR,
        category_id: str | None = None,
        status: ProjectStatus | str = ProjectStatus.ACTIVE,
    ) -> Project | None:
        name = (name or "").strip()
        if not name:
            return None
        if category_id is not None and self.workspace.get_category(category_id) is None:
            return None
        project = Project(
            id=generate_id(),
            name=name,
            description=description,
            color=color or DEFAULT_COLOR,
            category_id=category_id,
            status=ProjectStatus(status),
        )
        self.workspace.projects.append(project)
        self._commit()
        logger.info("Created project %s (%s)", project.name, project.id)
        return project

    def update_project(self, project_id: str, **fields: Any) -> Project | None:
        unknown = set(fields) - PROJECT_FIELDS
        if unknown:
            raise TypeError(f"Unknown field(s): {', '.join(sorted(unknown))}")
        project = self.workspace.get_project(project_id)
        if project is None:
            return None
        if "name" in fields:
            fields["name"] = (fields["name"] or "").strip()
            if not fields["name"]:
                return None
        if "status" in fields:
            fields["status"] = ProjectStatus(fields["status"])
        if fields.get("category_id") is not None and self.workspace.get_category(fields["category_id"]) is None:
            return None
        for key, value in fields.items():
            setattr(project, key, value)
        self._commit()
        return project

    def delete_project(self, project_id: str) -> bool:
        """Delete a project and its tasks. The Inbox cannot be deleted."""
        project = self.workspace.get_project(project_id)
        if project is None or project.is_inbox:
            return False
        self.workspace.projects.remove(project)
        if project_id in self.workspace.favorites:
            self.workspace.favorites.remove(project_id)
        self._commit()
        logger.info("Deleted project %s with %d task(s)", project.name, len(project.tasks))
        return True

    def toggle_favorite(self, project_id: str) -> bool | None:
        """Flip the favourite flag. Returns the new state, or None if unknown."""
        if self.workspace.get_project(project_id) is None:
            return None
        favorites = self.workspace.favorites
        if project_id in favorites:
            favorites.remove(project_id)
            state = False
        else:
            favorites.append(project_id)
            state = True
        self._commit()
        return state

    def project_summaries(self) -> list[ProjectSummary]:
        return [
            ProjectSummary(project=p, total=len(p.tasks), active=sum(1 for t in p.tasks if t.is_active))
            for p in self.workspace.projects
        ]

    # ------------------------------------------------------------------
    # Tags and categories
    # ------------------------------------------------------------------

    def find_tag(self, name_or_id: str) -> Tag | None:
        tag = self.workspace.get_tag(name_or_id)
        if tag is not None:
            return tag
        q = name_or_id.strip().lower()
        return next((t for t in self.workspace.tags if t.name.lower() == q), None)

    def _resolve_tags(self, values: Iterable[str]) -> list[str]:
        """Map tag ids or names to ids, creating tags for new names."""
        ids: list[str] = []
        for value in values:
            value = value.strip()
            if not value:
                continue
            tag = self.find_tag(value)
            if tag is None:
                tag = Tag(id=generate_id(), name=value)
                self.workspace.tags.append(tag)
            if tag.id not in ids:
                ids.append(tag.id)
        return ids

    def create_tag(self, name: str, color: str = DEFAULT_COLOR) -> Tag | None:
        name = (name or "").strip()
        if not name:
            return None
        tag = Tag(id=generate_id(), name=name, color=color or DEFAULT_COLOR)
        self.workspace.tags.append(tag)
        self._commit()
        return tag

    def ensure_tag(self, name: str) -> Tag | None:
        """Existing tag with this name (any case), else a new one."""
        return self.find_tag(name) or self.create_tag(name)

    def update_tag(self, tag_id: str, name: str | None = None, color: str | None = None) -> Tag | None:
        tag = self.workspace.get_tag(tag_id)
        if tag is None:
            return None
        if name is not None:
            if not name.strip():
                return None
            tag.name = name.strip()
        if color is not None:
            tag.color = color
        self._commit()
        return tag

    def delete_tag(self, tag_id: str) -> bool:
        """Delete a tag and strip it from every task."""
        tag = self.workspace.get_tag(tag_id)
        if tag is None:
            return False
        self.workspace.tags.remove(tag)
        for task in self.index.tasks():
            if tag_id in task.tags:
                task.tags.remove(tag_id)
        self._commit()
        return True

    def create_category(self, name: str, color: str = DEFAULT_COLOR) -> Category | None:
        name = (name or "").strip()
        if not name:
            return None
        order = max((c.order for c in self.workspace.categories), default=0) + 1
        category = Category(id=generate_id(), name=name, color=color or DEFAULT_COLOR, order=order)
        self.workspace.categories.append(category)
        self._commit()
        return category

    def update_category(
        self,
        category_id: str,
        name: str | None = None,
        color: str | None = None,
        order: int | None = None,
    ) -> Category | None:
        category = self.workspace.get_category(category_id)
        if category is None:
            return None
        if name is not None:
            if not name.strip():
                return None
            category.name = name.strip()
        if color is not None:
            category.color = color
        if order is not None:
            category.order = order
        self._commit()
        return category

    def toggle_category_collapsed(self, category_id: str) -> bool | None:
        category = self.workspace.get_category(category_id)
        if category is None:
            return None
        category.collapsed = not category.collapsed
        self._commit()
        return category.collapsed

    def delete_category(self, category_id: str) -> bool:
        """Delete a category; its projects become uncategorised."""
        category = self.workspace.get_category(category_id)
        if category is None:
            return False
        self.workspace.categories.remove(category)
        for project in self.workspace.projects:
            if project.category_id == category_id:
                project.category_id = None
        self._commit()
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def derive_view(
        self,
        view: str,
        query: ViewQuery | None = None,
        today: date | None = None,
    ) -> list[Task] | list[TaskGroup]:
        return derive_view(self.workspace, self.index, view, query, today)

    def build_focus_queue(
        self,
        mode: FocusMode | str = FocusMode.TODAY_RELEVANT,
        n: int | None = None,
        today: date | None = None,
    ) -> list[Task]:
        mode = FocusMode(mode)
        if n is None and mode == FocusMode.TOP_SCORED:
            n = self.workspace.settings.focus_queue_size
        return build_focus_queue(self.index.tasks(), today or date.today(), mode, n)

    def day_timeline(self, day: date | None = None) -> tuple[list[TimeBlock], int]:
        return day_timeline(self.index.tasks(), day or date.today())

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def roll_forward(self, today: date | None = None) -> int:
        """Advance stale dates to *today*. Returns how many tasks moved."""
        today = today or date.today()
        result: RollResult = roll_forward(self.index.tasks(), today)
        stamp = now()
        for task in result.rolled:
            task.updated_at = stamp
        settings = self.workspace.settings
        if result.count or settings.last_rolled_on != today:
            settings.last_rolled_on = today
            self._commit()
        if result.count:
            logger.info("Rolled %d task(s) forward to %s", result.count, today)
        return result.count

    def ensure_rolled(self, today: date | None = None) -> int:
        """Run :meth:`roll_forward` unless it already ran for *today*."""
        today = today or date.today()
        if self.workspace.settings.last_rolled_on == today:
            return 0
        return self.roll_forward(today)
