"""Id lookup cache over a workspace."""

from __future__ import annotations

from taskflow.models import Project, Subtask, Task, Workspace


class TaskIndex:
    """Maps task and subtask ids to the live records inside a workspace.

    The index is a cache, never a source of truth. Call :meth:`rebuild`
    after any structural change (create, delete, move) before reading.
    """

    def __init__(self, workspace: Workspace | None = None):
        self._items: dict[str, Task | Subtask] = {}
        self._projects: dict[str, Project] = {}
        self._parents: dict[str, Task] = {}
        self._tasks: list[Task] = []
        if workspace is not None:
            self.rebuild(workspace)

    def rebuild(self, workspace: Workspace) -> None:
        """Full traversal: projects -> tasks -> subtasks."""
        self._items.clear()
        self._projects.clear()
        self._parents.clear()
        self._tasks = []
        for project in workspace.projects:
            for task in project.tasks:
                self._items[task.id] = task
                self._projects[task.id] = project
                self._tasks.append(task)
                for subtask in task.subtasks:
                    self._items[subtask.id] = subtask
                    self._parents[subtask.id] = task

    def lookup(self, item_id: str | None) -> Task | Subtask | None:
        if item_id is None:
            return None
        return self._items.get(item_id)

    def task(self, task_id: str | None) -> Task | None:
        """Like :meth:`lookup` but only resolves top-level tasks."""
        item = self.lookup(task_id)
        return item if isinstance(item, Task) else None

    def project_of(self, task_id: str) -> Project | None:
        return self._projects.get(task_id)

    def parent_of(self, subtask_id: str) -> Task | None:
        return self._parents.get(subtask_id)

    def tasks(self) -> list[Task]:
        """Top-level tasks in traversal order."""
        return list(self._tasks)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)
