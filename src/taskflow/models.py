"""Task, project and workspace models."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time

INBOX_ID = "inbox"
DEFAULT_COLOR = "#6366f1"


class TaskStatus(enum.StrEnum):
    TODO = "todo"
    READY = "ready"
    IN_PROGRESS = "in-progress"
    WAITING = "waiting"
    REVIEW = "review"
    DONE = "done"


class Priority(enum.StrEnum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class ProjectStatus(enum.StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    BLOCKED = "blocked"


PRIORITY_RANK = {
    Priority.URGENT: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
    Priority.NONE: 4,
}

STATUS_RANK = {
    TaskStatus.IN_PROGRESS: 0,
    TaskStatus.TODO: 1,
    TaskStatus.READY: 2,
    TaskStatus.WAITING: 3,
    TaskStatus.REVIEW: 4,
    TaskStatus.DONE: 5,
}


class TaskflowError(Exception):
    """Base error for taskflow."""


class PersistenceError(TaskflowError):
    """Raised when the workspace cannot be written."""


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


def now() -> datetime:
    return datetime.now()


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _time(value: str | None) -> time | None:
    return time.fromisoformat(value) if value else None


def _datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _iso(value: date | time | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _hhmm(value: time | None) -> str | None:
    return value.strftime("%H:%M") if value is not None else None


@dataclass
class WorkItem:
    """Fields shared by tasks and subtasks."""

    id: str
    name: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.NONE
    due_date: date | None = None
    scheduled_date: date | None = None
    scheduled_time: time | None = None  # only meaningful with scheduled_date
    estimated_minutes: int | None = None
    created_at: datetime = field(default_factory=now)
    updated_at: datetime = field(default_factory=now)
    completed_at: datetime | None = None
    snooze_count: int = 0

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    @property
    def is_active(self) -> bool:
        return self.status != TaskStatus.DONE

    def is_overdue(self, today: date) -> bool:
        return self.due_date is not None and self.due_date < today

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "due_date": _iso(self.due_date),
            "scheduled_date": _iso(self.scheduled_date),
            "scheduled_time": _hhmm(self.scheduled_time),
            "estimated_minutes": self.estimated_minutes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "completed_at": _iso(self.completed_at),
            "snooze_count": self.snooze_count,
        }

    @staticmethod
    def _base_kwargs(d: dict) -> dict:
        created = _datetime(d.get("created_at")) or now()
        return {
            "id": d["id"],
            "name": d["name"],
            "description": d.get("description") or "",
            "status": TaskStatus(d.get("status", "todo")),
            "priority": Priority(d.get("priority") or "none"),
            "due_date": _date(d.get("due_date")),
            "scheduled_date": _date(d.get("scheduled_date")),
            "scheduled_time": _time(d.get("scheduled_time")),
            "estimated_minutes": d.get("estimated_minutes"),
            "created_at": created,
            "updated_at": _datetime(d.get("updated_at")) or created,
            "completed_at": _datetime(d.get("completed_at")),
            "snooze_count": d.get("snooze_count", 0),
        }


@dataclass
class Subtask(WorkItem):
    """A work item owned by exactly one parent task. Carries no dependencies."""

    def to_dict(self) -> dict:
        return self._base_dict()

    @classmethod
    def from_dict(cls, d: dict) -> Subtask:
        return cls(**cls._base_kwargs(d))


@dataclass
class Task(WorkItem):
    """A task filed into a project."""

    project_id: str = INBOX_ID
    tags: list[str] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    blocked_by: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)
    waiting_reason: str | None = None

    def to_dict(self) -> dict:
        d = self._base_dict()
        d.update(
            {
                "tags": list(self.tags),
                "subtasks": [st.to_dict() for st in self.subtasks],
                "blocked_by": list(self.blocked_by),
                "blocks": list(self.blocks),
            }
        )
        if self.waiting_reason is not None:
            d["waiting_reason"] = self.waiting_reason
        return d

    @classmethod
    def from_dict(cls, d: dict, project_id: str = INBOX_ID) -> Task:
        return cls(
            **cls._base_kwargs(d),
            project_id=project_id,
            tags=list(d.get("tags", [])),
            subtasks=[Subtask.from_dict(st) for st in d.get("subtasks", [])],
            blocked_by=list(d.get("blocked_by", [])),
            blocks=list(d.get("blocks", [])),
            waiting_reason=d.get("waiting_reason"),
        )


@dataclass
class Project:
    id: str
    name: str
    description: str = ""
    color: str = DEFAULT_COLOR
    category_id: str | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    is_inbox: bool = False
    tasks: list[Task] = field(default_factory=list)
    created_at: datetime = field(default_factory=now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "category_id": self.category_id,
            "status": self.status.value,
            "is_inbox": self.is_inbox,
            "created_at": _iso(self.created_at),
            "tasks": [t.to_dict() for t in self.tasks],
        }

    @classmethod
    def from_dict(cls, d: dict) -> Project:
        pid = d["id"]
        return cls(
            id=pid,
            name=d["name"],
            description=d.get("description") or "",
            color=d.get("color") or DEFAULT_COLOR,
            category_id=d.get("category_id"),
            status=ProjectStatus(d.get("status", "active")),
            is_inbox=d.get("is_inbox", False) or pid == INBOX_ID,
            tasks=[Task.from_dict(t, project_id=pid) for t in d.get("tasks", [])],
            created_at=_datetime(d.get("created_at")) or now(),
        )

    @classmethod
    def inbox(cls) -> Project:
        return cls(id=INBOX_ID, name="Inbox", is_inbox=True)


@dataclass
class Tag:
    id: str
    name: str
    color: str = DEFAULT_COLOR

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color}

    @classmethod
    def from_dict(cls, d: dict) -> Tag:
        return cls(id=d["id"], name=d["name"], color=d.get("color") or DEFAULT_COLOR)


@dataclass
class Category:
    """Groups projects. ``collapsed`` is display state carried for the UI."""

    id: str
    name: str
    color: str = DEFAULT_COLOR
    order: int = 0
    collapsed: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "order": self.order,
            "collapsed": self.collapsed,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Category:
        return cls(
            id=d["id"],
            name=d["name"],
            color=d.get("color") or DEFAULT_COLOR,
            order=d.get("order", 0),
            collapsed=d.get("collapsed", False),
        )


@dataclass
class Settings:
    """Workspace-level settings stored alongside projects."""

    focus_queue_size: int = 5
    hide_completed: bool = True
    default_sort: str = "created"
    last_rolled_on: date | None = None

    def to_dict(self) -> dict:
        return {
            "focus_queue_size": self.focus_queue_size,
            "hide_completed": self.hide_completed,
            "default_sort": self.default_sort,
            "last_rolled_on": _iso(self.last_rolled_on),
        }

    @classmethod
    def from_dict(cls, d: dict) -> Settings:
        return cls(
            focus_queue_size=d.get("focus_queue_size", 5),
            hide_completed=d.get("hide_completed", True),
            default_sort=d.get("default_sort", "created"),
            last_rolled_on=_date(d.get("last_rolled_on")),
        )


@dataclass
class Workspace:
    """The whole object graph: projects own tasks, tasks own subtasks."""

    projects: list[Project] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    favorites: list[str] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)

    def get_project(self, project_id: str | None) -> Project | None:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def get_inbox(self) -> Project | None:
        for project in self.projects:
            if project.is_inbox:
                return project
        return None

    def ensure_inbox(self) -> Project:
        inbox = self.get_inbox()
        if inbox is None:
            inbox = Project.inbox()
            self.projects.insert(0, inbox)
        return inbox

    def get_tag(self, tag_id: str) -> Tag | None:
        return next((t for t in self.tags if t.id == tag_id), None)

    def get_category(self, category_id: str) -> Category | None:
        return next((c for c in self.categories if c.id == category_id), None)

    def to_dict(self) -> dict:
        return {
            "projects": [p.to_dict() for p in self.projects],
            "tags": [t.to_dict() for t in self.tags],
            "categories": [c.to_dict() for c in self.categories],
            "favorites": list(self.favorites),
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> Workspace:
        return cls(
            projects=[Project.from_dict(p) for p in d.get("projects", [])],
            tags=[Tag.from_dict(t) for t in d.get("tags", [])],
            categories=[Category.from_dict(c) for c in d.get("categories", [])],
            favorites=list(d.get("favorites", [])),
            settings=Settings.from_dict(d.get("settings", {})),
        )
