"""Focus queue ranking, daily roll-forward and the day timeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable

from taskflow.models import PRIORITY_RANK, Priority, Task, TaskStatus
from taskflow.views import DEFAULT_ESTIMATE_MINUTES

DEFAULT_FOCUS_SIZE = 5

# Additive weights for the top-N focus score.
SCHEDULED_TODAY_SCORE = 200
OVERDUE_SCORE = 100
DUE_TODAY_SCORE = 50
PRIORITY_SCORE = {Priority.URGENT: 40, Priority.HIGH: 30, Priority.MEDIUM: 10}
STATUS_SCORE = {TaskStatus.IN_PROGRESS: 20, TaskStatus.READY: 5}


class FocusMode(enum.StrEnum):
    TODAY_RELEVANT = "today-relevant"
    TOP_SCORED = "top-scored"


# ---------------------------------------------------------------------------
# Focus queue: today-relevant ordering
# ---------------------------------------------------------------------------


def is_today_relevant(task: Task, today: date) -> bool:
    return task.is_active and (
        task.scheduled_date == today or task.due_date == today or task.is_overdue(today)
    )


def _timed_today(task: Task, today: date) -> bool:
    return task.scheduled_date == today and task.scheduled_time is not None


def today_relevant_queue(tasks: Iterable[Task], today: date) -> list[Task]:
    """Active tasks scheduled today, due today or overdue, in working order.

    Order: tasks with a time slot today (by time), then overdue tasks, then
    by priority, then oldest first. Deterministic for a fixed snapshot.
    """

    def key(t: Task) -> tuple:
        timed = _timed_today(t, today)
        return (
            0 if timed else 1,
            t.scheduled_time if timed else time.min,
            0 if t.is_overdue(today) else 1,
            PRIORITY_RANK[t.priority],
            t.created_at,
        )

    return sorted((t for t in tasks if is_today_relevant(t, today)), key=key)


# ---------------------------------------------------------------------------
# Focus queue: top-N scored ranking
# ---------------------------------------------------------------------------


def focus_score(task: Task, today: date) -> float:
    """Heuristic urgency score. Higher means "do this sooner"."""
    score = 0.0
    if _timed_today(task, today):
        score += SCHEDULED_TODAY_SCORE
        minutes = task.scheduled_time.hour * 60 + task.scheduled_time.minute
        score += (24 * 60 - minutes) / 10
    if task.is_overdue(today):
        score += OVERDUE_SCORE
    if task.due_date == today and task.scheduled_time is None:
        score += DUE_TODAY_SCORE
    score += PRIORITY_SCORE.get(task.priority, 0)
    score += STATUS_SCORE.get(task.status, 0)
    return score


def top_scored_queue(
    tasks: Iterable[Task],
    today: date,
    n: int = DEFAULT_FOCUS_SIZE,
) -> list[Task]:
    """The *n* highest scoring active tasks.

    This is a heuristic, not a hard ordering: equal scores keep their input
    order, and the result need not agree with :func:`today_relevant_queue`.
    """
    active = [t for t in tasks if t.is_active]
    ranked = sorted(active, key=lambda t: focus_score(t, today), reverse=True)
    return ranked[: max(n, 0)]


def build_focus_queue(
    tasks: Iterable[Task],
    today: date,
    mode: FocusMode = FocusMode.TODAY_RELEVANT,
    n: int | None = None,
) -> list[Task]:
    if mode == FocusMode.TOP_SCORED:
        return top_scored_queue(tasks, today, DEFAULT_FOCUS_SIZE if n is None else n)
    queue = today_relevant_queue(tasks, today)
    return queue if n is None else queue[:n]


# ---------------------------------------------------------------------------
# Roll-forward
# ---------------------------------------------------------------------------


@dataclass
class RollResult:
    rolled: list[Task] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.rolled)


def roll_forward(tasks: Iterable[Task], today: date) -> RollResult:
    """Move stale scheduled and due dates of open tasks up to *today*.

    A stale scheduled date drops its time slot and counts as a snooze; a
    stale due date just moves. Each task is counted once. Running it again
    for the same day finds nothing to do.
    """
    result = RollResult()
    for task in tasks:
        if not task.is_active:
            continue
        old_scheduled = task.scheduled_date is not None and task.scheduled_date < today
        old_due = task.is_overdue(today)
        if old_scheduled:
            task.scheduled_date = today
            task.scheduled_time = None
            task.snooze_count += 1
        if old_due:
            task.due_date = today
        if old_scheduled or old_due:
            result.rolled.append(task)
    return result


# ---------------------------------------------------------------------------
# Day timeline
# ---------------------------------------------------------------------------


@dataclass
class TimeBlock:
    """A task placed on the day's timeline."""

    task: Task
    start: time
    end: time
    minutes: int


def day_timeline(tasks: Iterable[Task], day: date) -> tuple[list[TimeBlock], int]:
    """Time-slotted open tasks for *day* and the total minutes booked."""
    blocks: list[TimeBlock] = []
    for task in tasks:
        if not task.is_active or task.scheduled_date != day or task.scheduled_time is None:
            continue
        minutes = task.estimated_minutes or DEFAULT_ESTIMATE_MINUTES
        start = datetime.combine(day, task.scheduled_time)
        end = (start + timedelta(minutes=minutes)).time()
        blocks.append(TimeBlock(task=task, start=task.scheduled_time, end=end, minutes=minutes))
    blocks.sort(key=lambda b: b.start)
    return blocks, sum(b.minutes for b in blocks)
