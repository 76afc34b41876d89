from datetime import date, datetime, time

from taskflow.models import Priority, Task, TaskStatus
from taskflow.scheduler import (
    FocusMode,
    build_focus_queue,
    day_timeline,
    focus_score,
    roll_forward,
    today_relevant_queue,
    top_scored_queue,
)

TODAY = date(2024, 1, 5)


def _task(tid, day=1, **kw):
    return Task(id=tid, name=tid.upper(), created_at=datetime(2024, 1, day, 8), **kw)


def test_today_relevant_overdue_then_priority():
    a = _task("a", due_date=TODAY)
    b = _task("b", due_date=TODAY, priority=Priority.URGENT)
    c = _task("c", due_date=date(2024, 1, 3))
    queue = today_relevant_queue([a, b, c], TODAY)
    assert [t.id for t in queue] == ["c", "b", "a"]


def test_today_relevant_timed_tasks_come_first_by_time():
    late = _task("late", scheduled_date=TODAY, scheduled_time=time(15, 0))
    early = _task("early", scheduled_date=TODAY, scheduled_time=time(8, 30))
    overdue = _task("overdue", due_date=date(2024, 1, 1), priority=Priority.URGENT)
    queue = today_relevant_queue([overdue, late, early], TODAY)
    assert [t.id for t in queue] == ["early", "late", "overdue"]


def test_today_relevant_excludes_done_and_future():
    keep = _task("keep", scheduled_date=TODAY)
    done = _task("done", due_date=TODAY, status=TaskStatus.DONE)
    future = _task("future", due_date=date(2024, 1, 9))
    undated = _task("undated")
    assert [t.id for t in today_relevant_queue([keep, done, future, undated], TODAY)] == ["keep"]


def test_today_relevant_oldest_first_on_ties():
    newer = _task("newer", day=4, due_date=TODAY)
    older = _task("older", day=2, due_date=TODAY)
    assert [t.id for t in today_relevant_queue([newer, older], TODAY)] == ["older", "newer"]


def test_focus_score_components():
    timed = _task("timed", scheduled_date=TODAY, scheduled_time=time(9, 0))
    assert focus_score(timed, TODAY) == 200 + (1440 - 540) / 10

    overdue_urgent = _task("ou", due_date=date(2024, 1, 1), priority=Priority.URGENT)
    assert focus_score(overdue_urgent, TODAY) == 140

    due_today = _task("dt", due_date=TODAY, status=TaskStatus.READY, priority=Priority.MEDIUM)
    assert focus_score(due_today, TODAY) == 50 + 10 + 5

    assert focus_score(_task("ip", status=TaskStatus.IN_PROGRESS), TODAY) == 20


def test_top_scored_returns_best_n():
    timed = _task("timed", scheduled_date=TODAY, scheduled_time=time(9, 0))
    overdue = _task("overdue", due_date=date(2024, 1, 1))
    plain = _task("plain")
    done = _task("done", status=TaskStatus.DONE, due_date=date(2024, 1, 1))
    queue = top_scored_queue([plain, done, overdue, timed], TODAY, n=2)
    assert [t.id for t in queue] == ["timed", "overdue"]
    assert top_scored_queue([plain], TODAY, n=0) == []


def test_top_scored_ties_keep_input_order():
    tasks = [_task(f"t{i}") for i in range(3)]
    assert [t.id for t in top_scored_queue(tasks, TODAY)] == ["t0", "t1", "t2"]


def test_build_focus_queue_dispatches():
    tasks = [_task(f"t{i}", due_date=TODAY) for i in range(7)]
    assert len(build_focus_queue(tasks, TODAY, FocusMode.TOP_SCORED)) == 5
    assert len(build_focus_queue(tasks, TODAY, FocusMode.TODAY_RELEVANT)) == 7
    assert len(build_focus_queue(tasks, TODAY, FocusMode.TODAY_RELEVANT, n=3)) == 3


def test_roll_forward_stale_schedule():
    t = _task("a", scheduled_date=date(2024, 1, 1), scheduled_time=time(10, 0))
    result = roll_forward([t], TODAY)
    assert result.count == 1
    assert t.scheduled_date == TODAY
    assert t.scheduled_time is None
    assert t.snooze_count == 1


def test_roll_forward_stale_due_date_does_not_snooze():
    t = _task("a", due_date=date(2024, 1, 2))
    assert roll_forward([t], TODAY).count == 1
    assert t.due_date == TODAY
    assert t.snooze_count == 0


def test_roll_forward_counts_task_once_and_is_idempotent():
    t = _task("a", scheduled_date=date(2024, 1, 1), due_date=date(2024, 1, 2))
    done = _task("done", status=TaskStatus.DONE, due_date=date(2024, 1, 1))
    assert roll_forward([t, done], TODAY).count == 1
    assert done.due_date == date(2024, 1, 1)

    snapshot = t.to_dict()
    assert roll_forward([t, done], TODAY).count == 0
    assert t.to_dict() == snapshot


def test_day_timeline_orders_blocks_and_sums_minutes():
    ten = _task("ten", scheduled_date=TODAY, scheduled_time=time(10, 0), estimated_minutes=60)
    nine = _task("nine", scheduled_date=TODAY, scheduled_time=time(9, 0))
    untimed = _task("untimed", scheduled_date=TODAY)
    tomorrow = _task("tomorrow", scheduled_date=date(2024, 1, 6), scheduled_time=time(9, 0))
    blocks, total = day_timeline([ten, nine, untimed, tomorrow], TODAY)
    assert [b.task.id for b in blocks] == ["nine", "ten"]
    assert blocks[0].end == time(9, 30)
    assert blocks[1].end == time(11, 0)
    assert total == 90
