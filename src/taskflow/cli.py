"""Typer CLI for taskflow."""

from __future__ import annotations

import enum
import logging
from datetime import date
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from taskflow.models import Priority, ProjectStatus, Subtask, Task, TaskStatus
from taskflow.persistence import DB_ENV_VAR, Store
from taskflow.scheduler import FocusMode, focus_score
from taskflow.service import TaskService, parse_date, parse_time
from taskflow.views import GroupKey, SortKey, TaskGroup, ViewQuery, time_budget

app = typer.Typer(
    name="taskflow",
    help="Personal task manager: projects, dependencies and a daily focus queue.",
    no_args_is_help=True,
)
dep_app = typer.Typer(help="Manage blocked-by dependencies.", no_args_is_help=True)
project_app = typer.Typer(help="Manage projects.", no_args_is_help=True)
tag_app = typer.Typer(help="Manage tags.", no_args_is_help=True)
category_app = typer.Typer(help="Manage project categories.", no_args_is_help=True)
app.add_typer(dep_app, name="dep")
app.add_typer(project_app, name="project")
app.add_typer(tag_app, name="tag")
app.add_typer(category_app, name="category")

console = Console()

_db_path: Path | None = None


@app.callback()
def main(
    db: Annotated[Optional[Path], typer.Option("--db", envvar=DB_ENV_VAR, help="Path to the JSON data file")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output to stderr")] = False,
) -> None:
    """Personal task manager: projects, dependencies and a daily focus queue."""
    global _db_path
    _db_path = db
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _get_service() -> TaskService:
    return TaskService(Store(_db_path))


def _complete_task_id(incomplete: str) -> list[str]:
    """Shell completion for task IDs. Matches against both ID and name."""
    service = _get_service()
    q = incomplete.lower()
    return [
        f"{t.name} ({t.id})"
        for t in service.index.tasks()
        if q in t.id.lower() or q in t.name.lower()
    ]


def _parse_task_id(task_id_arg: str) -> str:
    """Extracts the ID if the user used the autocompleted 'Name (ID)' format."""
    if "(" in task_id_arg and task_id_arg.endswith(")"):
        return task_id_arg.split("(")[-1].strip(")")
    return task_id_arg.strip()


def _require_item(service: TaskService, task_id: str) -> Task | Subtask:
    item = service.get_task(task_id)
    if item is None:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)
    return item


def _require_project(service: TaskService, name_or_id: str):
    project = service.find_project(name_or_id)
    if project is None:
        console.print(f"[red]Project '{name_or_id}' not found.[/red]")
        raise typer.Exit(1)
    return project


def _parse_enum(enum_cls: type[enum.StrEnum], value: str | None, label: str):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        valid = ", ".join(m.value for m in enum_cls)
        console.print(f"[red]Invalid {label} '{value}'. Valid values: {valid}[/red]")
        raise typer.Exit(1)


def _parse_date_opt(value: str | None, label: str) -> date | None:
    try:
        return parse_date(value)
    except ValueError:
        console.print(f"[red]Invalid {label} '{value}'. Use YYYY-MM-DD.[/red]")
        raise typer.Exit(1)


def _check_time(value: str | None) -> str | None:
    try:
        parse_time(value)
    except ValueError:
        console.print(f"[red]Invalid time '{value}'. Use HH:MM.[/red]")
        raise typer.Exit(1)
    return value


def _warn_unsaved(service: TaskService) -> None:
    if not service.last_save_ok:
        console.print(f"[yellow]Warning: changes were not saved ({service.save_errors[-1]}).[/yellow]")


def _fmt_minutes(minutes: int) -> str:
    h, m = divmod(minutes, 60)
    return f"{h}h {m:02d}m" if h else f"{m}m"


def _task_table(service: TaskService, tasks: list[Task], title: str | None, today: date) -> Table:
    table = Table(title=title)
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Project")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Due")
    table.add_column("Scheduled")
    table.add_column("Est.")
    table.add_column("Flags")

    for t in tasks:
        flags = []
        style = None
        if service.is_blocked(t.id):
            flags.append("BLOCKED")
            style = "dim"
        if t.is_active and t.is_overdue(today):
            flags.append("OVERDUE")
            style = "bold red"
        if t.subtasks:
            done_count = sum(1 for st in t.subtasks if st.is_done)
            flags.append(f"{done_count}/{len(t.subtasks)} sub")

        scheduled = "-"
        if t.scheduled_date:
            scheduled = t.scheduled_date.isoformat()
            if t.scheduled_time:
                scheduled += f" {t.scheduled_time.strftime('%H:%M')}"

        project = service.index.project_of(t.id)
        table.add_row(
            t.id,
            t.name,
            project.name if project else "-",
            t.status.value,
            t.priority.value,
            t.due_date.isoformat() if t.due_date else "-",
            scheduled,
            _fmt_minutes(t.estimated_minutes) if t.estimated_minutes else "-",
            " | ".join(flags) or "-",
            style=style,
        )
    return table


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@app.command()
def add(
    name: str,
    project: Annotated[Optional[str], typer.Option("--project", "-p", help="Project name or ID (default: Inbox)")] = None,
    description: Annotated[Optional[str], typer.Option("--desc", help="Free-form description")] = None,
    priority: Annotated[str, typer.Option("--priority", "-P", help="urgent, high, medium, low, none")] = "none",
    status: Annotated[str, typer.Option("--status", "-s", help="Initial status")] = "todo",
    due: Annotated[Optional[str], typer.Option(help="Due date (YYYY-MM-DD)")] = None,
    scheduled: Annotated[Optional[str], typer.Option(help="Scheduled date (YYYY-MM-DD)")] = None,
    at: Annotated[Optional[str], typer.Option("--at", help="Scheduled time (HH:MM)")] = None,
    estimate: Annotated[Optional[int], typer.Option("--estimate", "-e", help="Estimated minutes")] = None,
    tags: Annotated[Optional[list[str]], typer.Option("--tag", "-t", help="Tag name (created if new)")] = None,
    blocked_by: Annotated[Optional[list[str]], typer.Option("--blocked-by", "-b", help="IDs of blocking tasks")] = None,
) -> None:
    """Add a new task.

    Blockers can be given individually (-b a1 -b b2) or comma-separated
    (-b a1,b2).
    """
    service = _get_service()
    project_id = _require_project(service, project).id if project else None
    prio = _parse_enum(Priority, priority, "priority")
    stat = _parse_enum(TaskStatus, status, "status")
    due_date = _parse_date_opt(due, "due date")
    sched_date = _parse_date_opt(scheduled, "scheduled date")
    _check_time(at)

    blockers: list[str] = []
    for b in blocked_by or []:
        blockers.extend(part.strip() for part in b.split(",") if part.strip())
    for blocker in blockers:
        if service.index.task(blocker) is None:
            console.print(f"[red]Blocking task {blocker} not found.[/red]")
            raise typer.Exit(1)

    task = service.create_task(
        name,
        project_id,
        description=description or "",
        status=stat,
        priority=prio,
        due_date=due_date,
        scheduled_date=sched_date,
        scheduled_time=at,
        estimated_minutes=estimate,
        tags=tags,
    )
    if task is None:
        console.print("[red]Could not add task: name must not be empty and the estimate must be positive.[/red]")
        raise typer.Exit(1)

    for blocker in blockers:
        service.add_dependency(task.id, blocker)
    console.print(f"[green]Added '{task.name}' as {task.id}[/green]")
    _warn_unsaved(service)


@app.command("list")
def list_tasks(
    view: Annotated[str, typer.Option("--view", "-V", help="inbox, today, upcoming, overdue, completed, waiting, ready, master-list, project-<id>, tag-<id>")] = "master-list",
    search: Annotated[Optional[str], typer.Option("--search", "-q", help="Case-insensitive text in name or description")] = None,
    status: Annotated[Optional[str], typer.Option("--status", "-s", help="Filter by status")] = None,
    priority: Annotated[Optional[str], typer.Option("--priority", "-P", help="Filter by priority")] = None,
    project: Annotated[Optional[str], typer.Option("--project", "-p", help="Filter by project name or ID")] = None,
    sort: Annotated[Optional[str], typer.Option(help="due-date, priority, name, created")] = None,
    group: Annotated[str, typer.Option("--group", "-g", help="none, project, priority, status, due-date")] = "none",
    show_all: Annotated[bool, typer.Option("--all", "-a", help="Include completed tasks in the master list")] = False,
) -> None:
    """List the tasks of a view."""
    service = _get_service()
    today = date.today()
    hide_completed = (
        view == "master-list"
        and service.workspace.settings.hide_completed
        and not show_all
        and status is None
    )
    query = ViewQuery(
        text=search,
        status=_parse_enum(TaskStatus, status, "status"),
        priority=_parse_enum(Priority, priority, "priority"),
        project_id=_require_project(service, project).id if project else None,
        hide_completed=hide_completed,
        sort=_parse_enum(SortKey, sort, "sort key"),
        group=_parse_enum(GroupKey, group, "group key"),
    )
    result = service.derive_view(view, query, today)
    if not result:
        console.print("No tasks found.")
        return

    if isinstance(result[0], TaskGroup):
        for g in result:
            console.print(_task_table(service, g.tasks, f"{g.label} ({len(g.tasks)})", today))
        total = sum(len(g.tasks) for g in result)
    else:
        console.print(_task_table(service, result, view.replace("-", " ").title(), today))
        total = len(result)
    console.print(f"[dim]{total} task(s)[/dim]")


@app.command()
def show(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Show all details for a single task."""
    task_id = _parse_task_id(task_id)
    service = _get_service()
    t = _require_item(service, task_id)

    console.print(f"\n[bold]{t.id}[/bold]  {t.name}")
    console.print(f"  Status:     {t.status.value}")
    console.print(f"  Priority:   {t.priority.value}")
    if isinstance(t, Subtask):
        parent = service.index.parent_of(t.id)
        console.print(f"  Parent:     {parent.name} ({parent.id})")
    else:
        project = service.index.project_of(t.id)
        console.print(f"  Project:    {project.name}")
    if t.due_date:
        console.print(f"  Due:        {t.due_date.isoformat()}")
    if t.scheduled_date:
        at = f" {t.scheduled_time.strftime('%H:%M')}" if t.scheduled_time else ""
        console.print(f"  Scheduled:  {t.scheduled_date.isoformat()}{at}")
    if t.estimated_minutes:
        console.print(f"  Estimate:   {_fmt_minutes(t.estimated_minutes)}")
    if t.snooze_count:
        console.print(f"  Snoozed:    {t.snooze_count}x")
    if t.completed_at:
        console.print(f"  Completed:  {t.completed_at.strftime('%Y-%m-%d %H:%M')}")

    if isinstance(t, Task):
        if t.tags:
            names = [tag.name for tag in (service.workspace.get_tag(i) for i in t.tags) if tag]
            console.print(f"  Tags:       {', '.join(names)}")
        if t.waiting_reason:
            console.print(f"  Waiting on: {t.waiting_reason}")
        blockers = service.blocking_tasks(t.id)
        console.print(f"  Blocked by: {', '.join(b.id for b in blockers) or 'none'}")
        blocked = service.blocked_tasks(t.id)
        console.print(f"  Blocks:     {', '.join(b.id for b in blocked) or 'none'}")
        if service.is_blocked(t.id):
            console.print("  [bold yellow]Blocked by unfinished work[/bold yellow]")
        if t.subtasks:
            console.print("\n  [dim]-- Subtasks --[/dim]")
            for st in t.subtasks:
                mark = "x" if st.is_done else " "
                console.print(f"  \\[{mark}] {st.id}  {st.name}")

    if t.description:
        console.print("\n  [dim]-- Description --[/dim]")
        for line in t.description.splitlines():
            console.print(f"  {line}")
    console.print()


@app.command()
def update(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    name: Annotated[Optional[str], typer.Option(help="New task name")] = None,
    description: Annotated[Optional[str], typer.Option("--desc", help="New description")] = None,
    status: Annotated[Optional[str], typer.Option("--status", "-s", help="New status")] = None,
    priority: Annotated[Optional[str], typer.Option("--priority", "-P", help="New priority")] = None,
    due: Annotated[Optional[str], typer.Option(help="New due date (YYYY-MM-DD)")] = None,
    scheduled: Annotated[Optional[str], typer.Option(help="New scheduled date (YYYY-MM-DD)")] = None,
    at: Annotated[Optional[str], typer.Option("--at", help="New scheduled time (HH:MM)")] = None,
    estimate: Annotated[Optional[int], typer.Option("--estimate", "-e", help="Estimated minutes")] = None,
    tags: Annotated[Optional[list[str]], typer.Option("--tag", "-t", help="Replace tags with these names")] = None,
    clear_due: Annotated[bool, typer.Option("--clear-due", help="Remove the due date")] = False,
    clear_scheduled: Annotated[bool, typer.Option("--clear-scheduled", help="Remove scheduled date and time")] = False,
) -> None:
    """Update fields of an existing task or subtask."""
    task_id = _parse_task_id(task_id)
    service = _get_service()
    item = _require_item(service, task_id)

    fields: dict = {}
    if name is not None:
        fields["name"] = name
    if description is not None:
        fields["description"] = description
    if status is not None:
        fields["status"] = _parse_enum(TaskStatus, status, "status")
    if priority is not None:
        fields["priority"] = _parse_enum(Priority, priority, "priority")
    if due is not None:
        fields["due_date"] = _parse_date_opt(due, "due date")
    if clear_due:
        fields["due_date"] = None
    if scheduled is not None:
        fields["scheduled_date"] = _parse_date_opt(scheduled, "scheduled date")
    if at is not None:
        fields["scheduled_time"] = _check_time(at)
    if clear_scheduled:
        fields["scheduled_date"] = None
        fields["scheduled_time"] = None
    if estimate is not None:
        fields["estimated_minutes"] = estimate
    if tags is not None:
        if isinstance(item, Subtask):
            console.print("[red]Subtasks cannot carry tags.[/red]")
            raise typer.Exit(1)
        fields["tags"] = tags

    if not fields:
        console.print("Nothing to update.")
        return
    if service.update_task(task_id, **fields) is None:
        console.print("[red]Update rejected: name must not be empty and the estimate must be positive.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Updated {task_id}.[/green]")
    _warn_unsaved(service)


@app.command()
def done(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Mark a task or subtask as done."""
    task_id = _parse_task_id(task_id)
    service = _get_service()
    _require_item(service, task_id)
    item = service.complete_task(task_id)
    console.print(f"[green]Completed {task_id} at {item.completed_at.strftime('%H:%M')}[/green]")
    blocked = [t for t in service.blocked_tasks(task_id) if not service.is_blocked(t.id)]
    for t in blocked:
        console.print(f"  [cyan]Unblocked:[/cyan] {t.id}  {t.name}")
    _warn_unsaved(service)


@app.command()
def delete(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Delete a task (with its subtasks) or a single subtask."""
    task_id = _parse_task_id(task_id)
    service = _get_service()
    if not service.delete_task(task_id):
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted {task_id}.[/green]")
    _warn_unsaved(service)


@app.command()
def move(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    project: Annotated[str, typer.Argument(help="Target project name or ID")],
) -> None:
    """Move a task to another project."""
    task_id = _parse_task_id(task_id)
    service = _get_service()
    target = _require_project(service, project)
    if not service.move_task_to_project(task_id, target.id):
        console.print(f"[red]Task {task_id} not found or is a subtask.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Moved {task_id} to {target.name}.[/green]")
    _warn_unsaved(service)


@app.command()
def subtask(
    parent_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    names: Annotated[list[str], typer.Argument(help="One or more subtask names")],
) -> None:
    """Add subtasks to a task."""
    parent_id = _parse_task_id(parent_id)
    service = _get_service()
    created = service.create_subtasks(parent_id, names)
    if created is None:
        console.print(f"[red]Task {parent_id} not found or no subtask names given.[/red]")
        raise typer.Exit(1)
    for st in created:
        console.print(f"[green]Added subtask '{st.name}' as {st.id}[/green]")
    _warn_unsaved(service)


@app.command()
def duplicate(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Copy a task into the same project."""
    task_id = _parse_task_id(task_id)
    service = _get_service()
    copy = service.duplicate_task(task_id)
    if copy is None:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Duplicated {task_id} as {copy.id}[/green]")
    _warn_unsaved(service)


@app.command()
def reschedule(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    new_date: Annotated[Optional[str], typer.Argument(help="New scheduled date (YYYY-MM-DD); omit to unschedule")] = None,
) -> None:
    """Move a task to another day, dropping its time slot."""
    task_id = _parse_task_id(task_id)
    service = _get_service()
    day = _parse_date_opt(new_date, "date")
    task = service.reschedule_task(task_id, day)
    if task is None:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)
    if day is None:
        console.print(f"[green]Unscheduled {task_id}.[/green]")
    else:
        console.print(f"[green]Rescheduled {task_id} to {day.isoformat()} (snoozed {task.snooze_count}x).[/green]")
    _warn_unsaved(service)


@app.command("at")
def schedule_at(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    time_slot: Annotated[Optional[str], typer.Argument(help="Time (HH:MM)")] = None,
    day: Annotated[Optional[str], typer.Option("--day", "-d", help="Date (YYYY-MM-DD)")] = None,
    clear: Annotated[bool, typer.Option("--clear", help="Remove the time slot")] = False,
) -> None:
    """Book a task into a time slot on the day timeline."""
    task_id = _parse_task_id(task_id)
    service = _get_service()
    if clear:
        task = service.clear_scheduled_time(task_id)
    elif time_slot is None:
        console.print("[red]Give a time (HH:MM) or --clear.[/red]")
        raise typer.Exit(1)
    else:
        task = service.set_scheduled_time(task_id, _check_time(time_slot), _parse_date_opt(day, "date"))
    if task is None:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)
    if task.scheduled_time is None:
        console.print(f"[green]Cleared the time slot of {task_id}.[/green]")
    else:
        console.print(
            f"[green]Scheduled {task_id} for {task.scheduled_date.isoformat()} "
            f"{task.scheduled_time.strftime('%H:%M')}.[/green]"
        )
    _warn_unsaved(service)


@app.command()
def wait(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    reason: Annotated[Optional[str], typer.Option("--reason", "-r", help="What the task is waiting on")] = None,
) -> None:
    """Mark a task as waiting on something external."""
    task_id = _parse_task_id(task_id)
    service = _get_service()
    if service.index.task(task_id) is None:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)
    service.set_waiting(task_id, reason)
    console.print(f"[green]{task_id} is now waiting.[/green]")
    _warn_unsaved(service)


@app.command()
def unwait(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Clear the waiting state; the task becomes ready."""
    task_id = _parse_task_id(task_id)
    service = _get_service()
    if service.index.task(task_id) is None:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)
    service.clear_waiting(task_id)
    console.print(f"[green]{task_id} is ready.[/green]")
    _warn_unsaved(service)


@app.command("clear-done")
def clear_done(
    project: Annotated[Optional[str], typer.Option("--project", "-p", help="Only this project")] = None,
) -> None:
    """Delete every completed task and subtask."""
    service = _get_service()
    project_id = _require_project(service, project).id if project else None
    count = service.delete_all_completed(project_id)
    console.print(f"[green]Deleted {count} completed item(s).[/green]")
    _warn_unsaved(service)


# ---------------------------------------------------------------------------
# Daily planning
# ---------------------------------------------------------------------------


@app.command()
def focus(
    mode: Annotated[str, typer.Option("--mode", "-m", help="today-relevant or top-scored")] = "today-relevant",
    n: Annotated[Optional[int], typer.Option("-n", help="Maximum number of tasks")] = None,
) -> None:
    """Show the focus queue: what to work on next."""
    service = _get_service()
    today = date.today()
    focus_mode = _parse_enum(FocusMode, mode, "mode")
    service.ensure_rolled(today)
    queue = service.build_focus_queue(focus_mode, n, today)
    if not queue:
        console.print("[green]Nothing needs your attention today.[/green]")
        return

    table = Table(title=f"Focus ({focus_mode.value})")
    table.add_column("#", justify="right")
    table.add_column("ID")
    table.add_column("Task")
    table.add_column("Time")
    table.add_column("Due")
    table.add_column("Priority")
    if focus_mode == FocusMode.TOP_SCORED:
        table.add_column("Score", justify="right")

    for i, t in enumerate(queue, 1):
        timed = t.scheduled_date == today and t.scheduled_time is not None
        row = [
            str(i),
            t.id,
            t.name,
            t.scheduled_time.strftime("%H:%M") if timed else "-",
            t.due_date.isoformat() if t.due_date else "-",
            t.priority.value,
        ]
        if focus_mode == FocusMode.TOP_SCORED:
            row.append(f"{focus_score(t, today):.0f}")
        table.add_row(*row, style="bold red" if t.is_overdue(today) else None)
    console.print(table)
    console.print(f"[dim]Estimated load: {_fmt_minutes(time_budget(queue))}[/dim]")


@app.command()
def roll() -> None:
    """Move stale scheduled and due dates up to today."""
    service = _get_service()
    count = service.roll_forward(date.today())
    if count:
        console.print(f"[green]Rolled {count} task(s) forward to today.[/green]")
    else:
        console.print("Nothing to roll forward.")
    _warn_unsaved(service)


@app.command()
def timeline(
    day: Annotated[Optional[str], typer.Option("--day", "-d", help="Date (YYYY-MM-DD), default today")] = None,
) -> None:
    """Show the time-slotted tasks of a day."""
    service = _get_service()
    target = _parse_date_opt(day, "date") or date.today()
    blocks, total = service.day_timeline(target)
    if not blocks:
        console.print(f"[dim]No time-slotted tasks on {target.isoformat()}.[/dim]")
        return

    console.print(f"\n[bold underline]{target.strftime('%a %b %d')}[/bold underline]  ({_fmt_minutes(total)} booked)")
    table = Table(show_header=True, box=None, pad_edge=False)
    table.add_column("Time", style="dim")
    table.add_column("ID", style="bold")
    table.add_column("Task")
    table.add_column("Length", justify="right")
    for b in blocks:
        table.add_row(
            f"{b.start.strftime('%H:%M')}-{b.end.strftime('%H:%M')}",
            b.task.id,
            b.task.name,
            _fmt_minutes(b.minutes),
        )
    console.print(table)


@app.command()
def order(
    project: Annotated[Optional[str], typer.Option("--project", "-p", help="Only this project")] = None,
) -> None:
    """Suggest a working order that respects dependencies."""
    service = _get_service()
    project_id = _require_project(service, project).id if project else None
    tasks = service.suggest_order(project_id)
    if not tasks:
        console.print("No open tasks.")
        return
    for i, t in enumerate(tasks, 1):
        flag = "  [yellow]blocked[/yellow]" if service.is_blocked(t.id) else ""
        console.print(f"  {i:>3}. [bold]{t.id}[/bold]  {t.name}  [dim]({t.priority.value})[/dim]{flag}")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@dep_app.command("add")
def dep_add(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    blocker_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id, help="Task that must finish first")],
) -> None:
    """Record that BLOCKER_ID must finish before TASK_ID."""
    task_id = _parse_task_id(task_id)
    blocker_id = _parse_task_id(blocker_id)
    service = _get_service()
    if not service.add_dependency(task_id, blocker_id):
        console.print(
            f"[red]Cannot make {blocker_id} block {task_id}: unknown task, subtask, "
            f"self-dependency or cycle.[/red]"
        )
        raise typer.Exit(1)
    console.print(f"[green]{task_id} is now blocked by {blocker_id}.[/green]")
    _warn_unsaved(service)


@dep_app.command("remove")
def dep_remove(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    blocker_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
) -> None:
    """Remove a blocked-by edge."""
    task_id = _parse_task_id(task_id)
    blocker_id = _parse_task_id(blocker_id)
    service = _get_service()
    service.remove_dependency(task_id, blocker_id)
    console.print(f"[green]{task_id} is no longer blocked by {blocker_id}.[/green]")
    _warn_unsaved(service)


@dep_app.command("summary")
def dep_summary(
    project: Annotated[Optional[str], typer.Option("--project", "-p", help="Only this project")] = None,
) -> None:
    """Show which dependent tasks are ready, blocked or blocking."""
    service = _get_service()
    project_id = _require_project(service, project).id if project else None
    summary = service.dependency_summary(project_id)
    for label, tasks in (("Ready", summary.ready), ("Blocked", summary.blocked), ("Blocking others", summary.blocking)):
        console.print(f"\n[bold]{label}[/bold] ({len(tasks)})")
        for t in tasks:
            console.print(f"  {t.id}  {t.name}")


# ---------------------------------------------------------------------------
# Projects, tags, categories
# ---------------------------------------------------------------------------


@project_app.command("add")
def project_add(
    name: str,
    description: Annotated[Optional[str], typer.Option("--desc", help="Description")] = None,
    color: Annotated[Optional[str], typer.Option(help="Hex colour")] = None,
    category: Annotated[Optional[str], typer.Option("--category", "-c", help="Category ID")] = None,
) -> None:
    """Create a project."""
    service = _get_service()
    project = service.create_project(name, description=description or "", color=color or "", category_id=category)
    if project is None:
        console.print("[red]Could not create project: empty name or unknown category.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Created project '{project.name}' as {project.id}[/green]")
    _warn_unsaved(service)


@project_app.command("list")
def project_list() -> None:
    """List projects with task counts."""
    service = _get_service()
    favorites = set(service.workspace.favorites)
    table = Table(title="Projects")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Category")
    table.add_column("Open", justify="right")
    table.add_column("Total", justify="right")
    for s in service.project_summaries():
        p = s.project
        category = service.workspace.get_category(p.category_id) if p.category_id else None
        star = " *" if p.id in favorites else ""
        table.add_row(p.id, p.name + star, p.status.value, category.name if category else "-", str(s.active), str(s.total))
    console.print(table)


@project_app.command("update")
def project_update(
    project: str,
    name: Annotated[Optional[str], typer.Option(help="New name")] = None,
    description: Annotated[Optional[str], typer.Option("--desc", help="New description")] = None,
    color: Annotated[Optional[str], typer.Option(help="New colour")] = None,
    status: Annotated[Optional[str], typer.Option("--status", "-s", help="active, paused, blocked")] = None,
    category: Annotated[Optional[str], typer.Option("--category", "-c", help="Category ID")] = None,
    no_category: Annotated[bool, typer.Option("--no-category", help="Remove from its category")] = False,
) -> None:
    """Update a project's fields."""
    service = _get_service()
    target = _require_project(service, project)
    fields: dict = {}
    if name is not None:
        fields["name"] = name
    if description is not None:
        fields["description"] = description
    if color is not None:
        fields["color"] = color
    if status is not None:
        fields["status"] = _parse_enum(ProjectStatus, status, "project status")
    if category is not None:
        fields["category_id"] = category
    if no_category:
        fields["category_id"] = None
    if service.update_project(target.id, **fields) is None:
        console.print("[red]Update rejected: empty name or unknown category.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Updated project {target.id}.[/green]")
    _warn_unsaved(service)


@project_app.command("delete")
def project_delete(project: str) -> None:
    """Delete a project and all of its tasks. The Inbox cannot be deleted."""
    service = _get_service()
    target = _require_project(service, project)
    if not service.delete_project(target.id):
        console.print("[red]The Inbox cannot be deleted.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted project '{target.name}'.[/green]")
    _warn_unsaved(service)


@project_app.command("fav")
def project_fav(project: str) -> None:
    """Toggle a project's favourite flag."""
    service = _get_service()
    target = _require_project(service, project)
    state = service.toggle_favorite(target.id)
    console.print(f"[green]{target.name} {'added to' if state else 'removed from'} favourites.[/green]")
    _warn_unsaved(service)


@tag_app.command("add")
def tag_add(name: str, color: Annotated[Optional[str], typer.Option(help="Hex colour")] = None) -> None:
    """Create a tag."""
    service = _get_service()
    if service.find_tag(name) is not None:
        console.print(f"[yellow]Tag '{name}' already exists.[/yellow]")
        return
    tag = service.create_tag(name, color or "")
    if tag is None:
        console.print("[red]Tag name must not be empty.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Created tag '{tag.name}' as {tag.id}[/green]")
    _warn_unsaved(service)


@tag_app.command("list")
def tag_list() -> None:
    """List tags and how many tasks carry them."""
    service = _get_service()
    if not service.workspace.tags:
        console.print("No tags.")
        return
    tasks = service.index.tasks()
    for tag in service.workspace.tags:
        count = sum(1 for t in tasks if tag.id in t.tags)
        console.print(f"  {tag.id}  {tag.name}  [dim]({count})[/dim]")


@tag_app.command("rename")
def tag_rename(tag: str, new_name: str) -> None:
    """Rename a tag."""
    service = _get_service()
    found = service.find_tag(tag)
    if found is None or service.update_tag(found.id, name=new_name) is None:
        console.print(f"[red]Could not rename tag '{tag}'.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Renamed tag to '{new_name}'.[/green]")
    _warn_unsaved(service)


@tag_app.command("delete")
def tag_delete(tag: str) -> None:
    """Delete a tag and remove it from every task."""
    service = _get_service()
    found = service.find_tag(tag)
    if found is None:
        console.print(f"[red]Tag '{tag}' not found.[/red]")
        raise typer.Exit(1)
    service.delete_tag(found.id)
    console.print(f"[green]Deleted tag '{found.name}'.[/green]")
    _warn_unsaved(service)


@category_app.command("add")
def category_add(name: str, color: Annotated[Optional[str], typer.Option(help="Hex colour")] = None) -> None:
    """Create a project category."""
    service = _get_service()
    category = service.create_category(name, color or "")
    if category is None:
        console.print("[red]Category name must not be empty.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Created category '{category.name}' as {category.id}[/green]")
    _warn_unsaved(service)


@category_app.command("list")
def category_list() -> None:
    """List categories in display order with their projects."""
    service = _get_service()
    if not service.workspace.categories:
        console.print("No categories.")
        return
    for c in sorted(service.workspace.categories, key=lambda c: c.order):
        projects = [p.name for p in service.workspace.projects if p.category_id == c.id]
        console.print(f"  {c.id}  [bold]{c.name}[/bold]  [dim]{', '.join(projects) or 'no projects'}[/dim]")


@category_app.command("delete")
def category_delete(category_id: str) -> None:
    """Delete a category; its projects become uncategorised."""
    service = _get_service()
    if not service.delete_category(category_id):
        console.print(f"[red]Category {category_id} not found.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted category {category_id}.[/green]")
    _warn_unsaved(service)


if __name__ == "__main__":
    app()
