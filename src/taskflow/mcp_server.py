"""MCP server for taskflow: exposes task management tools to AI assistants."""

from __future__ import annotations

import json
import logging
import sys
from datetime import date

from mcp.server.fastmcp import FastMCP

from taskflow.models import Priority, Subtask, Task, TaskStatus
from taskflow.persistence import Store
from taskflow.scheduler import FocusMode, focus_score
from taskflow.service import TaskService, parse_date, parse_time
from taskflow.views import GroupKey, SortKey, TaskGroup, ViewQuery

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "taskflow",
    instructions="""\
taskflow is a personal task manager. Tasks live in projects (the Inbox is the \
default project), carry a status (todo, ready, in-progress, waiting, review, \
done), a priority (urgent, high, medium, low, none), and optional due date, \
scheduled date and scheduled time. Task IDs are short hex strings.

Key concepts:
- **Dependencies**: a task can be blocked by other tasks. It stays blocked until \
every blocker is done. Cycles are refused.
- **Views**: inbox, today, upcoming, overdue, completed, waiting, ready, \
master-list, project-<id> and tag-<id>. list_tasks filters, sorts and groups them.
- **Focus queue**: get_focus_queue returns what to work on now. Mode \
"today-relevant" lists everything scheduled today, due today or overdue in working \
order; mode "top-scored" returns the few highest scoring open tasks.
- **Roll-forward**: roll_forward moves stale scheduled and due dates up to today.

Typical workflow:
1. Use create_task (tags can be given by name) and create_subtasks
2. Use add_dependency when one task must finish before another
3. Use get_focus_queue when the user asks what to work on
4. Use complete_task / update_task to track progress
5. Use get_timeline to see the time-slotted day\
""",
)


def _get_service() -> TaskService:
    return TaskService(Store())


def _task_to_dict(service: TaskService, t: Task | Subtask) -> dict:
    """Convert a task or subtask to a JSON-friendly dict."""
    d = {
        "id": t.id,
        "name": t.name,
        "status": t.status.value,
        "priority": t.priority.value,
    }
    if t.description:
        d["description"] = t.description
    if t.due_date:
        d["due_date"] = t.due_date.isoformat()
    if t.scheduled_date:
        d["scheduled_date"] = t.scheduled_date.isoformat()
    if t.scheduled_time:
        d["scheduled_time"] = t.scheduled_time.strftime("%H:%M")
    if t.estimated_minutes:
        d["estimated_minutes"] = t.estimated_minutes
    if t.completed_at:
        d["completed_at"] = t.completed_at.isoformat(timespec="seconds")
    if isinstance(t, Task):
        project = service.index.project_of(t.id)
        d["project"] = project.name if project else None
        d["tags"] = [tag.name for tag in (service.workspace.get_tag(i) for i in t.tags) if tag]
        if t.blocked_by:
            d["blocked_by"] = list(t.blocked_by)
            d["is_blocked"] = service.is_blocked(t.id)
        if t.blocks:
            d["blocks"] = list(t.blocks)
        if t.waiting_reason:
            d["waiting_reason"] = t.waiting_reason
        if t.subtasks:
            d["subtasks"] = [
                {"id": st.id, "name": st.name, "status": st.status.value} for st in t.subtasks
            ]
    return d


def _save_note(service: TaskService) -> str:
    if service.last_save_ok:
        return ""
    return f" Warning: not saved ({service.save_errors[-1]})."


def _resolve_project_id(service: TaskService, project: str | None) -> str | None:
    """Map a project name or ID to an ID. Raises ValueError if unknown."""
    if project is None:
        return None
    found = service.find_project(project)
    if found is None:
        raise ValueError(f"project '{project}' not found.")
    return found.id


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
def create_task(
    name: str,
    project: str | None = None,
    description: str | None = None,
    priority: str = "none",
    status: str = "todo",
    due_date: str | None = None,
    scheduled_date: str | None = None,
    scheduled_time: str | None = None,
    estimated_minutes: int | None = None,
    tags: list[str] | None = None,
) -> str:
    """Create a new task.

    Args:
        name: Task name/title
        project: Project name or ID (default: Inbox)
        description: Free-form notes
        priority: urgent, high, medium, low or none
        status: todo, ready, in-progress, waiting, review or done
        due_date: Due date (YYYY-MM-DD)
        scheduled_date: Day the task is planned for (YYYY-MM-DD); also the due date if none is given
        scheduled_time: Time slot (HH:MM); without a date it is booked for today
        estimated_minutes: Estimated effort in minutes
        tags: Tag names; unknown names are created
    """
    service = _get_service()
    try:
        project_id = _resolve_project_id(service, project)
        task = service.create_task(
            name,
            project_id,
            description=description or "",
            status=TaskStatus(status),
            priority=Priority(priority),
            due_date=parse_date(due_date),
            scheduled_date=parse_date(scheduled_date),
            scheduled_time=parse_time(scheduled_time),
            estimated_minutes=estimated_minutes,
            tags=tags,
        )
    except ValueError as e:
        return f"Error: {e}"
    if task is None:
        return "Error: name must not be empty and estimated_minutes must be positive."
    return f"Created '{task.name}' as {task.id}.{_save_note(service)}"


@mcp.tool()
def create_subtasks(task_id: str, names: list[str]) -> str:
    """Add subtasks to an existing task.

    Args:
        task_id: Parent task ID
        names: Subtask names
    """
    service = _get_service()
    created = service.create_subtasks(task_id, names)
    if created is None:
        return f"Error: task {task_id} not found or no names given."
    ids = ", ".join(st.id for st in created)
    return f"Added {len(created)} subtask(s) to {task_id}: {ids}.{_save_note(service)}"


@mcp.tool()
def update_task(
    task_id: str,
    name: str | None = None,
    description: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    due_date: str | None = None,
    scheduled_date: str | None = None,
    scheduled_time: str | None = None,
    estimated_minutes: int | None = None,
    tags: list[str] | None = None,
    clear_due_date: bool = False,
    clear_schedule: bool = False,
) -> str:
    """Update fields of an existing task or subtask. Only provided fields are changed.

    Args:
        task_id: Task or subtask ID
        name: New name
        description: New description
        status: New status; "done" records the completion time
        priority: New priority
        due_date: New due date (YYYY-MM-DD)
        scheduled_date: New scheduled date (YYYY-MM-DD)
        scheduled_time: New time slot (HH:MM)
        estimated_minutes: New estimate in minutes
        tags: Replace the task's tags with these names
        clear_due_date: Remove the due date
        clear_schedule: Remove scheduled date and time
    """
    service = _get_service()
    if service.get_task(task_id) is None:
        return f"Error: task {task_id} not found."

    fields: dict = {}
    for key, value in (
        ("name", name),
        ("description", description),
        ("status", status),
        ("priority", priority),
        ("due_date", due_date),
        ("scheduled_date", scheduled_date),
        ("scheduled_time", scheduled_time),
        ("estimated_minutes", estimated_minutes),
        ("tags", tags),
    ):
        if value is not None:
            fields[key] = value
    if clear_due_date:
        fields["due_date"] = None
    if clear_schedule:
        fields["scheduled_date"] = None
        fields["scheduled_time"] = None

    try:
        item = service.update_task(task_id, **fields)
    except (ValueError, TypeError) as e:
        return f"Error: {e}"
    if item is None:
        return "Error: update rejected (empty name or non-positive estimate)."
    return f"Updated {task_id}.{_save_note(service)}"


@mcp.tool()
def bulk_update(
    task_ids: list[str],
    status: str | None = None,
    priority: str | None = None,
    due_date: str | None = None,
    scheduled_date: str | None = None,
) -> str:
    """Apply the same change to several tasks at once.

    Args:
        task_ids: IDs of tasks or subtasks to change
        status: New status for all of them
        priority: New priority for all of them
        due_date: New due date (YYYY-MM-DD)
        scheduled_date: New scheduled date (YYYY-MM-DD)
    """
    service = _get_service()
    fields = {
        k: v
        for k, v in (("status", status), ("priority", priority), ("due_date", due_date), ("scheduled_date", scheduled_date))
        if v is not None
    }
    try:
        updated, missing = service.bulk_update(task_ids, **fields)
    except (ValueError, TypeError) as e:
        return f"Error: {e}"
    msg = f"Updated {len(updated)} task(s)."
    if missing:
        msg += f" Not found: {', '.join(missing)}."
    return msg + _save_note(service)


@mcp.tool()
def complete_task(task_id: str) -> str:
    """Mark a task or subtask as done.

    Args:
        task_id: Task ID to complete
    """
    service = _get_service()
    item = service.complete_task(task_id)
    if item is None:
        return f"Error: task {task_id} not found."
    unblocked = [t.id for t in service.blocked_tasks(task_id) if not service.is_blocked(t.id)]
    msg = f"Completed {task_id}."
    if unblocked:
        msg += f" Now unblocked: {', '.join(unblocked)}."
    return msg + _save_note(service)


@mcp.tool()
def delete_task(task_id: str) -> str:
    """Delete a task (with its subtasks) or a single subtask.

    Args:
        task_id: Task or subtask ID to delete
    """
    service = _get_service()
    if not service.delete_task(task_id):
        return f"Error: task {task_id} not found."
    return f"Deleted {task_id}.{_save_note(service)}"


@mcp.tool()
def delete_all_completed(project: str | None = None) -> str:
    """Delete every completed task and subtask.

    Args:
        project: Limit to this project name or ID
    """
    service = _get_service()
    try:
        project_id = _resolve_project_id(service, project)
    except ValueError as e:
        return f"Error: {e}"
    count = service.delete_all_completed(project_id)
    return f"Deleted {count} completed item(s).{_save_note(service)}"


@mcp.tool()
def move_task(task_id: str, project: str) -> str:
    """Move a task into another project.

    Args:
        task_id: Task ID
        project: Target project name or ID
    """
    service = _get_service()
    try:
        project_id = _resolve_project_id(service, project)
    except ValueError as e:
        return f"Error: {e}"
    if not service.move_task_to_project(task_id, project_id):
        return f"Error: task {task_id} not found or is a subtask."
    return f"Moved {task_id}.{_save_note(service)}"


@mcp.tool()
def reschedule_task(task_id: str, new_date: str | None = None) -> str:
    """Move a task to another day (clears its time slot). Omit new_date to unschedule.

    Args:
        task_id: Task ID
        new_date: New scheduled date (YYYY-MM-DD)
    """
    service = _get_service()
    try:
        task = service.reschedule_task(task_id, parse_date(new_date))
    except ValueError as e:
        return f"Error: {e}"
    if task is None:
        return f"Error: task {task_id} not found."
    return f"Rescheduled {task_id} to {new_date or 'no date'}.{_save_note(service)}"


@mcp.tool()
def set_scheduled_time(task_id: str, time_slot: str | None = None, day: str | None = None) -> str:
    """Book a task into a time slot, or clear its slot when time_slot is omitted.

    Args:
        task_id: Task ID
        time_slot: Time (HH:MM)
        day: Date (YYYY-MM-DD); defaults to the task's scheduled date, due date, or today
    """
    service = _get_service()
    try:
        if time_slot is None:
            task = service.clear_scheduled_time(task_id)
        else:
            task = service.set_scheduled_time(task_id, parse_time(time_slot), parse_date(day))
    except ValueError as e:
        return f"Error: {e}"
    if task is None:
        return f"Error: task {task_id} not found."
    return f"Updated the time slot of {task_id}.{_save_note(service)}"


@mcp.tool()
def set_blocker(task_id: str, reason: str | None = None) -> str:
    """Mark a task as waiting on something outside the task list.

    Args:
        task_id: Task ID
        reason: What the task is waiting for
    """
    service = _get_service()
    if service.set_waiting(task_id, reason) is None:
        return f"Error: task {task_id} not found."
    return f"{task_id} is waiting.{_save_note(service)}"


@mcp.tool()
def clear_blocker(task_id: str) -> str:
    """Clear the waiting state of a task; it becomes ready.

    Args:
        task_id: Task ID
    """
    service = _get_service()
    if service.clear_waiting(task_id) is None:
        return f"Error: task {task_id} not found."
    return f"{task_id} is ready.{_save_note(service)}"


@mcp.tool()
def add_dependency(task_id: str, blocker_id: str) -> str:
    """Record that blocker_id must be finished before task_id.

    Args:
        task_id: The task that waits
        blocker_id: The task that must finish first
    """
    service = _get_service()
    if not service.add_dependency(task_id, blocker_id):
        return "Error: unknown task, subtask, self-dependency or the edge would create a cycle."
    return f"{task_id} is now blocked by {blocker_id}.{_save_note(service)}"


@mcp.tool()
def remove_dependency(task_id: str, blocker_id: str) -> str:
    """Remove a blocked-by edge.

    Args:
        task_id: The blocked task
        blocker_id: The blocking task
    """
    service = _get_service()
    service.remove_dependency(task_id, blocker_id)
    return f"{task_id} is no longer blocked by {blocker_id}.{_save_note(service)}"


@mcp.tool()
def create_project(name: str, description: str | None = None, color: str | None = None) -> str:
    """Create a project.

    Args:
        name: Project name
        description: Description
        color: Hex colour
    """
    service = _get_service()
    project = service.create_project(name, description=description or "", color=color or "")
    if project is None:
        return "Error: project name must not be empty."
    return f"Created project '{project.name}' as {project.id}.{_save_note(service)}"


@mcp.tool()
def delete_project(project: str) -> str:
    """Delete a project with all its tasks. The Inbox cannot be deleted.

    Args:
        project: Project name or ID
    """
    service = _get_service()
    found = service.find_project(project)
    if found is None:
        return f"Error: project '{project}' not found."
    if not service.delete_project(found.id):
        return "Error: the Inbox cannot be deleted."
    return f"Deleted project '{found.name}'.{_save_note(service)}"


@mcp.tool()
def roll_forward() -> str:
    """Move stale scheduled and due dates of open tasks up to today."""
    service = _get_service()
    count = service.roll_forward(date.today())
    return f"Rolled {count} task(s) forward.{_save_note(service)}"


# ---------------------------------------------------------------------------
# Read tools
# ---------------------------------------------------------------------------


@mcp.tool()
def get_task(task_id: str) -> str:
    """Get all details for a single task or subtask.

    Args:
        task_id: Task ID
    """
    service = _get_service()
    item = service.get_task(task_id)
    if item is None:
        return f"Error: task {task_id} not found."
    return json.dumps(_task_to_dict(service, item), indent=2)


@mcp.tool()
def list_tasks(
    view: str = "master-list",
    search: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    project: str | None = None,
    sort: str | None = None,
    group: str = "none",
    include_completed: bool = False,
) -> str:
    """List the tasks of a view with optional filters, sorting and grouping.

    Args:
        view: inbox, today, upcoming, overdue, completed, waiting, ready, master-list, project-<id> or tag-<id>
        search: Case-insensitive text to find in name or description
        status: Only this status
        priority: Only this priority
        project: Only this project (name or ID)
        sort: due-date, priority, name or created
        group: none, project, priority, status or due-date
        include_completed: Show done tasks in the master list
    """
    service = _get_service()
    try:
        query = ViewQuery(
            text=search,
            status=TaskStatus(status) if status else None,
            priority=Priority(priority) if priority else None,
            project_id=_resolve_project_id(service, project),
            hide_completed=view == "master-list" and not include_completed and status is None,
            sort=SortKey(sort) if sort else None,
            group=GroupKey(group),
        )
    except ValueError as e:
        return f"Error: {e}"

    result = service.derive_view(view, query, date.today())
    if result and isinstance(result[0], TaskGroup):
        payload = [
            {"group": g.label, "tasks": [_task_to_dict(service, t) for t in g.tasks]} for g in result
        ]
    else:
        payload = [_task_to_dict(service, t) for t in result]
    return json.dumps(payload, indent=2)


@mcp.tool()
def get_focus_queue(mode: str = "today-relevant", limit: int | None = None) -> str:
    """What to work on now.

    Args:
        mode: "today-relevant" (everything for today in working order) or "top-scored" (best few)
        limit: Maximum number of tasks
    """
    service = _get_service()
    try:
        focus_mode = FocusMode(mode)
    except ValueError:
        return f"Error: mode must be one of {', '.join(m.value for m in FocusMode)}."
    today = date.today()
    service.ensure_rolled(today)
    queue = service.build_focus_queue(focus_mode, limit, today)
    result = []
    for t in queue:
        d = _task_to_dict(service, t)
        if focus_mode == FocusMode.TOP_SCORED:
            d["score"] = round(focus_score(t, today), 1)
        result.append(d)
    return json.dumps(result, indent=2)


@mcp.tool()
def get_timeline(day: str | None = None) -> str:
    """Time-slotted tasks of a day with start/end times and the total booked minutes.

    Args:
        day: Date (YYYY-MM-DD), default today
    """
    service = _get_service()
    try:
        target = parse_date(day) or date.today()
    except ValueError as e:
        return f"Error: {e}"
    blocks, total = service.day_timeline(target)
    result = {
        "date": target.isoformat(),
        "total_minutes": total,
        "blocks": [
            {
                "id": b.task.id,
                "name": b.task.name,
                "start": b.start.strftime("%H:%M"),
                "end": b.end.strftime("%H:%M"),
                "minutes": b.minutes,
            }
            for b in blocks
        ],
    }
    return json.dumps(result, indent=2)


@mcp.tool()
def suggest_task_order(project: str | None = None) -> str:
    """Suggest a working order for open tasks: blockers first, then priority and due date.

    Args:
        project: Limit to this project name or ID
    """
    service = _get_service()
    try:
        project_id = _resolve_project_id(service, project)
    except ValueError as e:
        return f"Error: {e}"
    ordered = service.suggest_order(project_id)
    return json.dumps([_task_to_dict(service, t) for t in ordered], indent=2)


@mcp.tool()
def get_dependency_graph(project: str | None = None) -> str:
    """Summarise dependent tasks: which are ready, blocked, or blocking others.

    Args:
        project: Limit to this project name or ID
    """
    service = _get_service()
    try:
        project_id = _resolve_project_id(service, project)
    except ValueError as e:
        return f"Error: {e}"
    summary = service.dependency_summary(project_id)
    result = {
        "ready": [{"id": t.id, "name": t.name} for t in summary.ready],
        "blocked": [
            {"id": t.id, "name": t.name, "blocked_by": [b.id for b in service.blocking_tasks(t.id, active_only=True)]}
            for t in summary.blocked
        ],
        "blocking": [{"id": t.id, "name": t.name, "blocks": list(t.blocks)} for t in summary.blocking],
    }
    return json.dumps(result, indent=2)


@mcp.tool()
def list_projects() -> str:
    """List projects with open and total task counts."""
    service = _get_service()
    favorites = set(service.workspace.favorites)
    result = [
        {
            "id": s.project.id,
            "name": s.project.name,
            "status": s.project.status.value,
            "favorite": s.project.id in favorites,
            "open_tasks": s.active,
            "total_tasks": s.total,
        }
        for s in service.project_summaries()
    ]
    return json.dumps(result, indent=2)


def main():
    """Entry point for the MCP server."""
    logging.basicConfig(
        level=logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting taskflow MCP server on stdio")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
